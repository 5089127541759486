"""pytest 공용 fixture.

모든 API 테스트는 테스트마다 새로 만든 임시 SQLite 파일 DB를 사용한다.
(백그라운드 워커 스레드가 별도 커넥션으로 같은 DB에 쓰기 때문에
in-memory + StaticPool 대신 파일 DB를 쓴다)
- client: TestClient (get_engine / get_object_store 오버라이드)
- object_store: 메모리에 저장하는 가짜 스토리지
- auth_headers: 관리자 Bearer 토큰 헤더
"""

import io
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlmodel import SQLModel, create_engine

# src/ 디렉토리를 import path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

# 앱 import 전에 설정: lifespan이 작업 디렉토리에 DB 파일을 만들지 않도록
os.environ.setdefault("DATABASE_URL", "sqlite://")

from core.dependencies import get_object_store  # noqa: E402
from core.exceptions import StorageError  # noqa: E402
from core.security import create_admin_token  # noqa: E402
from main import app  # noqa: E402
from model.database import get_engine  # noqa: E402


class InMemoryObjectStore:
    """ObjectStore와 같은 upload 계약을 가진 테스트 더블."""

    base_url = "https://cdn.test/gallery"

    def __init__(self, fail_keys: tuple[str, ...] = ()):
        self.objects: dict[str, tuple[bytes, str | None]] = {}
        self.fail_keys = fail_keys

    def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        if any(marker in key for marker in self.fail_keys):
            raise StorageError(f"refused {key}")
        self.objects[key] = (data, content_type)
        return f"{self.base_url}/{key}"


def make_image_bytes(
    width: int = 100,
    height: int = 100,
    color=(30, 90, 200),
    fmt: str = "PNG",
    mode: str = "RGB",
) -> bytes:
    """테스트용 이미지를 메모리에서 생성한다."""
    buf = io.BytesIO()
    Image.new(mode, (width, height), color=color).save(buf, format=fmt)
    return buf.getvalue()


def make_gradient_bytes(width: int = 120, height: int = 80, fmt: str = "PNG") -> bytes:
    """색이 고르게 퍼진 이미지 (히스토그램/해시 테스트용)."""
    image = Image.new("RGB", (width, height))
    image.putdata(
        [
            (x * 255 // max(1, width - 1), y * 255 // max(1, height - 1), (x + y) % 256)
            for y in range(height)
            for x in range(width)
        ]
    )
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def object_store():
    return InMemoryObjectStore()


@pytest.fixture()
def client(engine, object_store):
    """DB 엔진과 스토리지를 테스트용으로 바꾼 TestClient."""
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_object_store] = lambda: object_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    token = create_admin_token("admin@test.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def upload_form():
    """정상 업로드 요청의 files / data 인자를 만든다."""

    def _build(data: bytes | None = None, filename: str = "photo.png", **fields):
        payload = {"width": "100", "height": "100", "title": "  노을  "}
        payload.update(fields)
        files = {"file": (filename, data or make_image_bytes(), "image/png")}
        return files, payload

    return _build
