from dataclasses import dataclass
from datetime import UTC, datetime

from sqlmodel import Field, SQLModel

from model.upload_job import JobStatus


class MediaRecord(SQLModel, table=True):
    """갤러리 미디어 레코드.

    업로드가 수락되는 순간 파생 에셋이 빈 "임시" 상태로 생성되고,
    백그라운드 작업이 끝나면 같은 행이 갱신된다.
    정식 컬럼 밖의 메타데이터(해시, 히스토그램, 플레이스홀더 등)는
    metadata_json에 JSON 문자열로 저장한다.
    """

    __tablename__ = "media"

    id: int | None = Field(default=None, primary_key=True)
    upload_id: str = Field(index=True, unique=True)
    title: str = ""
    description: str = ""
    original_name: str = ""
    image_url: str = ""
    thumbnail_url: str = ""
    width: int
    height: int
    location: str = ""
    location_name: str = ""
    latitude: float | None = None
    longitude: float | None = None
    camera_model: str = ""
    aperture: str = ""
    focal_length: str = ""
    iso: str = ""
    shutter_speed: str = ""
    capture_time: str = ""
    genre: str = ""
    processing_status: str = Field(default=JobStatus.PROCESSING.value)
    metadata_json: str = "{}"
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class DerivedAssets:
    """원본 이미지에서 계산된 결과물."""

    image_url: str
    thumbnail_url: str
    content_hash: str
    perceptual_hash: str | None = None
    placeholder: str | None = None
    histogram: dict[str, list[float]] | None = None

    def to_metadata(self) -> dict:
        return {
            "sha256": self.content_hash,
            "perceptualHash": self.perceptual_hash,
            "thumbhash": self.placeholder,
            "histogram": self.histogram,
        }
