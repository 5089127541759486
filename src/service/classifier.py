"""사진 장르 분류 협력 서비스.

분류 자체는 외부 서비스가 담당하고, 여기서는 계약만 다룬다:
    classify(image_url) -> GenreClassification | None

원격 이미지를 내려받을 때 최대 크기를 넘으면 바로 거절한다.
분류 실패는 수집 작업을 중단시키지 않는다 (ingest_service에서 로그만 남김).
"""

import base64
import json
import math
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from loguru import logger

from core.config import Settings
from processor import operations

CLASSIFY_MAX_SIZE = 1024
CLASSIFY_QUALITY = 82


class ImageTooLarge(Exception):
    pass


@dataclass(frozen=True)
class GenreClassification:
    primary: str
    secondary: list[str] = field(default_factory=list)
    confidence: float | None = None
    reason: str = ""

    @property
    def label(self) -> str:
        if self.primary.strip():
            return self.primary.strip()
        if self.secondary:
            return self.secondary[0].strip()
        return ""

    def to_metadata(self) -> dict:
        return {
            "primary": self.primary,
            "secondary": self.secondary,
            "confidence": self.confidence,
            "reason": self.reason,
        }


class GenreClassifier(Protocol):
    def classify(self, image_url: str) -> GenreClassification | None: ...


def parse_classification(raw: str | dict) -> GenreClassification | None:
    """분류 서비스 응답(JSON)을 정규화한다. 쓸 만한 값이 하나도 없으면 None."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None

    primary = raw.get("primary_category")
    primary = primary.strip() if isinstance(primary, str) else ""

    secondary_raw = raw.get("secondary_categories")
    secondary = []
    if isinstance(secondary_raw, list):
        secondary = [s.strip() for s in secondary_raw if isinstance(s, str) and s.strip()]

    confidence = raw.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, int | float):
        confidence = None
    elif not math.isfinite(confidence):
        confidence = None
    else:
        confidence = min(1.0, max(0.0, float(confidence)))

    reason = raw.get("reason")
    reason = reason.strip() if isinstance(reason, str) else ""

    if not primary and not secondary and confidence is None and not reason:
        return None
    return GenreClassification(primary, secondary, confidence, reason)


def fetch_image_bytes(client: httpx.Client, url: str, max_bytes: int) -> bytes:
    """원격 이미지를 스트리밍으로 받으며 max_bytes를 넘는 순간 중단한다."""
    with client.stream("GET", url) as response:
        response.raise_for_status()
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise ImageTooLarge(f"{url} is {declared} bytes")

        chunks = []
        received = 0
        for chunk in response.iter_bytes():
            received += len(chunk)
            if received > max_bytes:
                raise ImageTooLarge(f"{url} exceeds {max_bytes} bytes")
            chunks.append(chunk)
    return b"".join(chunks)


class HttpGenreClassifier:
    """이미지를 1024px WEBP로 줄여 분류 엔드포인트에 POST한다."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        max_download_bytes: int = 40 * 1024 * 1024,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.max_download_bytes = max_download_bytes
        self._client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpGenreClassifier | None":
        if not settings.CLASSIFIER_URL.strip():
            return None
        return cls(
            endpoint=settings.CLASSIFIER_URL.strip(),
            timeout=settings.CLASSIFIER_TIMEOUT_SECONDS,
            max_download_bytes=settings.CLASSIFIER_MAX_DOWNLOAD_BYTES,
        )

    def classify(self, image_url: str) -> GenreClassification | None:
        if not image_url.strip():
            return None

        source = fetch_image_bytes(self._client, image_url, self.max_download_bytes)
        image = operations.fit_within(
            operations.decode(source), CLASSIFY_MAX_SIZE, CLASSIFY_MAX_SIZE
        )
        encoded = operations.encode(
            operations.to_rgb(image), "WEBP", quality=CLASSIFY_QUALITY
        )

        response = self._client.post(
            self.endpoint,
            json={
                "image": base64.b64encode(encoded).decode("ascii"),
                "mime_type": "image/webp",
            },
        )
        response.raise_for_status()
        result = parse_classification(response.json())
        logger.info(f"Classified {image_url}: {result.label if result else 'no result'}")
        return result

    def close(self) -> None:
        self._client.close()
