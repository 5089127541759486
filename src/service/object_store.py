"""S3 호환 오브젝트 스토리지 업로더.

키 규칙:
    원본    {epoch_ms}-{uuid}{ext}
    썸네일  {epoch_ms}-{uuid}-thumb.webp

업로드마다 새 키를 발급하므로 동시 업로드끼리 조율 없이도 충돌하지 않고,
부분 실패 후에도 같은 키로 재시도하지 않는다.
"""

import os
import time
import uuid
from dataclasses import dataclass

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from core.config import Settings
from core.exceptions import StorageError, StorageNotConfigured

DEFAULT_EXTENSION = ".jpg"


@dataclass(frozen=True)
class ObjectKeys:
    original: str
    thumbnail: str


def normalize_extension(filename: str | None) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext or DEFAULT_EXTENSION


def build_object_keys(filename: str | None, now_ms: int | None = None) -> ObjectKeys:
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    base = f"{timestamp}-{uuid.uuid4()}"
    return ObjectKeys(
        original=f"{base}{normalize_extension(filename)}",
        thumbnail=f"{base}-thumb.webp",
    )


class ObjectStore:
    """put_object 한 번으로 바이트를 저장하고 공개 URL을 돌려준다."""

    def __init__(
        self,
        endpoint: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        region: str = "auto",
        public_base_url: str = "",
        client=None,
    ):
        self.endpoint = endpoint.strip().rstrip("/")
        self.bucket = bucket.strip()
        self.public_base_url = public_base_url.strip().rstrip("/")
        self._client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                s3={"addressing_style": "path"},
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStore":
        if not settings.storage_configured:
            raise StorageNotConfigured
        return cls(
            endpoint=settings.S3_ENDPOINT,
            bucket=settings.S3_BUCKET,
            access_key_id=settings.S3_ACCESS_KEY_ID.strip(),
            secret_access_key=settings.S3_SECRET_ACCESS_KEY.strip(),
            region=settings.S3_REGION,
            public_base_url=settings.S3_PUBLIC_BASE_URL,
        )

    def public_url(self, key: str) -> str:
        base = self.public_base_url or f"{self.endpoint}/{self.bucket}"
        return f"{base}/{key}"

    def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """같은 키로 다시 올리면 덮어쓴다. 실패 시 StorageError."""
        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"S3 upload failed for bucket={self.bucket}, key={key}") from exc

        logger.info(f"Stored {key} ({len(data)} bytes)")
        return self.public_url(key)
