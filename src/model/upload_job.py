import uuid
from dataclasses import dataclass
from enum import StrEnum


class JobStatus(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    # 트래커에 없는 id를 읽을 때만 돌려주는 값. 저장되는 상태가 아니다.
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def new_upload_id() -> str:
    """업로드 시도마다 새 id를 발급한다. 재사용하지 않는다."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class IngestJob:
    """백그라운드 워커에 넘기는 작업 단위."""

    upload_id: str
    record_id: int
    filename: str
    content_type: str
    data: bytes
