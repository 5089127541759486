"""업로드 id → 처리 상태 저장소.

백그라운드 워커가 쓰고 상태 조회 API가 읽는다. 작업 간에 공유되는 유일한
가변 상태다. 키가 작업마다 고유하므로 서로 다른 작업이 같은 항목을 두고
경쟁하지 않고, 맵 자체만 락으로 보호한다.

상태 전이: processing → completed | failed. 종료 상태 이후의 쓰기는 무시된다.
프로세스 메모리에만 있으므로 재시작하면 사라진다. 조회 API는 이때
레코드의 processing_status로 상태를 다시 구한다.
"""

import threading
from collections import OrderedDict

from loguru import logger

from model.upload_job import JobStatus


class UploadStatusTracker:
    def __init__(self, max_entries: int = 10_000):
        self.max_entries = max(1, max_entries)
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, JobStatus] = OrderedDict()

    def get(self, upload_id: str) -> JobStatus:
        """모르는 id는 예외 대신 JobStatus.UNKNOWN."""
        with self._lock:
            return self._entries.get(upload_id, JobStatus.UNKNOWN)

    def set(self, upload_id: str, status: JobStatus) -> bool:
        """상태를 기록한다. 전이가 거부되면 False."""
        if status is JobStatus.UNKNOWN:
            raise ValueError("UNKNOWN is a read-only status")

        with self._lock:
            current = self._entries.get(upload_id)
            if current is not None and current.is_terminal:
                if current is not status:
                    logger.warning(
                        f"Ignoring {status} for upload {upload_id}: already {current}"
                    )
                return False
            self._entries[upload_id] = status
            self._entries.move_to_end(upload_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted upload {evicted} from status tracker")
            return True

    def start(self, upload_id: str) -> bool:
        return self.set(upload_id, JobStatus.PROCESSING)

    def complete(self, upload_id: str) -> bool:
        return self.set(upload_id, JobStatus.COMPLETED)

    def fail(self, upload_id: str) -> bool:
        return self.set(upload_id, JobStatus.FAILED)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
