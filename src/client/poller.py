"""처리 상태 폴링 클라이언트.

업로드가 수락되면 즉시 "processing" 알림을 띄우고, 상태 API를 일정 간격으로
최대 횟수까지 조회한다. 종료 상태를 만나면 해당 알림을 띄우고 멈춘다.
횟수를 다 쓸 때까지 processing/unknown이면 "failed"로 알린다 (무한 폴링 방지).

폴링은 asyncio.Task로 돌며, 화면이 사라질 때 cancel()로 정리한다.
취소해도 서버 쪽 작업에는 영향이 없다.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

import httpx
from loguru import logger

from client.transport import UploadOutcome
from model.upload_job import JobStatus

POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_ATTEMPTS = 120  # 약 4분


class NoticeKind(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    # upload id를 못 읽었을 때: 추적은 못 하지만 처리됐을 가능성이 높다
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str
    upload_id: str | None = None


NOTICE_MESSAGES = {
    NoticeKind.PROCESSING: "업로드 완료, 이미지를 처리하고 있습니다",
    NoticeKind.COMPLETED: "이미지 처리가 완료되었습니다",
    NoticeKind.FAILED: "이미지 처리에 실패했습니다",
    NoticeKind.SUBMITTED: "업로드가 완료되었습니다. 잠시 후 목록에서 확인하세요",
}

NoticeCallback = Callable[[Notice], None]
Sleep = Callable[[float], Awaitable[None]]


def _notice(kind: NoticeKind, upload_id: str | None) -> Notice:
    return Notice(kind=kind, message=NOTICE_MESSAGES[kind], upload_id=upload_id)


class StatusPoller:
    def __init__(
        self,
        client: httpx.AsyncClient,
        status_url: str,
        notify: NoticeCallback,
        *,
        headers: dict[str, str] | None = None,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        deadline: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.status_url = status_url
        self.notify = notify
        self.headers = headers or {}
        self.interval = interval
        self.max_attempts = max_attempts
        self.deadline = deadline
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.attempts = 0

    async def fetch_status(self, upload_id: str) -> JobStatus:
        """상태 한 번 조회. 네트워크/응답 오류는 unknown으로 취급한다."""
        try:
            response = await self.client.get(
                self.status_url, params={"uploadId": upload_id}, headers=self.headers
            )
            response.raise_for_status()
            return JobStatus(response.json()["status"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.debug(f"Status poll for {upload_id} failed: {exc}")
            return JobStatus.UNKNOWN

    async def _poll(self, upload_id: str) -> JobStatus:
        for _ in range(self.max_attempts):
            await self._sleep(self.interval)
            self.attempts += 1
            status = await self.fetch_status(upload_id)
            if status.is_terminal:
                return status
        logger.warning(f"Gave up on {upload_id} after {self.attempts} polls")
        return JobStatus.FAILED

    async def wait_for(self, upload_id: str) -> JobStatus:
        """processing 알림 → 폴링 → 종료 알림. 최종 상태를 반환한다."""
        self.attempts = 0
        self.notify(_notice(NoticeKind.PROCESSING, upload_id))
        try:
            if self.deadline is None:
                status = await self._poll(upload_id)
            else:
                async with asyncio.timeout(self.deadline):
                    status = await self._poll(upload_id)
        except TimeoutError:
            logger.warning(f"Polling {upload_id} exceeded {self.deadline}s deadline")
            status = JobStatus.FAILED

        kind = NoticeKind.COMPLETED if status is JobStatus.COMPLETED else NoticeKind.FAILED
        self.notify(_notice(kind, upload_id))
        return status

    def start(self, upload_id: str) -> asyncio.Task:
        """폴링을 백그라운드 태스크로 시작한다. 실행 중인 이벤트 루프가 필요하다."""
        self.cancel()
        self._task = asyncio.create_task(self.wait_for(upload_id))
        return self._task

    def cancel(self) -> None:
        """화면 정리 시 호출. 이후 알림은 발생하지 않는다."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


async def track_upload(poller: StatusPoller, outcome: UploadOutcome) -> JobStatus | None:
    """업로드 결과를 받아 폴링까지 이어 준다.

    upload id를 읽지 못했으면 실패로 보지 않고 "업로드 완료" 알림만 띄운다.
    """
    if outcome.upload_id is None:
        poller.notify(_notice(NoticeKind.SUBMITTED, None))
        return None
    return await poller.wait_for(outcome.upload_id)
