"""업로드 클라이언트 (httpx).

multipart 본문을 청크 단위로 흘려보내며 진행률 콜백을 호출한다.
처리 속도는 시작 이후 누적 평균(보낸 바이트 / 경과 초)이다.
진행률 표시용으로는 충분하지만 과금 등 정확한 측정에는 쓰지 않는다.
"""

import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import httpx
from loguru import logger

DEFAULT_CHUNK_SIZE = 64 * 1024


class UploadRejected(Exception):
    """서버가 4xx/5xx로 업로드를 거절했다."""

    def __init__(self, status_code: int, error_code: str, message: str):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        super().__init__(f"{status_code} {error_code}: {message}")


@dataclass(frozen=True)
class UploadProgress:
    bytes_sent: int
    total_bytes: int
    elapsed: float

    @property
    def fraction(self) -> float:
        return self.bytes_sent / self.total_bytes if self.total_bytes else 1.0

    @property
    def bytes_per_second(self) -> float:
        return self.bytes_sent / self.elapsed if self.elapsed > 0 else 0.0


@dataclass(frozen=True)
class UploadOutcome:
    upload_id: str | None
    record_id: int | None
    status_code: int


ProgressCallback = Callable[[UploadProgress], None]


def extract_upload_id(response: httpx.Response) -> tuple[str | None, int | None]:
    """응답 본문에서 upload id를 꺼낸다. 실패해도 예외 없이 (None, None)."""
    try:
        body = response.json()
    except ValueError:
        logger.warning("Upload response is not JSON; cannot track processing")
        return None, None
    if not isinstance(body, dict):
        return None, None

    upload_id = body.get("uploadId")
    record_id = body.get("id")
    if not isinstance(upload_id, str) or not upload_id:
        logger.warning("Upload response has no uploadId; cannot track processing")
        upload_id = None
    if not isinstance(record_id, int):
        record_id = None
    return upload_id, record_id


async def _stream_body(
    body: bytes,
    chunk_size: int,
    on_progress: ProgressCallback | None,
) -> AsyncIterator[bytes]:
    total = len(body)
    start = time.perf_counter()
    for offset in range(0, total, chunk_size):
        chunk = body[offset : offset + chunk_size]
        yield chunk
        # 다음 청크를 요청받은 시점 = 이전 청크가 전송 계층에 넘어간 시점
        if on_progress:
            on_progress(
                UploadProgress(
                    bytes_sent=offset + len(chunk),
                    total_bytes=total,
                    elapsed=time.perf_counter() - start,
                )
            )


async def upload_file(
    client: httpx.AsyncClient,
    url: str,
    *,
    filename: str,
    data: bytes,
    content_type: str = "application/octet-stream",
    fields: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    on_progress: ProgressCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> UploadOutcome:
    """파일과 메타데이터 필드를 multipart로 업로드한다.

    Raises:
        UploadRejected: 서버가 요청을 거절했을 때 (검증 실패, 인증 실패 등)
    """
    # httpx로 multipart 본문과 boundary 헤더를 만든 뒤, 본문은 직접 청크로 보낸다
    prepared = client.build_request(
        "POST",
        url,
        data=fields or {},
        files={"file": (filename, data, content_type)},
    )
    body = prepared.read()

    request_headers = dict(headers or {})
    request_headers["Content-Type"] = prepared.headers["Content-Type"]
    request_headers["Content-Length"] = str(len(body))

    response = await client.post(
        url,
        content=_stream_body(body, chunk_size, on_progress),
        headers=request_headers,
    )

    if response.is_error:
        error_code, message = "HTTP_ERROR", response.reason_phrase
        try:
            payload = response.json()
            error_code = payload.get("error_code", error_code)
            message = payload.get("message", message)
        except (ValueError, AttributeError):
            pass
        raise UploadRejected(response.status_code, error_code, message)

    upload_id, record_id = extract_upload_id(response)
    return UploadOutcome(
        upload_id=upload_id, record_id=record_id, status_code=response.status_code
    )
