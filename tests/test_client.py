"""업로드 전송 / 상태 폴링 클라이언트 테스트.

httpx.MockTransport로 서버 응답을 흉내 낸다.
"""

import asyncio

import httpx
import pytest

from client.poller import NoticeKind, StatusPoller, track_upload
from client.transport import UploadOutcome, UploadRejected, extract_upload_id, upload_file
from conftest import make_image_bytes
from model.upload_job import JobStatus

UPLOAD_URL = "http://gallery.test/api/files"
STATUS_URL = "http://gallery.test/api/files/status"


async def _no_sleep(_seconds: float) -> None:
    return None


def _status_transport(statuses, calls):
    """호출마다 statuses에서 하나씩 꺼내 응답한다. 다 쓰면 마지막 값을 반복."""

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params.get("uploadId"))
        status = statuses[min(len(calls), len(statuses)) - 1]
        if isinstance(status, int):
            return httpx.Response(status)
        return httpx.Response(200, json={"status": status})

    return httpx.MockTransport(handler)


class TestUploadFile:
    def test_streams_body_and_reports_progress(self):
        received = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received["body"] = request.content
            received["headers"] = request.headers
            return httpx.Response(202, json={"uploadId": "abc", "id": 7})

        data = make_image_bytes(200, 200)
        progress = []

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await upload_file(
                    client,
                    UPLOAD_URL,
                    filename="photo.png",
                    data=data,
                    content_type="image/png",
                    fields={"width": "200", "height": "200"},
                    headers={"Authorization": "Bearer t"},
                    on_progress=progress.append,
                    chunk_size=256,
                )

        outcome = asyncio.run(run())

        assert outcome == UploadOutcome(upload_id="abc", record_id=7, status_code=202)
        assert received["headers"]["content-type"].startswith("multipart/form-data; boundary=")
        assert int(received["headers"]["content-length"]) == len(received["body"])
        assert received["headers"]["authorization"] == "Bearer t"
        assert data in received["body"]
        assert b'name="width"' in received["body"]

        assert len(progress) > 1
        sent = [p.bytes_sent for p in progress]
        assert sent == sorted(sent)
        assert progress[-1].fraction == 1.0
        assert all(p.bytes_per_second >= 0 for p in progress)

    def test_rejection_carries_error_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400, json={"error_code": "VALIDATION_ERROR", "message": "width 값은 0보다 큰 숫자여야 합니다"}
            )

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                await upload_file(client, UPLOAD_URL, filename="a.png", data=b"x")

        with pytest.raises(UploadRejected) as exc_info:
            asyncio.run(run())
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "VALIDATION_ERROR"

    def test_rejection_without_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                await upload_file(client, UPLOAD_URL, filename="a.png", data=b"x")

        with pytest.raises(UploadRejected) as exc_info:
            asyncio.run(run())
        assert exc_info.value.error_code == "HTTP_ERROR"


class TestExtractUploadId:
    def test_reads_upload_id_and_record_id(self):
        response = httpx.Response(202, json={"uploadId": "u1", "id": 3})
        assert extract_upload_id(response) == ("u1", 3)

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(202, text="accepted"),
            httpx.Response(202, json=["u1"]),
            httpx.Response(202, json={"uploadId": ""}),
            httpx.Response(202, json={"uploadId": 42}),
        ],
    )
    def test_degrades_to_none(self, response):
        assert extract_upload_id(response)[0] is None


class TestStatusPoller:
    def test_completed_after_processing(self):
        calls, notices = [], []

        async def run():
            transport = _status_transport(["processing", "processing", "completed"], calls)
            async with httpx.AsyncClient(transport=transport) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, sleep=_no_sleep)
                return await poller.wait_for("u1")

        assert asyncio.run(run()) is JobStatus.COMPLETED
        assert calls == ["u1", "u1", "u1"]
        assert [n.kind for n in notices] == [NoticeKind.PROCESSING, NoticeKind.COMPLETED]

    def test_failed_status_stops_polling(self):
        calls, notices = [], []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["failed"], calls)) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, sleep=_no_sleep)
                return await poller.wait_for("u1")

        assert asyncio.run(run()) is JobStatus.FAILED
        assert len(calls) == 1
        assert notices[-1].kind is NoticeKind.FAILED

    def test_gives_up_after_max_attempts(self):
        """계속 processing이면 정확히 120번 조회 후 failed로 알린다."""
        calls, notices = [], []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["processing"], calls)) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, sleep=_no_sleep)
                status = await poller.wait_for("u1")
                return status, poller.attempts

        status, attempts = asyncio.run(run())
        assert status is JobStatus.FAILED
        assert attempts == 120
        assert len(calls) == 120
        assert [n.kind for n in notices] == [NoticeKind.PROCESSING, NoticeKind.FAILED]

    def test_reused_poller_counts_attempts_per_upload(self):
        calls, notices = [], []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["processing"], calls)) as client:
                poller = StatusPoller(
                    client, STATUS_URL, notices.append, max_attempts=5, sleep=_no_sleep
                )
                await poller.wait_for("u1")
                await poller.wait_for("u2")
                return poller.attempts

        assert asyncio.run(run()) == 5
        assert len(calls) == 10

    def test_transport_errors_count_as_unknown(self):
        calls, notices = [], []

        async def run():
            transport = _status_transport([500, "not-a-status", "completed"], calls)
            async with httpx.AsyncClient(transport=transport) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, sleep=_no_sleep)
                return await poller.wait_for("u1")

        assert asyncio.run(run()) is JobStatus.COMPLETED
        assert len(calls) == 3

    def test_deadline_turns_into_failed(self):
        calls, notices = [], []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["processing"], calls)) as client:
                poller = StatusPoller(
                    client,
                    STATUS_URL,
                    notices.append,
                    interval=0.01,
                    max_attempts=10_000,
                    deadline=0.1,
                )
                return await poller.wait_for("u1")

        assert asyncio.run(run()) is JobStatus.FAILED
        assert notices[-1].kind is NoticeKind.FAILED
        assert len(calls) < 10_000

    def test_cancel_stops_without_final_notice(self):
        calls, notices = [], []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["processing"], calls)) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, interval=60)
                task = poller.start("u1")
                await asyncio.sleep(0)
                poller.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task

        asyncio.run(run())
        assert calls == []
        assert [n.kind for n in notices] == [NoticeKind.PROCESSING]


class TestTrackUpload:
    def test_missing_upload_id_shows_submitted(self):
        notices = []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["completed"], [])) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, sleep=_no_sleep)
                return await track_upload(poller, UploadOutcome(None, None, 202))

        assert asyncio.run(run()) is None
        assert [n.kind for n in notices] == [NoticeKind.SUBMITTED]

    def test_follows_upload_id(self):
        notices = []

        async def run():
            async with httpx.AsyncClient(transport=_status_transport(["completed"], [])) as client:
                poller = StatusPoller(client, STATUS_URL, notices.append, sleep=_no_sleep)
                return await track_upload(poller, UploadOutcome("u9", 1, 202))

        assert asyncio.run(run()) is JobStatus.COMPLETED
        assert all(n.upload_id == "u9" for n in notices)
