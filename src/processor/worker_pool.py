"""백그라운드 파생 에셋 작업용 스레드풀.

업로드 요청은 작업을 넘긴 뒤 바로 응답하고, 썸네일/히스토그램/업로드 같은
느린 작업은 여기서 실행된다.

무제한으로 작업을 쌓지 않도록 (워커 수 + 대기열 크기)만큼의 슬롯을
세마포어로 관리한다. 슬롯이 없으면 PipelineBusy로 즉시 거절한다.
워커 수를 1로 두면 작업 간 처리가 직렬화된다.

Pillow는 디코딩/리사이즈 중 GIL을 놓기 때문에 스레드풀로도
여러 작업이 실제로 병렬 실행된다.
"""

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from loguru import logger

from core.exceptions import PipelineBusy


class IngestWorkerPool:
    def __init__(self, workers: int = 2, queue_size: int = 16):
        self.workers = max(1, workers)
        self.capacity = self.workers + max(0, queue_size)
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="ingest"
        )
        self._slots = threading.BoundedSemaphore(self.capacity)
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self._active = 0

    def reserve(self) -> None:
        """작업 슬롯 하나를 확보한다. 가득 찼으면 PipelineBusy."""
        if not self._slots.acquire(blocking=False):
            logger.warning(f"Ingest pool saturated ({self.capacity} slots in use)")
            raise PipelineBusy

    def release(self) -> None:
        """reserve() 후 submit()하지 못했을 때 슬롯을 돌려준다."""
        self._slots.release()

    def submit(self, fn: Callable, *args) -> Future:
        """reserve()로 확보한 슬롯을 소비해 작업을 실행한다.

        슬롯은 작업이 끝나면 (성공/실패 무관) 결과가 나오기 전에 반환된다.
        """
        with self._lock:
            self._active += 1
        try:
            future = self._executor.submit(self._run, fn, args)
        except RuntimeError:
            with self._lock:
                self._active -= 1
            self.release()
            raise
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _run(self, fn: Callable, args: tuple):
        try:
            return fn(*args)
        finally:
            with self._lock:
                self._active -= 1
            self.release()

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._active

    def wait_idle(self, timeout: float | None = None) -> bool:
        """현재 제출된 작업이 모두 끝날 때까지 기다린다. 시간 초과 시 False."""
        with self._lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
