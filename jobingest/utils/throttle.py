from __future__ import annotations

import logging
import queue
import random
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

from jobingest.core.models import RateLimitConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

WINDOW_SECONDS = 60.0

_STOP = object()


class RateLimiter:
    """Serializes one source's requests through a single worker thread."""

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        name: str = "source",
    ) -> None:
        self.config = config
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._queue: queue.Queue[Any] = queue.Queue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self.request_count = 0
        self.last_request_time = 0.0
        self.reset_time = self._clock() + WINDOW_SECONDS

    def admit(self, request: Callable[[], T]) -> T:
        future: Future[T] = Future()
        self._queue.put((request, future))
        self._ensure_worker()
        return future.result()

    def close(self) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is not None:
            self._queue.put(_STOP)
            worker.join(timeout=5)

    def get_metrics(self) -> dict[str, float]:
        return {
            "queue_length": self._queue.qsize(),
            "request_count": self.request_count,
            "last_request_time": self.last_request_time,
            "reset_time": self.reset_time,
        }

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._drain, name=f"rate-limiter-{self.name}", daemon=True)
            self._worker.start()

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            request, future = item
            if not future.set_running_or_notify_cancel():
                continue
            self._wait_for_window()
            started = self._clock()
            try:
                result = request()
            except Exception as exc:  # noqa: BLE001
                self._record(self._clock() - started, success=False)
                logger.warning("rate_limited_request_failed", extra={"extra_fields": {"source": self.name, "error": repr(exc)}})
                future.set_exception(exc)
            else:
                self._record(self._clock() - started, success=True)
                future.set_result(result)
            self._sleep(self._random_delay_seconds())

    def _wait_for_window(self) -> None:
        now = self._clock()
        if now > self.reset_time:
            self.request_count = 0
            self.reset_time = now + WINDOW_SECONDS
        if self.request_count >= self.config.requests_per_minute:
            wait = max(0.0, self.reset_time - now)
            logger.warning("rate_limit_reached", extra={"extra_fields": {"source": self.name, "wait_seconds": round(wait, 3)}})
            self._sleep(wait)
            self.request_count = 0
            self.reset_time = self._clock() + WINDOW_SECONDS

    def _record(self, duration: float, success: bool) -> None:
        self.request_count += 1
        self.last_request_time = self._clock()
        logger.debug(
            "request_dispatched",
            extra={"extra_fields": {"source": self.name, "success": success, "duration_ms": round(duration * 1000, 1)}},
        )

    def _random_delay_seconds(self) -> float:
        delay = self.config.delay_between_requests
        return self._rng.uniform(delay.min, delay.max) / 1000.0
