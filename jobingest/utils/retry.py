from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    operation: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay_ms: float = 1000.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Retries ``retry_on`` failures, waiting ``base_delay_ms * 2 ** (attempt - 1)`` between attempts."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt == max_attempts:
                raise
            delay_ms = base_delay_ms * (2 ** (attempt - 1))
            logger.warning(
                "retrying_after_failure",
                extra={"extra_fields": {"attempt": attempt, "delay_ms": delay_ms, "error": repr(exc)}},
            )
            sleep(delay_ms / 1000.0)
    raise RuntimeError("unreachable")
