"""
Small shared utilities.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from report_engine.core.errors import DeadlineExceeded


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


class Deadline:
    """Wall-clock budget for one report execution.

    ``timeout_ms=None`` means no deadline; ``remaining_ms()`` then returns None.
    """

    def __init__(self, timeout_ms: int | None = None):
        self.timeout_ms = timeout_ms
        self._expires_at = (
            time.monotonic() + timeout_ms / 1000 if timeout_ms is not None else None
        )

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining_ms(self) -> int | None:
        if self._expires_at is None:
            return None
        return max(0, int((self._expires_at - time.monotonic()) * 1000))

    def check(self, stage: str = "execution") -> None:
        """Raise ``DeadlineExceeded`` if the budget is spent."""
        if self.expired:
            raise DeadlineExceeded(
                f"Deadline of {self.timeout_ms} ms exceeded during {stage}"
            )
