"""
Pacing

Blocking delays used to stay under the forum's implicit rate limits.
A cancelled pacer raises InterruptedError from wait(), which aborts the
whole query rather than just the delay.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger("reddisearch.common.pacing")


class Pacer:
    """
    Shared blocking delay with cancellation.

    Usage:
        pacer = Pacer()
        pacer.wait(1.0)     # blocks ~1s
        pacer.cancel()      # any current or later wait() raises InterruptedError
    """

    def __init__(self, sleep: Optional[Callable[[float], None]] = None):
        """
        Args:
            sleep: Replacement for the blocking wait (tests pass a no-op).
                When omitted, waits on an internal event so cancel() wakes it.
        """
        self._sleep = sleep
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, seconds: float) -> None:
        if self._cancelled.is_set():
            raise InterruptedError("pacing wait cancelled")
        if seconds <= 0:
            return

        if self._sleep is not None:
            self._sleep(seconds)
        else:
            self._cancelled.wait(seconds)

        if self._cancelled.is_set():
            logger.info("Pacing wait interrupted after cancel")
            raise InterruptedError("pacing wait cancelled")

    def cancel(self) -> None:
        self._cancelled.set()

    def reset(self) -> None:
        self._cancelled.clear()


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)
