"""Timer service for the scheduler.

Every delayed or repeating action in the scheduler goes through a
TimerService so the same code runs on real threads in production and on
a manual clock in tests.

Usage:
    from src.scheduler.timers import ThreadTimerService

    timers = ThreadTimerService()
    handle = timers.call_every(5.0, check)
    ...
    handle.cancel()
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

from src.core.logging import get_logger

logger = get_logger(__name__)


class TimerHandle:
    """Cancellation token for one scheduled callback.

    cancel() is idempotent. A callback that is already executing is not
    interrupted; callers re-check their own state instead.
    """

    def __init__(self, name: str = "timer") -> None:
        self.name = name
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds. Returns True if cancelled meanwhile."""
        return self._cancelled.wait(timeout=timeout)


class TimerService(ABC):
    """Clock plus one-shot and repeating callbacks."""

    @abstractmethod
    def now_ms(self) -> float:
        """Current wall-clock time in epoch milliseconds."""
        pass

    @abstractmethod
    def call_later(self, delay_seconds: float, fn: Callable[[], None], name: str = "once") -> TimerHandle:
        """Run fn once after delay_seconds unless cancelled."""
        pass

    @abstractmethod
    def call_every(self, period_seconds: float, fn: Callable[[], None], name: str = "repeat") -> TimerHandle:
        """Run fn every period_seconds until cancelled. First run is one period out."""
        pass


def _invoke(handle: TimerHandle, fn: Callable[[], None]) -> None:
    """Run a timer callback. A failing callback never kills its timer."""
    try:
        fn()
    except Exception as exc:
        logger.error(
            f"Timer callback failed: {handle.name}",
            extra={"context": {"timer": handle.name, "error": str(exc)}},
            exc_info=True,
        )


class ThreadTimerService(TimerService):
    """Daemon-thread timers.

    Each timer gets its own daemon thread that sleeps on the handle's
    cancellation event, so cancel() wakes it immediately.
    """

    def now_ms(self) -> float:
        return time.time() * 1000

    def call_later(self, delay_seconds: float, fn: Callable[[], None], name: str = "once") -> TimerHandle:
        handle = TimerHandle(name)

        def run() -> None:
            if handle.wait(max(0.0, delay_seconds)):
                return
            _invoke(handle, fn)

        threading.Thread(target=run, name=f"gravi-{name}", daemon=True).start()
        return handle

    def call_every(self, period_seconds: float, fn: Callable[[], None], name: str = "repeat") -> TimerHandle:
        if period_seconds <= 0:
            raise ValueError(f"period_seconds must be positive, got {period_seconds}")
        handle = TimerHandle(name)

        def run() -> None:
            while not handle.wait(period_seconds):
                _invoke(handle, fn)

        threading.Thread(target=run, name=f"gravi-{name}", daemon=True).start()
        return handle
