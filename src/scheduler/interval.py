"""Interval repeater - re-sends one fixed prompt on a fixed period.

Independent of the queue. Sends are fire-and-forget: no retry, no
completion inference, and the outcome never feeds back into any state.
"""

from typing import Optional

from src.automation.client import AutomationClient
from src.core.config import SchedulerConfig
from src.core.logging import get_logger, preview
from src.scheduler.timers import TimerHandle, TimerService

logger = get_logger(__name__)


class IntervalRepeater:
    """Fixed-period sender."""

    def __init__(self, client: AutomationClient, timers: TimerService):
        self._client = client
        self._timers = timers
        self._handle: Optional[TimerHandle] = None
        self.ticks = 0

    def start(self, schedule: SchedulerConfig) -> bool:
        """Start repeating schedule.interval_prompt every schedule.interval_minutes.

        Any running interval is cancelled first. An empty prompt schedules
        nothing and is not an error.

        Returns:
            True if a timer was scheduled
        """
        self.stop()
        period_seconds = schedule.interval_minutes * 60
        prompt = schedule.interval_prompt

        if not prompt:
            logger.info("Interval prompt not configured, nothing scheduled")
            return False

        logger.info(
            f"Interval started: every {schedule.interval_minutes:g} minute(s)",
            extra={"context": {"period_seconds": period_seconds}},
        )
        self._handle = self._timers.call_every(
            period_seconds, lambda: self._fire(prompt), name="interval"
        )
        return True

    def stop(self) -> None:
        """Cancel the interval timer. Safe when nothing is scheduled."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.info("Interval stopped")

    def is_active(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def _fire(self, prompt: str) -> None:
        self.ticks += 1
        logger.info(
            f"Interval send: \"{preview(prompt)}\"",
            extra={"context": {"tick": self.ticks}},
        )
        try:
            result = self._client.send_prompt(prompt)
        except Exception as exc:
            logger.warning(
                "Interval send raised",
                extra={"context": {"tick": self.ticks, "error": str(exc)}},
            )
            return
        if not result.success:
            logger.warning(
                f"Interval send failed: {result.error}",
                extra={"context": {"tick": self.ticks}},
            )
