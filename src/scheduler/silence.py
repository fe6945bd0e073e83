"""Silence detection - inferring that a queue item is finished.

There is no "done" event from the agent. An item counts as finished once
no activity (click or DOM change) has been observed for the configured
silence timeout. Two guards keep polling jitter and slow starts from
advancing too early:
    - Grace period: nothing is judged until 10s after the send
    - Monotonic watermark: activity only pushes the silence clock forward
"""

from dataclasses import dataclass
from typing import Callable, Optional

from src.automation.client import ActivitySample, AutomationClient
from src.core.logging import get_logger
from src.scheduler.timers import TimerHandle, TimerService

logger = get_logger(__name__)

CHECK_INTERVAL_SECONDS = 5.0
GRACE_PERIOD_SECONDS = 10.0


@dataclass(frozen=True)
class SilenceVerdict:
    """Result of one silence check.

    Attributes:
        watermark: Highest activity timestamp seen for the item (epoch ms)
        silence_seconds: Time since the watermark
        silent: True if silence_seconds reached the timeout
    """

    watermark: float
    silence_seconds: float
    silent: bool


class SilenceDetector:
    """Periodic evaluator that turns activity timestamps into a completion signal."""

    def __init__(
        self,
        client: AutomationClient,
        timers: TimerService,
        check_interval_seconds: float = CHECK_INTERVAL_SECONDS,
        grace_period_seconds: float = GRACE_PERIOD_SECONDS,
    ):
        self._client = client
        self._timers = timers
        self.check_interval_seconds = check_interval_seconds
        self.grace_period_seconds = grace_period_seconds
        self._handle: Optional[TimerHandle] = None

    def start(self, on_tick: Callable[[], None]) -> None:
        """Begin periodic checks, replacing any running timer."""
        self.stop()
        self._handle = self._timers.call_every(
            self.check_interval_seconds, on_tick, name="silence-check"
        )

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def is_active(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def evaluate(
        self,
        sent_at: float,
        watermark: float,
        timeout_seconds: float,
    ) -> Optional[SilenceVerdict]:
        """Judge whether the current item has gone quiet.

        Args:
            sent_at: When the item was sent (epoch ms)
            watermark: Current activity watermark (epoch ms)
            timeout_seconds: Configured silence timeout

        Returns:
            None while inside the grace period, otherwise a SilenceVerdict
        """
        now = self._timers.now_ms()
        elapsed = (now - sent_at) / 1000
        if elapsed < self.grace_period_seconds:
            return None

        latest = self._sample().latest
        if latest > watermark:
            watermark = latest

        silence_seconds = (now - watermark) / 1000
        return SilenceVerdict(
            watermark=watermark,
            silence_seconds=silence_seconds,
            silent=silence_seconds >= timeout_seconds,
        )

    def _sample(self) -> ActivitySample:
        """Read activity, treating a failing transport as no new activity."""
        try:
            sample = self._client.get_stats()
        except Exception as exc:
            logger.warning(
                "Activity stats unavailable, assuming no new activity",
                extra={"context": {"error": str(exc)}},
            )
            return ActivitySample()
        return sample if sample is not None else ActivitySample()
