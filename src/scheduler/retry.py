"""Retry policy for queue sends.

Up to MAX_RETRIES total attempts per item (attempt indices 0..2), a fixed
RETRY_DELAY_SECONDS between them. No exponential backoff, no jitter.
The policy only decides; the queue executor schedules the follow-up and
re-checks that the item is still current when it fires.
"""

from enum import Enum

from src.automation.client import AutomationClient, SendResult
from src.core.logging import get_logger

logger = get_logger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 3.0


class RetryDecision(str, Enum):
    SENT = "sent"
    RETRY = "retry"
    EXHAUSTED = "exhausted"


class RetryPolicy:
    """Bounded-attempt wrapper around a single send.

    Attributes:
        max_attempts: Total attempts allowed per item
        delay_seconds: Fixed delay before the next attempt
    """

    def __init__(self, max_attempts: int = MAX_RETRIES, delay_seconds: float = RETRY_DELAY_SECONDS):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds

    def decide(self, result: SendResult, attempt: int) -> RetryDecision:
        """Classify a send outcome.

        Args:
            result: Outcome of attempt number `attempt`
            attempt: Zero-based attempt index

        Returns:
            SENT on success, RETRY while budget remains, EXHAUSTED otherwise
        """
        if result.success:
            return RetryDecision.SENT
        if attempt < self.max_attempts - 1:
            return RetryDecision.RETRY
        return RetryDecision.EXHAUSTED

    def attempt(self, client: AutomationClient, prompt: str, attempt: int) -> tuple[SendResult, RetryDecision]:
        """Send once and classify the outcome.

        A client that raises instead of returning a SendResult is treated
        as a failed attempt.

        Returns:
            (SendResult, RetryDecision)
        """
        try:
            result = client.send_prompt(prompt)
        except Exception as exc:
            logger.warning(
                "Send raised instead of reporting failure",
                extra={"context": {"attempt": attempt + 1, "error": str(exc)}},
                exc_info=True,
            )
            result = SendResult.failed(str(exc))

        if not result.success:
            logger.warning(
                f"Send failed ({attempt + 1}/{self.max_attempts}): {result.error}",
                extra={"context": {"attempt": attempt + 1, "max_attempts": self.max_attempts}},
            )

        return result, self.decide(result, attempt)
