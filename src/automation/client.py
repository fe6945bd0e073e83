"""Automation client contract.

The scheduler never talks to the editor directly. It goes through an
AutomationClient, which provides:
    - Availability check
    - Transport lifecycle (start / poll / stop)
    - Prompt delivery with a structured outcome
    - Best-effort activity timestamps

Send failures are values, not exceptions. get_stats() reports missing
signal as 0.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class SendResult:
    """Outcome of one prompt delivery attempt.

    Attributes:
        success: Whether the prompt reached the agent
        error: Failure description (None on success)
    """

    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "SendResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "SendResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class ActivitySample:
    """Latest observed UI activity, epoch milliseconds (0 = no signal).

    Attributes:
        last_activity: Last click seen in the agent UI
        last_dom_change: Last DOM mutation seen in the agent UI
    """

    last_activity: float = 0
    last_dom_change: float = 0

    @property
    def latest(self) -> float:
        """Most recent of the two signals."""
        return max(self.last_activity or 0, self.last_dom_change or 0)

    def merge(self, other: "ActivitySample") -> "ActivitySample":
        """Combine two samples keeping the newest value of each signal."""
        return ActivitySample(
            last_activity=max(self.last_activity or 0, other.last_activity or 0),
            last_dom_change=max(self.last_dom_change or 0, other.last_dom_change or 0),
        )


class AutomationClient(ABC):
    """Abstract base class for automation transports.

    Subclasses must implement every method; the scheduler relies on
    send_prompt() and get_stats(), the host on the rest.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the transport can be reached.

        Returns:
            True if prompts can be delivered right now. Errors mean False.
        """
        pass

    @abstractmethod
    def start(self, config: Any) -> None:
        """Begin a transport session."""
        pass

    @abstractmethod
    def poll(self, config: Any) -> None:
        """Refresh transport-side state. Called by the host on its own cadence."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """End the transport session."""
        pass

    @abstractmethod
    def send_prompt(self, text: str) -> SendResult:
        """Deliver a prompt to the agent.

        Args:
            text: Prompt text

        Returns:
            SendResult describing the outcome
        """
        pass

    @abstractmethod
    def get_stats(self) -> ActivitySample:
        """Return the latest activity timestamps.

        Returns:
            ActivitySample, zeros when nothing has been observed
        """
        pass
