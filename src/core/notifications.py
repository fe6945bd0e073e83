"""User-facing notifications.

The scheduler reports empty queues, completions and abandoned prompts
through a Notifier. The host decides how to show them; by default they
go to the log.

Usage:
    from src.core.notifications import LogNotifier

    notifier = LogNotifier()
    notifier.warning("No prompts in the queue")
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from src.core.logging import get_logger

logger = get_logger("notifications")


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notifier(ABC):
    """Notification surface exposed by the host."""

    @abstractmethod
    def notify(self, level: NotificationLevel, message: str) -> None:
        """Deliver a message to the user."""
        pass

    def info(self, message: str) -> None:
        self.notify(NotificationLevel.INFO, message)

    def warning(self, message: str) -> None:
        self.notify(NotificationLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.notify(NotificationLevel.ERROR, message)


class LogNotifier(Notifier):
    """Writes notifications to the gravi.notifications logger."""

    def notify(self, level: NotificationLevel, message: str) -> None:
        if level is NotificationLevel.ERROR:
            logger.error(message)
        elif level is NotificationLevel.WARNING:
            logger.warning(message)
        else:
            logger.info(message)


@dataclass
class RecordingNotifier(Notifier):
    """Keeps every notification in memory, in order."""

    messages: list[tuple[NotificationLevel, str]] = field(default_factory=list)

    def notify(self, level: NotificationLevel, message: str) -> None:
        self.messages.append((level, message))

    def of_level(self, level: NotificationLevel) -> list[str]:
        """Messages delivered at one level."""
        return [m for lvl, m in self.messages if lvl is level]
