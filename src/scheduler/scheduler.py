"""Scheduler facade.

Composes the queue executor, the interval repeater and the scheduler
configuration, and exposes the commands the host calls.

Usage:
    from src.automation.cdp import CDPClient
    from src.scheduler import Scheduler

    scheduler = Scheduler(CDPClient())
    scheduler.start_queue(["Write the tests", "Fix the failures"])
    print(scheduler.get_status())
    scheduler.stop()
"""

from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional, Sequence

from src.automation.client import AutomationClient
from src.core.config import ScheduleMode, SchedulerConfig, load_scheduler_config
from src.core.exceptions import ConfigurationError, SchedulerError
from src.core.logging import get_logger
from src.core.notifications import LogNotifier, Notifier
from src.scheduler.executor import QueueExecutor
from src.scheduler.interval import IntervalRepeater
from src.scheduler.retry import RetryPolicy
from src.scheduler.silence import SilenceDetector
from src.scheduler.timers import ThreadTimerService, TimerService

logger = get_logger(__name__)


@dataclass(frozen=True)
class SchedulerStatus:
    """Read-only projection of scheduler state."""

    is_running: bool
    is_paused: bool
    mode: ScheduleMode
    queue_index: int
    queue_length: int
    prompts: tuple[str, ...]
    current_prompt: Optional[str]
    interval_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["prompts"] = list(self.prompts)
        return data


class Scheduler:
    """Queue and interval scheduling against one automation client.

    Attributes:
        queue: The queue executor
        interval: The interval repeater
    """

    def __init__(
        self,
        client: AutomationClient,
        config_loader: Callable[[], SchedulerConfig] = load_scheduler_config,
        timers: Optional[TimerService] = None,
        notifier: Optional[Notifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
        detector: Optional[SilenceDetector] = None,
    ):
        self._client = client
        self._config_loader = config_loader
        self._timers = timers or ThreadTimerService()
        self._notifier = notifier or LogNotifier()
        self._config = SchedulerConfig()

        self.queue = QueueExecutor(
            client,
            self._timers,
            self._notifier,
            retry_policy=retry_policy,
            detector=detector or SilenceDetector(client, self._timers),
        )
        self.interval = IntervalRepeater(client, self._timers)
        self.load_config()

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    def load_config(self) -> SchedulerConfig:
        """Reload the configuration snapshot.

        Takes effect on the next start_queue()/start_interval(); a run in
        progress keeps its own prompts and timeout. A failing reload keeps
        the previous snapshot.

        Returns:
            The active snapshot
        """
        try:
            config = self._config_loader()
        except ConfigurationError as e:
            logger.error(
                f"Scheduler configuration not reloaded: {e}",
                extra={"context": {"error": str(e)}},
            )
            self._notifier.error(f"Invalid scheduler settings: {e}")
            return self._config

        self._config = config
        logger.info(
            f"Configuration loaded: mode={config.mode.value}, prompts={len(config.prompts)}",
            extra={
                "context": {
                    "mode": config.mode.value,
                    "prompts": len(config.prompts),
                    "silence_timeout": config.silence_timeout_seconds,
                    "interval_minutes": config.interval_minutes,
                }
            },
        )
        return config

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def start_queue(self, prompts: Optional[Sequence[str]] = None) -> bool:
        """Start the queue with prompts, or the configured prompts when None.

        Returns:
            True if the run started (False for an empty list)

        Raises:
            SchedulerError: If prompts is a bare string or contains a non-string item
        """
        if isinstance(prompts, str):
            raise SchedulerError("Queue prompts must be a list of strings, not a single string")
        items = list(prompts) if prompts is not None else list(self._config.prompts)
        if not all(isinstance(item, str) for item in items):
            raise SchedulerError("Queue prompts must be strings")
        return self.queue.start(items, self._config.silence_timeout_seconds)

    def stop_queue(self) -> None:
        self.queue.stop()

    def pause_queue(self) -> None:
        self.queue.pause()

    def resume_queue(self) -> None:
        self.queue.resume()

    def skip_prompt(self) -> None:
        self.queue.skip()

    # ------------------------------------------------------------------
    # Interval
    # ------------------------------------------------------------------

    def start_interval(self) -> bool:
        return self.interval.start(self._config)

    def stop_interval(self) -> None:
        self.interval.stop()

    def start_configured(self) -> bool:
        """Start whichever mode the configuration selects."""
        if self._config.mode is ScheduleMode.INTERVAL:
            return self.start_interval()
        return self.start_queue()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Full shutdown: stop the queue and the interval."""
        self.stop_queue()
        self.stop_interval()

    def get_status(self) -> SchedulerStatus:
        state = self.queue.snapshot()
        return SchedulerStatus(
            is_running=state.is_running,
            is_paused=state.is_paused,
            mode=self._config.mode,
            queue_index=state.queue_index,
            queue_length=len(state.runtime_queue),
            prompts=state.runtime_queue,
            current_prompt=state.current_prompt,
            interval_active=self.interval.is_active(),
        )
