"""Gravi agent - host-side controller.

Ties together the automation client, the transport poller and the
scheduler, and provides what the host surface needs:
    - on/off toggle gated on transport availability
    - queue / interval start that refuses a known-unavailable transport
    - one-off prompt send
    - configuration-change handling

The on/off flag lives only in memory.
"""

from typing import Callable, Optional, Sequence

from src.automation.client import AutomationClient
from src.autonomous.poller import TransportPoller
from src.core.config import Config, get_config, reset_config
from src.core.logging import get_logger
from src.core.notifications import LogNotifier, Notifier
from src.scheduler.scheduler import Scheduler

logger = get_logger(__name__)


class GraviAgent:
    """Controller for one automation session.

    Attributes:
        client: Automation transport
        scheduler: Queue and interval scheduler
    """

    def __init__(
        self,
        client: AutomationClient,
        scheduler: Scheduler,
        config: Optional[Config] = None,
        notifier: Optional[Notifier] = None,
        config_provider: Callable[[], Config] = get_config,
    ):
        self.client = client
        self.scheduler = scheduler
        self._config_provider = config_provider
        self._config = config or config_provider()
        self._notifier = notifier or LogNotifier()
        self._enabled = False
        self._poller = self._make_poller()

    def _make_poller(self) -> TransportPoller:
        return TransportPoller(self.client, interval_ms=self._config.poll_interval_ms)

    def is_enabled(self) -> bool:
        return self._enabled

    def _require_transport(self) -> bool:
        if self.client.is_available():
            return True
        logger.warning(
            "Automation transport unavailable",
            extra={"context": {"port": self._config.cdp_port}},
        )
        self._notifier.warning(
            f"Cannot reach the debugging port. Launch the editor with "
            f"--remote-debugging-port={self._config.cdp_port}."
        )
        return False

    def enable(self, start_schedule: bool = True) -> bool:
        """Switch the agent on.

        Args:
            start_schedule: Start the configured mode if scheduling is enabled

        Returns:
            True if the agent is on afterwards
        """
        if self._enabled:
            return True
        if not self._require_transport():
            return False

        self._enabled = True
        self._poller.start()
        logger.info("Gravi Agent: ON")

        if start_schedule and self.scheduler.config.enabled:
            self.scheduler.start_configured()
        return True

    def disable(self) -> None:
        """Switch the agent off, stopping all scheduling."""
        self.scheduler.stop()
        if not self._enabled:
            return
        self._enabled = False
        self._poller.stop()
        logger.info("Gravi Agent: OFF")

    def toggle(self) -> bool:
        """Flip the on/off state. Returns the new state."""
        if self._enabled:
            self.disable()
        else:
            self.enable()
        return self._enabled

    def start_queue(self, prompts: Optional[Sequence[str]] = None) -> bool:
        if not self._require_transport():
            return False
        return self.scheduler.start_queue(prompts)

    def start_interval(self) -> bool:
        if not self._require_transport():
            return False
        return self.scheduler.start_interval()

    def send_prompt(self, text: str) -> bool:
        """Send a single prompt outside any schedule."""
        if not text:
            return False
        result = self.client.send_prompt(text)
        if result.success:
            self._notifier.info("Prompt sent")
        else:
            self._notifier.error(f"Send failed: {result.error}")
        return result.success

    def on_config_changed(self) -> None:
        """Apply a configuration change.

        Restarts polling with the new settings when on; the scheduler
        picks up its snapshot for the next run.
        """
        logger.info("Configuration changed")
        reset_config()
        self._config = self._config_provider()
        if self._enabled:
            self._poller.stop()
            self._poller = self._make_poller()
            self._poller.start()
        else:
            self._poller = self._make_poller()
        self.scheduler.load_config()

    def shutdown(self) -> None:
        self.disable()
        logger.info("Gravi Agent stopped")
