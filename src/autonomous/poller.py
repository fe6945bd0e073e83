"""Transport poller - keeps the automation client fresh.

Calls client.poll() on the configured interval in a background daemon
thread. Independent of the scheduler's own silence-check cadence.
"""

import threading
from typing import Any, Optional

from src.automation.client import AutomationClient
from src.core.logging import get_logger

logger = get_logger(__name__)


class TransportPoller:
    """Background poll loop for one automation client."""

    def __init__(self, client: AutomationClient, interval_ms: int = 1000, config: Any = None) -> None:
        self._client = client
        self._interval_seconds = max(interval_ms, 1) / 1000
        self._config = config
        self._running: bool = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.polls = 0

    def start(self) -> None:
        """Start the transport session and the poll thread."""
        if self._running:
            logger.warning("Poller already running")
            return

        self._running = True
        self._stop_event.clear()
        self._client.start(self._config)

        self._thread = threading.Thread(
            target=self._run_loop,
            name="gravi-poller",
            daemon=True,
        )
        self._thread.start()

        logger.info(
            "Polling started",
            extra={"context": {"interval_seconds": self._interval_seconds}},
        )

    def stop(self) -> None:
        """Stop the poll thread and end the transport session.

        Waits up to 10 seconds for the thread to finish.
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=10)
            if self._thread.is_alive():
                logger.warning("Poller thread did not stop within timeout")

        self._thread = None
        self._client.stop()
        logger.info("Polling stopped")

    def is_running(self) -> bool:
        return self._running

    def _run_loop(self) -> None:
        logger.debug("Poll loop started")

        while self._running:
            try:
                self._client.poll(self._config)
                self.polls += 1
            except Exception as exc:
                # A failed poll never stops the loop
                logger.error(
                    "Transport poll failed",
                    extra={"context": {"error": str(exc)}},
                    exc_info=True,
                )

            if self._stop_event.wait(timeout=self._interval_seconds):
                break

        logger.debug("Poll loop ended")
