"""Queue executor - runs prompts one at a time.

States:
    IDLE -> RUNNING <-> PAUSED
    RUNNING -> COMPLETED (index ran past the end)
    any -> IDLE (stop)

The executor sends the current prompt, then waits for the silence
detector to declare it finished. Send failures go through the retry
policy; an item that exhausts its retries is abandoned and the queue
moves on.

Timer callbacks, send outcomes and user commands can interleave. All
state changes happen under one lock, and every in-flight send, retry
and silence check carries the generation it was started under. The
generation is bumped on start, advance, stop and resume; anything that
comes back with an older generation is dropped. The lock is never held
while a prompt is being sent.
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence

from src.automation.client import AutomationClient
from src.core.logging import get_logger, preview
from src.core.notifications import Notifier
from src.scheduler.retry import RetryDecision, RetryPolicy
from src.scheduler.silence import SilenceDetector
from src.scheduler.timers import TimerService

logger = get_logger(__name__)


class QueuePhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class QueueState:
    """Mutable queue state, owned by one QueueExecutor.

    Attributes:
        is_running: A run is in progress (paused or not)
        is_paused: Sends and advances are suspended
        queue_index: Position of the current item
        runtime_queue: Prompts snapshotted at start
        last_activity_watermark: Highest activity seen for the item (epoch ms)
        current_item_sent_at: When the current item was last sent (epoch ms)
        completed: The last run ran to the end
        generation: Bumped on every start, advance, stop and resume
    """

    is_running: bool = False
    is_paused: bool = False
    queue_index: int = 0
    runtime_queue: tuple[str, ...] = ()
    last_activity_watermark: Optional[float] = None
    current_item_sent_at: Optional[float] = None
    completed: bool = False
    generation: int = 0

    @property
    def phase(self) -> QueuePhase:
        if self.is_running:
            return QueuePhase.PAUSED if self.is_paused else QueuePhase.RUNNING
        return QueuePhase.COMPLETED if self.completed else QueuePhase.IDLE

    @property
    def current_prompt(self) -> Optional[str]:
        if 0 <= self.queue_index < len(self.runtime_queue):
            return self.runtime_queue[self.queue_index]
        return None


@dataclass(frozen=True)
class _SendJob:
    generation: int
    index: int
    prompt: str
    attempt: int


class QueueExecutor:
    """Drives a prompt queue through the automation client."""

    def __init__(
        self,
        client: AutomationClient,
        timers: TimerService,
        notifier: Notifier,
        retry_policy: Optional[RetryPolicy] = None,
        detector: Optional[SilenceDetector] = None,
    ):
        self._client = client
        self._timers = timers
        self._notifier = notifier
        self._retry = retry_policy or RetryPolicy()
        self._detector = detector or SilenceDetector(client, timers)
        self._state = QueueState()
        self._silence_timeout_seconds = 30.0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self, items: Sequence[str], silence_timeout_seconds: float) -> bool:
        """Start a new run over items.

        An empty list leaves the executor untouched and returns False.

        Args:
            items: Prompts to run, snapshotted now
            silence_timeout_seconds: Silence that ends an item, fixed for the run

        Returns:
            True if the run started
        """
        if not items:
            logger.warning("Queue is empty, nothing to run")
            self._notifier.warning("No prompts in the queue")
            return False

        with self._lock:
            state = self._state
            state.runtime_queue = tuple(items)
            state.queue_index = 0
            state.is_running = True
            state.is_paused = False
            state.completed = False
            state.generation += 1
            self._silence_timeout_seconds = silence_timeout_seconds

            logger.info(
                f"Queue started: {len(state.runtime_queue)} prompt(s)",
                extra={
                    "context": {
                        "total": len(state.runtime_queue),
                        "silence_timeout": silence_timeout_seconds,
                    }
                },
            )
            job = self._prepare_locked(attempt=0)
            self._detector.start(self._on_silence_tick)

        self._dispatch(job)
        return True

    def stop(self) -> None:
        """Abort the run. No completion notification is emitted."""
        with self._lock:
            state = self._state
            was_running = state.is_running
            state.is_running = False
            state.is_paused = False
            state.current_item_sent_at = None
            state.generation += 1
            self._detector.stop()

        if was_running:
            logger.info(
                "Queue stopped",
                extra={"context": {"index": state.queue_index, "total": len(state.runtime_queue)}},
            )

    def pause(self) -> None:
        """Suspend sending and advancing. Scheduled retries become no-ops."""
        with self._lock:
            if not self._state.is_running or self._state.is_paused:
                return
            self._state.is_paused = True
            logger.info("Queue paused", extra={"context": {"index": self._state.queue_index}})

    def resume(self) -> None:
        """Resume a paused run by re-sending the current item from scratch."""
        with self._lock:
            state = self._state
            if not state.is_running or not state.is_paused:
                return
            state.is_paused = False
            state.generation += 1
            logger.info("Queue resumed", extra={"context": {"index": state.queue_index}})
            job = self._prepare_locked(attempt=0)

        self._dispatch(job)

    def skip(self) -> None:
        """Abandon the current item and move to the next one."""
        with self._lock:
            state = self._state
            if not state.is_running:
                return
            logger.info(
                f"Skipping [{state.queue_index + 1}/{len(state.runtime_queue)}]",
                extra={"context": {"index": state.queue_index}},
            )
            job = self._advance_locked()

        self._dispatch(job)

    def snapshot(self) -> QueueState:
        """Return a copy of the current state."""
        with self._lock:
            return replace(self._state)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _prepare_locked(self, attempt: int) -> Optional[_SendJob]:
        """Stamp the current item as sent and build its send job.

        Returns None when paused, stopped, or past the end (which completes the run).
        """
        state = self._state
        if not state.is_running or state.is_paused:
            return None
        if state.queue_index >= len(state.runtime_queue):
            self._complete_locked()
            return None

        now = self._timers.now_ms()
        state.current_item_sent_at = now
        state.last_activity_watermark = now
        prompt = state.runtime_queue[state.queue_index]

        logger.info(
            f"Executing [{state.queue_index + 1}/{len(state.runtime_queue)}]: \"{preview(prompt)}\"",
            extra={"context": {"index": state.queue_index, "attempt": attempt + 1}},
        )
        return _SendJob(
            generation=state.generation,
            index=state.queue_index,
            prompt=prompt,
            attempt=attempt,
        )

    def _dispatch(self, job: Optional[_SendJob]) -> None:
        """Send a prepared job and act on its outcome.

        Runs without the lock. Exhausting retries advances the queue,
        which may produce the next job; that one is sent in turn.
        """
        while job is not None:
            result, decision = self._retry.attempt(self._client, job.prompt, job.attempt)

            with self._lock:
                if not self._is_current(job.generation):
                    logger.debug(
                        "Discarding outcome for an item that is no longer current",
                        extra={"context": {"index": job.index, "success": result.success}},
                    )
                    return

                if decision is RetryDecision.SENT:
                    return

                if decision is RetryDecision.RETRY:
                    self._schedule_retry(job)
                    return

                logger.warning(
                    f"Retry limit reached, abandoning [{job.index + 1}/{len(self._state.runtime_queue)}]",
                    extra={"context": {"index": job.index, "error": result.error}},
                )
                self._notifier.error(
                    f"Prompt {job.index + 1} failed after {self._retry.max_attempts} attempts: {result.error}"
                )
                job = self._advance_locked()

    def _schedule_retry(self, job: _SendJob) -> None:
        generation = job.generation
        next_attempt = job.attempt + 1

        def retry() -> None:
            with self._lock:
                if self._state.generation != generation:
                    return
                next_job = self._prepare_locked(attempt=next_attempt)
            self._dispatch(next_job)

        logger.info(
            f"Retrying in {self._retry.delay_seconds:g}s",
            extra={"context": {"index": job.index, "attempt": next_attempt + 1}},
        )
        self._timers.call_later(self._retry.delay_seconds, retry, name="send-retry")

    def _advance_locked(self) -> Optional[_SendJob]:
        state = self._state
        state.queue_index += 1
        state.generation += 1
        if state.queue_index >= len(state.runtime_queue):
            self._complete_locked()
            return None
        return self._prepare_locked(attempt=0)

    def _complete_locked(self) -> None:
        state = self._state
        if not state.is_running:
            return
        state.is_running = False
        state.is_paused = False
        state.completed = True
        state.current_item_sent_at = None
        self._detector.stop()

        total = len(state.runtime_queue)
        logger.info("All prompts completed", extra={"context": {"total": total}})
        self._notifier.info(f"{total} task(s) completed")

    def _is_current(self, generation: int) -> bool:
        state = self._state
        return state.is_running and not state.is_paused and state.generation == generation

    # ------------------------------------------------------------------
    # Silence detection
    # ------------------------------------------------------------------

    def _on_silence_tick(self) -> None:
        with self._lock:
            state = self._state
            if not state.is_running or state.is_paused or state.current_item_sent_at is None:
                return
            generation = state.generation
            sent_at = state.current_item_sent_at
            watermark = state.last_activity_watermark or sent_at
            timeout = self._silence_timeout_seconds

        verdict = self._detector.evaluate(sent_at, watermark, timeout)
        if verdict is None:
            return

        with self._lock:
            if not self._is_current(generation):
                return
            state = self._state
            state.last_activity_watermark = max(state.last_activity_watermark or 0, verdict.watermark)
            if not verdict.silent:
                return

            logger.info(
                f"Silence {round(verdict.silence_seconds)}s detected, moving to next prompt",
                extra={
                    "context": {
                        "index": state.queue_index,
                        "silence_seconds": round(verdict.silence_seconds, 1),
                    }
                },
            )
            job = self._advance_locked()

        self._dispatch(job)
