"""Tests for the queue executor (src/scheduler/executor.py).

Covers:
    - start: immediate first send, snapshotting, empty queue warning
    - silence advance: grace period, timeout, monotonic watermark
    - retry: bounded attempts, fixed spacing, abandonment
    - pause / resume / skip / stop transitions
    - stale callbacks and stale send outcomes are ignored
    - completion fires exactly once per run

Timing: silence checks run every 5s, nothing is judged in the first 10s
after a send, retries are 3s apart.
"""

from src.automation.client import ActivitySample
from src.core.config import SchedulerConfig
from src.core.notifications import NotificationLevel
from src.scheduler.executor import QueuePhase
from src.scheduler.scheduler import Scheduler
from tests.fakes import START_MS


def _make(client, timers, notifier, **overrides) -> Scheduler:
    cfg = SchedulerConfig(**overrides)
    return Scheduler(client, config_loader=lambda: cfg, timers=timers, notifier=notifier)


# ===========================================================================
# start_queue
# ===========================================================================


class TestStartQueue:
    """Starting a run."""

    def test_first_item_sent_immediately(self, scheduler, client):
        """start_queue sends item 0 before returning."""
        assert scheduler.start_queue() is True

        assert client.sent == ["first"]
        status = scheduler.get_status()
        assert status.queue_index == 0
        assert status.is_running is True
        assert status.current_prompt == "first"

    def test_explicit_prompts_override_config(self, scheduler, client):
        """Prompts passed in win over the configured ones."""
        scheduler.start_queue(["x", "y"])

        assert client.sent == ["x"]
        assert scheduler.get_status().prompts == ("x", "y")

    def test_empty_list_warns_and_changes_nothing(self, scheduler, client, notifier):
        """An explicit empty list is a warning, not a run."""
        assert scheduler.start_queue([]) is False

        assert client.sent == []
        status = scheduler.get_status()
        assert status.is_running is False
        assert status.queue_length == 0
        assert len(notifier.of_level(NotificationLevel.WARNING)) == 1

    def test_empty_configured_queue_warns(self, client, timers, notifier):
        """No prompts configured and none passed."""
        sched = _make(client, timers, notifier)

        assert sched.start_queue() is False
        assert client.sent == []
        assert notifier.of_level(NotificationLevel.WARNING)

    def test_silence_timer_started(self, scheduler, timers):
        """A run owns exactly one silence-check timer."""
        scheduler.start_queue()
        assert timers.pending("silence-check") == 1

    def test_runtime_queue_independent_of_reload(self, client, timers, notifier):
        """Reloading configuration does not touch a run in progress."""
        holder = {"cfg": SchedulerConfig(prompts=("a", "b"))}
        sched = Scheduler(client, config_loader=lambda: holder["cfg"], timers=timers, notifier=notifier)
        sched.start_queue()

        holder["cfg"] = SchedulerConfig(prompts=("z",))
        sched.load_config()

        status = sched.get_status()
        assert status.prompts == ("a", "b")
        assert status.is_running is True
        assert sched.config.prompts == ("z",)

    def test_restart_resets_index(self, scheduler, client):
        """Starting again begins from item 0."""
        scheduler.start_queue()
        scheduler.skip_prompt()
        scheduler.start_queue()

        assert scheduler.get_status().queue_index == 0
        assert client.sent == ["first", "second", "first"]


# ===========================================================================
# Silence-driven advance
# ===========================================================================


class TestSilenceAdvance:
    """Advancing when the agent goes quiet."""

    def test_two_item_scenario(self, client, timers, notifier):
        """A, B with a 5s timeout: advance after the grace period, then complete."""
        sched = _make(client, timers, notifier, prompts=("A", "B"), silence_timeout_seconds=5)
        sched.start_queue(["A", "B"])
        assert client.sent == ["A"]

        timers.advance(12)
        assert client.sent == ["A", "B"]
        assert sched.get_status().queue_index == 1

        timers.advance(12)
        status = sched.get_status()
        assert status.is_running is False
        assert status.queue_index == 2
        infos = notifier.of_level(NotificationLevel.INFO)
        assert len(infos) == 1
        assert "2" in infos[0]

    def test_not_before_grace_period(self, client, timers, notifier):
        """Even a tiny timeout waits out the 10s grace period."""
        sched = _make(client, timers, notifier, prompts=("A", "B"), silence_timeout_seconds=1)
        sched.start_queue()

        timers.advance(9.9)
        assert sched.get_status().queue_index == 0

        timers.advance(0.1)
        assert sched.get_status().queue_index == 1

    def test_no_activity_advances_at_timeout(self, scheduler, client, timers):
        """With zero activity and a 30s timeout, advance happens at 30s."""
        scheduler.start_queue()

        timers.advance(29.9)
        assert scheduler.get_status().queue_index == 0

        timers.advance(0.1)
        assert scheduler.get_status().queue_index == 1
        assert client.sent == ["first", "second"]

    def test_activity_pushes_silence_forward(self, scheduler, client, timers):
        """DOM activity at t=20 moves the advance to t=50."""
        scheduler.start_queue()
        timers.advance(20)
        client.stats = ActivitySample(last_dom_change=timers.now_ms())

        timers.advance(29.9)
        assert scheduler.get_status().queue_index == 0

        timers.advance(0.1)
        assert scheduler.get_status().queue_index == 1

    def test_click_activity_counts(self, scheduler, client, timers):
        """Click timestamps are considered as well as DOM changes."""
        scheduler.start_queue()
        timers.advance(20)
        client.stats = ActivitySample(last_activity=timers.now_ms())

        timers.advance(25)
        assert scheduler.get_status().queue_index == 0

    def test_watermark_never_decreases(self, scheduler, client, timers):
        """A later, smaller sample does not lower the watermark."""
        scheduler.start_queue()
        timers.advance(20)
        seen = timers.now_ms()
        client.stats = ActivitySample(last_dom_change=seen)
        timers.advance(5)
        client.stats = ActivitySample(last_activity=START_MS + 1000, last_dom_change=0)

        timers.advance(10)
        assert scheduler.queue.snapshot().last_activity_watermark == seen

        timers.advance(14.9)
        assert scheduler.get_status().queue_index == 0

    def test_watermark_reset_for_next_item(self, client, timers, notifier):
        """Each item starts its own silence clock."""
        sched = _make(client, timers, notifier, prompts=("A", "B"), silence_timeout_seconds=5)
        sched.start_queue()
        timers.advance(10)

        state = sched.queue.snapshot()
        assert state.queue_index == 1
        assert state.current_item_sent_at == timers.now_ms()
        assert state.last_activity_watermark == timers.now_ms()

    def test_stats_failure_treated_as_no_activity(self, scheduler, client, timers):
        """get_stats() raising neither crashes nor delays the advance."""
        client.stats_error = RuntimeError("transport gone")
        scheduler.start_queue()

        timers.advance(30)
        assert scheduler.get_status().queue_index == 1


# ===========================================================================
# Retry policy in the queue
# ===========================================================================


class TestRetry:
    """Bounded retries on send failure."""

    def test_three_failures_abandon_sole_item(self, client, timers, notifier):
        """Sole item fails at attempts 0, 1, 2 and the queue completes."""
        sched = _make(client, timers, notifier, prompts=("only",))
        client.fail_next(3)
        sched.start_queue()
        assert client.sent == ["only"]

        timers.advance(3)
        assert client.sent == ["only", "only"]

        timers.advance(3)
        assert client.sent == ["only", "only", "only"]

        status = sched.get_status()
        assert status.is_running is False
        assert status.queue_index == 1
        assert len(notifier.of_level(NotificationLevel.ERROR)) == 1
        assert notifier.of_level(NotificationLevel.INFO) == ["1 task(s) completed"]

    def test_never_more_than_three_attempts(self, scheduler, client, timers):
        """Item k is abandoned after 3 attempts and k+1 is sent."""
        client.fail_next(3)
        scheduler.start_queue()
        timers.advance(6)

        assert client.sent.count("first") == 3
        assert client.sent[-1] == "second"
        assert scheduler.get_status().queue_index == 1

        timers.advance(60)
        assert client.sent.count("first") == 3

    def test_retry_spacing_is_three_seconds(self, scheduler, client, timers):
        """The follow-up attempt fires 3s later, not before."""
        client.fail_next(1)
        scheduler.start_queue()

        timers.advance(2.9)
        assert len(client.sent) == 1

        timers.advance(0.1)
        assert client.sent == ["first", "first"]

    def test_success_on_retry_stays_in_flight(self, scheduler, client, timers, notifier):
        """A successful retry leaves completion to the silence detector."""
        client.fail_next(1)
        scheduler.start_queue()
        timers.advance(3)

        assert scheduler.get_status().queue_index == 0
        assert notifier.of_level(NotificationLevel.ERROR) == []
        assert timers.pending("send-retry") == 0

    def test_retry_resets_silence_clock(self, scheduler, client, timers):
        """A retried send restarts the grace period."""
        client.fail_next(1)
        scheduler.start_queue()
        timers.advance(3)

        assert scheduler.queue.snapshot().current_item_sent_at == START_MS + 3000

    def test_retry_after_stop_is_inert(self, scheduler, client, timers):
        """A retry scheduled before stop never sends."""
        client.fail_next(1)
        scheduler.start_queue()
        scheduler.stop_queue()

        timers.advance(10)
        assert client.sent == ["first"]

    def test_retry_while_paused_is_inert(self, scheduler, client, timers):
        """A retry firing while paused neither sends nor advances."""
        client.fail_next(1)
        scheduler.start_queue()
        scheduler.pause_queue()

        timers.advance(3)
        assert client.sent == ["first"]
        assert scheduler.get_status().queue_index == 0

    def test_retry_from_before_resume_is_inert(self, scheduler, client, timers):
        """Resume sends afresh; the earlier retry does not send a third copy."""
        client.fail_next(1)
        scheduler.start_queue()
        scheduler.pause_queue()
        scheduler.resume_queue()
        assert client.sent == ["first", "first"]

        timers.advance(3)
        assert client.sent == ["first", "first"]

    def test_raising_client_counts_as_failure(self, scheduler, client, timers):
        """An exception from send_prompt is retried like a failed outcome."""
        calls = {"n": 0}

        def explode(text):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConnectionError("socket closed")

        client.on_send = explode
        scheduler.start_queue()
        timers.advance(3)

        assert client.sent == ["first", "first"]


# ===========================================================================
# pause / resume
# ===========================================================================


class TestPauseResume:
    """Suspending and resuming a run."""

    def test_paused_queue_does_not_advance(self, scheduler, client, timers):
        """No silence advance while paused."""
        scheduler.start_queue()
        scheduler.pause_queue()

        timers.advance(120)
        assert scheduler.get_status().queue_index == 0
        assert client.sent == ["first"]

    def test_pause_is_idempotent(self, scheduler):
        """Pausing twice equals pausing once."""
        scheduler.start_queue()
        scheduler.pause_queue()
        scheduler.pause_queue()

        status = scheduler.get_status()
        assert status.is_paused is True
        assert status.is_running is True
        assert scheduler.queue.snapshot().phase is QueuePhase.PAUSED

    def test_pause_when_idle_is_noop(self, scheduler):
        """Paused implies running."""
        scheduler.pause_queue()
        status = scheduler.get_status()
        assert status.is_paused is False
        assert status.is_running is False

    def test_resume_resends_current_item(self, scheduler, client, timers):
        """Resume re-executes the current item with a fresh timestamp."""
        scheduler.start_queue()
        timers.advance(6)
        scheduler.pause_queue()
        scheduler.resume_queue()

        assert client.sent == ["first", "first"]
        assert scheduler.queue.snapshot().current_item_sent_at == timers.now_ms()

    def test_resume_when_running_is_noop(self, scheduler, client):
        """Resume without pause sends nothing."""
        scheduler.start_queue()
        scheduler.resume_queue()
        assert client.sent == ["first"]

    def test_resume_restarts_grace_and_silence(self, scheduler, timers):
        """After resume at t=8, the 30s timeout is measured from t=8."""
        scheduler.start_queue()
        timers.advance(8)
        scheduler.pause_queue()
        scheduler.resume_queue()

        timers.advance(27)
        assert scheduler.get_status().queue_index == 0

        timers.advance(5)
        assert scheduler.get_status().queue_index == 1


# ===========================================================================
# skip
# ===========================================================================


class TestSkip:
    """Skipping the current item."""

    def test_skip_sends_next(self, scheduler, client):
        scheduler.start_queue()
        scheduler.skip_prompt()

        assert client.sent == ["first", "second"]
        assert scheduler.get_status().current_prompt == "second"

    def test_skip_past_end_completes(self, scheduler, notifier):
        """Skipping every item completes the run once."""
        scheduler.start_queue()
        for _ in range(3):
            scheduler.skip_prompt()

        status = scheduler.get_status()
        assert status.is_running is False
        assert status.queue_index == status.queue_length == 3
        assert notifier.of_level(NotificationLevel.INFO) == ["3 task(s) completed"]

    def test_skip_when_idle_is_noop(self, scheduler, client):
        scheduler.skip_prompt()
        assert client.sent == []
        assert scheduler.get_status().queue_index == 0

    def test_skip_while_paused_advances_without_sending(self, scheduler, client):
        """Paused skip moves the index; resume sends the new item."""
        scheduler.start_queue()
        scheduler.pause_queue()
        scheduler.skip_prompt()

        assert scheduler.get_status().queue_index == 1
        assert client.sent == ["first"]

        scheduler.resume_queue()
        assert client.sent == ["first", "second"]


# ===========================================================================
# stop and completion
# ===========================================================================


class TestStopAndCompletion:
    """Abrupt stop versus natural completion."""

    def test_stop_emits_no_completion(self, scheduler, notifier, timers):
        scheduler.start_queue()
        scheduler.stop_queue()

        status = scheduler.get_status()
        assert status.is_running is False
        assert status.is_paused is False
        assert notifier.of_level(NotificationLevel.INFO) == []
        assert timers.pending("silence-check") == 0
        assert scheduler.queue.snapshot().phase is QueuePhase.IDLE

    def test_stop_while_paused(self, scheduler):
        scheduler.start_queue()
        scheduler.pause_queue()
        scheduler.stop_queue()

        status = scheduler.get_status()
        assert status.is_running is False
        assert status.is_paused is False

    def test_nothing_happens_after_stop(self, scheduler, client, timers):
        scheduler.start_queue()
        scheduler.stop_queue()

        timers.advance(300)
        assert client.sent == ["first"]

    def test_completion_fires_once(self, client, timers, notifier):
        """Completion notification is emitted exactly once per run."""
        sched = _make(client, timers, notifier, prompts=("A", "B"), silence_timeout_seconds=5)
        sched.start_queue()
        timers.advance(300)

        assert notifier.of_level(NotificationLevel.INFO) == ["2 task(s) completed"]
        assert sched.queue.snapshot().phase is QueuePhase.COMPLETED
        assert timers.pending("silence-check") == 0

    def test_index_equals_length_only_when_complete(self, client, timers, notifier):
        sched = _make(client, timers, notifier, prompts=("A", "B"), silence_timeout_seconds=5)
        sched.start_queue()
        timers.advance(10)

        status = sched.get_status()
        assert status.queue_index < status.queue_length
        assert status.is_running is True

        timers.advance(10)
        status = sched.get_status()
        assert status.queue_index == status.queue_length
        assert status.is_running is False

    def test_send_outcome_after_stop_is_discarded(self, scheduler, client, timers, notifier):
        """A failure that returns after stop schedules no retry."""
        client.on_send = lambda text: scheduler.stop_queue()
        client.fail_next(1)
        scheduler.start_queue()

        assert timers.pending("send-retry") == 0
        assert notifier.of_level(NotificationLevel.ERROR) == []
        timers.advance(10)
        assert client.sent == ["first"]
