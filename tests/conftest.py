"""Shared pytest fixtures for Gravi Agent tests.

Fixtures:
    - timers: Manual-clock timer service
    - client: Scripted automation client
    - notifier: In-memory notifier
    - schedule: Default scheduler configuration
    - scheduler: Scheduler wired to the fakes above
    - mock_config: Test application configuration
"""

import os
from pathlib import Path
from typing import Generator

import pytest

from src.core.config import Config, SchedulerConfig, reset_config
from src.core.notifications import RecordingNotifier
from src.scheduler.scheduler import Scheduler
from tests.fakes import FakeAutomationClient, FakeTimerService


@pytest.fixture
def timers() -> FakeTimerService:
    return FakeTimerService()


@pytest.fixture
def client() -> FakeAutomationClient:
    return FakeAutomationClient()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def schedule() -> SchedulerConfig:
    """Scheduler configuration used unless a test overrides it."""
    return SchedulerConfig(
        prompts=("first", "second", "third"),
        silence_timeout_seconds=30,
        interval_minutes=1,
        interval_prompt="keep going",
    )


@pytest.fixture
def scheduler(
    client: FakeAutomationClient,
    timers: FakeTimerService,
    notifier: RecordingNotifier,
    schedule: SchedulerConfig,
) -> Generator[Scheduler, None, None]:
    """Scheduler over the fakes. Stopped after the test."""
    sched = Scheduler(client, config_loader=lambda: schedule, timers=timers, notifier=notifier)
    yield sched
    sched.stop()


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Test configuration with temp paths."""
    return Config(
        log_path=tmp_path / "logs",
        cdp_port=9222,
        poll_interval_ms=50,
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Path, None, None]:
    """Strip GRAVI_* variables and run from an empty directory."""
    for key in list(os.environ):
        if key.startswith("GRAVI_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield tmp_path
    reset_config()


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
