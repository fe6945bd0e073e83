"""Gravi Agent Test Suite.

Test organization mirrors src/ structure:
    tests/
    ├── conftest.py          # Shared fixtures
    ├── fakes.py             # Manual-clock timers, scripted client
    ├── test_core/           # Config, logging, exceptions, notifications
    ├── test_automation/     # CDP transport
    ├── test_scheduler/      # Queue, silence, retry, interval, facade
    └── test_autonomous/     # Poller and agent controller

Markers:
    - @pytest.mark.slow: Tests taking > 1 second
"""
