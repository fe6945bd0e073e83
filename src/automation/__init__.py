"""Automation package - Delivering prompts and reading activity.

This package handles all communication with the controlled agent:
    - client: AutomationClient contract, SendResult, ActivitySample
    - cdp: Chrome DevTools Protocol implementation
"""

from src.automation.client import ActivitySample, AutomationClient, SendResult

__all__ = [
    "ActivitySample",
    "AutomationClient",
    "SendResult",
]
