"""Gravi Agent Source Package.

Runs a list of prompts against an AI agent panel, one at a time,
moving on when the panel goes quiet.

Layers:
    - core: Configuration, logging, exceptions, notifications
    - automation: Transport to the agent (Chrome DevTools Protocol)
    - scheduler: Queue executor, silence detection, retry, interval mode
    - autonomous: Host runtime (poll loop, on/off controller)
"""

__version__ = "0.1.0"
