"""Autonomous operations package.

The queue keeps moving while nobody is watching.

Modules:
    - poller: Background transport poll loop
    - agent: On/off controller, availability gate, one-off sends
"""
