"""Scheduler package - Running prompts against the agent.

Modules:
    - timers: Thread-backed timer service and cancellation handles
    - silence: Silence detector (completion heuristic)
    - retry: Bounded retry policy for queue sends
    - executor: Queue executor and its state machine
    - interval: Fixed-period interval repeater
    - scheduler: Facade used by the host
"""

from src.scheduler.executor import QueuePhase, QueueState
from src.scheduler.scheduler import Scheduler, SchedulerStatus

__all__ = [
    "QueuePhase",
    "QueueState",
    "Scheduler",
    "SchedulerStatus",
]
