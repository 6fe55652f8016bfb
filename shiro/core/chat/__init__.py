"""Chat responder package."""

from .responder import ResponderState, TurnCoalescingResponder
from .scheduler import CancellableTimer, LoopScheduler, Scheduler

__all__ = [
    "CancellableTimer",
    "LoopScheduler",
    "ResponderState",
    "Scheduler",
    "TurnCoalescingResponder",
]
