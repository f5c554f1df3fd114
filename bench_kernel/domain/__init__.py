"""Pure kernel domain value objects (no I/O)."""

from bench_kernel.domain.actors import ActingCompany, PartyRole, counterparty_of, resolve_role
from bench_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from bench_kernel.domain.notifications import Notification, NotificationOutbox, NotificationSink
from bench_kernel.domain.workflow import Guard, Transition, TransitionResult, Workflow

__all__ = [
    "ActingCompany",
    "Clock",
    "DeterministicClock",
    "Guard",
    "Notification",
    "NotificationOutbox",
    "NotificationSink",
    "PartyRole",
    "SystemClock",
    "Transition",
    "TransitionResult",
    "Workflow",
    "counterparty_of",
    "resolve_role",
]
