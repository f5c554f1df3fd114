"""
Canonical workflow types (``bench_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the lifecycle state machines.  Request, Contract,
Timesheet and Invoice workflows are all declared with Guard, Transition and
Workflow so that the transition table of each entity is data: keyed by
(current state, requested state) and annotated with the party roles allowed
to perform the move.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* Lookup is default-deny: a (state, requested, role) triple that is not
  declared is not allowed.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow executor does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``roles`` holds the PartyRole values (``client``, ``vendor``, ``system``)
    that may perform the move.
    """
    from_state: str
    to_state: str
    action: str
    roles: frozenset[str]
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state} has outgoing "
                    f"transition {t.action}"
                )

    def find(self, current: str, requested: str) -> Transition | None:
        """Return the transition from ``current`` to ``requested``, if declared."""
        for t in self.transitions:
            if t.from_state == current and t.to_state == requested:
                return t
        return None

    def find_by_action(self, current: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == current and t.action == action:
                return t
        return None

    def allows(self, current: str, requested: str, role: str) -> bool:
        """Pure transition-table check: (current, requested, role) -> allow/deny."""
        t = self.find(current, requested)
        return t is not None and role in t.roles

    def next_states(self, current: str, role: str | None = None) -> frozenset[str]:
        return frozenset(
            t.to_state
            for t in self.transitions
            if t.from_state == current and (role is None or role in t.roles)
        )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


@dataclass(frozen=True)
class TransitionResult:
    """Result of evaluating a workflow transition."""

    success: bool
    new_state: str | None = None
    action: str | None = None
    reason: str = ""
    role_denied: bool = False
