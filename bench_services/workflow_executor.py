"""
Status changes checked against a workflow's transition table.

A move is allowed when the (current, requested) pair is declared, the
acting role is listed on it, and its guard passes.  Everything else is
refused: undeclared pairs, unlisted roles, guards with no evaluator and
guards that blow up on their context.

Every evaluation logs one ``workflow_transition`` record
(``trace_type=WORKFLOW_TRANSITION``), INFO when allowed and WARNING when
refused.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any
from uuid import UUID

from bench_kernel.domain.workflow import Guard, Transition, TransitionResult, Workflow
from bench_kernel.exceptions import InvalidTransitionError, TransitionNotPermittedError
from bench_kernel.logging_config import get_logger

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_ROLE_DENIED = "role_denied"
OUTCOME_GUARD_FAILED = "guard_failed"

_ALLOWED = "transition allowed"

GuardFn = Callable[[Any], bool]


def _value(context: Any, key: str, default: Any = None) -> Any:
    # Services pass ORM rows; tests pass dicts.
    if isinstance(context, Mapping):
        return context.get(key, default)
    return getattr(context, key, default)


def _offer_terms_complete(context: Any) -> bool:
    rate = _value(context, "offered_rate")
    start = _value(context, "offered_start_date")
    end = _value(context, "offered_end_date")
    if None in (rate, start, end):
        return False
    return rate > 0 and start <= end


def _both_parties_agreed(context: Any) -> bool:
    return all(
        _value(context, marker) is not None
        for marker in ("client_agreed_at", "vendor_agreed_at")
    )


LIFECYCLE_GUARDS: dict[str, GuardFn] = {
    "offer_terms_complete": _offer_terms_complete,
    "both_parties_agreed": _both_parties_agreed,
}


class GuardExecutor:
    """Maps guard names to evaluators; a guard it cannot evaluate fails."""

    def __init__(self, evaluators: Mapping[str, GuardFn] | None = None) -> None:
        self._evaluators: dict[str, GuardFn] = dict(evaluators or {})

    def register(self, guard_name: str, evaluator: GuardFn) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        evaluator = self._evaluators.get(guard.name)
        if evaluator is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        try:
            return bool(evaluator(context))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(
                "guard_evaluation_error",
                extra={"guard_name": guard.name, "error": str(e)},
            )
            return False


def default_guard_executor() -> GuardExecutor:
    return GuardExecutor(LIFECYCLE_GUARDS)


class WorkflowExecutor:
    """Role- and guard-checked transitions for the lifecycle workflows."""

    def __init__(self, guard_executor: GuardExecutor | None = None) -> None:
        self._guards = guard_executor or default_guard_executor()

    def _decide(
        self,
        workflow: Workflow,
        current_state: str,
        requested_state: str,
        role: str,
        context: Any,
    ) -> tuple[str, TransitionResult]:
        transition = workflow.find(current_state, requested_state)
        if transition is None:
            reason = f"Invalid status transition from {current_state} to {requested_state}"
            return OUTCOME_NO_TRANSITION, TransitionResult(success=False, reason=reason)

        if role not in transition.roles:
            return OUTCOME_ROLE_DENIED, TransitionResult(
                success=False,
                action=transition.action,
                reason=f"Role '{role}' may not perform '{transition.action}'",
                role_denied=True,
            )

        guard = transition.guard
        if guard is not None and not self._guards.evaluate(guard, context):
            return OUTCOME_GUARD_FAILED, TransitionResult(
                success=False,
                action=transition.action,
                reason=f"Guard not satisfied: {guard.name}",
            )

        return OUTCOME_SUCCESS, TransitionResult(
            success=True,
            new_state=transition.to_state,
            action=transition.action,
            reason=_ALLOWED,
        )

    def evaluate(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID | str,
        current_state: str,
        requested_state: str,
        role: str,
        context: Any = None,
    ) -> TransitionResult:
        """Decide a move without raising, and log the decision."""
        started = time.monotonic()
        current_state, requested_state, role = str(current_state), str(requested_state), str(role)

        outcome, result = self._decide(workflow, current_state, requested_state, role, context)

        log = logger.info if outcome == OUTCOME_SUCCESS else logger.warning
        log(
            "workflow_transition",
            extra={
                "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
                "workflow": workflow.name,
                "action": result.action,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "from_state": current_state,
                "to_state": requested_state,
                "role": role,
                "outcome": outcome,
                "reason": result.reason,
                "duration_ms": round((time.monotonic() - started) * 1000, 3),
            },
        )
        return result

    def require_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID | str,
        current_state: str,
        requested_state: str,
        role: str,
        context: Any = None,
    ) -> Transition:
        """
        Return the declared transition, or raise.

        Raises:
            TransitionNotPermittedError: the move exists but not for ``role``.
            InvalidTransitionError: no such move, or its guard failed.
        """
        result = self.evaluate(
            workflow, entity_type, entity_id, current_state, requested_state, role, context
        )
        if result.role_denied:
            raise TransitionNotPermittedError(
                entity_type, str(entity_id), str(current_state), str(requested_state), str(role)
            )
        if not result.success:
            raise InvalidTransitionError(
                entity_type,
                str(entity_id),
                str(current_state),
                str(requested_state),
                reason=result.reason,
            )
        transition = workflow.find(str(current_state), str(requested_state))
        assert transition is not None
        return transition
