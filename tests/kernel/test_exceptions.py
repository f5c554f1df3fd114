"""
Tests for the typed exception hierarchy.

Every error carries a machine-readable code and a short message; the
hierarchy lets callers catch whole families.
"""

import pytest

from bench_kernel.exceptions import (
    AlreadyProcessedError,
    AlreadyRatedError,
    BenchKernelError,
    DuplicateTimesheetError,
    EngagementNotActiveError,
    ExternalServiceFailureError,
    InvalidTransitionError,
    NotFoundError,
    OptimisticLockError,
    SelfEngagementError,
    TimesheetAlreadyInvoicedError,
    TransitionNotPermittedError,
    UnauthorizedError,
    ValidationFailedError,
)


@pytest.mark.parametrize(
    "error, code, family",
    [
        (UnauthorizedError(), "UNAUTHORIZED", BenchKernelError),
        (NotFoundError("Request", "r1"), "NOT_FOUND", BenchKernelError),
        (
            InvalidTransitionError("Request", "r1", "PENDING", "COMPLETED"),
            "INVALID_TRANSITION",
            BenchKernelError,
        ),
        (
            TransitionNotPermittedError("Request", "r1", "PENDING", "CANCELLED", "vendor"),
            "TRANSITION_NOT_PERMITTED",
            InvalidTransitionError,
        ),
        (
            EngagementNotActiveError("c1", "DRAFT", "ACCEPTED"),
            "ENGAGEMENT_NOT_ACTIVE",
            InvalidTransitionError,
        ),
        (SelfEngagementError("l1"), "SELF_ENGAGEMENT", ValidationFailedError),
        (
            DuplicateTimesheetError("c1", "2024-03-11"),
            "DUPLICATE_TIMESHEET",
            ValidationFailedError,
        ),
        (
            TimesheetAlreadyInvoicedError("t1", "INV-2024-00001"),
            "TIMESHEET_ALREADY_INVOICED",
            AlreadyProcessedError,
        ),
        (AlreadyRatedError("r1", "c1"), "ALREADY_RATED", AlreadyProcessedError),
        (
            ExternalServiceFailureError("payment_provider", "timeout"),
            "EXTERNAL_SERVICE_FAILURE",
            BenchKernelError,
        ),
        (OptimisticLockError("Contract", "c1"), "OPTIMISTIC_LOCK_CONFLICT", BenchKernelError),
    ],
)
def test_codes_and_families(error, code, family):
    assert error.code == code
    assert isinstance(error, family)
    assert str(error)


def test_not_found_message_does_not_leak_id():
    error = NotFoundError("Request", "5f1c")
    assert str(error) == "Request not found"
    assert error.entity_id == "5f1c"


def test_invalid_transition_default_message():
    error = InvalidTransitionError("Timesheet", "t1", "APPROVED", "REJECTED")
    assert str(error) == "Invalid status transition from APPROVED to REJECTED"


def test_transition_not_permitted_names_role():
    error = TransitionNotPermittedError("Request", "r1", "PENDING", "CANCELLED", "vendor")
    assert error.role == "vendor"
    assert "vendor" in str(error)


def test_timesheet_already_invoiced_names_invoice():
    error = TimesheetAlreadyInvoicedError("t1", "INV-2024-00007")
    assert "INV-2024-00007" in str(error)
    assert error.status == "INVOICED"
