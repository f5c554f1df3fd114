"""
Typed Exception Hierarchy for the engagement lifecycle.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the lifecycle (an HTTP layer, a webhook consumer, a test) must be
able to react to a failure without parsing its message:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.approve(actor, timesheet_id)
    except AlreadyProcessedError as e:
        api_response(code=e.code, status=e.status)

The message of every exception is short and human readable; it is what the
operation boundary returns to the caller alongside the code.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BenchKernelError (base)
    |
    +-- UnauthorizedError                 caller identity could not be resolved
    |
    +-- NotFoundError                     entity missing OR caller not a party
    |
    +-- InvalidTransitionError            status does not permit the move
    |   +-- TransitionNotPermittedError   move exists, caller's role may not do it
    |   +-- EngagementNotActiveError      engagement not in a working state
    |
    +-- ValidationFailedError             input rejected
    |   +-- SelfEngagementError
    |   +-- DuplicateTimesheetError
    |
    +-- AlreadyProcessedError             action already completed
    |   +-- TimesheetAlreadyInvoicedError
    |   +-- AlreadyRatedError
    |
    +-- ExternalServiceFailureError       payment provider / collaborator failed
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

NotFoundError is deliberately raised for entities the caller is not a party
to: existence of other companies' engagements is never disclosed.
"""


class BenchKernelError(Exception):
    """Base exception for all lifecycle errors.

    All subclasses must have a `code` class attribute.
    """

    code: str = "BENCH_KERNEL_ERROR"


class UnauthorizedError(BenchKernelError):
    """The caller's company identity could not be resolved."""

    code: str = "UNAUTHORIZED"

    def __init__(self, reason: str = "Unauthorized"):
        self.reason = reason
        super().__init__(reason)


class NotFoundError(BenchKernelError):
    """Entity does not exist, or the acting company is not a party to it."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found")


class InvalidTransitionError(BenchKernelError):
    """The entity's current status does not permit the requested move."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        from_state: str,
        to_state: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        super().__init__(
            reason or f"Invalid status transition from {from_state} to {to_state}"
        )


class TransitionNotPermittedError(InvalidTransitionError):
    """The transition exists but the caller's role may not perform it."""

    code: str = "TRANSITION_NOT_PERMITTED"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        from_state: str,
        to_state: str,
        role: str,
    ):
        self.role = role
        super().__init__(
            entity_type,
            entity_id,
            from_state,
            to_state,
            reason=f"The {role} may not move a {entity_type.lower()} "
            f"from {from_state} to {to_state}",
        )


class EngagementNotActiveError(InvalidTransitionError):
    """Hours can only be logged against an engagement that is being worked."""

    code: str = "ENGAGEMENT_NOT_ACTIVE"

    def __init__(self, contract_id: str, contract_status: str, request_status: str):
        self.contract_status = contract_status
        self.request_status = request_status
        super().__init__(
            "Contract",
            contract_id,
            contract_status,
            contract_status,
            reason="Active engagement not found",
        )


class ValidationFailedError(BenchKernelError):
    """Input was rejected before any state changed."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(reason)


class SelfEngagementError(ValidationFailedError):
    """A company attempted to request its own listing."""

    code: str = "SELF_ENGAGEMENT"

    def __init__(self, listing_id: str):
        self.listing_id = str(listing_id)
        super().__init__("listing_id", "Cannot request your own listing")


class DuplicateTimesheetError(ValidationFailedError):
    """A timesheet already exists for this contract and week."""

    code: str = "DUPLICATE_TIMESHEET"

    def __init__(self, contract_id: str, week_start: str):
        self.contract_id = str(contract_id)
        self.week_start = str(week_start)
        super().__init__("week_start", "Timesheet for this week already exists")


class AlreadyProcessedError(BenchKernelError):
    """The requested action was already completed on this entity."""

    code: str = "ALREADY_PROCESSED"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        status: str,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.status = status
        super().__init__(message or f"{entity_type} already processed")


class TimesheetAlreadyInvoicedError(AlreadyProcessedError):
    """A selected timesheet is already billed on a live invoice."""

    code: str = "TIMESHEET_ALREADY_INVOICED"

    def __init__(self, timesheet_id: str, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(
            "Timesheet",
            timesheet_id,
            "INVOICED",
            message=f"Timesheet already invoiced on {invoice_number}",
        )


class AlreadyRatedError(AlreadyProcessedError):
    """The acting company already rated this engagement."""

    code: str = "ALREADY_RATED"

    def __init__(self, request_id: str, company_id: str):
        self.company_id = str(company_id)
        super().__init__(
            "Request",
            request_id,
            "RATED",
            message="You have already rated this engagement",
        )


class ExternalServiceFailureError(BenchKernelError):
    """A collaborator outside the lifecycle (payment provider) failed."""

    code: str = "EXTERNAL_SERVICE_FAILURE"

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason
        super().__init__(f"{service} failed: {reason}")


class ConcurrencyError(BenchKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"{entity_type} was modified by another operation, please retry"
        )
