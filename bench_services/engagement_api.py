"""
bench_services.engagement_api -- the operation boundary.

Responsibility:
    One method per lifecycle operation.  Each call:

        1. Resolves the caller to an ActingCompany (UNAUTHORIZED if not)
        2. Binds LogContext (correlation id, operation, actor, entity)
        3. Opens a session and runs the service in one transaction
        4. Commits, or rolls back on any failure
        5. Dispatches queued notifications only after a commit
        6. Returns an OperationResult

Invariants enforced:
    - Transaction boundaries: services flush, this layer commits.  A failed
      operation leaves no partial state and sends no notifications.
    - Typed errors: BenchKernelError (and a stale version counter) become
      FAILED results carrying the exception's code and message.  Anything
      else is a bug and propagates after rollback.

Usage:
    ops = EngagementOperations(get_session_factory(), resolver, provider,
                               NotificationDispatcher(sink))
    result = ops.send_offer(user_id, request_id, Decimal("95"), start, end)
    if result.status is OperationStatus.FAILED:
        show(result.error_code, result.message)
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from bench_config import PlatformSettings, get_platform_settings
from bench_kernel.domain.actors import ActingCompany
from bench_kernel.domain.clock import Clock, SystemClock
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import BenchKernelError, OptimisticLockError, UnauthorizedError
from bench_kernel.logging_config import LogContext, get_logger
from bench_modules.contracts.service import ContractService
from bench_modules.engagement_requests.models import RequestStatus
from bench_modules.engagement_requests.service import EngagementRequestService
from bench_modules.finalization.models import (
    FinalizationStatus,
    PaymentConfirmation,
    PaymentProvider,
)
from bench_modules.finalization.service import FinalizationGateway
from bench_modules.invoicing.models import InvoiceStatus
from bench_modules.invoicing.service import InvoiceService
from bench_modules.ratings.service import RatingService
from bench_modules.timesheets.models import TimesheetEntryInput
from bench_modules.timesheets.service import TimesheetService
from bench_services.identity import IdentityResolver
from bench_services.notification_dispatcher import NotificationDispatcher
from bench_services.payments import parse_payment_event
from bench_services.workflow_executor import WorkflowExecutor

logger = get_logger("services.engagement_api")


class OperationStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    NO_OP = "NO_OP"
    FAILED = "FAILED"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one boundary operation."""

    status: OperationStatus
    data: Any = None
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def succeeded(cls, data: Any = None) -> OperationResult:
        return cls(OperationStatus.SUCCEEDED, data=data)

    @classmethod
    def no_op(cls, data: Any = None, message: str | None = None) -> OperationResult:
        return cls(OperationStatus.NO_OP, data=data, message=message)

    @classmethod
    def failed(cls, error: BenchKernelError) -> OperationResult:
        return cls(OperationStatus.FAILED, error_code=error.code, message=str(error))

    @property
    def is_success(self) -> bool:
        return self.status != OperationStatus.FAILED


class _UnitOfWork:
    """Services sharing one session and one outbox for a single operation."""

    def __init__(
        self,
        session: Session,
        outbox: NotificationOutbox,
        actor: ActingCompany | None,
        ops: EngagementOperations,
    ):
        self.session = session
        self.outbox = outbox
        self.actor = actor
        self._ops = ops

    def _args(self) -> tuple:
        return (self.session, self._ops.clock, self._ops.settings, self.outbox, self._ops.executor)

    def requests(self) -> EngagementRequestService:
        return EngagementRequestService(*self._args())

    def contracts(self) -> ContractService:
        return ContractService(*self._args())

    def timesheets(self) -> TimesheetService:
        return TimesheetService(*self._args())

    def invoices(self) -> InvoiceService:
        return InvoiceService(*self._args())

    def ratings(self) -> RatingService:
        return RatingService(self.session, self._ops.settings, self.outbox)

    def finalization(self) -> FinalizationGateway:
        return FinalizationGateway(
            self.session,
            self._ops.clock,
            self._ops.settings,
            self.outbox,
            payment_provider=self._ops.payment_provider,
            workflow_executor=self._ops.executor,
        )


class EngagementOperations:
    """Transactional entry points to the engagement lifecycle."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        identity_resolver: IdentityResolver,
        payment_provider: PaymentProvider | None = None,
        notification_dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        settings: PlatformSettings | None = None,
        workflow_executor: WorkflowExecutor | None = None,
    ):
        self._session_factory = session_factory
        self._identity = identity_resolver
        self.payment_provider = payment_provider
        self._dispatcher = notification_dispatcher
        self.clock = clock or SystemClock()
        self.settings = settings or get_platform_settings()
        self.executor = workflow_executor or WorkflowExecutor()

    # =========================================================================
    # Transaction runner
    # =========================================================================

    def _run(
        self,
        operation: str,
        credential: Any,
        fn: Callable[[_UnitOfWork], OperationResult],
        entity_id: UUID | None = None,
        system: bool = False,
    ) -> OperationResult:
        actor = None
        if not system:
            actor = self._identity.resolve(credential)
            if actor is None:
                logger.warning("operation_unauthorized", extra={"operation": operation})
                return OperationResult.failed(UnauthorizedError())

        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            actor_company_id=str(actor.company_id) if actor else None,
            actor_user_id=str(actor.user_id) if actor else None,
            entity_id=str(entity_id) if entity_id else None,
        ):
            t0 = time.monotonic()
            outbox = NotificationOutbox()
            session = self._session_factory()
            try:
                result = fn(_UnitOfWork(session, outbox, actor, self))
                session.commit()
            except StaleDataError:
                session.rollback()
                outbox.discard()
                error = OptimisticLockError(operation, str(entity_id))
                logger.warning(
                    "operation_conflict",
                    extra={"error_code": error.code},
                )
                return OperationResult.failed(error)
            except BenchKernelError as error:
                session.rollback()
                outbox.discard()
                logger.info(
                    "operation_failed",
                    extra={
                        "error_code": error.code,
                        "error_message": str(error),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return OperationResult.failed(error)
            except Exception:
                session.rollback()
                outbox.discard()
                logger.error("operation_error", exc_info=True)
                raise
            finally:
                session.close()

            logger.info(
                "operation_completed",
                extra={
                    "status": result.status.value,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    "notification_count": len(outbox),
                },
            )
            if self._dispatcher is not None:
                self._dispatcher.dispatch(outbox.drain())
            else:
                outbox.discard()
            return result

    # =========================================================================
    # Requests and offers
    # =========================================================================

    def create_request(
        self,
        credential: Any,
        listing_id: UUID,
        start_date: date,
        end_date: date | None,
        message: str,
    ) -> OperationResult:
        return self._run(
            "create_request",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().create_request(uow.actor, listing_id, start_date, end_date, message)
            ),
            entity_id=listing_id,
        )

    def update_request_status(
        self,
        credential: Any,
        request_id: UUID,
        status: RequestStatus | str,
    ) -> OperationResult:
        return self._run(
            "update_request_status",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().update_status(uow.actor, request_id, status)
            ),
            entity_id=request_id,
        )

    def send_offer(
        self,
        credential: Any,
        request_id: UUID,
        offered_rate: Decimal,
        offered_start_date: date,
        offered_end_date: date,
        notes: str | None = None,
    ) -> OperationResult:
        return self._run(
            "send_offer",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().send_offer(
                    uow.actor,
                    request_id,
                    offered_rate,
                    offered_start_date,
                    offered_end_date,
                    notes,
                )
            ),
            entity_id=request_id,
        )

    def revise_offer(self, credential: Any, request_id: UUID) -> OperationResult:
        return self._run(
            "revise_offer",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().revise_offer(uow.actor, request_id)
            ),
            entity_id=request_id,
        )

    def send_message(self, credential: Any, request_id: UUID, content: str) -> OperationResult:
        return self._run(
            "send_message",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().send_message(uow.actor, request_id, content)
            ),
            entity_id=request_id,
        )

    def get_request(self, credential: Any, request_id: UUID) -> OperationResult:
        return self._run(
            "get_request",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().get_request(uow.actor, request_id)
            ),
            entity_id=request_id,
        )

    def list_requests(
        self,
        credential: Any,
        status: RequestStatus | str | None = None,
    ) -> OperationResult:
        return self._run(
            "list_requests",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().list_requests(uow.actor, status)
            ),
        )

    def request_counts(self, credential: Any) -> OperationResult:
        return self._run(
            "request_counts",
            credential,
            lambda uow: OperationResult.succeeded(uow.requests().request_counts(uow.actor)),
        )

    def list_messages(self, credential: Any, request_id: UUID) -> OperationResult:
        return self._run(
            "list_messages",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.requests().list_messages(uow.actor, request_id)
            ),
            entity_id=request_id,
        )

    # =========================================================================
    # Finalization
    # =========================================================================

    def quote_fee(self, credential: Any, request_id: UUID) -> OperationResult:
        return self._run(
            "quote_fee",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.finalization().quote_fee(uow.actor, request_id)
            ),
            entity_id=request_id,
        )

    def create_checkout(self, credential: Any, request_id: UUID) -> OperationResult:
        return self._run(
            "create_checkout",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.finalization().create_checkout(uow.actor, request_id)
            ),
            entity_id=request_id,
        )

    def _confirm(self, uow: _UnitOfWork, confirmation: PaymentConfirmation) -> OperationResult:
        outcome = uow.finalization().confirm_payment(confirmation)
        if outcome.status == FinalizationStatus.APPLIED:
            return OperationResult.succeeded(outcome)
        return OperationResult.no_op(outcome, outcome.reason)

    def confirm_payment(self, confirmation: PaymentConfirmation) -> OperationResult:
        """Consume a payment confirmation that was already parsed and verified."""
        return self._run(
            "confirm_payment",
            None,
            lambda uow: self._confirm(uow, confirmation),
            entity_id=confirmation.request_id,
            system=True,
        )

    def handle_payment_event(self, payload: dict[str, Any]) -> OperationResult:
        """Webhook entry point: no caller identity, only the provider's event."""

        def _handle(uow: _UnitOfWork) -> OperationResult:
            confirmation = parse_payment_event(payload)
            if confirmation is None:
                return OperationResult.no_op(message="Event ignored")
            return self._confirm(uow, confirmation)

        return self._run("handle_payment_event", None, _handle, system=True)

    # =========================================================================
    # Contracts
    # =========================================================================

    def create_contract(
        self,
        credential: Any,
        request_id: UUID,
        title: str,
        terms: str,
        hourly_rate: Decimal | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> OperationResult:
        return self._run(
            "create_contract",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.contracts().create_contract(
                    uow.actor, request_id, title, terms, hourly_rate, start_date, end_date
                )
            ),
            entity_id=request_id,
        )

    def agree_to_contract(self, credential: Any, contract_id: UUID) -> OperationResult:
        def _agree(uow: _UnitOfWork) -> OperationResult:
            outcome = uow.contracts().agree(uow.actor, contract_id)
            if outcome.newly_agreed:
                return OperationResult.succeeded(outcome)
            return OperationResult.no_op(outcome, "You have already agreed to this contract")

        return self._run("agree_to_contract", credential, _agree, entity_id=contract_id)

    def update_contract_terms(
        self,
        credential: Any,
        contract_id: UUID,
        **changes: Any,
    ) -> OperationResult:
        return self._run(
            "update_contract_terms",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.contracts().update_terms(uow.actor, contract_id, **changes)
            ),
            entity_id=contract_id,
        )

    def update_contract_status(
        self,
        credential: Any,
        contract_id: UUID,
        status: str,
    ) -> OperationResult:
        return self._run(
            "update_contract_status",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.contracts().update_status(uow.actor, contract_id, status)
            ),
            entity_id=contract_id,
        )

    def get_contract(self, credential: Any, contract_id: UUID) -> OperationResult:
        return self._run(
            "get_contract",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.contracts().get_contract(uow.actor, contract_id)
            ),
            entity_id=contract_id,
        )

    def list_contracts(self, credential: Any, status: str | None = None) -> OperationResult:
        return self._run(
            "list_contracts",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.contracts().list_contracts(uow.actor, status)
            ),
        )

    # =========================================================================
    # Timesheets
    # =========================================================================

    def create_timesheet(
        self,
        credential: Any,
        contract_id: UUID,
        week_of: date,
        entries: Sequence[TimesheetEntryInput] | None = None,
        total_hours: Decimal | None = None,
        notes: str | None = None,
        submit: bool = False,
    ) -> OperationResult:
        return self._run(
            "create_timesheet",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().create_timesheet(
                    uow.actor, contract_id, week_of, entries, total_hours, notes, submit
                )
            ),
            entity_id=contract_id,
        )

    def submit_timesheet(self, credential: Any, timesheet_id: UUID) -> OperationResult:
        return self._run(
            "submit_timesheet",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().submit(uow.actor, timesheet_id)
            ),
            entity_id=timesheet_id,
        )

    def approve_timesheet(self, credential: Any, timesheet_id: UUID) -> OperationResult:
        return self._run(
            "approve_timesheet",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().approve(uow.actor, timesheet_id)
            ),
            entity_id=timesheet_id,
        )

    def reject_timesheet(
        self,
        credential: Any,
        timesheet_id: UUID,
        reason: str | None = None,
    ) -> OperationResult:
        return self._run(
            "reject_timesheet",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().reject(uow.actor, timesheet_id, reason)
            ),
            entity_id=timesheet_id,
        )

    def revise_timesheet(
        self,
        credential: Any,
        timesheet_id: UUID,
        entries: Sequence[TimesheetEntryInput] | None = None,
        total_hours: Decimal | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        return self._run(
            "revise_timesheet",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().revise(uow.actor, timesheet_id, entries, total_hours, notes)
            ),
            entity_id=timesheet_id,
        )

    def get_timesheet(self, credential: Any, timesheet_id: UUID) -> OperationResult:
        return self._run(
            "get_timesheet",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().get_timesheet(uow.actor, timesheet_id)
            ),
            entity_id=timesheet_id,
        )

    def list_timesheets(self, credential: Any, contract_id: UUID) -> OperationResult:
        return self._run(
            "list_timesheets",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().list_timesheets(uow.actor, contract_id)
            ),
            entity_id=contract_id,
        )

    def hours_summary(self, credential: Any, contract_id: UUID) -> OperationResult:
        return self._run(
            "hours_summary",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.timesheets().hours_summary(uow.actor, contract_id)
            ),
            entity_id=contract_id,
        )

    # =========================================================================
    # Invoices
    # =========================================================================

    def generate_invoice(
        self,
        credential: Any,
        contract_id: UUID,
        timesheet_ids: Sequence[UUID],
        due_in_days: int | None = None,
    ) -> OperationResult:
        return self._run(
            "generate_invoice",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.invoices().generate_invoice(uow.actor, contract_id, timesheet_ids, due_in_days)
            ),
            entity_id=contract_id,
        )

    def update_invoice_status(
        self,
        credential: Any,
        invoice_id: UUID,
        status: InvoiceStatus | str,
    ) -> OperationResult:
        return self._run(
            "update_invoice_status",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.invoices().update_status(uow.actor, invoice_id, status)
            ),
            entity_id=invoice_id,
        )

    def get_invoice(self, credential: Any, invoice_id: UUID) -> OperationResult:
        return self._run(
            "get_invoice",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.invoices().get_invoice(uow.actor, invoice_id)
            ),
            entity_id=invoice_id,
        )

    def list_invoices(
        self,
        credential: Any,
        status: InvoiceStatus | str | None = None,
    ) -> OperationResult:
        return self._run(
            "list_invoices",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.invoices().list_invoices(uow.actor, status)
            ),
        )

    def flag_overdue_invoices(self, as_of: date | None = None) -> OperationResult:
        """System sweep; run by a scheduler outside the lifecycle."""
        return self._run(
            "flag_overdue_invoices",
            None,
            lambda uow: OperationResult.succeeded(uow.invoices().flag_overdue(as_of)),
            system=True,
        )

    # =========================================================================
    # Ratings
    # =========================================================================

    def rate_counterparty(
        self,
        credential: Any,
        request_id: UUID,
        score: int,
        comment: str | None = None,
    ) -> OperationResult:
        return self._run(
            "rate_counterparty",
            credential,
            lambda uow: OperationResult.succeeded(
                uow.ratings().rate_counterparty(uow.actor, request_id, score, comment)
            ),
            entity_id=request_id,
        )

    def company_rating(self, credential: Any, company_id: UUID) -> OperationResult:
        return self._run(
            "company_rating",
            credential,
            lambda uow: OperationResult.succeeded(uow.ratings().company_rating(company_id)),
            entity_id=company_id,
        )
