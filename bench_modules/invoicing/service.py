"""
Invoice Service -- invoice generation from approved timesheets.

Generation:
    1. Lock the contract row; only its vendor may invoice it
    2. Validate the explicit timesheet selection (approved, same contract,
       not billed on a live invoice)
    3. Compute line items with ``bench_engines.billing.compute_invoice``
    4. Allocate ``INV-{year}-{seq}`` from the locked per-year counter row
    5. Persist invoice and line items in the caller's transaction

The contract lock serialises two generations over the same sheets; the
counter lock serialises number allocation across all contracts.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bench_config import PlatformSettings, get_platform_settings
from bench_engines.billing import BillableSheet, compute_invoice
from bench_kernel.domain.actors import ActingCompany, PartyRole, counterparty_of, resolve_role
from bench_kernel.domain.clock import Clock, SystemClock
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import (
    AlreadyProcessedError,
    NotFoundError,
    TimesheetAlreadyInvoicedError,
    TransitionNotPermittedError,
    ValidationFailedError,
)
from bench_kernel.logging_config import get_logger
from bench_kernel.services.base import BaseService
from bench_kernel.services.sequence_service import SequenceService
from bench_modules.contracts.models import WORKABLE_STATUSES, ContractStatus
from bench_modules.contracts.orm import ContractModel
from bench_modules.invoicing.models import Invoice, InvoiceStatus
from bench_modules.invoicing.orm import InvoiceLineItemModel, InvoiceModel
from bench_modules.invoicing.workflows import (
    INVOICE_WORKFLOW,
    STATUS_NOTIFICATIONS,
    STATUS_TIMESTAMPS,
)
from bench_modules.timesheets.models import TimesheetStatus
from bench_modules.timesheets.orm import TimesheetModel
from bench_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.invoicing.service")

ENTITY = "Invoice"


class InvoiceService(BaseService):
    """Generates invoices and drives their payment status."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: PlatformSettings | None = None,
        outbox: NotificationOutbox | None = None,
        workflow_executor: WorkflowExecutor | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, outbox)
        self._clock = clock or SystemClock()
        self._settings = settings or get_platform_settings()
        self._executor = workflow_executor or WorkflowExecutor()
        self._sequences = sequence_service or SequenceService(session)

    # =========================================================================
    # Access
    # =========================================================================

    def _load_invoice(
        self,
        actor: ActingCompany,
        invoice_id: UUID,
        lock: bool = False,
    ) -> tuple[InvoiceModel, PartyRole]:
        if lock:
            invoice = self._load_for_update(InvoiceModel, invoice_id)
        else:
            invoice = self.session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise NotFoundError(ENTITY, str(invoice_id))
        role = resolve_role(actor, invoice.client_company_id, invoice.vendor_company_id)
        if role is None:
            raise NotFoundError(ENTITY, str(invoice_id))
        return invoice, role

    def format_number(self, year: int, sequence: int) -> str:
        width = self._settings.invoice_sequence_width
        return f"{self._settings.invoice_prefix}-{year}-{sequence:0{width}d}"

    # =========================================================================
    # Generation
    # =========================================================================

    def _live_invoice_numbers(self, timesheet_ids: Sequence[UUID]) -> dict[UUID, str]:
        """Timesheets already billed on a non-cancelled invoice, with its number."""
        rows = self.session.execute(
            select(InvoiceLineItemModel.timesheet_id, InvoiceModel.number)
            .join(InvoiceModel, InvoiceModel.id == InvoiceLineItemModel.invoice_id)
            .where(InvoiceLineItemModel.timesheet_id.in_(list(timesheet_ids)))
            .where(InvoiceModel.status != InvoiceStatus.CANCELLED.value)
        ).all()
        return {timesheet_id: number for timesheet_id, number in rows}

    def generate_invoice(
        self,
        actor: ActingCompany,
        contract_id: UUID,
        timesheet_ids: Sequence[UUID],
        due_in_days: int | None = None,
    ) -> Invoice:
        """Bill an explicit selection of approved timesheets of one contract."""
        contract = self._load_for_update(ContractModel, contract_id)
        if contract is None:
            raise NotFoundError("Contract", str(contract_id))
        role = resolve_role(actor, contract.client_company_id, contract.vendor_company_id)
        if role is None:
            raise NotFoundError("Contract", str(contract_id))
        if role != PartyRole.VENDOR:
            raise TransitionNotPermittedError(
                ENTITY, "new", "NEW", InvoiceStatus.DRAFT.value, role.value
            )

        ids = list(timesheet_ids or [])
        if not ids:
            raise ValidationFailedError("timesheet_ids", "Select at least one timesheet")
        if len(set(ids)) != len(ids):
            raise ValidationFailedError("timesheet_ids", "A timesheet was selected twice")
        if due_in_days is not None and due_in_days < 0:
            raise ValidationFailedError("due_in_days", "Due days cannot be negative")

        sheets = {
            s.id: s
            for s in self.session.execute(
                select(TimesheetModel).where(TimesheetModel.id.in_(ids))
            ).scalars()
        }
        for timesheet_id in ids:
            sheet = sheets.get(timesheet_id)
            if sheet is None or sheet.contract_id != contract.id:
                raise ValidationFailedError(
                    "timesheet_ids",
                    f"Timesheet {timesheet_id} does not belong to this contract",
                )
            if sheet.status != TimesheetStatus.APPROVED.value:
                raise ValidationFailedError(
                    "timesheet_ids",
                    f"Timesheet {timesheet_id} is {sheet.status}, only approved "
                    f"timesheets can be invoiced",
                )

        billed = self._live_invoice_numbers(ids)
        for timesheet_id in ids:
            if timesheet_id in billed:
                raise TimesheetAlreadyInvoicedError(str(timesheet_id), billed[timesheet_id])

        computation = compute_invoice(
            sheets=[
                BillableSheet(
                    timesheet_id=s.id,
                    week_start=s.week_start,
                    week_end=s.week_end,
                    hours=s.total_hours,
                )
                for s in (sheets[i] for i in ids)
            ],
            rate=contract.hourly_rate,
            currency=contract.currency,
        )

        today = self._clock.today()
        days = self._settings.invoice_due_days if due_in_days is None else due_in_days
        sequence = self._sequences.next_value(SequenceService.invoice_sequence(today.year))

        invoice = InvoiceModel(
            contract_id=contract.id,
            request_id=contract.request_id,
            client_company_id=contract.client_company_id,
            vendor_company_id=contract.vendor_company_id,
            number=self.format_number(today.year, sequence),
            amount=computation.amount,
            total_hours=computation.total_hours,
            currency=computation.currency,
            period_start=computation.period_start,
            period_end=computation.period_end,
            issue_date=today,
            due_date=today + timedelta(days=days),
            status=InvoiceStatus.DRAFT.value,
            line_items=[
                InvoiceLineItemModel(
                    timesheet_id=line.timesheet_id,
                    week_start=line.week_start,
                    week_end=line.week_end,
                    hours=line.hours,
                    rate=line.rate,
                    subtotal=line.subtotal,
                )
                for line in computation.line_items
            ],
        )
        self.session.add(invoice)
        self.session.flush()

        vendor_name = self._companies.company_name(actor.company_id)
        self._notify_company(
            contract.client_company_id,
            "New Invoice",
            f"{vendor_name} created invoice {invoice.number} for "
            f"{computation.amount} {computation.currency}",
            self._settings.request_link(contract.request_id),
        )
        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.number,
                "contract_id": str(contract.id),
                "amount": str(computation.amount),
                "total_hours": str(computation.total_hours),
                "line_count": len(computation.line_items),
            },
        )
        return invoice.to_dto()

    # =========================================================================
    # Status
    # =========================================================================

    def _apply(
        self,
        invoice: InvoiceModel,
        requested: InvoiceStatus,
        role: PartyRole,
        company_name: str,
        notify: tuple,
    ) -> None:
        transition = self._executor.require_transition(
            INVOICE_WORKFLOW,
            ENTITY,
            invoice.id,
            invoice.status,
            requested.value,
            role.value,
        )
        invoice.status = transition.to_state
        stamp = STATUS_TIMESTAMPS.get(transition.to_state)
        if stamp is not None:
            setattr(invoice, stamp, self._clock.now())
        self.session.flush()

        title, template = STATUS_NOTIFICATIONS[transition.to_state]
        message = template.format(company=company_name, number=invoice.number)
        for company_id in notify:
            self._notify_company(
                company_id, title, message, self._settings.request_link(invoice.request_id)
            )

    def update_status(
        self,
        actor: ActingCompany,
        invoice_id: UUID,
        requested: InvoiceStatus | str,
    ) -> Invoice:
        """Send, pay, flag overdue or cancel an invoice."""
        requested = InvoiceStatus(requested)
        invoice, role = self._load_invoice(actor, invoice_id, lock=True)
        if invoice.status == requested.value:
            raise AlreadyProcessedError(
                ENTITY,
                str(invoice_id),
                invoice.status,
                message=f"Invoice is already {invoice.status.lower()}",
            )

        previous = invoice.status
        self._apply(
            invoice,
            requested,
            role,
            self._companies.company_name(actor.company_id),
            (counterparty_of(role, invoice.client_company_id, invoice.vendor_company_id),),
        )
        logger.info(
            "invoice_status_updated",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.number,
                "from_status": previous,
                "to_status": invoice.status,
                "role": role.value,
            },
        )
        return invoice.to_dto()

    def flag_overdue(self, as_of: date | None = None) -> list[Invoice]:
        """Move every SENT invoice due before ``as_of`` to OVERDUE."""
        as_of = as_of or self._clock.today()
        invoices = self.session.execute(
            select(InvoiceModel)
            .where(InvoiceModel.status == InvoiceStatus.SENT.value)
            .where(InvoiceModel.due_date < as_of)
            .order_by(InvoiceModel.due_date, InvoiceModel.number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        flagged = []
        for invoice in invoices:
            self._apply(
                invoice,
                InvoiceStatus.OVERDUE,
                PartyRole.SYSTEM,
                "BenchSwap",
                (invoice.client_company_id, invoice.vendor_company_id),
            )
            flagged.append(invoice.to_dto())
        logger.info(
            "invoices_flagged_overdue",
            extra={"as_of": as_of, "count": len(flagged)},
        )
        return flagged

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(self, actor: ActingCompany, invoice_id: UUID) -> Invoice:
        invoice, _ = self._load_invoice(actor, invoice_id)
        return invoice.to_dto()

    def list_invoices(
        self,
        actor: ActingCompany,
        status: InvoiceStatus | str | None = None,
        contract_id: UUID | None = None,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel).where(
            (InvoiceModel.client_company_id == actor.company_id)
            | (InvoiceModel.vendor_company_id == actor.company_id)
        )
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == InvoiceStatus(status).value)
        if contract_id is not None:
            stmt = stmt.where(InvoiceModel.contract_id == contract_id)
        stmt = stmt.order_by(InvoiceModel.number.desc())
        return [i.to_dto() for i in self.session.execute(stmt).scalars()]

    def invoiceable_timesheets(
        self,
        actor: ActingCompany,
        contract_id: UUID,
    ) -> list[UUID]:
        """Approved timesheets of the vendor's contract not yet on a live invoice."""
        contract = self.session.get(ContractModel, contract_id)
        if contract is None or contract.vendor_company_id != actor.company_id:
            raise NotFoundError("Contract", str(contract_id))
        if ContractStatus(contract.status) not in WORKABLE_STATUSES | {ContractStatus.COMPLETED}:
            return []
        approved = list(
            self.session.execute(
                select(TimesheetModel.id)
                .where(TimesheetModel.contract_id == contract.id)
                .where(TimesheetModel.status == TimesheetStatus.APPROVED.value)
                .order_by(TimesheetModel.week_start)
            ).scalars()
        )
        billed = self._live_invoice_numbers(approved) if approved else {}
        return [tid for tid in approved if tid not in billed]
