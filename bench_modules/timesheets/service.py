"""
Timesheet Service -- weekly hours logging and client approval.

Hours may only be logged while the engagement is being worked: the
contract ACCEPTED or ACTIVE with both parties agreed, and its request
ACCEPTED or IN_PROGRESS.  One sheet per contract per ISO week; any day of
the week may be passed and is normalised to its Monday.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bench_config import PlatformSettings, get_platform_settings
from bench_engines.amounts import round_hours, sum_hours, to_decimal
from bench_engines.weeks import is_within_week, week_bounds
from bench_kernel.domain.actors import ActingCompany, PartyRole, resolve_role
from bench_kernel.domain.clock import Clock, SystemClock
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import (
    AlreadyProcessedError,
    DuplicateTimesheetError,
    EngagementNotActiveError,
    InvalidTransitionError,
    NotFoundError,
    TransitionNotPermittedError,
    ValidationFailedError,
)
from bench_kernel.logging_config import get_logger
from bench_kernel.services.base import BaseService
from bench_modules.contracts.models import WORKABLE_STATUSES, ContractStatus
from bench_modules.contracts.orm import ContractModel
from bench_modules.engagement_requests.models import ACTIVE_REQUEST_STATUSES, RequestStatus
from bench_modules.engagement_requests.orm import EngagementRequestModel
from bench_modules.timesheets.models import (
    HoursSummary,
    Timesheet,
    TimesheetEntryInput,
    TimesheetStatus,
)
from bench_modules.timesheets.orm import TimesheetEntryModel, TimesheetModel
from bench_modules.timesheets.workflows import TIMESHEET_WORKFLOW
from bench_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.timesheets.service")

ENTITY = "Timesheet"

MAX_DAILY_HOURS = Decimal("24")


class TimesheetService(BaseService):
    """Orchestrates the timesheet approval chain."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: PlatformSettings | None = None,
        outbox: NotificationOutbox | None = None,
        workflow_executor: WorkflowExecutor | None = None,
    ):
        super().__init__(session, outbox)
        self._clock = clock or SystemClock()
        self._settings = settings or get_platform_settings()
        self._executor = workflow_executor or WorkflowExecutor()

    # =========================================================================
    # Access
    # =========================================================================

    def _load_contract(
        self,
        actor: ActingCompany,
        contract_id: UUID,
        lock: bool = False,
    ) -> tuple[ContractModel, PartyRole]:
        if lock:
            contract = self._load_for_update(ContractModel, contract_id)
        else:
            contract = self.session.get(ContractModel, contract_id)
        if contract is None:
            raise NotFoundError("Contract", str(contract_id))
        role = resolve_role(actor, contract.client_company_id, contract.vendor_company_id)
        if role is None:
            raise NotFoundError("Contract", str(contract_id))
        return contract, role

    def _load_sheet(
        self,
        actor: ActingCompany,
        timesheet_id: UUID,
        lock: bool = False,
    ) -> tuple[TimesheetModel, PartyRole]:
        if lock:
            sheet = self._load_for_update(TimesheetModel, timesheet_id)
        else:
            sheet = self.session.get(TimesheetModel, timesheet_id)
        if sheet is None:
            raise NotFoundError(ENTITY, str(timesheet_id))
        role = resolve_role(actor, sheet.client_company_id, sheet.vendor_company_id)
        if role is None:
            raise NotFoundError(ENTITY, str(timesheet_id))
        return sheet, role

    def _require_active_engagement(self, contract: ContractModel) -> None:
        request = self.session.get(EngagementRequestModel, contract.request_id)
        contract_ok = (
            ContractStatus(contract.status) in WORKABLE_STATUSES
            and contract.client_agreed_at is not None
            and contract.vendor_agreed_at is not None
        )
        request_ok = (
            request is not None
            and RequestStatus(request.status) in ACTIVE_REQUEST_STATUSES
        )
        if not (contract_ok and request_ok):
            raise EngagementNotActiveError(
                str(contract.id),
                contract.status,
                request.status if request is not None else "MISSING",
            )

    # =========================================================================
    # Hours validation
    # =========================================================================

    def _resolve_hours(
        self,
        week_start: date,
        entries: Sequence[TimesheetEntryInput] | None,
        total_hours: Decimal | None,
    ) -> tuple[Decimal, list[TimesheetEntryInput]]:
        """Validate entries against the week and return the weekly total.

        Entry hours are rounded to the stored precision first and the total
        is taken from the rounded entries, so stored entries always add up
        to the stored total.
        """
        rounded: list[TimesheetEntryInput] = []
        for entry in entries or ():
            if not is_within_week(entry.work_date, week_start):
                raise ValidationFailedError(
                    "entries",
                    f"Entry date {entry.work_date.isoformat()} is outside the week "
                    f"starting {week_start.isoformat()}",
                )
            hours = round_hours(to_decimal(entry.hours))
            if hours <= 0 or hours > MAX_DAILY_HOURS:
                raise ValidationFailedError(
                    "entries", f"Entry hours must be between 0 and {MAX_DAILY_HOURS}"
                )
            rounded.append(replace(entry, hours=hours))
        entries = rounded

        if total_hours is None and not entries:
            raise ValidationFailedError("total_hours", "Hours are required")

        entry_total = sum_hours(e.hours for e in entries)
        if total_hours is None:
            total = entry_total
        else:
            total = round_hours(to_decimal(total_hours))
            if entries and entry_total != total:
                raise ValidationFailedError(
                    "total_hours",
                    f"Entries add up to {entry_total} hours, not {total}",
                )

        low = self._settings.min_weekly_hours
        high = self._settings.max_weekly_hours
        if total < low:
            raise ValidationFailedError("total_hours", f"Minimum {low} hours")
        if total > high:
            raise ValidationFailedError("total_hours", f"Maximum {high} hours per week")
        return total, entries

    @staticmethod
    def _entry_models(entries: list[TimesheetEntryInput]) -> list[TimesheetEntryModel]:
        return [
            TimesheetEntryModel(
                work_date=e.work_date,
                hours=e.hours,
                description=e.description,
            )
            for e in entries
        ]

    # =========================================================================
    # Create / submit
    # =========================================================================

    def create_timesheet(
        self,
        actor: ActingCompany,
        contract_id: UUID,
        week_of: date,
        entries: Sequence[TimesheetEntryInput] | None = None,
        total_hours: Decimal | None = None,
        notes: str | None = None,
        submit: bool = False,
    ) -> Timesheet:
        """
        Log a week of hours against a contract.

        ``submit=True`` creates the sheet and submits it in one step.
        """
        contract, role = self._load_contract(actor, contract_id, lock=True)
        if role != PartyRole.VENDOR:
            raise TransitionNotPermittedError(
                ENTITY, "new", "NEW", TimesheetStatus.DRAFT.value, role.value
            )
        self._require_active_engagement(contract)

        week_start, week_ends_on = week_bounds(week_of)
        existing = self.session.execute(
            select(TimesheetModel.id).where(
                TimesheetModel.contract_id == contract.id,
                TimesheetModel.week_start == week_start,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateTimesheetError(str(contract.id), week_start.isoformat())

        total, entries = self._resolve_hours(week_start, entries, total_hours)

        sheet = TimesheetModel(
            contract_id=contract.id,
            request_id=contract.request_id,
            client_company_id=contract.client_company_id,
            vendor_company_id=contract.vendor_company_id,
            week_start=week_start,
            week_end=week_ends_on,
            total_hours=total,
            status=TimesheetStatus.DRAFT.value,
            notes=notes,
            entries=self._entry_models(entries),
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(sheet)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "timesheet_duplicate_week_race",
                extra={"contract_id": str(contract.id), "week_start": week_start},
            )
            raise DuplicateTimesheetError(str(contract.id), week_start.isoformat()) from None

        logger.info(
            "timesheet_created",
            extra={
                "timesheet_id": str(sheet.id),
                "contract_id": str(contract.id),
                "week_start": week_start,
                "total_hours": str(total),
                "entry_count": len(entries),
            },
        )
        if submit:
            self._submit(sheet, role, actor)
        return sheet.to_dto()

    def _submit(self, sheet: TimesheetModel, role: PartyRole, actor: ActingCompany) -> None:
        transition = self._executor.require_transition(
            TIMESHEET_WORKFLOW,
            ENTITY,
            sheet.id,
            sheet.status,
            TimesheetStatus.SUBMITTED.value,
            role.value,
        )
        sheet.status = transition.to_state
        sheet.submitted_at = self._clock.now()
        self.session.flush()

        company = self._companies.company_name(actor.company_id)
        self._notify_company(
            sheet.client_company_id,
            "Timesheet Submitted",
            f"{company} submitted {sheet.total_hours.normalize():f} hours for the week "
            f"of {sheet.week_start.isoformat()}",
            self._settings.request_link(sheet.request_id),
        )
        logger.info(
            "timesheet_submitted",
            extra={"timesheet_id": str(sheet.id), "total_hours": str(sheet.total_hours)},
        )

    def submit(self, actor: ActingCompany, timesheet_id: UUID) -> Timesheet:
        sheet, role = self._load_sheet(actor, timesheet_id, lock=True)
        if role == PartyRole.VENDOR:
            contract = self.session.get(ContractModel, sheet.contract_id)
            self._require_active_engagement(contract)
        self._submit(sheet, role, actor)
        return sheet.to_dto()

    # =========================================================================
    # Client decision
    # =========================================================================

    def _decide(
        self,
        actor: ActingCompany,
        timesheet_id: UUID,
        requested: TimesheetStatus,
    ) -> tuple[TimesheetModel, PartyRole]:
        sheet, role = self._load_sheet(actor, timesheet_id, lock=True)
        if sheet.status != TimesheetStatus.SUBMITTED.value:
            raise AlreadyProcessedError(
                ENTITY,
                str(timesheet_id),
                sheet.status,
                message="Timesheet already processed",
            )
        transition = self._executor.require_transition(
            TIMESHEET_WORKFLOW,
            ENTITY,
            sheet.id,
            sheet.status,
            requested.value,
            role.value,
        )
        sheet.status = transition.to_state
        return sheet, role

    def approve(self, actor: ActingCompany, timesheet_id: UUID) -> Timesheet:
        sheet, _ = self._decide(actor, timesheet_id, TimesheetStatus.APPROVED)
        sheet.approved_at = self._clock.now()
        self.session.flush()

        company = self._companies.company_name(actor.company_id)
        self._notify_company(
            sheet.vendor_company_id,
            "Timesheet Approved",
            f"{company} approved your timesheet for the week of {sheet.week_start.isoformat()}",
            self._settings.request_link(sheet.request_id),
        )
        logger.info("timesheet_approved", extra={"timesheet_id": str(sheet.id)})
        return sheet.to_dto()

    def reject(
        self,
        actor: ActingCompany,
        timesheet_id: UUID,
        reason: str | None = None,
    ) -> Timesheet:
        sheet, _ = self._decide(actor, timesheet_id, TimesheetStatus.REJECTED)
        sheet.rejected_at = self._clock.now()
        sheet.rejection_reason = reason
        self.session.flush()

        company = self._companies.company_name(actor.company_id)
        message = (
            f"{company} rejected your timesheet for the week of "
            f"{sheet.week_start.isoformat()}"
        )
        if reason:
            message = f"{message}: {reason}"
        self._notify_company(
            sheet.vendor_company_id,
            "Timesheet Rejected",
            message,
            self._settings.request_link(sheet.request_id),
        )
        logger.info(
            "timesheet_rejected",
            extra={"timesheet_id": str(sheet.id), "has_reason": bool(reason)},
        )
        return sheet.to_dto()

    # =========================================================================
    # Revision
    # =========================================================================

    def revise(
        self,
        actor: ActingCompany,
        timesheet_id: UUID,
        entries: Sequence[TimesheetEntryInput] | None = None,
        total_hours: Decimal | None = None,
        notes: str | None = None,
    ) -> Timesheet:
        """
        Correct a DRAFT or REJECTED sheet.  A rejected sheet returns to DRAFT
        and must be submitted again.
        Passing new hours replaces the stored entries: a ``total_hours``
        without ``entries`` leaves a total-only sheet.
        """
        sheet, role = self._load_sheet(actor, timesheet_id, lock=True)
        if sheet.status == TimesheetStatus.REJECTED.value:
            transition = self._executor.require_transition(
                TIMESHEET_WORKFLOW,
                ENTITY,
                sheet.id,
                sheet.status,
                TimesheetStatus.DRAFT.value,
                role.value,
            )
            sheet.status = transition.to_state
            sheet.rejected_at = None
            sheet.rejection_reason = None
        elif sheet.status == TimesheetStatus.DRAFT.value:
            if role != PartyRole.VENDOR:
                raise TransitionNotPermittedError(
                    ENTITY, str(timesheet_id), sheet.status, sheet.status, role.value
                )
        else:
            raise InvalidTransitionError(
                ENTITY,
                str(timesheet_id),
                sheet.status,
                TimesheetStatus.DRAFT.value,
                reason="Only draft or rejected timesheets can be revised",
            )

        if entries is not None or total_hours is not None:
            total, new_entries = self._resolve_hours(sheet.week_start, entries, total_hours)
            sheet.total_hours = total
            # A bare total replaces any per-day breakdown
            sheet.entries = self._entry_models(new_entries)
        if notes is not None:
            sheet.notes = notes
        self.session.flush()

        logger.info(
            "timesheet_revised",
            extra={"timesheet_id": str(sheet.id), "total_hours": str(sheet.total_hours)},
        )
        return sheet.to_dto()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_timesheet(self, actor: ActingCompany, timesheet_id: UUID) -> Timesheet:
        sheet, _ = self._load_sheet(actor, timesheet_id)
        return sheet.to_dto()

    def list_timesheets(
        self,
        actor: ActingCompany,
        contract_id: UUID,
        status: TimesheetStatus | str | None = None,
    ) -> list[Timesheet]:
        """Sheets of a contract, most recent week first."""
        contract, _ = self._load_contract(actor, contract_id)
        stmt = select(TimesheetModel).where(TimesheetModel.contract_id == contract.id)
        if status is not None:
            stmt = stmt.where(TimesheetModel.status == TimesheetStatus(status).value)
        stmt = stmt.order_by(TimesheetModel.week_start.desc())
        return [s.to_dto() for s in self.session.execute(stmt).scalars()]

    def hours_summary(self, actor: ActingCompany, contract_id: UUID) -> HoursSummary:
        contract, _ = self._load_contract(actor, contract_id)
        rows = self.session.execute(
            select(TimesheetModel.status, TimesheetModel.total_hours).where(
                TimesheetModel.contract_id == contract.id
            )
        ).all()

        def hours_in(status: TimesheetStatus) -> Decimal:
            return sum_hours(h for s, h in rows if s == status.value)

        return HoursSummary(
            total=sum_hours(h for _, h in rows),
            approved=hours_in(TimesheetStatus.APPROVED),
            pending=hours_in(TimesheetStatus.SUBMITTED),
            rejected=hours_in(TimesheetStatus.REJECTED),
        )
