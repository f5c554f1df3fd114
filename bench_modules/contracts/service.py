"""
Contract Service -- dual agreement, term edits and contract status.

A contract is created DRAFT, either by the Finalization Gateway when the
matchmaking fee is paid or manually for a request accepted without one.
Each party stamps its own agreement marker; the call that sets the second
marker moves the contract to ACCEPTED in the same flush, whichever party
agrees last.  Editing terms clears both markers.

Activating and completing a contract carry the parent request along
(ACCEPTED -> IN_PROGRESS, IN_PROGRESS -> COMPLETED) in the same
transaction.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bench_config import PlatformSettings, get_platform_settings
from bench_engines.amounts import to_decimal
from bench_kernel.domain.actors import ActingCompany, PartyRole, counterparty_of, resolve_role
from bench_kernel.domain.clock import Clock, SystemClock
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import (
    AlreadyProcessedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from bench_kernel.logging_config import get_logger
from bench_kernel.services.base import BaseService
from bench_modules.contracts.models import (
    AGREEABLE_STATUSES,
    AGREED_STATUSES,
    AgreementOutcome,
    Contract,
    ContractStatus,
)
from bench_modules.contracts.orm import ContractModel
from bench_modules.contracts.workflows import (
    CONTRACT_WORKFLOW,
    STATUS_NOTIFICATIONS,
    STATUS_TIMESTAMPS,
)
from bench_modules.engagement_requests.models import RequestStatus
from bench_modules.engagement_requests.orm import EngagementRequestModel
from bench_modules.engagement_requests.service import EngagementRequestService
from bench_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.contracts.service")

ENTITY = "Contract"

# Sentinel for "argument not given" where None is a meaningful value
UNSET = object()


class ContractService(BaseService):
    """Orchestrates the contract lifecycle."""

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
        self._requests = EngagementRequestService(
            session, self._clock, self._settings, self.outbox, self._executor
        )

    # =========================================================================
    # Access
    # =========================================================================

    def load_for_party(
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
            raise NotFoundError(ENTITY, str(contract_id))
        role = resolve_role(actor, contract.client_company_id, contract.vendor_company_id)
        if role is None:
            raise NotFoundError(ENTITY, str(contract_id))
        return contract, role

    def contract_for_request(self, request_id: UUID) -> ContractModel | None:
        return self.session.execute(
            select(ContractModel).where(ContractModel.request_id == request_id)
        ).scalar_one_or_none()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_from_request(
        self,
        request: EngagementRequestModel,
        title: str | None = None,
        terms: str | None = None,
    ) -> ContractModel:
        """
        Create the DRAFT contract of a request from its offer terms.

        Offer fields that are missing fall back to the request's own rate
        and dates.  Callers hold the request row lock.
        """
        listing = self._companies.get_listing(request.listing_id)
        pseudonym = listing.developer_pseudonym if listing is not None else "developer"
        rate = request.offered_rate if request.offered_rate is not None else request.agreed_rate
        start = request.offered_start_date or request.start_date
        end = request.offered_end_date if request.offered_start_date else request.end_date

        contract = ContractModel(
            request_id=request.id,
            client_company_id=request.client_company_id,
            vendor_company_id=request.vendor_company_id,
            title=title or f"Engagement of {pseudonym}",
            terms=terms or request.offer_notes or (
                f"Engagement of {pseudonym} at {rate} {self._settings.currency}/hour"
            ),
            hourly_rate=rate,
            currency=self._settings.currency,
            start_date=start,
            end_date=end,
            status=ContractStatus.DRAFT.value,
        )
        self.session.add(contract)
        self.session.flush()
        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "request_id": str(request.id),
                "hourly_rate": str(rate),
            },
        )
        return contract

    def create_contract(
        self,
        actor: ActingCompany,
        request_id: UUID,
        title: str,
        terms: str,
        hourly_rate: Decimal | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Contract:
        """Manually draft the contract of an ACCEPTED request that has none."""
        request, role = self._requests.load_for_party(actor, request_id, lock=True)
        if request.status != RequestStatus.ACCEPTED.value:
            raise InvalidTransitionError(
                "Request",
                str(request_id),
                request.status,
                request.status,
                reason="Contracts can only be drafted for accepted requests",
            )
        if self.contract_for_request(request.id) is not None:
            raise AlreadyProcessedError(
                "Request",
                str(request_id),
                request.status,
                message="A contract already exists for this request",
            )
        if not (title or "").strip():
            raise ValidationFailedError("title", "Title is required")
        if not (terms or "").strip():
            raise ValidationFailedError("terms", "Terms are required")

        rate = to_decimal(hourly_rate) if hourly_rate is not None else request.agreed_rate
        if rate <= 0:
            raise ValidationFailedError("hourly_rate", "Hourly rate must be positive")
        start = start_date or request.start_date
        end = end_date if end_date is not None else request.end_date
        if end is not None and end < start:
            raise ValidationFailedError("end_date", "End date must be on or after start date")

        contract = ContractModel(
            request_id=request.id,
            client_company_id=request.client_company_id,
            vendor_company_id=request.vendor_company_id,
            title=title.strip(),
            terms=terms.strip(),
            hourly_rate=rate,
            currency=self._settings.currency,
            start_date=start,
            end_date=end,
            status=ContractStatus.DRAFT.value,
        )
        self.session.add(contract)
        self.session.flush()

        company = self._companies.company_name(actor.company_id)
        self._notify_company(
            counterparty_of(role, request.client_company_id, request.vendor_company_id),
            "Contract Drafted",
            f"{company} drafted a contract for your engagement",
            self._settings.request_link(request.id),
        )
        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "request_id": str(request.id),
                "hourly_rate": str(rate),
                "manual": True,
            },
        )
        return contract.to_dto()

    # =========================================================================
    # Dual agreement
    # =========================================================================

    def agree(self, actor: ActingCompany, contract_id: UUID) -> AgreementOutcome:
        """
        Stamp the caller's agreement marker.

        Idempotent: agreeing again keeps the original timestamp and reports
        ``newly_agreed=False``.  The second distinct marker moves the
        contract to ACCEPTED.
        """
        contract, role = self.load_for_party(actor, contract_id, lock=True)
        marker = "vendor_agreed_at" if role == PartyRole.VENDOR else "client_agreed_at"
        status = ContractStatus(contract.status)

        if getattr(contract, marker) is not None and status in (
            AGREEABLE_STATUSES | AGREED_STATUSES
        ):
            logger.info(
                "contract_agreement_replayed",
                extra={"contract_id": str(contract.id), "role": role.value},
            )
            return AgreementOutcome(contract.to_dto(), newly_agreed=False, became_accepted=False)

        if status not in AGREEABLE_STATUSES:
            raise InvalidTransitionError(
                ENTITY,
                str(contract_id),
                contract.status,
                ContractStatus.ACCEPTED.value,
                reason="Contract can no longer be agreed",
            )

        now = self._clock.now()
        setattr(contract, marker, now)
        became_accepted = False
        if contract.client_agreed_at is not None and contract.vendor_agreed_at is not None:
            transition = self._executor.require_transition(
                CONTRACT_WORKFLOW,
                ENTITY,
                contract.id,
                contract.status,
                ContractStatus.ACCEPTED.value,
                PartyRole.SYSTEM.value,
                context=contract,
            )
            contract.status = transition.to_state
            contract.accepted_at = now
            became_accepted = True
        self.session.flush()

        company = self._companies.company_name(actor.company_id)
        link = self._settings.request_link(contract.request_id)
        if became_accepted:
            for party in (contract.client_company_id, contract.vendor_company_id):
                self._notify_company(
                    party,
                    "Contract Accepted",
                    f"Both parties agreed to {contract.title}",
                    link,
                )
        else:
            self._notify_company(
                counterparty_of(role, contract.client_company_id, contract.vendor_company_id),
                "Contract Agreed",
                f"{company} agreed to the contract and is waiting for you",
                link,
            )
        logger.info(
            "contract_agreed",
            extra={
                "contract_id": str(contract.id),
                "role": role.value,
                "became_accepted": became_accepted,
            },
        )
        return AgreementOutcome(contract.to_dto(), newly_agreed=True, became_accepted=became_accepted)

    def update_terms(
        self,
        actor: ActingCompany,
        contract_id: UUID,
        title=UNSET,
        terms=UNSET,
        hourly_rate=UNSET,
        start_date=UNSET,
        end_date=UNSET,
    ) -> Contract:
        """Edit a DRAFT or SENT contract; any effective change voids both agreements."""
        contract, role = self.load_for_party(actor, contract_id, lock=True)
        if ContractStatus(contract.status) not in AGREEABLE_STATUSES:
            raise InvalidTransitionError(
                ENTITY,
                str(contract_id),
                contract.status,
                contract.status,
                reason="Contract cannot be edited once accepted",
            )

        changes: dict = {}
        if title is not UNSET:
            if not (title or "").strip():
                raise ValidationFailedError("title", "Title is required")
            changes["title"] = title.strip()
        if terms is not UNSET:
            if not (terms or "").strip():
                raise ValidationFailedError("terms", "Terms are required")
            changes["terms"] = terms.strip()
        if hourly_rate is not UNSET:
            rate = to_decimal(hourly_rate)
            if rate <= 0:
                raise ValidationFailedError("hourly_rate", "Hourly rate must be positive")
            changes["hourly_rate"] = rate
        if start_date is not UNSET:
            if start_date is None:
                raise ValidationFailedError("start_date", "Start date is required")
            changes["start_date"] = start_date
        if end_date is not UNSET:
            changes["end_date"] = end_date

        new_start = changes.get("start_date", contract.start_date)
        new_end = changes.get("end_date", contract.end_date)
        if new_end is not None and new_end < new_start:
            raise ValidationFailedError("end_date", "End date must be on or after start date")

        effective = {
            field: value
            for field, value in changes.items()
            if getattr(contract, field) != value
        }
        if not effective:
            return contract.to_dto()

        for field, value in effective.items():
            setattr(contract, field, value)
        had_agreement = (
            contract.client_agreed_at is not None or contract.vendor_agreed_at is not None
        )
        contract.clear_agreements()
        self.session.flush()

        company = self._companies.company_name(actor.company_id)
        self._notify_company(
            counterparty_of(role, contract.client_company_id, contract.vendor_company_id),
            "Contract Updated",
            f"{company} changed the contract terms; please review and agree again",
            self._settings.request_link(contract.request_id),
        )
        logger.info(
            "contract_terms_updated",
            extra={
                "contract_id": str(contract.id),
                "fields": sorted(effective),
                "agreements_cleared": had_agreement,
            },
        )
        return contract.to_dto()

    # =========================================================================
    # Status
    # =========================================================================

    def update_status(
        self,
        actor: ActingCompany,
        contract_id: UUID,
        requested: ContractStatus | str,
    ) -> Contract:
        """Send, activate, complete or cancel a contract."""
        requested = ContractStatus(requested)
        contract, role = self.load_for_party(actor, contract_id, lock=True)

        if requested == ContractStatus.ACCEPTED:
            raise InvalidTransitionError(
                ENTITY,
                str(contract_id),
                contract.status,
                requested.value,
                reason="A contract is accepted when both parties agree",
            )

        previous = contract.status
        transition = self._executor.require_transition(
            CONTRACT_WORKFLOW,
            ENTITY,
            contract.id,
            contract.status,
            requested.value,
            role.value,
            context=contract,
        )
        now = self._clock.now()
        contract.status = transition.to_state
        setattr(contract, STATUS_TIMESTAMPS[transition.to_state], now)
        self.session.flush()

        if requested in (ContractStatus.ACTIVE, ContractStatus.COMPLETED):
            self._carry_request(contract, requested, role)

        company = self._companies.company_name(actor.company_id)
        title, template = STATUS_NOTIFICATIONS[requested.value]
        self._notify_company(
            counterparty_of(role, contract.client_company_id, contract.vendor_company_id),
            title,
            template.format(company=company),
            self._settings.request_link(contract.request_id),
        )
        logger.info(
            "contract_status_updated",
            extra={
                "contract_id": str(contract.id),
                "from_status": previous,
                "to_status": contract.status,
                "role": role.value,
            },
        )
        return contract.to_dto()

    def _carry_request(
        self,
        contract: ContractModel,
        requested: ContractStatus,
        role: PartyRole,
    ) -> None:
        """Move the parent request along with an activated or completed contract."""
        request = self._load_for_update(EngagementRequestModel, contract.request_id)
        target = (
            RequestStatus.IN_PROGRESS
            if requested == ContractStatus.ACTIVE
            else RequestStatus.COMPLETED
        )
        if request.status == target.value:
            return
        self._requests.apply_transition(request, target, role)
        logger.info(
            "request_carried_by_contract",
            extra={
                "request_id": str(request.id),
                "contract_id": str(contract.id),
                "to_status": target.value,
            },
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_contract(self, actor: ActingCompany, contract_id: UUID) -> Contract:
        contract, _ = self.load_for_party(actor, contract_id)
        return contract.to_dto()

    def get_contract_for_request(self, actor: ActingCompany, request_id: UUID) -> Contract | None:
        request, _ = self._requests.load_for_party(actor, request_id)
        contract = self.contract_for_request(request.id)
        return contract.to_dto() if contract is not None else None

    def list_contracts(
        self,
        actor: ActingCompany,
        status: ContractStatus | str | None = None,
    ) -> list[Contract]:
        stmt = select(ContractModel).where(
            (ContractModel.client_company_id == actor.company_id)
            | (ContractModel.vendor_company_id == actor.company_id)
        )
        if status is not None:
            stmt = stmt.where(ContractModel.status == ContractStatus(status).value)
        stmt = stmt.order_by(ContractModel.created_at.desc())
        return [c.to_dto() for c in self.session.execute(stmt).scalars()]

    def requests_awaiting_contract(self, actor: ActingCompany) -> list[UUID]:
        """Accepted requests of the actor that have no contract yet."""
        stmt = (
            select(EngagementRequestModel.id)
            .outerjoin(ContractModel, ContractModel.request_id == EngagementRequestModel.id)
            .where(
                (EngagementRequestModel.client_company_id == actor.company_id)
                | (EngagementRequestModel.vendor_company_id == actor.company_id)
            )
            .where(EngagementRequestModel.status == RequestStatus.ACCEPTED.value)
            .where(ContractModel.id.is_(None))
        )
        return list(self.session.execute(stmt).scalars())
