"""
Engagement Request Service -- request lifecycle, offers and conversation.

Thin glue layer that:
1. Resolves the acting company's role on a request (client, vendor, or
   NotFound for everyone else)
2. Checks every status change against REQUEST_WORKFLOW through the
   WorkflowExecutor
3. Persists the change on a row locked FOR UPDATE
4. Queues counterparty notifications on the operation's outbox

The service flushes only; the caller owns the transaction.

Usage:
    service = EngagementRequestService(session, clock, settings, outbox)
    request = service.create_request(actor, listing_id, start, end, message)
    request = service.send_offer(vendor, request.id, Decimal("95"), start, end)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bench_config import PlatformSettings, get_platform_settings
from bench_engines.amounts import to_decimal
from bench_kernel.domain.actors import ActingCompany, PartyRole, counterparty_of, resolve_role
from bench_kernel.domain.clock import Clock, SystemClock
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    SelfEngagementError,
    TransitionNotPermittedError,
    ValidationFailedError,
)
from bench_kernel.logging_config import get_logger
from bench_kernel.models.listing import ListingStatus
from bench_kernel.services.base import BaseService
from bench_modules.engagement_requests.models import (
    ACTIVE_REQUEST_STATUSES,
    EngagementRequest,
    Message,
    RequestCounts,
    RequestStatus,
)
from bench_modules.engagement_requests.orm import (
    ConversationModel,
    EngagementRequestModel,
    MessageModel,
)
from bench_modules.engagement_requests.workflows import (
    DEDICATED_ACTIONS,
    REQUEST_WORKFLOW,
    STATUS_NOTIFICATIONS,
)
from bench_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.engagement_requests.service")

ENTITY = "Request"


class EngagementRequestService(BaseService):
    """
    Orchestrates the engagement request state machine.

    Every public method takes an explicit ActingCompany.  A company that is
    neither the client nor the vendor of a request gets NotFoundError, the
    same as for a request that does not exist.
    """

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

    def load_for_party(
        self,
        actor: ActingCompany,
        request_id: UUID,
        lock: bool = False,
    ) -> tuple[EngagementRequestModel, PartyRole]:
        """Load a request the actor participates in, with the actor's role."""
        if lock:
            model = self._load_for_update(EngagementRequestModel, request_id)
        else:
            model = self.session.get(EngagementRequestModel, request_id)
        if model is None:
            raise NotFoundError(ENTITY, str(request_id))
        role = resolve_role(actor, model.client_company_id, model.vendor_company_id)
        if role is None:
            logger.info(
                "request_access_denied",
                extra={
                    "request_id": str(request_id),
                    "company_id": str(actor.company_id),
                },
            )
            raise NotFoundError(ENTITY, str(request_id))
        return model, role

    def _link(self, request_id: UUID) -> str:
        return self._settings.request_link(request_id)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_request(
        self,
        actor: ActingCompany,
        listing_id: UUID,
        start_date: date,
        end_date: date | None,
        message: str,
    ) -> EngagementRequest:
        """
        Open a request against an active listing of another company.

        Snapshots the listing's hourly rate as the agreed rate and opens the
        request's conversation with the client's message.
        """
        listing = self._companies.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("Listing", str(listing_id))
        if listing.company_id == actor.company_id:
            raise SelfEngagementError(str(listing_id))
        if listing.status != ListingStatus.ACTIVE:
            raise ValidationFailedError("listing_id", "Listing is not available")

        message = (message or "").strip()
        min_length = self._settings.min_request_message_length
        if len(message) < min_length:
            raise ValidationFailedError(
                "message", f"Message must be at least {min_length} characters"
            )
        if end_date is not None and end_date < start_date:
            raise ValidationFailedError("end_date", "End date must be on or after start date")

        now = self._clock.now()
        request = EngagementRequestModel(
            listing_id=listing.id,
            client_company_id=actor.company_id,
            vendor_company_id=listing.company_id,
            requested_by_id=actor.user_id,
            status=RequestStatus.PENDING.value,
            start_date=start_date,
            end_date=end_date,
            agreed_rate=listing.hourly_rate,
        )
        self.session.add(request)
        self.session.flush()

        conversation = ConversationModel(request_id=request.id)
        self.session.add(conversation)
        self.session.flush()
        self.session.add(
            MessageModel(
                conversation_id=conversation.id,
                sender_user_id=actor.user_id,
                content=message,
                is_system=False,
                sent_at=now,
            )
        )
        self.session.flush()

        client_name = self._companies.company_name(actor.company_id)
        self._notify_company(
            listing.company_id,
            "New Engagement Request",
            f"{client_name} has requested {listing.developer_pseudonym}",
            self._link(request.id),
        )
        logger.info(
            "request_created",
            extra={
                "request_id": str(request.id),
                "listing_id": str(listing.id),
                "client_company_id": str(actor.company_id),
                "vendor_company_id": str(listing.company_id),
                "agreed_rate": str(listing.hourly_rate),
            },
        )
        return request.to_dto()

    # =========================================================================
    # Status transitions
    # =========================================================================

    def apply_transition(
        self,
        request: EngagementRequestModel,
        requested: RequestStatus,
        role: PartyRole,
        context: object = None,
    ) -> str:
        """Check and apply one move on an already-locked request.

        Returns the action performed.
        """
        transition = self._executor.require_transition(
            REQUEST_WORKFLOW,
            ENTITY,
            request.id,
            request.status,
            requested.value,
            role.value,
            context,
        )
        request.status = transition.to_state
        self.session.flush()
        return transition.action

    def update_status(
        self,
        actor: ActingCompany,
        request_id: UUID,
        requested: RequestStatus | str,
    ) -> EngagementRequest:
        """
        Move a request to ``requested`` if the transition table allows the
        actor's role to do so.  Offers and payment have their own operations.
        """
        requested = RequestStatus(requested)
        request, role = self.load_for_party(actor, request_id, lock=True)

        transition = REQUEST_WORKFLOW.find(request.status, requested.value)
        if transition is not None and transition.action in DEDICATED_ACTIONS:
            raise InvalidTransitionError(
                ENTITY,
                str(request_id),
                request.status,
                requested.value,
                reason=f"Use the {transition.action} operation for this change",
            )

        previous = request.status
        self.apply_transition(request, requested, role)

        title, template = STATUS_NOTIFICATIONS.get(
            requested.value,
            ("Request Updated", "{company} updated the request"),
        )
        company = self._companies.company_name(actor.company_id)
        self._notify_company(
            counterparty_of(role, request.client_company_id, request.vendor_company_id),
            title,
            template.format(company=company),
            self._link(request.id),
        )
        logger.info(
            "request_status_updated",
            extra={
                "request_id": str(request.id),
                "from_status": previous,
                "to_status": request.status,
                "role": role.value,
            },
        )
        return request.to_dto()

    # =========================================================================
    # Offer sub-workflow
    # =========================================================================

    def send_offer(
        self,
        actor: ActingCompany,
        request_id: UUID,
        offered_rate: Decimal,
        offered_start_date: date,
        offered_end_date: date,
        notes: str | None = None,
    ) -> EngagementRequest:
        """Vendor proposes concrete terms; the request moves to OFFER_SENT."""
        request, role = self.load_for_party(actor, request_id, lock=True)
        if role != PartyRole.VENDOR:
            raise TransitionNotPermittedError(
                ENTITY, str(request_id), request.status, "OFFER_SENT", role.value
            )

        rate = to_decimal(offered_rate)
        if rate <= 0:
            raise ValidationFailedError("offered_rate", "Offered rate must be positive")
        if offered_end_date < offered_start_date:
            raise ValidationFailedError(
                "offered_end_date", "Offer end date must be on or after its start date"
            )

        self.apply_transition(
            request,
            RequestStatus.OFFER_SENT,
            role,
            context={
                "offered_rate": rate,
                "offered_start_date": offered_start_date,
                "offered_end_date": offered_end_date,
            },
        )
        request.offered_rate = rate
        request.offered_start_date = offered_start_date
        request.offered_end_date = offered_end_date
        request.offer_notes = notes
        request.offer_sent_at = self._clock.now()
        self.session.flush()

        vendor_name = self._companies.company_name(actor.company_id)
        self._notify_company(
            request.client_company_id,
            "Offer Received!",
            f"{vendor_name} sent you an offer at {rate}/hour",
            self._link(request.id),
        )
        logger.info(
            "offer_sent",
            extra={
                "request_id": str(request.id),
                "offered_rate": str(rate),
                "offered_start_date": offered_start_date,
                "offered_end_date": offered_end_date,
            },
        )
        return request.to_dto()

    def revise_offer(self, actor: ActingCompany, request_id: UUID) -> EngagementRequest:
        """Vendor withdraws the current offer; the request goes back to NEGOTIATING."""
        request, role = self.load_for_party(actor, request_id, lock=True)
        if request.status != RequestStatus.OFFER_SENT.value:
            raise InvalidTransitionError(
                ENTITY,
                str(request_id),
                request.status,
                RequestStatus.NEGOTIATING.value,
                reason="There is no open offer to revise",
            )
        self.apply_transition(request, RequestStatus.NEGOTIATING, role)
        request.clear_offer()
        self.session.flush()

        vendor_name = self._companies.company_name(actor.company_id)
        self._notify_company(
            request.client_company_id,
            "Offer Revised",
            f"{vendor_name} is revising their offer",
            self._link(request.id),
        )
        logger.info("offer_revised", extra={"request_id": str(request.id)})
        return request.to_dto()

    # =========================================================================
    # Conversation
    # =========================================================================

    def _conversation_id(self, request_id: UUID) -> UUID:
        return self.session.execute(
            select(ConversationModel.id).where(ConversationModel.request_id == request_id)
        ).scalar_one()

    def send_message(
        self,
        actor: ActingCompany,
        request_id: UUID,
        content: str,
    ) -> Message:
        request, role = self.load_for_party(actor, request_id)
        content = (content or "").strip()
        if not content:
            raise ValidationFailedError("content", "Message cannot be empty")

        message = MessageModel(
            conversation_id=self._conversation_id(request.id),
            sender_user_id=actor.user_id,
            content=content,
            is_system=False,
            sent_at=self._clock.now(),
        )
        self.session.add(message)
        self.session.flush()

        sender = self._companies.company_name(actor.company_id)
        self._notify_company(
            counterparty_of(role, request.client_company_id, request.vendor_company_id),
            "New Message",
            f"{sender}: {content[:100]}",
            self._link(request.id),
            exclude_user_id=actor.user_id,
        )
        logger.info(
            "message_sent",
            extra={"request_id": str(request.id), "message_id": str(message.id)},
        )
        return message.to_dto(request.id)

    def post_system_message(self, request_id: UUID, content: str) -> Message:
        """Append a message authored by the platform."""
        message = MessageModel(
            conversation_id=self._conversation_id(request_id),
            sender_user_id=None,
            content=content,
            is_system=True,
            sent_at=self._clock.now(),
        )
        self.session.add(message)
        self.session.flush()
        return message.to_dto(request_id)

    def list_messages(self, actor: ActingCompany, request_id: UUID) -> list[Message]:
        request, _ = self.load_for_party(actor, request_id)
        rows = self.session.execute(
            select(MessageModel)
            .where(MessageModel.conversation_id == self._conversation_id(request.id))
            .order_by(MessageModel.sent_at, MessageModel.created_at)
        ).scalars()
        return [m.to_dto(request.id) for m in rows]

    # =========================================================================
    # Queries
    # =========================================================================

    def get_request(self, actor: ActingCompany, request_id: UUID) -> EngagementRequest:
        request, _ = self.load_for_party(actor, request_id)
        return request.to_dto()

    def list_requests(
        self,
        actor: ActingCompany,
        status: RequestStatus | str | None = None,
        role: PartyRole | None = None,
    ) -> list[EngagementRequest]:
        """Requests the actor participates in, newest first."""
        stmt = select(EngagementRequestModel)
        if role == PartyRole.CLIENT:
            stmt = stmt.where(EngagementRequestModel.client_company_id == actor.company_id)
        elif role == PartyRole.VENDOR:
            stmt = stmt.where(EngagementRequestModel.vendor_company_id == actor.company_id)
        else:
            stmt = stmt.where(
                (EngagementRequestModel.client_company_id == actor.company_id)
                | (EngagementRequestModel.vendor_company_id == actor.company_id)
            )
        if status is not None:
            stmt = stmt.where(EngagementRequestModel.status == RequestStatus(status).value)
        stmt = stmt.order_by(EngagementRequestModel.created_at.desc())
        return [r.to_dto() for r in self.session.execute(stmt).scalars()]

    def request_counts(self, actor: ActingCompany) -> RequestCounts:
        rows = self.session.execute(
            select(EngagementRequestModel.status, func.count())
            .where(
                (EngagementRequestModel.client_company_id == actor.company_id)
                | (EngagementRequestModel.vendor_company_id == actor.company_id)
            )
            .group_by(EngagementRequestModel.status)
        ).all()
        by_status = {status: count for status, count in rows}
        return RequestCounts(
            all=sum(by_status.values()),
            pending=by_status.get(RequestStatus.PENDING.value, 0),
            active=sum(by_status.get(s.value, 0) for s in ACTIVE_REQUEST_STATUSES),
            completed=by_status.get(RequestStatus.COMPLETED.value, 0),
        )
