"""
Finalization Gateway -- matchmaking fee checkout and payment confirmation.

The client pays a one-off matchmaking fee to accept a vendor's offer.
Opening a checkout changes nothing.  Consuming a successful payment
confirmation does everything at once, inside the caller's transaction:

    1. Request OFFER_SENT -> ACCEPTED (system role)
    2. Exactly one DRAFT contract from the offer terms
    3. Listing -> BOOKED
    4. System message revealing the vendor's contact details
    5. One founding-member credit spent, if the fee was discounted
    6. ProcessedPayment row recorded
    7. Both parties notified

Confirmations are at-least-once: a payment id seen before, or a request
that is no longer exactly OFFER_SENT, is acknowledged without any change.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bench_config import PlatformSettings, get_platform_settings
from bench_engines.amounts import currency_exponent
from bench_engines.fees import FeeQuote, select_finalization_fee
from bench_kernel.domain.actors import ActingCompany, PartyRole
from bench_kernel.domain.clock import Clock, SystemClock
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import (
    ExternalServiceFailureError,
    InvalidTransitionError,
    NotFoundError,
    TransitionNotPermittedError,
    ValidationFailedError,
)
from bench_kernel.logging_config import get_logger
from bench_kernel.models.company import Company
from bench_kernel.models.listing import Listing, ListingStatus
from bench_kernel.models.payment import PaymentOutcome, ProcessedPayment
from bench_kernel.services.base import BaseService
from bench_kernel.utils.idempotency import generate_idempotency_key
from bench_modules.contracts.service import ContractService
from bench_modules.engagement_requests.models import RequestStatus
from bench_modules.engagement_requests.orm import EngagementRequestModel
from bench_modules.engagement_requests.service import EngagementRequestService
from bench_modules.finalization.models import (
    MATCHMAKING_FEE,
    CheckoutSession,
    FinalizationOutcome,
    FinalizationStatus,
    PaymentConfirmation,
    PaymentProvider,
)
from bench_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.finalization.service")


def checkout_idempotency_key(request: EngagementRequestModel, quote: FeeQuote) -> str:
    """Same offer and same fee give the same key; a resent offer or new fee does not."""
    sent_at = request.offer_sent_at
    offer_stamp = sent_at.strftime("%Y%m%dT%H%M%S%fZ") if sent_at is not None else "unsent"
    return generate_idempotency_key(
        "finalization", "checkout", request.id, offer_stamp, quote.amount_minor
    )


class FinalizationGateway(BaseService):
    """Turns a paid matchmaking fee into an accepted engagement."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: PlatformSettings | None = None,
        outbox: NotificationOutbox | None = None,
        payment_provider: PaymentProvider | None = None,
        workflow_executor: WorkflowExecutor | None = None,
    ):
        super().__init__(session, outbox)
        self._clock = clock or SystemClock()
        self._settings = settings or get_platform_settings()
        self._provider = payment_provider
        executor = workflow_executor or WorkflowExecutor()
        self._requests = EngagementRequestService(
            session, self._clock, self._settings, self.outbox, executor
        )
        self._contracts = ContractService(
            session, self._clock, self._settings, self.outbox, executor
        )

    # =========================================================================
    # Fee and checkout
    # =========================================================================

    def _fee_for(self, client_company_id: UUID) -> FeeQuote:
        company = self._companies.get_company(client_company_id)
        return select_finalization_fee(
            standard_fee=self._settings.matchmaking_fee,
            founding_member_fee=self._settings.founding_member_fee,
            is_founding_member=bool(company and company.is_founding_member),
            founding_deals_remaining=company.founding_deals_remaining if company else 0,
            currency=self._settings.currency,
        )

    def _client_request(
        self,
        actor: ActingCompany,
        request_id: UUID,
    ) -> EngagementRequestModel:
        request, role = self._requests.load_for_party(actor, request_id)
        if role != PartyRole.CLIENT:
            raise TransitionNotPermittedError(
                "Request",
                str(request_id),
                request.status,
                RequestStatus.ACCEPTED.value,
                role.value,
            )
        return request

    def quote_fee(self, actor: ActingCompany, request_id: UUID) -> FeeQuote:
        """The fee the client would pay to finalize this request now."""
        request = self._client_request(actor, request_id)
        return self._fee_for(request.client_company_id)

    def create_checkout(self, actor: ActingCompany, request_id: UUID) -> CheckoutSession:
        """
        Open a payment session for the matchmaking fee.

        No lifecycle state changes and no founding credit is spent here;
        that happens when the payment is confirmed.
        """
        request = self._client_request(actor, request_id)
        if request.status != RequestStatus.OFFER_SENT.value:
            raise InvalidTransitionError(
                "Request",
                str(request.id),
                request.status,
                RequestStatus.ACCEPTED.value,
                reason="Request is not in OFFER_SENT status",
            )
        if self._provider is None:
            raise ExternalServiceFailureError(
                "payment_provider", "No payment provider configured"
            )

        quote = self._fee_for(request.client_company_id)
        listing = self._companies.get_listing(request.listing_id)
        pseudonym = listing.developer_pseudonym if listing is not None else "developer"
        provider_settings = self._settings.payment_provider
        base_url = self._settings.app_base_url.rstrip("/")
        metadata = {
            "type": MATCHMAKING_FEE,
            "requestId": str(request.id),
            "companyId": str(request.client_company_id),
            "vendorId": str(request.vendor_company_id),
            "listingId": str(request.listing_id),
            "discounted": "true" if quote.discounted else "false",
        }
        session = self._provider.create_checkout(
            amount_minor=quote.amount_minor,
            currency=quote.currency,
            description=f"Finalize engagement with {pseudonym}",
            metadata=metadata,
            success_url=base_url + provider_settings.success_path.format(request_id=request.id),
            cancel_url=base_url + provider_settings.cancel_path.format(request_id=request.id),
            idempotency_key=checkout_idempotency_key(request, quote),
        )
        logger.info(
            "checkout_created",
            extra={
                "request_id": str(request.id),
                "checkout_session_id": session.session_id,
                "amount_minor": quote.amount_minor,
                "currency": quote.currency,
                "discounted": quote.discounted,
            },
        )
        return session

    # =========================================================================
    # Confirmation
    # =========================================================================

    def _already_processed(self, payment_id: str) -> bool:
        return self.session.execute(
            select(ProcessedPayment.id).where(ProcessedPayment.payment_id == payment_id)
        ).scalar_one_or_none() is not None

    def _record_payment(
        self,
        confirmation: PaymentConfirmation,
        outcome: PaymentOutcome,
    ) -> bool:
        """Insert the processed-payment row; False if another worker beat us to it."""
        amount = None
        if confirmation.amount_minor is not None and confirmation.currency:
            amount = Decimal(confirmation.amount_minor).scaleb(
                -currency_exponent(confirmation.currency)
            )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(
                ProcessedPayment(
                    payment_id=confirmation.payment_id,
                    request_id=confirmation.request_id,
                    company_id=confirmation.company_id,
                    amount=amount,
                    currency=confirmation.currency,
                    discounted=confirmation.discounted,
                    outcome=outcome.value,
                )
            )
            self.session.flush()
            savepoint.commit()
            return True
        except IntegrityError:
            savepoint.rollback()
            return False

    def confirm_payment(self, confirmation: PaymentConfirmation) -> FinalizationOutcome:
        """Consume a successful payment confirmation.

        Raises:
            NotFoundError: the request does not exist.
            ValidationFailedError: the payer is not the request's client.
        """
        payment_id = confirmation.payment_id
        if self._already_processed(payment_id):
            logger.info(
                "payment_already_processed",
                extra={"payment_id": payment_id, "request_id": str(confirmation.request_id)},
            )
            return FinalizationOutcome(
                FinalizationStatus.ALREADY_PROCESSED,
                payment_id,
                confirmation.request_id,
                reason="Payment already processed",
            )

        request = self._load_for_update(EngagementRequestModel, confirmation.request_id)
        if request is None:
            raise NotFoundError("Request", str(confirmation.request_id))
        if request.client_company_id != confirmation.company_id:
            logger.warning(
                "payment_payer_mismatch",
                extra={
                    "payment_id": payment_id,
                    "request_id": str(request.id),
                    "payer_company_id": str(confirmation.company_id),
                },
            )
            raise ValidationFailedError(
                "company_id", "Payment was not made by the requesting client"
            )

        applies = request.status == RequestStatus.OFFER_SENT.value
        outcome = PaymentOutcome.APPLIED if applies else PaymentOutcome.IGNORED
        if not self._record_payment(confirmation, outcome):
            logger.info("payment_already_processed", extra={"payment_id": payment_id})
            return FinalizationOutcome(
                FinalizationStatus.ALREADY_PROCESSED,
                payment_id,
                request.id,
                reason="Payment already processed",
            )

        if not applies:
            logger.warning(
                "payment_ignored_request_not_payable",
                extra={
                    "payment_id": payment_id,
                    "request_id": str(request.id),
                    "request_status": request.status,
                },
            )
            return FinalizationOutcome(
                FinalizationStatus.IGNORED,
                payment_id,
                request.id,
                reason=f"Request is {request.status}, not OFFER_SENT",
            )

        self._requests.apply_transition(request, RequestStatus.ACCEPTED, PartyRole.SYSTEM)
        contract = self._contracts.create_from_request(request)
        self._book_listing(request.listing_id)
        self._reveal_vendor_contacts(request)
        credit_spent = self._spend_founding_credit(request.client_company_id, confirmation)
        self.session.flush()

        link = self._settings.request_link(request.id)
        vendor = self._companies.company_name(request.vendor_company_id)
        client = self._companies.company_name(request.client_company_id)
        self._notify_company(
            request.client_company_id,
            "Deal Finalized!",
            f"Payment received. {vendor}'s contact details are now in your conversation",
            link,
        )
        self._notify_company(
            request.vendor_company_id,
            "Deal Finalized!",
            f"{client} paid the matchmaking fee. The engagement is confirmed",
            link,
        )
        logger.info(
            "payment_applied",
            extra={
                "payment_id": payment_id,
                "request_id": str(request.id),
                "contract_id": str(contract.id),
                "founding_credit_spent": credit_spent,
            },
        )
        return FinalizationOutcome(
            FinalizationStatus.APPLIED,
            payment_id,
            request.id,
            contract_id=contract.id,
        )

    def _book_listing(self, listing_id: UUID) -> None:
        listing = self._load_for_update(Listing, listing_id)
        if listing is not None:
            listing.status = ListingStatus.BOOKED.value

    def _reveal_vendor_contacts(self, request: EngagementRequestModel) -> None:
        vendor = self._companies.get_company(request.vendor_company_id)
        contacts = []
        if vendor is not None and vendor.contact_email:
            contacts.append(f"Email: {vendor.contact_email}")
        if vendor is not None and vendor.contact_phone:
            contacts.append(f"Phone: {vendor.contact_phone}")
        if not contacts:
            contacts.append(f"Company: {vendor.name if vendor is not None else 'unknown'}")
        self._requests.post_system_message(
            request.id,
            "Payment received! Deal finalized.\n\n"
            "Vendor Contact Information:\n"
            + "\n".join(contacts)
            + "\n\nYou can now communicate off-platform. "
            "Congratulations on your new engagement!",
        )

    def _spend_founding_credit(
        self,
        company_id: UUID,
        confirmation: PaymentConfirmation,
    ) -> bool:
        if not confirmation.discounted:
            return False
        company = self._load_for_update(Company, company_id)
        if company is None or not company.has_founding_credit:
            return False
        company.founding_deals_remaining -= 1
        return True
