"""
bench_services.payments -- payment provider adapter and webhook parsing.

``HttpPaymentProvider`` opens hosted checkout sessions over HTTP with
``requests``.  Network errors, non-2xx responses and malformed bodies all
surface as ``ExternalServiceFailureError``; nothing in the lifecycle
changes when a checkout cannot be opened.

``parse_payment_event`` turns the provider's ``checkout.session.completed``
event for a matchmaking fee into a ``PaymentConfirmation``.  Any other
event is not ours and yields None.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import requests

from bench_config.schema import PaymentProviderSettings
from bench_kernel.exceptions import ExternalServiceFailureError, ValidationFailedError
from bench_kernel.logging_config import get_logger
from bench_modules.finalization.models import (
    MATCHMAKING_FEE,
    CheckoutSession,
    PaymentConfirmation,
)

logger = get_logger("services.payments")

CHECKOUT_COMPLETED = "checkout.session.completed"


class HttpPaymentProvider:
    """Checkout sessions through the provider's REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        http: requests.Session | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._http = http or requests.Session()

    @classmethod
    def from_settings(
        cls,
        settings: PaymentProviderSettings,
        api_key: str,
        http: requests.Session | None = None,
    ) -> HttpPaymentProvider:
        return cls(settings.base_url, api_key, settings.timeout_seconds, http)

    def create_checkout(
        self,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        success_url: str | None = None,
        cancel_url: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        url = f"{self._base_url}/v1/checkout/sessions"
        payload = {
            "mode": "payment",
            "amount": amount_minor,
            "currency": currency.lower(),
            "description": description,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            response = self._http.post(
                url,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(
                "payment_checkout_failed",
                extra={"url": url, "error": str(e)},
            )
            raise ExternalServiceFailureError("payment_provider", str(e)) from e

        session_id = body.get("id") if isinstance(body, dict) else None
        checkout_url = body.get("url") if isinstance(body, dict) else None
        if not session_id or not checkout_url:
            logger.error("payment_checkout_malformed_response", extra={"url": url})
            raise ExternalServiceFailureError(
                "payment_provider", "Malformed checkout session response"
            )

        logger.info(
            "payment_checkout_opened",
            extra={"checkout_session_id": session_id, "amount_minor": amount_minor},
        )
        return CheckoutSession(
            session_id=session_id,
            url=checkout_url,
            amount_minor=amount_minor,
            currency=currency,
            metadata=dict(metadata),
        )


def _uuid_field(metadata: dict[str, Any], key: str) -> UUID:
    try:
        return UUID(str(metadata[key]))
    except (KeyError, ValueError):
        raise ValidationFailedError(
            f"metadata.{key}", f"Payment event has no valid {key}"
        ) from None


def parse_payment_event(payload: dict[str, Any]) -> PaymentConfirmation | None:
    """Extract a matchmaking-fee confirmation from a provider event.

    Returns None for events of other types, for other checkout kinds
    (subscriptions), and for sessions that are not paid.

    Raises:
        ValidationFailedError: a matchmaking-fee event lacks its ids.
    """
    if payload.get("type") != CHECKOUT_COMPLETED:
        return None
    session = (payload.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    if metadata.get("type") != MATCHMAKING_FEE:
        return None
    if session.get("payment_status", "paid") != "paid":
        logger.info(
            "payment_event_unpaid",
            extra={"checkout_session_id": session.get("id")},
        )
        return None

    payment_id = session.get("payment_intent") or session.get("id")
    if not payment_id:
        raise ValidationFailedError("payment_id", "Payment event has no payment id")

    currency = session.get("currency")
    return PaymentConfirmation(
        payment_id=str(payment_id),
        request_id=_uuid_field(metadata, "requestId"),
        company_id=_uuid_field(metadata, "companyId"),
        amount_minor=session.get("amount_total"),
        currency=currency.upper() if currency else None,
        discounted=str(metadata.get("discounted", "")).lower() == "true",
    )
