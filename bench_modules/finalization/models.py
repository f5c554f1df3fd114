"""
Finalization Domain Models (``bench_modules.finalization.models``).

Responsibility
--------------
Value objects exchanged with the payment provider (checkout sessions and
payment confirmations), the outcome of consuming a confirmation, and the
``PaymentProvider`` protocol the gateway depends on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable
from uuid import UUID

MATCHMAKING_FEE = "MATCHMAKING_FEE"


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted payment page opened with the provider."""
    session_id: str
    url: str
    amount_minor: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentConfirmation:
    """Payment ``payment_id`` for request ``request_id`` succeeded.

    ``company_id`` is the paying company as recorded in the checkout
    metadata; ``discounted`` is True when the founding-member fee was
    charged.
    """
    payment_id: str
    request_id: UUID
    company_id: UUID
    amount_minor: int | None = None
    currency: str | None = None
    discounted: bool = False


class FinalizationStatus(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    IGNORED = "IGNORED"


@dataclass(frozen=True)
class FinalizationOutcome:
    """Result of consuming one payment confirmation.

    Only APPLIED changed state; the other statuses are acknowledged no-ops.
    """
    status: FinalizationStatus
    payment_id: str
    request_id: UUID
    contract_id: UUID | None = None
    reason: str = ""

    @property
    def applied(self) -> bool:
        return self.status == FinalizationStatus.APPLIED


@runtime_checkable
class PaymentProvider(Protocol):
    """External payment collaborator that hosts the checkout page."""

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
        ...
