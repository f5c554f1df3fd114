"""
Module: bench_kernel.models.payment
Responsibility: Record of every payment confirmation the lifecycle has
    consumed.  The unique payment_id makes confirmation processing
    idempotent: a replayed or duplicated provider event finds its row and
    is acknowledged as a no-op.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - payment_id is unique (uq_processed_payment_id).
    - Rows are append-only.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class PaymentOutcome(str, Enum):
    APPLIED = "APPLIED"
    IGNORED = "IGNORED"


class ProcessedPayment(TrackedBase):
    """A consumed matchmaking-fee payment confirmation."""

    __tablename__ = "processed_payments"

    __table_args__ = (
        UniqueConstraint("payment_id", name="uq_processed_payment_id"),
        Index("idx_processed_payment_request", "request_id"),
    )

    payment_id: Mapped[str] = mapped_column(String(255), nullable=False)

    request_id: Mapped[UUID] = mapped_column(nullable=False)

    company_id: Mapped[UUID] = mapped_column(nullable=False)

    amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    discounted: Mapped[bool] = mapped_column(nullable=False, default=False)

    # APPLIED: accepted the request; IGNORED: request was no longer payable
    outcome: Mapped[PaymentOutcome] = mapped_column(String(20), nullable=False)
