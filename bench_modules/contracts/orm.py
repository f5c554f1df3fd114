"""
Contract ORM Models (``bench_modules.contracts.orm``).

Responsibility
--------------
SQLAlchemy persistence for engagement contracts.  ``UNIQUE(request_id)``
is the database backstop that keeps a request at exactly one contract even
when two payment confirmations race.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class ContractModel(TrackedBase):
    """
    ORM model for contracts.

    Guarantees:
        - One contract per request (uq_contracts_request).
        - Party ids copied from the request so access checks need no join.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_contracts_request"),
        Index("idx_contracts_client", "client_company_id", "status"),
        Index("idx_contracts_vendor", "vendor_company_id", "status"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("engagement_requests.id"), nullable=False
    )
    client_company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    vendor_company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    terms: Mapped[str] = mapped_column(Text, nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    client_agreed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    vendor_agreed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def clear_agreements(self) -> None:
        self.client_agreed_at = None
        self.vendor_agreed_at = None

    def to_dto(self):
        from bench_modules.contracts.models import Contract, ContractStatus

        return Contract(
            id=self.id,
            request_id=self.request_id,
            client_company_id=self.client_company_id,
            vendor_company_id=self.vendor_company_id,
            title=self.title,
            terms=self.terms,
            hourly_rate=self.hourly_rate,
            currency=self.currency,
            start_date=self.start_date,
            end_date=self.end_date,
            status=ContractStatus(self.status),
            client_agreed_at=self.client_agreed_at,
            vendor_agreed_at=self.vendor_agreed_at,
            sent_at=self.sent_at,
            accepted_at=self.accepted_at,
            activated_at=self.activated_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<ContractModel {self.id} {self.status}>"
