"""
Module: bench_kernel.models.listing
Responsibility: ORM persistence for bench listings: an available developer
    offered by a vendor company at an hourly rate.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Only ACTIVE listings accept new engagement requests.
    - A listing becomes BOOKED when a matchmaking fee for it is paid.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class ListingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BOOKED = "BOOKED"
    INACTIVE = "INACTIVE"


class Listing(TrackedBase):
    """A developer on the vendor's bench, published for hire."""

    __tablename__ = "listings"

    __table_args__ = (
        Index("idx_listing_company", "company_id"),
        Index("idx_listing_status", "status"),
    )

    # Vendor company offering the developer
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Developer identity stays hidden until a fee is paid
    developer_pseudonym: Mapped[str] = mapped_column(String(100), nullable=False)

    hourly_rate: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[ListingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ListingStatus.ACTIVE,
    )

    @property
    def is_available(self) -> bool:
        return self.status == ListingStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Listing {self.developer_pseudonym} @ {self.hourly_rate}>"
