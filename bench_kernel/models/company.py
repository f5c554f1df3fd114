"""
Module: bench_kernel.models.company
Responsibility: ORM persistence for marketplace companies and their users.
    A company is either side of an engagement: the client that requests a
    developer, or the vendor that lists one.  Every user of a company
    receives that company's lifecycle notifications.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - founding_deals_remaining never goes below zero (ck_company_founding_credits).
    - A user belongs to exactly one company.

Non-goals:
    Company and user profile CRUD lives outside the lifecycle; these models
    are the read side the lifecycle needs plus the founding-credit counter
    the Finalization Gateway decrements.
"""

from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class Company(TrackedBase):
    """A marketplace participant (client, vendor, or both)."""

    __tablename__ = "companies"

    __table_args__ = (
        CheckConstraint(
            "founding_deals_remaining >= 0",
            name="ck_company_founding_credits",
        ),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Founding-member pricing: discounted finalization fee while credits remain
    is_founding_member: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    founding_deals_remaining: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )

    @property
    def has_founding_credit(self) -> bool:
        return self.is_founding_member and self.founding_deals_remaining > 0

    def __repr__(self) -> str:
        return f"<Company {self.name}>"


class CompanyUser(TrackedBase):
    """A person acting on behalf of a company."""

    __tablename__ = "company_users"

    __table_args__ = (
        Index("idx_company_user_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"),
        nullable=False,
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<CompanyUser {self.email}>"
