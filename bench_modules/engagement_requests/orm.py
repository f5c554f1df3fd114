"""
Engagement Request ORM Models (``bench_modules.engagement_requests.orm``).

Responsibility
--------------
SQLAlchemy persistence for engagement requests and their conversation
threads.  Maps to the frozen dataclasses in ``models.py``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``bench_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``bench_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class EngagementRequestModel(TrackedBase):
    """
    ORM model for engagement requests.

    Guarantees:
        - client and vendor company ids are denormalised from the listing
          at creation so access checks never need a join.
        - agreed_rate is the listing's hourly rate at creation time.
        - version increments on every UPDATE (optimistic concurrency).
    """

    __tablename__ = "engagement_requests"

    __table_args__ = (
        Index("idx_engagement_requests_client", "client_company_id", "status"),
        Index("idx_engagement_requests_vendor", "vendor_company_id", "status"),
        Index("idx_engagement_requests_listing", "listing_id"),
    )

    listing_id: Mapped[UUID] = mapped_column(ForeignKey("listings.id"), nullable=False)
    client_company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    vendor_company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    requested_by_id: Mapped[UUID] = mapped_column(
        ForeignKey("company_users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    agreed_rate: Mapped[Decimal] = mapped_column(nullable=False)

    offered_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    offered_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    offered_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    offer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    offer_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def clear_offer(self) -> None:
        self.offered_rate = None
        self.offered_start_date = None
        self.offered_end_date = None
        self.offer_notes = None
        self.offer_sent_at = None

    def to_dto(self):
        """Frozen snapshot handed back to callers outside the session."""
        from bench_modules.engagement_requests.models import (
            EngagementRequest,
            RequestStatus,
        )

        return EngagementRequest(
            id=self.id,
            listing_id=self.listing_id,
            client_company_id=self.client_company_id,
            vendor_company_id=self.vendor_company_id,
            requested_by_id=self.requested_by_id,
            status=RequestStatus(self.status),
            start_date=self.start_date,
            end_date=self.end_date,
            agreed_rate=self.agreed_rate,
            offered_rate=self.offered_rate,
            offered_start_date=self.offered_start_date,
            offered_end_date=self.offered_end_date,
            offer_notes=self.offer_notes,
            offer_sent_at=self.offer_sent_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<EngagementRequestModel {self.id} {self.status}>"


class ConversationModel(TrackedBase):
    """The single conversation thread attached to a request."""

    __tablename__ = "conversations"

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_conversations_request"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("engagement_requests.id"), nullable=False
    )


class MessageModel(TrackedBase):
    """An append-only message in a conversation."""

    __tablename__ = "messages"

    __table_args__ = (
        Index("idx_messages_conversation", "conversation_id", "sent_at"),
    )

    conversation_id: Mapped[UUID] = mapped_column(
        ForeignKey("conversations.id"), nullable=False
    )
    sender_user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("company_users.id"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self, request_id: UUID):
        from bench_modules.engagement_requests.models import Message

        return Message(
            id=self.id,
            request_id=request_id,
            sender_user_id=self.sender_user_id,
            content=self.content,
            is_system=self.is_system,
            sent_at=self.sent_at,
        )
