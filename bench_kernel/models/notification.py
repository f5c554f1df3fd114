"""
Module: bench_kernel.models.notification
Responsibility: ORM persistence for in-app notifications written by the
    database notification sink after a lifecycle operation commits.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class NotificationRecord(TrackedBase):
    """One delivered in-app notification for one user."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notification_user", "user_id", "read_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("company_users.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)

    link: Mapped[str | None] = mapped_column(String(500), nullable=True)

    read_at: Mapped[datetime | None] = mapped_column(nullable=True)
