"""
Timesheet ORM Models (``bench_modules.timesheets.orm``).

``UNIQUE(contract_id, week_start)`` keeps one sheet per contract per week
even when two submissions for the same week race.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bench_kernel.db.base import TrackedBase


class TimesheetModel(TrackedBase):
    """ORM model for weekly timesheets."""

    __tablename__ = "timesheets"

    __table_args__ = (
        UniqueConstraint("contract_id", "week_start", name="uq_timesheets_contract_week"),
        Index("idx_timesheets_status", "contract_id", "status"),
    )

    contract_id: Mapped[UUID] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("engagement_requests.id"), nullable=False
    )
    client_company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    vendor_company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id"), nullable=False
    )
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    entries: Mapped[list["TimesheetEntryModel"]] = relationship(
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="TimesheetEntryModel.work_date",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from bench_modules.timesheets.models import Timesheet, TimesheetStatus

        return Timesheet(
            id=self.id,
            contract_id=self.contract_id,
            request_id=self.request_id,
            client_company_id=self.client_company_id,
            vendor_company_id=self.vendor_company_id,
            week_start=self.week_start,
            week_end=self.week_end,
            total_hours=self.total_hours,
            status=TimesheetStatus(self.status),
            notes=self.notes,
            rejection_reason=self.rejection_reason,
            submitted_at=self.submitted_at,
            approved_at=self.approved_at,
            rejected_at=self.rejected_at,
            entries=tuple(e.to_dto() for e in self.entries),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<TimesheetModel {self.week_start} {self.status}>"


class TimesheetEntryModel(TrackedBase):
    """Hours for one day of a timesheet."""

    __tablename__ = "timesheet_entries"

    __table_args__ = (
        Index("idx_timesheet_entries_sheet", "timesheet_id"),
    )

    timesheet_id: Mapped[UUID] = mapped_column(ForeignKey("timesheets.id"), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    timesheet: Mapped[TimesheetModel] = relationship(back_populates="entries")

    def to_dto(self):
        from bench_modules.timesheets.models import TimesheetEntry

        return TimesheetEntry(
            id=self.id,
            timesheet_id=self.timesheet_id,
            work_date=self.work_date,
            hours=self.hours,
            description=self.description,
        )
