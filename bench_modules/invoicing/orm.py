"""
Invoice ORM Models (``bench_modules.invoicing.orm``).

Line items live in their own append-only table; the invoice's amount is
the sum of its line item subtotals at generation time.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bench_kernel.db.base import TrackedBase


class InvoiceModel(TrackedBase):
    """ORM model for invoices."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("number", name="uq_invoices_number"),
        Index("idx_invoices_contract", "contract_id"),
        Index("idx_invoices_status_due", "status", "due_date"),
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
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    line_items: Mapped[list["InvoiceLineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItemModel.week_start",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Detached, immutable view of this row."""
        from bench_modules.invoicing.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            contract_id=self.contract_id,
            request_id=self.request_id,
            client_company_id=self.client_company_id,
            vendor_company_id=self.vendor_company_id,
            number=self.number,
            amount=self.amount,
            total_hours=self.total_hours,
            currency=self.currency,
            period_start=self.period_start,
            period_end=self.period_end,
            issue_date=self.issue_date,
            due_date=self.due_date,
            status=InvoiceStatus(self.status),
            sent_at=self.sent_at,
            paid_at=self.paid_at,
            cancelled_at=self.cancelled_at,
            line_items=tuple(line.to_dto() for line in self.line_items),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.number} {self.status}>"


class InvoiceLineItemModel(TrackedBase):
    """One billed timesheet, frozen at the rate it was billed at."""

    __tablename__ = "invoice_line_items"

    __table_args__ = (
        UniqueConstraint("invoice_id", "timesheet_id", name="uq_invoice_line_timesheet"),
        Index("idx_invoice_line_items_timesheet", "timesheet_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    timesheet_id: Mapped[UUID] = mapped_column(ForeignKey("timesheets.id"), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="line_items")

    def to_dto(self):
        from bench_modules.invoicing.models import InvoiceLineItem

        return InvoiceLineItem(
            id=self.id,
            invoice_id=self.invoice_id,
            timesheet_id=self.timesheet_id,
            week_start=self.week_start,
            week_end=self.week_end,
            hours=self.hours,
            rate=self.rate,
            subtotal=self.subtotal,
        )
