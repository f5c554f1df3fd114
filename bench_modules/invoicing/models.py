"""
Invoice Domain Models (``bench_modules.invoicing.models``).

Responsibility
--------------
Frozen value objects for invoices and their line items.  Line items are a
snapshot: each carries the rate it was billed at, so a later change to the
contract rate never alters an issued invoice.

Invariants enforced
-------------------
* ``amount == sum(line.subtotal for line in line_items)``.
* Each timesheet appears at most once on an invoice.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class InvoiceLineItem:
    id: UUID
    invoice_id: UUID
    timesheet_id: UUID
    week_start: date
    week_end: date
    hours: Decimal
    rate: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class Invoice:
    """A bill for approved hours on one contract."""
    id: UUID
    contract_id: UUID
    request_id: UUID
    client_company_id: UUID
    vendor_company_id: UUID
    number: str
    amount: Decimal
    total_hours: Decimal
    currency: str
    period_start: date
    period_end: date
    issue_date: date
    due_date: date
    status: InvoiceStatus
    sent_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    line_items: tuple[InvoiceLineItem, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.line_items:
            total = sum((line.subtotal for line in self.line_items), Decimal("0"))
            if total != self.amount:
                raise ValueError(
                    f"Invoice {self.number} amount {self.amount} does not match "
                    f"line items {total}"
                )
            ids = [line.timesheet_id for line in self.line_items]
            if len(set(ids)) != len(ids):
                raise ValueError(f"Invoice {self.number} bills a timesheet twice")
        if self.period_end < self.period_start:
            raise ValueError(f"Invoice {self.number} has an inverted billing period")

    @property
    def timesheet_ids(self) -> tuple[UUID, ...]:
        return tuple(line.timesheet_id for line in self.line_items)
