"""
Invoice computation engine (``bench_engines.billing``).

Responsibility
--------------
Turns a selection of approved timesheets and a contract rate into the
frozen line items, total amount and billing period of an invoice.

Architecture position
---------------------
**Engines layer** -- pure functional core.  The invoicing service gathers
and validates the timesheets; this engine only computes.

Invariants enforced
-------------------
* ``amount == sum(line.subtotal for line in line_items)`` exactly.
* Every line carries the rate it was billed at, so later rate changes on
  the contract never alter an issued invoice.
* Period start is the earliest week start, period end the latest week end.

Failure modes
-------------
* ``ValueError`` on an empty or duplicated selection, or a non-positive
  rate (programming errors: the service validates first).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from bench_engines.amounts import line_subtotal, sum_amounts, sum_hours, to_decimal
from bench_engines.tracer import traced_engine


@dataclass(frozen=True)
class BillableSheet:
    """An approved timesheet as input to invoice computation."""

    timesheet_id: UUID
    week_start: date
    week_end: date
    hours: Decimal


@dataclass(frozen=True)
class ComputedLine:
    timesheet_id: UUID
    week_start: date
    week_end: date
    hours: Decimal
    rate: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class InvoiceComputation:
    line_items: tuple[ComputedLine, ...]
    amount: Decimal
    total_hours: Decimal
    period_start: date
    period_end: date
    currency: str


@traced_engine("billing", "1.0", fingerprint_fields=("rate", "currency"))
def compute_invoice(
    *,
    sheets: list[BillableSheet] | tuple[BillableSheet, ...],
    rate: Decimal,
    currency: str = "EUR",
) -> InvoiceComputation:
    """Compute line items, amount and period for a set of timesheets.

    Lines are ordered by week start so the invoice reads chronologically.
    """
    if not sheets:
        raise ValueError("At least one timesheet is required")
    ids = [s.timesheet_id for s in sheets]
    if len(set(ids)) != len(ids):
        raise ValueError("Timesheet selection contains duplicates")
    rate = to_decimal(rate)
    if rate <= 0:
        raise ValueError(f"Rate must be positive, got {rate}")

    ordered = sorted(sheets, key=lambda s: (s.week_start, str(s.timesheet_id)))
    lines = tuple(
        ComputedLine(
            timesheet_id=s.timesheet_id,
            week_start=s.week_start,
            week_end=s.week_end,
            hours=to_decimal(s.hours),
            rate=rate,
            subtotal=line_subtotal(s.hours, rate, currency),
        )
        for s in ordered
    )
    return InvoiceComputation(
        line_items=lines,
        amount=sum_amounts(line.subtotal for line in lines),
        total_hours=sum_hours(line.hours for line in lines),
        period_start=min(s.week_start for s in ordered),
        period_end=max(s.week_end for s in ordered),
        currency=currency,
    )
