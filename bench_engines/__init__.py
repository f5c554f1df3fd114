"""
Module: bench_engines
Responsibility:
    Pure calculation engines for the engagement lifecycle: amount and rate
    arithmetic, week normalisation, invoice computation and finalization
    fee selection.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    MUST NOT import bench_services or bench_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
    - Decimal-only arithmetic for rates, hours and amounts.
"""

from bench_engines.amounts import (
    line_subtotal,
    round_currency,
    round_hours,
    sum_amounts,
    sum_hours,
    to_decimal,
    to_minor_units,
)
from bench_engines.billing import (
    BillableSheet,
    ComputedLine,
    InvoiceComputation,
    compute_invoice,
)
from bench_engines.fees import FeeQuote, select_finalization_fee
from bench_engines.weeks import is_within_week, normalize_week_start, week_bounds, week_end

__all__ = [
    "BillableSheet",
    "ComputedLine",
    "FeeQuote",
    "InvoiceComputation",
    "compute_invoice",
    "is_within_week",
    "line_subtotal",
    "normalize_week_start",
    "round_currency",
    "round_hours",
    "select_finalization_fee",
    "sum_amounts",
    "sum_hours",
    "to_decimal",
    "to_minor_units",
    "week_bounds",
    "week_end",
]
