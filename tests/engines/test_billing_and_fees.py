"""
Tests for invoice computation and finalization fee selection.

Covers:
- compute_invoice: amount equals the sum of line subtotals, lines ordered
  by week, period spans the selection, rejects empty/duplicate/zero-rate
- select_finalization_fee: standard, founding-member and exhausted credits
- Engine trace records
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from bench_engines.billing import BillableSheet, compute_invoice
from bench_engines.fees import select_finalization_fee
from bench_engines.tracer import input_fingerprint


def sheet(week_start: date, hours: str) -> BillableSheet:
    return BillableSheet(
        timesheet_id=uuid4(),
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
        hours=Decimal(hours),
    )


class TestComputeInvoice:

    def test_two_weeks_at_fifty(self):
        result = compute_invoice(
            sheets=[sheet(date(2024, 3, 18), "35"), sheet(date(2024, 3, 11), "40")],
            rate=Decimal("50"),
            currency="EUR",
        )
        assert result.amount == Decimal("3750")
        assert result.total_hours == Decimal("75")
        assert [line.subtotal for line in result.line_items] == [Decimal("2000"), Decimal("1750")]
        assert result.period_start == date(2024, 3, 11)
        assert result.period_end == date(2024, 3, 24)

    def test_each_line_carries_rate(self):
        result = compute_invoice(sheets=[sheet(date(2024, 3, 11), "7.5")], rate=Decimal("95"))
        (line,) = result.line_items
        assert line.rate == Decimal("95")
        assert line.subtotal == Decimal("712.50")

    def test_empty_selection_rejected(self):
        with pytest.raises(ValueError, match="At least one"):
            compute_invoice(sheets=[], rate=Decimal("50"))

    def test_duplicate_selection_rejected(self):
        s = sheet(date(2024, 3, 11), "10")
        with pytest.raises(ValueError, match="duplicates"):
            compute_invoice(sheets=[s, s], rate=Decimal("50"))

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError, match="Rate must be positive"):
            compute_invoice(sheets=[sheet(date(2024, 3, 11), "10")], rate=Decimal("0"))

    def test_emits_engine_trace(self, captured_logs):
        compute_invoice(sheets=[sheet(date(2024, 3, 11), "10")], rate=Decimal("50"))
        traces = [r for r in captured_logs() if r["message"] == "BENCH_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "billing"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_rejected_input_is_logged(self, captured_logs):
        with pytest.raises(ValueError):
            compute_invoice(sheets=[], rate=Decimal("50"))
        (record,) = [r for r in captured_logs() if r["message"] == "engine_rejected_input"]
        assert record["engine_name"] == "billing"
        assert record["level"] == "WARNING"


class TestInputFingerprint:

    def test_stored_decimals_match_inputs(self):
        entered = input_fingerprint(("rate", "currency"), {"rate": Decimal("50"), "currency": "EUR"})
        stored = input_fingerprint(
            ("rate", "currency"), {"rate": Decimal("50.000000000"), "currency": "EUR"}
        )
        assert entered == stored

    def test_field_order_and_values_matter(self):
        inputs = {"rate": Decimal("50"), "currency": "EUR"}
        assert input_fingerprint(("rate", "currency"), inputs) != input_fingerprint(
            ("currency", "rate"), inputs
        )
        assert input_fingerprint(("rate",), inputs) != input_fingerprint(
            ("rate",), {"rate": Decimal("51")}
        )

    def test_missing_fields_fingerprint(self):
        assert len(input_fingerprint(("rate",), {})) == 16


@settings(max_examples=50)
@given(
    hours=st.lists(st.decimals(min_value="0.5", max_value="80", places=2), min_size=1, max_size=8),
    rate=st.decimals(min_value="1", max_value="400", places=2),
)
def test_amount_always_equals_sum_of_subtotals(hours, rate):
    monday = date(2024, 1, 1)
    sheets = [sheet(monday + timedelta(weeks=i), str(h)) for i, h in enumerate(hours)]
    result = compute_invoice(sheets=sheets, rate=rate)
    assert result.amount == sum((line.subtotal for line in result.line_items), Decimal("0"))
    assert len(result.line_items) == len(hours)
    assert result.period_start == monday
    assert result.period_end == monday + timedelta(weeks=len(hours) - 1, days=6)


class TestFinalizationFee:

    def quote(self, founding, remaining):
        return select_finalization_fee(
            standard_fee=Decimal("500"),
            founding_member_fee=Decimal("250"),
            is_founding_member=founding,
            founding_deals_remaining=remaining,
            currency="EUR",
        )

    def test_standard_fee(self):
        q = self.quote(False, 0)
        assert q.amount == Decimal("500.00")
        assert not q.discounted
        assert q.amount_minor == 50000

    def test_founding_member_with_credit(self):
        q = self.quote(True, 2)
        assert q.amount == Decimal("250.00")
        assert q.discounted
        assert q.amount_minor == 25000

    def test_founding_member_without_credit_pays_standard(self):
        q = self.quote(True, 0)
        assert q.amount == Decimal("500.00")
        assert not q.discounted

    def test_credits_without_membership_do_not_discount(self):
        assert not self.quote(False, 3).discounted
