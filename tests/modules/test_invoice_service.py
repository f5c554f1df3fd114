"""
Tests for InvoiceService.

Covers:
- Generation from approved timesheets at the contract rate (75 h at 50/h)
- Sequential INV-{year}-{seq} numbering, per year, never reused
- A timesheet is billed on at most one live invoice; cancelling frees it
- Selection validation and vendor-only generation
- Status moves, double processing, overdue flagging
- invoiceable_timesheets and listing
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from bench_kernel.exceptions import (
    AlreadyProcessedError,
    InvalidTransitionError,
    NotFoundError,
    TimesheetAlreadyInvoicedError,
    TransitionNotPermittedError,
    ValidationFailedError,
)
from bench_modules.invoicing.models import InvoiceStatus
from conftest import WEEK_1, WEEK_2, WEEK_3


@pytest.fixture
def contract_id(lifecycle, world):
    """An ACTIVE contract renegotiated to 50/hour before agreement."""
    _, contract_id = lifecycle.finalized()
    lifecycle.contracts.update_terms(world.vendor, contract_id, hourly_rate=Decimal("50"))
    lifecycle.contracts.agree(world.client, contract_id)
    lifecycle.contracts.agree(world.vendor, contract_id)
    lifecycle.contracts.update_status(world.vendor, contract_id, "ACTIVE")
    return contract_id


@pytest.fixture
def two_weeks(lifecycle, contract_id):
    first = lifecycle.approved_timesheet(contract_id, WEEK_1, Decimal("40"))
    second = lifecycle.approved_timesheet(contract_id, WEEK_2, Decimal("35"))
    return [first.id, second.id]


class TestGenerate:

    def test_two_approved_weeks(self, invoice_service, world, contract_id, two_weeks):
        invoice = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)

        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.amount == Decimal("3750")
        assert invoice.total_hours == Decimal("75")
        assert invoice.currency == "EUR"
        assert [line.subtotal for line in invoice.line_items] == [Decimal("2000"), Decimal("1750")]
        assert all(line.rate == Decimal("50") for line in invoice.line_items)
        assert invoice.period_start == WEEK_1
        assert invoice.period_end == date(2024, 3, 24)
        assert set(invoice.timesheet_ids) == set(two_weeks)

    def test_number_and_dates(self, invoice_service, world, contract_id, two_weeks):
        invoice = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        assert invoice.number == "INV-2024-00001"
        assert invoice.issue_date == date(2024, 3, 4)
        assert invoice.due_date == date(2024, 4, 3)

    def test_due_days_override(self, invoice_service, world, contract_id, two_weeks):
        invoice = invoice_service.generate_invoice(
            world.vendor, contract_id, two_weeks, due_in_days=14
        )
        assert invoice.due_date == date(2024, 3, 18)

    def test_client_notified(self, invoice_service, world, contract_id, two_weeks, outbox):
        outbox.discard()
        invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        assert {n.title for n in outbox.pending} == {"New Invoice"}
        assert {n.user_id for n in outbox.pending} == world.user_ids(world.client_company_id)
        assert outbox.pending[0].message == (
            "DevShop created invoice INV-2024-00001 for 3750.00 EUR"
        )

    def test_sequential_numbers(self, lifecycle, invoice_service, world, contract_id, two_weeks):
        third = lifecycle.approved_timesheet(contract_id, WEEK_3, Decimal("10"))
        first = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks[:1])
        second = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks[1:])
        last = invoice_service.generate_invoice(world.vendor, contract_id, [third.id])
        assert [first.number, second.number, last.number] == [
            "INV-2024-00001",
            "INV-2024-00002",
            "INV-2024-00003",
        ]

    def test_numbering_restarts_each_year(self, invoice_service, world, contract_id, two_weeks, clock):
        invoice_service.generate_invoice(world.vendor, contract_id, two_weeks[:1])
        clock.set_time(datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc))
        invoice = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks[1:])
        assert invoice.number == "INV-2025-00001"

    def test_rate_comes_from_contract(self, lifecycle, invoice_service, world, contract_id):
        # Listing rate is 90 and the offer was 95; the agreed contract says 50
        sheet = lifecycle.approved_timesheet(contract_id, WEEK_1, Decimal("1"))
        invoice = invoice_service.generate_invoice(world.vendor, contract_id, [sheet.id])
        assert invoice.amount == Decimal("50")


class TestDoubleBilling:

    def test_already_invoiced(self, invoice_service, world, contract_id, two_weeks):
        invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        with pytest.raises(TimesheetAlreadyInvoicedError, match="INV-2024-00001"):
            invoice_service.generate_invoice(world.vendor, contract_id, two_weeks[:1])

    def test_cancelled_invoice_frees_timesheets(self, invoice_service, world, contract_id, two_weeks):
        first = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        invoice_service.update_status(world.vendor, first.id, "CANCELLED")

        again = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        assert again.number == "INV-2024-00002"
        assert again.amount == Decimal("3750")

    def test_invoiceable_timesheets(self, lifecycle, invoice_service, world, contract_id, two_weeks):
        assert invoice_service.invoiceable_timesheets(world.vendor, contract_id) == two_weeks
        invoice_service.generate_invoice(world.vendor, contract_id, two_weeks[:1])
        assert invoice_service.invoiceable_timesheets(world.vendor, contract_id) == two_weeks[1:]

    def test_invoiceable_is_vendor_only(self, invoice_service, world, contract_id):
        with pytest.raises(NotFoundError):
            invoice_service.invoiceable_timesheets(world.client, contract_id)


class TestSelectionValidation:

    def test_empty_selection(self, invoice_service, world, contract_id):
        with pytest.raises(ValidationFailedError, match="at least one"):
            invoice_service.generate_invoice(world.vendor, contract_id, [])

    def test_duplicate_selection(self, invoice_service, world, contract_id, two_weeks):
        with pytest.raises(ValidationFailedError, match="selected twice"):
            invoice_service.generate_invoice(
                world.vendor, contract_id, [two_weeks[0], two_weeks[0]]
            )

    def test_unapproved_timesheet(self, invoice_service, timesheet_service, world, contract_id):
        sheet = timesheet_service.create_timesheet(
            world.vendor, contract_id, WEEK_1, total_hours=Decimal("20"), submit=True
        )
        with pytest.raises(ValidationFailedError, match="only approved"):
            invoice_service.generate_invoice(world.vendor, contract_id, [sheet.id])

    def test_foreign_timesheet(self, invoice_service, world, contract_id, two_weeks):
        with pytest.raises(ValidationFailedError, match="does not belong"):
            invoice_service.generate_invoice(world.vendor, contract_id, [two_weeks[0], uuid4()])

    def test_negative_due_days(self, invoice_service, world, contract_id, two_weeks):
        with pytest.raises(ValidationFailedError):
            invoice_service.generate_invoice(world.vendor, contract_id, two_weeks, due_in_days=-1)

    def test_client_cannot_invoice(self, invoice_service, world, contract_id, two_weeks):
        with pytest.raises(TransitionNotPermittedError):
            invoice_service.generate_invoice(world.client, contract_id, two_weeks)

    def test_outsider_cannot_invoice(self, invoice_service, world, contract_id, two_weeks):
        with pytest.raises(NotFoundError):
            invoice_service.generate_invoice(world.outsider, contract_id, two_weeks)


class TestStatus:

    @pytest.fixture
    def invoice(self, invoice_service, world, contract_id, two_weeks):
        return invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)

    def test_send_then_pay(self, invoice_service, world, invoice, outbox):
        outbox.discard()
        sent = invoice_service.update_status(world.vendor, invoice.id, "SENT")
        assert sent.status == InvoiceStatus.SENT
        assert sent.sent_at is not None
        assert {n.title for n in outbox.pending} == {"Invoice Sent"}

        paid = invoice_service.update_status(world.client, invoice.id, InvoiceStatus.PAID)
        assert paid.status == InvoiceStatus.PAID
        assert paid.paid_at is not None

    def test_client_cannot_send(self, invoice_service, world, invoice):
        with pytest.raises(TransitionNotPermittedError):
            invoice_service.update_status(world.client, invoice.id, "SENT")

    def test_same_status_twice(self, invoice_service, world, invoice):
        invoice_service.update_status(world.vendor, invoice.id, "SENT")
        with pytest.raises(AlreadyProcessedError, match="Invoice is already sent"):
            invoice_service.update_status(world.vendor, invoice.id, "SENT")

    def test_draft_cannot_be_paid(self, invoice_service, world, invoice):
        with pytest.raises(InvalidTransitionError):
            invoice_service.update_status(world.client, invoice.id, "PAID")

    def test_paid_invoice_is_final(self, invoice_service, world, invoice):
        invoice_service.update_status(world.vendor, invoice.id, "SENT")
        invoice_service.update_status(world.vendor, invoice.id, "PAID")
        with pytest.raises(InvalidTransitionError):
            invoice_service.update_status(world.vendor, invoice.id, "CANCELLED")

    def test_outsider_cannot_read(self, invoice_service, world, invoice):
        with pytest.raises(NotFoundError):
            invoice_service.get_invoice(world.outsider, invoice.id)

    def test_list_invoices(self, invoice_service, world, invoice):
        assert [i.id for i in invoice_service.list_invoices(world.client)] == [invoice.id]
        assert invoice_service.list_invoices(world.client, status="PAID") == []
        assert invoice_service.list_invoices(world.outsider) == []


class TestOverdue:

    def test_flags_sent_invoices_past_due(
        self, invoice_service, world, contract_id, two_weeks, outbox
    ):
        invoice = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        invoice_service.update_status(world.vendor, invoice.id, "SENT")
        outbox.discard()

        # Due date itself is not overdue yet
        assert invoice_service.flag_overdue(as_of=invoice.due_date) == []

        flagged = invoice_service.flag_overdue(as_of=date(2024, 4, 4))
        assert [i.id for i in flagged] == [invoice.id]
        assert flagged[0].status == InvoiceStatus.OVERDUE
        assert {n.title for n in outbox.pending} == {"Invoice Overdue"}
        assert {n.user_id for n in outbox.pending} == (
            world.user_ids(world.client_company_id) | world.user_ids(world.vendor_company_id)
        )

        paid = invoice_service.update_status(world.client, invoice.id, "PAID")
        assert paid.status == InvoiceStatus.PAID

    def test_drafts_are_not_flagged(self, invoice_service, world, contract_id, two_weeks):
        invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        assert invoice_service.flag_overdue(as_of=date(2025, 1, 1)) == []

    def test_defaults_to_today(self, invoice_service, world, contract_id, two_weeks, clock):
        invoice = invoice_service.generate_invoice(world.vendor, contract_id, two_weeks)
        invoice_service.update_status(world.vendor, invoice.id, "SENT")
        clock.advance_days(31)
        assert [i.number for i in invoice_service.flag_overdue()] == ["INV-2024-00001"]
