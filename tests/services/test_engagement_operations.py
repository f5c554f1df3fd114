"""
Tests for the EngagementOperations boundary.

Every call runs in its own committed transaction, so these tests go
through the boundary only and never hold a session of their own.

Covers:
- Unresolvable credentials fail with UNAUTHORIZED before any work
- Typed errors become FAILED results, roll back and notify no one
- Notifications are dispatched only after commit; a failing sink
  does not undo the operation
- NO_OP results for idempotent replays (agree, payment events)
- Unexpected exceptions propagate after rollback
- Structured operation logs carry the bound context
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from bench_kernel.exceptions import ExternalServiceFailureError
from bench_modules.contracts.models import ContractStatus
from bench_modules.engagement_requests.models import RequestStatus
from bench_modules.finalization.models import FinalizationStatus, PaymentConfirmation
from bench_services.engagement_api import EngagementOperations, OperationStatus
from bench_services.identity import StaticIdentityResolver
from bench_services.notification_dispatcher import NotificationDispatcher
from conftest import OFFER_END, OFFER_RATE, OFFER_START, FakePaymentProvider, InMemorySink

BRIEF = "We need a Python developer for our billing platform."


def make_ops(session_factory, world, clock, settings, sink, provider=None):
    resolver = StaticIdentityResolver(
        {
            "alice": world.client,
            "carol": world.client_colleague,
            "victor": world.vendor,
            "olga": world.outsider,
        }
    )
    return EngagementOperations(
        session_factory,
        resolver,
        provider or FakePaymentProvider(),
        NotificationDispatcher(sink),
        clock=clock,
        settings=settings,
    )


@pytest.fixture
def ops(session_factory, world, clock, settings, sink):
    return make_ops(session_factory, world, clock, settings, sink)


def offer_sent(ops, world):
    created = ops.create_request("alice", world.listing_id, OFFER_START, OFFER_END, BRIEF)
    assert created.status is OperationStatus.SUCCEEDED
    offered = ops.send_offer(
        "victor", created.data.id, OFFER_RATE, OFFER_START, OFFER_END, "Remote, CET hours"
    )
    assert offered.status is OperationStatus.SUCCEEDED
    return offered.data


def paid_event(world, request_id, payment_intent="pi_boundary_1"):
    return {
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_boundary_1",
                "payment_intent": payment_intent,
                "amount_total": 50000,
                "currency": "eur",
                "payment_status": "paid",
                "metadata": {
                    "type": "MATCHMAKING_FEE",
                    "requestId": str(request_id),
                    "companyId": str(world.client_company_id),
                    "discounted": "false",
                },
            }
        },
    }


class TestIdentity:

    def test_unknown_credential(self, ops, world, sink):
        result = ops.create_request("mallory", world.listing_id, OFFER_START, OFFER_END, BRIEF)
        assert result.status is OperationStatus.FAILED
        assert result.error_code == "UNAUTHORIZED"
        assert not result.is_success
        assert sink.delivered == []
        assert ops.list_requests("alice").data == []

    def test_outsider_sees_not_found(self, ops, world):
        request = offer_sent(ops, world)
        result = ops.get_request("olga", request.id)
        assert result.status is OperationStatus.FAILED
        assert result.error_code == "NOT_FOUND"


class TestTransactions:

    def test_commit_then_dispatch(self, ops, world, sink):
        result = ops.create_request("alice", world.listing_id, OFFER_START, OFFER_END, BRIEF)
        assert result.is_success
        ((user_id, title, message, link),) = sink.delivered
        assert user_id == world.vendor.user_id
        assert title == "New Engagement Request"
        assert message == "Acme Corp has requested Dev #42"
        assert str(result.data.id) in link
        fetched = ops.get_request("carol", result.data.id)
        assert fetched.data.status == RequestStatus.PENDING

    def test_failure_rolls_back_and_notifies_no_one(self, ops, world, sink, captured_logs):
        created = ops.create_request("alice", world.listing_id, OFFER_START, OFFER_END, BRIEF)
        sink.delivered.clear()

        result = ops.send_offer(
            "victor", created.data.id, Decimal("0"), OFFER_START, OFFER_END
        )

        assert result.status is OperationStatus.FAILED
        assert result.error_code == "VALIDATION_FAILED"
        assert result.message
        assert sink.delivered == []
        assert ops.get_request("alice", created.data.id).data.status == RequestStatus.PENDING
        failed = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert failed[0]["operation"] == "send_offer"
        assert failed[0]["error_code"] == "VALIDATION_FAILED"
        assert failed[0]["entity_id"] == str(created.data.id)

    def test_role_denied_is_failed_result(self, ops, world):
        request = offer_sent(ops, world)
        result = ops.update_request_status("victor", request.id, "ACCEPTED")
        assert result.status is OperationStatus.FAILED
        assert result.error_code == "INVALID_TRANSITION"
        assert "finalize" in result.message
        assert ops.get_request("victor", request.id).data.status == RequestStatus.OFFER_SENT

    def test_sink_failure_keeps_committed_state(
        self, session_factory, world, clock, settings, captured_logs
    ):
        failing = InMemorySink(fail_titles=("New Engagement Request",))
        ops = make_ops(session_factory, world, clock, settings, failing)

        result = ops.create_request("alice", world.listing_id, OFFER_START, OFFER_END, BRIEF)

        assert result.status is OperationStatus.SUCCEEDED
        assert [r.id for r in ops.list_requests("victor").data] == [result.data.id]
        assert any(r["message"] == "notification_delivery_failed" for r in captured_logs())

    def test_unexpected_error_propagates(
        self, session_factory, world, clock, settings, sink, captured_logs
    ):
        provider = FakePaymentProvider(fail_with=RuntimeError("provider SDK crashed"))
        ops = make_ops(session_factory, world, clock, settings, sink, provider)
        request = offer_sent(ops, world)

        with pytest.raises(RuntimeError, match="provider SDK crashed"):
            ops.create_checkout("alice", request.id)

        assert any(r["message"] == "operation_error" for r in captured_logs())
        assert ops.get_request("alice", request.id).data.status == RequestStatus.OFFER_SENT

    def test_provider_failure_is_failed_result(self, session_factory, world, clock, settings, sink):
        provider = FakePaymentProvider(
            fail_with=ExternalServiceFailureError("payment_provider", "503 Service Unavailable")
        )
        ops = make_ops(session_factory, world, clock, settings, sink, provider)
        request = offer_sent(ops, world)

        result = ops.create_checkout("alice", request.id)

        assert result.status is OperationStatus.FAILED
        assert result.error_code == "EXTERNAL_SERVICE_FAILURE"
        assert ops.get_request("alice", request.id).data.status == RequestStatus.OFFER_SENT

    def test_completed_log(self, ops, world, captured_logs):
        ops.create_request("alice", world.listing_id, OFFER_START, OFFER_END, BRIEF)
        (record,) = [r for r in captured_logs() if r["message"] == "operation_completed"]
        assert record["operation"] == "create_request"
        assert record["status"] == "SUCCEEDED"
        assert record["notification_count"] == 1
        assert record["actor_company_id"] == str(world.client_company_id)
        assert record["actor_user_id"] == str(world.client.user_id)
        assert "correlation_id" in record


class TestCheckout:

    def test_checkout_opens_session_only(self, ops, world, sink):
        request = offer_sent(ops, world)
        sink.delivered.clear()

        result = ops.create_checkout("alice", request.id)

        assert result.status is OperationStatus.SUCCEEDED
        assert result.data.url.startswith("https://pay.example/")
        assert result.data.amount_minor == 50000
        assert sink.delivered == []
        assert ops.get_request("alice", request.id).data.status == RequestStatus.OFFER_SENT

    def test_quote(self, ops, world):
        request = offer_sent(ops, world)
        quote = ops.quote_fee("carol", request.id).data
        assert quote.amount == Decimal("500")
        assert not quote.discounted


class TestPaymentEvents:

    def test_applied_then_replayed(self, ops, world, sink):
        request = offer_sent(ops, world)
        sink.delivered.clear()

        first = ops.handle_payment_event(paid_event(world, request.id))
        assert first.status is OperationStatus.SUCCEEDED
        assert first.data.status == FinalizationStatus.APPLIED
        assert first.data.contract_id is not None
        assert sink.titles() == ["Deal Finalized!"] * 3

        sink.delivered.clear()
        replay = ops.handle_payment_event(paid_event(world, request.id))
        assert replay.status is OperationStatus.NO_OP
        assert replay.data.status == FinalizationStatus.ALREADY_PROCESSED
        assert replay.message == "Payment already processed"
        assert sink.delivered == []

        assert ops.get_request("alice", request.id).data.status == RequestStatus.ACCEPTED
        contracts = ops.list_contracts("victor").data
        assert [c.id for c in contracts] == [first.data.contract_id]

    def test_second_payment_for_accepted_request(self, ops, world):
        request = offer_sent(ops, world)
        ops.handle_payment_event(paid_event(world, request.id))

        other = ops.handle_payment_event(paid_event(world, request.id, "pi_boundary_2"))

        assert other.status is OperationStatus.NO_OP
        assert other.data.status == FinalizationStatus.IGNORED
        assert len(ops.list_contracts("alice").data) == 1

    def test_foreign_event_ignored(self, ops):
        result = ops.handle_payment_event({"type": "customer.created", "data": {"object": {}}})
        assert result.status is OperationStatus.NO_OP
        assert result.message == "Event ignored"

    def test_malformed_event_fails(self, ops, world):
        event = paid_event(world, uuid4())
        event["data"]["object"]["metadata"]["requestId"] = "not-a-uuid"
        result = ops.handle_payment_event(event)
        assert result.status is OperationStatus.FAILED
        assert result.error_code == "VALIDATION_FAILED"

    def test_unknown_request_fails(self, ops, world):
        result = ops.handle_payment_event(paid_event(world, uuid4()))
        assert result.status is OperationStatus.FAILED
        assert result.error_code == "NOT_FOUND"

    def test_confirm_payment_on_pending_request(self, ops, world):
        created = ops.create_request("alice", world.listing_id, OFFER_START, OFFER_END, BRIEF)
        confirmation = PaymentConfirmation(
            payment_id="pi_early",
            request_id=created.data.id,
            company_id=world.client_company_id,
            amount_minor=50000,
            currency="EUR",
        )

        result = ops.confirm_payment(confirmation)

        assert result.status is OperationStatus.NO_OP
        assert result.data.status == FinalizationStatus.IGNORED
        assert ops.get_request("alice", created.data.id).data.status == RequestStatus.PENDING


class TestAgreement:

    def test_agree_replay_is_no_op(self, ops, world, sink):
        request = offer_sent(ops, world)
        contract_id = ops.handle_payment_event(paid_event(world, request.id)).data.contract_id
        sink.delivered.clear()

        first = ops.agree_to_contract("alice", contract_id)
        assert first.status is OperationStatus.SUCCEEDED
        assert first.data.newly_agreed
        assert sink.titles() == ["Contract Agreed"]

        sink.delivered.clear()
        replay = ops.agree_to_contract("carol", contract_id)
        assert replay.status is OperationStatus.NO_OP
        assert replay.message == "You have already agreed to this contract"
        assert sink.delivered == []

        accepted = ops.agree_to_contract("victor", contract_id)
        assert accepted.data.became_accepted
        assert ops.get_contract("alice", contract_id).data.status == ContractStatus.ACCEPTED
