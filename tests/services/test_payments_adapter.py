"""
Tests for the HTTP payment provider adapter and webhook event parsing.

Covers:
- Checkout request shape: URL, bearer auth, idempotency header, timeout
- Transport errors, HTTP errors and malformed bodies map to
  ExternalServiceFailureError
- parse_payment_event: matchmaking fee confirmations, ignored events,
  missing ids
"""

from uuid import uuid4

import pytest
import requests

from bench_config import PaymentProviderSettings
from bench_kernel.exceptions import ExternalServiceFailureError, ValidationFailedError
from bench_services.payments import HttpPaymentProvider, parse_payment_event


class FakeResponse:

    def __init__(self, status_code=200, body=None, bad_json=False):
        self.status_code = status_code
        self._body = body
        self._bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._body


class FakeHttp:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def checkout(provider, **overrides):
    kwargs = dict(
        amount_minor=50000,
        currency="EUR",
        description="Finalize engagement with Dev #42",
        metadata={"type": "MATCHMAKING_FEE", "requestId": "r-1"},
        success_url="https://app.example/ok",
        cancel_url="https://app.example/cancel",
        idempotency_key="finalization:checkout:r-1",
    )
    kwargs.update(overrides)
    return provider.create_checkout(**kwargs)


class TestHttpPaymentProvider:

    def test_posts_checkout_session(self):
        http = FakeHttp(FakeResponse(body={"id": "cs_1", "url": "https://pay.example/cs_1"}))
        provider = HttpPaymentProvider("https://pay.example/", "sk_test", 5.0, http=http)

        session = checkout(provider)
        assert session.session_id == "cs_1"
        assert session.url == "https://pay.example/cs_1"
        assert session.amount_minor == 50000
        assert session.metadata == {"type": "MATCHMAKING_FEE", "requestId": "r-1"}

        (post,) = http.posts
        assert post["url"] == "https://pay.example/v1/checkout/sessions"
        assert post["timeout"] == 5.0
        assert post["headers"]["Authorization"] == "Bearer sk_test"
        assert post["headers"]["Idempotency-Key"] == "finalization:checkout:r-1"
        assert post["json"]["amount"] == 50000
        assert post["json"]["currency"] == "eur"
        assert post["json"]["mode"] == "payment"

    def test_no_idempotency_header_without_key(self):
        http = FakeHttp(FakeResponse(body={"id": "cs_1", "url": "https://pay.example/cs_1"}))
        provider = HttpPaymentProvider("https://pay.example", "sk_test", http=http)
        checkout(provider, idempotency_key=None)
        assert "Idempotency-Key" not in http.posts[0]["headers"]

    def test_from_settings(self):
        http = FakeHttp(FakeResponse(body={"id": "cs_9", "url": "https://p/cs_9"}))
        provider = HttpPaymentProvider.from_settings(
            PaymentProviderSettings(base_url="https://p", timeout_seconds=2.5), "sk", http=http
        )
        checkout(provider)
        assert http.posts[0]["url"] == "https://p/v1/checkout/sessions"
        assert http.posts[0]["timeout"] == 2.5

    @pytest.mark.parametrize(
        "http",
        [
            FakeHttp(error=requests.exceptions.ConnectionError("connection refused")),
            FakeHttp(error=requests.exceptions.Timeout("read timed out")),
            FakeHttp(FakeResponse(status_code=502, body={})),
            FakeHttp(FakeResponse(bad_json=True)),
            FakeHttp(FakeResponse(body={"id": "cs_1"})),
            FakeHttp(FakeResponse(body=["not", "an", "object"])),
        ],
        ids=["connection", "timeout", "http_502", "bad_json", "missing_url", "not_object"],
    )
    def test_failures_are_external_service_errors(self, http, captured_logs):
        provider = HttpPaymentProvider("https://pay.example", "sk_test", http=http)
        with pytest.raises(ExternalServiceFailureError) as exc:
            checkout(provider)
        assert exc.value.code == "EXTERNAL_SERVICE_FAILURE"
        assert any(r["level"] == "ERROR" for r in captured_logs())


def completed_event(**session_overrides):
    request_id = uuid4()
    company_id = uuid4()
    session = {
        "id": "cs_1",
        "payment_intent": "pi_123",
        "amount_total": 25000,
        "currency": "eur",
        "payment_status": "paid",
        "metadata": {
            "type": "MATCHMAKING_FEE",
            "requestId": str(request_id),
            "companyId": str(company_id),
            "discounted": "true",
        },
    }
    session.update(session_overrides)
    event = {"type": "checkout.session.completed", "data": {"object": session}}
    return event, request_id, company_id


class TestParsePaymentEvent:

    def test_matchmaking_fee_confirmation(self):
        event, request_id, company_id = completed_event()
        confirmation = parse_payment_event(event)
        assert confirmation.payment_id == "pi_123"
        assert confirmation.request_id == request_id
        assert confirmation.company_id == company_id
        assert confirmation.amount_minor == 25000
        assert confirmation.currency == "EUR"
        assert confirmation.discounted

    def test_falls_back_to_session_id(self):
        event, _, _ = completed_event(payment_intent=None)
        assert parse_payment_event(event).payment_id == "cs_1"

    def test_not_discounted_by_default(self):
        event, _, _ = completed_event()
        del event["data"]["object"]["metadata"]["discounted"]
        assert not parse_payment_event(event).discounted

    @pytest.mark.parametrize(
        "event",
        [
            {"type": "invoice.paid", "data": {"object": {}}},
            {"type": "checkout.session.completed", "data": {"object": {"metadata": {}}}},
            {
                "type": "checkout.session.completed",
                "data": {"object": {"metadata": {"type": "SUBSCRIPTION"}}},
            },
            {"type": "checkout.session.completed"},
        ],
        ids=["other_type", "no_metadata", "subscription", "no_data"],
    )
    def test_foreign_events_ignored(self, event):
        assert parse_payment_event(event) is None

    def test_unpaid_session_ignored(self):
        event, _, _ = completed_event(payment_status="unpaid")
        assert parse_payment_event(event) is None

    def test_missing_request_id(self):
        event, _, _ = completed_event()
        del event["data"]["object"]["metadata"]["requestId"]
        with pytest.raises(ValidationFailedError) as exc:
            parse_payment_event(event)
        assert exc.value.field == "metadata.requestId"

    def test_malformed_company_id(self):
        event, _, _ = completed_event()
        event["data"]["object"]["metadata"]["companyId"] = "acme"
        with pytest.raises(ValidationFailedError, match="companyId"):
            parse_payment_event(event)

    def test_missing_payment_id(self):
        event, _, _ = completed_event(payment_intent=None, id=None)
        with pytest.raises(ValidationFailedError, match="no payment id"):
            parse_payment_event(event)
