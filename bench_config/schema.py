"""
Configuration schema (``bench_config.schema``).

Frozen dataclasses describing the platform settings the lifecycle reads:
finalization fees, founding-member pricing, invoice numbering and terms,
timesheet limits, request validation and the payment provider endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PaymentProviderSettings:
    base_url: str = "https://payments.invalid"
    timeout_seconds: float = 10.0
    success_path: str = "/dashboard/requests/{request_id}?payment=success"
    cancel_path: str = "/dashboard/requests/{request_id}?payment=cancelled"


@dataclass(frozen=True)
class PlatformSettings:
    """Runtime platform settings.

    Invariants:
        - fees are positive and founding_member_fee <= matchmaking_fee
        - 0 < min_weekly_hours <= max_weekly_hours
        - invoice_due_days >= 0
    """

    currency: str = "EUR"
    matchmaking_fee: Decimal = Decimal("500")
    founding_member_fee: Decimal = Decimal("250")
    founding_member_deals: int = 3
    invoice_prefix: str = "INV"
    invoice_sequence_width: int = 5
    invoice_due_days: int = 30
    min_weekly_hours: Decimal = Decimal("0.5")
    max_weekly_hours: Decimal = Decimal("80")
    min_request_message_length: int = 10
    app_base_url: str = "http://localhost:3000"
    payment_provider: PaymentProviderSettings = PaymentProviderSettings()

    def __post_init__(self) -> None:
        if self.matchmaking_fee <= 0 or self.founding_member_fee <= 0:
            raise ValueError("Finalization fees must be positive")
        if self.founding_member_fee > self.matchmaking_fee:
            raise ValueError("founding_member_fee cannot exceed matchmaking_fee")
        if self.founding_member_deals < 0:
            raise ValueError("founding_member_deals cannot be negative")
        if not (Decimal("0") < self.min_weekly_hours <= self.max_weekly_hours):
            raise ValueError("Weekly hour limits are inconsistent")
        if self.invoice_due_days < 0:
            raise ValueError("invoice_due_days cannot be negative")
        if self.invoice_sequence_width < 1:
            raise ValueError("invoice_sequence_width must be at least 1")
        if len(self.currency) != 3:
            raise ValueError(f"Invalid currency code: {self.currency}")

    def request_link(self, request_id) -> str:
        return f"/dashboard/requests/{request_id}"
