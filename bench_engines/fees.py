"""
Finalization fee engine (``bench_engines.fees``).

Picks the matchmaking fee a client pays to finalize an engagement: the
standard fee, or the founding-member fee while the client is a founding
member with credits left.  Pure; the gateway supplies company state and
platform settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from bench_engines.amounts import round_currency, to_minor_units
from bench_engines.tracer import traced_engine


@dataclass(frozen=True)
class FeeQuote:
    amount: Decimal
    currency: str
    discounted: bool

    @property
    def amount_minor(self) -> int:
        """Amount in minor units (cents) as payment providers expect it."""
        return to_minor_units(self.amount, self.currency)


@traced_engine(
    "finalization_fee",
    "1.0",
    fingerprint_fields=("is_founding_member", "founding_deals_remaining"),
)
def select_finalization_fee(
    *,
    standard_fee: Decimal,
    founding_member_fee: Decimal,
    is_founding_member: bool,
    founding_deals_remaining: int,
    currency: str = "EUR",
) -> FeeQuote:
    """Return the fee quote for one finalization."""
    discounted = is_founding_member and founding_deals_remaining > 0
    amount = founding_member_fee if discounted else standard_fee
    return FeeQuote(
        amount=round_currency(amount, currency),
        currency=currency,
        discounted=discounted,
    )
