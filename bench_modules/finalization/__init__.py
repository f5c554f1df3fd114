"""
Finalization Module.

The matchmaking fee checkout and the consumption of payment
confirmations that turn an accepted offer into a contract.
"""

from bench_modules.finalization.models import (
    MATCHMAKING_FEE,
    CheckoutSession,
    FinalizationOutcome,
    FinalizationStatus,
    PaymentConfirmation,
    PaymentProvider,
)

__all__ = [
    "MATCHMAKING_FEE",
    "CheckoutSession",
    "FinalizationOutcome",
    "FinalizationStatus",
    "PaymentConfirmation",
    "PaymentProvider",
]
