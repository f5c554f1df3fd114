"""Kernel ORM models: companies, listings, notifications, payments."""

from bench_kernel.models.company import Company, CompanyUser
from bench_kernel.models.listing import Listing, ListingStatus
from bench_kernel.models.notification import NotificationRecord
from bench_kernel.models.payment import PaymentOutcome, ProcessedPayment

__all__ = [
    "Company",
    "CompanyUser",
    "Listing",
    "ListingStatus",
    "NotificationRecord",
    "PaymentOutcome",
    "ProcessedPayment",
]
