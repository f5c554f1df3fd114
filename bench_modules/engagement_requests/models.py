"""
Engagement Request Domain Models (``bench_modules.engagement_requests.models``).

Responsibility
--------------
Frozen dataclass value objects for engagement requests: the request itself
with its embedded offer, the messages of its conversation, and the
per-company request counts shown on a dashboard.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``EngagementRequestService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Rates use ``Decimal``.
* An offer is all-or-nothing: offered rate, both offered dates and
  ``offer_sent_at`` are either all present or all absent.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class RequestStatus(str, Enum):
    """Engagement request lifecycle states."""
    PENDING = "PENDING"
    NEGOTIATING = "NEGOTIATING"
    OFFER_SENT = "OFFER_SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.ACCEPTED,
    RequestStatus.IN_PROGRESS,
})

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
    RequestStatus.COMPLETED,
})


@dataclass(frozen=True)
class EngagementRequest:
    """A client's request to engage a vendor's listed developer."""
    id: UUID
    listing_id: UUID
    client_company_id: UUID
    vendor_company_id: UUID
    requested_by_id: UUID
    status: RequestStatus
    start_date: date
    end_date: date | None
    agreed_rate: Decimal
    offered_rate: Decimal | None = None
    offered_start_date: date | None = None
    offered_end_date: date | None = None
    offer_notes: str | None = None
    offer_sent_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        offer_fields = (
            self.offered_rate,
            self.offered_start_date,
            self.offered_end_date,
            self.offer_sent_at,
        )
        present = [f is not None for f in offer_fields]
        if any(present) and not all(present):
            raise ValueError(
                f"Request {self.id} has a partial offer: {offer_fields!r}"
            )

    @property
    def has_offer(self) -> bool:
        return self.offer_sent_at is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUEST_STATUSES


@dataclass(frozen=True)
class Message:
    """A message in a request's conversation; system messages have no sender."""
    id: UUID
    request_id: UUID
    sender_user_id: UUID | None
    content: str
    is_system: bool
    sent_at: datetime


@dataclass(frozen=True)
class RequestCounts:
    """Requests the acting company participates in, by dashboard bucket."""
    all: int
    pending: int
    active: int
    completed: int
