"""
Contract Domain Models (``bench_modules.contracts.models``).

Responsibility
--------------
Frozen value objects for the 1:1 contract of an engagement and the outcome
of a party's agreement.

Invariants enforced
-------------------
* Both agreement markers set  =>  status is ACCEPTED, ACTIVE, COMPLETED or
  CANCELLED.
* Status ACCEPTED, ACTIVE or COMPLETED  =>  both agreement markers set.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ContractStatus(str, Enum):
    """Contract lifecycle states."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Agreement markers may be set and cleared only while negotiating
AGREEABLE_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.DRAFT,
    ContractStatus.SENT,
})

# Statuses reachable only once both parties agreed
AGREED_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.ACCEPTED,
    ContractStatus.ACTIVE,
    ContractStatus.COMPLETED,
})

# Hours may be logged against a contract in these statuses
WORKABLE_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.ACCEPTED,
    ContractStatus.ACTIVE,
})


@dataclass(frozen=True)
class Contract:
    """The agreed terms of one engagement."""
    id: UUID
    request_id: UUID
    client_company_id: UUID
    vendor_company_id: UUID
    title: str
    terms: str
    hourly_rate: Decimal
    currency: str
    start_date: date
    end_date: date | None
    status: ContractStatus
    client_agreed_at: datetime | None = None
    vendor_agreed_at: datetime | None = None
    sent_at: datetime | None = None
    accepted_at: datetime | None = None
    activated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.both_agreed and self.status in AGREEABLE_STATUSES:
            raise ValueError(
                f"Contract {self.id} is {self.status.value} with both parties agreed"
            )
        if self.status in AGREED_STATUSES and not self.both_agreed:
            raise ValueError(
                f"Contract {self.id} is {self.status.value} without both agreements"
            )

    @property
    def both_agreed(self) -> bool:
        return self.client_agreed_at is not None and self.vendor_agreed_at is not None

    @property
    def is_workable(self) -> bool:
        """True when hours may be logged against this contract."""
        return self.status in WORKABLE_STATUSES and self.both_agreed


@dataclass(frozen=True)
class AgreementOutcome:
    """Result of one party agreeing to a contract."""
    contract: Contract
    newly_agreed: bool
    became_accepted: bool
