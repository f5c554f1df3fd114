"""
Timesheet Domain Models (``bench_modules.timesheets.models``).

Responsibility
--------------
Frozen value objects for weekly timesheets, their per-day entries, entry
input, and the per-contract hours summary.

Invariants enforced
-------------------
* ``week_start`` is a Monday and ``week_end`` the following Sunday.
* Every entry date falls inside the sheet's week.
* Hours use ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TimesheetStatus(str, Enum):
    """Timesheet lifecycle states."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class TimesheetEntryInput:
    """Hours worked on one day, as submitted by the vendor."""
    work_date: date
    hours: Decimal
    description: str | None = None


@dataclass(frozen=True)
class TimesheetEntry:
    id: UUID
    timesheet_id: UUID
    work_date: date
    hours: Decimal
    description: str | None = None


@dataclass(frozen=True)
class Timesheet:
    """One ISO week of hours logged against a contract."""
    id: UUID
    contract_id: UUID
    request_id: UUID
    client_company_id: UUID
    vendor_company_id: UUID
    week_start: date
    week_end: date
    total_hours: Decimal
    status: TimesheetStatus
    notes: str | None = None
    rejection_reason: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    entries: tuple[TimesheetEntry, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.week_start.weekday() != 0:
            raise ValueError(f"Timesheet {self.id} week does not start on a Monday")
        for entry in self.entries:
            if not (self.week_start <= entry.work_date <= self.week_end):
                raise ValueError(
                    f"Timesheet {self.id} has an entry outside its week: {entry.work_date}"
                )


@dataclass(frozen=True)
class HoursSummary:
    """Hours logged on a contract by approval state.

    ``pending`` counts submitted sheets awaiting the client; drafts only
    count towards ``total``.
    """
    total: Decimal
    approved: Decimal
    pending: Decimal
    rejected: Decimal
