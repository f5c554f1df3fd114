"""
Rating Domain Models (``bench_modules.ratings.models``).

After an engagement completes, each party may rate the other once.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

MIN_SCORE = 1
MAX_SCORE = 5


@dataclass(frozen=True)
class Rating:
    id: UUID
    request_id: UUID
    from_company_id: UUID
    to_company_id: UUID
    score: int
    comment: str | None = None
    created_at: datetime | None = None

    def __post_init__(self):
        if not (MIN_SCORE <= self.score <= MAX_SCORE):
            raise ValueError(f"Rating score out of range: {self.score}")


@dataclass(frozen=True)
class CompanyRating:
    """Average received score (one decimal place), or None when unrated."""
    average: Decimal | None
    count: int
