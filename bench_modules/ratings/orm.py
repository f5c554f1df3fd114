"""Rating ORM Models (``bench_modules.ratings.orm``)."""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bench_kernel.db.base import TrackedBase


class RatingModel(TrackedBase):
    """One company's rating of its counterparty on a completed engagement."""

    __tablename__ = "ratings"

    __table_args__ = (
        UniqueConstraint("request_id", "from_company_id", name="uq_ratings_request_rater"),
        CheckConstraint("score >= 1 AND score <= 5", name="ck_ratings_score"),
        Index("idx_ratings_to_company", "to_company_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("engagement_requests.id"), nullable=False
    )
    from_company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    to_company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from bench_modules.ratings.models import Rating

        return Rating(
            id=self.id,
            request_id=self.request_id,
            from_company_id=self.from_company_id,
            to_company_id=self.to_company_id,
            score=self.score,
            comment=self.comment,
            created_at=self.created_at,
        )
