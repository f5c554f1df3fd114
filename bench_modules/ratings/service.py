"""
Rating Service -- post-engagement ratings between the two companies.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bench_config import PlatformSettings, get_platform_settings
from bench_kernel.domain.actors import ActingCompany, counterparty_of
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.exceptions import (
    AlreadyRatedError,
    InvalidTransitionError,
    ValidationFailedError,
)
from bench_kernel.logging_config import get_logger
from bench_kernel.services.base import BaseService
from bench_modules.engagement_requests.models import RequestStatus
from bench_modules.engagement_requests.service import EngagementRequestService
from bench_modules.ratings.models import MAX_SCORE, MIN_SCORE, CompanyRating, Rating
from bench_modules.ratings.orm import RatingModel

logger = get_logger("modules.ratings.service")


class RatingService(BaseService):

    def __init__(
        self,
        session: Session,
        settings: PlatformSettings | None = None,
        outbox: NotificationOutbox | None = None,
        request_service: EngagementRequestService | None = None,
    ):
        super().__init__(session, outbox)
        self._settings = settings or get_platform_settings()
        self._requests = request_service or EngagementRequestService(
            session, settings=self._settings, outbox=self.outbox
        )

    def _existing(self, request_id: UUID, company_id: UUID) -> RatingModel | None:
        return self.session.execute(
            select(RatingModel).where(
                RatingModel.request_id == request_id,
                RatingModel.from_company_id == company_id,
            )
        ).scalar_one_or_none()

    def rate_counterparty(
        self,
        actor: ActingCompany,
        request_id: UUID,
        score: int,
        comment: str | None = None,
    ) -> Rating:
        """Rate the other party of a completed engagement, once."""
        request, role = self._requests.load_for_party(actor, request_id)
        if request.status != RequestStatus.COMPLETED.value:
            raise InvalidTransitionError(
                "Request",
                str(request_id),
                request.status,
                request.status,
                reason="Completed engagement not found",
            )
        if isinstance(score, bool) or not isinstance(score, int):
            raise ValidationFailedError("score", "Score must be a whole number")
        if score < MIN_SCORE:
            raise ValidationFailedError("score", f"Minimum score is {MIN_SCORE}")
        if score > MAX_SCORE:
            raise ValidationFailedError("score", f"Maximum score is {MAX_SCORE}")
        if self._existing(request.id, actor.company_id) is not None:
            raise AlreadyRatedError(str(request_id), str(actor.company_id))

        rated = counterparty_of(role, request.client_company_id, request.vendor_company_id)
        rating = RatingModel(
            request_id=request.id,
            from_company_id=actor.company_id,
            to_company_id=rated,
            score=score,
            comment=(comment or "").strip() or None,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(rating)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise AlreadyRatedError(str(request_id), str(actor.company_id)) from None

        company = self._companies.company_name(actor.company_id)
        self._notify_company(
            rated,
            "New Rating",
            f"{company} rated your engagement {score}/{MAX_SCORE}",
            self._settings.request_link(request.id),
        )
        logger.info(
            "rating_submitted",
            extra={
                "request_id": str(request.id),
                "from_company_id": str(actor.company_id),
                "to_company_id": str(rated),
                "score": score,
            },
        )
        return rating.to_dto()

    def get_ratings(self, actor: ActingCompany, request_id: UUID) -> list[Rating]:
        request, _ = self._requests.load_for_party(actor, request_id)
        rows = self.session.execute(
            select(RatingModel)
            .where(RatingModel.request_id == request.id)
            .order_by(RatingModel.created_at)
        ).scalars()
        return [r.to_dto() for r in rows]

    def company_rating(self, company_id: UUID) -> CompanyRating:
        total, count = self.session.execute(
            select(func.sum(RatingModel.score), func.count(RatingModel.id)).where(
                RatingModel.to_company_id == company_id
            )
        ).one()
        if not count:
            return CompanyRating(average=None, count=0)
        average = (Decimal(int(total)) / Decimal(count)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )
        return CompanyRating(average=average, count=count)
