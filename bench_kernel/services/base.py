"""
BaseService -- abstract base for lifecycle services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    write-side service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or rollback themselves.  The operation boundary (or
      a test harness) owns commit/rollback, so a multi-step operation such
      as payment confirmation is all-or-nothing.
    - Status checks are made on rows loaded ``FOR UPDATE``; a second
      operation on the same row waits and then re-reads the committed state.
    - Notifications are only queued on the outbox, never delivered here.
"""

from abc import ABC
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bench_kernel.db.base import Base
from bench_kernel.domain.notifications import NotificationOutbox
from bench_kernel.selectors.company_selector import CompanySelector

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC):
    """
    Abstract base class for write-side services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session, outbox: NotificationOutbox | None = None):
        self.session = session
        self.outbox = outbox if outbox is not None else NotificationOutbox()
        self._companies = CompanySelector(session)

    def _load_for_update(
        self,
        model_cls: type[ModelType],
        entity_id: UUID,
    ) -> ModelType | None:
        """Load a row with a row-level lock, refreshing any cached copy."""
        return self.session.execute(
            select(model_cls)
            .where(model_cls.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _notify_company(
        self,
        company_id: UUID,
        title: str,
        message: str,
        link: str | None = None,
        exclude_user_id: UUID | None = None,
    ) -> None:
        """Queue a notification for every user of a company."""
        user_ids = self._companies.user_ids(company_id, exclude_user_id=exclude_user_id)
        self.outbox.add(user_ids, title, message, link)
