"""
bench_services.notification_dispatcher -- post-commit notification delivery.

Responsibility:
    Hands the notifications an operation queued to a ``NotificationSink``
    once the operation's transaction has committed.

Invariants enforced:
    - Best effort: a failing sink is logged and skipped.  Delivery never
      raises into the operation and never touches lifecycle state.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from bench_kernel.db.engine import session_scope
from bench_kernel.domain.notifications import Notification, NotificationSink
from bench_kernel.logging_config import get_logger
from bench_kernel.models.notification import NotificationRecord

logger = get_logger("services.notification_dispatcher")


@dataclass(frozen=True)
class DispatchReport:
    delivered: int = 0
    failed: int = 0


class NotificationDispatcher:
    """Delivers queued notifications through a sink."""

    def __init__(self, sink: NotificationSink):
        self._sink = sink

    def dispatch(self, notifications: Iterable[Notification]) -> DispatchReport:
        delivered = failed = 0
        for n in notifications:
            try:
                self._sink.notify(n.user_id, n.title, n.message, n.link)
                delivered += 1
            except Exception:
                # Delivery is best effort; the operation has already committed
                failed += 1
                logger.warning(
                    "notification_delivery_failed",
                    extra={"user_id": str(n.user_id), "title": n.title},
                    exc_info=True,
                )
        if delivered or failed:
            logger.info(
                "notifications_dispatched",
                extra={"delivered": delivered, "failed": failed},
            )
        return DispatchReport(delivered=delivered, failed=failed)


class DatabaseNotificationSink:
    """Writes in-app notification rows, one short transaction per message."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None:
        with session_scope(self._session_factory) as session:
            session.add(
                NotificationRecord(user_id=user_id, title=title, message=message, link=link)
            )


class LoggingNotificationSink:
    """Sink for local runs: every notification becomes a log line."""

    def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None:
        logger.info(
            "notification",
            extra={"user_id": str(user_id), "title": title, "body": message, "link": link},
        )
