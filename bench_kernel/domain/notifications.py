"""
Notification value objects (``bench_kernel.domain.notifications``).

Services never deliver notifications.  They append ``Notification`` values
to the ``NotificationOutbox`` of the current operation; the operation
boundary hands the outbox to a dispatcher only after the transaction has
committed, and discards it on rollback.  Delivery is best-effort and can
never change committed lifecycle state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID


@dataclass(frozen=True)
class Notification:
    user_id: UUID
    title: str
    message: str
    link: str | None = None


@runtime_checkable
class NotificationSink(Protocol):
    """External in-app notification collaborator."""

    def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        link: str | None = None,
    ) -> None:
        ...


class NotificationOutbox:
    """Notifications queued by one operation, pending commit."""

    def __init__(self) -> None:
        self._pending: list[Notification] = []

    def add(
        self,
        user_ids: list[UUID] | tuple[UUID, ...],
        title: str,
        message: str,
        link: str | None = None,
    ) -> None:
        for user_id in user_ids:
            self._pending.append(Notification(user_id, title, message, link))

    @property
    def pending(self) -> tuple[Notification, ...]:
        return tuple(self._pending)

    def drain(self) -> tuple[Notification, ...]:
        """Return and forget every queued notification."""
        items = tuple(self._pending)
        self._pending.clear()
        return items

    def discard(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)
