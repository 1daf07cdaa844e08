"""Async facade over the synchronous notification and user repositories.

SQLAlchemy sessions are blocking, so every call runs in a worker thread with
its own short-lived session. This keeps slow writes from stalling unrelated
event bus partitions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from anyio import to_thread
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notification_service.domain.entities import FollowerSet, Notification
from notification_service.domain.exceptions import NotificationPersistError

from .notification_repository import NotificationRepository
from .user_repository import UserRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotificationStore:
    """Persist and query notifications from async code."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def persist(self, notification: Notification) -> tuple[Notification, bool]:
        """Store ``notification`` and return ``(stored, created)``.

        Raises :class:`NotificationPersistError` when the write fails.
        """

        try:
            return await self._run(
                lambda session: NotificationRepository(session).create_once(notification)
            )
        except SQLAlchemyError as exc:
            raise NotificationPersistError(
                f"Failed to persist notification for {notification.recipient}: {exc}",
                recipient=notification.recipient,
            ) from exc

    async def get(self, notification_id: int) -> Notification | None:
        return await self._run(lambda session: NotificationRepository(session).get(notification_id))

    async def list_by_recipient(
        self, recipient: str, *, since_id: int | None = None, limit: int | None = 50
    ) -> Sequence[Notification]:
        return await self._run(
            lambda session: NotificationRepository(session).list_for_recipient(
                recipient, since_id=since_id, limit=limit
            )
        )

    async def mark_read(self, notification_id: int, *, recipient: str | None = None) -> bool:
        updated = await self._run(
            lambda session: NotificationRepository(session).mark_as_read(
                notification_id, recipient=recipient
            )
        )
        return updated is not None

    async def mark_all_read(self, recipient: str) -> int:
        return await self._run(
            lambda session: NotificationRepository(session).mark_all_as_read(recipient)
        )

    async def count_unread(self, recipient: str) -> int:
        return await self._run(
            lambda session: NotificationRepository(session).count_unread(recipient)
        )

    async def get_follower_set(self, actor_id: str) -> FollowerSet | None:
        return await self._run(lambda session: UserRepository(session).get_follower_set(actor_id))

    async def _run(self, operation: Callable[[Session], T]) -> T:
        return await to_thread.run_sync(self._in_session, operation)

    def _in_session(self, operation: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            return operation(session)
        finally:
            session.close()


__all__ = ["NotificationStore"]
