"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notification_service.domain.entities import Notification
from notification_service.infrastructure.models import NotificationModel
from notification_service.utils import ensure_naive_utc, ensure_utc, utc_now


class NotificationRepository:
    """Provide storage operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: int) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        return self._to_entity(model) if model else None

    def get_by_dedup_key(self, dedup_key: str) -> Notification | None:
        model = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.dedup_key == dedup_key)
            .one_or_none()
        )
        return self._to_entity(model) if model else None

    def list_for_recipient(
        self,
        recipient: str,
        *,
        since_id: int | None = None,
        limit: int | None = 50,
    ) -> Sequence[Notification]:
        """Return notifications for ``recipient`` newest first.

        With ``since_id`` only the records created after that notification's
        position in the ordering are returned, and ``limit`` keeps the oldest
        of them so a caller paging forward from its anchor never skips a
        record. An unknown ``since_id`` (or one that belongs to another
        recipient) is ignored.
        """

        query = self.session.query(NotificationModel).filter(
            NotificationModel.recipient == recipient
        )
        anchor = self.session.get(NotificationModel, since_id) if since_id is not None else None
        if anchor is not None and anchor.recipient == recipient:
            query = query.filter(
                or_(
                    NotificationModel.created_at > anchor.created_at,
                    and_(
                        NotificationModel.created_at == anchor.created_at,
                        NotificationModel.id > anchor.id,
                    ),
                )
            ).order_by(NotificationModel.created_at.asc(), NotificationModel.id.asc())
            if limit is not None:
                query = query.limit(limit)
            return [self._to_entity(model) for model in reversed(query.all())]

        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def count_unread(self, recipient: str) -> int:
        return (
            self.session.query(func.count(NotificationModel.id))
            .filter(NotificationModel.recipient == recipient)
            .filter(NotificationModel.is_read.is_(False))
            .scalar()
            or 0
        )

    def create(self, notification: Notification) -> Notification:
        if notification.id is not None:
            raise ValueError("New notifications must not carry an id")
        model = NotificationModel()
        self._apply_entity_to_model(model, notification)
        self.session.add(model)
        if notification.created_at is None:
            # Stamp once the insert holds the write lock so timestamps follow ids.
            self.session.flush()
            model.created_at = ensure_naive_utc(utc_now())
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def create_once(self, notification: Notification) -> tuple[Notification, bool]:
        """Create ``notification`` unless one with the same dedup key exists.

        Returns the stored entity and whether it was created by this call.
        """

        if notification.dedup_key:
            existing = self.get_by_dedup_key(notification.dedup_key)
            if existing is not None:
                return existing, False
        try:
            return self.create(notification), True
        except IntegrityError:
            self.session.rollback()
            if not notification.dedup_key:
                raise
            existing = self.get_by_dedup_key(notification.dedup_key)
            if existing is None:
                raise
            return existing, False

    def mark_as_read(
        self, notification_id: int, *, recipient: str | None = None
    ) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        if model is None:
            return None
        if recipient is not None and model.recipient != recipient:
            return None
        if not model.is_read:
            model.is_read = True
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def mark_all_as_read(self, recipient: str) -> int:
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.recipient == recipient,
                NotificationModel.is_read.is_(False),
            )
            .update({NotificationModel.is_read: True}, synchronize_session=False)
        )
        self.session.commit()
        return int(updated or 0)

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.created_at = ensure_naive_utc(notification.created_at or utc_now())
        model.recipient = notification.recipient
        model.sender = notification.sender
        model.type = notification.type.value
        model.ref_id = notification.ref_id
        model.ref_model = notification.ref_model.value if notification.ref_model else None
        model.content = notification.content
        model.is_read = notification.is_read
        model.relevance_score = notification.relevance_score
        model.meta = dict(notification.metadata or {})
        model.dedup_key = notification.dedup_key

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient=model.recipient,
            sender=model.sender,
            type=model.type,
            ref_id=model.ref_id,
            ref_model=model.ref_model,
            content=model.content,
            is_read=bool(model.is_read),
            relevance_score=model.relevance_score,
            metadata=dict(model.meta or {}),
            created_at=ensure_utc(model.created_at),
            dedup_key=model.dedup_key,
        )


__all__ = ["NotificationRepository"]
