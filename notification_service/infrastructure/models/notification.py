"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text

from notification_service.infrastructure.database import Base
from notification_service.utils import ensure_naive_utc, utc_now


def _naive_utc_now():
    return ensure_naive_utc(utc_now())


class NotificationModel(Base):
    """Database representation for user notifications.

    ``ref_id`` is a weak reference: there is no foreign key because the
    referenced post, user or comment may be deleted later.
    """

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_recipient_created", "recipient", "created_at"),
        Index("ix_notification_recipient_read", "recipient", "is_read", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient = Column(String(64), nullable=False, index=True)
    sender = Column(String(64), nullable=True)
    type = Column(String(20), nullable=False)
    ref_id = Column(String(64), nullable=True)
    ref_model = Column(String(20), nullable=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    relevance_score = Column(Integer, nullable=False, default=50)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(), nullable=False, default=_naive_utc_now)
    dedup_key = Column(String(64), nullable=True, unique=True)


__all__ = ["NotificationModel"]
