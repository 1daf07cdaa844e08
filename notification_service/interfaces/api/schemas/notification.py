"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from notification_service.domain.entities import Notification
from notification_service.utils import isoformat_utc


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotificationRead(_CamelModel):
    """Representation of a notification delivered to the client."""

    id: int
    recipient: str
    sender: str | None = None
    type: str
    ref_id: str | None = None
    ref_model: str | None = None
    content: str
    is_read: bool = False
    relevance_score: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str | None:
        return isoformat_utc(value)

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id or 0,
            recipient=notification.recipient,
            sender=notification.sender,
            type=notification.type.value,
            ref_id=notification.ref_id,
            ref_model=notification.ref_model.value if notification.ref_model else None,
            content=notification.content,
            is_read=notification.is_read,
            relevance_score=notification.relevance_score,
            metadata=dict(notification.metadata or {}),
            created_at=notification.created_at,
        )


class NotificationList(_CamelModel):
    """Page of notifications plus the recipient's unread total."""

    notifications: list[NotificationRead]
    unread_count: int = Field(..., ge=0)


class MarkAllReadResponse(_CamelModel):
    updated: int = Field(..., ge=0)


class HealthRead(_CamelModel):
    status: str
    consumer: str | None = None
    producer: str | None = None
    realtime: str | None = None


__all__ = ["HealthRead", "MarkAllReadResponse", "NotificationList", "NotificationRead"]
