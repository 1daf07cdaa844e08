"""Wire representation of notifications shared by push, poll and audit."""

from __future__ import annotations

from typing import Any

from notification_service.domain.entities import Notification
from notification_service.utils import isoformat_utc


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the JSON payload describing ``notification``."""

    return {
        "id": notification.id,
        "recipient": notification.recipient,
        "sender": notification.sender,
        "type": notification.type.value,
        "refId": notification.ref_id,
        "refModel": notification.ref_model.value if notification.ref_model else None,
        "content": notification.content,
        "isRead": notification.is_read,
        "relevanceScore": notification.relevance_score,
        "metadata": dict(notification.metadata or {}),
        "createdAt": isoformat_utc(notification.created_at),
    }


def room_for(recipient: str) -> str:
    """Realtime channel that only ``recipient``'s sessions join."""

    return f"user:{recipient}"


__all__ = ["room_for", "serialize_notification"]
