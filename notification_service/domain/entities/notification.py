"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from notification_service.domain.exceptions import InvalidNotificationError

MIN_RELEVANCE_SCORE = 0
MAX_RELEVANCE_SCORE = 100


class NotificationType(str, Enum):
    """Closed set of notification kinds."""

    FOLLOW = "follow"
    NEW_POST = "new_post"
    POST_LIKE = "post_like"
    COMMENT = "comment"
    MENTION = "mention"
    SYSTEM = "system"
    TEST = "test"


class RefModel(str, Enum):
    """Kinds of entity a notification may point at."""

    POST = "Post"
    USER = "User"
    COMMENT = "Comment"


@dataclass
class Notification:
    """Information message delivered to a specific user.

    ``created_at`` cannot change once set and ``is_read`` can only move from
    ``False`` to ``True``.
    """

    id: int | None
    recipient: str
    type: NotificationType
    content: str
    sender: str | None = None
    ref_id: str | None = None
    ref_model: RefModel | None = None
    is_read: bool = False
    relevance_score: int = 50
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    dedup_key: str | None = None

    def __post_init__(self) -> None:
        if not self.recipient:
            raise InvalidNotificationError("Notification recipient is required")
        try:
            self.type = NotificationType(self.type)
        except ValueError as exc:
            raise InvalidNotificationError(f"Unknown notification type {self.type!r}") from exc
        if self.ref_model is not None:
            try:
                self.ref_model = RefModel(self.ref_model)
            except ValueError as exc:
                raise InvalidNotificationError(
                    f"Unknown reference model {self.ref_model!r}"
                ) from exc
        if (self.ref_id is None) != (self.ref_model is None):
            raise InvalidNotificationError("ref_id and ref_model must be set together")
        if not MIN_RELEVANCE_SCORE <= self.relevance_score <= MAX_RELEVANCE_SCORE:
            raise InvalidNotificationError(
                f"relevance_score must be within [{MIN_RELEVANCE_SCORE}, "
                f"{MAX_RELEVANCE_SCORE}], got {self.relevance_score}"
            )

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "created_at" and getattr(self, "created_at", None) is not None:
            if value != self.created_at:
                raise InvalidNotificationError("created_at is immutable")
        if name == "is_read" and getattr(self, "is_read", False) and not value:
            raise InvalidNotificationError("A read notification cannot become unread")
        super().__setattr__(name, value)

    def mark_read(self) -> None:
        """Flag the notification as read."""

        self.is_read = True


__all__ = [
    "MAX_RELEVANCE_SCORE",
    "MIN_RELEVANCE_SCORE",
    "Notification",
    "NotificationType",
    "RefModel",
]
