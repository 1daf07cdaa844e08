"""Error types raised by the notification core."""

from __future__ import annotations


class NotificationServiceError(Exception):
    """Base class for errors raised by this package."""


class InvalidEventError(NotificationServiceError):
    """An incoming event could not be decoded or lacks required fields."""

    def __init__(self, message: str, *, event_type: str | None = None) -> None:
        super().__init__(message)
        self.event_type = event_type


class InvalidNotificationError(NotificationServiceError, ValueError):
    """A notification violates one of its invariants."""


class NotificationPersistError(NotificationServiceError):
    """The notification store failed to write a record."""

    def __init__(self, message: str, *, recipient: str | None = None) -> None:
        super().__init__(message)
        self.recipient = recipient


__all__ = [
    "InvalidEventError",
    "InvalidNotificationError",
    "NotificationPersistError",
    "NotificationServiceError",
]
