"""Repository implementations for infrastructure layer."""

from .notification_repository import NotificationRepository
from .notification_store import NotificationStore
from .user_repository import UserRepository

__all__ = [
    "NotificationRepository",
    "NotificationStore",
    "UserRepository",
]
