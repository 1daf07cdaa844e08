"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .user import UserModel, user_followers_table

__all__ = [
    "NotificationModel",
    "UserModel",
    "user_followers_table",
]
