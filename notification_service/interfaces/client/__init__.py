"""Client-side synchronisation of a user's notifications."""

from .sync import NotificationSync

__all__ = ["NotificationSync"]
