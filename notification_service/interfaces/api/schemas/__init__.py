from .notification import HealthRead, MarkAllReadResponse, NotificationList, NotificationRead

__all__ = [
    "HealthRead",
    "MarkAllReadResponse",
    "NotificationList",
    "NotificationRead",
]
