"""Domain entities exposed by the application."""

from .domain_event import DomainEvent, decode_event, encode_event
from .fanout_events import (
    FanoutEvent,
    NotificationRead,
    NotificationReadAll,
    NotificationTestRequested,
    PostCommented,
    PostCreated,
    PostLiked,
    PostMentioned,
    UnsupportedEvent,
    UserFollowed,
    UserProfileUpdated,
    UserUnfollowed,
    narrow_event,
)
from .follower_set import FollowerSet
from .notification import (
    MAX_RELEVANCE_SCORE,
    MIN_RELEVANCE_SCORE,
    Notification,
    NotificationType,
    RefModel,
)

__all__ = [
    "DomainEvent",
    "decode_event",
    "encode_event",
    "FanoutEvent",
    "NotificationRead",
    "NotificationReadAll",
    "NotificationTestRequested",
    "PostCommented",
    "PostCreated",
    "PostLiked",
    "PostMentioned",
    "UnsupportedEvent",
    "UserFollowed",
    "UserProfileUpdated",
    "UserUnfollowed",
    "narrow_event",
    "FollowerSet",
    "MAX_RELEVANCE_SCORE",
    "MIN_RELEVANCE_SCORE",
    "Notification",
    "NotificationType",
    "RefModel",
]
