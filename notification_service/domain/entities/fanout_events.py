"""Typed variants of the domain events handled by the fan-out engine.

:func:`narrow_event` converts the open :class:`DomainEvent` envelope into one
of the dataclasses below. Adding a supported event type means adding a
variant here and a branch in the fan-out engine, which raises on any variant
it does not know.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Union

from notification_service.domain.exceptions import InvalidEventError

from .domain_event import DomainEvent


@dataclass(frozen=True)
class UserFollowed:
    actor_id: str
    followed_id: str
    actor_display_name: str | None
    timestamp: datetime


@dataclass(frozen=True)
class UserUnfollowed:
    actor_id: str
    target_id: str | None


@dataclass(frozen=True)
class UserProfileUpdated:
    actor_id: str


@dataclass(frozen=True)
class PostCreated:
    actor_id: str
    post_id: str
    title: str | None
    actor_display_name: str | None
    timestamp: datetime


@dataclass(frozen=True)
class PostLiked:
    actor_id: str
    post_id: str
    author_id: str
    title: str | None
    actor_display_name: str | None
    timestamp: datetime


@dataclass(frozen=True)
class PostCommented:
    actor_id: str
    post_id: str
    author_id: str
    title: str | None
    comment_id: str | None
    comment_text: str | None
    actor_display_name: str | None
    timestamp: datetime


@dataclass(frozen=True)
class PostMentioned:
    actor_id: str
    post_id: str
    mentioned_ids: tuple[str, ...]
    title: str | None
    actor_display_name: str | None
    timestamp: datetime


@dataclass(frozen=True)
class NotificationRead:
    notification_id: str | None


@dataclass(frozen=True)
class NotificationReadAll:
    recipient: str | None


@dataclass(frozen=True)
class NotificationTestRequested:
    recipient: str
    sender: str | None
    target_id: str | None
    content: str | None
    relevance_score: Any
    timestamp: datetime


@dataclass(frozen=True)
class UnsupportedEvent:
    """An event type this service does not act on."""

    event_type: str


FanoutEvent = Union[
    UserFollowed,
    UserUnfollowed,
    UserProfileUpdated,
    PostCreated,
    PostLiked,
    PostCommented,
    PostMentioned,
    NotificationRead,
    NotificationReadAll,
    NotificationTestRequested,
    UnsupportedEvent,
]


def narrow_event(event: DomainEvent) -> FanoutEvent:
    """Validate ``event`` and convert it into its typed variant.

    Raises :class:`InvalidEventError` when a supported event lacks a
    required field.
    """

    builder = _BUILDERS.get(event.event_type)
    if builder is None:
        return UnsupportedEvent(event_type=event.event_type)
    return builder(event)


def _required(event: DomainEvent, value: Any, name: str) -> str:
    text = _text(value)
    if text is None:
        raise InvalidEventError(
            f"{event.event_type} event is missing '{name}'", event_type=event.event_type
        )
    return text


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _display_name(payload: Mapping[str, Any]) -> str | None:
    return _text(payload.get("actorDisplayName"))


def _title(payload: Mapping[str, Any]) -> str | None:
    value = payload.get("postTitle")
    return value if isinstance(value, str) else None


def _build_follow(event: DomainEvent) -> UserFollowed:
    return UserFollowed(
        actor_id=_required(event, event.actor_id, "actorId"),
        followed_id=_required(event, event.target_id, "targetId"),
        actor_display_name=_display_name(event.payload),
        timestamp=event.timestamp,
    )


def _build_unfollow(event: DomainEvent) -> UserUnfollowed:
    return UserUnfollowed(
        actor_id=_required(event, event.actor_id, "actorId"),
        target_id=event.target_id,
    )


def _build_profile_update(event: DomainEvent) -> UserProfileUpdated:
    return UserProfileUpdated(actor_id=_required(event, event.actor_id, "actorId"))


def _build_post_create(event: DomainEvent) -> PostCreated:
    return PostCreated(
        actor_id=_required(event, event.actor_id, "actorId"),
        post_id=_required(event, event.target_id, "targetId"),
        title=_title(event.payload),
        actor_display_name=_display_name(event.payload),
        timestamp=event.timestamp,
    )


def _build_post_like(event: DomainEvent) -> PostLiked:
    return PostLiked(
        actor_id=_required(event, event.actor_id, "actorId"),
        post_id=_required(event, event.target_id, "targetId"),
        author_id=_required(event, event.payload.get("postAuthorId"), "payload.postAuthorId"),
        title=_title(event.payload),
        actor_display_name=_display_name(event.payload),
        timestamp=event.timestamp,
    )


def _build_post_comment(event: DomainEvent) -> PostCommented:
    comment_text = event.payload.get("commentText")
    return PostCommented(
        actor_id=_required(event, event.actor_id, "actorId"),
        post_id=_required(event, event.target_id, "targetId"),
        author_id=_required(event, event.payload.get("postAuthorId"), "payload.postAuthorId"),
        title=_title(event.payload),
        comment_id=_text(event.payload.get("commentId")),
        comment_text=comment_text if isinstance(comment_text, str) else None,
        actor_display_name=_display_name(event.payload),
        timestamp=event.timestamp,
    )


def _build_post_mention(event: DomainEvent) -> PostMentioned:
    raw_ids = event.payload.get("mentionedUserIds")
    if not isinstance(raw_ids, (list, tuple)):
        raise InvalidEventError(
            "post.mention event is missing 'payload.mentionedUserIds'",
            event_type=event.event_type,
        )
    mentioned: list[str] = []
    for raw_id in raw_ids:
        user_id = _text(raw_id)
        if user_id and user_id not in mentioned:
            mentioned.append(user_id)
    return PostMentioned(
        actor_id=_required(event, event.actor_id, "actorId"),
        post_id=_required(event, event.target_id, "targetId"),
        mentioned_ids=tuple(mentioned),
        title=_title(event.payload),
        actor_display_name=_display_name(event.payload),
        timestamp=event.timestamp,
    )


def _build_read(event: DomainEvent) -> NotificationRead:
    return NotificationRead(notification_id=event.target_id)


def _build_read_all(event: DomainEvent) -> NotificationReadAll:
    return NotificationReadAll(recipient=event.actor_id)


def _build_test(event: DomainEvent) -> NotificationTestRequested:
    content = event.payload.get("content")
    return NotificationTestRequested(
        recipient=_required(event, event.payload.get("recipient"), "payload.recipient"),
        sender=_text(event.payload.get("sender")),
        target_id=event.target_id,
        content=content if isinstance(content, str) and content.strip() else None,
        relevance_score=event.payload.get("relevanceScore"),
        timestamp=event.timestamp,
    )


_BUILDERS: dict[str, Callable[[DomainEvent], FanoutEvent]] = {
    "user.follow": _build_follow,
    "user.unfollow": _build_unfollow,
    "user.profile.update": _build_profile_update,
    "post.create": _build_post_create,
    "post.like": _build_post_like,
    "post.comment": _build_post_comment,
    "post.mention": _build_post_mention,
    "notification.read": _build_read,
    "notification.read_all": _build_read_all,
    "notification.test": _build_test,
}


__all__ = [
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
]
