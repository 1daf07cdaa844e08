"""Turn domain events into per-recipient notifications."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from notification_service.domain.entities import (
    DomainEvent,
    FanoutEvent,
    FollowerSet,
    Notification,
    NotificationRead,
    NotificationReadAll,
    NotificationTestRequested,
    NotificationType,
    PostCommented,
    PostCreated,
    PostLiked,
    PostMentioned,
    RefModel,
    UnsupportedEvent,
    UserFollowed,
    UserProfileUpdated,
    UserUnfollowed,
    narrow_event,
)

from .content import (
    DEFAULT_TEST_CONTENT,
    comment_message,
    follow_message,
    mention_message,
    new_post_message,
    post_like_message,
    truncate_title,
)
from .relevance import calculate_relevance_score, clamp_score

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 80


class NotificationWriter(Protocol):
    async def persist(self, notification: Notification) -> tuple[Notification, bool]: ...

    async def get_follower_set(self, actor_id: str) -> FollowerSet | None: ...


class NotificationDelivery(Protocol):
    def deliver(self, notification: Notification) -> Any: ...


@dataclass
class _Draft:
    """Fields shared by every notification created for one event."""

    event_type: str
    actor_id: str | None
    target_id: str | None
    occurrence: str
    type: NotificationType
    content: str
    relevance_score: int
    sender: str | None = None
    ref_id: str | None = None
    ref_model: RefModel | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def build(self, recipient: str) -> Notification:
        return Notification(
            id=None,
            recipient=recipient,
            sender=self.sender,
            type=self.type,
            ref_id=self.ref_id,
            ref_model=self.ref_model,
            content=self.content,
            relevance_score=self.relevance_score,
            metadata=dict(self.metadata),
            dedup_key=build_dedup_key(
                self.event_type, self.actor_id, self.target_id, self.occurrence, recipient
            ),
        )


def build_dedup_key(
    event_type: str,
    actor_id: str | None,
    target_id: str | None,
    occurrence: str,
    recipient: str,
) -> str:
    """Return the idempotency key for one recipient of one event.

    ``occurrence`` is :attr:`DomainEvent.occurrence`, which a redelivered
    message reproduces, so it maps to the same key and the store returns the
    existing record instead of a duplicate.
    """

    raw = "|".join([event_type, actor_id or "", target_id or "", occurrence, recipient])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class FanoutEngine:
    """Create and hand off the notifications caused by a domain event."""

    def __init__(
        self,
        store: NotificationWriter,
        delivery: NotificationDelivery | None = None,
    ) -> None:
        self._store = store
        self._delivery = delivery

    async def handle(self, event: DomainEvent) -> list[Notification]:
        """Process ``event`` and return the notifications created for it.

        Raises :class:`InvalidEventError` if the event lacks required fields.
        """

        return await self.handle_typed(
            narrow_event(event), event_type=event.event_type, occurrence=event.occurrence
        )

    async def handle_typed(
        self, event: FanoutEvent, *, event_type: str, occurrence: str
    ) -> list[Notification]:
        if isinstance(event, UserFollowed):
            return await self._on_follow(event, event_type, occurrence)
        if isinstance(event, (UserUnfollowed, UserProfileUpdated)):
            logger.debug("No notification for %s", event_type)
            return []
        if isinstance(event, PostCreated):
            return await self._on_post_created(event, event_type, occurrence)
        if isinstance(event, PostLiked):
            return await self._on_post_liked(event, event_type, occurrence)
        if isinstance(event, PostCommented):
            return await self._on_post_commented(event, event_type, occurrence)
        if isinstance(event, PostMentioned):
            return await self._on_post_mentioned(event, event_type, occurrence)
        if isinstance(event, (NotificationRead, NotificationReadAll)):
            logger.debug("%s is handled by the query API; ignoring", event_type)
            return []
        if isinstance(event, NotificationTestRequested):
            return await self._on_test(event, event_type, occurrence)
        if isinstance(event, UnsupportedEvent):
            logger.info("No handler for event type %s", event.event_type)
            return []
        raise TypeError(f"Unhandled fan-out event {type(event).__name__}")

    async def _on_follow(
        self, event: UserFollowed, event_type: str, occurrence: str
    ) -> list[Notification]:
        logger.info("User %s followed %s", event.actor_id, event.followed_id)
        draft = _Draft(
            event_type=event_type,
            actor_id=event.actor_id,
            target_id=event.followed_id,
            occurrence=occurrence,
            type=NotificationType.FOLLOW,
            content=follow_message(event.actor_display_name),
            relevance_score=calculate_relevance_score(event_type),
            sender=event.actor_id,
            ref_id=event.actor_id,
            ref_model=RefModel.USER,
        )
        return await self._create_for(draft, [event.followed_id])

    async def _on_post_created(
        self, event: PostCreated, event_type: str, occurrence: str
    ) -> list[Notification]:
        followers = await self._store.get_follower_set(event.actor_id)
        if followers is None:
            logger.info("User %s not found, cannot notify followers", event.actor_id)
            return []
        if followers.is_empty:
            logger.info("User %s has no followers to notify", event.actor_id)
            return []

        actor_name = event.actor_display_name or followers.display_name
        draft = _Draft(
            event_type=event_type,
            actor_id=event.actor_id,
            target_id=event.post_id,
            occurrence=occurrence,
            type=NotificationType.NEW_POST,
            content=new_post_message(actor_name, event.title),
            relevance_score=calculate_relevance_score(event_type),
            sender=event.actor_id,
            ref_id=event.post_id,
            ref_model=RefModel.POST,
        )
        created = await self._create_for(draft, followers.follower_ids)
        logger.info(
            "Notified %d of %d followers of %s about post %s",
            len(created),
            len(followers),
            event.actor_id,
            event.post_id,
        )
        return created

    async def _on_post_liked(
        self, event: PostLiked, event_type: str, occurrence: str
    ) -> list[Notification]:
        if event.author_id == event.actor_id:
            logger.debug("Ignoring self-like on post %s", event.post_id)
            return []
        draft = _Draft(
            event_type=event_type,
            actor_id=event.actor_id,
            target_id=event.post_id,
            occurrence=occurrence,
            type=NotificationType.POST_LIKE,
            content=post_like_message(event.actor_display_name, event.title),
            relevance_score=calculate_relevance_score(event_type),
            sender=event.actor_id,
            ref_id=event.post_id,
            ref_model=RefModel.POST,
        )
        return await self._create_for(draft, [event.author_id])

    async def _on_post_commented(
        self, event: PostCommented, event_type: str, occurrence: str
    ) -> list[Notification]:
        if event.author_id == event.actor_id:
            logger.debug("Ignoring self-comment on post %s", event.post_id)
            return []
        metadata: dict[str, Any] = {}
        if event.comment_id:
            metadata["commentId"] = event.comment_id
        if event.comment_text:
            metadata["commentPreview"] = truncate_title(
                event.comment_text, COMMENT_PREVIEW_LENGTH
            )
        draft = _Draft(
            event_type=event_type,
            actor_id=event.actor_id,
            target_id=event.post_id,
            occurrence=occurrence,
            type=NotificationType.COMMENT,
            content=comment_message(event.actor_display_name, event.title),
            relevance_score=calculate_relevance_score(event_type),
            sender=event.actor_id,
            ref_id=event.post_id,
            ref_model=RefModel.POST,
            metadata=metadata,
        )
        return await self._create_for(draft, [event.author_id])

    async def _on_post_mentioned(
        self, event: PostMentioned, event_type: str, occurrence: str
    ) -> list[Notification]:
        recipients = [user_id for user_id in event.mentioned_ids if user_id != event.actor_id]
        if not recipients:
            return []
        draft = _Draft(
            event_type=event_type,
            actor_id=event.actor_id,
            target_id=event.post_id,
            occurrence=occurrence,
            type=NotificationType.MENTION,
            content=mention_message(event.actor_display_name, event.title),
            relevance_score=calculate_relevance_score(event_type),
            sender=event.actor_id,
            ref_id=event.post_id,
            ref_model=RefModel.POST,
        )
        return await self._create_for(draft, recipients)

    async def _on_test(
        self, event: NotificationTestRequested, event_type: str, occurrence: str
    ) -> list[Notification]:
        metadata: dict[str, Any] = {}
        if event.target_id:
            metadata["targetId"] = event.target_id
        draft = _Draft(
            event_type=event_type,
            actor_id=event.sender,
            target_id=event.target_id,
            occurrence=occurrence,
            type=NotificationType.TEST,
            content=event.content or DEFAULT_TEST_CONTENT,
            relevance_score=clamp_score(event.relevance_score),
            sender=event.sender,
            metadata=metadata,
        )
        return await self._create_for(draft, [event.recipient])

    async def _create_for(self, draft: _Draft, recipients: Sequence[str]) -> list[Notification]:
        created: list[Notification] = []
        for recipient in recipients:
            notification = await self._create_one(draft, recipient)
            if notification is not None:
                created.append(notification)
        return created

    async def _create_one(self, draft: _Draft, recipient: str) -> Notification | None:
        try:
            stored, is_new = await self._store.persist(draft.build(recipient))
        except Exception:
            logger.exception(
                "Failed to create %s notification for %s", draft.type.value, recipient
            )
            return None

        if not is_new:
            logger.info(
                "Notification %s for %s already exists; skipping redelivered event",
                stored.id,
                recipient,
            )
            return None

        logger.info("Created %s notification %s for %s", stored.type.value, stored.id, recipient)
        if self._delivery is not None:
            try:
                self._delivery.deliver(stored)
            except Exception:
                logger.exception("Failed to schedule delivery of notification %s", stored.id)
        return stored


__all__ = ["FanoutEngine", "NotificationDelivery", "NotificationWriter", "build_dedup_key"]
