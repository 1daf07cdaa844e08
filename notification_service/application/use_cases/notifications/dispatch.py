"""Route decoded bus events to the handler that owns their topic."""

from __future__ import annotations

import logging
from enum import Enum

from notification_service.domain.entities import DomainEvent, Notification

from .fanout import FanoutEngine

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Event bus topics this service subscribes to."""

    USER_EVENTS = "user-events"
    POST_EVENTS = "post-events"
    NOTIFICATION_EVENTS = "notification-events"

    @property
    def namespace(self) -> str:
        """Event type prefix accepted on this topic."""

        return _TOPIC_NAMESPACES[self]


_TOPIC_NAMESPACES = {
    Topic.USER_EVENTS: "user",
    Topic.POST_EVENTS: "post",
    Topic.NOTIFICATION_EVENTS: "notification",
}

SUBSCRIBED_TOPICS: tuple[str, ...] = tuple(topic.value for topic in Topic)


class EventDispatcher:
    """Invoke the handler that owns ``topic`` for each incoming event."""

    def __init__(self, engine: FanoutEngine) -> None:
        self._engine = engine

    async def dispatch(self, topic: str, event: DomainEvent) -> list[Notification]:
        try:
            owner = Topic(topic)
        except ValueError:
            logger.warning("Unknown topic %s; dropping %s", topic, event.event_type)
            return []

        if owner is Topic.USER_EVENTS:
            return await self.handle_user_event(event)
        if owner is Topic.POST_EVENTS:
            return await self.handle_post_event(event)
        return await self.handle_notification_event(event)

    async def handle_user_event(self, event: DomainEvent) -> list[Notification]:
        return await self._handle(Topic.USER_EVENTS, event)

    async def handle_post_event(self, event: DomainEvent) -> list[Notification]:
        return await self._handle(Topic.POST_EVENTS, event)

    async def handle_notification_event(self, event: DomainEvent) -> list[Notification]:
        return await self._handle(Topic.NOTIFICATION_EVENTS, event)

    async def _handle(self, topic: Topic, event: DomainEvent) -> list[Notification]:
        if event.namespace != topic.namespace:
            logger.warning(
                "Event %s does not belong on topic %s; ignoring", event.event_type, topic.value
            )
            return []
        logger.debug("Processing %s from %s", event.event_type, topic.value)
        return await self._engine.handle(event)


__all__ = ["EventDispatcher", "SUBSCRIBED_TOPICS", "Topic"]
