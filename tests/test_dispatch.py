from unittest.mock import AsyncMock

import pytest

from notification_service.application.use_cases.notifications import (
    SUBSCRIBED_TOPICS,
    EventDispatcher,
    Topic,
)
from notification_service.domain.entities import DomainEvent


@pytest.fixture()
def engine() -> AsyncMock:
    engine = AsyncMock()
    engine.handle.return_value = ["created"]
    return engine


def test_subscribes_to_every_topic() -> None:
    assert SUBSCRIBED_TOPICS == ("user-events", "post-events", "notification-events")
    assert Topic.POST_EVENTS.namespace == "post"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("topic", "event_type"),
    [
        ("user-events", "user.follow"),
        ("post-events", "post.create"),
        ("notification-events", "notification.test"),
    ],
)
async def test_events_reach_the_engine(engine: AsyncMock, topic: str, event_type: str) -> None:
    event = DomainEvent(event_type=event_type, actor_id="a", target_id="b")

    result = await EventDispatcher(engine).dispatch(topic, event)

    assert result == ["created"]
    engine.handle.assert_awaited_once_with(event)


@pytest.mark.asyncio
async def test_unknown_topic_is_dropped(engine: AsyncMock) -> None:
    event = DomainEvent(event_type="user.follow", actor_id="a", target_id="b")

    assert await EventDispatcher(engine).dispatch("billing-events", event) == []
    engine.handle.assert_not_awaited()


@pytest.mark.asyncio
async def test_event_on_the_wrong_topic_is_ignored(engine: AsyncMock) -> None:
    event = DomainEvent(event_type="post.create", actor_id="a", target_id="p1")

    assert await EventDispatcher(engine).dispatch("user-events", event) == []
    engine.handle.assert_not_awaited()
