"""Client sync tests against the real query API over an in-process transport."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from notification_service.domain.entities import Notification
from notification_service.infrastructure.database import get_db
from notification_service.infrastructure.repositories import NotificationRepository
from notification_service.interfaces.client import NotificationSync
from notification_service.utils import utc_now


@pytest.fixture()
def api_app(session_factory):
    from main import create_app

    app = create_app(run_background=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest_asyncio.fixture()
async def http_client(api_app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=api_app), base_url="http://testserver"
    ) as client:
        yield client


@pytest.fixture()
def socket() -> MagicMock:
    fake = MagicMock()
    fake.connect = AsyncMock()
    fake.emit = AsyncMock()
    fake.disconnect = AsyncMock()
    return fake


@pytest.fixture()
def sync(http_client, socket) -> NotificationSync:
    return NotificationSync(
        "b",
        "http://testserver",
        "http://realtime",
        http_client=http_client,
        socket_factory=lambda: socket,
    )


def _record(notification_id: int, *, recipient: str = "b", is_read: bool = False) -> dict:
    return {
        "id": notification_id,
        "recipient": recipient,
        "type": "follow",
        "content": "Ana started following you",
        "isRead": is_read,
        "createdAt": f"2024-05-01T10:00:0{notification_id}.000Z",
    }


def _store(session, created_at, recipient: str = "b") -> Notification:
    return NotificationRepository(session).create(
        Notification(
            id=None,
            recipient=recipient,
            type="follow",
            content="Ana started following you",
            sender="a",
            ref_id="a",
            ref_model="User",
            created_at=created_at,
        )
    )


def _handlers(fake: MagicMock) -> dict:
    return {call.args[0]: call.args[1] for call in fake.on.call_args_list}


@pytest.mark.asyncio
async def test_merge_is_idempotent(sync: NotificationSync) -> None:
    assert len(sync.merge([_record(1), _record(2)])) == 2
    assert sync.merge([_record(1), _record(2)]) == []
    assert sync.unread_count == 2
    assert [n["id"] for n in sync.notifications] == [2, 1]


@pytest.mark.asyncio
async def test_merge_only_moves_records_from_unread_to_read(sync: NotificationSync) -> None:
    sync.merge([_record(1)])
    sync.merge([_record(1, is_read=True)])
    sync.merge([_record(1, is_read=False)])

    assert sync.notifications[0]["isRead"] is True
    assert sync.unread_count == 0


@pytest.mark.asyncio
async def test_merge_ignores_other_recipients(sync: NotificationSync, caplog) -> None:
    assert sync.merge([_record(1, recipient="c")]) == []
    assert sync.unread_count == 0
    assert "addressed to c" in caplog.text


@pytest.mark.asyncio
async def test_merge_drops_records_without_a_recipient(sync: NotificationSync) -> None:
    record = _record(1)
    del record["recipient"]

    assert sync.merge([record]) == []
    assert sync.notifications == []
    assert sync.unread_count == 0


@pytest.mark.asyncio
async def test_polling_since_the_newest_record_returns_only_new_ones(
    sync: NotificationSync, session
) -> None:
    start = utc_now()
    n1, n2, n3 = (_store(session, start + timedelta(seconds=i)) for i in range(3))
    _store(session, start, recipient="c")

    await sync.refresh()

    assert [n["id"] for n in sync.notifications] == [n3.id, n2.id, n1.id]
    assert sync.unread_count == 3
    assert sync.last_seen_id == n3.id

    n4 = _store(session, start + timedelta(seconds=3))

    assert [n["id"] for n in await sync.poll_once()] == [n4.id]
    assert await sync.poll_once() == []
    assert sync.unread_count == 4


@pytest.mark.asyncio
async def test_polling_after_a_gap_longer_than_one_page_misses_nothing(
    sync: NotificationSync, session
) -> None:
    start = utc_now()
    anchor = _store(session, start)
    await sync.refresh()
    assert sync.last_seen_id == anchor.id

    burst = [_store(session, start + timedelta(seconds=i)) for i in range(1, 61)]

    added = await sync.poll_once()

    assert sorted(n["id"] for n in added) == [n.id for n in burst]
    assert sync.last_seen_id == burst[-1].id
    assert sync.unread_count == 61
    assert await sync.poll_once() == []


@pytest.mark.asyncio
async def test_mark_read_and_mark_all_read(sync: NotificationSync, session) -> None:
    start = utc_now()
    first, second = (_store(session, start + timedelta(seconds=i)) for i in range(2))
    await sync.refresh()

    assert await sync.mark_read(first.id) is True
    assert sync.unread_count == 1
    assert await sync.mark_read(9999) is False

    assert await sync.mark_all_read() == 1
    assert sync.unread_count == 0
    assert NotificationRepository(session).count_unread("b") == 0


@pytest.mark.asyncio
async def test_realtime_connection_toggles_polling(sync: NotificationSync, socket) -> None:
    handlers = _handlers(socket)

    await handlers["disconnect"]("transport close")
    assert sync.is_polling

    await handlers["connect"]()
    assert not sync.is_polling
    socket.emit.assert_any_await("authenticate", "b")
    socket.emit.assert_any_await("join", "user:b")

    await sync.stop()


@pytest.mark.asyncio
async def test_pushed_notifications_are_merged(sync: NotificationSync, socket) -> None:
    handlers = _handlers(socket)

    await handlers["notification"]({"room": "user:b", "data": _record(5)})
    await handlers["notification"](_record(5))
    await handlers["notification"](_record(6, recipient="c"))

    assert [n["id"] for n in sync.notifications] == [5]
    assert sync.unread_count == 1
