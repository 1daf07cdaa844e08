"""Delivery channel tests with a fake socket.io client."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from socketio.exceptions import BadNamespaceError, ConnectionError as SocketConnectionError

from notification_service.domain.entities import Notification
from notification_service.infrastructure.connection_state import ConnectionState
from notification_service.infrastructure.notifications import (
    AUDIT_TOPIC,
    DeliveryChannelManager,
)


def _fake_socket() -> MagicMock:
    fake = MagicMock()
    fake.connect = AsyncMock()
    fake.emit = AsyncMock()
    fake.disconnect = AsyncMock()
    return fake


def _handlers(fake: MagicMock) -> dict:
    return {call.args[0]: call.args[1] for call in fake.on.call_args_list}


def _connect(channel: DeliveryChannelManager) -> None:
    channel.state.begin_connecting()
    channel.state.mark_connected()


@pytest.fixture()
def socket() -> MagicMock:
    return _fake_socket()


@pytest.fixture()
def producer() -> AsyncMock:
    producer = AsyncMock()
    producer.send_event.return_value = True
    return producer


@pytest.fixture()
def channel(settings, producer, socket) -> DeliveryChannelManager:
    return DeliveryChannelManager(settings, producer, client_factory=lambda: socket)


@pytest.fixture()
def recorded_sleeps(monkeypatch) -> list:
    original_sleep = asyncio.sleep
    delays: list[float] = []

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await original_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


def _notification(**overrides) -> Notification:
    values = dict(id=7, recipient="b", type="follow", content="Ana started following you")
    values.update(overrides)
    return Notification(**values)


@pytest.mark.asyncio
async def test_emits_to_the_recipient_room_when_connected(channel, socket) -> None:
    _connect(channel)

    assert await channel.emit_notification(_notification()) is True

    event, message = socket.emit.await_args.args
    assert event == "notification"
    assert message["room"] == "user:b"
    assert message["data"]["id"] == 7
    assert message["data"]["recipient"] == "b"
    assert message["data"]["isRead"] is False


@pytest.mark.asyncio
async def test_disconnected_delivery_is_abandoned_after_five_retries(
    channel, socket, store, recorded_sleeps, caplog
) -> None:
    stored, _ = await store.persist(_notification(id=None))
    recorded_sleeps.clear()

    delivered = await channel.emit_notification(stored)

    assert delivered is False
    assert recorded_sleeps == [1.0] * 5
    socket.emit.assert_not_awaited()
    assert "Failed to deliver notification" in caplog.text
    assert [n.id for n in await store.list_by_recipient("b")] == [stored.id]


@pytest.mark.asyncio
async def test_delivery_resumes_once_the_transport_reconnects(
    channel, socket, monkeypatch
) -> None:
    delays = []

    async def reconnect_while_waiting(delay, *args, **kwargs):
        delays.append(delay)
        _connect(channel)

    monkeypatch.setattr(asyncio, "sleep", reconnect_while_waiting)

    assert await channel.emit_notification(_notification()) is True
    assert delays == [1.0]
    socket.emit.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_emit_takes_the_retry_path(channel, socket, recorded_sleeps) -> None:
    _connect(channel)
    socket.emit.side_effect = [BadNamespaceError("/ is not a connected namespace."), None]

    assert await channel.emit_notification(_notification()) is True
    assert socket.emit.await_count == 2
    assert recorded_sleeps == [1.0]


@pytest.mark.asyncio
async def test_audit_event_describes_the_notification(channel, producer) -> None:
    assert await channel.publish_audit(_notification(sender="a")) is True

    topic, event = producer.send_event.await_args.args
    assert topic == AUDIT_TOPIC
    assert event.event_type == "notification.created"
    assert event.actor_id == "system"
    assert event.target_id == "7"
    assert event.target_type == "Notification"
    assert event.payload == {
        "notificationType": "follow",
        "recipientId": "b",
        "senderId": "a",
        "content": "Ana started following you",
        "relevanceScore": 50,
    }
    assert producer.send_event.await_args.kwargs == {"retries": 5}


@pytest.mark.asyncio
async def test_deliver_runs_push_and_audit_in_the_background(channel, socket, producer) -> None:
    _connect(channel)

    task = channel.deliver(_notification())
    await task

    socket.emit.assert_awaited_once()
    producer.send_event.assert_awaited_once()


@pytest.mark.asyncio
async def test_deliver_logs_unexpected_failures(channel, producer, caplog) -> None:
    _connect(channel)
    producer.send_event.side_effect = RuntimeError("boom")

    await channel.deliver(_notification())

    assert "Unexpected error delivering notification 7" in caplog.text


@pytest.mark.asyncio
async def test_connection_loop_retries_until_connected(channel, socket) -> None:
    socket.connect.side_effect = [SocketConnectionError("refused"), None]

    await channel.start()
    for _ in range(200):
        if channel.is_connected:
            break
        await asyncio.sleep(0.01)

    assert channel.is_connected
    assert socket.connect.await_count == 2

    await channel.stop()
    socket.disconnect.assert_awaited_once()
    assert channel.state.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_disconnect_event_marks_the_channel_disconnected(channel, socket) -> None:
    _connect(channel)

    await _handlers(socket)["disconnect"]("transport close")

    assert channel.state.state is ConnectionState.DISCONNECTED
