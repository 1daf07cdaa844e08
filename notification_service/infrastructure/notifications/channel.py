"""Push stored notifications to connected clients through the realtime transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Set

import socketio
from socketio.exceptions import SocketIOError

from notification_service.config import Settings
from notification_service.domain.entities import DomainEvent, Notification
from notification_service.infrastructure.connection_state import ConnectionStateMachine
from notification_service.infrastructure.messaging.producer import EventProducer

from .serialization import room_for, serialize_notification

logger = logging.getLogger(__name__)

AUDIT_TOPIC = "notification-events"
AUDIT_EVENT_TYPE = "notification.created"
CONNECT_TIMEOUT_SECONDS = 20
TRANSPORTS = ["websocket", "polling"]

_TRANSPORT_ERRORS = (SocketIOError, OSError, asyncio.TimeoutError)


class DeliveryChannelManager:
    """Own the outbound realtime connection and deliver notifications over it.

    Delivery never raises into the caller: a notification exists once it is
    persisted, and clients that miss the push recover it by polling.
    """

    def __init__(
        self,
        settings: Settings,
        producer: EventProducer | None = None,
        *,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings
        self._producer = producer
        self._client = (client_factory or _default_client)()
        self.state = ConnectionStateMachine("realtime-channel")
        self._connection_task: asyncio.Task | None = None
        self._tasks: Set[asyncio.Task] = set()
        self._register_handlers()

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    def _register_handlers(self) -> None:
        self._client.on("connect", self._on_connect)
        self._client.on("disconnect", self._on_disconnect)
        self._client.on("connect_error", self._on_connect_error)
        self._client.on("welcome", self._on_welcome)
        self._client.on("notificationReceived", self._on_receipt)
        self._client.on("notificationError", self._on_delivery_error)

    async def start(self) -> None:
        if self._connection_task is None:
            self._connection_task = asyncio.create_task(
                self._connection_loop(), name="realtime-channel-connection"
            )

    async def stop(self) -> None:
        """Stop reconnecting, abandon pending retries and close the connection."""

        pending = [task for task in (self._connection_task, *self._tasks) if task is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._connection_task = None
        self._tasks.clear()
        try:
            await self._client.disconnect()
        except _TRANSPORT_ERRORS as exc:
            logger.debug("Ignoring error while disconnecting: %s", exc)
        self.state.mark_disconnected("shutdown")

    def deliver(self, notification: Notification) -> asyncio.Task:
        """Schedule the push and the audit event for ``notification``."""

        task = asyncio.create_task(
            self._deliver(notification), name=f"deliver-notification-{notification.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, notification: Notification) -> None:
        results = await asyncio.gather(
            self.emit_notification(notification),
            self.publish_audit(notification),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    "Unexpected error delivering notification %s",
                    notification.id,
                    exc_info=result,
                )

    async def emit_notification(self, notification: Notification) -> bool:
        """Emit ``notification`` to its recipient's room with bounded retries."""

        room = room_for(notification.recipient)
        message = {"room": room, "data": serialize_notification(notification)}
        retries_left = self._settings.delivery_max_attempts

        while True:
            if self.state.is_connected:
                try:
                    await self._client.emit("notification", message)
                except _TRANSPORT_ERRORS as exc:
                    logger.warning("Emit of notification %s failed: %s", notification.id, exc)
                else:
                    logger.info("Notification %s sent to room %s", notification.id, room)
                    return True

            if retries_left <= 0:
                logger.error(
                    "Failed to deliver notification %s to %s - realtime transport disconnected",
                    notification.id,
                    room,
                )
                return False
            logger.info(
                "Realtime transport not connected, retrying in %.1fs (%d attempts left)",
                self._settings.delivery_retry_interval,
                retries_left,
            )
            retries_left -= 1
            await asyncio.sleep(self._settings.delivery_retry_interval)

    async def publish_audit(self, notification: Notification) -> bool:
        """Republish ``notification.created`` on the event bus."""

        if self._producer is None:
            return False
        event = build_audit_event(notification)
        sent = await self._producer.send_event(
            AUDIT_TOPIC, event, retries=self._settings.audit_max_attempts
        )
        if sent:
            logger.info("Audit event sent for notification %s", notification.id)
        else:
            logger.error("Failed to send audit event for notification %s", notification.id)
        return sent

    async def _connection_loop(self) -> None:
        url = self._settings.websocket_server_url
        while True:
            await self.state.wait_disconnected()
            self.state.begin_connecting()
            logger.info("Connecting to realtime transport at %s", url)
            try:
                await self._client.connect(
                    url, transports=TRANSPORTS, wait_timeout=CONNECT_TIMEOUT_SECONDS
                )
            except _TRANSPORT_ERRORS as exc:
                logger.error("Error connecting to realtime transport: %s", exc)
                self.state.mark_disconnected(str(exc))
                await asyncio.sleep(self._settings.socket_reconnect_interval)
                continue
            self.state.mark_connected()

    async def _on_connect(self) -> None:
        self.state.mark_connected()

    async def _on_disconnect(self, *args: Any) -> None:
        reason = str(args[0]) if args else "transport closed"
        self.state.mark_disconnected(reason)

    async def _on_connect_error(self, data: Any = None) -> None:
        logger.warning("Realtime transport connect error: %s", data)

    async def _on_welcome(self, data: Any = None) -> None:
        message = data.get("message") if isinstance(data, dict) else data
        logger.info("Welcome message from realtime transport: %s", message)

    async def _on_receipt(self, data: Any = None) -> None:
        logger.debug("Notification receipt acknowledged: %s", data)

    async def _on_delivery_error(self, data: Any = None) -> None:
        error = data.get("error") if isinstance(data, dict) else data
        logger.error("Realtime transport failed to deliver a notification: %s", error)


def build_audit_event(notification: Notification) -> DomainEvent:
    """Describe a newly created notification for decoupled consumers."""

    return DomainEvent(
        event_type=AUDIT_EVENT_TYPE,
        actor_id="system",
        target_id=str(notification.id) if notification.id is not None else None,
        target_type="Notification",
        payload={
            "notificationType": notification.type.value,
            "recipientId": notification.recipient,
            "senderId": notification.sender,
            "content": notification.content,
            "relevanceScore": notification.relevance_score,
        },
    )


def _default_client() -> socketio.AsyncClient:
    return socketio.AsyncClient(reconnection=False)


__all__ = ["AUDIT_EVENT_TYPE", "AUDIT_TOPIC", "DeliveryChannelManager", "build_audit_event"]
