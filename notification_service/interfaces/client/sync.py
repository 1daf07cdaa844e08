"""Client-side view of one user's notifications.

The realtime connection is the primary channel. Whenever it is down the
client polls the query API for anything newer than the last record it has
seen, and both channels feed the same idempotent :meth:`NotificationSync.merge`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import httpx
import socketio
from socketio.exceptions import SocketIOError

from notification_service.infrastructure.connection_state import ConnectionStateMachine
from notification_service.infrastructure.notifications.serialization import room_for
from notification_service.utils import parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_RECONNECT_INTERVAL = 5.0
HTTP_TIMEOUT_SECONDS = 10.0
POLL_PAGE_SIZE = 50

_TRANSPORT_ERRORS = (SocketIOError, OSError, asyncio.TimeoutError)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class NotificationSync:
    """Keep a local, deduplicated list of ``user_id``'s notifications."""

    def __init__(
        self,
        user_id: str,
        api_base_url: str,
        websocket_url: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
        http_client: httpx.AsyncClient | None = None,
        socket_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.user_id = user_id
        self.websocket_url = websocket_url
        self.poll_interval = poll_interval
        self.reconnect_interval = reconnect_interval
        self.unread_count = 0
        self.state = ConnectionStateMachine(f"client-sync:{user_id}")
        self._records: dict[int, dict[str, Any]] = {}
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=api_base_url, timeout=HTTP_TIMEOUT_SECONDS
        )
        self._socket = (socket_factory or _default_socket)()
        self._poll_task: asyncio.Task | None = None
        self._connection_task: asyncio.Task | None = None
        self._register_handlers()

    @property
    def notifications(self) -> list[dict[str, Any]]:
        """Known notifications, newest first."""

        return sorted(
            self._records.values(),
            key=lambda record: (parse_timestamp(record.get("createdAt")) or _EPOCH, record["id"]),
            reverse=True,
        )

    @property
    def last_seen_id(self) -> int | None:
        records = self.notifications
        return records[0]["id"] if records else None

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def merge(self, records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Merge ``records`` by id and return the ones not seen before.

        Records not addressed to this user, including ones with no
        recipient, are dropped. Applying the same record twice has no further
        effect. A known record can only move from unread to read.
        """

        added: list[dict[str, Any]] = []
        for record in records:
            notification_id = record.get("id")
            if notification_id is None:
                continue
            if record.get("recipient") != self.user_id:
                logger.warning(
                    "Ignoring notification %s addressed to %s",
                    notification_id,
                    record.get("recipient"),
                )
                continue

            known = self._records.get(notification_id)
            if known is None:
                stored = dict(record)
                stored["isRead"] = bool(stored.get("isRead", False))
                self._records[notification_id] = stored
                if not stored["isRead"]:
                    self.unread_count += 1
                added.append(stored)
            elif record.get("isRead") and not known.get("isRead"):
                known["isRead"] = True
                self.unread_count = max(0, self.unread_count - 1)
        return added

    async def start(self) -> None:
        """Load the current list, then connect; polling covers any outage."""

        await self.refresh()
        if self._connection_task is None:
            self._connection_task = asyncio.create_task(
                self._connection_loop(), name=f"client-sync-{self.user_id}"
            )

    async def stop(self) -> None:
        tasks = [task for task in (self._connection_task, self._poll_task) if task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._connection_task = None
        self._poll_task = None
        try:
            await self._socket.disconnect()
        except _TRANSPORT_ERRORS as exc:
            logger.debug("Ignoring error while disconnecting: %s", exc)
        self.state.mark_disconnected("shutdown")
        if self._owns_http:
            await self._http.aclose()

    async def refresh(self) -> list[dict[str, Any]]:
        """Fetch the full list and take the unread total from the server."""

        body = await self._fetch()
        if body is None:
            return []
        added = self.merge(body.get("notifications", []))
        unread = body.get("unreadCount")
        if isinstance(unread, int):
            self.unread_count = unread
        return added

    async def poll_once(self) -> list[dict[str, Any]]:
        """Fetch and merge everything newer than the last record seen.

        Pages forward from the anchor until a short page comes back, so a
        burst larger than one page is still received in full.
        """

        added: list[dict[str, Any]] = []
        while True:
            anchor = self.last_seen_id
            body = await self._fetch(since=anchor, limit=POLL_PAGE_SIZE)
            if body is None:
                break
            page = body.get("notifications", [])
            added.extend(self.merge(page))
            if len(page) < POLL_PAGE_SIZE or self.last_seen_id == anchor:
                break
        if added:
            logger.info("Poll found %d new notifications", len(added))
        return added

    async def mark_read(self, notification_id: int) -> bool:
        try:
            response = await self._http.patch(
                f"/notifications/{notification_id}/read", params={"userId": self.user_id}
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to mark notification %s as read: %s", notification_id, exc)
            return False
        self.merge([response.json()])
        return True

    async def mark_all_read(self) -> int:
        try:
            response = await self._http.patch(
                "/notifications/read-all", params={"userId": self.user_id}
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to mark all notifications as read: %s", exc)
            return 0
        for record in self._records.values():
            record["isRead"] = True
        self.unread_count = 0
        return int(response.json().get("updated", 0))

    def start_polling(self) -> None:
        if self.is_polling:
            return
        logger.info("Realtime connection unavailable, polling every %.0fs", self.poll_interval)
        self._poll_task = asyncio.create_task(
            self._poll_loop(), name=f"client-poll-{self.user_id}"
        )

    def stop_polling(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        self._poll_task = None
        logger.info("Realtime connection available, polling stopped")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll_once()

    async def _fetch(
        self, *, since: int | None = None, limit: int | None = None
    ) -> dict[str, Any] | None:
        params: dict[str, Any] = {"userId": self.user_id}
        if since is not None:
            params["since"] = since
        if limit is not None:
            params["limit"] = limit
        try:
            response = await self._http.get("/notifications", params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch notifications: %s", exc)
            return None
        return response.json()

    async def _connection_loop(self) -> None:
        while True:
            await self.state.wait_disconnected()
            self.state.begin_connecting()
            try:
                await self._socket.connect(self.websocket_url, transports=["websocket", "polling"])
            except _TRANSPORT_ERRORS as exc:
                logger.warning("Realtime connection failed: %s", exc)
                self.state.mark_disconnected(str(exc))
                self.start_polling()
                await asyncio.sleep(self.reconnect_interval)
                continue
            self.state.mark_connected()

    def _register_handlers(self) -> None:
        self._socket.on("connect", self._on_connect)
        self._socket.on("disconnect", self._on_disconnect)
        self._socket.on("connect_error", self._on_connect_error)
        self._socket.on("notification", self._on_notification)
        self._socket.on("welcome", self._on_welcome)
        self._socket.on("joined", self._on_joined)

    async def _on_connect(self) -> None:
        self.state.mark_connected()
        await self._socket.emit("authenticate", self.user_id)
        await self._socket.emit("join", room_for(self.user_id))
        self.stop_polling()

    async def _on_disconnect(self, *args: Any) -> None:
        self.state.mark_disconnected(str(args[0]) if args else "transport closed")
        self.start_polling()

    async def _on_connect_error(self, data: Any = None) -> None:
        logger.warning("Realtime connect error: %s", data)
        self.start_polling()

    async def _on_notification(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.warning("Ignoring malformed realtime notification: %r", payload)
            return
        record = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        self.merge([record])

    async def _on_welcome(self, data: Any = None) -> None:
        logger.debug("Welcome from realtime server: %s", data)

    async def _on_joined(self, data: Any = None) -> None:
        logger.debug("Joined realtime room: %s", data)


def _default_socket() -> socketio.AsyncClient:
    return socketio.AsyncClient(reconnection=False)


__all__ = ["NotificationSync"]
