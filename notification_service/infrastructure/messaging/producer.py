"""Event bus producer with bounded retries and a background health check."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaConnectionError, KafkaError, KafkaTimeoutError

from notification_service.config import Settings
from notification_service.domain.entities import DomainEvent, encode_event
from notification_service.infrastructure.connection_state import ConnectionStateMachine
from notification_service.utils import isoformat_utc, utc_now

from .kafka import build_client_options

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_KEY = "default-key"
SEND_TIMEOUT_MS = 30_000
CONNECTION_ERROR_RETRY_DELAY = 1.0

_CONNECTION_ERRORS = (KafkaConnectionError, KafkaTimeoutError, asyncio.TimeoutError, OSError)


class EventProducer:
    """Publish :class:`DomainEvent` envelopes and keep the connection alive.

    Sends wait for every in-sync replica to acknowledge (``acks="all"``).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        producer_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings
        self._producer_factory = producer_factory or self._default_factory
        self._producer: Any | None = None
        self._lock = asyncio.Lock()
        self._health_task: asyncio.Task | None = None
        self.state = ConnectionStateMachine("event-producer")

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    def _default_factory(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            acks="all",
            enable_idempotence=True,
            request_timeout_ms=SEND_TIMEOUT_MS,
            **build_client_options(self._settings),
        )

    async def start(self) -> None:
        """Connect once and start the periodic connectivity check."""

        await self.connect()
        if self._health_task is None:
            self._health_task = asyncio.create_task(
                self._health_loop(), name="event-producer-health"
            )

    async def stop(self) -> None:
        if self._health_task is not None:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None
        async with self._lock:
            await self._close_producer()
            self.state.mark_disconnected("shutdown")

    async def connect(self) -> bool:
        """Ensure a started producer exists; returns whether it is connected."""

        async with self._lock:
            if self.state.is_connected:
                return True
            self.state.begin_connecting()
            producer = self._producer_factory()
            try:
                await producer.start()
            except (KafkaError, *_CONNECTION_ERRORS) as exc:
                logger.error("Error connecting event bus producer: %s", exc)
                await _stop_quietly(producer)
                self.state.mark_disconnected(str(exc))
                return False
            self._producer = producer
            self.state.mark_connected()
            return True

    async def send_event(
        self, topic: str, event: DomainEvent, *, retries: int | None = None
    ) -> bool:
        """Publish ``event`` to ``topic``; returns ``False`` once retries run out."""

        attempts_left = self._settings.audit_max_attempts if retries is None else retries
        key = (event.target_id or DEFAULT_MESSAGE_KEY).encode("utf-8")
        value = encode_event(event)

        while True:
            if not self.state.is_connected and not await self.connect():
                if attempts_left <= 0:
                    logger.error(
                        "Giving up on %s for %s: producer not connected", event.event_type, topic
                    )
                    return False
                attempts_left -= 1
                logger.info(
                    "Producer not connected, retrying %s in %.1fs (%d attempts left)",
                    event.event_type,
                    self._settings.producer_reconnect_interval,
                    attempts_left,
                )
                await asyncio.sleep(self._settings.producer_reconnect_interval)
                continue

            producer = self._producer
            try:
                await producer.send_and_wait(
                    topic,
                    value=value,
                    key=key,
                    headers=[
                        ("content-type", b"application/json"),
                        ("event-type", event.event_type.encode("utf-8")),
                        ("timestamp", (isoformat_utc(utc_now()) or "").encode("utf-8")),
                    ],
                )
            except _CONNECTION_ERRORS as exc:
                logger.warning("Connection error sending %s to %s: %s", event.event_type, topic, exc)
                await self._handle_connection_loss(producer, str(exc))
                if attempts_left <= 0:
                    logger.error("Failed to send %s to %s after retries", event.event_type, topic)
                    return False
                attempts_left -= 1
                await asyncio.sleep(CONNECTION_ERROR_RETRY_DELAY)
                continue
            except KafkaError as exc:
                logger.error("Error sending %s to %s: %s", event.event_type, topic, exc)
                return False

            logger.debug("Event sent to %s: %s", topic, event.event_type)
            return True

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.producer_health_interval)
            if self.state.is_connected:
                continue
            logger.info("Background producer connection check: reconnecting")
            await self.connect()

    async def _handle_connection_loss(self, producer: Any, reason: str) -> None:
        async with self._lock:
            if self._producer is producer:
                await self._close_producer()
                self.state.mark_disconnected(reason)

    async def _close_producer(self) -> None:
        producer, self._producer = self._producer, None
        if producer is not None:
            await _stop_quietly(producer)


async def _stop_quietly(producer: Any) -> None:
    try:
        await producer.stop()
    except (KafkaError, *_CONNECTION_ERRORS) as exc:
        logger.debug("Ignoring error while stopping producer: %s", exc)


__all__ = ["DEFAULT_MESSAGE_KEY", "EventProducer"]
