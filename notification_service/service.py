"""Compose the event consumer, fan-out engine and delivery channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session

from notification_service.application.use_cases.notifications import (
    SUBSCRIBED_TOPICS,
    EventDispatcher,
    FanoutEngine,
)
from notification_service.config import Settings
from notification_service.infrastructure.messaging import EventConsumer, EventProducer
from notification_service.infrastructure.notifications import DeliveryChannelManager
from notification_service.infrastructure.repositories import NotificationStore

logger = logging.getLogger(__name__)

CONSUMER_SHUTDOWN_TIMEOUT = 10.0


class NotificationService:
    """Own the background components and their lifecycle.

    Start order is producer, delivery channel, then consumer so that events
    are only pulled once there is somewhere to deliver them. Shutdown runs in
    reverse.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], Session],
        *,
        producer: EventProducer | None = None,
        channel: DeliveryChannelManager | None = None,
        consumer_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.store = NotificationStore(session_factory)
        self.producer = producer or EventProducer(settings)
        self.channel = channel or DeliveryChannelManager(settings, self.producer)
        self.engine = FanoutEngine(self.store, self.channel)
        self.dispatcher = EventDispatcher(self.engine)
        self.consumer = EventConsumer(
            settings,
            self.dispatcher.dispatch,
            topics=SUBSCRIBED_TOPICS,
            consumer_factory=consumer_factory,
        )
        self._consumer_task: asyncio.Task | None = None

    @property
    def consumer_running(self) -> bool:
        return self._consumer_task is not None and not self._consumer_task.done()

    async def start(self) -> None:
        logger.info("Starting notification service")
        await self.producer.start()
        await self.channel.start()
        if self._consumer_task is None:
            self._consumer_task = asyncio.create_task(self.consumer.run(), name="event-consumer")

    async def stop(self) -> None:
        logger.info("Stopping notification service")
        self.consumer.stop()
        if self._consumer_task is not None:
            try:
                await asyncio.wait_for(self._consumer_task, timeout=CONSUMER_SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Event consumer did not stop in time; cancelling")
            self._consumer_task = None
        await self.channel.stop()
        await self.producer.stop()

    def health(self) -> dict[str, Any]:
        """Summarize the state of every outbound connection."""

        return {
            "status": "ok",
            "consumer": "running" if self.consumer_running else "stopped",
            "producer": self.producer.state.state.value,
            "realtime": self.channel.state.state.value,
        }


__all__ = ["NotificationService"]
