"""Event bus consumer feeding the notification dispatcher.

Each assigned partition gets its own queue and worker task: messages within a
partition are handled one at a time and in order, while different partitions
progress independently. Offsets are committed per message after its handler
has finished, which gives at-least-once processing. When the group revokes a
partition its worker is cancelled and its buffer dropped, so only the new
owner handles those records.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from aiokafka import AIOKafkaConsumer, ConsumerRebalanceListener, TopicPartition
from aiokafka.errors import KafkaError

from notification_service.config import Settings
from notification_service.domain.entities import DomainEvent, decode_event
from notification_service.domain.exceptions import InvalidEventError

from .kafka import build_client_options

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, DomainEvent], Awaitable[Any]]

FETCH_TIMEOUT_MS = 1_000
SESSION_TIMEOUT_MS = 30_000
HEARTBEAT_INTERVAL_MS = 3_000


@dataclass
class _PartitionWorker:
    queue: asyncio.Queue
    task: asyncio.Task


class EventConsumer:
    """Consume the subscribed topics and hand every event to ``handler``."""

    def __init__(
        self,
        settings: Settings,
        handler: EventHandler,
        *,
        topics: Sequence[str],
        consumer_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._settings = settings
        self._handler = handler
        self._topics = tuple(topics)
        self._consumer_factory = consumer_factory or self._default_factory
        self._workers: dict[TopicPartition, _PartitionWorker] = {}
        self._stopping = asyncio.Event()

    def _default_factory(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            group_id=self._settings.kafka_group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
            session_timeout_ms=SESSION_TIMEOUT_MS,
            heartbeat_interval_ms=HEARTBEAT_INTERVAL_MS,
            **build_client_options(self._settings),
        )

    def stop(self) -> None:
        """Stop fetching new messages; in-flight work is abandoned."""

        self._stopping.set()

    async def run(self) -> None:
        """Consume until :meth:`stop` is called, reconnecting on failures.

        A fresh consumer resumes from the group's last committed offsets.
        """

        backoff = self._settings.consumer_backoff_initial
        while not self._stopping.is_set():
            consumer = self._consumer_factory()
            try:
                consumer.subscribe(self._topics, listener=_PartitionRebalanceListener(self))
                await consumer.start()
                logger.info("Subscribed to topics: %s", ", ".join(self._topics))
                backoff = self._settings.consumer_backoff_initial
                await self._consume(consumer)
            except (KafkaError, OSError) as exc:
                logger.error("Event bus consumer error: %s", exc)
            finally:
                await self._stop_workers()
                await self._close(consumer)

            if self._stopping.is_set():
                break
            logger.info("Reconnecting event bus consumer in %.1fs", backoff)
            await self._wait(backoff)
            backoff = min(backoff * 2, self._settings.consumer_backoff_max)
        logger.info("Event bus consumer stopped")

    async def process_record(self, record: Any) -> None:
        """Decode and handle one message. Never raises for bad input or handler errors."""

        try:
            event = decode_event(record.value).with_origin(
                record.topic, record.partition, record.offset
            )
        except InvalidEventError as exc:
            logger.warning(
                "Skipping malformed message %s[%s]@%s: %s",
                record.topic,
                record.partition,
                record.offset,
                exc,
            )
            return

        logger.info("Received %s from %s", event.event_type, record.topic)
        try:
            await self._handler(record.topic, event)
        except InvalidEventError as exc:
            logger.warning("Dropping invalid %s event: %s", event.event_type, exc)
        except Exception:
            logger.exception(
                "Error handling %s from %s[%s]@%s",
                event.event_type,
                record.topic,
                record.partition,
                record.offset,
            )

    async def release_partitions(self, partitions: Iterable[TopicPartition]) -> None:
        """Drop the workers of partitions this consumer no longer owns.

        Buffered records are abandoned without committing; the partition's new
        owner reads them again from the last committed offset.
        """

        released = [
            self._workers.pop(partition) for partition in partitions if partition in self._workers
        ]
        for worker in released:
            worker.task.cancel()
        if released:
            await asyncio.gather(
                *(worker.task for worker in released), return_exceptions=True
            )
            logger.info("Released %d partition workers", len(released))

    async def _consume(self, consumer: Any) -> None:
        while not self._stopping.is_set():
            batches = await consumer.getmany(timeout_ms=FETCH_TIMEOUT_MS)
            for partition, records in batches.items():
                worker = self._worker_for(consumer, partition)
                for record in records:
                    worker.queue.put_nowait(record)
                if worker.queue.qsize() >= self._settings.partition_queue_size:
                    logger.debug(
                        "Pausing %s with %d queued messages", partition, worker.queue.qsize()
                    )
                    consumer.pause(partition)

    def _worker_for(self, consumer: Any, partition: TopicPartition) -> _PartitionWorker:
        worker = self._workers.get(partition)
        if worker is None or worker.task.done():
            queue: asyncio.Queue = asyncio.Queue()
            task = asyncio.create_task(
                self._drain_partition(consumer, partition, queue),
                name=f"partition-{partition.topic}-{partition.partition}",
            )
            worker = _PartitionWorker(queue=queue, task=task)
            self._workers[partition] = worker
        return worker

    async def _drain_partition(
        self, consumer: Any, partition: TopicPartition, queue: asyncio.Queue
    ) -> None:
        while True:
            record = await queue.get()
            try:
                await self.process_record(record)
                await self._commit(consumer, partition, record.offset)
            finally:
                queue.task_done()
            if queue.empty() and partition in consumer.paused():
                consumer.resume(partition)

    async def _commit(self, consumer: Any, partition: TopicPartition, offset: int) -> None:
        try:
            await consumer.commit({partition: offset + 1})
        except KafkaError as exc:
            logger.warning("Failed to commit %s@%s: %s", partition, offset, exc)

    async def _stop_workers(self) -> None:
        await self.release_partitions(list(self._workers))

    async def _close(self, consumer: Any) -> None:
        try:
            await consumer.stop()
        except (KafkaError, OSError) as exc:
            logger.debug("Ignoring error while stopping consumer: %s", exc)

    async def _wait(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


class _PartitionRebalanceListener(ConsumerRebalanceListener):
    def __init__(self, owner: EventConsumer) -> None:
        self._owner = owner

    async def on_partitions_revoked(self, revoked) -> None:
        await self._owner.release_partitions(revoked)

    async def on_partitions_assigned(self, assigned) -> None:
        logger.info(
            "Assigned partitions: %s",
            ", ".join(f"{tp.topic}[{tp.partition}]" for tp in assigned),
        )


__all__ = ["EventConsumer", "EventHandler"]
