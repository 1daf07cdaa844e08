"""Domain event envelope exchanged over the event bus."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping

from notification_service.domain.exceptions import InvalidEventError
from notification_service.utils import isoformat_utc, parse_timestamp, utc_now


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened elsewhere in the system.

    Events have no identity beyond their position in the stream. The
    ``payload`` is an open map because producers are external and evolve
    independently; it is narrowed into typed fields by
    :func:`notification_service.domain.entities.fanout_events.narrow_event`.
    """

    event_type: str
    actor_id: str | None = None
    target_id: str | None = None
    target_type: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    timestamp_inferred: bool = field(default=False, compare=False)
    origin: str | None = field(default=None, compare=False)

    @property
    def namespace(self) -> str:
        """Return the leading segment of ``event_type`` (``post`` for ``post.create``)."""

        return self.event_type.split(".", 1)[0]

    @property
    def occurrence(self) -> str:
        """Identify this occurrence of the event across redeliveries.

        The producer's timestamp when the envelope carried one, otherwise the
        bus position the message was read from.
        """

        if self.timestamp_inferred and self.origin:
            return self.origin
        return isoformat_utc(self.timestamp) or ""

    def with_origin(self, topic: str, partition: int, offset: int) -> "DomainEvent":
        return replace(self, origin=f"{topic}:{partition}:{offset}")

    @classmethod
    def from_envelope(cls, envelope: Mapping[str, Any]) -> "DomainEvent":
        """Build an event from its JSON envelope, injecting a timestamp if absent."""

        if not isinstance(envelope, Mapping):
            raise InvalidEventError("Event envelope must be a JSON object")

        event_type = envelope.get("eventType")
        if not isinstance(event_type, str) or not event_type.strip():
            raise InvalidEventError("Event envelope is missing 'eventType'")

        payload = envelope.get("payload") or {}
        if not isinstance(payload, Mapping):
            raise InvalidEventError(
                "Event payload must be a JSON object", event_type=event_type
            )

        timestamp = parse_timestamp(envelope.get("timestamp"))
        return cls(
            event_type=event_type.strip(),
            actor_id=_optional_id(envelope.get("actorId")),
            target_id=_optional_id(envelope.get("targetId")),
            target_type=_optional_id(envelope.get("targetType")),
            payload=dict(payload),
            timestamp=timestamp or utc_now(),
            timestamp_inferred=timestamp is None,
        )

    def to_envelope(self) -> dict[str, Any]:
        """Return the JSON-serializable envelope for this event."""

        return {
            "eventType": self.event_type,
            "actorId": self.actor_id,
            "targetId": self.target_id,
            "targetType": self.target_type,
            "payload": dict(self.payload),
            "timestamp": isoformat_utc(self.timestamp),
        }


def decode_event(raw: bytes | str | None) -> DomainEvent:
    """Decode a raw bus message value into a :class:`DomainEvent`."""

    if raw is None:
        raise InvalidEventError("Message has no value")
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        envelope = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidEventError(f"Message is not valid JSON: {exc}") from exc
    return DomainEvent.from_envelope(envelope)


def encode_event(event: DomainEvent) -> bytes:
    """Serialize ``event`` into the JSON wire format."""

    return json.dumps(event.to_envelope(), default=str).encode("utf-8")


def _optional_id(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = ["DomainEvent", "decode_event", "encode_event"]
