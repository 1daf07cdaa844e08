"""Realtime delivery helpers for the infrastructure layer."""

from .channel import AUDIT_EVENT_TYPE, AUDIT_TOPIC, DeliveryChannelManager, build_audit_event
from .serialization import room_for, serialize_notification

__all__ = [
    "AUDIT_EVENT_TYPE",
    "AUDIT_TOPIC",
    "DeliveryChannelManager",
    "build_audit_event",
    "room_for",
    "serialize_notification",
]
