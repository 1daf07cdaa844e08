"""Event bus clients."""

from .consumer import EventConsumer
from .producer import DEFAULT_MESSAGE_KEY, EventProducer

__all__ = ["DEFAULT_MESSAGE_KEY", "EventConsumer", "EventProducer"]
