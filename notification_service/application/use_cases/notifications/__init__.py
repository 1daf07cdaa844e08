"""Use cases that create and route notifications."""

from .content import truncate_title
from .dispatch import SUBSCRIBED_TOPICS, EventDispatcher, Topic
from .fanout import FanoutEngine, build_dedup_key
from .relevance import calculate_relevance_score, clamp_score

__all__ = [
    "EventDispatcher",
    "FanoutEngine",
    "SUBSCRIBED_TOPICS",
    "Topic",
    "build_dedup_key",
    "calculate_relevance_score",
    "clamp_score",
    "truncate_title",
]
