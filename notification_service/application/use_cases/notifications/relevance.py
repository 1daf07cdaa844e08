"""Relevance score for notifications."""

from __future__ import annotations

from typing import Any, Mapping

from notification_service.domain.entities import MAX_RELEVANCE_SCORE, MIN_RELEVANCE_SCORE

BASE_SCORE = 50
RECENCY_BONUS = 10

EVENT_TYPE_BONUS: Mapping[str, int] = {
    "user.follow": 20,
    "post.comment": 15,
    "post.like": 10,
    "post.mention": 25,
    "post.create": 5,
}


def calculate_relevance_score(
    event_type: str, payload: Mapping[str, Any] | None = None
) -> int:
    """Return the relevance score for an event of ``event_type``.

    Every event is scored when it is processed, so the recency bonus is
    always applied. ``payload`` is accepted for future signals and does not
    affect the result today.
    """

    score = BASE_SCORE + EVENT_TYPE_BONUS.get(event_type, 0) + RECENCY_BONUS
    return clamp_score(score)


def clamp_score(value: Any, *, default: int = BASE_SCORE) -> int:
    """Coerce ``value`` into an integer score within the allowed range."""

    if isinstance(value, bool):
        return default
    try:
        score = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return min(MAX_RELEVANCE_SCORE, max(MIN_RELEVANCE_SCORE, score))


__all__ = [
    "BASE_SCORE",
    "EVENT_TYPE_BONUS",
    "RECENCY_BONUS",
    "calculate_relevance_score",
    "clamp_score",
]
