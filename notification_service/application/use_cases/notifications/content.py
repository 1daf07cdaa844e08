"""Human readable notification messages."""

from __future__ import annotations

TITLE_MAX_LENGTH = 30
ELLIPSIS = "..."
DEFAULT_ACTOR_NAME = "Someone"
DEFAULT_TEST_CONTENT = "Test notification from the event bus"


def truncate_title(title: str | None, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Shorten ``title`` to ``max_length`` characters followed by an ellipsis.

    Applying the function to its own output returns it unchanged.
    """

    if not title:
        return ""
    if len(title) <= max_length:
        return title
    return title[:max_length] + ELLIPSIS


def follow_message(actor_name: str | None) -> str:
    return f"{actor_name or DEFAULT_ACTOR_NAME} started following you"


def new_post_message(actor_name: str | None, title: str | None) -> str:
    return f'{actor_name or DEFAULT_ACTOR_NAME} published a new post: "{truncate_title(title)}"'


def post_like_message(actor_name: str | None, title: str | None) -> str:
    return f'{actor_name or DEFAULT_ACTOR_NAME} liked your post "{truncate_title(title)}"'


def comment_message(actor_name: str | None, title: str | None) -> str:
    return f'{actor_name or DEFAULT_ACTOR_NAME} commented on your post "{truncate_title(title)}"'


def mention_message(actor_name: str | None, title: str | None) -> str:
    return f'{actor_name or DEFAULT_ACTOR_NAME} mentioned you in a post "{truncate_title(title)}"'


__all__ = [
    "DEFAULT_ACTOR_NAME",
    "DEFAULT_TEST_CONTENT",
    "ELLIPSIS",
    "TITLE_MAX_LENGTH",
    "comment_message",
    "follow_message",
    "mention_message",
    "new_post_message",
    "post_like_message",
    "truncate_title",
]
