"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Normalize ``value`` so it is expressed in UTC.

    Naive values are assumed to already be UTC, which is how they are stored
    in the database.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_naive_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC but without ``tzinfo``.

    SQLite ``DATETIME`` columns drop the offset, so the database layer stores
    naive UTC values and the domain layer keeps working with aware ones.
    """

    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.replace(tzinfo=None)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""

    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def isoformat_utc(value: datetime | None) -> str | None:
    """Return an ISO-8601 string with a ``Z`` suffix for ``value``."""

    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")
