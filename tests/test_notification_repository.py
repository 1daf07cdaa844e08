"""Tests for the SQLAlchemy backed notification repository."""

from __future__ import annotations

from datetime import timedelta

import pytest

from notification_service.domain.entities import FollowerSet, Notification
from notification_service.infrastructure.repositories import (
    NotificationRepository,
    UserRepository,
)
from notification_service.utils import utc_now


def _notification(recipient: str = "b", **overrides) -> Notification:
    values = dict(
        id=None,
        recipient=recipient,
        type="new_post",
        content="Ana published a new post",
        sender="a",
        ref_id="p1",
        ref_model="Post",
    )
    values.update(overrides)
    return Notification(**values)


@pytest.fixture()
def repository(session) -> NotificationRepository:
    return NotificationRepository(session)


def test_create_assigns_an_id_and_keeps_fields(repository: NotificationRepository) -> None:
    stored = repository.create(_notification(metadata={"commentId": "c1"}))

    assert stored.id is not None
    assert stored.is_read is False
    assert stored.metadata == {"commentId": "c1"}
    assert stored.created_at.tzinfo is not None
    assert repository.get(stored.id) == stored


def test_create_rejects_entities_with_an_id(repository: NotificationRepository) -> None:
    with pytest.raises(ValueError):
        repository.create(_notification(id=7))


def test_list_is_newest_first_and_scoped_to_recipient(
    repository: NotificationRepository,
) -> None:
    start = utc_now()
    first = repository.create(_notification(created_at=start))
    second = repository.create(_notification(created_at=start + timedelta(seconds=1)))
    repository.create(_notification(recipient="c", created_at=start + timedelta(seconds=2)))

    listed = repository.list_for_recipient("b")

    assert [n.id for n in listed] == [second.id, first.id]


def test_since_returns_only_newer_records(repository: NotificationRepository) -> None:
    start = utc_now()
    n1, n2, n3 = (
        repository.create(_notification(created_at=start + timedelta(seconds=offset)))
        for offset in range(3)
    )

    assert [n.id for n in repository.list_for_recipient("b")] == [n3.id, n2.id, n1.id]
    assert repository.list_for_recipient("b", since_id=n3.id) == []

    n4 = repository.create(_notification(created_at=start + timedelta(seconds=3)))

    assert [n.id for n in repository.list_for_recipient("b", since_id=n3.id)] == [n4.id]
    assert [n.id for n in repository.list_for_recipient("b", since_id=n1.id)] == [
        n4.id,
        n3.id,
        n2.id,
    ]


def test_since_breaks_timestamp_ties_by_id(repository: NotificationRepository) -> None:
    created_at = utc_now()
    first = repository.create(_notification(created_at=created_at))
    second = repository.create(_notification(created_at=created_at))

    assert [n.id for n in repository.list_for_recipient("b", since_id=first.id)] == [second.id]


def test_since_from_another_recipient_is_ignored(repository: NotificationRepository) -> None:
    mine = repository.create(_notification())
    foreign = repository.create(_notification(recipient="c"))

    assert [n.id for n in repository.list_for_recipient("b", since_id=foreign.id)] == [mine.id]


def test_limit_caps_the_page(repository: NotificationRepository) -> None:
    for _ in range(3):
        repository.create(_notification())

    assert len(repository.list_for_recipient("b", limit=2)) == 2


def test_since_with_limit_returns_the_oldest_page_after_the_anchor(
    repository: NotificationRepository,
) -> None:
    start = utc_now()
    anchor, *newer = (
        repository.create(_notification(created_at=start + timedelta(seconds=offset)))
        for offset in range(6)
    )

    page = repository.list_for_recipient("b", since_id=anchor.id, limit=2)
    assert [n.id for n in page] == [newer[1].id, newer[0].id]

    page = repository.list_for_recipient("b", since_id=newer[1].id, limit=2)
    assert [n.id for n in page] == [newer[3].id, newer[2].id]


def test_create_stamps_unset_timestamps_in_id_order(repository: NotificationRepository) -> None:
    first, second, third = (repository.create(_notification()) for _ in range(3))

    assert first.created_at <= second.created_at <= third.created_at
    assert [n.id for n in repository.list_for_recipient("b", since_id=first.id)] == [
        third.id,
        second.id,
    ]


def test_mark_as_read_is_monotonic(repository: NotificationRepository) -> None:
    stored = repository.create(_notification())

    assert repository.mark_as_read(stored.id).is_read is True
    assert repository.mark_as_read(stored.id).is_read is True
    assert repository.get(stored.id).is_read is True
    assert repository.count_unread("b") == 0


def test_mark_as_read_missing_or_foreign(repository: NotificationRepository) -> None:
    stored = repository.create(_notification())

    assert repository.mark_as_read(9999) is None
    assert repository.mark_as_read(stored.id, recipient="c") is None
    assert repository.get(stored.id).is_read is False


def test_mark_all_as_read_counts_updated_rows(repository: NotificationRepository) -> None:
    for _ in range(3):
        repository.create(_notification())
    repository.create(_notification(recipient="c"))

    assert repository.count_unread("b") == 3
    assert repository.mark_all_as_read("b") == 3
    assert repository.mark_all_as_read("b") == 0
    assert repository.count_unread("b") == 0
    assert repository.count_unread("c") == 1


def test_create_once_returns_the_existing_record_for_a_dedup_key(
    repository: NotificationRepository,
) -> None:
    created, is_new = repository.create_once(_notification(dedup_key="k1"))
    again, again_is_new = repository.create_once(_notification(dedup_key="k1"))

    assert is_new is True
    assert again_is_new is False
    assert again.id == created.id
    assert len(repository.list_for_recipient("b")) == 1


def test_follower_set_snapshot(session, add_user) -> None:
    add_user("a", "Ana", followers=("c", "b"))
    add_user("lonely", "Lonely")
    users = UserRepository(session)

    assert users.get_follower_set("a") == FollowerSet("a", "Ana", ("b", "c"))
    assert users.get_follower_set("lonely").is_empty
    assert users.get_follower_set("ghost") is None
    assert users.get_display_name("a") == "Ana"
