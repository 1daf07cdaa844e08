"""Integration tests for the notification query endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from notification_service.domain.entities import Notification
from notification_service.infrastructure.database import get_db
from notification_service.infrastructure.repositories import NotificationRepository
from notification_service.utils import utc_now


@pytest.fixture()
def client(session_factory):
    """Return a test client whose requests use the per-test database."""

    from main import create_app

    app = create_app(run_background=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def repository(session) -> NotificationRepository:
    return NotificationRepository(session)


def _create(repository: NotificationRepository, recipient: str = "b", **overrides) -> Notification:
    values = dict(
        id=None,
        recipient=recipient,
        type="post_like",
        content='Ana liked your post "Hi"',
        sender="a",
        ref_id="p1",
        ref_model="Post",
        relevance_score=70,
        created_at=utc_now(),
    )
    values.update(overrides)
    return repository.create(Notification(**values))


def test_list_returns_camel_case_records_and_unread_count(client, repository) -> None:
    start = utc_now()
    older = _create(repository, created_at=start)
    newer = _create(repository, created_at=start + timedelta(seconds=1))
    _create(repository, recipient="c")

    response = client.get("/notifications", params={"userId": "b"})

    assert response.status_code == 200
    body = response.json()
    assert body["unreadCount"] == 2
    assert [item["id"] for item in body["notifications"]] == [newer.id, older.id]
    first = body["notifications"][0]
    assert first["recipient"] == "b"
    assert first["refModel"] == "Post"
    assert first["refId"] == "p1"
    assert first["isRead"] is False
    assert first["relevanceScore"] == 70
    assert first["createdAt"].endswith("Z")


def test_list_since_returns_only_newer_records(client, repository) -> None:
    start = utc_now()
    n1, n2, n3 = (
        _create(repository, created_at=start + timedelta(seconds=i)) for i in range(3)
    )

    first_page = client.get("/notifications", params={"userId": "b"}).json()
    assert [item["id"] for item in first_page["notifications"]] == [n3.id, n2.id, n1.id]

    n4 = _create(repository, created_at=start + timedelta(seconds=3))
    response = client.get("/notifications", params={"userId": "b", "since": n3.id})

    assert [item["id"] for item in response.json()["notifications"]] == [n4.id]


def test_list_requires_a_user(client) -> None:
    assert client.get("/notifications").status_code == 422


def test_mark_read(client, repository) -> None:
    stored = _create(repository)

    response = client.patch(f"/notifications/{stored.id}/read")

    assert response.status_code == 200
    assert response.json()["isRead"] is True
    again = client.patch(f"/notifications/{stored.id}/read")
    assert again.json()["isRead"] is True
    body = client.get("/notifications", params={"userId": "b"}).json()
    assert body["unreadCount"] == 0


def test_mark_read_missing_notification(client) -> None:
    response = client.patch("/notifications/9999/read")

    assert response.status_code == 404
    assert response.json()["detail"] == "Notification not found"


def test_mark_read_rejects_other_recipients(client, repository) -> None:
    stored = _create(repository)

    response = client.patch(f"/notifications/{stored.id}/read", params={"userId": "c"})

    assert response.status_code == 404


def test_mark_all_read(client, repository) -> None:
    _create(repository)
    _create(repository)
    _create(repository, recipient="c")

    response = client.patch("/notifications/read-all", params={"userId": "b"})

    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert client.get("/notifications", params={"userId": "c"}).json()["unreadCount"] == 1


def test_health_reports_connection_state(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "consumer": "stopped",
        "producer": "disconnected",
        "realtime": "disconnected",
    }
