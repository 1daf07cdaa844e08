"""Shared fixtures: an isolated in-memory database per test."""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_BACKGROUND_WORKERS", "false")

import pytest
from sqlalchemy.orm import sessionmaker

from notification_service.config import Settings
from notification_service.infrastructure.database import build_engine, initialize_database
from notification_service.infrastructure.models import UserModel, user_followers_table
from notification_service.infrastructure.repositories import NotificationStore


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    initialize_database(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(session_factory) -> NotificationStore:
    return NotificationStore(session_factory)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        delivery_retry_interval=1.0,
        producer_reconnect_interval=0.01,
        producer_health_interval=60.0,
        consumer_backoff_initial=0.01,
        consumer_backoff_max=0.05,
        socket_reconnect_interval=0.01,
    )


@pytest.fixture()
def add_user(session):
    """Insert a user and optionally the users following it."""

    def _add_user(user_id: str, display_name: str, followers: tuple[str, ...] = ()) -> None:
        for user in (user_id, *followers):
            if session.get(UserModel, user) is None:
                session.add(
                    UserModel(
                        id=user,
                        username=user,
                        display_name=display_name if user == user_id else user.title(),
                    )
                )
        session.flush()
        for follower in followers:
            session.execute(
                user_followers_table.insert().values(user_id=user_id, follower_id=follower)
            )
        session.commit()

    return _add_user
