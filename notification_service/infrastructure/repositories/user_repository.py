"""Read access to the follower graph owned by the user-management service."""

from __future__ import annotations

from sqlalchemy.orm import Session

from notification_service.domain.entities import FollowerSet
from notification_service.infrastructure.models import UserModel, user_followers_table


class UserRepository:
    """Look up follower snapshots for actors."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_display_name(self, user_id: str) -> str | None:
        model = self.session.get(UserModel, user_id)
        return model.display_name if model else None

    def get_follower_set(self, actor_id: str) -> FollowerSet | None:
        """Return the current followers of ``actor_id`` or ``None`` if unknown."""

        actor = self.session.get(UserModel, actor_id)
        if actor is None:
            return None
        rows = (
            self.session.query(user_followers_table.c.follower_id)
            .filter(user_followers_table.c.user_id == actor_id)
            .order_by(user_followers_table.c.follower_id)
            .all()
        )
        return FollowerSet(
            actor_id=actor.id,
            display_name=actor.display_name,
            follower_ids=tuple(row[0] for row in rows),
        )


__all__ = ["UserRepository"]
