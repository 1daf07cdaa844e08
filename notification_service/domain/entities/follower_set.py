"""Read-only view of the users that follow an actor."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FollowerSet:
    """Point-in-time snapshot of an actor's followers."""

    actor_id: str
    display_name: str | None
    follower_ids: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.follower_ids)

    @property
    def is_empty(self) -> bool:
        return not self.follower_ids


__all__ = ["FollowerSet"]
