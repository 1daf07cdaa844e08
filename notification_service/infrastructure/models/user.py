"""Read-only mapping of the user tables owned by the user-management service."""

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import relationship

from notification_service.infrastructure.database import Base

user_followers_table = Table(
    "user_followers",
    Base.metadata,
    Column("user_id", String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "follower_id", String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    ),
)


class UserModel(Base):
    """Subset of the user record needed to fan out notifications."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    username = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(120), nullable=False)

    followers = relationship(
        "UserModel",
        secondary=user_followers_table,
        primaryjoin=id == user_followers_table.c.user_id,
        secondaryjoin=id == user_followers_table.c.follower_id,
        lazy="selectin",
        viewonly=True,
    )


__all__ = ["UserModel", "user_followers_table"]
