import sqlalchemy as sa
from sqlalchemy import event, Connection
from sqlalchemy.orm import Mapper

from flexbase.db.base import Base
from flexbase.db.models.user import utcnow


class Follow(Base):
    """One edge of the follow graph: ``follower_id`` follows ``followee_id``.

    Both ``User.followers`` and ``User.following`` are read from this table,
    so the two sides of a relationship cannot drift apart.
    """

    __tablename__ = "follows"
    __table_args__ = (
        sa.CheckConstraint("follower_id <> followee_id", name="ck_follows_not_self"),
    )

    follower_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )
    followee_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True
    )

    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)


class SelfFollowError(Exception):
    pass


@event.listens_for(Follow, "before_insert")
def prevent_self_follow(_mapper: Mapper, _connection: Connection, target: Follow):
    if target.follower_id == target.followee_id:
        raise SelfFollowError("You cannot follow yourself")
