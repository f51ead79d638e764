import uuid
from typing import FrozenSet, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.follow import Follow
from flexbase.db.models.post import Post
from flexbase.db.models.user import User
from flexbase.utils.types import Visibility

EVERYTHING = frozenset({Visibility.PUBLIC, Visibility.PRIVATE, Visibility.FOLLOWERS})
FOLLOWER_VIEW = frozenset({Visibility.PUBLIC, Visibility.FOLLOWERS})
PUBLIC_ONLY = frozenset({Visibility.PUBLIC})


def resolve_visibility(
    viewer_id: Optional[uuid.UUID],
    owner_id: uuid.UUID,
    viewer_follows_owner: bool = False,
) -> FrozenSet[Visibility]:
    """Visibility labels a viewer may read on content owned by ``owner_id``.

    ``viewer_id`` is None for anonymous requests.
    """
    if viewer_id is not None and viewer_id == owner_id:
        return EVERYTHING
    if viewer_id is not None and viewer_follows_owner:
        return FOLLOWER_VIEW
    return PUBLIC_ONLY


class VisibilityService:
    @staticmethod
    async def is_follower(db: AsyncSession, follower_id: uuid.UUID, followee_id: uuid.UUID) -> bool:
        found = await db.scalar(
            sa.select(Follow.follower_id).where(
                Follow.follower_id == follower_id,
                Follow.followee_id == followee_id,
            )
        )
        return found is not None

    @classmethod
    async def allowed_for(
        cls,
        db: AsyncSession,
        viewer: Optional[User],
        owner_id: uuid.UUID,
    ) -> FrozenSet[Visibility]:
        if viewer is None:
            return resolve_visibility(None, owner_id)
        if viewer.id == owner_id:
            return resolve_visibility(viewer.id, owner_id)

        follows = await cls.is_follower(db, viewer.id, owner_id)
        return resolve_visibility(viewer.id, owner_id, follows)

    @classmethod
    async def can_view(cls, db: AsyncSession, viewer: Optional[User], post: Post) -> bool:
        allowed = await cls.allowed_for(db, viewer, post.owner_id)
        return post.visibility in allowed

    @staticmethod
    def visible_posts_clause(viewer: Optional[User]) -> sa.ColumnElement[bool]:
        """SQL form of ``resolve_visibility`` for queries spanning many owners."""
        if viewer is None:
            return Post.visibility == Visibility.PUBLIC.value

        followed = sa.select(Follow.followee_id).where(Follow.follower_id == viewer.id)
        return sa.or_(
            Post.visibility == Visibility.PUBLIC.value,
            Post.owner_id == viewer.id,
            sa.and_(
                Post.visibility == Visibility.FOLLOWERS.value,
                Post.owner_id.in_(followed),
            ),
        )
