import uuid
from typing import List, Tuple

import sqlalchemy as sa
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.follow import Follow
from flexbase.db.models.user import User
from flexbase.schemas import UserSummary


class FollowService:
    @staticmethod
    async def toggle(db: AsyncSession, actor: User, target_id: uuid.UUID) -> Tuple[User, bool, int]:
        """Follow ``target_id`` if ``actor`` does not already, unfollow otherwise.

        Returns the target, whether ``actor`` now follows it, and the
        target's follower count after the change.
        """
        target = await db.scalar(sa.select(User).where(User.id == target_id))
        if not target:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")

        if target.id == actor.id:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "You cannot follow yourself")

        removed = await db.execute(
            sa.delete(Follow).where(
                Follow.follower_id == actor.id,
                Follow.followee_id == target.id,
            )
        )

        is_following = not removed.rowcount
        if is_following:
            db.add(Follow(follower_id=actor.id, followee_id=target.id))

        await db.commit()
        return target, is_following, await FollowService.followers_count(db, target.id)

    @staticmethod
    async def followers_count(db: AsyncSession, user_id: uuid.UUID) -> int:
        return await db.scalar(
            sa.select(sa.func.count()).select_from(Follow).where(Follow.followee_id == user_id)
        ) or 0

    @staticmethod
    async def following_count(db: AsyncSession, user_id: uuid.UUID) -> int:
        return await db.scalar(
            sa.select(sa.func.count()).select_from(Follow).where(Follow.follower_id == user_id)
        ) or 0

    @staticmethod
    async def follower_ids(db: AsyncSession, user_id: uuid.UUID) -> List[uuid.UUID]:
        result = await db.scalars(sa.select(Follow.follower_id).where(Follow.followee_id == user_id))
        return list(result)

    @staticmethod
    async def following_ids(db: AsyncSession, user_id: uuid.UUID) -> List[uuid.UUID]:
        result = await db.scalars(sa.select(Follow.followee_id).where(Follow.follower_id == user_id))
        return list(result)

    @staticmethod
    async def followers(db: AsyncSession, user_id: uuid.UUID) -> List[UserSummary]:
        result = await db.scalars(
            sa.select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.followee_id == user_id)
            .order_by(Follow.created_at)
        )
        return [UserSummary.model_validate(u) for u in result]

    @staticmethod
    async def following(db: AsyncSession, user_id: uuid.UUID) -> List[UserSummary]:
        result = await db.scalars(
            sa.select(User)
            .join(Follow, Follow.followee_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(Follow.created_at)
        )
        return [UserSummary.model_validate(u) for u in result]
