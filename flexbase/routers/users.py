import uuid
from typing import Optional

import sqlalchemy as sa
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.user import User
from flexbase.db.session import get_db
from flexbase.routers.auth import USERNAME_PATTERN
from flexbase.schemas import CamelModel, Pagination, ProfileOut, UserOut, UserSummary
from flexbase.services.auth_service import AuthService
from flexbase.services.collection_service import CollectionService
from flexbase.services.follow_service import FollowService
from flexbase.services.notification_service import NotificationService, get_notifier
from flexbase.services.post_service import PostService
from flexbase.services.visibility_service import VisibilityService

router = APIRouter(prefix="/api/users", tags=["users"])


class ProfileUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    bio: Optional[str] = Field(None, max_length=200)
    is_private: Optional[bool] = None


async def get_user_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.scalar(sa.select(User).where(User.id == user_id))
    if not user:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User not found")
    return user


async def build_profile(db: AsyncSession, user: User, viewer: Optional[User]) -> ProfileOut:
    is_following = False
    if viewer is not None and viewer.id != user.id:
        is_following = await VisibilityService.is_follower(db, viewer.id, user.id)

    followers = await FollowService.followers(db, user.id)
    following = await FollowService.following(db, user.id)

    return ProfileOut(
        **UserOut.model_validate(user).model_dump(),
        followers=followers,
        following=following,
        posts_count=await PostService.count_for_owner(db, user.id),
        collections_count=await CollectionService.count_for_owner(db, user.id),
        followers_count=len(followers),
        following_count=len(following),
        is_following=is_following,
    )


@router.get("/search")
async def search_users(
    q: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    if not q:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Search query is required")

    term = q.lower()
    users = await db.scalars(
        sa.select(User)
        .where(
            sa.or_(
                sa.func.lower(User.username, type_=sa.String).contains(term, autoescape=True),
                sa.func.lower(User.email, type_=sa.String).contains(term, autoescape=True),
            )
        )
        .order_by(User.username)
        .limit(limit)
    )
    return {"success": True, "users": [UserOut.model_validate(u) for u in users]}


@router.put("/profile")
async def update_profile(
    update: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    if update.username and update.username != user.username:
        taken = await db.scalar(sa.select(User.id).where(User.username == update.username))
        if taken:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Username already taken")
        user.username = update.username

    if update.bio is not None:
        user.bio = update.bio

    if update.is_private is not None:
        user.is_private = update.is_private

    await db.commit()
    await db.refresh(user)
    return {"success": True, "message": "Profile updated successfully", "user": UserOut.model_validate(user)}


@router.get("/{user_id}")
async def get_profile(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[User] = Depends(AuthService.get_optional_user),
):
    user = await get_user_or_404(db, user_id)
    return {"success": True, "user": await build_profile(db, user, viewer)}


@router.get("/{user_id}/posts")
async def get_user_posts(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    viewer: Optional[User] = Depends(AuthService.get_optional_user),
):
    user = await get_user_or_404(db, user_id)
    posts = await PostService.list_for_owner(db, user.id, viewer, page, limit)

    return {
        "success": True,
        "posts": await PostService.build_views(db, posts, viewer),
        "pagination": Pagination(page=page, limit=limit, has_next=len(posts) == limit),
    }


@router.get("/{user_id}/collections")
async def get_user_collections(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[User] = Depends(AuthService.get_optional_user),
):
    user = await get_user_or_404(db, user_id)
    include_private = viewer is not None and viewer.id == user.id
    collections = await CollectionService.list_for_owner(db, user.id, include_private)

    return {"success": True, "collections": await CollectionService.build_views(db, collections, viewer)}


@router.post("/{user_id}/follow")
async def toggle_follow(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    target, is_following, followers_count = await FollowService.toggle(db, user, user_id)

    if is_following:
        await notifier.followed(user, target)

    return {
        "success": True,
        "message": "User followed" if is_following else "User unfollowed",
        "isFollowing": is_following,
        "followersCount": followers_count,
        "user": UserSummary.model_validate(target),
    }
