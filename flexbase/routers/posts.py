import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.user import User
from flexbase.db.session import get_db
from flexbase.schemas import CamelModel, Pagination
from flexbase.services.auth_service import AuthService
from flexbase.services.follow_service import FollowService
from flexbase.services.notification_service import NotificationService, get_notifier
from flexbase.services.post_service import PostService, parse_tags
from flexbase.services.upload_service import UploadService
from flexbase.utils.types import Visibility

router = APIRouter(prefix="/api/posts", tags=["posts"])


class CommentIn(CamelModel):
    text: str = Field(..., min_length=1, max_length=500)


@router.get("/feed", status_code=status.HTTP_200_OK)
async def get_feed(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    posts = await PostService.feed(db, user, page, limit)
    return {
        "success": True,
        "posts": await PostService.build_views(db, posts, user, with_comments=True),
        "pagination": Pagination(page=page, limit=limit, has_next=len(posts) == limit),
    }


@router.get("/explore", status_code=status.HTTP_200_OK)
async def explore(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    viewer: Optional[User] = Depends(AuthService.get_optional_user),
):
    posts = await PostService.explore(db, page, limit, category=category, brand=brand, search=search)
    return {
        "success": True,
        "posts": await PostService.build_views(db, posts, viewer),
        "pagination": Pagination(page=page, limit=limit, has_next=len(posts) == limit),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post(
    caption: str = Form(..., min_length=1, max_length=1000),
    visibility: Visibility = Form(Visibility.PUBLIC),
    tags: Optional[str] = Form(None),
    user_collection: Optional[uuid.UUID] = Form(None, alias="userCollection"),
    media: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    if media is None or not media.filename:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Media file is required")

    parsed_tags = parse_tags(tags)
    collection = await PostService.resolve_target_collection(db, user, user_collection)

    media_url, media_type = await UploadService.store_media(media)
    try:
        post = await PostService.create(
            db,
            user,
            caption=caption,
            media_url=media_url,
            media_type=media_type,
            visibility=visibility,
            tags=parsed_tags,
            collection=collection,
        )
    except Exception:
        await db.rollback()
        await UploadService.discard_media(media_url)
        raise

    await notifier.new_post(user, post, await FollowService.follower_ids(db, user.id))

    views = await PostService.build_views(db, [post], user)
    return {"success": True, "message": "Post created successfully", "post": views[0]}


@router.get("/{post_id}", status_code=status.HTTP_200_OK)
async def get_post(
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[User] = Depends(AuthService.get_optional_user),
):
    post = await PostService.get_visible(db, post_id, viewer)
    views = await PostService.build_views(db, [post], viewer, with_comments=True)
    return {"success": True, "post": views[0]}


@router.delete("/{post_id}", status_code=status.HTTP_200_OK)
async def delete_post(
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    post = await PostService.get_or_404(db, post_id)
    media_url = post.media_url

    await PostService.delete(db, post, user)
    await UploadService.discard_media(media_url)

    return {"success": True, "message": "Post deleted successfully"}


@router.post("/{post_id}/like", status_code=status.HTTP_200_OK)
async def toggle_like(
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    post = await PostService.get_visible(db, post_id, user)
    is_liked, total_likes = await PostService.toggle_like(db, post, user)

    await notifier.post_liked(post, user, is_liked, total_likes)

    return {"success": True, "isLiked": is_liked, "totalLikes": total_likes}


@router.post("/{post_id}/comment", status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: uuid.UUID,
    body: CommentIn,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    post = await PostService.get_visible(db, post_id, user)
    comment, total_comments = await PostService.add_comment(db, post, user, body.text)

    await notifier.post_commented(post, user, comment, total_comments)

    return {
        "success": True,
        "message": "Comment added successfully",
        "comment": comment,
        "totalComments": total_comments,
    }
