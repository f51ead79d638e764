import logging
import uuid
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from fastapi import HTTPException, status
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.collection import CollectionItem, UserCollection, append_item
from flexbase.db.models.follow import Follow
from flexbase.db.models.post import Comment, Like, Post, PostTag
from flexbase.db.models.user import User
from flexbase.schemas import CollectionRef, CommentOut, PostOut, TagIn, TagOut, UserSummary
from flexbase.services.visibility_service import VisibilityService
from flexbase.utils.types import MediaType, TagCategory, Visibility

logger = logging.getLogger(__name__)

TAG_LIST = TypeAdapter(List[TagIn])


def parse_tags(raw: Optional[str]) -> List[TagIn]:
    """Parse the JSON-encoded tag array sent alongside a multipart upload."""
    if raw is None or not raw.strip():
        return []

    try:
        return TAG_LIST.validate_json(raw)
    except ValidationError as e:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Tags must be an array of {name, category} objects",
                "errors": [
                    {"field": "tags." + ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ],
            },
        ) from e


def normalize_tags(tags: Optional[Iterable[TagIn]]) -> List[Tuple[str, TagCategory]]:
    normalized = []
    for tag in tags or ():
        name = tag.name.strip()
        if name:
            normalized.append((name, tag.category or TagCategory.GENERAL))
    return normalized


class PostService:
    @staticmethod
    async def get_or_404(db: AsyncSession, post_id: uuid.UUID) -> Post:
        post = await db.scalar(sa.select(Post).where(Post.id == post_id))
        if not post:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Post not found")
        return post

    @classmethod
    async def get_visible(cls, db: AsyncSession, post_id: uuid.UUID, viewer: Optional[User]) -> Post:
        post = await cls.get_or_404(db, post_id)
        # Hidden posts are reported as missing so their existence does not leak.
        if not await VisibilityService.can_view(db, viewer, post):
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Post not found")
        return post

    @staticmethod
    async def resolve_target_collection(
        db: AsyncSession,
        author: User,
        collection_id: Optional[uuid.UUID],
    ) -> Optional[UserCollection]:
        if collection_id is None:
            return None

        collection = await db.scalar(
            sa.select(UserCollection).where(
                UserCollection.id == collection_id,
                UserCollection.owner_id == author.id,
            )
        )
        if not collection:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Collection not found or not owned by user")
        return collection

    @staticmethod
    async def create(
        db: AsyncSession,
        author: User,
        caption: str,
        media_url: str,
        media_type: MediaType,
        visibility: Visibility = Visibility.PUBLIC,
        tags: Optional[Iterable[TagIn]] = None,
        collection: Optional[UserCollection] = None,
    ) -> Post:
        post = Post(
            id=uuid.uuid4(),
            owner_id=author.id,
            caption=caption,
            media_url=media_url,
            media_type=media_type.value,
            visibility=visibility.value,
            collection_id=collection.id if collection else None,
        )
        post.tags = [
            PostTag(position=position, name=name, category=category.value)
            for position, (name, category) in enumerate(normalize_tags(tags))
        ]
        db.add(post)

        if collection is not None:
            # CollectionItem has no relationship to Post, so the post row must exist first.
            await db.flush()
            await append_item(db, collection.id, post.id)

        await db.commit()
        return post

    @staticmethod
    async def likes_count(db: AsyncSession, post_id: uuid.UUID) -> int:
        return await db.scalar(
            sa.select(sa.func.count()).select_from(Like).where(Like.post_id == post_id)
        ) or 0

    @staticmethod
    async def comments_count(db: AsyncSession, post_id: uuid.UUID) -> int:
        return await db.scalar(
            sa.select(sa.func.count()).select_from(Comment).where(Comment.post_id == post_id)
        ) or 0

    @classmethod
    async def toggle_like(cls, db: AsyncSession, post: Post, user: User) -> Tuple[bool, int]:
        """Remove ``user``'s like if present, add it otherwise.

        Each branch is a single-row statement keyed on (post, user), so two
        users liking the same post at once never overwrite each other.
        """
        removed = await db.execute(
            sa.delete(Like).where(Like.post_id == post.id, Like.user_id == user.id)
        )

        if removed.rowcount:
            is_liked = False
        else:
            is_liked = True
            db.add(Like(post_id=post.id, user_id=user.id))
            try:
                await db.flush()
            except IntegrityError:
                # A concurrent request from the same user inserted it first.
                await db.rollback()
                await db.refresh(post)
                await db.refresh(user)

        await db.commit()
        return is_liked, await cls.likes_count(db, post.id)

    @classmethod
    async def add_comment(cls, db: AsyncSession, post: Post, user: User, text: str) -> Tuple[CommentOut, int]:
        comment = Comment(post_id=post.id, user_id=user.id, text=text)
        db.add(comment)
        await db.commit()

        out = CommentOut(
            id=comment.id,
            text=comment.text,
            created_at=comment.created_at,
            user=UserSummary.model_validate(user),
        )
        return out, await cls.comments_count(db, post.id)

    @staticmethod
    async def delete(db: AsyncSession, post: Post, user: User) -> None:
        if post.owner_id != user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized to delete this post")

        await db.execute(sa.delete(CollectionItem).where(CollectionItem.post_id == post.id))
        await db.execute(sa.delete(Like).where(Like.post_id == post.id))
        await db.execute(sa.delete(Comment).where(Comment.post_id == post.id))
        await db.delete(post)
        await db.commit()
        logger.info("Post %s deleted by %s", post.id, user.id)

    @staticmethod
    async def feed(db: AsyncSession, viewer: User, page: int, limit: int) -> List[Post]:
        followed = sa.select(Follow.followee_id).where(Follow.follower_id == viewer.id)
        result = await db.scalars(
            sa.select(Post)
            .where(
                sa.or_(Post.owner_id == viewer.id, Post.owner_id.in_(followed)),
                VisibilityService.visible_posts_clause(viewer),
            )
            .order_by(Post.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result)

    @staticmethod
    async def explore(
        db: AsyncSession,
        page: int,
        limit: int,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Post]:
        stmt = sa.select(Post).where(Post.visibility == Visibility.PUBLIC.value)

        if category:
            stmt = stmt.where(
                sa.exists().where(PostTag.post_id == Post.id, PostTag.name == category)
            )

        if brand:
            stmt = stmt.where(
                sa.exists().where(
                    PostTag.post_id == Post.id,
                    PostTag.category == TagCategory.BRAND.value,
                    sa.func.lower(PostTag.name, type_=sa.String).contains(brand.lower(), autoescape=True),
                )
            )

        if search:
            term = search.lower()
            stmt = stmt.where(
                sa.or_(
                    sa.func.lower(Post.caption, type_=sa.String).contains(term, autoescape=True),
                    sa.exists().where(
                        PostTag.post_id == Post.id,
                        sa.func.lower(PostTag.name, type_=sa.String).contains(term, autoescape=True),
                    ),
                )
            )

        likes = (
            sa.select(sa.func.count())
            .select_from(Like)
            .where(Like.post_id == Post.id)
            .correlate(Post)
            .scalar_subquery()
        )

        result = await db.scalars(
            stmt.order_by(likes.desc(), Post.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result)

    @staticmethod
    async def list_for_owner(
        db: AsyncSession,
        owner_id: uuid.UUID,
        viewer: Optional[User],
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[Post]:
        allowed = await VisibilityService.allowed_for(db, viewer, owner_id)
        stmt = (
            sa.select(Post)
            .where(Post.owner_id == owner_id, Post.visibility.in_([v.value for v in allowed]))
            .order_by(Post.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.offset((page - 1) * limit).limit(limit)

        return list(await db.scalars(stmt))

    @staticmethod
    async def count_for_owner(db: AsyncSession, owner_id: uuid.UUID) -> int:
        return await db.scalar(
            sa.select(sa.func.count()).select_from(Post).where(Post.owner_id == owner_id)
        ) or 0

    @staticmethod
    async def build_views(
        db: AsyncSession,
        posts: Sequence[Post],
        viewer: Optional[User],
        with_comments: bool = False,
    ) -> List[PostOut]:
        """Attach authors, collection refs, counts and the viewer's like state."""
        if not posts:
            return []

        post_ids = [p.id for p in posts]

        owners: Dict[uuid.UUID, User] = {
            u.id: u for u in await db.scalars(sa.select(User).where(User.id.in_({p.owner_id for p in posts})))
        }

        collection_ids = {p.collection_id for p in posts if p.collection_id}
        collections: Dict[uuid.UUID, UserCollection] = {}
        if collection_ids:
            collections = {
                c.id: c for c in await db.scalars(
                    sa.select(UserCollection).where(UserCollection.id.in_(collection_ids))
                )
            }

        like_counts = dict((await db.execute(
            sa.select(Like.post_id, sa.func.count()).where(Like.post_id.in_(post_ids)).group_by(Like.post_id)
        )).all())
        comment_counts = dict((await db.execute(
            sa.select(Comment.post_id, sa.func.count()).where(Comment.post_id.in_(post_ids)).group_by(Comment.post_id)
        )).all())

        liked = set()
        if viewer is not None:
            liked = set(await db.scalars(
                sa.select(Like.post_id).where(Like.post_id.in_(post_ids), Like.user_id == viewer.id)
            ))

        comments = defaultdict(list)
        if with_comments:
            rows = await db.execute(
                sa.select(Comment, User)
                .join(User, Comment.user_id == User.id)
                .where(Comment.post_id.in_(post_ids))
                .order_by(Comment.created_at)
            )
            for comment, author in rows.all():
                comments[comment.post_id].append(CommentOut(
                    id=comment.id,
                    text=comment.text,
                    created_at=comment.created_at,
                    user=UserSummary.model_validate(author),
                ))

        views = []
        for post in posts:
            collection = collections.get(post.collection_id)
            views.append(PostOut(
                id=post.id,
                caption=post.caption,
                media_url=post.media_url,
                media_type=post.media_type,
                visibility=post.visibility,
                tags=[TagOut(name=t.name, category=t.category) for t in post.tags],
                user=UserSummary.model_validate(owners[post.owner_id]),
                user_collection=CollectionRef.model_validate(collection) if collection else None,
                likes_count=like_counts.get(post.id, 0),
                comments_count=comment_counts.get(post.id, 0),
                is_liked=post.id in liked,
                comments=comments[post.id],
                created_at=post.created_at,
                updated_at=post.updated_at,
            ))
        return views
