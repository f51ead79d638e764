import logging
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import sqlalchemy as sa
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.collection import CollectionItem, UserCollection, append_item
from flexbase.db.models.post import Post
from flexbase.db.models.user import User
from flexbase.schemas import CollectionOut, UserSummary
from flexbase.services.post_service import PostService
from flexbase.services.visibility_service import VisibilityService
from flexbase.utils.types import CollectionCategory

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "category", "is_private")


class CollectionService:
    @staticmethod
    async def get_or_404(db: AsyncSession, collection_id: uuid.UUID) -> UserCollection:
        collection = await db.scalar(sa.select(UserCollection).where(UserCollection.id == collection_id))
        if not collection:
            raise HTTPException(status.HTTP_404_NOT_FOUND, "Collection not found")
        return collection

    @classmethod
    async def get_owned(
        cls,
        db: AsyncSession,
        collection_id: uuid.UUID,
        user: User,
        action: str = "modify",
    ) -> UserCollection:
        collection = await cls.get_or_404(db, collection_id)
        if collection.owner_id != user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, f"Not authorized to {action} this collection")
        return collection

    @classmethod
    async def get_viewable(cls, db: AsyncSession, collection_id: uuid.UUID, viewer: Optional[User]) -> UserCollection:
        collection = await cls.get_or_404(db, collection_id)
        if collection.is_private and (viewer is None or viewer.id != collection.owner_id):
            raise HTTPException(status.HTTP_403_FORBIDDEN, "This collection is private")
        return collection

    @staticmethod
    async def create(
        db: AsyncSession,
        owner: User,
        name: str,
        category: CollectionCategory,
        description: Optional[str] = None,
        is_private: bool = False,
    ) -> UserCollection:
        collection = UserCollection(
            owner_id=owner.id,
            name=name,
            description=description or "",
            category=category.value,
            is_private=is_private,
        )
        db.add(collection)
        await db.commit()
        return collection

    @classmethod
    async def update(cls, db: AsyncSession, collection_id: uuid.UUID, user: User, changes: Dict[str, Any]) -> UserCollection:
        """Apply only the recognised fields present in ``changes``."""
        collection = await cls.get_owned(db, collection_id, user, "update")

        for field in UPDATABLE_FIELDS:
            if field in changes and changes[field] is not None:
                value = changes[field]
                setattr(collection, field, value.value if isinstance(value, CollectionCategory) else value)

        await db.commit()
        await db.refresh(collection)
        return collection

    @classmethod
    async def delete(cls, db: AsyncSession, collection_id: uuid.UUID, user: User) -> None:
        collection = await cls.get_owned(db, collection_id, user, "delete")

        await db.execute(
            sa.update(Post).where(Post.collection_id == collection.id).values(collection_id=None)
        )
        await db.execute(sa.delete(CollectionItem).where(CollectionItem.collection_id == collection.id))
        await db.delete(collection)
        await db.commit()
        logger.info("Collection %s deleted by %s", collection.id, user.id)

    @classmethod
    async def add_post(cls, db: AsyncSession, collection_id: uuid.UUID, post_id: uuid.UUID, user: User) -> None:
        collection = await cls.get_or_404(db, collection_id)
        post = await PostService.get_or_404(db, post_id)

        if collection.owner_id != user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized to modify this collection")

        if post.owner_id != user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Can only add your own posts to collections")

        exists = await db.scalar(
            sa.select(CollectionItem.post_id).where(
                CollectionItem.collection_id == collection.id,
                CollectionItem.post_id == post.id,
            )
        )
        if exists:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Post is already in this collection")

        await append_item(db, collection.id, post.id)
        post.collection_id = collection.id
        await db.commit()

    @classmethod
    async def remove_post(cls, db: AsyncSession, collection_id: uuid.UUID, post_id: uuid.UUID, user: User) -> None:
        collection = await cls.get_or_404(db, collection_id)
        post = await PostService.get_or_404(db, post_id)

        if collection.owner_id != user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized to modify this collection")

        await db.execute(
            sa.delete(CollectionItem).where(
                CollectionItem.collection_id == collection.id,
                CollectionItem.post_id == post.id,
            )
        )
        if post.collection_id == collection.id:
            post.collection_id = None

        await db.commit()

    @staticmethod
    async def list_for_owner(db: AsyncSession, owner_id: uuid.UUID, include_private: bool) -> List[UserCollection]:
        stmt = sa.select(UserCollection).where(UserCollection.owner_id == owner_id)
        if not include_private:
            stmt = stmt.where(UserCollection.is_private.is_(False))

        return list(await db.scalars(stmt.order_by(UserCollection.created_at.desc())))

    @staticmethod
    async def count_for_owner(db: AsyncSession, owner_id: uuid.UUID) -> int:
        return await db.scalar(
            sa.select(sa.func.count()).select_from(UserCollection).where(UserCollection.owner_id == owner_id)
        ) or 0

    @staticmethod
    async def item_ids(db: AsyncSession, collection_id: uuid.UUID) -> List[uuid.UUID]:
        result = await db.scalars(
            sa.select(CollectionItem.post_id)
            .where(CollectionItem.collection_id == collection_id)
            .order_by(CollectionItem.position)
        )
        return list(result)

    @staticmethod
    async def build_views(
        db: AsyncSession,
        collections: Sequence[UserCollection],
        viewer: Optional[User],
    ) -> List[CollectionOut]:
        """Attach owners and the items the viewer is allowed to see, in item order."""
        if not collections:
            return []

        collection_ids = [c.id for c in collections]
        owners = {
            u.id: u for u in await db.scalars(
                sa.select(User).where(User.id.in_({c.owner_id for c in collections}))
            )
        }

        rows = (await db.execute(
            sa.select(CollectionItem.collection_id, Post)
            .join(Post, Post.id == CollectionItem.post_id)
            .where(
                CollectionItem.collection_id.in_(collection_ids),
                VisibilityService.visible_posts_clause(viewer),
            )
            .order_by(CollectionItem.collection_id, CollectionItem.position)
        )).all()

        posts = [post for _, post in rows]
        post_views = {view.id: view for view in await PostService.build_views(db, posts, viewer)}

        items = defaultdict(list)
        for collection_id, post in rows:
            items[collection_id].append(post_views[post.id])

        return [
            CollectionOut(
                id=c.id,
                name=c.name,
                description=c.description,
                category=c.category,
                is_private=c.is_private,
                cover_image=c.cover_image,
                user=UserSummary.model_validate(owners[c.owner_id]),
                items=items[c.id],
                items_count=len(items[c.id]),
                created_at=c.created_at,
                updated_at=c.updated_at,
            )
            for c in collections
        ]
