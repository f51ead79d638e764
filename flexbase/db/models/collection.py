import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.base import Base
from flexbase.db.models.user import utcnow
from flexbase.utils.types import CollectionCategory


class UserCollection(Base):
    __tablename__ = "collections"

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = sa.Column(sa.String(50), nullable=False)
    description = sa.Column(sa.String(200), nullable=False, default="")
    category = sa.Column(sa.String(16), nullable=False, default=CollectionCategory.OTHER.value, index=True)
    is_private = sa.Column(sa.Boolean, nullable=False, default=False)
    cover_image = sa.Column(sa.String(256), nullable=False, default="")

    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class CollectionItem(Base):
    """Ordered membership of a post in a collection."""

    __tablename__ = "collection_items"

    collection_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("collections.id", ondelete="CASCADE"),
        primary_key=True
    )
    post_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
        index=True
    )

    position = sa.Column(sa.Integer, nullable=False)
    added_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)


async def next_item_position(db: AsyncSession, collection_id: uuid.UUID) -> int:
    last = await db.scalar(
        sa.select(sa.func.max(CollectionItem.position)).where(CollectionItem.collection_id == collection_id)
    )
    return 0 if last is None else last + 1


async def append_item(db: AsyncSession, collection_id: uuid.UUID, post_id: uuid.UUID) -> CollectionItem:
    item = CollectionItem(
        collection_id=collection_id,
        post_id=post_id,
        position=await next_item_position(db, collection_id),
    )
    db.add(item)
    return item
