import uuid

import sqlalchemy as sa
from sqlalchemy.orm import relationship

from flexbase.db.base import Base
from flexbase.db.models.user import utcnow
from flexbase.utils.types import MediaType, TagCategory, Visibility


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (
        sa.Index("ix_posts_owner_created", "owner_id", "created_at"),
    )

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    collection_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("collections.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    caption = sa.Column(sa.String(1000), nullable=False)
    media_url = sa.Column(sa.String(256), nullable=False)
    media_type = sa.Column(sa.String(16), nullable=False, default=MediaType.IMAGE.value)
    visibility = sa.Column(sa.String(16), nullable=False, default=Visibility.PUBLIC.value, index=True)

    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    tags = relationship(
        "PostTag",
        order_by="PostTag.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class PostTag(Base):
    __tablename__ = "post_tags"

    post_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True
    )
    position = sa.Column(sa.Integer, primary_key=True)

    name = sa.Column(sa.String(50), nullable=False, index=True)
    category = sa.Column(sa.String(16), nullable=False, default=TagCategory.GENERAL.value)


class Like(Base):
    __tablename__ = "likes"

    post_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True
    )
    user_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )

    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = sa.Column(
        sa.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    text = sa.Column(sa.String(500), nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)
