import datetime as dt
import uuid

import sqlalchemy as sa

from flexbase.db.base import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = sa.Column(sa.String(20), nullable=False, unique=True, index=True)
    email = sa.Column(sa.String(255), nullable=False, unique=True, index=True)
    hashed_password = sa.Column(sa.String(128), nullable=False)

    bio = sa.Column(sa.String(200), nullable=False, default="")
    avatar = sa.Column(sa.String(256), nullable=False, default="")
    is_private = sa.Column(sa.Boolean, nullable=False, default=False)

    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
