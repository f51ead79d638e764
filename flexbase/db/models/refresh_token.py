import uuid, sqlalchemy as sa

from flexbase.db.base import Base
from flexbase.db.models.user import utcnow


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = sa.Column(sa.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = sa.Column(sa.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    jti_hash = sa.Column(sa.String(64), nullable=False, unique=True, index=True)
    revoked = sa.Column(sa.Boolean, nullable=False, default=False)

    expires_at = sa.Column(sa.DateTime(timezone=True), nullable=False, index=True)
    created_at = sa.Column(sa.DateTime(timezone=True), default=utcnow, nullable=False)
