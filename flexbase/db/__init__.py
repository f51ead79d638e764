from .base import Base
from .models import collection, follow, post, user, refresh_token

__all__ = ["Base", "collection", "follow", "post", "user", "refresh_token"]
