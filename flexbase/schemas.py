"""
Response and shared request models.

JSON uses camelCase keys, Python attributes stay snake_case. Models are
built explicitly by the services from ORM rows plus the counts they load.
"""

import datetime as dt
import uuid
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from flexbase.utils.types import CollectionCategory, MediaType, TagCategory, Visibility


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserSummary(CamelModel):
    id: uuid.UUID
    username: str
    avatar: str = ""


class UserOut(UserSummary):
    bio: str = ""
    is_private: bool = False
    created_at: Optional[dt.datetime] = None


class ProfileOut(UserOut):
    followers: List[UserSummary] = []
    following: List[UserSummary] = []
    posts_count: int = 0
    collections_count: int = 0
    followers_count: int = 0
    following_count: int = 0
    is_following: bool = False


class TagIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    category: Optional[TagCategory] = Field(None, validation_alias=AliasChoices("category", "type"))


class TagOut(CamelModel):
    name: str
    category: TagCategory


class CommentOut(CamelModel):
    id: uuid.UUID
    text: str
    created_at: dt.datetime
    user: UserSummary


class CollectionRef(CamelModel):
    id: uuid.UUID
    name: str
    category: CollectionCategory


class PostOut(CamelModel):
    id: uuid.UUID
    caption: str
    media_url: str = Field(..., alias="mediaURL")
    media_type: MediaType
    visibility: Visibility
    tags: List[TagOut] = []
    user: UserSummary
    user_collection: Optional[CollectionRef] = None
    likes_count: int = 0
    comments_count: int = 0
    is_liked: bool = False
    comments: List[CommentOut] = []
    created_at: dt.datetime
    updated_at: dt.datetime


class CollectionOut(CamelModel):
    id: uuid.UUID
    name: str
    description: str
    category: CollectionCategory
    is_private: bool
    cover_image: str = ""
    user: UserSummary
    items: List[PostOut] = []
    items_count: int = 0
    created_at: dt.datetime
    updated_at: dt.datetime


class Pagination(CamelModel):
    page: int
    limit: int
    has_next: bool
