import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.user import User
from flexbase.db.session import get_db
from flexbase.schemas import CamelModel
from flexbase.services.auth_service import AuthService
from flexbase.services.collection_service import CollectionService
from flexbase.utils.types import CollectionCategory

router = APIRouter(prefix="/api/collections", tags=["collections"])


class CollectionCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    category: CollectionCategory
    description: Optional[str] = Field(None, max_length=200)
    is_private: bool = False


class CollectionUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    category: Optional[CollectionCategory] = None
    description: Optional[str] = Field(None, max_length=200)
    is_private: Optional[bool] = None


class CollectionPostIn(CamelModel):
    post_id: uuid.UUID


@router.get("", status_code=status.HTTP_200_OK)
async def list_collections(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    collections = await CollectionService.list_for_owner(db, user.id, include_private=True)
    return {"success": True, "collections": await CollectionService.build_views(db, collections, user)}


@router.get("/{collection_id}", status_code=status.HTTP_200_OK)
async def get_collection(
    collection_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[User] = Depends(AuthService.get_optional_user),
):
    collection = await CollectionService.get_viewable(db, collection_id, viewer)
    views = await CollectionService.build_views(db, [collection], viewer)
    return {"success": True, "collection": views[0]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_collection(
    collection_data: CollectionCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    collection = await CollectionService.create(
        db,
        user,
        name=collection_data.name,
        category=collection_data.category,
        description=collection_data.description,
        is_private=collection_data.is_private,
    )

    views = await CollectionService.build_views(db, [collection], user)
    return {"success": True, "message": "Collection created successfully", "collection": views[0]}


@router.put("/{collection_id}", status_code=status.HTTP_200_OK)
async def update_collection(
    collection_id: uuid.UUID,
    collection_update: CollectionUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    collection = await CollectionService.update(
        db, collection_id, user, collection_update.model_dump(exclude_unset=True)
    )

    views = await CollectionService.build_views(db, [collection], user)
    return {"success": True, "message": "Collection updated successfully", "collection": views[0]}


@router.delete("/{collection_id}", status_code=status.HTTP_200_OK)
async def delete_collection(
    collection_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    await CollectionService.delete(db, collection_id, user)
    return {"success": True, "message": "Collection deleted successfully"}


@router.post("/{collection_id}/add-post", status_code=status.HTTP_200_OK)
async def add_post(
    collection_id: uuid.UUID,
    body: CollectionPostIn,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    await CollectionService.add_post(db, collection_id, body.post_id, user)
    return {"success": True, "message": "Post added to collection successfully"}


@router.delete("/{collection_id}/remove-post/{post_id}", status_code=status.HTTP_200_OK)
async def remove_post(
    collection_id: uuid.UUID,
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(AuthService.get_current_user),
):
    await CollectionService.remove_post(db, collection_id, post_id, user)
    return {"success": True, "message": "Post removed from collection successfully"}
