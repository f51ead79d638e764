import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.db.models.user import User
from flexbase.db.session import get_db
from flexbase.routers.auth import RegisterIn, set_token_cookie
from flexbase.routers.users import build_profile, get_user_or_404
from flexbase.services.auth_service import AuthService, TOKEN_COOKIE
from flexbase.services.collection_service import CollectionService
from flexbase.services.post_service import PostService
from flexbase.templating import templates
from flexbase.utils.types import CollectionCategory, TagCategory, Visibility

router = APIRouter(tags=["views"], include_in_schema=False)


def render(request: Request, name: str, title: str, user: Optional[User], status_code: int = 200, **context):
    return templates.TemplateResponse(
        request,
        name,
        {"title": title, "user": user, **context},
        status_code=status_code,
    )


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/")
async def index(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    if user:
        return redirect("/feed")

    trending = await PostService.explore(db, page=1, limit=6)
    return render(
        request, "index.html", "FlexBase - Social Platform for Collectors", None,
        trending_posts=await PostService.build_views(db, trending, None),
    )


@router.get("/login")
async def login_page(request: Request, user: Optional[User] = Depends(AuthService.get_optional_user)):
    if user:
        return redirect("/feed")
    return render(request, "login.html", "Login - FlexBase", None)


@router.post("/login")
async def login_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    try:
        _, access, _ = await AuthService.login(db, username, password)
    except HTTPException as e:
        return render(
            request, "login.html", "Login - FlexBase", None,
            status_code=e.status_code, error=e.detail, username=username,
        )

    response = redirect("/feed")
    set_token_cookie(response, access)
    return response


@router.get("/signup")
async def signup_page(request: Request, user: Optional[User] = Depends(AuthService.get_optional_user)):
    if user:
        return redirect("/feed")
    return render(request, "signup.html", "Sign Up - FlexBase", None)


@router.post("/signup")
async def signup_submit(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    db: AsyncSession = Depends(get_db),
):
    def failed(message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        return render(
            request, "signup.html", "Sign Up - FlexBase", None,
            status_code=status_code, error=message, username=username, email=email,
        )

    try:
        credentials = RegisterIn(username=username, email=email, password=password)
    except ValidationError as e:
        return failed("; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()))

    try:
        await AuthService.register(db, credentials.username, str(credentials.email), credentials.password)
        _, access, _ = await AuthService.login(db, credentials.username, credentials.password)
    except HTTPException as e:
        return failed(e.detail, e.status_code)

    response = redirect("/feed")
    set_token_cookie(response, access)
    return response


@router.get("/logout")
async def logout():
    response = redirect("/login")
    response.delete_cookie(TOKEN_COOKIE)
    return response


@router.get("/feed")
async def feed_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    if not user:
        return redirect("/login")

    posts = await PostService.feed(db, user, page=1, limit=20)
    return render(
        request, "feed.html", "Feed - FlexBase", user,
        posts=await PostService.build_views(db, posts, user, with_comments=True),
    )


@router.get("/explore")
async def explore_page(
    request: Request,
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    posts = await PostService.explore(db, page=1, limit=30, category=category, search=search)
    return render(
        request, "explore.html", "Explore - FlexBase", user,
        posts=await PostService.build_views(db, posts, user),
        current_category=category,
        current_search=search,
    )


@router.get("/profile")
async def own_profile_page(user: Optional[User] = Depends(AuthService.get_optional_user)):
    if not user:
        return redirect("/login")
    return redirect(f"/profile/{user.id}")


@router.get("/profile/{user_id}")
async def profile_page(
    request: Request,
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    profile_user = await get_user_or_404(db, user_id)
    is_own_profile = user is not None and user.id == profile_user.id

    posts = await PostService.list_for_owner(db, profile_user.id, user)
    collections = await CollectionService.list_for_owner(db, profile_user.id, include_private=is_own_profile)

    return render(
        request, "profile.html", f"{profile_user.username} - FlexBase", user,
        profile=await build_profile(db, profile_user, user),
        posts=await PostService.build_views(db, posts, user),
        collections=await CollectionService.build_views(db, collections, user),
        is_own_profile=is_own_profile,
    )


@router.get("/create")
async def create_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    if not user:
        return redirect("/login")

    collections = await CollectionService.list_for_owner(db, user.id, include_private=True)
    return render(
        request, "create.html", "Create Post - FlexBase", user,
        collections=collections,
        visibilities=list(Visibility),
        tag_categories=list(TagCategory),
    )


@router.get("/collections")
async def collections_page(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    if not user:
        return redirect("/login")

    collections = await CollectionService.list_for_owner(db, user.id, include_private=True)
    return render(
        request, "collections.html", "My Collections - FlexBase", user,
        collections=await CollectionService.build_views(db, collections, user),
        categories=list(CollectionCategory),
    )


@router.get("/collection/{collection_id}")
async def collection_page(
    request: Request,
    collection_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    collection = await CollectionService.get_viewable(db, collection_id, user)
    view = (await CollectionService.build_views(db, [collection], user))[0]

    return render(
        request, "collection_detail.html", f"{view.name} - FlexBase", user,
        collection=view,
        is_owner=user is not None and user.id == collection.owner_id,
    )


@router.get("/post/{post_id}")
async def post_page(
    request: Request,
    post_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(AuthService.get_optional_user),
):
    post = await PostService.get_visible(db, post_id, user)
    view = (await PostService.build_views(db, [post], user, with_comments=True))[0]

    return render(
        request, "post_detail.html", f"{view.user.username}'s Post - FlexBase", user,
        post=view,
        is_owner=user is not None and user.id == post.owner_id,
    )
