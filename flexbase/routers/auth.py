from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from flexbase.config import config
from flexbase.db.models.user import User
from flexbase.db.session import get_db
from flexbase.schemas import CamelModel, UserOut
from flexbase.services.auth_service import AuthService, TOKEN_COOKIE

router = APIRouter(prefix="/api/auth", tags=["auth"])

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class RegisterIn(CamelModel):
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginIn(CamelModel):
    username: str
    password: str


class RefreshIn(CamelModel):
    refresh_token: str


class LogoutIn(CamelModel):
    refresh_token: Optional[str] = None


def set_token_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        access_token,
        max_age=config.ACCESS_TTL_MIN * 60,
        httponly=True,
        samesite="lax",
        secure=not config.is_development,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(credentials: RegisterIn, db: AsyncSession = Depends(get_db)):
    user = await AuthService.register(db, credentials.username, str(credentials.email), credentials.password)
    return {
        "success": True,
        "message": "User registered successfully",
        "user": UserOut.model_validate(user),
    }


@router.post("/login", status_code=status.HTTP_200_OK)
async def login(credentials: LoginIn, response: Response, db: AsyncSession = Depends(get_db)):
    user, access, refresh = await AuthService.login(db, credentials.username, credentials.password)
    set_token_cookie(response, access)
    return {
        "success": True,
        "tokenType": "bearer",
        "accessToken": access,
        "refreshToken": refresh,
        "expiresIn": config.ACCESS_TTL_MIN * 60,
        "user": UserOut.model_validate(user),
    }


@router.post("/refresh", status_code=status.HTTP_200_OK)
async def refresh(body: RefreshIn, response: Response, db: AsyncSession = Depends(get_db)):
    data = await AuthService.refresh(db, body.refresh_token)
    set_token_cookie(response, data["access_token"])
    return {
        "success": True,
        "tokenType": data["token_type"],
        "accessToken": data["access_token"],
        "refreshToken": body.refresh_token,
        "expiresIn": data["expires_in"],
    }


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(response: Response, body: Optional[LogoutIn] = None, db: AsyncSession = Depends(get_db)):
    if body and body.refresh_token:
        await AuthService.revoke(db, body.refresh_token)

    response.delete_cookie(TOKEN_COOKIE)
    return {"success": True, "message": "Logged out"}


@router.get("/me", status_code=status.HTTP_200_OK)
async def me(user: User = Depends(AuthService.get_current_user)):
    return {"success": True, "user": UserOut.model_validate(user)}
