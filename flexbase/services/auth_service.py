import datetime as dt
import hashlib
import uuid
from typing import Optional, Tuple

# noinspection PyPackageRequirements
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import HTTPException, Query, Request, WebSocket, status, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError, ExpiredSignatureError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flexbase.config import config
from flexbase.db.models.refresh_token import RefreshToken
from flexbase.db.models.user import User
from flexbase.db.session import get_db

TOKEN_COOKIE = "token"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)
ph = PasswordHasher()


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthService:
    @staticmethod
    def hash_password(password: str) -> str:
        return ph.hash(password)

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        try:
            return ph.verify(hashed, password)
        except (VerificationError, InvalidHashError):
            return False

    @staticmethod
    def _make_jwt(sub: str, scope: str, ttl: dt.timedelta) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        payload = {
            "iss": "flexbase-auth",
            "sub": sub,
            "scope": scope,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)

    @classmethod
    def mint_access(cls, user_id: str) -> str:
        return cls._make_jwt(user_id, "access", dt.timedelta(minutes=config.ACCESS_TTL_MIN))

    @classmethod
    def mint_refresh(cls, user_id: str) -> str:
        return cls._make_jwt(user_id, "refresh", dt.timedelta(days=config.REFRESH_TTL_DAYS))

    @staticmethod
    def decode_token(token: str, scope: str = "access") -> uuid.UUID:
        try:
            payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
        except ExpiredSignatureError:
            raise unauthorized("Token expired")
        except JWTError:
            raise unauthorized("Invalid token")

        if payload.get("scope") != scope:
            raise unauthorized("Invalid token scope")

        try:
            return uuid.UUID(payload.get("sub") or "")
        except ValueError:
            raise unauthorized("Invalid token")

    @classmethod
    async def register(cls, db: AsyncSession, username: str, email: str, password: str) -> User:
        if await db.scalar(select(User.id).where(User.username == username)):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Username already taken")

        if await db.scalar(select(User.id).where(User.email == email)):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Email already exists")

        user = User(
            username=username,
            email=email,
            hashed_password=cls.hash_password(password)
        )

        db.add(user)
        await db.commit()
        return user

    @classmethod
    async def login(cls, db: AsyncSession, username: str, password: str) -> Tuple[User, str, str]:
        user = await db.scalar(select(User).where(User.username == username))
        if not user or not cls.verify_password(password, user.hashed_password):
            raise unauthorized("Invalid credentials")

        access = cls.mint_access(str(user.id))
        refresh = cls.mint_refresh(str(user.id))

        payload = jwt.get_unverified_claims(refresh)
        hashed_jti = hashlib.sha256(payload["jti"].encode()).hexdigest()

        db.add(
            RefreshToken(
                user_id=user.id,
                jti_hash=hashed_jti,
                expires_at=dt.datetime.fromtimestamp(payload["exp"], tz=dt.timezone.utc)
            )
        )
        await db.commit()
        return user, access, refresh

    @classmethod
    async def verify_token(cls, token: str, db: AsyncSession) -> User:
        user_id = cls.decode_token(token)

        user = await db.scalar(select(User).where(User.id == user_id))
        if not user:
            raise unauthorized("User not found")

        return user

    @staticmethod
    def _token_from(request: Request, bearer: Optional[str]) -> Optional[str]:
        return bearer or request.cookies.get(TOKEN_COOKIE)

    @classmethod
    async def get_current_user(
        cls,
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        token = cls._token_from(request, token)
        if not token:
            raise unauthorized("Not authorized, no token")

        user = await cls.verify_token(token, db)
        request.state.user = user
        return user

    @classmethod
    async def get_optional_user(
        cls,
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
    ) -> Optional[User]:
        token = cls._token_from(request, token)
        if not token:
            return None

        try:
            user = await cls.verify_token(token, db)
        except HTTPException:
            return None

        request.state.user = user
        return user

    @classmethod
    async def get_socket_user(
        cls,
        websocket: WebSocket,
        token: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
    ) -> Optional[User]:
        token = token or websocket.cookies.get(TOKEN_COOKIE)
        if not token:
            return None

        try:
            return await cls.verify_token(token, db)
        except HTTPException:
            return None
        finally:
            # Sockets outlive requests; hand the pooled connection back now.
            await db.close()

    @classmethod
    async def refresh(cls, db: AsyncSession, refresh_token: str):
        user_id = cls.decode_token(refresh_token, scope="refresh")

        payload = jwt.get_unverified_claims(refresh_token)
        hashed_jti = hashlib.sha256(payload["jti"].encode()).hexdigest()

        db_token = await db.scalar(
            select(RefreshToken).where(
                RefreshToken.jti_hash == hashed_jti,
                RefreshToken.user_id == user_id,
                RefreshToken.revoked.is_(False),
            )
        )
        if not db_token:
            raise unauthorized("Refresh token invalid or expired")

        new_access = cls.mint_access(str(user_id))
        return {"access_token": new_access, "token_type": "bearer", "expires_in": config.ACCESS_TTL_MIN * 60}

    @staticmethod
    async def revoke(db: AsyncSession, refresh_token: str) -> None:
        try:
            payload = jwt.get_unverified_claims(refresh_token)
        except JWTError:
            return

        hashed_jti = hashlib.sha256(str(payload.get("jti", "")).encode()).hexdigest()
        db_token = await db.scalar(select(RefreshToken).where(RefreshToken.jti_hash == hashed_jti))
        if db_token:
            db_token.revoked = True
            await db.commit()
