"""Dependency injection: database, Redis, current user, vendor store"""
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.errors import AuthError, ForbiddenError, NotFoundError, AppError
from marketplace.core.security import decode_access_token
from marketplace.db.session import SessionLocal
from marketplace.models import User, VendorStore

security = HTTPBearer(auto_error=False)

_redis: Optional[Redis] = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency
    """
    async with SessionLocal() as session:
        yield session


def get_redis() -> Redis:
    """Shared Redis client, created on first use"""
    global _redis
    if _redis is None:
        _redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    if not credentials:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload:
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    user = await db.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not credentials:
        raise AuthError("Not authenticated")
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthError("Invalid or expired token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthError("Invalid or expired token")
    user = await db.get(User, user_id)
    if not user:
        raise AuthError("User not found")
    if not user.is_active:
        raise ForbiddenError("Account disabled")
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


async def require_vendor_store(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> VendorStore:
    """The store owned by the caller"""
    result = await db.execute(select(VendorStore).where(VendorStore.owner_id == current_user.id))
    store = result.scalar_one_or_none()
    if not store:
        raise NotFoundError("Store")
    return store


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not settings.CRON_SECRET:
        raise AppError("Cron secret not configured")
    if authorization != f"Bearer {settings.CRON_SECRET}":
        raise AuthError("Unauthorized")


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"
