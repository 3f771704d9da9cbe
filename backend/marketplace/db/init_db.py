import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.security import get_password_hash
from marketplace.db.session import engine, SessionLocal
from marketplace.db.base import Base

# Register every model on Base.metadata
from marketplace.models import User, UserRole  # noqa: F401

logger = logging.getLogger(__name__)


async def ensure_tables_exist() -> None:
    """
    Create missing tables (called on startup)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_admin_user(db: AsyncSession) -> bool:
    """Create the seed administrator from FIRST_ADMIN_EMAIL / FIRST_ADMIN_PASSWORD"""
    if not settings.FIRST_ADMIN_EMAIL or not settings.FIRST_ADMIN_PASSWORD:
        return False

    email = settings.FIRST_ADMIN_EMAIL.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        return False

    db.add(User(
        email=email,
        name="Administrator",
        hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
    ))
    await db.commit()
    logger.info(f"Created administrator {email}")
    return True


async def init_db() -> None:
    await ensure_tables_exist()
    async with SessionLocal() as db:
        await ensure_admin_user(db)


if __name__ == "__main__":
    asyncio.run(init_db())
