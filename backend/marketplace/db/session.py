import os
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from marketplace.core.config import settings

# SQL echo only when SQL_DEBUG=true
engine = create_async_engine(
    settings.SQLITE_DATABASE_URI.replace("sqlite:///", "sqlite+aiosqlite:///"),
    echo=os.getenv("SQL_DEBUG", "false").lower() == "true",
    future=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def close_engine():
    """Release pooled connections on shutdown"""
    await engine.dispose()
