from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from community_chat.config import settings
from community_chat.infrastructure.db import models  # noqa: F401  registers tables
from community_chat.infrastructure.db.base import Base

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    poolclass=AsyncAdaptedQueuePool,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
    pool_recycle=settings.DB_POOL_RECYCLE,
    echo=settings.LOG_LEVEL.upper() == "DEBUG",
)

# Entities are mapped out right after commit; nothing reads expired attributes.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def create_schema() -> None:
    """Create the users, conversations and messages tables if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready (%s)", ", ".join(sorted(Base.metadata.tables)))
