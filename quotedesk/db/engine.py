"""Database wiring for the quote engine.

One async engine per process. Each unit of work (an API request or one
expiration sweep) opens its own session from ``async_session_factory`` and
finishes through ``QuoteService.commit`` so staged quote events follow the
commit.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from quotedesk.config import DatabaseSettings, settings
from quotedesk.models import Base

logger = logging.getLogger(__name__)


def _build_engine(db: DatabaseSettings) -> AsyncEngine:
    return create_async_engine(
        db.database_url,
        echo=settings.log_level == "DEBUG",
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=True,
    )


engine: AsyncEngine = _build_engine(settings.db)

# Documents are rebuilt from rows before commit, so rows need not reload afterwards
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db() -> None:
    """Create missing quote tables outside production.

    Production schema is owned by the Alembic migrations; there we only
    check that the database answers.
    """
    if settings.is_production:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database reachable; schema managed by Alembic")
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ensured tables: %s", ", ".join(sorted(Base.metadata.tables)))


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Initialise the database for the app's lifetime and dispose the pool on exit."""
    await init_db()
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
