# stockwatch/database.py

# type: ignore[misc]
from typing import Tuple

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from stockwatch.core.config import Settings

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the shared, connection-pooled engine once per process."""
    database_url = settings.async_database_url
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False, future=True)

    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


def create_engine_and_session_factory(settings: Settings) -> Tuple[AsyncEngine, async_sessionmaker]:
    engine = create_engine(settings)
    return engine, create_session_factory(engine)


async def create_all_tables(engine: AsyncEngine) -> None:
    # Import models so they are registered on Base.metadata
    from stockwatch import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
