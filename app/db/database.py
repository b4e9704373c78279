"""Async engine and session plumbing.

The API only ever talks to the database through AsyncSession. Migrations
build their own sync URL in alembic/env_config.py.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base


def build_database_url(driver: str = "postgresql+asyncpg") -> str:
    """URL from the DB_* variables; DATABASE_URL wins when set (sqlite+aiosqlite:// in tests)."""
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    port = os.getenv("DB_PORT") or "5432"
    if port == "None":
        port = "5432"

    return (
        f"{driver}://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
        f"@{os.getenv('DB_HOST')}:{port}/{os.getenv('DB_NAME')}"
    )


ASYNC_DATABASE_URL = build_database_url()

# SQLite has no server-side connections to recycle
_engine_options = {} if ASYNC_DATABASE_URL.startswith("sqlite") else {"pool_pre_ping": True}

async_engine = create_async_engine(ASYNC_DATABASE_URL, echo=False, **_engine_options)

# Snapshots are copied out of rows right after commit; keep attributes loaded
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency. Services commit their own writes."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Short-lived session for work outside a request, such as event-stream re-reads."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
