"""Async engine and per-request sessions.

Repositories take the session as an argument and never commit; services
own the transaction boundary. The driver-level command_timeout turns a
stuck statement into an error instead of a hung submission or sweep.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
    pool_pre_ping=True,
    pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
    connect_args={"command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS},
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def check_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; anything left uncommitted is rolled back on close."""
    async with async_session_factory() as session:
        yield session
