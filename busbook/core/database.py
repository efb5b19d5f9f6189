"""Database configuration and async session management for the SQL data service."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings

# Create declarative base for models
Base = declarative_base()


def create_engine_and_session_factory(
    database_url: Optional[str] = None,
    echo: Optional[bool] = None,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Build an async engine and its session factory.

    Args:
        database_url: Async SQLAlchemy URL, defaults to ``settings.database_url``
        echo: Echo SQL statements, defaults to debug mode

    Returns:
        The engine and a session factory bound to it
    """
    url = database_url or settings.database_url
    is_sqlite = "sqlite" in url

    engine_options = {"echo": settings.debug if echo is None else echo}
    if is_sqlite:
        # StaticPool keeps an in-memory database alive across sessions
        engine_options["poolclass"] = StaticPool
        engine_options["connect_args"] = {"check_same_thread": False}
    else:
        engine_options["pool_pre_ping"] = True

    engine = create_async_engine(url, **engine_options)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_factory


async def init_db(engine: AsyncEngine) -> None:
    """Initialize the database by creating all tables."""
    # Import models so they register on Base.metadata
    from .. import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections."""
    await engine.dispose()
