"""Wiring of a booking session to the configured backend."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from .backends.base import StaticIdentity
from .backends.sql import SqlDataService
from .backends.supabase import SupabaseDataService
from .core.config import Settings, settings
from .core.database import close_db, create_engine_and_session_factory, init_db
from .core.observability import setup_structured_logging
from .core.policy import BookingPolicy
from .services.workflow import BookingSession

logger = logging.getLogger(__name__)


def configure_logging(config: Optional[Settings] = None) -> None:
    """Configure structlog and the stdlib logging used by the backends."""
    config = config or settings
    setup_structured_logging()
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def booking_session(
    user_id: str,
    config: Optional[Settings] = None,
    policy: Optional[BookingPolicy] = None,
) -> AsyncGenerator[BookingSession, None]:
    """
    Open a booking session for ``user_id`` against the configured backend.

    The backend's connections are released when the context exits.
    """
    config = config or settings
    policy = policy or BookingPolicy.from_settings(config)
    identity = StaticIdentity(user_id)

    logger.info(f"Opening booking session (backend: {config.backend}, environment: {config.environment})")

    if config.backend == "sql":
        engine, session_factory = create_engine_and_session_factory(config.database_url)
        try:
            await init_db(engine)
            yield BookingSession(SqlDataService(session_factory), identity, policy)
        finally:
            await close_db(engine)
    else:
        async with SupabaseDataService(config=config) as backend:
            yield BookingSession(backend, identity, policy)
