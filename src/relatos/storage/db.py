"""Async database engine and session factory.

Provides a single engine per process with lazy initialization.
All consumers go through get_session() for connection management.

The engine connects with a service credential that bypasses row-level
security, so every query against tenant data must filter by contrato itself.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from relatos.config import settings
from relatos.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_engine = None
_session_factory = None


def _get_engine():
    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL não configurada.")
        connect_args: dict = {"timeout": 10}  # asyncpg connection timeout
        if settings.database_require_ssl:
            import ssl

            connect_args["ssl"] = ssl.create_default_context()
        _engine = create_async_engine(
            settings.database_url,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=300,
            connect_args=connect_args,
        )
    return _engine


async def get_session() -> AsyncSession:
    """Get an async database session."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(_get_engine(), expire_on_commit=False)
    return _session_factory()


async def check_db() -> None:
    """Round-trip a trivial query; raises if the database is unreachable."""
    session = await get_session()
    try:
        await session.execute(text("SELECT 1"))
    finally:
        await session.close()


async def dispose_engine() -> None:
    """Close pooled connections (application shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None
