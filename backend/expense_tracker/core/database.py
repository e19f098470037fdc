"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application from ``settings.DATABASE_URL``.  Plain
``sqlite://`` URLs are upgraded to the ``aiosqlite`` driver so the same
value works for the API and for maintenance scripts.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Dict, Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from expense_tracker.core.config import settings

logger = logging.getLogger(__name__)

LAST_DB_INIT_ERROR: Optional[str] = None


def normalize_database_url(url: str) -> str:
    """Return ``url`` with its driver switched to an async one where needed."""
    try:
        url_obj = make_url(url)
    except Exception:
        return url
    if url_obj.drivername == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    return url_obj.render_as_string(hide_password=False)


db_url = normalize_database_url(settings.DATABASE_URL)

engine_kwargs: dict[str, Any] = dict(echo=False, pool_pre_ping=True)

engine = create_async_engine(db_url, **engine_kwargs)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session.

    This function is intended for FastAPI dependency injection.  Each
    session is scoped to the request and closed after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables defined on the declarative ``Base``.

    Typically called during application startup or from
    ``scripts/init_db.py``.
    """
    global LAST_DB_INIT_ERROR
    try:
        async with engine.begin() as conn:
            # Import all models to ensure metadata is populated
            from expense_tracker.models import tables  # noqa: F401
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        LAST_DB_INIT_ERROR = str(e)
        logger.error("DB init failed: %s", e)
        raise


def get_db_debug_info() -> Dict[str, Any]:
    """Return non-sensitive information about the current DB engine for debugging.

    This avoids leaking passwords or secrets. Intended for a protected/diagnostic endpoint.
    """
    info: Dict[str, Any] = {
        "environment": (settings.ENVIRONMENT or "development"),
    }
    if LAST_DB_INIT_ERROR:
        info["last_db_init_error"] = LAST_DB_INIT_ERROR
    try:
        url_obj = make_url(str(engine.url))
        masked_url = url_obj.set(password=None)
        info.update(
            {
                "drivername": url_obj.drivername,
                "username": url_obj.username,
                "host": url_obj.host,
                "port": url_obj.port,
                "database": url_obj.database,
                "url": str(masked_url),
            }
        )
    except Exception as ex:
        info.update({"error": f"unable to parse engine url: {ex}"})
    return info
