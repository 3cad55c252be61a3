"""Async engine, session factory and the request-scoped session dependency."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from tenantguard.core.config import get_settings
from tenantguard.core.structured_logging import log_json

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_LOGGED_STATEMENT = 2000


def _engine_options(url: str) -> tuple[str, dict[str, Any]]:
    """Driver URL plus pool options for `url`."""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection or every session sees
        # an empty database.
        in_memory = ":memory:" in url or url.endswith("://")
        return url, {"poolclass": StaticPool if in_memory else NullPool}
    return url, {"pool_pre_ping": True}


def install_slow_query_log(target: AsyncEngine, threshold_ms: float) -> None:
    """Log statements slower than `threshold_ms` as `slow_query` warnings."""

    @event.listens_for(target.sync_engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany) -> None:
        context._tenantguard_started = time.perf_counter()

    @event.listens_for(target.sync_engine, "after_cursor_execute")
    def _check_duration(conn, cursor, statement, parameters, context, executemany) -> None:
        started = getattr(context, "_tenantguard_started", None)
        if started is None:
            return
        duration_ms = (time.perf_counter() - started) * 1000
        if duration_ms < threshold_ms:
            return
        log_json(
            logger,
            logging.WARNING,
            "slow_query",
            duration_ms=round(duration_ms, 2),
            statement=str(statement)[:MAX_LOGGED_STATEMENT],
        )


_url, _options = _engine_options(settings.database_url)
engine = create_async_engine(_url, echo=False, **_options)
if settings.slow_query_ms > 0:
    install_slow_query_log(engine, settings.slow_query_ms)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency.

    The transaction commits when the route returns and rolls back when it
    raises, so a domain error never leaves a partial write behind.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
