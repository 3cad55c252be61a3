"""Bounded retry of a unit of work on transient storage errors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from tenantguard.core.config import get_settings
from tenantguard.core.errors import StorageFailureError
from tenantguard.core.structured_logging import log_json

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Whether a storage exception is worth retrying in a fresh transaction.

    Lost connections, serialization/deadlock failures surfaced as
    OperationalError, and optimistic version conflicts qualify. Integrity
    errors and domain errors do not.
    """
    if isinstance(exc, StaleDataError | OperationalError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


async def run_with_retry(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay_ms: int | None = None,
) -> T:
    """Run `operation` in its own transaction, retrying transient failures.

    Each attempt gets a new session so a conflicting read is re-done against
    fresh state. Delay doubles after each failed attempt.

    Raises:
        StorageFailureError: when every attempt failed transiently
    """
    settings = get_settings()
    max_attempts = attempts if attempts is not None else settings.storage_retry_attempts
    delay_ms = base_delay_ms if base_delay_ms is not None else settings.storage_retry_base_delay_ms
    max_attempts = max(1, max_attempts)

    last_error: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        async with session_factory() as session:
            try:
                result = await operation(session)
                await session.commit()
                return result
            except Exception as exc:
                await session.rollback()
                if not is_transient(exc):
                    raise
                last_error = exc

        log_json(
            logger,
            logging.WARNING,
            "storage_retry",
            attempt=attempt,
            max_attempts=max_attempts,
            exception=last_error.__class__.__name__,
        )
        if attempt < max_attempts:
            await asyncio.sleep(delay_ms * (2 ** (attempt - 1)) / 1000)

    raise StorageFailureError() from last_error
