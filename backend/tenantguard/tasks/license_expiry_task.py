"""Celery task that expires licenses past their validity window."""

import asyncio
import logging
import time
from datetime import UTC, datetime

from tenantguard.core.database import AsyncSessionLocal
from tenantguard.core.retry import run_with_retry
from tenantguard.core.structured_logging import log_json
from tenantguard.services.license_service import LicenseService
from tenantguard.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def run_license_expiry(session_factory=AsyncSessionLocal, now: datetime | None = None) -> int:
    """Expire overdue licenses in one retried transaction."""
    now = now or datetime.now(UTC)

    async def _expire(session) -> int:
        return await LicenseService(session).expire_overdue(now)

    return await run_with_retry(session_factory, _expire)


@celery_app.task(name="tenantguard.tasks.license_expiry_task.expire_licenses")
def expire_licenses() -> int:
    """Mark active licenses whose `expires_at` has passed as expired.

    Runs hourly via Celery Beat (see `tenantguard.tasks.celery_app`).
    """

    started = time.perf_counter()
    log_json(logger, logging.INFO, "license_expiry_start")

    try:
        expired = asyncio.run(run_license_expiry())
    except Exception as exc:
        duration_ms = (time.perf_counter() - started) * 1000
        log_json(
            logger,
            logging.ERROR,
            "license_expiry_error",
            duration_ms=round(duration_ms, 2),
            error=str(exc),
            exception=exc.__class__.__name__,
        )
        raise

    duration_ms = (time.perf_counter() - started) * 1000
    log_json(
        logger,
        logging.INFO,
        "license_expiry_done",
        expired=expired,
        duration_ms=round(duration_ms, 2),
    )
    return expired
