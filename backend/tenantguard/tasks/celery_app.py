"""Celery worker and beat configuration."""

from __future__ import annotations

import logging
from contextvars import Token

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging, task_postrun, task_prerun

from tenantguard.core import request_context
from tenantguard.core.config import get_settings
from tenantguard.core.structured_logging import configure_logging, log_json

logger = logging.getLogger(__name__)
settings = get_settings()

celery_app = Celery(
    "tenantguard",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend or settings.celery_broker_url,
    include=["tenantguard.tasks.license_expiry_task"],
)

celery_app.conf.update(
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_soft_time_limit=240,
    task_time_limit=300,
    worker_hijack_root_logger=False,
    beat_schedule={
        "expire-licenses-hourly": {
            "task": "tenantguard.tasks.license_expiry_task.expire_licenses",
            "schedule": crontab(minute=0),
        },
    },
)

# Per-task reset tokens; prerun and postrun fire on the same worker thread.
_bound_tasks: dict[str, Token[request_context.Correlation]] = {}


@setup_logging.connect
def _use_json_logging(**_: object) -> None:
    configure_logging(settings.log_level)


@task_prerun.connect
def _bind_task_id(task_id: str | None = None, **_: object) -> None:
    if task_id:
        _bound_tasks[task_id] = request_context.push(request_id=task_id)


@task_postrun.connect
def _unbind_task_id(task_id: str | None = None, **_: object) -> None:
    token = _bound_tasks.pop(task_id, None) if task_id else None
    if token is None:
        return
    try:
        request_context.pop(token)
    except ValueError:
        log_json(logger, logging.WARNING, "task_context_reset_failed", task_id=task_id)
