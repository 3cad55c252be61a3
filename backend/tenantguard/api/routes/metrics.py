"""Prometheus scrape endpoint.

Open outside production. In production it exists only when METRICS_TOKEN
is configured, and then answers only to a caller presenting that token as
a bearer credential or in X-Metrics-Token.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header, Response
from fastapi.security import HTTPAuthorizationCredentials
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tenantguard.api.deps import security
from tenantguard.core.config import Settings, get_settings
from tenantguard.core.errors import ForbiddenError, NotFoundError

router = APIRouter()


async def require_scrape_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    x_metrics_token: str | None = Header(default=None, alias="X-Metrics-Token"),
    settings: Settings = Depends(get_settings),
) -> None:
    if settings.environment != "production":
        return
    if settings.metrics_token is None:
        raise NotFoundError("Not found")

    presented = credentials.credentials if credentials else x_metrics_token
    expected = settings.metrics_token.get_secret_value()
    if not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
        raise ForbiddenError("Forbidden")


@router.get("/metrics", include_in_schema=False, dependencies=[Depends(require_scrape_token)])
async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
