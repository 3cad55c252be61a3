"""HTTP middleware: response hardening headers and the access log."""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from tenantguard.api.deps import get_client_ip
from tenantguard.core import request_context
from tenantguard.core.config import get_settings
from tenantguard.core.metrics import observe_http_request
from tenantguard.core.structured_logging import log_json

logger = logging.getLogger(__name__)
settings = get_settings()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}
HSTS = "max-age=63072000; includeSubDomains"
MAX_REQUEST_ID_LENGTH = 128


def _served_over_https(request: Request) -> bool:
    return (request.headers.get("x-forwarded-proto") or request.url.scheme) == "https"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers on every response; HSTS for production HTTPS only."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if settings.environment == "production" and _served_over_https(request):
            response.headers.setdefault("Strict-Transport-Security", HSTS)
        return response


def resolve_request_id(request: Request) -> str:
    """Reuse a well-formed caller X-Request-ID, otherwise mint a new one."""
    supplied = (request.headers.get("X-Request-ID") or "").strip()
    if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH and supplied.isprintable():
        return supplied
    return request_context.generate_request_id()


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access-log line and one metrics sample per request.

    The request ID and client address stay bound while the request runs,
    so log lines and audit rows written further down carry them too.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request)
        request.state.request_id = request_id
        started = time.perf_counter()

        with request_context.bound(request_id=request_id, client_ip=get_client_ip(request)):
            try:
                response = await call_next(request)
            except Exception as exc:
                self._record(request, 500, started, exception=exc.__class__.__name__)
                raise
            response.headers.setdefault("X-Request-ID", request_id)
            self._record(request, response.status_code, started)
            return response

    @staticmethod
    def _record(request: Request, status_code: int, started: float, **extra) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        observe_http_request(
            method=request.method,
            route=_route_label(request),
            status_code=status_code,
            duration_ms=duration_ms,
        )
        log_json(
            logger,
            _level_for(status_code),
            "request",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
            **extra,
        )
