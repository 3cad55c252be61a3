"""Prometheus collectors and the helpers that feed them."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

_LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)

HTTP_REQUESTS_TOTAL = Counter(
    "tenantguard_http_requests_total",
    "HTTP requests by method, route template and status.",
    ["method", "route", "status"],
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "tenantguard_http_request_duration_seconds",
    "HTTP request latency.",
    ["method", "route"],
    buckets=_LATENCY_BUCKETS,
)

AUTHORIZATION_DECISIONS_TOTAL = Counter(
    "tenantguard_authorization_decisions_total",
    "Authorization decisions by outcome and the reason that settled them.",
    ["decision", "reason"],
)

LOGIN_ATTEMPTS_TOTAL = Counter(
    "tenantguard_login_attempts_total",
    "Password logins by outcome.",
    ["outcome"],
)
ACCOUNT_LOCKOUTS_TOTAL = Counter(
    "tenantguard_account_lockouts_total",
    "Accounts locked after repeated failed logins.",
)

LICENSES_EXPIRED_TOTAL = Counter(
    "tenantguard_licenses_expired_total",
    "Licenses moved to expired by the scheduled sweep.",
)


def observe_http_request(*, method: str, route: str, status_code: int, duration_ms: float) -> None:
    HTTP_REQUESTS_TOTAL.labels(method=method, route=route, status=str(status_code)).inc()
    HTTP_REQUEST_DURATION_SECONDS.labels(method=method, route=route).observe(duration_ms / 1000.0)


def observe_authorization(*, decision: str, reason: str) -> None:
    AUTHORIZATION_DECISIONS_TOTAL.labels(decision=decision, reason=reason).inc()


def observe_login(outcome: str) -> None:
    """`outcome` is success, locked, account_state or a failure reason."""
    LOGIN_ATTEMPTS_TOTAL.labels(outcome=outcome).inc()
