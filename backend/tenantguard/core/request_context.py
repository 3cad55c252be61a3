"""Correlation fields bound to the current request or worker task.

The request middleware binds the request ID and client address, the auth
dependencies add the caller and the organization once they are resolved,
and Celery binds the task ID. JSON log lines and audit rows read whatever
is bound at the moment they are written.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, replace
from uuid import UUID, uuid4


@dataclass(frozen=True)
class Correlation:
    request_id: str | None = None
    client_ip: str | None = None
    user_id: str | None = None
    organization_id: str | None = None

    def log_fields(self) -> dict[str, str]:
        return {key: value for key, value in asdict(self).items() if value}


_correlation: ContextVar[Correlation] = ContextVar("tenantguard_correlation", default=Correlation())


def current() -> Correlation:
    return _correlation.get()


def push(**fields: str | UUID | None) -> Token[Correlation]:
    """Overlay `fields` on the current correlation and return the reset token."""

    values = {key: str(value) if isinstance(value, UUID) else value for key, value in fields.items()}
    return _correlation.set(replace(_correlation.get(), **values))


def pop(token: Token[Correlation]) -> None:
    _correlation.reset(token)


def generate_request_id() -> str:
    return uuid4().hex


@contextmanager
def bound(**fields: str | UUID | None):
    token = push(**fields)
    try:
        yield current()
    finally:
        pop(token)
