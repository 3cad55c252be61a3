"""Domain error kinds raised by the service layer.

Services raise these instead of HTTP exceptions; the API layer maps each kind
to a status code and the shared `ErrorResponse` body. An authorization DENY is
a normal return value and only becomes `ForbiddenError` at the HTTP edge.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable identifiers surfaced to callers as `error` in responses."""

    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    DUPLICATE_MEMBERSHIP = "duplicate_membership"
    PROTECTED_ENTITY = "protected_entity"
    IMMUTABLE_FIELD = "immutable_field"
    INVALID_WINDOW = "invalid_window"
    VALIDATION_ERROR = "validation_error"
    EXPIRED = "expired"
    REVOKED = "revoked"
    INVALID = "invalid"
    INVALID_CREDENTIALS = "invalid_credentials"
    LOCKED = "locked"
    FORBIDDEN = "forbidden"
    STORAGE_FAILURE = "storage_failure"


class TenantGuardError(Exception):
    """Base class for all domain errors."""

    kind: ErrorKind = ErrorKind.INVALID
    status_code: int = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details or None
        super().__init__(self.message)


class NotFoundError(TenantGuardError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Resource not found"


class DuplicateError(TenantGuardError):
    kind = ErrorKind.DUPLICATE
    status_code = 409
    default_message = "Resource already exists"


class DuplicateMembershipError(TenantGuardError):
    kind = ErrorKind.DUPLICATE_MEMBERSHIP
    status_code = 409
    default_message = "User already has an active membership in this organization"


class ProtectedEntityError(TenantGuardError):
    """Raised on delete or downgrade of a system role/permission."""

    kind = ErrorKind.PROTECTED_ENTITY
    status_code = 409
    default_message = "System entities cannot be deleted or downgraded"


class ImmutableFieldError(TenantGuardError):
    kind = ErrorKind.IMMUTABLE_FIELD
    status_code = 409
    default_message = "Field is immutable and cannot be updated"


class InvalidWindowError(TenantGuardError):
    kind = ErrorKind.INVALID_WINDOW
    status_code = 422
    default_message = "starts_at must be earlier than expires_at"


class ValidationError(TenantGuardError):
    kind = ErrorKind.VALIDATION_ERROR
    status_code = 422
    default_message = "Request validation failed"


class ExpiredError(TenantGuardError):
    kind = ErrorKind.EXPIRED
    status_code = 409
    default_message = "License has expired"


class RevokedError(TenantGuardError):
    kind = ErrorKind.REVOKED
    status_code = 409
    default_message = "License has been revoked"


class InvalidError(TenantGuardError):
    """Uniform token/credential failure; never says why."""

    kind = ErrorKind.INVALID
    status_code = 401
    default_message = "Invalid or expired token"


class InvalidCredentialsError(TenantGuardError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid email or password"


class LockedError(TenantGuardError):
    kind = ErrorKind.LOCKED
    status_code = 423
    default_message = "Account is temporarily locked. Try again later."


class ForbiddenError(TenantGuardError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "You do not have permission to perform this action"


class StorageFailureError(TenantGuardError):
    kind = ErrorKind.STORAGE_FAILURE
    status_code = 503
    default_message = "Storage is temporarily unavailable"
