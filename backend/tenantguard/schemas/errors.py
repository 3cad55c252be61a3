"""Error body shared by every non-2xx response."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from tenantguard.core.errors import ErrorKind, TenantGuardError


class ErrorResponse(BaseModel):
    """`error` is a stable machine identifier; `message` is for humans.

    `details` names the offending field or the authorization reason where
    one applies, and is omitted otherwise.
    """

    error: ErrorKind = Field(..., description="Error kind identifier")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(None, description="Structured error context")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"error": "locked", "message": "Account is temporarily locked. Try again later.",
                 "details": {"locked_until": "2026-03-01T12:15:00+00:00"}},
                {"error": "forbidden", "message": "You do not have permission to perform this action",
                 "details": {"permission": "license.manage", "reason": "not_entitled"}},
                {"error": "immutable_field", "message": "License key cannot be changed",
                 "details": {"field": "key"}},
            ]
        }
    )

    @classmethod
    def from_error(cls, exc: TenantGuardError) -> "ErrorResponse":
        return cls(error=exc.kind, message=exc.message, details=exc.details)

    def body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
