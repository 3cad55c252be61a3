"""Pydantic schemas for the authorization check endpoint."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from tenantguard.core.permission_resolution import Decision


class AuthorizeRequest(BaseModel):
    """Ask whether a user may perform `permission_code` in an organization.

    `user_id` defaults to the caller; checking another user requires the
    `role.manage` permission.
    """

    organization_id: UUID
    permission_code: str = Field(..., min_length=1, max_length=150)
    user_id: UUID | None = None
    context: dict[str, Any] | None = Field(None, examples=[{"amount": 1200}])


class AuthorizeResponse(BaseModel):
    decision: Decision
    reason: str = Field(..., examples=["allowed", "explicit_deny", "not_entitled"])
    matched_roles: list[str] = Field(default_factory=list)
