"""Pydantic schemas for role and permission endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RoleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_.-]*$")
    description: str | None = None
    is_system: bool = False


class RoleUpdateRequest(BaseModel):
    """Partial update; `code` is not accepted."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    is_active: bool | None = None
    is_system: bool | None = Field(None, description="Can only be latched to true")


class RoleResponse(BaseModel):
    id: UUID
    name: str
    code: str
    description: str | None = None
    is_system: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PermissionCreateRequest(BaseModel):
    code: str = Field(..., min_length=3, max_length=150, pattern=r"^[a-z][a-z0-9_]*\.[a-z][a-z0-9_.]*$")
    resource: str = Field(..., min_length=1, max_length=100)
    action: str = Field(..., min_length=1, max_length=50)
    name: str | None = Field(None, max_length=150)
    description: str | None = None
    is_system: bool = False


class PermissionUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=150)
    description: str | None = None
    is_active: bool | None = None
    is_system: bool | None = Field(None, description="Can only be latched to true")


class PermissionResponse(BaseModel):
    id: UUID
    code: str
    name: str
    resource: str
    action: str
    description: str | None = None
    is_system: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class RolePermissionAssignRequest(BaseModel):
    """Grant (`allowed=true`) or explicit deny (`allowed=false`)."""

    permission_id: UUID
    allowed: bool = True
    scope: str | None = Field(None, max_length=100)
    constraints: dict[str, Any] | None = Field(
        None,
        description="Flat object, e.g. {\"max_amount\": 5000}",
        examples=[{"max_amount": 5000}],
    )


class RolePermissionResponse(BaseModel):
    id: UUID
    role_id: UUID
    permission_id: UUID
    is_allowed: bool
    scope: str | None = None
    constraints: dict[str, Any] | None = None
    assigned_by: UUID | None = None
    assigned_at: datetime
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
