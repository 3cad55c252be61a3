"""Pydantic schemas for license endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tenantguard.models.enums import LicenseStatus


class LicenseIssueRequest(BaseModel):
    organization_id: UUID
    plan_name: str = Field(..., min_length=1, max_length=100)
    starts_at: datetime
    expires_at: datetime
    max_users: int | None = Field(None, gt=0)
    notes: str | None = None


class LicenseUpdateRequest(BaseModel):
    """Administrative edit. `key` is accepted only so it can be refused."""

    plan_name: str | None = Field(None, min_length=1, max_length=100)
    status: LicenseStatus | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    max_users: int | None = Field(None, gt=0)
    notes: str | None = None
    key: str | None = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "LicenseUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class LicenseRevokeRequest(BaseModel):
    reason: str | None = Field(None, max_length=255)


class LicenseResponse(BaseModel):
    id: UUID
    organization_id: UUID | None = None
    key: str
    plan_name: str
    status: LicenseStatus
    starts_at: datetime
    expires_at: datetime
    max_users: int | None = None
    revoked_at: datetime | None = None
    revoked_reason: str | None = None
    notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EntitlementResponse(BaseModel):
    organization_id: UUID
    entitled: bool
