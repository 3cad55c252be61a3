"""Pydantic schemas for organization and membership endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateOrganizationRequest(BaseModel):
    """Request schema for creating an organization.

    Used for POST /organizations. The caller becomes the first member.
    """

    name: str = Field(..., min_length=1, max_length=255, description="Organization display name")
    currency: str = Field(default="USD", min_length=3, max_length=3, description="ISO 4217 code")

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        """Validate that name is not empty or whitespace only."""
        if not v or not v.strip():
            raise ValueError("Organization name cannot be empty")
        return v.strip()


class OrganizationResponse(BaseModel):
    id: UUID
    name: str
    currency: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MembershipCreateRequest(BaseModel):
    """Request schema for POST /organizations/{org_id}/members."""

    user_id: UUID
    role_code: str | None = Field(None, description="Role to assign to the user on join")


class MembershipResponse(BaseModel):
    id: UUID
    user_id: UUID
    organization_id: UUID
    is_active: bool
    is_primary: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SetPrimaryRequest(BaseModel):
    organization_id: UUID
