"""Pydantic schemas for user endpoints."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from tenantguard.models.enums import UserStatus


class UserResponse(BaseModel):
    """Response schema for user information.

    Used for GET /users/{user_id}, GET /auth/me and user-related endpoints.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="User unique identifier")
    email: str = Field(..., description="User email address")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: UserStatus = Field(..., description="Account lifecycle status")
    is_email_verified: bool
    is_active: bool = Field(..., description="Whether user account is active")
    last_login_at: Optional[datetime] = Field(None, description="Last login timestamp")
    created_at: datetime = Field(..., description="Account creation timestamp")


class UserCreateRequest(BaseModel):
    """Request schema for registering a user.

    Used for POST /auth/register. The password policy is enforced by the service.
    """

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class UserProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class UserStatusUpdateRequest(BaseModel):
    status: UserStatus


class UserRoleAssignRequest(BaseModel):
    role_id: UUID


class UserRoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    role_id: UUID
    assigned_by: Optional[UUID] = None
    assigned_at: datetime
    is_active: bool
