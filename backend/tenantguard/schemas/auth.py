"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Request schema for user login.

    Used for POST /auth/login endpoint.
    """

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenResponse(BaseModel):
    """Response schema for login and refresh.

    Tokens are opaque; only their hashes are stored server-side.
    """

    access_token: str = Field(..., description="Opaque bearer token for API authentication")
    refresh_token: str = Field(..., description="Opaque token for POST /auth/refresh")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int = Field(..., description="Seconds until the access token expires")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    all_sessions: bool = Field(default=False, description="Revoke every token of the user")


class MessageResponse(BaseModel):
    message: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetResponse(BaseModel):
    """Always returned, whether or not the email is registered.

    `token` is only populated outside production, where no mail delivery
    exists.
    """

    message: str = "If the account exists, a reset link has been sent"
    token: str | None = None


class PasswordResetConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class EmailVerificationResponse(BaseModel):
    message: str
    token: str | None = None


class EmailVerificationConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)
