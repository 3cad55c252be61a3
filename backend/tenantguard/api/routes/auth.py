"""Authentication endpoints: registration, login, sessions, password reset, email verification."""

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import get_client_ip, get_current_user
from tenantguard.core.config import get_settings
from tenantguard.core.database import get_db
from tenantguard.core.errors import InvalidError
from tenantguard.models.user import User
from tenantguard.schemas.auth import (
    EmailVerificationConfirmRequest,
    EmailVerificationResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    PasswordResetResponse,
    RefreshRequest,
    TokenResponse,
)
from tenantguard.schemas.user import UserCreateRequest, UserResponse
from tenantguard.services.auth_service import AuthService
from tenantguard.services.identity_service import IdentityService

settings = get_settings()
router = APIRouter()


def _expose_token(raw: str | None) -> str | None:
    # Without mail delivery, tokens are only handed back outside production.
    return raw if settings.environment != "production" else None


class RegisterResponse(BaseModel):
    user: UserResponse
    verification_token: str | None = None


class EmailVerificationRequest(BaseModel):
    email: EmailStr


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Self-service sign-up.

    The account starts in `pending_verification` and cannot log in until the
    email is confirmed.
    """
    user = await IdentityService(db).create_user(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
    )
    raw = await AuthService(db).request_email_verification(user.id)
    return RegisterResponse(
        user=UserResponse.model_validate(user),
        verification_token=_expose_token(raw),
    )


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def login(
    login_data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """User login endpoint.

    Returns an opaque access/refresh token pair.

    Args:
        login_data: Login credentials (email, password)
        request: FastAPI request object for IP tracking
        db: Database session

    Returns:
        TokenResponse with both tokens and the access token lifetime

    Raises:
        InvalidCredentialsError: 401 for any credential or account-state failure
        LockedError: 423 while the account is locked
    """
    access_token, refresh_token, _ = await AuthService(db).login(
        email=login_data.email,
        password=login_data.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    data: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Rotate a refresh token into a new token pair."""
    access_token, refresh_token = await AuthService(db).refresh(
        data.refresh_token,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    data: LogoutRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Revoke the presented access token, or all of the user's tokens."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise InvalidError()

    all_sessions = data.all_sessions if data else False
    await AuthService(db).logout(
        auth_header.split(" ", 1)[1].strip(),
        all_sessions=all_sessions,
        ip_address=get_client_ip(request),
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return current_user


@router.post(
    "/password-reset/request",
    response_model=PasswordResetResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_password_reset(
    data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    """Start a password reset. The response never reveals whether the email exists."""
    raw = await AuthService(db).request_password_reset(data.email)
    return PasswordResetResponse(token=_expose_token(raw))


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    data: PasswordResetConfirmRequest,
    db: AsyncSession = Depends(get_db),
):
    """Set a new password from a reset token; every session is ended."""
    await AuthService(db).reset_password(data.token, data.new_password)
    return MessageResponse(message="Password has been reset")


@router.post(
    "/verify-email/request",
    response_model=EmailVerificationResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_email_verification(
    data: EmailVerificationRequest,
    db: AsyncSession = Depends(get_db),
):
    """Re-send an email verification token. Uniform response for unknown emails."""
    raw = None
    user = await IdentityService(db).get_user_by_email(data.email)
    if user is not None and user.is_active:
        raw = await AuthService(db).request_email_verification(user.id)
    return EmailVerificationResponse(
        message="If the account exists and is unverified, a verification link has been sent",
        token=_expose_token(raw),
    )


@router.post("/verify-email/confirm", response_model=UserResponse)
async def confirm_email(
    data: EmailVerificationConfirmRequest,
    db: AsyncSession = Depends(get_db),
):
    """Confirm an email address from a verification token."""
    return await AuthService(db).confirm_email(data.token)
