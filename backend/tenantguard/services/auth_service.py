"""Authentication service for login, lockout, and token-backed sessions."""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.config import get_settings
from tenantguard.core.errors import InvalidCredentialsError, InvalidError, LockedError
from tenantguard.core.metrics import ACCOUNT_LOCKOUTS_TOTAL, observe_login
from tenantguard.core.security import verify_password
from tenantguard.core.structured_logging import log_json
from tenantguard.models.enums import AuditAction, TokenType, UserStatus
from tenantguard.models.invalid_login_attempt import InvalidLoginAttempt
from tenantguard.models.user import User
from tenantguard.services.audit_service import AuditService
from tenantguard.services.identity_service import IdentityService, normalize_email
from tenantguard.services.token_service import TokenService

logger = logging.getLogger(__name__)


class AuthService:
    """Service for authentication and session management.

    Failed logins are counted per email inside a rolling window. Once the
    count exceeds the configured threshold the account is locked for a fixed
    duration, and every login during the lock is rejected whether or not the
    password is correct.
    """

    def __init__(self, db: AsyncSession):
        """Initialize auth service.

        Args:
            db: Database session
        """
        self.db = db
        self.settings = get_settings()
        self.audit_service = AuditService(db)
        self.identity_service = IdentityService(db)
        self.token_service = TokenService(db)

    async def record_failed_login(
        self,
        email: str,
        ip_address: str | None = None,
        reason: str | None = None,
        user_agent: str | None = None,
    ) -> InvalidLoginAttempt:
        """Append a failed attempt and lock the account past the threshold.

        Args:
            email: Email the caller tried to log in with
            ip_address: Client IP address
            reason: Internal failure cause, never shown to the caller
            user_agent: Client user agent

        Returns:
            The recorded InvalidLoginAttempt
        """
        email = normalize_email(email)
        now = datetime.now(UTC)
        window_start = now - timedelta(minutes=self.settings.lockout_window_minutes)

        result = await self.db.execute(
            select(func.count(InvalidLoginAttempt.id)).where(
                InvalidLoginAttempt.attempted_email == email,
                InvalidLoginAttempt.created_at >= window_start,
            )
        )
        count = (result.scalar() or 0) + 1

        user = await self.identity_service.get_user_by_email(email)
        locked_until = None
        if count > self.settings.lockout_threshold:
            locked_until = now + timedelta(minutes=self.settings.lockout_duration_minutes)

        attempt = InvalidLoginAttempt(
            user_id=user.id if user else None,
            attempted_email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            failure_reason=reason,
            attempt_count_window=count,
            locked_until=locked_until,
        )
        self.db.add(attempt)

        if locked_until and user:
            user.locked_until = locked_until
            await self.audit_service.log(
                action=AuditAction.USER_LOCKOUT,
                entity_type="user",
                entity_id=user.id,
                user_id=user.id,
                ip_address=ip_address,
                diff_json={
                    "failed_attempts": count,
                    "locked_until": locked_until.isoformat(),
                    "lockout_duration_minutes": self.settings.lockout_duration_minutes,
                },
            )
        await self.db.flush()

        if locked_until:
            ACCOUNT_LOCKOUTS_TOTAL.inc()
            log_json(
                logger,
                logging.WARNING,
                "account_locked",
                email=email,
                attempts=count,
                locked_until=locked_until.isoformat(),
                ip_address=ip_address,
            )
        return attempt

    async def lockout_until(self, email: str, now: datetime | None = None) -> datetime | None:
        """Return the end of the active lock for `email`, if any."""
        email = normalize_email(email)
        now = now or datetime.now(UTC)

        result = await self.db.execute(
            select(func.max(InvalidLoginAttempt.locked_until)).where(
                InvalidLoginAttempt.attempted_email == email,
                InvalidLoginAttempt.locked_until.is_not(None),
            )
        )
        candidates = [result.scalar()]
        user = await self.identity_service.get_user_by_email(email)
        if user:
            candidates.append(user.locked_until)

        active = [_as_utc(c) for c in candidates if c is not None and _as_utc(c) > now]
        return max(active) if active else None

    async def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[str, str, User]:
        """Authenticate a user and open a session.

        Failure records are committed before the error is raised so that the
        caller's rollback keeps them.

        Returns:
            Tuple of (raw access token, raw refresh token, user)

        Raises:
            LockedError: while the account is locked
            InvalidCredentialsError: for any credential or account-state failure
        """
        email = normalize_email(email)
        locked_until = await self.lockout_until(email)
        if locked_until:
            log_json(logger, logging.INFO, "login_rejected_locked", email=email, ip_address=ip_address)
            observe_login("locked")
            raise LockedError(locked_until=locked_until.isoformat())

        user = await self.identity_service.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            reason = "unknown_email" if user is None else "bad_password"
            log_json(logger, logging.INFO, "login_failed", email=email, reason=reason, ip_address=ip_address)
            observe_login(reason)
            await self.record_failed_login(email, ip_address, reason, user_agent)
            await self.db.commit()
            raise InvalidCredentialsError()

        if not user.is_active or user.status != UserStatus.ACTIVE or not user.is_email_verified:
            log_json(
                logger,
                logging.INFO,
                "login_rejected_account_state",
                user_id=str(user.id),
                status=user.status.value,
                is_active=user.is_active,
                is_email_verified=user.is_email_verified,
            )
            observe_login("account_state")
            raise InvalidCredentialsError()

        user.last_login_at = datetime.now(UTC)
        user.locked_until = None
        access_raw, _ = await self.token_service.issue_token(
            user.id,
            TokenType.ACCESS,
            timedelta(minutes=self.settings.access_token_expire_minutes),
            ip=ip_address,
            user_agent=user_agent,
        )
        refresh_raw, _ = await self.token_service.issue_token(
            user.id,
            TokenType.REFRESH,
            timedelta(days=self.settings.refresh_token_expire_days),
            ip=ip_address,
            user_agent=user_agent,
        )
        observe_login("success")

        await self.audit_service.log(
            action=AuditAction.USER_LOGIN,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            ip_address=ip_address,
        )
        return access_raw, refresh_raw, user

    async def refresh(
        self,
        raw_refresh: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[str, str]:
        """Exchange a refresh token for a new access/refresh pair.

        The presented refresh token is revoked (rotation).

        Raises:
            InvalidError: if the refresh token is not live or the user is inactive
        """
        token = await self.token_service.verify_token(raw_refresh, TokenType.REFRESH)
        user = await self.db.get(User, token.user_id)
        if not user or not user.is_active or user.status != UserStatus.ACTIVE:
            raise InvalidError()

        await self.token_service.revoke(token.id, "rotated")
        access_raw, _ = await self.token_service.issue_token(
            user.id,
            TokenType.ACCESS,
            timedelta(minutes=self.settings.access_token_expire_minutes),
            ip=ip_address,
            user_agent=user_agent,
        )
        refresh_raw, _ = await self.token_service.issue_token(
            user.id,
            TokenType.REFRESH,
            timedelta(days=self.settings.refresh_token_expire_days),
            ip=ip_address,
            user_agent=user_agent,
        )
        return access_raw, refresh_raw

    async def logout(
        self,
        raw_access: str,
        all_sessions: bool = False,
        ip_address: str | None = None,
    ) -> int:
        """Revoke the presented access token, or every token of its user.

        Returns:
            Number of tokens revoked
        """
        token = await self.token_service.verify_token(raw_access, TokenType.ACCESS)
        if all_sessions:
            count = await self.token_service.revoke_all_for_user(token.user_id, "logout_all")
        else:
            await self.token_service.revoke(token.id, "logout")
            count = 1

        await self.audit_service.log(
            action=AuditAction.USER_LOGOUT,
            entity_type="user",
            entity_id=token.user_id,
            user_id=token.user_id,
            ip_address=ip_address,
            diff_json={"all_sessions": all_sessions},
        )
        return count

    async def request_password_reset(self, email: str) -> str | None:
        """Issue a password-reset token for an active user.

        Returns None for unknown or inactive accounts; callers must respond
        identically in both cases.
        """
        user = await self.identity_service.get_user_by_email(email)
        if user is None or not user.is_active:
            log_json(logger, logging.INFO, "password_reset_ignored", email=normalize_email(email))
            return None

        await self.token_service.revoke_all_for_user(user.id, "superseded", TokenType.RESET_PASSWORD)
        raw, _ = await self.token_service.issue_token(
            user.id,
            TokenType.RESET_PASSWORD,
            timedelta(hours=self.settings.reset_password_token_expire_hours),
        )
        return raw

    async def reset_password(self, raw_token: str, new_password: str) -> User:
        """Set a new password from a reset token and end every session.

        Raises:
            InvalidError: if the reset token is not live
            ValidationError: if the new password fails the password policy
        """
        token = await self.token_service.verify_token(raw_token, TokenType.RESET_PASSWORD)
        user = await self.identity_service.change_password(token.user_id, new_password)
        user.locked_until = None
        await self.token_service.revoke_all_for_user(user.id, "password_reset")

        await self.audit_service.log(
            action=AuditAction.USER_PASSWORD_RESET,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
        )
        return user

    async def request_email_verification(self, user_id: UUID) -> str | None:
        """Issue an email-verification token. None if already verified."""
        user = await self.identity_service.get_user(user_id)
        if user.is_email_verified:
            return None

        await self.token_service.revoke_all_for_user(user.id, "superseded", TokenType.VERIFY_EMAIL)
        raw, _ = await self.token_service.issue_token(
            user.id,
            TokenType.VERIFY_EMAIL,
            timedelta(hours=self.settings.verify_email_token_expire_hours),
        )
        return raw

    async def confirm_email(self, raw_token: str) -> User:
        """Verify the user's email from a verification token.

        Raises:
            InvalidError: if the verification token is not live
        """
        token = await self.token_service.verify_token(raw_token, TokenType.VERIFY_EMAIL)
        user = await self.identity_service.verify_email(token.user_id)
        await self.token_service.revoke(token.id, "used")
        return user


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
