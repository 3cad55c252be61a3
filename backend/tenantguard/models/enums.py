"""Enumerations for account status, licensing, tokens and audit actions."""

from enum import Enum


class UserStatus(str, Enum):
    """Lifecycle status of a user account.

    Only ACTIVE users with a verified email may log in.
    """

    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INVITED = "invited"


class LicenseStatus(str, Enum):
    """License status.

    Transitions normally run ACTIVE -> EXPIRED/REVOKED/SUSPENDED, but an
    administrator may reactivate a license. Only ACTIVE inside the validity
    window entitles an organization.
    """

    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    SUSPENDED = "suspended"


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET_PASSWORD = "reset_password"
    VERIFY_EMAIL = "verify_email"
    API_KEY = "api_key"


class AuditAction(str, Enum):
    """Audit action enumeration for tracking administrative actions."""

    # Organization
    ORG_CREATE = "organization.create"

    # User
    USER_CREATE = "user.create"
    USER_UPDATE = "user.update"
    USER_STATUS_CHANGE = "user.status_change"
    USER_DEACTIVATE = "user.deactivate"
    USER_EMAIL_VERIFIED = "user.email_verified"
    USER_PASSWORD_RESET = "user.password_reset"
    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"
    USER_LOCKOUT = "user.lockout"

    # Membership
    MEMBERSHIP_CREATE = "membership.create"
    MEMBERSHIP_DEACTIVATE = "membership.deactivate"
    MEMBERSHIP_PRIMARY_CHANGE = "membership.primary_change"

    # Role/permission graph
    ROLE_CREATE = "role.create"
    ROLE_UPDATE = "role.update"
    ROLE_DELETE = "role.delete"
    PERMISSION_CREATE = "permission.create"
    PERMISSION_UPDATE = "permission.update"
    PERMISSION_DELETE = "permission.delete"
    ROLE_PERMISSION_ASSIGN = "role_permission.assign"
    ROLE_PERMISSION_REVOKE = "role_permission.revoke"
    USER_ROLE_ASSIGN = "user_role.assign"
    USER_ROLE_REMOVE = "user_role.remove"

    # License
    LICENSE_ISSUE = "license.issue"
    LICENSE_UPDATE = "license.update"
    LICENSE_REVOKE = "license.revoke"
    LICENSE_EXPIRE = "license.expire"
