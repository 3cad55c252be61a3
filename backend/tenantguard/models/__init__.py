"""SQLAlchemy models."""

from tenantguard.models import guards  # noqa: F401  registers invariant listeners
from tenantguard.models.audit_event import AuditEvent
from tenantguard.models.base import Base, BaseModel
from tenantguard.models.enums import AuditAction, LicenseStatus, TokenType, UserStatus
from tenantguard.models.invalid_login_attempt import InvalidLoginAttempt
from tenantguard.models.license import License
from tenantguard.models.membership import Membership
from tenantguard.models.organization import Organization
from tenantguard.models.permission import Permission
from tenantguard.models.role import Role
from tenantguard.models.role_permission import RolePermission
from tenantguard.models.token import Token
from tenantguard.models.user import User
from tenantguard.models.user_role import UserRole

__all__ = [
    "Base",
    "BaseModel",
    "AuditAction",
    "LicenseStatus",
    "TokenType",
    "UserStatus",
    "AuditEvent",
    "InvalidLoginAttempt",
    "License",
    "Membership",
    "Organization",
    "Permission",
    "Role",
    "RolePermission",
    "Token",
    "User",
    "UserRole",
]
