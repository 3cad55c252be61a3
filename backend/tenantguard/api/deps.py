"""FastAPI dependencies for authentication and authorization."""
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core import request_context
from tenantguard.core.database import get_db
from tenantguard.core.errors import ForbiddenError, InvalidError, ValidationError
from tenantguard.models.enums import TokenType
from tenantguard.models.token import Token
from tenantguard.models.user import User
from tenantguard.services.authorization_service import AuthorizationService
from tenantguard.services.membership_service import MembershipService
from tenantguard.services.token_service import TokenService

# HTTP Bearer token security scheme; a missing header is reported as 401.
security = HTTPBearer(auto_error=False)


@dataclass
class OrganizationContext:
    """Caller plus the organization a tenant-scoped request acts in."""

    user: User
    organization_id: UUID


def get_client_ip(request: Request) -> str | None:
    """Extract client IP address, preferring the first X-Forwarded-For hop."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_current_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Resolve the bearer access token.

    Raises:
        InvalidError: if the header is missing or the token is not live
    """
    if credentials is None or not credentials.credentials:
        raise InvalidError()
    return await TokenService(db).verify_token(credentials.credentials, TokenType.ACCESS)


async def get_current_user(
    token: Token = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get the authenticated, active user behind the access token.

    Raises:
        InvalidError: if the user no longer exists or was deactivated
    """
    user = await db.get(User, token.user_id)
    if not user or not user.is_active:
        raise InvalidError()
    # Stays bound until the request middleware leaves its scope.
    request_context.push(user_id=user.id)
    return user


async def get_organization_id(
    x_organization_id: str | None = Header(default=None, alias="X-Organization-ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UUID:
    """Organization for a tenant-scoped request.

    Taken from the X-Organization-ID header, else the caller's primary
    membership.
    """
    if x_organization_id:
        try:
            organization_id = UUID(x_organization_id)
        except ValueError:
            raise ValidationError("X-Organization-ID must be a UUID", field="X-Organization-ID") from None
    else:
        primary = await MembershipService(db).get_primary(current_user.id)
        if primary is None:
            raise ForbiddenError("No organization selected")
        organization_id = primary.organization_id

    request_context.push(organization_id=organization_id)
    return organization_id


def require_permission(permission_code: str) -> Callable:
    """Dependency factory for permission-based access control.

    Example:
        @router.post("/roles")
        async def create_role(
            ctx: OrganizationContext = Depends(require_permission("role.manage"))
        ):
            ...
    """

    async def check_permission(
        current_user: User = Depends(get_current_user),
        organization_id: UUID = Depends(get_organization_id),
        db: AsyncSession = Depends(get_db),
    ) -> OrganizationContext:
        """Authorize the caller for `permission_code` in the organization.

        Raises:
            ForbiddenError: on a DENY decision
        """
        result = await AuthorizationService(db).explain(
            current_user.id, organization_id, permission_code
        )
        if not result.allowed:
            raise ForbiddenError(permission=permission_code, reason=result.reason)
        return OrganizationContext(user=current_user, organization_id=organization_id)

    return check_permission
