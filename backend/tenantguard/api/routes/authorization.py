"""Authorization check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import get_current_user
from tenantguard.core.database import get_db
from tenantguard.core.errors import ForbiddenError
from tenantguard.models.user import User
from tenantguard.schemas.authorization import AuthorizeRequest, AuthorizeResponse
from tenantguard.services.authorization_service import AuthorizationService

router = APIRouter()


@router.post("/authorize", response_model=AuthorizeResponse)
async def authorize(
    data: AuthorizeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Evaluate a permission check and report the deciding step.

    A DENY is a normal 200 response. Checking on behalf of another user
    requires `role.manage` in the target organization.
    """
    service = AuthorizationService(db)
    subject_id = data.user_id or current_user.id
    if subject_id != current_user.id:
        gate = await service.explain(current_user.id, data.organization_id, "role.manage")
        if not gate.allowed:
            raise ForbiddenError(permission="role.manage", reason=gate.reason)

    result = await service.explain(
        subject_id,
        data.organization_id,
        data.permission_code,
        data.context,
    )
    return AuthorizeResponse(
        decision=result.decision,
        reason=result.reason,
        matched_roles=list(result.matched_roles),
    )
