"""User management endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import OrganizationContext, get_current_user, require_permission
from tenantguard.core.database import get_db
from tenantguard.core.errors import NotFoundError
from tenantguard.models.user import User
from tenantguard.schemas.organization import MembershipResponse, SetPrimaryRequest
from tenantguard.schemas.user import (
    UserProfileUpdateRequest,
    UserResponse,
    UserRoleAssignRequest,
    UserRoleResponse,
    UserStatusUpdateRequest,
)
from tenantguard.services.identity_service import IdentityService
from tenantguard.services.membership_service import MembershipService
from tenantguard.services.rbac_service import RBACService

router = APIRouter()


async def _member_of_context(db: AsyncSession, user_id: UUID, ctx: OrganizationContext) -> User:
    """Load a user that belongs to the caller's organization.

    Users outside the organization are reported as missing.
    """
    if not await MembershipService(db).has_active_membership(user_id, ctx.organization_id):
        raise NotFoundError("User not found")
    return await IdentityService(db).get_user(user_id)


@router.get("", response_model=list[UserResponse])
async def list_users(
    ctx: OrganizationContext = Depends(require_permission("user.read")),
    db: AsyncSession = Depends(get_db),
):
    """List active members of the current organization."""
    identity = IdentityService(db)
    memberships = await MembershipService(db).list_organization_members(ctx.organization_id)
    return [await identity.get_user(m.user_id) for m in memberships]


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    data: UserProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Self-service profile update (name fields only)."""
    return await IdentityService(db).update_profile(
        current_user.id,
        first_name=data.first_name,
        last_name=data.last_name,
    )


@router.get("/me/memberships", response_model=list[MembershipResponse])
async def list_my_memberships(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await MembershipService(db).list_memberships(current_user.id)


@router.put("/me/primary-organization", response_model=MembershipResponse)
async def set_my_primary_organization(
    data: SetPrimaryRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Switch the caller's default organization."""
    return await MembershipService(db).set_primary(current_user.id, data.organization_id)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("user.read")),
    db: AsyncSession = Depends(get_db),
):
    return await _member_of_context(db, user_id, ctx)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: UUID,
    data: UserStatusUpdateRequest,
    ctx: OrganizationContext = Depends(require_permission("user.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Set a member's account status (e.g. suspend)."""
    await _member_of_context(db, user_id, ctx)
    return await IdentityService(db).set_status(user_id, data.status, changed_by=ctx.user.id)


@router.delete("/{user_id}", response_model=UserResponse)
async def deactivate_user(
    user_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("user.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a member's account. Users are never hard-deleted."""
    await _member_of_context(db, user_id, ctx)
    return await IdentityService(db).deactivate_user(user_id, deactivated_by=ctx.user.id)


@router.get("/{user_id}/roles", response_model=list[UserRoleResponse])
async def list_user_roles(
    user_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
):
    await _member_of_context(db, user_id, ctx)
    return await RBACService(db).list_user_roles(user_id)


@router.post("/{user_id}/roles", response_model=UserRoleResponse, status_code=status.HTTP_201_CREATED)
async def assign_user_role(
    user_id: UUID,
    data: UserRoleAssignRequest,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    await _member_of_context(db, user_id, ctx)
    return await RBACService(db).assign_role_to_user(user_id, data.role_id, assigned_by=ctx.user.id)


@router.delete("/{user_id}/roles/{role_id}", response_model=UserRoleResponse)
async def remove_user_role(
    user_id: UUID,
    role_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    await _member_of_context(db, user_id, ctx)
    return await RBACService(db).remove_role_from_user(user_id, role_id, removed_by=ctx.user.id)
