"""Role endpoints and role-permission assignments."""
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import OrganizationContext, require_permission
from tenantguard.core.database import get_db
from tenantguard.schemas.rbac import (
    RoleCreateRequest,
    RolePermissionAssignRequest,
    RolePermissionResponse,
    RoleResponse,
    RoleUpdateRequest,
)
from tenantguard.services.rbac_service import RBACService

router = APIRouter()


@router.get("", response_model=list[RoleResponse])
async def list_roles(
    include_inactive: bool = False,
    ctx: OrganizationContext = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).list_roles(include_inactive=include_inactive)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreateRequest,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).create_role(
        name=data.name,
        code=data.code,
        description=data.description,
        is_system=data.is_system,
        created_by=ctx.user.id,
    )


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).get_role(role_id)


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    data: RoleUpdateRequest,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Update name, description, active flag, or latch the system flag.

    Clearing `is_system` on a system role fails with 409 protected_entity.
    """
    rbac = RBACService(db)
    if data.is_system is not None:
        await rbac.set_role_system(role_id, data.is_system, updated_by=ctx.user.id)
    return await rbac.update_role(
        role_id,
        name=data.name,
        description=data.description,
        is_active=data.is_active,
        updated_by=ctx.user.id,
    )


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    await RBACService(db).delete_role(role_id, deleted_by=ctx.user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{role_id}/permissions", response_model=list[RolePermissionResponse])
async def list_role_permissions(
    role_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
):
    rbac = RBACService(db)
    await rbac.get_role(role_id)
    return await rbac.list_role_permissions(role_id)


@router.put("/{role_id}/permissions", response_model=RolePermissionResponse)
async def assign_role_permission(
    role_id: UUID,
    data: RolePermissionAssignRequest,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Grant or explicitly deny a permission; re-assigning overwrites."""
    return await RBACService(db).assign_permission_to_role(
        role_id,
        data.permission_id,
        allowed=data.allowed,
        scope=data.scope,
        constraints=data.constraints,
        assigned_by=ctx.user.id,
    )


@router.delete("/{role_id}/permissions/{permission_id}", response_model=RolePermissionResponse)
async def revoke_role_permission(
    role_id: UUID,
    permission_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("role.manage")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).revoke_permission_from_role(
        role_id, permission_id, revoked_by=ctx.user.id
    )
