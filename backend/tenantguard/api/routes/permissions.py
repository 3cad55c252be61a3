"""Permission endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import OrganizationContext, require_permission
from tenantguard.core.database import get_db
from tenantguard.schemas.rbac import (
    PermissionCreateRequest,
    PermissionResponse,
    PermissionUpdateRequest,
)
from tenantguard.services.rbac_service import RBACService

router = APIRouter()


@router.get("", response_model=list[PermissionResponse])
async def list_permissions(
    resource: str | None = None,
    ctx: OrganizationContext = Depends(require_permission("permission.read")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).list_permissions(resource=resource)


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    data: PermissionCreateRequest,
    ctx: OrganizationContext = Depends(require_permission("permission.manage")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).create_permission(
        code=data.code,
        resource=data.resource,
        action=data.action,
        name=data.name,
        description=data.description,
        is_system=data.is_system,
        created_by=ctx.user.id,
    )


@router.get("/{permission_id}", response_model=PermissionResponse)
async def get_permission(
    permission_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("permission.read")),
    db: AsyncSession = Depends(get_db),
):
    return await RBACService(db).get_permission(permission_id)


@router.patch("/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: UUID,
    data: PermissionUpdateRequest,
    ctx: OrganizationContext = Depends(require_permission("permission.manage")),
    db: AsyncSession = Depends(get_db),
):
    rbac = RBACService(db)
    if data.is_system is not None:
        await rbac.set_permission_system(permission_id, data.is_system, updated_by=ctx.user.id)
    return await rbac.update_permission(
        permission_id,
        name=data.name,
        description=data.description,
        is_active=data.is_active,
        updated_by=ctx.user.id,
    )


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("permission.manage")),
    db: AsyncSession = Depends(get_db),
):
    await RBACService(db).delete_permission(permission_id, deleted_by=ctx.user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
