"""Organization and membership endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import OrganizationContext, require_permission
from tenantguard.core.database import get_db
from tenantguard.core.errors import ForbiddenError, NotFoundError
from tenantguard.models.membership import Membership
from tenantguard.schemas.organization import (
    CreateOrganizationRequest,
    MembershipCreateRequest,
    MembershipResponse,
    OrganizationResponse,
)
from tenantguard.services.identity_service import IdentityService
from tenantguard.services.membership_service import MembershipService

router = APIRouter()


def _same_organization(org_id: UUID, ctx: OrganizationContext) -> None:
    if org_id != ctx.organization_id:
        raise ForbiddenError("Request is scoped to a different organization")


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    data: CreateOrganizationRequest,
    ctx: OrganizationContext = Depends(require_permission("organization.create")),
    db: AsyncSession = Depends(get_db),
):
    """Provision a new tenant.

    Platform-level operation; the caller needs `organization.create` in the
    organization they act from.
    """
    return await IdentityService(db).create_organization(
        name=data.name,
        currency=data.currency,
        created_by=ctx.user.id,
    )


@router.get("/current", response_model=OrganizationResponse)
async def get_current_organization(
    ctx: OrganizationContext = Depends(require_permission("organization.read")),
    db: AsyncSession = Depends(get_db),
):
    return await IdentityService(db).get_organization(ctx.organization_id)


@router.get("/{org_id}/members", response_model=list[MembershipResponse])
async def list_members(
    org_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("membership.read")),
    db: AsyncSession = Depends(get_db),
):
    _same_organization(org_id, ctx)
    return await MembershipService(db).list_organization_members(org_id)


@router.post(
    "/{org_id}/members",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    org_id: UUID,
    data: MembershipCreateRequest,
    ctx: OrganizationContext = Depends(require_permission("membership.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Add a user to the organization, optionally assigning a role by code."""
    _same_organization(org_id, ctx)
    return await MembershipService(db).add_membership(
        data.user_id,
        org_id,
        role_code=data.role_code,
        added_by=ctx.user.id,
    )


@router.delete("/{org_id}/members/{membership_id}", response_model=MembershipResponse)
async def remove_member(
    org_id: UUID,
    membership_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("membership.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a membership; the user's primary organization is re-picked if needed."""
    _same_organization(org_id, ctx)
    membership = await db.get(Membership, membership_id)
    if membership is None or membership.organization_id != org_id:
        raise NotFoundError("Membership not found")
    return await MembershipService(db).deactivate(membership_id, deactivated_by=ctx.user.id)
