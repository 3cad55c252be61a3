"""License endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.deps import OrganizationContext, require_permission
from tenantguard.core.database import get_db
from tenantguard.core.errors import ForbiddenError, NotFoundError
from tenantguard.models.license import License
from tenantguard.schemas.license import (
    EntitlementResponse,
    LicenseIssueRequest,
    LicenseResponse,
    LicenseRevokeRequest,
    LicenseUpdateRequest,
)
from tenantguard.services.authorization_service import AuthorizationService
from tenantguard.services.license_service import LicenseService

router = APIRouter()


async def _manages_licenses(ctx: OrganizationContext, db: AsyncSession) -> bool:
    result = await AuthorizationService(db).explain(ctx.user.id, ctx.organization_id, "license.manage")
    return result.allowed


async def _visible_license(license_id: UUID, ctx: OrganizationContext, db: AsyncSession) -> License:
    """License in the caller's organization; any license for license managers.

    Licenses of other organizations are reported as missing.
    """
    license_ = await LicenseService(db).get_license(license_id)
    if license_.organization_id != ctx.organization_id and not await _manages_licenses(ctx, db):
        raise NotFoundError("License not found")
    return license_


@router.post("", response_model=LicenseResponse, status_code=status.HTTP_201_CREATED)
async def issue_license(
    data: LicenseIssueRequest,
    ctx: OrganizationContext = Depends(require_permission("license.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Issue a license; the key is generated server-side."""
    return await LicenseService(db).issue(
        org_id=data.organization_id,
        plan_name=data.plan_name,
        starts_at=data.starts_at,
        expires_at=data.expires_at,
        max_users=data.max_users,
        notes=data.notes,
        issued_by=ctx.user.id,
    )


@router.get("", response_model=list[LicenseResponse])
async def list_licenses(
    organization_id: UUID | None = None,
    ctx: OrganizationContext = Depends(require_permission("license.read")),
    db: AsyncSession = Depends(get_db),
):
    """List licenses of the current organization.

    Another organization may be named only by callers holding license.manage.
    """
    target = organization_id or ctx.organization_id
    if target != ctx.organization_id and not await _manages_licenses(ctx, db):
        raise ForbiddenError(permission="license.manage", reason="other_organization")
    return await LicenseService(db).list_licenses(target)


@router.get("/entitlement", response_model=EntitlementResponse)
async def get_entitlement(
    ctx: OrganizationContext = Depends(require_permission("license.read")),
    db: AsyncSession = Depends(get_db),
):
    entitled = await LicenseService(db).is_entitled(ctx.organization_id)
    return EntitlementResponse(organization_id=ctx.organization_id, entitled=entitled)


@router.get("/{license_id}", response_model=LicenseResponse)
async def get_license(
    license_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("license.read")),
    db: AsyncSession = Depends(get_db),
):
    return await _visible_license(license_id, ctx, db)


@router.get("/{license_id}/check", response_model=LicenseResponse)
async def check_license(
    license_id: UUID,
    ctx: OrganizationContext = Depends(require_permission("license.read")),
    db: AsyncSession = Depends(get_db),
):
    """Return the license if it currently entitles; otherwise 409 expired/revoked or 401 invalid."""
    await _visible_license(license_id, ctx, db)
    return await LicenseService(db).check_license(license_id)


@router.patch("/{license_id}", response_model=LicenseResponse)
async def update_license(
    license_id: UUID,
    data: LicenseUpdateRequest,
    ctx: OrganizationContext = Depends(require_permission("license.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Administrative edit. Any attempt to change `key` fails with 409 immutable_field."""
    fields = data.model_dump(exclude_unset=True)
    return await LicenseService(db).update(license_id, updated_by=ctx.user.id, **fields)


@router.post("/{license_id}/revoke", response_model=LicenseResponse)
async def revoke_license(
    license_id: UUID,
    data: LicenseRevokeRequest,
    ctx: OrganizationContext = Depends(require_permission("license.manage")),
    db: AsyncSession = Depends(get_db),
):
    """Revoke a license. Revoking an already revoked license is a no-op."""
    return await LicenseService(db).revoke(license_id, reason=data.reason, revoked_by=ctx.user.id)
