"""License ledger: issuance, revocation, expiry and entitlement checks."""
import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import (
    ExpiredError,
    ImmutableFieldError,
    InvalidError,
    InvalidWindowError,
    NotFoundError,
    RevokedError,
    ValidationError,
)
from tenantguard.core.metrics import LICENSES_EXPIRED_TOTAL
from tenantguard.core.security import generate_license_key
from tenantguard.core.structured_logging import log_json
from tenantguard.models.enums import AuditAction, LicenseStatus
from tenantguard.models.license import License
from tenantguard.models.organization import Organization
from tenantguard.services.audit_service import AuditService

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"plan_name", "status", "starts_at", "expires_at", "max_users", "notes"}
)


def _entitling_clause(now: datetime):
    return and_(
        License.status == LicenseStatus.ACTIVE,
        License.revoked_at.is_(None),
        License.starts_at <= now,
        License.expires_at > now,
    )


class LicenseService:
    """Service for organization licenses.

    A license key is generated at issuance and never changes afterwards.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    async def get_license(self, license_id: UUID, for_update: bool = False) -> License:
        query = select(License).where(License.id == license_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        license_ = result.scalar_one_or_none()
        if not license_:
            raise NotFoundError("License not found")
        return license_

    async def list_licenses(self, org_id: UUID) -> list[License]:
        result = await self.db.execute(
            select(License)
            .where(License.organization_id == org_id)
            .order_by(License.starts_at.desc())
        )
        return list(result.scalars().all())

    async def issue(
        self,
        org_id: UUID,
        plan_name: str,
        starts_at: datetime,
        expires_at: datetime,
        max_users: int | None = None,
        notes: str | None = None,
        issued_by: UUID | None = None,
    ) -> License:
        """Issue a new license to an organization.

        Raises:
            InvalidWindowError: if starts_at is not before expires_at
            ValidationError: if max_users is not positive
            NotFoundError: if the organization does not exist
        """
        starts_at = _as_utc(starts_at)
        expires_at = _as_utc(expires_at)
        if starts_at >= expires_at:
            raise InvalidWindowError()
        if max_users is not None and max_users <= 0:
            raise ValidationError("max_users must be positive", field="max_users")
        if not plan_name or not plan_name.strip():
            raise ValidationError("plan_name is required", field="plan_name")

        org = await self.db.get(Organization, org_id)
        if not org:
            raise NotFoundError("Organization not found")

        license_ = License(
            organization_id=org_id,
            key=generate_license_key(),
            plan_name=plan_name.strip(),
            status=LicenseStatus.ACTIVE,
            starts_at=starts_at,
            expires_at=expires_at,
            max_users=max_users,
            notes=notes,
        )
        self.db.add(license_)
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.LICENSE_ISSUE,
            entity_type="license",
            entity_id=license_.id,
            org_id=org_id,
            user_id=issued_by,
            diff_json={
                "plan_name": license_.plan_name,
                "starts_at": starts_at.isoformat(),
                "expires_at": expires_at.isoformat(),
                "max_users": max_users,
            },
        )
        return license_

    async def revoke(
        self,
        license_id: UUID,
        reason: str | None = None,
        revoked_by: UUID | None = None,
    ) -> License:
        """Revoke a license. Revoking twice is a no-op."""
        license_ = await self.get_license(license_id, for_update=True)
        if license_.status == LicenseStatus.REVOKED:
            return license_

        old_status = license_.status
        license_.status = LicenseStatus.REVOKED
        license_.revoked_at = datetime.now(UTC)
        license_.revoked_reason = reason
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.LICENSE_REVOKE,
            entity_type="license",
            entity_id=license_.id,
            org_id=license_.organization_id,
            user_id=revoked_by,
            diff_json={"status": {"old": old_status.value, "new": "revoked"}, "reason": reason},
        )
        log_json(logger, logging.INFO, "license_revoked", license_id=str(license_.id), reason=reason)
        return license_

    async def update(self, license_id: UUID, updated_by: UUID | None = None, **fields) -> License:
        """Administrative edit of a license.

        Raises:
            ImmutableFieldError: if `key` is among the fields
            ValidationError: for unknown fields or a non-positive seat count
            InvalidWindowError: if the resulting window is empty
        """
        if "key" in fields:
            raise ImmutableFieldError("License key is immutable and cannot be updated", field="key")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown license fields: {', '.join(sorted(unknown))}")
        for field in ("starts_at", "expires_at"):
            if fields.get(field) is not None:
                fields[field] = _as_utc(fields[field])
        if fields.get("status") is not None:
            try:
                fields["status"] = LicenseStatus(fields["status"])
            except ValueError:
                raise ValidationError(f"Unknown license status: {fields['status']}", field="status") from None

        license_ = await self.get_license(license_id, for_update=True)

        starts_at = fields.get("starts_at") or license_.starts_at
        expires_at = fields.get("expires_at") or license_.expires_at
        if starts_at >= expires_at:
            raise InvalidWindowError()
        max_users = fields.get("max_users")
        if max_users is not None and max_users <= 0:
            raise ValidationError("max_users must be positive", field="max_users")

        diff = {}
        for field, value in fields.items():
            if value is None and field != "notes":
                continue
            old = getattr(license_, field)
            if old == value:
                continue
            diff[field] = {"old": _jsonable(old), "new": _jsonable(value)}
            setattr(license_, field, value)

        if "status" in diff and license_.status == LicenseStatus.ACTIVE:
            license_.revoked_at = None
            license_.revoked_reason = None
        elif "status" in diff and license_.status == LicenseStatus.REVOKED and license_.revoked_at is None:
            license_.revoked_at = datetime.now(UTC)

        if diff:
            await self.db.flush()
            await self.audit_service.log(
                action=AuditAction.LICENSE_UPDATE,
                entity_type="license",
                entity_id=license_.id,
                org_id=license_.organization_id,
                user_id=updated_by,
                diff_json=diff,
            )
        return license_

    async def is_entitled(self, org_id: UUID | None, now: datetime | None = None) -> bool:
        """Whether the organization holds at least one license valid at `now`."""
        if org_id is None:
            return False
        now = _as_utc(now) if now else datetime.now(UTC)
        result = await self.db.execute(
            select(
                exists().where(License.organization_id == org_id, _entitling_clause(now))
            )
        )
        return bool(result.scalar())

    async def check_license(self, license_id: UUID, now: datetime | None = None) -> License:
        """Return the license if it entitles at `now`, otherwise say why not.

        Raises:
            RevokedError: if the license was revoked
            ExpiredError: if the license expired or its window has passed
            InvalidError: if it is suspended, not yet started, or unattached
        """
        now = _as_utc(now) if now else datetime.now(UTC)
        license_ = await self.get_license(license_id)
        if license_.status == LicenseStatus.REVOKED or license_.revoked_at is not None:
            raise RevokedError()
        if license_.status == LicenseStatus.EXPIRED or license_.expires_at <= now:
            raise ExpiredError()
        if license_.status != LicenseStatus.ACTIVE:
            raise InvalidError("License is not active")
        if license_.starts_at > now:
            raise InvalidError("License is not yet valid")
        if license_.organization_id is None:
            raise InvalidError("License is not attached to an organization")
        return license_

    async def expire_overdue(self, now: datetime | None = None) -> int:
        """Mark unrevoked licenses past their window as expired.

        Returns:
            Number of licenses transitioned to expired
        """
        now = _as_utc(now) if now else datetime.now(UTC)
        result = await self.db.execute(
            select(License)
            .where(
                License.status != LicenseStatus.EXPIRED,
                License.status != LicenseStatus.REVOKED,
                License.revoked_at.is_(None),
                License.expires_at < now,
            )
            .with_for_update()
        )
        overdue = list(result.scalars().all())
        for license_ in overdue:
            old_status = license_.status
            license_.status = LicenseStatus.EXPIRED
            await self.audit_service.log(
                action=AuditAction.LICENSE_EXPIRE,
                entity_type="license",
                entity_id=license_.id,
                org_id=license_.organization_id,
                diff_json={"status": {"old": old_status.value, "new": "expired"}},
            )

        if overdue:
            LICENSES_EXPIRED_TOTAL.inc(len(overdue))
            log_json(logger, logging.INFO, "licenses_expired", count=len(overdue))
        return len(overdue)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, LicenseStatus):
        return value.value
    return value
