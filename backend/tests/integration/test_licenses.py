"""Integration tests for the license ledger."""
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
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
from tenantguard.models.enums import LicenseStatus
from tenantguard.models.license import License
from tenantguard.models.organization import Organization
from tenantguard.services.license_service import LicenseService
from tenantguard.tasks.license_expiry_task import run_license_expiry

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


async def issue(db: AsyncSession, org: Organization, starts_at=None, expires_at=None) -> License:
    return await LicenseService(db).issue(
        org_id=org.id,
        plan_name="standard",
        starts_at=starts_at or NOW - timedelta(days=10),
        expires_at=expires_at or NOW + timedelta(days=10),
    )


@pytest.mark.asyncio
class TestIssue:
    async def test_issue_generates_key(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)

        assert license_.status == LicenseStatus.ACTIVE
        assert len(license_.key) == 36
        assert license_.revoked_at is None

    async def test_empty_window_rejected(self, db: AsyncSession, test_org: Organization):
        with pytest.raises(InvalidWindowError):
            await issue(db, test_org, starts_at=NOW, expires_at=NOW)

    async def test_non_positive_seats_rejected(self, db: AsyncSession, test_org: Organization):
        with pytest.raises(ValidationError):
            await LicenseService(db).issue(
                org_id=test_org.id,
                plan_name="standard",
                starts_at=NOW,
                expires_at=NOW + timedelta(days=1),
                max_users=0,
            )

    async def test_unknown_organization(self, db: AsyncSession, test_org: Organization):
        with pytest.raises(NotFoundError):
            await LicenseService(db).issue(
                org_id=uuid4(),
                plan_name="standard",
                starts_at=NOW,
                expires_at=NOW + timedelta(days=1),
            )

    async def test_naive_datetimes_are_utc(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(
            db,
            test_org,
            starts_at=datetime(2026, 1, 1),
            expires_at=datetime(2027, 1, 1),
        )
        assert license_.starts_at == datetime(2026, 1, 1, tzinfo=UTC)


@pytest.mark.asyncio
class TestUpdate:
    async def test_key_is_immutable(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)
        original_key = license_.key

        with pytest.raises(ImmutableFieldError):
            await LicenseService(db).update(license_.id, key="something-else")
        with pytest.raises(ImmutableFieldError):
            license_.key = "something-else"

        assert license_.key == original_key

    async def test_unknown_field_rejected(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)

        with pytest.raises(ValidationError):
            await LicenseService(db).update(license_.id, organization_id=None)

    async def test_window_checked_against_current_values(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)

        with pytest.raises(InvalidWindowError):
            await LicenseService(db).update(license_.id, expires_at=license_.starts_at)

    async def test_update_fields_and_version(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)

        updated = await LicenseService(db).update(license_.id, plan_name="enterprise", max_users=50)

        assert updated.plan_name == "enterprise"
        assert updated.max_users == 50
        assert updated.version == 2

    async def test_reactivation_clears_revocation(self, db: AsyncSession, test_org: Organization):
        service = LicenseService(db)
        license_ = await issue(db, test_org)
        await service.revoke(license_.id, reason="non-payment")

        reactivated = await service.update(license_.id, status="active")

        assert reactivated.status == LicenseStatus.ACTIVE
        assert reactivated.revoked_at is None
        assert reactivated.revoked_reason is None


@pytest.mark.asyncio
class TestEntitlement:
    async def test_active_license_inside_window_entitles(self, db: AsyncSession, test_org: Organization):
        await issue(db, test_org)
        assert await LicenseService(db).is_entitled(test_org.id, NOW) is True

    async def test_window_edges(self, db: AsyncSession, test_org: Organization):
        await issue(db, test_org, starts_at=NOW, expires_at=NOW + timedelta(days=1))
        service = LicenseService(db)

        assert await service.is_entitled(test_org.id, NOW) is True
        assert await service.is_entitled(test_org.id, NOW - timedelta(seconds=1)) is False
        assert await service.is_entitled(test_org.id, NOW + timedelta(days=1)) is False

    async def test_revoked_license_does_not_entitle(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)
        await LicenseService(db).revoke(license_.id)

        assert await LicenseService(db).is_entitled(test_org.id, NOW) is False

    async def test_no_license_or_no_org(self, db: AsyncSession, test_org: Organization):
        service = LicenseService(db)
        assert await service.is_entitled(test_org.id, NOW) is False
        assert await service.is_entitled(None, NOW) is False

    async def test_any_valid_license_is_enough(self, db: AsyncSession, test_org: Organization):
        old = await issue(db, test_org, starts_at=NOW - timedelta(days=60), expires_at=NOW - timedelta(days=30))
        await issue(db, test_org)

        assert old.expires_at < NOW
        assert await LicenseService(db).is_entitled(test_org.id, NOW) is True


@pytest.mark.asyncio
class TestCheckAndRevoke:
    async def test_check_valid_license(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)
        assert (await LicenseService(db).check_license(license_.id, NOW)).id == license_.id

    async def test_check_expired(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)

        with pytest.raises(ExpiredError):
            await LicenseService(db).check_license(license_.id, NOW + timedelta(days=11))

    async def test_check_not_yet_valid(self, db: AsyncSession, test_org: Organization):
        license_ = await issue(db, test_org)

        with pytest.raises(InvalidError):
            await LicenseService(db).check_license(license_.id, NOW - timedelta(days=11))

    async def test_check_revoked(self, db: AsyncSession, test_org: Organization):
        service = LicenseService(db)
        license_ = await issue(db, test_org)
        await service.revoke(license_.id, reason="fraud")

        with pytest.raises(RevokedError):
            await service.check_license(license_.id, NOW)

    async def test_revoke_twice_is_noop(self, db: AsyncSession, test_org: Organization):
        service = LicenseService(db)
        license_ = await issue(db, test_org)

        first = await service.revoke(license_.id, reason="fraud")
        revoked_at = first.revoked_at
        second = await service.revoke(license_.id, reason="again")

        assert second.revoked_at == revoked_at
        assert second.revoked_reason == "fraud"


@pytest.mark.asyncio
class TestExpiry:
    async def test_expire_overdue_marks_only_overdue(self, db: AsyncSession, test_org: Organization):
        overdue = await issue(db, test_org, starts_at=NOW - timedelta(days=60), expires_at=NOW - timedelta(days=1))
        current = await issue(db, test_org)
        revoked = await issue(db, test_org, starts_at=NOW - timedelta(days=60), expires_at=NOW - timedelta(days=2))
        service = LicenseService(db)
        await service.revoke(revoked.id)

        assert await service.expire_overdue(NOW) == 1
        assert overdue.status == LicenseStatus.EXPIRED
        assert current.status == LicenseStatus.ACTIVE
        assert revoked.status == LicenseStatus.REVOKED
        assert await service.expire_overdue(NOW) == 0

    async def test_expiry_job_commits(self, session_factory, test_org: Organization, db: AsyncSession):
        license_ = await issue(db, test_org, starts_at=NOW - timedelta(days=60), expires_at=NOW - timedelta(days=1))
        await db.commit()

        expired = await run_license_expiry(session_factory, now=NOW)

        assert expired == 1
        await db.refresh(license_)
        assert license_.status == LicenseStatus.EXPIRED
