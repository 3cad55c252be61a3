"""Contract tests for license endpoints."""
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.models.license import License
from tenantguard.models.organization import Organization
from tenantguard.services.identity_service import IdentityService
from tenantguard.services.license_service import LicenseService
from tests.conftest import create_user, login_headers


def window(days: int = 30) -> dict[str, str]:
    now = datetime.now(UTC)
    return {
        "starts_at": (now - timedelta(days=1)).isoformat(),
        "expires_at": (now + timedelta(days=days)).isoformat(),
    }


@pytest.mark.asyncio
class TestLicenseContract:
    async def test_issue_and_get(self, client: AsyncClient, admin_headers, test_org: Organization):
        response = await client.post(
            "/api/licenses",
            headers=admin_headers,
            json={"organization_id": str(test_org.id), "plan_name": "enterprise", "max_users": 25, **window()},
        )
        assert response.status_code == 201
        license_ = response.json()
        assert license_["status"] == "active"
        assert license_["key"]

        response = await client.get(f"/api/licenses/{license_['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["key"] == license_["key"]

        response = await client.get("/api/licenses", headers=admin_headers)
        assert len(response.json()) == 2

    async def test_issue_invalid_window(self, client: AsyncClient, admin_headers, test_org: Organization):
        now = datetime.now(UTC).isoformat()
        response = await client.post(
            "/api/licenses",
            headers=admin_headers,
            json={"organization_id": str(test_org.id), "plan_name": "x", "starts_at": now, "expires_at": now},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_window"

    async def test_key_update_refused(self, client: AsyncClient, admin_headers, test_license: License):
        response = await client.patch(
            f"/api/licenses/{test_license.id}", headers=admin_headers, json={"key": "new-key"}
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "immutable_field"
        assert body["details"] == {"field": "key"}

        response = await client.patch(
            f"/api/licenses/{test_license.id}", headers=admin_headers, json={"plan_name": "premium"}
        )
        assert response.status_code == 200
        assert response.json()["key"] == test_license.key

    async def test_empty_update_rejected(self, client: AsyncClient, admin_headers, test_license: License):
        response = await client.patch(f"/api/licenses/{test_license.id}", headers=admin_headers, json={})
        assert response.status_code == 422

    async def test_revoke_then_check(self, client: AsyncClient, admin_headers, test_license: License):
        response = await client.get(f"/api/licenses/{test_license.id}/check", headers=admin_headers)
        assert response.status_code == 200

        response = await client.post(
            f"/api/licenses/{test_license.id}/revoke", headers=admin_headers, json={"reason": "test"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "revoked"

        response = await client.get(f"/api/licenses/{test_license.id}/check", headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "revoked"

    async def test_revocation_cuts_off_access(self, client: AsyncClient, admin_headers, test_license: License):
        response = await client.get("/api/licenses/entitlement", headers=admin_headers)
        assert response.json()["entitled"] is True

        await client.post(f"/api/licenses/{test_license.id}/revoke", headers=admin_headers, json={})

        response = await client.get("/api/licenses/entitlement", headers=admin_headers)
        assert response.status_code == 403
        assert response.json()["details"]["reason"] == "not_entitled"

    async def test_member_cannot_issue(self, client: AsyncClient, member_headers, test_org: Organization):
        response = await client.post(
            "/api/licenses",
            headers=member_headers,
            json={"organization_id": str(test_org.id), "plan_name": "free", **window()},
        )
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "forbidden"
        assert body["details"] == {"permission": "license.manage", "reason": "no_grant"}


@pytest.fixture
def other_org_license(db: AsyncSession):
    async def factory() -> License:
        org = await IdentityService(db).create_organization("Globex")
        now = datetime.now(UTC)
        return await LicenseService(db).issue(
            org_id=org.id,
            plan_name="gold",
            starts_at=now - timedelta(days=1),
            expires_at=now + timedelta(days=30),
        )

    return factory


@pytest.mark.asyncio
class TestLicenseTenantBoundary:
    async def test_reader_cannot_see_other_organization(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization, test_license: License,
        system_roles, other_org_license,
    ):
        foreign = await other_org_license()
        await create_user(db, "billing@test.com", org_id=test_org.id, role_code="billing_admin")
        headers = await login_headers(db, "billing@test.com")

        response = await client.get(
            "/api/licenses", headers=headers, params={"organization_id": str(foreign.organization_id)}
        )
        assert response.status_code == 403
        assert response.json()["details"] == {"permission": "license.manage", "reason": "other_organization"}

        response = await client.get(f"/api/licenses/{foreign.id}", headers=headers)
        assert response.status_code == 404
        assert "key" not in response.json()

        response = await client.get(f"/api/licenses/{foreign.id}/check", headers=headers)
        assert response.status_code == 404

        response = await client.get("/api/licenses", headers=headers)
        assert [lic["id"] for lic in response.json()] == [str(test_license.id)]

        response = await client.get(f"/api/licenses/{test_license.id}", headers=headers)
        assert response.status_code == 200

    async def test_license_manager_sees_any_organization(
        self, client: AsyncClient, admin_headers, other_org_license
    ):
        foreign = await other_org_license()

        response = await client.get(
            "/api/licenses", headers=admin_headers, params={"organization_id": str(foreign.organization_id)}
        )
        assert response.status_code == 200
        assert [lic["id"] for lic in response.json()] == [str(foreign.id)]

        response = await client.get(f"/api/licenses/{foreign.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["key"] == foreign.key

    async def test_superuser_gets_no_license_exemption(
        self, client: AsyncClient, db: AsyncSession, admin_headers, system_roles
    ):
        org = await IdentityService(db).create_organization("Lapsed")
        await create_user(db, "lapsed@test.com", org_id=org.id, role_code="superuser")
        lapsed_headers = await login_headers(db, "lapsed@test.com")
        payload = {"organization_id": str(org.id), "plan_name": "standard", **window()}

        response = await client.post("/api/licenses", headers=lapsed_headers, json=payload)
        assert response.status_code == 403
        assert response.json()["details"]["reason"] == "not_entitled"

        response = await client.post("/api/licenses", headers=admin_headers, json=payload)
        assert response.status_code == 201

        response = await client.get("/api/licenses/entitlement", headers=lapsed_headers)
        assert response.json()["entitled"] is True
