"""Contract tests for organization, membership, user and role endpoints."""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.models.organization import Organization
from tenantguard.models.role import Role
from tenantguard.models.user import User
from tests.conftest import create_user


@pytest.mark.asyncio
class TestOrganizationContract:
    async def test_current_organization(self, client: AsyncClient, member_headers, test_org: Organization):
        response = await client.get("/api/organizations/current", headers=member_headers)
        assert response.status_code == 200
        assert response.json()["id"] == str(test_org.id)

    async def test_admin_creates_organization(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/organizations", headers=admin_headers, json={"name": "Globex", "currency": "EUR"}
        )
        assert response.status_code == 201
        assert response.json()["currency"] == "EUR"

        response = await client.post("/api/organizations", headers=admin_headers, json={"name": "Globex"})
        assert response.status_code == 409

    async def test_member_cannot_create_organization(self, client: AsyncClient, member_headers):
        response = await client.post("/api/organizations", headers=member_headers, json={"name": "Globex"})
        assert response.status_code == 403

    async def test_add_and_remove_member(
        self, client: AsyncClient, db: AsyncSession, admin_headers, test_org: Organization
    ):
        newcomer = await create_user(db, "newcomer@test.com")

        response = await client.post(
            f"/api/organizations/{test_org.id}/members",
            headers=admin_headers,
            json={"user_id": str(newcomer.id), "role_code": "member"},
        )
        assert response.status_code == 201
        membership = response.json()
        assert membership["is_primary"] is True

        response = await client.post(
            f"/api/organizations/{test_org.id}/members",
            headers=admin_headers,
            json={"user_id": str(newcomer.id)},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_membership"

        response = await client.get(f"/api/organizations/{test_org.id}/members", headers=admin_headers)
        assert str(newcomer.id) in {m["user_id"] for m in response.json()}

        response = await client.delete(
            f"/api/organizations/{test_org.id}/members/{membership['id']}", headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    async def test_other_organization_is_forbidden(
        self, client: AsyncClient, db: AsyncSession, admin_headers
    ):
        from tenantguard.services.identity_service import IdentityService

        other = await IdentityService(db).create_organization("Other")
        response = await client.get(f"/api/organizations/{other.id}/members", headers=admin_headers)
        assert response.status_code == 403

    async def test_organization_header_selects_tenant(
        self, client: AsyncClient, admin_headers, test_org: Organization
    ):
        response = await client.get(
            "/api/organizations/current",
            headers={**admin_headers, "X-Organization-ID": "not-a-uuid"},
        )
        assert response.status_code == 422

        response = await client.get(
            "/api/organizations/current",
            headers={**admin_headers, "X-Organization-ID": str(test_org.id)},
        )
        assert response.status_code == 200


@pytest.mark.asyncio
class TestUserContract:
    async def test_memberships_and_profile(self, client: AsyncClient, member_headers, test_org: Organization):
        response = await client.get("/api/users/me/memberships", headers=member_headers)
        assert [m["organization_id"] for m in response.json()] == [str(test_org.id)]

        response = await client.patch("/api/users/me", headers=member_headers, json={"first_name": "Mia"})
        assert response.status_code == 200
        assert response.json()["first_name"] == "Mia"

    async def test_list_and_suspend(
        self, client: AsyncClient, admin_headers, test_member_user: User
    ):
        response = await client.get("/api/users", headers=admin_headers)
        assert str(test_member_user.id) in {u["id"] for u in response.json()}

        response = await client.patch(
            f"/api/users/{test_member_user.id}/status", headers=admin_headers, json={"status": "suspended"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"

    async def test_user_outside_organization_is_not_found(
        self, client: AsyncClient, db: AsyncSession, admin_headers
    ):
        stranger = await create_user(db, "stranger@test.com")
        response = await client.get(f"/api/users/{stranger.id}", headers=admin_headers)
        assert response.status_code == 404

    async def test_role_assignment(
        self, client: AsyncClient, admin_headers, test_member_user: User, system_roles: dict[str, Role]
    ):
        role_id = str(system_roles["billing_admin"].id)
        response = await client.post(
            f"/api/users/{test_member_user.id}/roles", headers=admin_headers, json={"role_id": role_id}
        )
        assert response.status_code == 201

        response = await client.get(f"/api/users/{test_member_user.id}/roles", headers=admin_headers)
        assert role_id in {r["role_id"] for r in response.json()}

        response = await client.delete(f"/api/users/{test_member_user.id}/roles/{role_id}", headers=admin_headers)
        assert response.json()["is_active"] is False


@pytest.mark.asyncio
class TestRoleContract:
    async def test_system_role_protected(
        self, client: AsyncClient, admin_headers, system_roles: dict[str, Role]
    ):
        role_id = system_roles["member"].id

        response = await client.delete(f"/api/roles/{role_id}", headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "protected_entity"

        response = await client.patch(f"/api/roles/{role_id}", headers=admin_headers, json={"is_system": False})
        assert response.status_code == 409

    async def test_custom_role_lifecycle(
        self, client: AsyncClient, admin_headers, system_roles: dict[str, Role]
    ):
        response = await client.post(
            "/api/roles", headers=admin_headers, json={"name": "Clerk", "code": "clerk"}
        )
        assert response.status_code == 201
        role = response.json()

        response = await client.get("/api/permissions", headers=admin_headers, params={"resource": "invoice"})
        void = next(p for p in response.json() if p["code"] == "invoice.void")

        response = await client.put(
            f"/api/roles/{role['id']}/permissions",
            headers=admin_headers,
            json={"permission_id": void["id"], "allowed": True, "constraints": {"max_amount": 100}},
        )
        assert response.status_code == 200
        assert response.json()["constraints"] == {"max_amount": 100}

        response = await client.delete(f"/api/roles/{role['id']}", headers=admin_headers)
        assert response.status_code == 204

    async def test_member_cannot_manage_roles(self, client: AsyncClient, member_headers):
        response = await client.post("/api/roles", headers=member_headers, json={"name": "Clerk", "code": "clerk"})
        assert response.status_code == 403
