"""Contract tests for the authentication endpoints."""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.models.user import User
from tests.conftest import TEST_PASSWORD, create_user


@pytest.mark.asyncio
class TestAuthContract:
    async def test_register_verify_login_me(self, client: AsyncClient):
        response = await client.post(
            "/api/auth/register",
            json={"email": "new@test.com", "password": TEST_PASSWORD, "first_name": "New"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["status"] == "pending_verification"
        verification_token = body["verification_token"]
        assert verification_token

        response = await client.post("/api/auth/login", json={"email": "new@test.com", "password": TEST_PASSWORD})
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_credentials"
        assert response.headers["WWW-Authenticate"] == "Bearer"

        response = await client.post("/api/auth/verify-email/confirm", json={"token": verification_token})
        assert response.status_code == 200
        assert response.json()["is_email_verified"] is True

        response = await client.post("/api/auth/login", json={"email": "new@test.com", "password": TEST_PASSWORD})
        assert response.status_code == 200
        tokens = response.json()
        assert tokens["token_type"] == "bearer"
        assert tokens["expires_in"] > 0

        response = await client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
        )
        assert response.status_code == 200
        assert response.json()["email"] == "new@test.com"

    async def test_register_duplicate_and_weak_password(self, client: AsyncClient, db: AsyncSession):
        await create_user(db, "taken@test.com")

        response = await client.post("/api/auth/register", json={"email": "taken@test.com", "password": TEST_PASSWORD})
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate"

        response = await client.post("/api/auth/register", json={"email": "weak@test.com", "password": "password"})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    async def test_lockout_returns_423(self, client: AsyncClient, db: AsyncSession):
        await create_user(db, "alice@test.com")

        for _ in range(6):
            response = await client.post("/api/auth/login", json={"email": "alice@test.com", "password": "WrongPass123!"})
            assert response.status_code == 401

        response = await client.post("/api/auth/login", json={"email": "alice@test.com", "password": TEST_PASSWORD})
        assert response.status_code == 423
        body = response.json()
        assert body["error"] == "locked"
        assert "locked_until" in body["details"]

    async def test_refresh_and_logout(self, client: AsyncClient, db: AsyncSession):
        await create_user(db, "alice@test.com")
        response = await client.post("/api/auth/login", json={"email": "alice@test.com", "password": TEST_PASSWORD})
        tokens = response.json()

        response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        rotated = response.json()

        response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401
        assert response.json()["error"] == "invalid"

        headers = {"Authorization": f"Bearer {rotated['access_token']}"}
        response = await client.post("/api/auth/logout", headers=headers)
        assert response.status_code == 200

        response = await client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "invalid"

    async def test_password_reset_is_uniform(self, client: AsyncClient, db: AsyncSession):
        user: User = await create_user(db, "alice@test.com")

        known = await client.post("/api/auth/password-reset/request", json={"email": user.email})
        unknown = await client.post("/api/auth/password-reset/request", json={"email": "nobody@test.com"})
        assert known.status_code == unknown.status_code == 202
        assert known.json()["message"] == unknown.json()["message"]

        response = await client.post(
            "/api/auth/password-reset/confirm",
            json={"token": known.json()["token"], "new_password": "N3w&Better-Pass"},
        )
        assert response.status_code == 200

        response = await client.post("/api/auth/login", json={"email": user.email, "password": "N3w&Better-Pass"})
        assert response.status_code == 200

    async def test_malformed_body_uses_error_shape(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"email": "not-an-email"})
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert "password" in body["details"]
