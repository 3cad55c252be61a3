"""Pytest fixtures for testing."""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from uuid import UUID

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tenantguard.core.database import get_db
from tenantguard.main import app
from tenantguard.models import Base
from tenantguard.models.enums import UserStatus
from tenantguard.models.license import License
from tenantguard.models.organization import Organization
from tenantguard.models.role import Role
from tenantguard.models.user import User
from tenantguard.services.auth_service import AuthService
from tenantguard.services.bootstrap_service import ensure_system_catalog
from tenantguard.services.identity_service import IdentityService
from tenantguard.services.license_service import LicenseService
from tenantguard.services.membership_service import MembershipService

# Shared in-memory database, one per test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "TestPass123!"


@pytest_asyncio.fixture(scope="function")
async def engine():
    """Create a fresh in-memory database with every table."""
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database dependency override.

    Args:
        db: Test database session

    Yields:
        AsyncClient configured for testing
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def system_roles(db: AsyncSession) -> dict[str, Role]:
    """Seed the system permission/role catalog."""
    return await ensure_system_catalog(db)


@pytest_asyncio.fixture
async def test_org(db: AsyncSession) -> Organization:
    """Create a test organization."""
    return await IdentityService(db).create_organization("Test Organization")


@pytest_asyncio.fixture
async def test_license(db: AsyncSession, test_org: Organization) -> License:
    """Issue a license to the test organization that is valid right now."""
    now = datetime.now(UTC)
    return await LicenseService(db).issue(
        org_id=test_org.id,
        plan_name="standard",
        starts_at=now - timedelta(days=1),
        expires_at=now + timedelta(days=30),
    )


async def create_user(
    db: AsyncSession,
    email: str,
    password: str = TEST_PASSWORD,
    verified: bool = True,
    org_id: UUID | None = None,
    role_code: str | None = None,
) -> User:
    """User factory for creating test users.

    Args:
        db: Database session
        email: User email
        password: User password (default: TestPass123!)
        verified: Active with a verified email when True, pending otherwise
        org_id: Organization to add the user to
        role_code: Role assigned on joining `org_id`

    Returns:
        Created User instance
    """
    identity = IdentityService(db)
    user = await identity.create_user(
        email=email,
        password=password,
        status=UserStatus.ACTIVE if verified else UserStatus.PENDING_VERIFICATION,
    )
    if verified:
        await identity.verify_email(user.id)
    if org_id is not None:
        await MembershipService(db).add_membership(user.id, org_id, role_code=role_code)
    return user


async def login_headers(db: AsyncSession, email: str, password: str = TEST_PASSWORD) -> dict[str, str]:
    """Log a user in through the service and return bearer headers."""
    access_token, _, _ = await AuthService(db).login(email, password)
    return {"Authorization": f"Bearer {access_token}"}


@pytest_asyncio.fixture
async def test_admin_user(
    db: AsyncSession,
    system_roles: dict[str, Role],
    test_org: Organization,
    test_license: License,
) -> User:
    """Active superuser in the licensed test organization."""
    return await create_user(db, "admin@test.com", org_id=test_org.id, role_code="superuser")


@pytest_asyncio.fixture
async def test_member_user(
    db: AsyncSession,
    system_roles: dict[str, Role],
    test_org: Organization,
    test_license: License,
) -> User:
    """Active plain member in the licensed test organization."""
    return await create_user(db, "member@test.com", org_id=test_org.id, role_code="member")


@pytest_asyncio.fixture
async def admin_headers(db: AsyncSession, test_admin_user: User) -> dict[str, str]:
    return await login_headers(db, test_admin_user.email)


@pytest_asyncio.fixture
async def member_headers(db: AsyncSession, test_member_user: User) -> dict[str, str]:
    return await login_headers(db, test_member_user.email)
