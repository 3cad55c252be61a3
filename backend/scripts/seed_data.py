"""Seed script for the system catalog and a bootstrap tenant.

Creates:
- System permissions and roles (superuser, administrator, billing_admin, member)
- Platform organization "TenantGuard Platform" with a long-running license
- Superuser "admin@example.com" (password provided via env)

Can be run multiple times safely (skips what exists).
"""
import asyncio
import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Add backend/ to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from sqlalchemy import select

from tenantguard.core.database import get_db
from tenantguard.core.errors import TenantGuardError
from tenantguard.models.enums import UserStatus
from tenantguard.models.organization import Organization
from tenantguard.services.bootstrap_service import ensure_system_catalog
from tenantguard.services.identity_service import IdentityService
from tenantguard.services.license_service import LicenseService
from tenantguard.services.membership_service import MembershipService


async def seed_data():
    """Seed the system catalog and the bootstrap tenant."""
    print("Starting database seeding...")

    org_name = os.environ.get("SEED_ORG_NAME", "TenantGuard Platform")
    admin_email = os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com")
    admin_password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not admin_password:
        print("✗ Missing SEED_ADMIN_PASSWORD environment variable")
        print("  Example: SEED_ADMIN_PASSWORD='YourStrongPassword123!' python scripts/seed_data.py")
        return

    async for db in get_db():
        await ensure_system_catalog(db)
        print("✓ System roles and permissions are in place")

        identity = IdentityService(db)
        result = await db.execute(select(Organization).where(Organization.name == org_name))
        org = result.scalar_one_or_none()
        if org:
            print(f"✓ Organization '{org_name}' already exists (ID: {org.id})")
        else:
            org = await identity.create_organization(org_name)
            now = datetime.now(UTC)
            await LicenseService(db).issue(
                org_id=org.id,
                plan_name="platform",
                starts_at=now,
                expires_at=now + timedelta(days=3650),
                notes="Bootstrap license",
            )
            print(f"✓ Created organization '{org_name}' with a platform license (ID: {org.id})")

        user = await identity.get_user_by_email(admin_email)
        if user:
            print(f"✓ Admin user '{admin_email}' already exists (ID: {user.id})")
        else:
            try:
                user = await identity.create_user(
                    email=admin_email,
                    password=admin_password,
                    status=UserStatus.ACTIVE,
                )
            except TenantGuardError as e:
                print(f"✗ Could not create admin user: {e.message}")
                return
            await identity.verify_email(user.id)
            await MembershipService(db).add_membership(user.id, org.id, role_code="superuser")
            print(f"✓ Created superuser '{admin_email}'")

    print("\n✓ Database seeding completed successfully!")
    print("\nYou can now login with:")
    print(f"  Email: {admin_email}")


if __name__ == "__main__":
    asyncio.run(seed_data())
