"""One-time backfill of legacy membership role labels into user_roles.

Each active membership whose `role` label matches a role code (ignoring
case) gets an active UserRole for that role. Run once after migrating;
authorization never reads the legacy label.
"""
import asyncio
import sys
from pathlib import Path

# Add backend/ to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from tenantguard.core.database import AsyncSessionLocal
from tenantguard.core.retry import run_with_retry
from tenantguard.services.bootstrap_service import backfill_user_roles


async def main():
    print("Backfilling user roles from legacy membership labels...")
    assigned = await run_with_retry(AsyncSessionLocal, backfill_user_roles)
    print(f"✓ {assigned} role assignment(s) created or reactivated")


if __name__ == "__main__":
    asyncio.run(main())
