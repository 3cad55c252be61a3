"""System role/permission catalog seeding and the legacy membership-role backfill."""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.structured_logging import log_json
from tenantguard.models.membership import Membership
from tenantguard.models.permission import Permission
from tenantguard.models.role import Role
from tenantguard.models.user_role import UserRole
from tenantguard.services.rbac_service import RBACService

logger = logging.getLogger(__name__)

# (code, name)
SYSTEM_PERMISSIONS = [
    ("organization.create", "Create Organizations"),
    ("organization.read", "Read Organization"),
    ("user.read", "Read Users"),
    ("user.manage", "Manage Users"),
    ("membership.read", "Read Memberships"),
    ("membership.manage", "Manage Memberships"),
    ("role.read", "Read Roles"),
    ("role.manage", "Manage Roles"),
    ("permission.read", "Read Permissions"),
    ("permission.manage", "Manage Permissions"),
    ("license.read", "Read Licenses"),
    ("license.manage", "Manage Licenses"),
    ("invoice.read", "Read Invoices"),
    ("invoice.create", "Create Invoices"),
    ("invoice.void", "Void Invoices"),
]

ALL_PERMISSIONS = [code for code, _ in SYSTEM_PERMISSIONS]

# code -> (name, granted permission codes)
SYSTEM_ROLES = {
    "superuser": ("SUPERUSER", ALL_PERMISSIONS),
    "administrator": (
        "ADMINISTRATOR",
        [
            "organization.read",
            "user.read",
            "user.manage",
            "membership.read",
            "membership.manage",
            "role.read",
            "role.manage",
            "permission.read",
            "license.read",
            "invoice.read",
            "invoice.create",
        ],
    ),
    "billing_admin": (
        "BILLING ADMIN",
        ["organization.read", "license.read", "invoice.read", "invoice.create", "invoice.void"],
    ),
    "member": ("MEMBER", ["organization.read", "user.read", "invoice.read"]),
}


async def ensure_system_catalog(db: AsyncSession) -> dict[str, Role]:
    """Create missing system permissions, roles and their grants.

    Safe to run repeatedly; existing rows are left as they are and only
    missing grants are added.

    Returns:
        Mapping of role code to Role
    """
    rbac = RBACService(db)

    result = await db.execute(select(Permission))
    permissions = {p.code: p for p in result.scalars().all()}
    for code, name in SYSTEM_PERMISSIONS:
        if code not in permissions:
            resource, action = code.split(".", 1)
            permissions[code] = await rbac.create_permission(
                code=code, resource=resource, action=action, name=name, is_system=True
            )

    result = await db.execute(select(Role))
    roles = {r.code: r for r in result.scalars().all()}
    for code, (name, granted) in SYSTEM_ROLES.items():
        if code not in roles:
            roles[code] = await rbac.create_role(name=name, code=code, is_system=True)
        assigned = {rp.permission_id for rp in await rbac.list_role_permissions(roles[code].id)}
        for permission_code in granted:
            permission = permissions[permission_code]
            if permission.id not in assigned:
                await rbac.assign_permission_to_role(roles[code].id, permission.id, allowed=True)

    log_json(logger, logging.INFO, "system_catalog_ensured", roles=len(SYSTEM_ROLES))
    return roles


async def backfill_user_roles(db: AsyncSession) -> int:
    """Turn legacy membership role labels into UserRole assignments.

    Labels are matched to role codes case-insensitively. Labels with no
    matching role are skipped and logged.

    Returns:
        Number of assignments created or reactivated
    """
    rbac = RBACService(db)
    result = await db.execute(
        select(Membership.user_id, Membership.role).where(
            Membership.is_active.is_(True),
            Membership.role.is_not(None),
        )
    )
    rows = result.all()

    created = 0
    for user_id, label in rows:
        role_result = await db.execute(
            select(Role).where(func.lower(Role.code) == label.strip().lower())
        )
        role = role_result.scalar_one_or_none()
        if role is None:
            log_json(logger, logging.WARNING, "backfill_unknown_role", user_id=str(user_id), role=label)
            continue

        existing = await db.execute(
            select(UserRole.is_active).where(UserRole.user_id == user_id, UserRole.role_id == role.id)
        )
        if existing.scalar_one_or_none() is True:
            continue
        await rbac.assign_role_to_user(user_id, role.id)
        created += 1

    log_json(logger, logging.INFO, "backfill_user_roles_done", memberships=len(rows), assigned=created)
    return created
