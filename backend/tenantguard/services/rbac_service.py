"""Role/permission graph service."""
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import (
    DuplicateError,
    ForbiddenError,
    NotFoundError,
    ProtectedEntityError,
    ValidationError,
)
from tenantguard.models.enums import AuditAction
from tenantguard.models.permission import Permission
from tenantguard.models.role import Role
from tenantguard.models.role_permission import RolePermission
from tenantguard.models.user import User
from tenantguard.models.user_role import UserRole
from tenantguard.services.audit_service import AuditService

SUPERUSER_ROLE = "superuser"


class RBACService:
    """Roles, permissions and the assignments between them and users.

    System roles and permissions are protected here (validate-then-commit),
    by the mapper events in `tenantguard.models.guards`, and by database
    triggers.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    # Lookups

    async def get_role(self, role_id: UUID, for_update: bool = False) -> Role:
        query = select(Role).where(Role.id == role_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        role = result.scalar_one_or_none()
        if not role:
            raise NotFoundError("Role not found")
        return role

    async def get_role_by_code(self, code: str) -> Role:
        result = await self.db.execute(select(Role).where(Role.code == code))
        role = result.scalar_one_or_none()
        if not role:
            raise NotFoundError(f"Role '{code}' not found")
        return role

    async def get_permission(self, permission_id: UUID, for_update: bool = False) -> Permission:
        query = select(Permission).where(Permission.id == permission_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        permission = result.scalar_one_or_none()
        if not permission:
            raise NotFoundError("Permission not found")
        return permission

    async def list_roles(self, include_inactive: bool = False) -> list[Role]:
        query = select(Role).order_by(Role.code)
        if not include_inactive:
            query = query.where(Role.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_permissions(self, resource: str | None = None) -> list[Permission]:
        query = select(Permission).order_by(Permission.code)
        if resource:
            query = query.where(Permission.resource == resource)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_role_permissions(self, role_id: UUID) -> list[RolePermission]:
        result = await self.db.execute(
            select(RolePermission)
            .where(RolePermission.role_id == role_id)
            .order_by(RolePermission.assigned_at)
        )
        return list(result.scalars().all())

    async def list_user_roles(self, user_id: UUID, active_only: bool = True) -> list[UserRole]:
        query = select(UserRole).where(UserRole.user_id == user_id)
        if active_only:
            query = query.where(UserRole.is_active.is_(True))
        result = await self.db.execute(query.order_by(UserRole.assigned_at))
        return list(result.scalars().all())

    async def has_role(self, user_id: UUID, role_code: str) -> bool:
        result = await self.db.execute(
            select(UserRole.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
                Role.code == role_code,
            )
        )
        return result.first() is not None

    # Roles

    async def create_role(
        self,
        name: str,
        code: str,
        description: str | None = None,
        is_system: bool = False,
        created_by: UUID | None = None,
    ) -> Role:
        """Create a role.

        Raises:
            ValidationError: if name or code is blank
            DuplicateError: if the code is already taken
        """
        code = code.strip()
        if not code or not name.strip():
            raise ValidationError("Role name and code are required")

        existing = await self.db.execute(select(Role.id).where(Role.code == code))
        if existing.scalar_one_or_none():
            raise DuplicateError(f"Role with code '{code}' already exists")

        role = Role(
            name=name.strip(),
            code=code,
            description=description,
            is_system=is_system,
            is_active=True,
        )
        self.db.add(role)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateError(f"Role with code '{code}' already exists") from None

        await self.audit_service.log(
            action=AuditAction.ROLE_CREATE,
            entity_type="role",
            entity_id=role.id,
            user_id=created_by,
            diff_json={"code": code, "is_system": is_system},
        )
        return role

    async def update_role(
        self,
        role_id: UUID,
        name: str | None = None,
        description: str | None = None,
        is_active: bool | None = None,
        updated_by: UUID | None = None,
    ) -> Role:
        """Edit the mutable attributes of a role. `code` never changes."""
        role = await self.get_role(role_id, for_update=True)
        diff = _apply_changes(role, name=name, description=description, is_active=is_active)
        if diff:
            await self.db.flush()
            await self.audit_service.log(
                action=AuditAction.ROLE_UPDATE,
                entity_type="role",
                entity_id=role.id,
                user_id=updated_by,
                diff_json=diff,
            )
        return role

    async def set_role_system(self, role_id: UUID, flag: bool, updated_by: UUID | None = None) -> Role:
        """Latch a role as system. Unsetting the flag on a system role fails.

        Raises:
            ProtectedEntityError: on a system -> non-system transition
        """
        role = await self.get_role(role_id, for_update=True)
        if role.is_system and not flag:
            raise ProtectedEntityError("System roles cannot be downgraded")
        if role.is_system == flag:
            return role

        role.is_system = flag
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.ROLE_UPDATE,
            entity_type="role",
            entity_id=role.id,
            user_id=updated_by,
            diff_json={"is_system": {"old": False, "new": True}},
        )
        return role

    async def delete_role(self, role_id: UUID, deleted_by: UUID | None = None) -> None:
        """Delete a non-system role and its assignments.

        Raises:
            ProtectedEntityError: if the role is a system role
        """
        role = await self.get_role(role_id, for_update=True)
        if role.is_system:
            raise ProtectedEntityError("System roles cannot be deleted")
        code = role.code

        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        await self.db.execute(delete(UserRole).where(UserRole.role_id == role.id))
        await self.db.delete(role)
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.ROLE_DELETE,
            entity_type="role",
            entity_id=role_id,
            user_id=deleted_by,
            diff_json={"code": code},
        )

    # Permissions

    async def create_permission(
        self,
        code: str,
        resource: str,
        action: str,
        name: str | None = None,
        description: str | None = None,
        is_system: bool = False,
        created_by: UUID | None = None,
    ) -> Permission:
        """Create a permission.

        Raises:
            ValidationError: if code, resource or action is blank
            DuplicateError: if the code is already taken
        """
        code = code.strip()
        if not code or not resource.strip() or not action.strip():
            raise ValidationError("Permission code, resource and action are required")

        existing = await self.db.execute(select(Permission.id).where(Permission.code == code))
        if existing.scalar_one_or_none():
            raise DuplicateError(f"Permission with code '{code}' already exists")

        permission = Permission(
            code=code,
            name=(name or code).strip(),
            resource=resource.strip(),
            action=action.strip(),
            description=description,
            is_system=is_system,
            is_active=True,
        )
        self.db.add(permission)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateError(f"Permission with code '{code}' already exists") from None

        await self.audit_service.log(
            action=AuditAction.PERMISSION_CREATE,
            entity_type="permission",
            entity_id=permission.id,
            user_id=created_by,
            diff_json={"code": code, "is_system": is_system},
        )
        return permission

    async def update_permission(
        self,
        permission_id: UUID,
        name: str | None = None,
        description: str | None = None,
        is_active: bool | None = None,
        updated_by: UUID | None = None,
    ) -> Permission:
        permission = await self.get_permission(permission_id, for_update=True)
        diff = _apply_changes(permission, name=name, description=description, is_active=is_active)
        if diff:
            await self.db.flush()
            await self.audit_service.log(
                action=AuditAction.PERMISSION_UPDATE,
                entity_type="permission",
                entity_id=permission.id,
                user_id=updated_by,
                diff_json=diff,
            )
        return permission

    async def set_permission_system(
        self,
        permission_id: UUID,
        flag: bool,
        updated_by: UUID | None = None,
    ) -> Permission:
        """Latch a permission as system. Unsetting the flag on a system permission fails.

        Raises:
            ProtectedEntityError: on a system -> non-system transition
        """
        permission = await self.get_permission(permission_id, for_update=True)
        if permission.is_system and not flag:
            raise ProtectedEntityError("System permissions cannot be downgraded")
        if permission.is_system == flag:
            return permission

        permission.is_system = flag
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.PERMISSION_UPDATE,
            entity_type="permission",
            entity_id=permission.id,
            user_id=updated_by,
            diff_json={"is_system": {"old": False, "new": True}},
        )
        return permission

    async def delete_permission(self, permission_id: UUID, deleted_by: UUID | None = None) -> None:
        """Delete a non-system permission and every role assignment of it.

        Raises:
            ProtectedEntityError: if the permission is a system permission
        """
        permission = await self.get_permission(permission_id, for_update=True)
        if permission.is_system:
            raise ProtectedEntityError("System permissions cannot be deleted")
        code = permission.code

        await self.db.execute(
            delete(RolePermission).where(RolePermission.permission_id == permission.id)
        )
        await self.db.delete(permission)
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.PERMISSION_DELETE,
            entity_type="permission",
            entity_id=permission_id,
            user_id=deleted_by,
            diff_json={"code": code},
        )

    # Assignments

    async def assign_permission_to_role(
        self,
        role_id: UUID,
        permission_id: UUID,
        allowed: bool = True,
        scope: str | None = None,
        constraints: dict[str, Any] | None = None,
        assigned_by: UUID | None = None,
    ) -> RolePermission:
        """Grant or explicitly deny a permission to a role.

        Upserts on (role, permission): re-assigning overwrites `is_allowed`,
        `scope` and `constraints` and reactivates a revoked row.

        Raises:
            NotFoundError: if the role or permission does not exist
            ValidationError: if constraints is not a JSON object
        """
        if constraints is not None and not isinstance(constraints, dict):
            raise ValidationError("Constraints must be a JSON object", field="constraints")

        # Writers on one role serialize here, so the upsert below cannot race.
        role = await self.get_role(role_id, for_update=True)
        permission = await self.get_permission(permission_id)

        result = await self.db.execute(
            select(RolePermission).where(
                RolePermission.role_id == role.id,
                RolePermission.permission_id == permission.id,
            )
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            assignment = RolePermission(role_id=role.id, permission_id=permission.id)
            self.db.add(assignment)

        assignment.is_allowed = allowed
        assignment.scope = scope
        assignment.constraints = constraints
        assignment.assigned_by = assigned_by
        assignment.assigned_at = datetime.now(UTC)
        assignment.is_active = True
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.ROLE_PERMISSION_ASSIGN,
            entity_type="role_permission",
            entity_id=assignment.id,
            user_id=assigned_by,
            diff_json={
                "role": role.code,
                "permission": permission.code,
                "is_allowed": allowed,
                "scope": scope,
                "constraints": constraints,
            },
        )
        return assignment

    async def revoke_permission_from_role(
        self,
        role_id: UUID,
        permission_id: UUID,
        revoked_by: UUID | None = None,
    ) -> RolePermission:
        """Deactivate a role's assignment of a permission. Idempotent."""
        result = await self.db.execute(
            select(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        assignment = result.scalar_one_or_none()
        if not assignment:
            raise NotFoundError("Permission is not assigned to this role")
        if not assignment.is_active:
            return assignment

        assignment.is_active = False
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.ROLE_PERMISSION_REVOKE,
            entity_type="role_permission",
            entity_id=assignment.id,
            user_id=revoked_by,
        )
        return assignment

    async def assign_role_to_user(
        self,
        user_id: UUID,
        role_id: UUID,
        assigned_by: UUID | None = None,
    ) -> UserRole:
        """Assign a role to a user, reactivating a removed assignment.

        Raises:
            NotFoundError: if the user or role does not exist
            ForbiddenError: if a non-superuser assigns the superuser role
        """
        # Writers on one user serialize here, so the upsert below cannot race.
        result = await self.db.execute(select(User).where(User.id == user_id).with_for_update())
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")
        role = await self.get_role(role_id)
        if role.code == SUPERUSER_ROLE and assigned_by is not None:
            if not await self.has_role(assigned_by, SUPERUSER_ROLE):
                raise ForbiddenError("Only superusers can assign the superuser role")

        result = await self.db.execute(
            select(UserRole).where(UserRole.user_id == user.id, UserRole.role_id == role.id)
        )
        assignment = result.scalar_one_or_none()
        if assignment is not None and assignment.is_active:
            return assignment
        if assignment is None:
            assignment = UserRole(user_id=user.id, role_id=role.id)
            self.db.add(assignment)

        assignment.assigned_by = assigned_by
        assignment.assigned_at = datetime.now(UTC)
        assignment.is_active = True
        await self.db.flush()

        await self.audit_service.log(
            action=AuditAction.USER_ROLE_ASSIGN,
            entity_type="user_role",
            entity_id=assignment.id,
            user_id=assigned_by,
            diff_json={"user_id": str(user.id), "role": role.code},
        )
        return assignment

    async def remove_role_from_user(
        self,
        user_id: UUID,
        role_id: UUID,
        removed_by: UUID | None = None,
    ) -> UserRole:
        result = await self.db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        assignment = result.scalar_one_or_none()
        if not assignment:
            raise NotFoundError("Role is not assigned to this user")
        if not assignment.is_active:
            return assignment

        assignment.is_active = False
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.USER_ROLE_REMOVE,
            entity_type="user_role",
            entity_id=assignment.id,
            user_id=removed_by,
            diff_json={"user_id": str(user_id), "role_id": str(role_id)},
        )
        return assignment


def _apply_changes(entity, **fields) -> dict:
    diff = {}
    for field, value in fields.items():
        if value is None:
            continue
        old = getattr(entity, field)
        if old != value:
            diff[field] = {"old": old, "new": value}
            setattr(entity, field, value)
    return diff
