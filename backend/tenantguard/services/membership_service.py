"""Membership registry: which users belong to which organizations."""
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.errors import DuplicateMembershipError, NotFoundError
from tenantguard.core.structured_logging import log_json
from tenantguard.models.enums import AuditAction
from tenantguard.models.membership import Membership
from tenantguard.models.organization import Organization
from tenantguard.models.user import User
from tenantguard.services.audit_service import AuditService
from tenantguard.services.rbac_service import RBACService

logger = logging.getLogger(__name__)


class MembershipService:
    """Service for user x organization memberships.

    Every mutation locks the user's row first, so concurrent changes for the
    same user serialize and the "exactly one active primary" rule is kept.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    async def _lock_user(self, user_id: UUID) -> User:
        result = await self.db.execute(
            select(User).where(User.id == user_id).with_for_update()
        )
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _active_memberships(self, user_id: UUID) -> list[Membership]:
        result = await self.db.execute(
            select(Membership)
            .where(Membership.user_id == user_id, Membership.is_active.is_(True))
            .order_by(Membership.created_at, Membership.id)
        )
        return list(result.scalars().all())

    async def _ensure_primary(self, user_id: UUID) -> Membership | None:
        """Promote the oldest active membership if the user has no primary."""
        active = await self._active_memberships(user_id)
        if not active:
            return None
        for membership in active:
            if membership.is_primary:
                return membership

        promoted = active[0]
        promoted.is_primary = True
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.MEMBERSHIP_PRIMARY_CHANGE,
            entity_type="membership",
            entity_id=promoted.id,
            org_id=promoted.organization_id,
            user_id=user_id,
            diff_json={"is_primary": {"old": False, "new": True}},
        )
        log_json(
            logger,
            logging.INFO,
            "membership_primary_promoted",
            user_id=str(user_id),
            membership_id=str(promoted.id),
        )
        return promoted

    async def add_membership(
        self,
        user_id: UUID,
        org_id: UUID,
        role_code: str | None = None,
        added_by: UUID | None = None,
    ) -> Membership:
        """Add a user to an organization.

        The first active membership becomes primary. When `role_code` is
        given, that role is assigned to the user through the role graph.

        Raises:
            NotFoundError: if the user, organization or role does not exist
            DuplicateMembershipError: if an active membership already exists
        """
        await self._lock_user(user_id)
        org = await self.db.get(Organization, org_id)
        if not org:
            raise NotFoundError("Organization not found")

        existing = await self.db.execute(
            select(Membership.id).where(
                Membership.user_id == user_id,
                Membership.organization_id == org_id,
                Membership.is_active.is_(True),
            )
        )
        if existing.scalar_one_or_none():
            raise DuplicateMembershipError()

        membership = Membership(
            user_id=user_id,
            organization_id=org_id,
            is_active=True,
            is_primary=False,
        )
        self.db.add(membership)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateMembershipError() from None

        await self.audit_service.log(
            action=AuditAction.MEMBERSHIP_CREATE,
            entity_type="membership",
            entity_id=membership.id,
            org_id=org_id,
            user_id=added_by,
            diff_json={"user_id": str(user_id), "role_code": role_code},
        )

        if role_code:
            rbac = RBACService(self.db)
            role = await rbac.get_role_by_code(role_code)
            await rbac.assign_role_to_user(user_id, role.id, assigned_by=added_by)

        await self._ensure_primary(user_id)
        return membership

    async def deactivate(self, membership_id: UUID, deactivated_by: UUID | None = None) -> Membership:
        """Deactivate a membership. Idempotent.

        If it was the primary, the oldest remaining active membership is
        promoted.
        """
        membership = await self.db.get(Membership, membership_id)
        if not membership:
            raise NotFoundError("Membership not found")

        await self._lock_user(membership.user_id)
        await self.db.refresh(membership)
        if not membership.is_active:
            return membership

        membership.is_active = False
        membership.is_primary = False
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.MEMBERSHIP_DEACTIVATE,
            entity_type="membership",
            entity_id=membership.id,
            org_id=membership.organization_id,
            user_id=deactivated_by,
        )

        await self._ensure_primary(membership.user_id)
        return membership

    async def get_primary(self, user_id: UUID) -> Membership | None:
        result = await self.db.execute(
            select(Membership).where(
                Membership.user_id == user_id,
                Membership.is_active.is_(True),
                Membership.is_primary.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def set_primary(self, user_id: UUID, org_id: UUID) -> Membership:
        """Make the user's active membership in `org_id` the primary one.

        Raises:
            NotFoundError: if the user has no active membership in the organization
        """
        await self._lock_user(user_id)
        active = await self._active_memberships(user_id)
        target = next((m for m in active if m.organization_id == org_id), None)
        if target is None:
            raise NotFoundError("Active membership not found")
        if target.is_primary:
            return target

        # Clear first; the partial unique index is checked per statement.
        for membership in active:
            if membership.is_primary:
                membership.is_primary = False
        await self.db.flush()

        target.is_primary = True
        await self.db.flush()
        await self.audit_service.log(
            action=AuditAction.MEMBERSHIP_PRIMARY_CHANGE,
            entity_type="membership",
            entity_id=target.id,
            org_id=org_id,
            user_id=user_id,
            diff_json={"is_primary": {"old": False, "new": True}},
        )
        return target

    async def list_memberships(self, user_id: UUID, include_inactive: bool = False) -> list[Membership]:
        query = select(Membership).where(Membership.user_id == user_id)
        if not include_inactive:
            query = query.where(Membership.is_active.is_(True))
        result = await self.db.execute(query.order_by(Membership.created_at, Membership.id))
        return list(result.scalars().all())

    async def list_organization_members(self, org_id: UUID) -> list[Membership]:
        result = await self.db.execute(
            select(Membership)
            .where(Membership.organization_id == org_id, Membership.is_active.is_(True))
            .order_by(Membership.created_at)
        )
        return list(result.scalars().all())

    async def has_active_membership(self, user_id: UUID, org_id: UUID) -> bool:
        result = await self.db.execute(
            select(Membership.id).where(
                Membership.user_id == user_id,
                Membership.organization_id == org_id,
                Membership.is_active.is_(True),
            )
        )
        return result.first() is not None
