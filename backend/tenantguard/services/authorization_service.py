"""Authorization engine: licensing, membership and role grants folded to a decision."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.metrics import observe_authorization
from tenantguard.core.permission_resolution import Decision, Effect, Grant, fold_effects
from tenantguard.core.structured_logging import log_json
from tenantguard.models.membership import Membership
from tenantguard.models.permission import Permission
from tenantguard.models.role import Role
from tenantguard.models.role_permission import RolePermission
from tenantguard.models.user import User
from tenantguard.models.user_role import UserRole
from tenantguard.services.license_service import LicenseService

logger = logging.getLogger(__name__)

NOT_ENTITLED = "not_entitled"
NO_MEMBERSHIP = "no_membership"
EXPLICIT_DENY = "explicit_deny"
ALLOWED = "allowed"
NO_GRANT = "no_grant"


@dataclass(frozen=True)
class AuthorizationResult:
    decision: Decision
    reason: str
    matched_roles: tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW


class AuthorizationService:
    """Decides whether a user may perform an action in an organization.

    Checks run in a fixed order and the first failing step decides:

    1. the organization holds an entitling license
    2. the user is active and has an active membership in it
    3. the user's active roles carry a matching, active permission
    4. no matching assignment is an explicit deny
    5. some matching allow has its scope and constraints satisfied

    Anything else is denied. Read-only: takes no locks and writes nothing.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.license_service = LicenseService(db)

    async def authorize(
        self,
        user_id: UUID,
        org_id: UUID,
        permission_code: str,
        context: dict[str, Any] | None = None,
    ) -> Decision:
        result = await self.explain(user_id, org_id, permission_code, context)
        return result.decision

    async def explain(
        self,
        user_id: UUID,
        org_id: UUID,
        permission_code: str,
        context: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> AuthorizationResult:
        """Same as `authorize`, with the step that produced the decision."""
        now = now or datetime.now(UTC)

        if not await self.license_service.is_entitled(org_id, now):
            return self._decide(Decision.DENY, NOT_ENTITLED, user_id, org_id, permission_code)

        if not await self._is_member(user_id, org_id):
            return self._decide(Decision.DENY, NO_MEMBERSHIP, user_id, org_id, permission_code)

        grants = await self._grants(user_id, permission_code)
        effect = fold_effects(grants, context)
        roles = tuple(sorted({grant.role_code for grant in grants}))

        if effect is Effect.DENY:
            return self._decide(Decision.DENY, EXPLICIT_DENY, user_id, org_id, permission_code, roles)
        if effect is Effect.ALLOW:
            return self._decide(Decision.ALLOW, ALLOWED, user_id, org_id, permission_code, roles)
        return self._decide(Decision.DENY, NO_GRANT, user_id, org_id, permission_code, roles)

    async def _is_member(self, user_id: UUID, org_id: UUID) -> bool:
        result = await self.db.execute(
            select(Membership.id)
            .join(User, User.id == Membership.user_id)
            .where(
                Membership.user_id == user_id,
                Membership.organization_id == org_id,
                Membership.is_active.is_(True),
                User.is_active.is_(True),
            )
        )
        return result.first() is not None

    async def _grants(self, user_id: UUID, permission_code: str) -> list[Grant]:
        result = await self.db.execute(
            select(
                Role.code,
                RolePermission.is_allowed,
                RolePermission.scope,
                RolePermission.constraints,
            )
            .select_from(UserRole)
            .join(Role, Role.id == UserRole.role_id)
            .join(RolePermission, RolePermission.role_id == Role.id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                Role.is_active.is_(True),
                RolePermission.is_active.is_(True),
                Permission.is_active.is_(True),
                Permission.code == permission_code,
            )
        )
        return [
            Grant(role_code=code, is_allowed=is_allowed, scope=scope, constraints=constraints)
            for code, is_allowed, scope, constraints in result.all()
        ]

    def _decide(
        self,
        decision: Decision,
        reason: str,
        user_id: UUID,
        org_id: UUID,
        permission_code: str,
        roles: tuple[str, ...] = (),
    ) -> AuthorizationResult:
        observe_authorization(decision=decision.value, reason=reason)
        log_json(
            logger,
            logging.DEBUG,
            "authorization_decision",
            user_id=str(user_id),
            org_id=str(org_id),
            permission=permission_code,
            decision=decision.value,
            reason=reason,
            roles=list(roles),
        )
        return AuthorizationResult(decision=decision, reason=reason, matched_roles=roles)
