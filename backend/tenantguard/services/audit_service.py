"""Append-only audit trail."""
from collections.abc import Sequence
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core import request_context
from tenantguard.models.audit_event import AuditEvent
from tenantguard.models.enums import AuditAction


class AuditService:
    """Writes and reads audit events.

    Events are added to the caller's transaction, so an action and its audit
    entry commit or roll back together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        org_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        diff_json: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditEvent:
        """Record `action` against an entity.

        `org_id` is None for global actions and `user_id` is None for system
        actions. The client address falls back to the one bound for the
        current request, and the event carries the request or task ID.
        """
        correlation = request_context.current()
        audit_event = AuditEvent(
            org_id=org_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            diff_json=diff_json,
            ip_address=ip_address or correlation.client_ip,
            request_id=correlation.request_id,
        )
        self.db.add(audit_event)
        await self.db.flush()
        return audit_event

    async def list_events(
        self,
        *,
        org_id: Optional[UUID] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
        limit: int = 100,
    ) -> Sequence[AuditEvent]:
        """Newest events first, narrowed by whichever filters are given."""
        query = select(AuditEvent)
        if org_id is not None:
            query = query.where(AuditEvent.org_id == org_id)
        if entity_type is not None:
            query = query.where(AuditEvent.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(AuditEvent.entity_id == entity_id)
        if action is not None:
            query = query.where(AuditEvent.action == action)

        result = await self.db.execute(query.order_by(AuditEvent.created_at.desc()).limit(limit))
        return result.scalars().all()
