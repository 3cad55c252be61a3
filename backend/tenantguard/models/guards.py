"""ORM-level invariant guards.

These listeners reject writes that break the write-once and system-latch
invariants regardless of which code path issues them, so an administrative
edit that skips the service layer still fails. The PostgreSQL triggers in
migration 001 cover raw SQL.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import attributes

from tenantguard.core.errors import ImmutableFieldError, ProtectedEntityError
from tenantguard.models.license import License
from tenantguard.models.permission import Permission
from tenantguard.models.role import Role

_UNKNOWN = (attributes.NO_VALUE, attributes.NEVER_SET)


def _is_persistent(target) -> bool:
    return inspect(target).has_identity


@event.listens_for(License.key, "set")
def _license_key_write_once(target, value, oldvalue, initiator):
    if not _is_persistent(target):
        return
    if oldvalue in _UNKNOWN or value != oldvalue:
        raise ImmutableFieldError("License key is immutable and cannot be updated", field="key")


@event.listens_for(License, "before_update")
def _license_key_unchanged_on_flush(mapper, connection, target):
    history = inspect(target).attrs.key.history
    if history.deleted and history.deleted[0] != target.key:
        raise ImmutableFieldError("License key is immutable and cannot be updated", field="key")


def _guard_system_latch(entity_cls, label: str) -> None:
    @event.listens_for(entity_cls.is_system, "set")
    def _no_downgrade(target, value, oldvalue, initiator):
        if _is_persistent(target) and oldvalue is True and not value:
            raise ProtectedEntityError(f"System {label}s cannot be downgraded")

    @event.listens_for(entity_cls, "before_update")
    def _no_downgrade_on_flush(mapper, connection, target):
        history = inspect(target).attrs.is_system.history
        if history.deleted and history.deleted[0] is True and not target.is_system:
            raise ProtectedEntityError(f"System {label}s cannot be downgraded")

    @event.listens_for(entity_cls, "before_delete")
    def _no_delete(mapper, connection, target):
        if target.is_system:
            raise ProtectedEntityError(f"System {label}s cannot be deleted")


_guard_system_latch(Role, "role")
_guard_system_latch(Permission, "permission")
