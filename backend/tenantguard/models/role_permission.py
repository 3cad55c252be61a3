"""RolePermission model (role x permission assignment)."""
from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel, UTCDateTime, utcnow


class RolePermission(BaseModel):
    """Grant or explicit deny of one permission to one role.

    `is_allowed = False` is an explicit deny and beats any allow from another
    role. `constraints` is a flat JSON object evaluated against the request
    context, e.g. {"max_amount": 5000}. Inactive rows are ignored.
    """

    __tablename__ = "role_permissions"

    role_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_allowed = Column(Boolean, nullable=False, default=True)
    scope = Column(String(100), nullable=True)
    constraints = Column(JSON, nullable=True)
    assigned_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_at = Column(UTCDateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    role = relationship("Role", back_populates="permission_assignments")
    permission = relationship("Permission", back_populates="role_assignments")

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_pair"),
    )

    def __repr__(self) -> str:
        return (
            f"<RolePermission(role_id={self.role_id}, permission_id={self.permission_id}, "
            f"is_allowed={self.is_allowed})>"
        )
