"""UserRole model (user x role assignment)."""
from sqlalchemy import Boolean, Column, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel, UTCDateTime, utcnow


class UserRole(BaseModel):
    """Assignment of a role to a user.

    A user's effective permissions are the union over all active
    assignments, with explicit deny taking precedence.
    """

    __tablename__ = "user_roles"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_at = Column(UTCDateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="role_assignments", foreign_keys=[user_id])
    role = relationship("Role", back_populates="user_assignments")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_pair"),
    )

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role_id={self.role_id}, is_active={self.is_active})>"
