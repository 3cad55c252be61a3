"""Role model."""
from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel


class Role(BaseModel):
    """Named bundle of permission assignments.

    `code` is immutable after creation. `is_system` is a one-way latch: a
    system role can never be deleted or set back to non-system (see
    `tenantguard.models.guards`). `version` is the optimistic concurrency
    counter.
    """

    __tablename__ = "roles"

    name = Column(String(100), nullable=False)
    code = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)

    permission_assignments = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    user_assignments = relationship(
        "UserRole",
        back_populates="role",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, code={self.code}, is_system={self.is_system})>"
