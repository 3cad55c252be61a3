"""Permission model."""
from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel


class Permission(BaseModel):
    """A resource/action pair identified by a globally unique code.

    Codes follow `<resource>.<action>`, e.g. `invoice.void`. Shares the
    system latch semantics of `Role`.
    """

    __tablename__ = "permissions"

    code = Column(String(150), nullable=False, unique=True, index=True)
    name = Column(String(150), nullable=False)
    resource = Column(String(100), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)

    role_assignments = relationship(
        "RolePermission",
        back_populates="permission",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, code={self.code}, is_system={self.is_system})>"
