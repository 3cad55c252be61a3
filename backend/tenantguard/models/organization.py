"""Organization model."""
from sqlalchemy import Boolean, CheckConstraint, Column, String
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel


class Organization(BaseModel):
    """Tenant boundary.

    Every tenant-scoped authorization decision is made against one
    organization: its licenses gate entitlement and its memberships gate
    access.
    """

    __tablename__ = "organizations"

    name = Column(String(255), nullable=False, unique=True, index=True)
    currency = Column(String(3), nullable=False, default="USD")
    is_active = Column(Boolean, nullable=False, default=True)

    memberships = relationship("Membership", back_populates="organization")
    licenses = relationship("License", back_populates="organization")

    __table_args__ = (
        CheckConstraint("LENGTH(name) > 0", name="organization_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"
