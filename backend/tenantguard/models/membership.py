"""Membership model (user x organization)."""
from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel


class Membership(BaseModel):
    """A user's membership in an organization.

    At most one active membership per user is primary; the partial unique
    index below enforces that in storage, and `MembershipService` keeps it at
    exactly one whenever the user has any active membership.

    `role` is the legacy single-role label. Authorization never reads it; it
    only feeds the one-time backfill into `user_roles`.
    """

    __tablename__ = "memberships"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_primary = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="memberships")

    __table_args__ = (
        Index(
            "uq_memberships_primary_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_primary AND is_active"),
            sqlite_where=text("is_primary AND is_active"),
        ),
        Index(
            "uq_memberships_active_pair",
            "user_id",
            "organization_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Membership(id={self.id}, user_id={self.user_id}, "
            f"organization_id={self.organization_id}, is_primary={self.is_primary})>"
        )
