"""User model."""
from sqlalchemy import Boolean, Column, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel, UTCDateTime
from tenantguard.models.enums import UserStatus


class User(BaseModel):
    """Canonical identity record.

    Owns the bcrypt credential hash and the verification/lockout state. Users
    are never hard-deleted; `is_active = False` deactivates them. Organization
    access comes from memberships, permissions from role assignments.
    """

    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    status = Column(
        SQLEnum(
            UserStatus,
            name="user_status",
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=UserStatus.PENDING_VERIFICATION,
    )
    is_email_verified = Column(Boolean, nullable=False, default=False)
    email_verified_at = Column(UTCDateTime, nullable=True)
    locked_until = Column(UTCDateTime, nullable=True)
    last_login_at = Column(UTCDateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    memberships = relationship(
        "Membership",
        back_populates="user",
        order_by="Membership.created_at",
    )
    role_assignments = relationship(
        "UserRole",
        back_populates="user",
        foreign_keys="UserRole.user_id",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, status={self.status})>"
