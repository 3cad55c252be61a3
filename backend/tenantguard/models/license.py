"""License model."""
from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel, UTCDateTime
from tenantguard.models.enums import LicenseStatus


class License(BaseModel):
    """Per-organization entitlement record.

    `key` is write-once: the ORM guard in `tenantguard.models.guards` and the
    `licenses_prevent_key_update` trigger both reject any change after
    insert. `organization_id` is nullable for transitional global licenses,
    which never entitle a tenant.
    """

    __tablename__ = "licenses"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    key = Column(String(64), nullable=False, unique=True, index=True)
    plan_name = Column(String(100), nullable=False)
    status = Column(
        SQLEnum(
            LicenseStatus,
            name="license_status",
            native_enum=False,
            length=16,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=LicenseStatus.ACTIVE,
    )
    starts_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    max_users = Column(Integer, nullable=True)
    revoked_at = Column(UTCDateTime, nullable=True)
    revoked_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    organization = relationship("Organization", back_populates="licenses")

    __table_args__ = (
        CheckConstraint("starts_at < expires_at", name="license_window_valid"),
        CheckConstraint("max_users IS NULL OR max_users > 0", name="license_max_users_positive"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<License(id={self.id}, organization_id={self.organization_id}, status={self.status})>"
