"""AuditEvent model."""

from sqlalchemy import JSON, Column, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum

from tenantguard.models.base import BaseModel
from tenantguard.models.enums import AuditAction


class AuditEvent(BaseModel):
    """Append-only trail of administrative and security actions.

    `org_id` is empty for global actions such as role or permission changes.
    """

    __tablename__ = "audit_events"

    org_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action = Column(
        SQLEnum(
            AuditAction,
            name="audit_action",
            native_enum=False,
            length=50,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False)
    diff_json = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    request_id = Column(String(128), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditEvent(id={self.id}, action={self.action}, entity_type={self.entity_type})>"
