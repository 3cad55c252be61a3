"""Token model."""
from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from tenantguard.models.base import BaseModel, UTCDateTime
from tenantguard.models.enums import TokenType


class Token(BaseModel):
    """Bearer credential record.

    Only the SHA-256 digest of the raw token is stored. Rows are mutated only
    to revoke them; a longer lifetime means issuing a new token.
    """

    __tablename__ = "tokens"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    type = Column(
        SQLEnum(
            TokenType,
            name="token_type",
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=TokenType.ACCESS,
        index=True,
    )
    scope = Column(String(255), nullable=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    revoked_at = Column(UTCDateTime, nullable=True)
    revoked_reason = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    token_metadata = Column("metadata", JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User")

    def __repr__(self) -> str:
        return f"<Token(id={self.id}, user_id={self.user_id}, type={self.type})>"
