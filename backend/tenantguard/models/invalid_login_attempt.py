"""InvalidLoginAttempt model."""
from sqlalchemy import Column, ForeignKey, Integer, String, Text, Uuid

from tenantguard.models.base import BaseModel, UTCDateTime


class InvalidLoginAttempt(BaseModel):
    """Append-only record of one failed authentication.

    `attempt_count_window` is the number of failures for the same email
    inside the rolling window, this one included. `locked_until` is set on
    the attempt that crossed the threshold.
    """

    __tablename__ = "invalid_login_attempts"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    attempted_email = Column(String(255), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    failure_reason = Column(String(255), nullable=True)
    attempt_count_window = Column(Integer, nullable=False, default=1)
    locked_until = Column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InvalidLoginAttempt(email={self.attempted_email}, "
            f"count={self.attempt_count_window}, locked_until={self.locked_until})>"
        )
