"""Append-only audit trail of account-security events."""

from enum import Enum

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text

from restaurant_security.database import Base
from restaurant_security.models.types import UTCDateTime, utcnow


class SecurityEventType(str, Enum):
    SETUP_STARTED = "2fa_setup_started"
    ENABLED = "2fa_enabled"
    VERIFIED = "2fa_verified"
    BACKUP_CODE_USED = "2fa_backup_code_used"
    VERIFICATION_FAILED = "2fa_verification_failed"
    VERIFICATION_LOCKED = "2fa_verification_locked"
    LOCKED = "2fa_locked"
    DISABLED = "2fa_disabled"
    DISABLE_FAILED = "2fa_disable_failed"
    SESSION_CHECK = "session_check"
    LOGIN_FAILED = "login_failed"


class SecurityLog(Base):
    __tablename__ = "security_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True)
    event_type = Column(String(64), nullable=False)
    event_details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(Text, nullable=True)
    device_info = Column(JSON, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_security_logs_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<SecurityLog(user_id={self.user_id}, event_type='{self.event_type}')>"
