"""User session tracking for security and session management."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text

from restaurant_security.database import Base
from restaurant_security.models.types import UTCDateTime, utcnow


class ActiveSession(Base):
    """One live row per session token; expiry is filtered on read."""

    __tablename__ = "active_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Session identification
    session_token = Column(String(255), unique=True, nullable=False, index=True)

    # Device and location info
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    device_info = Column(JSON, nullable=True)  # {"type", "browser", "os", "is_mobile"}

    # Timestamps
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    last_activity = Column(UTCDateTime, default=utcnow, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
