"""
Two-Factor Authentication Model

Stores TOTP secrets and single-use backup codes for users who set up 2FA.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint

from restaurant_security.database import Base
from restaurant_security.models.types import UTCDateTime, utcnow


class TwoFactorSettings(Base):
    """
    Two-factor authentication settings for a user.

    Stores:
    - TOTP secret (encrypted when a key is configured)
    - Verification status and lockout counters
    - Recovery email

    The row is created disabled on setup, enabled by the first successful
    verification and reset (not deleted) on disable.
    """

    __tablename__ = "user_2fa_settings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # User relationship (one-to-one)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    # Empty after disable
    secret = Column(String(512), nullable=False, default="")

    # Whether 2FA is fully enabled (after initial verification)
    is_enabled = Column(Boolean, default=False, nullable=False)

    # Lockout tracking
    failed_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(UTCDateTime, nullable=True)

    recovery_email = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_used_at = Column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<TwoFactorSettings(user_id={self.user_id}, enabled={self.is_enabled})>"


class TwoFactorBackupCode(Base):
    """
    One row per unused backup code (sha256 of the normalised code).

    Consuming a code deletes its row, so a code can only ever be spent once.
    """

    __tablename__ = "two_factor_backup_codes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    code_hash = Column(String(64), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "code_hash", name="uq_backup_code_user_hash"),)
