"""
Backup Models

Per-restaurant backup policy and the JSON snapshots written by the
scheduled backup pass.
"""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, Integer, String

from restaurant_security.database import Base
from restaurant_security.models.types import UTCDateTime, utcnow


class BackupType(str, Enum):
    """Data domains that can be snapshotted."""

    INVENTORY = "inventory"
    MENU = "menu"
    TRANSACTIONS = "transactions"
    SALES = "sales"


class BackupStatus(str, Enum):
    """Outcome of one restaurant/type step of a backup pass."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class BackupSetting(Base):
    """
    Automated backup policy for a restaurant.

    backup_frequency is expressed in hours, retention_days in days.
    """

    __tablename__ = "backup_settings"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), unique=True, nullable=False)

    auto_backup_enabled = Column(Boolean, default=False, nullable=False)
    backup_frequency = Column(Integer, default=24, nullable=False)
    backup_types = Column(JSON, nullable=False, default=lambda: [BackupType.INVENTORY.value, BackupType.MENU.value])
    retention_days = Column(Integer, default=30, nullable=False)
    encryption_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<BackupSetting(restaurant_id={self.restaurant_id}, enabled={self.auto_backup_enabled})>"


class DataBackup(Base):
    """A single snapshot of one data domain for one restaurant."""

    __tablename__ = "data_backups"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    backup_type = Column(String(32), nullable=False)
    backup_data = Column(JSON, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_data_backups_restaurant_created", "restaurant_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<DataBackup(id={self.id}, restaurant_id={self.restaurant_id}, type='{self.backup_type}')>"
