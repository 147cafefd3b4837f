"""Plain records passed between the stores and the services."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class TwoFactorRecord:
    user_id: int
    secret: str
    is_enabled: bool = False
    failed_attempts: int = 0
    locked_until: datetime | None = None
    last_used_at: datetime | None = None
    recovery_email: str | None = None
    backup_codes_remaining: int = 0

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and now < self.locked_until


@dataclass
class SecurityLogRecord:
    user_id: int | None
    event_type: str
    event_details: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    device_info: dict[str, Any] | None = None
    restaurant_id: int | None = None
    created_at: datetime | None = None
    id: int | None = None


@dataclass
class SessionRecord:
    user_id: int
    session_token: str
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    device_info: dict[str, Any] | None = None
    created_at: datetime | None = None
    last_activity: datetime | None = None


@dataclass
class BackupPolicy:
    restaurant_id: int
    auto_backup_enabled: bool = False
    backup_frequency: int = 24
    backup_types: list[str] = field(default_factory=list)
    retention_days: int = 30
    encryption_enabled: bool = False


@dataclass
class BackupRecord:
    id: int
    restaurant_id: int
    backup_type: str
    created_at: datetime
    backup_data: dict[str, Any] | None = None
