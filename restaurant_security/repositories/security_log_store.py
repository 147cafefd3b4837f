"""Append-only security log store."""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.models.security_log import SecurityLog
from restaurant_security.models.types import utcnow
from restaurant_security.repositories.records import SecurityLogRecord


class SecurityLogStore(Protocol):
    async def append(self, entry: SecurityLogRecord) -> None: ...

    async def recent(self, user_id: int, limit: int = 50) -> list[SecurityLogRecord]: ...

    async def count_since(self, user_id: int, event_types: Iterable[str], since: datetime) -> int: ...


def _to_record(row: SecurityLog) -> SecurityLogRecord:
    return SecurityLogRecord(
        id=row.id,
        user_id=row.user_id,
        restaurant_id=row.restaurant_id,
        event_type=row.event_type,
        event_details=row.event_details or {},
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        device_info=row.device_info,
        created_at=row.created_at,
    )


class SqlSecurityLogStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, entry: SecurityLogRecord) -> None:
        self.db.add(
            SecurityLog(
                user_id=entry.user_id,
                restaurant_id=entry.restaurant_id,
                event_type=entry.event_type,
                event_details=entry.event_details,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
                device_info=entry.device_info,
                created_at=entry.created_at or utcnow(),
            )
        )
        await self.db.commit()

    async def recent(self, user_id: int, limit: int = 50) -> list[SecurityLogRecord]:
        result = await self.db.execute(
            select(SecurityLog)
            .where(SecurityLog.user_id == user_id)
            .order_by(SecurityLog.created_at.desc(), SecurityLog.id.desc())
            .limit(limit)
        )
        return [_to_record(row) for row in result.scalars().all()]

    async def count_since(self, user_id: int, event_types: Iterable[str], since: datetime) -> int:
        count = await self.db.scalar(
            select(func.count(SecurityLog.id)).where(
                SecurityLog.user_id == user_id,
                SecurityLog.event_type.in_(list(event_types)),
                SecurityLog.created_at >= since,
            )
        )
        return count or 0
