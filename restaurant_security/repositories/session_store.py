"""Active session rows keyed by session token."""

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.models.user_session import ActiveSession
from restaurant_security.repositories.records import SessionRecord

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    async def upsert(self, record: SessionRecord, now: datetime) -> SessionRecord | None: ...

    async def list_active(self, user_id: int, now: datetime) -> list[SessionRecord]: ...


def _to_record(row: ActiveSession) -> SessionRecord:
    return SessionRecord(
        user_id=row.user_id,
        session_token=row.session_token,
        expires_at=row.expires_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        device_info=row.device_info,
        created_at=row.created_at,
        last_activity=row.last_activity,
    )


class SqlSessionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(self, record: SessionRecord, now: datetime) -> SessionRecord | None:
        """
        Insert or refresh the row for `record.session_token`.

        Returns None when the token already belongs to another user.
        """
        for attempt in range(2):
            result = await self.db.execute(
                select(ActiveSession).where(ActiveSession.session_token == record.session_token)
            )
            row = result.scalar_one_or_none()
            if row is not None and row.user_id != record.user_id:
                return None
            if row is None:
                row = ActiveSession(user_id=record.user_id, session_token=record.session_token, created_at=now)
                self.db.add(row)

            row.ip_address = record.ip_address
            row.user_agent = record.user_agent
            row.device_info = record.device_info
            row.expires_at = record.expires_at
            row.last_activity = now

            try:
                await self.db.commit()
            except IntegrityError:
                # A concurrent first touch inserted the same token
                await self.db.rollback()
                if attempt:
                    raise
                logger.warning(f"Concurrent insert of session token for user {record.user_id}, retrying")
                continue

            await self.db.refresh(row)
            return _to_record(row)

    async def list_active(self, user_id: int, now: datetime) -> list[SessionRecord]:
        result = await self.db.execute(
            select(ActiveSession)
            .where(ActiveSession.user_id == user_id, ActiveSession.expires_at > now)
            .order_by(ActiveSession.last_activity.desc())
        )
        return [_to_record(row) for row in result.scalars().all()]
