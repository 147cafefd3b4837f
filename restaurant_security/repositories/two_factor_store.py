"""
Two-factor settings store.

Every mutation that can race with a concurrent verify is a single
conditional UPDATE/DELETE, so two requests can never both spend the same
backup code, both enable the same pending secret, or get more guesses
between them than the lockout threshold allows.
"""

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import and_, case, delete, func, literal, null, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.models.two_factor import TwoFactorBackupCode, TwoFactorSettings
from restaurant_security.models.types import UTCDateTime
from restaurant_security.repositories.records import TwoFactorRecord

logger = logging.getLogger(__name__)


class TwoFactorStore(Protocol):
    async def get(self, user_id: int) -> TwoFactorRecord | None: ...

    async def save_pending(
        self, user_id: int, secret: str, code_hashes: list[str], recovery_email: str | None
    ) -> bool: ...

    async def consume_backup_code(self, user_id: int, code_hash: str) -> bool: ...

    async def reserve_attempt(
        self, user_id: int, threshold: int, now: datetime, lock_until: datetime
    ) -> tuple[int, datetime | None] | None: ...

    async def mark_verified(self, user_id: int, now: datetime, attempt: int) -> bool: ...

    async def reset(self, user_id: int) -> bool: ...


class SqlTwoFactorStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> TwoFactorRecord | None:
        result = await self.db.execute(select(TwoFactorSettings).where(TwoFactorSettings.user_id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            return None

        remaining = await self.db.scalar(
            select(func.count(TwoFactorBackupCode.id)).where(TwoFactorBackupCode.user_id == user_id)
        )
        return TwoFactorRecord(
            user_id=row.user_id,
            secret=row.secret,
            is_enabled=row.is_enabled,
            failed_attempts=row.failed_attempts,
            locked_until=row.locked_until,
            last_used_at=row.last_used_at,
            recovery_email=row.recovery_email,
            backup_codes_remaining=remaining or 0,
        )

    async def save_pending(
        self, user_id: int, secret: str, code_hashes: list[str], recovery_email: str | None
    ) -> bool:
        """
        Store a new pending secret and backup-code set.

        Returns False without writing if 2FA is (or has just become) enabled.
        """
        try:
            result = await self.db.execute(
                update(TwoFactorSettings)
                .where(TwoFactorSettings.user_id == user_id, TwoFactorSettings.is_enabled.is_(False))
                .values(secret=secret, recovery_email=recovery_email)
            )
            if result.rowcount == 0:
                exists = await self.db.scalar(
                    select(func.count(TwoFactorSettings.id)).where(TwoFactorSettings.user_id == user_id)
                )
                if exists:
                    await self.db.rollback()
                    return False
                self.db.add(
                    TwoFactorSettings(user_id=user_id, secret=secret, is_enabled=False, recovery_email=recovery_email)
                )
                await self.db.flush()

            await self.db.execute(delete(TwoFactorBackupCode).where(TwoFactorBackupCode.user_id == user_id))
            self.db.add_all(TwoFactorBackupCode(user_id=user_id, code_hash=h) for h in code_hashes)
            await self.db.commit()
            return True
        except IntegrityError:
            # A concurrent setup inserted the row first; the caller may retry
            await self.db.rollback()
            logger.warning(f"Concurrent 2FA setup detected for user {user_id}")
            return False

    async def consume_backup_code(self, user_id: int, code_hash: str) -> bool:
        result = await self.db.execute(
            delete(TwoFactorBackupCode).where(
                TwoFactorBackupCode.user_id == user_id,
                TwoFactorBackupCode.code_hash == code_hash,
            )
        )
        await self.db.commit()
        return result.rowcount == 1

    async def reserve_attempt(
        self, user_id: int, threshold: int, now: datetime, lock_until: datetime
    ) -> tuple[int, datetime | None] | None:
        """
        Count a verification attempt before its code is checked.

        Returns the attempt number and the lock it set, or None while the row
        is locked. An expired lock starts the counter again from zero.
        """
        expired = and_(TwoFactorSettings.locked_until.is_not(None), TwoFactorSettings.locked_until <= now)
        attempts = case((expired, 0), else_=TwoFactorSettings.failed_attempts) + 1
        result = await self.db.execute(
            update(TwoFactorSettings)
            .where(
                TwoFactorSettings.user_id == user_id,
                or_(
                    expired,
                    and_(TwoFactorSettings.locked_until.is_(None), TwoFactorSettings.failed_attempts < threshold),
                ),
            )
            .values(
                failed_attempts=attempts,
                locked_until=case((attempts >= threshold, literal(lock_until, UTCDateTime())), else_=null()),
            )
        )
        if result.rowcount == 0:
            await self.db.commit()
            return None

        row = (
            await self.db.execute(
                select(TwoFactorSettings.failed_attempts, TwoFactorSettings.locked_until).where(
                    TwoFactorSettings.user_id == user_id
                )
            )
        ).one()
        await self.db.commit()
        return row.failed_attempts, row.locked_until

    async def mark_verified(self, user_id: int, now: datetime, attempt: int) -> bool:
        """
        Enable a pending secret and stamp last use; returns True when this call enabled 2FA.

        Counters are cleared only when no attempt was reserved after `attempt`,
        so a success never lifts a lock set by a concurrent guess.
        """
        enabled = await self.db.execute(
            update(TwoFactorSettings)
            .where(
                TwoFactorSettings.user_id == user_id,
                TwoFactorSettings.is_enabled.is_(False),
                TwoFactorSettings.secret != "",
            )
            .values(is_enabled=True)
        )
        await self.db.execute(
            update(TwoFactorSettings).where(TwoFactorSettings.user_id == user_id).values(last_used_at=now)
        )
        await self.db.execute(
            update(TwoFactorSettings)
            .where(TwoFactorSettings.user_id == user_id, TwoFactorSettings.failed_attempts == attempt)
            .values(failed_attempts=0, locked_until=None)
        )
        await self.db.commit()
        return enabled.rowcount == 1

    async def reset(self, user_id: int) -> bool:
        result = await self.db.execute(
            update(TwoFactorSettings)
            .where(TwoFactorSettings.user_id == user_id)
            .values(is_enabled=False, failed_attempts=0, locked_until=None, secret="")
        )
        await self.db.execute(delete(TwoFactorBackupCode).where(TwoFactorBackupCode.user_id == user_id))
        await self.db.commit()
        return result.rowcount > 0
