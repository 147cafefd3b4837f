"""Backup policies and snapshot rows."""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.models.backup import BackupSetting, DataBackup
from restaurant_security.repositories.records import BackupPolicy, BackupRecord

POLICY_FIELDS = ("auto_backup_enabled", "backup_frequency", "backup_types", "retention_days", "encryption_enabled")


class BackupStore(Protocol):
    async def list_enabled_policies(self) -> list[BackupPolicy]: ...

    async def get_policy(self, restaurant_id: int) -> BackupPolicy | None: ...

    async def upsert_policy(self, restaurant_id: int, **fields: Any) -> BackupPolicy: ...

    async def latest_backup_at(self, restaurant_id: int) -> datetime | None: ...

    async def create_backup(
        self, restaurant_id: int, backup_type: str, backup_data: dict[str, Any], now: datetime
    ) -> int: ...

    async def list_backups(self, restaurant_id: int, limit: int = 50) -> list[BackupRecord]: ...

    async def delete_older_than(self, restaurant_id: int, cutoff: datetime) -> int: ...

    async def reset(self) -> None: ...


def _to_policy(row: BackupSetting) -> BackupPolicy:
    return BackupPolicy(
        restaurant_id=row.restaurant_id,
        auto_backup_enabled=row.auto_backup_enabled,
        backup_frequency=row.backup_frequency,
        backup_types=list(row.backup_types or []),
        retention_days=row.retention_days,
        encryption_enabled=row.encryption_enabled,
    )


class SqlBackupStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_enabled_policies(self) -> list[BackupPolicy]:
        result = await self.db.execute(
            select(BackupSetting).where(BackupSetting.auto_backup_enabled.is_(True)).order_by(BackupSetting.id)
        )
        return [_to_policy(row) for row in result.scalars().all()]

    async def get_policy(self, restaurant_id: int) -> BackupPolicy | None:
        result = await self.db.execute(select(BackupSetting).where(BackupSetting.restaurant_id == restaurant_id))
        row = result.scalar_one_or_none()
        return _to_policy(row) if row else None

    async def upsert_policy(self, restaurant_id: int, **fields: Any) -> BackupPolicy:
        result = await self.db.execute(select(BackupSetting).where(BackupSetting.restaurant_id == restaurant_id))
        row = result.scalar_one_or_none()
        if row is None:
            row = BackupSetting(restaurant_id=restaurant_id)
            self.db.add(row)

        for name in POLICY_FIELDS:
            if fields.get(name) is not None:
                setattr(row, name, fields[name])

        await self.db.commit()
        await self.db.refresh(row)
        return _to_policy(row)

    async def latest_backup_at(self, restaurant_id: int) -> datetime | None:
        result = await self.db.execute(
            select(DataBackup.created_at)
            .where(DataBackup.restaurant_id == restaurant_id)
            .order_by(DataBackup.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_backup(
        self, restaurant_id: int, backup_type: str, backup_data: dict[str, Any], now: datetime
    ) -> int:
        backup = DataBackup(
            restaurant_id=restaurant_id,
            backup_type=backup_type,
            backup_data=backup_data,
            created_at=now,
        )
        self.db.add(backup)
        await self._commit()
        return backup.id

    async def list_backups(self, restaurant_id: int, limit: int = 50) -> list[BackupRecord]:
        result = await self.db.execute(
            select(DataBackup)
            .where(DataBackup.restaurant_id == restaurant_id)
            .order_by(DataBackup.created_at.desc())
            .limit(limit)
        )
        return [
            BackupRecord(
                id=row.id,
                restaurant_id=row.restaurant_id,
                backup_type=row.backup_type,
                created_at=row.created_at,
                backup_data=row.backup_data,
            )
            for row in result.scalars().all()
        ]

    async def delete_older_than(self, restaurant_id: int, cutoff: datetime) -> int:
        result = await self.db.execute(
            delete(DataBackup).where(DataBackup.restaurant_id == restaurant_id, DataBackup.created_at < cutoff)
        )
        await self._commit()
        return result.rowcount

    async def reset(self) -> None:
        """Discard the failed transaction so the next policy starts clean."""
        await self.db.rollback()
