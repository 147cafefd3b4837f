"""
Backup Service

Snapshots restaurant data domains into JSON backup rows.

The scheduled pass walks every enabled policy. Each policy is handled by
its own task that returns a typed result list, and each data type inside a
policy is isolated, so one failure never aborts its siblings. Only failing
to read the policies at all fails the whole pass.

Freshness is checked against the most recent backup of any type: if that
is newer than backup_frequency hours, every configured type is skipped for
this pass.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from restaurant_security.config import Settings, settings as default_settings
from restaurant_security.exceptions import (
    PartialBatchFailureError,
    ResourceNotFoundError,
    StoreFailureError,
    ValidationError,
)
from restaurant_security.models.backup import BackupStatus, BackupType
from restaurant_security.models.types import utcnow
from restaurant_security.repositories.backup_store import BackupStore
from restaurant_security.repositories.records import BackupPolicy
from restaurant_security.repositories.restaurant_data_store import RestaurantDataStore
from restaurant_security.utils.store_calls import store_call

logger = logging.getLogger(__name__)

BACKUP_TYPES = tuple(t.value for t in BackupType)


@dataclass
class BackupResult:
    """Outcome of one restaurant (and usually one type) in a pass."""

    restaurant_id: int
    status: BackupStatus
    backup_type: str | None = None
    backup_id: int | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"restaurant_id": self.restaurant_id, "status": self.status.value}
        if self.backup_type is not None:
            data["backup_type"] = self.backup_type
        if self.backup_id is not None:
            data["backup_id"] = self.backup_id
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass
class PolicyReport:
    restaurant_id: int
    results: list[BackupResult] = field(default_factory=list)
    deleted: int = 0


@dataclass
class BackupPassReport:
    message: str
    policies: list[PolicyReport] = field(default_factory=list)

    @property
    def results(self) -> list[BackupResult]:
        return [result for policy in self.policies for result in policy.results]

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "results": [result.to_dict() for result in self.results],
            "deleted": {str(policy.restaurant_id): policy.deleted for policy in self.policies if policy.deleted},
        }


class BackupService:
    """Service for restaurant data backups."""

    def __init__(
        self,
        backups: BackupStore,
        data: RestaurantDataStore,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backups = backups
        self.data = data
        self.config = config
        self.clock = clock
        self._snapshots: dict[str, Callable[[int], Awaitable[dict[str, Any]]]] = {
            BackupType.INVENTORY.value: self._inventory_snapshot,
            BackupType.MENU.value: self._menu_snapshot,
            BackupType.TRANSACTIONS.value: self._transactions_snapshot,
            BackupType.SALES.value: self._sales_snapshot,
        }

    async def run_backup_pass(self) -> BackupPassReport:
        """
        Run one backup pass over all enabled policies.

        Policies share one database session, so they run one after another.

        Raises:
            StoreFailureError: if the policies cannot be read
        """
        policies = await self._call(self.backups.list_enabled_policies(), "list_backup_policies")
        logger.info(f"Backup pass started for {len(policies)} policies")

        report = BackupPassReport(message="Backup process completed")
        for policy in policies:
            report.policies.append(await self._process_policy(policy))

        failed = sum(1 for result in report.results if result.status == BackupStatus.ERROR)
        logger.info(f"Backup pass finished: {len(report.results)} results, {failed} errors")
        return report

    async def create_manual_backup(
        self, restaurant_id: int, backup_types: Sequence[str] | None = None
    ) -> list[dict[str, Any]]:
        """
        Back up the given types right now, ignoring the freshness gate.

        Raises:
            PartialBatchFailureError: if only some types were written
            StoreFailureError: if no type was written
        """
        if not backup_types:
            policy = await self._call(self.backups.get_policy(restaurant_id), "get_backup_policy")
            backup_types = policy.backup_types if policy and policy.backup_types else list(BACKUP_TYPES)

        unknown = [t for t in backup_types if t not in BACKUP_TYPES]
        if unknown:
            raise ValidationError(f"Unknown backup types: {', '.join(unknown)}", field="backup_types")

        now = self.clock()
        results = [(await self._backup_type(restaurant_id, t, now)).to_dict() for t in backup_types]

        succeeded = sum(1 for r in results if r["status"] == BackupStatus.SUCCESS.value)
        if succeeded == 0:
            raise StoreFailureError("Backup failed for every requested type", operation="create_backup")
        if succeeded < len(results):
            raise PartialBatchFailureError(results)

        logger.info(f"Manual backup created for restaurant {restaurant_id}: {', '.join(backup_types)}")
        return results

    async def list_backups(self, restaurant_id: int, limit: int = 50) -> list[dict[str, Any]]:
        records = await self._call(self.backups.list_backups(restaurant_id, limit), "list_backups")
        return [
            {
                "id": record.id,
                "restaurant_id": record.restaurant_id,
                "backup_type": record.backup_type,
                "created_at": record.created_at.isoformat(),
                "backup_data": record.backup_data,
            }
            for record in records
        ]

    async def get_settings(self, restaurant_id: int) -> dict[str, Any]:
        """Stored policy, or the defaults when none has been saved."""
        policy = await self._call(self.backups.get_policy(restaurant_id), "get_backup_policy")
        if policy is None:
            policy = BackupPolicy(
                restaurant_id=restaurant_id,
                backup_types=[BackupType.INVENTORY.value, BackupType.MENU.value],
            )
        return _policy_to_dict(policy)

    async def update_settings(self, restaurant_id: int, **fields: Any) -> dict[str, Any]:
        backup_types = fields.get("backup_types")
        if backup_types is not None:
            unknown = [t for t in backup_types if t not in BACKUP_TYPES]
            if unknown:
                raise ValidationError(f"Unknown backup types: {', '.join(unknown)}", field="backup_types")
        for name in ("backup_frequency", "retention_days"):
            if fields.get(name) is not None and fields[name] < 1:
                raise ValidationError(f"{name} must be at least 1", field=name)

        policy = await self._call(self.backups.upsert_policy(restaurant_id, **fields), "upsert_backup_policy")
        logger.info(f"Backup settings updated for restaurant {restaurant_id}")
        return _policy_to_dict(policy)

    # ============== Private Methods ==============

    async def _process_policy(self, policy: BackupPolicy) -> PolicyReport:
        report = PolicyReport(restaurant_id=policy.restaurant_id)
        try:
            now = self.clock()
            last_backup = await self._call(
                self.backups.latest_backup_at(policy.restaurant_id), "latest_backup_at"
            )

            if last_backup is not None:
                hours_since = (now - last_backup).total_seconds() / 3600
                if hours_since < policy.backup_frequency:
                    report.results = [
                        BackupResult(
                            restaurant_id=policy.restaurant_id,
                            status=BackupStatus.SKIPPED,
                            backup_type=backup_type,
                            message=f"Last backup {hours_since:.1f}h ago",
                        )
                        for backup_type in policy.backup_types
                    ]
                    return report

            for backup_type in policy.backup_types:
                report.results.append(await self._backup_type(policy.restaurant_id, backup_type, now))

            report.deleted = await self._prune(policy, now)
        except Exception as e:
            logger.error(f"Backup pass failed for restaurant {policy.restaurant_id}: {e}", exc_info=True)
            await self._reset_session()
            report.results.append(
                BackupResult(restaurant_id=policy.restaurant_id, status=BackupStatus.ERROR, message=str(e))
            )
        return report

    async def _backup_type(self, restaurant_id: int, backup_type: str, now: datetime) -> BackupResult:
        snapshot = self._snapshots.get(backup_type)
        if snapshot is None:
            return BackupResult(
                restaurant_id=restaurant_id,
                status=BackupStatus.ERROR,
                backup_type=backup_type,
                message=f"Unknown backup type '{backup_type}'",
            )

        try:
            backup_data = await snapshot(restaurant_id)
            backup_id = await self._call(
                self.backups.create_backup(restaurant_id, backup_type, backup_data, now), "create_backup"
            )
        except Exception as e:
            logger.error(f"{backup_type} backup failed for restaurant {restaurant_id}: {e}")
            await self._reset_session()
            return BackupResult(
                restaurant_id=restaurant_id, status=BackupStatus.ERROR, backup_type=backup_type, message=str(e)
            )

        return BackupResult(
            restaurant_id=restaurant_id, status=BackupStatus.SUCCESS, backup_type=backup_type, backup_id=backup_id
        )

    async def _prune(self, policy: BackupPolicy, now: datetime) -> int:
        """Delete backups older than the retention window; failures are only logged."""
        cutoff = now - timedelta(days=policy.retention_days)
        try:
            deleted = await self._call(
                self.backups.delete_older_than(policy.restaurant_id, cutoff), "delete_old_backups"
            )
        except Exception as e:
            logger.warning(f"Retention cleanup failed for restaurant {policy.restaurant_id}: {e}")
            await self._reset_session()
            return 0

        if deleted:
            logger.info(f"Cleaned up {deleted} old backups for restaurant {policy.restaurant_id}")
        return deleted

    async def _reset_session(self) -> None:
        # Policies share one session; a failed step must not poison the next one
        try:
            await self._call(self.backups.reset(), "reset_backup_session")
        except StoreFailureError as e:
            logger.warning(f"Could not roll back after backup failure: {e}")

    async def _inventory_snapshot(self, restaurant_id: int) -> dict[str, Any]:
        items = await self._call(self.data.inventory_items(restaurant_id), "inventory_items")
        return {"inventory_items": items}

    async def _menu_snapshot(self, restaurant_id: int) -> dict[str, Any]:
        items = await self._call(self.data.menu_items(restaurant_id), "menu_items")
        ingredients = []
        if items:
            ids = [item["id"] for item in items]
            ingredients = await self._call(self.data.menu_item_ingredients(ids), "menu_item_ingredients")
        return {"menu_items": items, "ingredients": ingredients}

    async def _transactions_snapshot(self, restaurant_id: int) -> dict[str, Any]:
        purchases = await self._call(self.data.purchase_history(restaurant_id), "purchase_history")
        consumption = await self._call(self.data.consumption_history(restaurant_id), "consumption_history")
        return {"purchases": purchases, "consumption": consumption}

    async def _sales_snapshot(self, restaurant_id: int) -> dict[str, Any]:
        # Sales data is not tracked yet; keep the shape stable for restores
        return {"sales": []}

    async def _call(self, awaitable, operation: str):
        return await store_call(awaitable, operation, self.config.store_timeout_seconds)


def _policy_to_dict(policy: BackupPolicy) -> dict[str, Any]:
    return {
        "restaurant_id": policy.restaurant_id,
        "auto_backup_enabled": policy.auto_backup_enabled,
        "backup_frequency": policy.backup_frequency,
        "backup_types": list(policy.backup_types),
        "retention_days": policy.retention_days,
        "encryption_enabled": policy.encryption_enabled,
    }
