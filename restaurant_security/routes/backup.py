"""
Backup Routes

Batch endpoints for the scheduler (service credential) and per-restaurant
endpoints for owners.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restaurant_security.auth import require_service_credential
from restaurant_security.dependencies import get_backup_service, get_owned_restaurant_id
from restaurant_security.models.backup import BackupType
from restaurant_security.services.backup_service import BackupService

router = APIRouter(prefix="/backups", tags=["Backups"])


# ============== Schemas ==============


class ManualBackupRequest(BaseModel):
    """Types to back up now; defaults to the restaurant's configured types."""

    backup_types: list[BackupType] | None = None


class BackupSettingsUpdate(BaseModel):
    auto_backup_enabled: bool | None = None
    backup_frequency: int | None = Field(None, ge=1, description="Hours between automated backups")
    backup_types: list[BackupType] | None = None
    retention_days: int | None = Field(None, ge=1)
    encryption_enabled: bool | None = None


# ============== Batch ==============


@router.post("/run", dependencies=[Depends(require_service_credential)])
async def run_backup_pass(service: BackupService = Depends(get_backup_service)) -> dict:
    """Run one automated backup pass over all enabled policies."""
    report = await service.run_backup_pass()
    return report.to_dict()


@router.post("/schedule", dependencies=[Depends(require_service_credential)])
async def schedule_backups(service: BackupService = Depends(get_backup_service)) -> dict:
    """Trigger endpoint for external schedulers; delegates to the backup pass."""
    report = await service.run_backup_pass()
    return {"message": "Backup scheduling completed", "data": report.to_dict()}


# ============== Per Restaurant ==============


@router.get("/{restaurant_id}")
async def list_backups(
    restaurant_id: int = Depends(get_owned_restaurant_id),
    service: BackupService = Depends(get_backup_service),
) -> dict:
    return {"backups": await service.list_backups(restaurant_id)}


@router.post("/{restaurant_id}")
async def create_manual_backup(
    data: ManualBackupRequest | None = None,
    restaurant_id: int = Depends(get_owned_restaurant_id),
    service: BackupService = Depends(get_backup_service),
) -> dict:
    """
    Create backups right now.

    Returns 207 with per-type results if only some types succeeded.
    """
    backup_types = [t.value for t in data.backup_types] if data and data.backup_types else None
    results = await service.create_manual_backup(restaurant_id, backup_types)
    return {"message": "Backup created successfully", "results": results}


@router.get("/{restaurant_id}/settings")
async def get_backup_settings(
    restaurant_id: int = Depends(get_owned_restaurant_id),
    service: BackupService = Depends(get_backup_service),
) -> dict:
    return await service.get_settings(restaurant_id)


@router.put("/{restaurant_id}/settings")
async def update_backup_settings(
    data: BackupSettingsUpdate,
    restaurant_id: int = Depends(get_owned_restaurant_id),
    service: BackupService = Depends(get_backup_service),
) -> dict:
    fields = data.model_dump(exclude_none=True)
    if "backup_types" in fields:
        fields["backup_types"] = [t.value for t in data.backup_types]
    return await service.update_settings(restaurant_id, **fields)
