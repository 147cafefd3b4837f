"""FastAPI dependencies wiring services to the request's database session."""

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.auth import get_current_user
from restaurant_security.config import settings
from restaurant_security.database import get_db
from restaurant_security.exceptions import AuthorizationError, ResourceNotFoundError
from restaurant_security.models.user import User
from restaurant_security.repositories.backup_store import SqlBackupStore
from restaurant_security.repositories.identity import DatabaseIdentityProvider
from restaurant_security.repositories.restaurant_data_store import SqlRestaurantDataStore
from restaurant_security.repositories.security_log_store import SqlSecurityLogStore
from restaurant_security.repositories.session_store import SqlSessionStore
from restaurant_security.repositories.two_factor_store import SqlTwoFactorStore
from restaurant_security.services.backup_service import BackupService
from restaurant_security.services.crypto import build_secret_cipher
from restaurant_security.services.session_service import SessionService
from restaurant_security.services.two_factor_service import TwoFactorService

secret_cipher = build_secret_cipher(settings.totp_encryption_key)


def get_two_factor_service(db: AsyncSession = Depends(get_db)) -> TwoFactorService:
    return TwoFactorService(
        SqlTwoFactorStore(db),
        SqlSecurityLogStore(db),
        DatabaseIdentityProvider(db),
        secret_cipher,
    )


def get_session_service(
    db: AsyncSession = Depends(get_db),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
) -> SessionService:
    return SessionService(SqlSessionStore(db), SqlSecurityLogStore(db), two_factor)


def get_backup_service(db: AsyncSession = Depends(get_db)) -> BackupService:
    return BackupService(SqlBackupStore(db), SqlRestaurantDataStore(db))


async def get_owned_restaurant_id(
    restaurant_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Resolve the path restaurant and require the current user to own it."""
    owns = await DatabaseIdentityProvider(db).owns_restaurant(current_user.id, restaurant_id)
    if owns is None:
        raise ResourceNotFoundError("Restaurant", restaurant_id)
    if not owns:
        raise AuthorizationError("You do not own this restaurant")
    return restaurant_id
