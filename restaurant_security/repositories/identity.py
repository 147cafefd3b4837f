"""Identity collaborator: users and restaurant ownership."""

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.auth import verify_password
from restaurant_security.models.user import Restaurant, User


class IdentityProvider(Protocol):
    async def verify_password(self, user_id: int, password: str) -> bool: ...


class DatabaseIdentityProvider:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def verify_password(self, user_id: int, password: str) -> bool:
        user = await self.db.get(User, user_id)
        if user is None:
            return False
        return verify_password(password, user.hashed_password)

    async def owns_restaurant(self, user_id: int, restaurant_id: int) -> bool | None:
        """True/False for an existing restaurant, None when it does not exist."""
        result = await self.db.execute(select(Restaurant.owner_id).where(Restaurant.id == restaurant_id))
        owner_id = result.scalar_one_or_none()
        if owner_id is None:
            return None
        return owner_id == user_id
