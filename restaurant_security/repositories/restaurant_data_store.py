"""Read-only access to the data domains captured by backups."""

from collections.abc import Sequence
from typing import Any, Protocol

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_security.models.restaurant_data import (
    ConsumptionHistory,
    InventoryItem,
    MenuItem,
    MenuItemIngredient,
    PurchaseHistory,
)

Row = dict[str, Any]


class RestaurantDataStore(Protocol):
    async def inventory_items(self, restaurant_id: int) -> list[Row]: ...

    async def menu_items(self, restaurant_id: int) -> list[Row]: ...

    async def menu_item_ingredients(self, menu_item_ids: Sequence[int]) -> list[Row]: ...

    async def purchase_history(self, restaurant_id: int) -> list[Row]: ...

    async def consumption_history(self, restaurant_id: int) -> list[Row]: ...


def row_to_dict(obj) -> Row:
    """JSON-safe dict of a mapped row's column attributes."""
    mapper = inspect(obj).mapper
    return jsonable_encoder({attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs})


class SqlRestaurantDataStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rows(self, statement) -> list[Row]:
        try:
            result = await self.db.execute(statement)
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return [row_to_dict(obj) for obj in result.scalars().all()]

    async def inventory_items(self, restaurant_id: int) -> list[Row]:
        return await self._rows(
            select(InventoryItem).where(InventoryItem.restaurant_id == restaurant_id).order_by(InventoryItem.id)
        )

    async def menu_items(self, restaurant_id: int) -> list[Row]:
        return await self._rows(select(MenuItem).where(MenuItem.restaurant_id == restaurant_id).order_by(MenuItem.id))

    async def menu_item_ingredients(self, menu_item_ids: Sequence[int]) -> list[Row]:
        if not menu_item_ids:
            return []
        return await self._rows(
            select(MenuItemIngredient)
            .where(MenuItemIngredient.menu_item_id.in_(list(menu_item_ids)))
            .order_by(MenuItemIngredient.id)
        )

    async def purchase_history(self, restaurant_id: int) -> list[Row]:
        return await self._rows(
            select(PurchaseHistory).where(PurchaseHistory.restaurant_id == restaurant_id).order_by(PurchaseHistory.id)
        )

    async def consumption_history(self, restaurant_id: int) -> list[Row]:
        return await self._rows(
            select(ConsumptionHistory)
            .where(ConsumptionHistory.restaurant_id == restaurant_id)
            .order_by(ConsumptionHistory.id)
        )
