"""
Restaurant data domains captured by backups.

Only the columns the snapshots need are mapped here; the tables belong to
the inventory and menu modules of the platform.
"""

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text

from restaurant_security.database import Base
from restaurant_security.models.types import UTCDateTime, utcnow


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(32), nullable=True)
    current_stock = Column(Numeric(12, 3), default=0, nullable=False)
    minimum_stock = Column(Numeric(12, 3), default=0, nullable=False)
    cost_per_unit = Column(Numeric(12, 2), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    category = Column(String(100), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)


class MenuItemIngredient(Base):
    __tablename__ = "menu_item_ingredients"

    id = Column(Integer, primary_key=True, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True)
    inventory_item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)


class PurchaseHistory(Base):
    __tablename__ = "purchase_history"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    inventory_item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    total_cost = Column(Numeric(12, 2), nullable=True)
    purchased_at = Column(UTCDateTime, default=utcnow, nullable=False)


class ConsumptionHistory(Base):
    __tablename__ = "consumption_history"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    inventory_item_id = Column(Integer, ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    reason = Column(String(100), nullable=True)
    consumed_at = Column(UTCDateTime, default=utcnow, nullable=False)
