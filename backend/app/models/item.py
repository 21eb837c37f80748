"""
Item master and packaging unit models
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, ForeignKey, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Item(Base):
    """Item master - one stockable material or consumable"""
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    item_code = Column(String(50), unique=True, nullable=False, index=True)
    item_name = Column(String(255), nullable=False)

    # Name of the base unit of measure (e.g. "piece"); the ItemUnit flagged
    # is_base_unit carries the same name with conversion_rate 1
    unit_of_measure = Column(String(50), nullable=True)

    # Stock levels (base units)
    min_stock_level = Column(Integer, nullable=True)
    max_stock_level = Column(Integer, nullable=True)

    # Denormalized sum of item_batches.quantity_on_hand.
    # Only BatchLedger writes it; BatchLedger.reconcile_item_total() repairs drift.
    cached_total_quantity = Column(Integer, default=0, nullable=False)
    cached_last_import_date = Column(DateTime, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    units = relationship(
        "ItemUnit",
        back_populates="item",
        order_by="ItemUnit.display_order",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Item {self.item_code}: {self.item_name}>"


class ItemUnit(Base):
    """Packaging unit of an item with its integer rate to the base unit"""
    __tablename__ = "item_units"
    __table_args__ = (
        UniqueConstraint("item_id", "unit_name", name="uq_item_units_item_name"),
        CheckConstraint("conversion_rate >= 1", name="ck_item_units_rate_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)

    unit_name = Column(String(50), nullable=False)
    # How many base units one of this unit holds (box of 10 pieces -> 10)
    conversion_rate = Column(Integer, nullable=False, default=1)
    is_base_unit = Column(Boolean, default=False, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    item = relationship("Item", back_populates="units")

    def __repr__(self):
        return f"<ItemUnit {self.unit_name} x{self.conversion_rate}>"
