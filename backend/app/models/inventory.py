"""
Inventory batch (lot) model
"""
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, ForeignKey, CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class ItemBatch(Base):
    """
    Physical lot of an item - source of truth for on-hand quantity.

    quantity_on_hand is always in the item's base unit. unit_id records the
    packaging the stock is physically held in, which is what makes a batch
    eligible as an unpacking source.
    """
    __tablename__ = "item_batches"
    __table_args__ = (
        UniqueConstraint("item_id", "lot_number", name="uq_item_batches_item_lot"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_item_batches_qty_non_negative"),
        Index("ix_item_batches_item_expiry", "item_id", "expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # References
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("item_units.id"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)

    # Lineage: set only on batches created by unpacking. Children are looked
    # up through this indexed column, there is no parent -> children collection.
    parent_batch_id = Column(Integer, ForeignKey("item_batches.id"), nullable=True, index=True)

    lot_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=True)  # NULL = never expires

    # Quantities (base units)
    quantity_on_hand = Column(Integer, default=0, nullable=False)
    initial_quantity = Column(Integer, default=0, nullable=False)

    bin_location = Column(String(100), nullable=True)

    # Unpacking state
    is_unpacked = Column(Boolean, default=False, nullable=False)
    unpacked_at = Column(DateTime, nullable=True)
    unpacked_by_transaction_id = Column(
        Integer, ForeignKey("storage_transactions.id"), nullable=True
    )

    # Metadata
    imported_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Optimistic lock, bumped on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    item = relationship("Item")
    unit = relationship("ItemUnit")
    supplier = relationship("Supplier")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<ItemBatch {self.lot_number}: {self.quantity_on_hand}>"
