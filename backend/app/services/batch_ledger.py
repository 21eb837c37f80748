"""
Batch Ledger

Single write path for on-hand stock. Every change to
ItemBatch.quantity_on_hand goes through BatchLedger.adjust(), which moves the
item's cached total by the same delta in the same step, so the two never
diverge inside a unit of work.

Usage:
    ledger = BatchLedger(db)
    items = ledger.lock_items([3, 1])          # row locks, ascending id order
    batch = ledger.find_by_lot(item, "LOT-01")
    ledger.adjust(batch, -5)
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.exceptions import AllocationInvariantError
from app.logging_config import get_logger
from app.models.inventory import ItemBatch
from app.models.item import Item, ItemUnit

logger = get_logger(__name__)


class BatchLedger:
    """Reads and mutations of an item's batch set."""

    def __init__(self, db: Session):
        self.db = db

    # === LOCKING ===

    def lock_items(self, item_ids: Iterable[int]) -> Dict[int, Item]:
        """
        Load items with a row lock (SELECT ... FOR UPDATE).

        Locks are taken in ascending id order so two requests touching the
        same items cannot deadlock. Missing ids are simply absent from the
        result; callers decide whether that is an error.
        """
        locked: Dict[int, Item] = {}
        for item_id in sorted(set(item_ids)):
            item = (
                self.db.query(Item)
                .filter(Item.id == item_id)
                .with_for_update()
                .first()
            )
            if item is not None:
                locked[item_id] = item
        return locked

    # === READS ===

    def batches_for_item(self, item: Item, *, in_stock_only: bool = False) -> List[ItemBatch]:
        """All batches of an item in creation order."""
        # Pending quantity changes must be visible to the SQL filter below
        self.db.flush()
        query = self.db.query(ItemBatch).filter(ItemBatch.item_id == item.id)
        if in_stock_only:
            query = query.filter(ItemBatch.quantity_on_hand > 0)
        return query.order_by(ItemBatch.id).all()

    def find_by_lot(self, item: Item, lot_number: str) -> Optional[ItemBatch]:
        self.db.flush()
        return (
            self.db.query(ItemBatch)
            .filter(ItemBatch.item_id == item.id, ItemBatch.lot_number == lot_number)
            .first()
        )

    def children_of(self, batch: ItemBatch) -> List[ItemBatch]:
        """Batches created by unpacking this one."""
        self.db.flush()
        return (
            self.db.query(ItemBatch)
            .filter(ItemBatch.parent_batch_id == batch.id)
            .order_by(ItemBatch.id)
            .all()
        )

    def total_on_hand(self, item: Item) -> int:
        """On-hand total derived from the batch set (ignores the cached column)."""
        self.db.flush()
        total = (
            self.db.query(func.coalesce(func.sum(ItemBatch.quantity_on_hand), 0))
            .filter(ItemBatch.item_id == item.id)
            .scalar()
        )
        return int(total or 0)

    # === MUTATIONS ===

    def create_batch(
        self,
        item: Item,
        lot_number: str,
        *,
        expiry_date: Optional[date],
        unit: Optional[ItemUnit] = None,
        quantity: int = 0,
        supplier_id: Optional[int] = None,
        bin_location: Optional[str] = None,
        parent: Optional[ItemBatch] = None,
        imported_at: Optional[datetime] = None,
    ) -> ItemBatch:
        """Create an empty batch, then book its opening quantity through adjust()."""
        batch = ItemBatch(
            item=item,
            unit=unit,
            lot_number=lot_number,
            expiry_date=expiry_date,
            quantity_on_hand=0,
            initial_quantity=quantity,
            supplier_id=supplier_id,
            bin_location=bin_location,
            parent_batch_id=parent.id if parent is not None else None,
            imported_at=imported_at,
            created_at=datetime.utcnow(),
        )
        self.db.add(batch)
        self.db.flush()  # Get ID for lines and lineage

        if quantity:
            self.adjust(batch, quantity)

        logger.debug(
            f"Created batch {batch.id} lot {lot_number} with {quantity} units",
            extra={"item_code": item.item_code, "batch_id": batch.id, "parent_batch_id": batch.parent_batch_id},
        )
        return batch

    def adjust(self, batch: ItemBatch, delta: int) -> int:
        """
        Apply a signed base-unit delta to a batch and its item's cached total.

        Returns the new batch quantity.

        Raises:
            AllocationInvariantError: if the batch would go negative
        """
        current = batch.quantity_on_hand or 0
        new_quantity = current + delta
        if new_quantity < 0:
            raise AllocationInvariantError(
                f"Batch {batch.lot_number} cannot go negative ({current} {delta:+d})",
                details={"batch_id": batch.id, "quantity_on_hand": current, "delta": delta},
            )

        batch.quantity_on_hand = new_quantity
        item = batch.item
        item.cached_total_quantity = (item.cached_total_quantity or 0) + delta
        return new_quantity

    def transfer(self, source: ItemBatch, target: ItemBatch, quantity: int) -> None:
        """Zero-sum move between two batches of the same item."""
        if source.item_id != target.item_id:
            raise AllocationInvariantError(
                "Cannot move stock between different items",
                details={"source_batch_id": source.id, "target_batch_id": target.id},
            )
        self.adjust(source, -quantity)
        self.adjust(target, quantity)

    def reconcile_item_total(self, item: Item) -> int:
        """
        Reset the cached total from the batch set.

        Returns the drift that was corrected (0 when already consistent).
        """
        actual = self.total_on_hand(item)
        cached = item.cached_total_quantity or 0
        drift = actual - cached
        if drift:
            logger.warning(
                f"Cached total for {item.item_code} drifted by {drift}, resetting to {actual}",
                extra={"item_code": item.item_code, "cached": cached, "actual": actual},
            )
            item.cached_total_quantity = actual
        return drift
