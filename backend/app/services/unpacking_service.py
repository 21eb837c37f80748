"""
Unpacking cascade.

Breaks one packaging unit of a parent batch open into loose base-unit stock.
The loose stock lives in a child batch with lot "<parent lot><suffix>"
(default suffix "-UNPACKED"). Unpacking the same parent again merges into
the same child.
"""
from datetime import datetime
from typing import NamedTuple, Optional

from app.core.settings import settings
from app.exceptions import AllocationInvariantError
from app.logging_config import get_logger
from app.models.inventory import ItemBatch
from app.models.item import ItemUnit
from app.services.batch_ledger import BatchLedger

logger = get_logger(__name__)


class UnpackResult(NamedTuple):
    parent: ItemBatch
    child: ItemBatch
    quantity: int  # base units moved parent -> child
    child_created: bool


class UnpackingCascade:
    def __init__(self, ledger: BatchLedger, *, lot_suffix: Optional[str] = None):
        self.ledger = ledger
        self.lot_suffix = lot_suffix or settings.UNPACKED_LOT_SUFFIX

    def child_lot_number(self, parent: ItemBatch) -> str:
        return f"{parent.lot_number}{self.lot_suffix}"

    def find_or_create_child(self, parent: ItemBatch, base_unit: ItemUnit) -> tuple:
        """
        Child batch of `parent`, created empty on first unpack.

        Returns (child, created).
        """
        lot = self.child_lot_number(parent)
        child = self.ledger.find_by_lot(parent.item, lot)
        if child is not None:
            if child.parent_batch_id != parent.id:
                raise AllocationInvariantError(
                    f"Lot {lot} exists but was not unpacked from {parent.lot_number}",
                    details={"batch_id": child.id, "expected_parent_batch_id": parent.id},
                )
            return child, False

        child = self.ledger.create_batch(
            parent.item,
            lot,
            expiry_date=parent.expiry_date,
            unit=base_unit,
            supplier_id=parent.supplier_id,
            bin_location=parent.bin_location,
            parent=parent,
            imported_at=parent.imported_at,
        )
        return child, True

    def unpack_one(
        self,
        parent: ItemBatch,
        packaging: ItemUnit,
        base_unit: ItemUnit,
        *,
        transaction_id: Optional[int] = None,
    ) -> UnpackResult:
        """
        Move one packaging unit's worth of stock from `parent` into its child.

        A parent holding less than one full unit (left over from an earlier
        partial take) is unpacked as-is.
        """
        on_hand = parent.quantity_on_hand or 0
        quantity = min(packaging.conversion_rate, on_hand)
        if quantity <= 0:
            raise AllocationInvariantError(
                f"Nothing left to unpack in batch {parent.lot_number}",
                details={"batch_id": parent.id},
            )

        child, created = self.find_or_create_child(parent, base_unit)
        self.ledger.transfer(parent, child, quantity)
        if created:
            child.initial_quantity = quantity

        parent.is_unpacked = True
        parent.unpacked_at = datetime.utcnow()
        parent.unpacked_by_transaction_id = transaction_id

        logger.info(
            f"Unpacked 1 {packaging.unit_name} of {parent.lot_number} into {child.lot_number} (+{quantity})",
            extra={
                "parent_batch_id": parent.id,
                "child_batch_id": child.id,
                "quantity": quantity,
                "transaction_id": transaction_id,
            },
        )
        return UnpackResult(parent, child, quantity, created)
