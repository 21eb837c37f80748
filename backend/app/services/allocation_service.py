"""
Stock allocation engine.

Consumes a requested quantity from an item's batches in a single FEFO walk:

- a batch whose packaging is no larger than the requested unit is taken
  from directly;
- a batch held in larger packaging is opened at its place in the walk,
  one packaging unit at a time, and the request is served from the
  resulting loose child batch.

Batches expiring on the same day are ordered loose first, then larger
packaging before smaller, so an open child is drained before its parent
is opened again.

Callers must run the availability check first. When it passed, the engine
always allocates the full quantity; anything else is an internal fault.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, NamedTuple, Optional

from app.exceptions import AllocationInvariantError
from app.logging_config import get_logger
from app.models.inventory import ItemBatch
from app.models.item import Item, ItemUnit
from app.services.batch_ledger import BatchLedger
from app.services.fefo_service import fefo_sort_key
from app.services.uom_service import UnitConversionTable
from app.services.unpacking_service import UnpackingCascade

logger = get_logger(__name__)


class UnpackingInfo(NamedTuple):
    """Where the stock of an allocation record was unpacked from."""
    parent_batch_id: int
    parent_lot_number: str
    parent_unit_name: str
    remaining_in_batch: int  # left in the child after this take


@dataclass
class AllocationRecord:
    """
    One take from one batch. unit_price / line_value / price_source are
    filled in by the valuator.
    """
    batch: ItemBatch
    quantity: int  # base units
    unpacking: Optional[UnpackingInfo] = None
    unit_price: Optional[Decimal] = None
    line_value: Optional[Decimal] = None
    price_source: Optional[str] = None


@dataclass
class AllocationResult:
    item: Item
    requested_unit: ItemUnit
    requested_quantity: int
    requested_base_quantity: int
    records: List[AllocationRecord] = field(default_factory=list)
    unpack_count: int = 0

    @property
    def allocated_quantity(self) -> int:
        return sum(r.quantity for r in self.records)


class AllocationEngine:
    def __init__(
        self,
        ledger: BatchLedger,
        units: UnitConversionTable,
        cascade: Optional[UnpackingCascade] = None,
    ):
        self.ledger = ledger
        self.units = units
        self.cascade = cascade or UnpackingCascade(ledger)

    def allocate(
        self,
        item: Item,
        requested_unit: ItemUnit,
        requested_quantity: int,
        batches: List[ItemBatch],
        *,
        transaction_id: Optional[int] = None,
    ) -> AllocationResult:
        """
        Allocate `requested_quantity` of `requested_unit` from `batches`.

        `batches` must already be filtered by the expiry policy (see
        fefo_service.select_batches_fefo); the engine orders them itself.

        Raises:
            AllocationInvariantError: if the batches could not cover the
                request or the records do not add up
        """
        requested_base = self.units.to_base_quantity(requested_quantity, requested_unit)
        result = AllocationResult(
            item=item,
            requested_unit=requested_unit,
            requested_quantity=requested_quantity,
            requested_base_quantity=requested_base,
        )

        remaining = requested_base
        for batch in self._walk_order(batches, requested_unit.conversion_rate):
            if remaining == 0:
                break
            if self.units.unit_rate(batch) <= requested_unit.conversion_rate:
                remaining = self._take(result, batch, remaining)
            else:
                remaining = self._unpack_and_take(result, batch, remaining, transaction_id)

        if remaining > 0 or result.allocated_quantity != requested_base:
            raise AllocationInvariantError(
                f"Allocation for {item.item_code} ended {remaining} short after a passed availability check",
                details={
                    "item_code": item.item_code,
                    "requested": requested_base,
                    "allocated": result.allocated_quantity,
                    "remaining": remaining,
                },
            )

        logger.debug(
            f"Allocated {requested_base} of {item.item_code} from {len(result.records)} record(s)",
            extra={
                "item_code": item.item_code,
                "requested": requested_base,
                "records": len(result.records),
                "unpack_count": result.unpack_count,
            },
        )
        return result

    # === WALK ===

    def _walk_order(self, batches: List[ItemBatch], requested_rate: int) -> List[ItemBatch]:
        """FEFO order; on equal expiry, loose stock first, then largest packaging."""
        def key(batch: ItemBatch):
            undated, expiry, batch_id = fefo_sort_key(batch)
            rate = self.units.unit_rate(batch)
            packed = rate > requested_rate
            return (undated, expiry, packed, -rate if packed else 0, batch_id)

        return sorted(batches, key=key)

    def _take(self, result: AllocationResult, batch: ItemBatch, remaining: int) -> int:
        take = min(remaining, batch.quantity_on_hand or 0)
        if take <= 0:
            return remaining
        self.ledger.adjust(batch, -take)
        result.records.append(AllocationRecord(batch=batch, quantity=take))
        return remaining - take

    def _unpack_and_take(
        self,
        result: AllocationResult,
        parent: ItemBatch,
        remaining: int,
        transaction_id: Optional[int],
    ) -> int:
        packaging = parent.unit
        base_unit = self.units.base_unit(result.item)

        while remaining > 0 and (parent.quantity_on_hand or 0) > 0:
            unpacked = self.cascade.unpack_one(
                parent, packaging, base_unit, transaction_id=transaction_id
            )
            result.unpack_count += 1
            child = unpacked.child

            take = min(remaining, child.quantity_on_hand or 0)
            left = self.ledger.adjust(child, -take)
            result.records.append(
                AllocationRecord(
                    batch=child,
                    quantity=take,
                    unpacking=UnpackingInfo(
                        parent_batch_id=parent.id,
                        parent_lot_number=parent.lot_number,
                        parent_unit_name=packaging.unit_name,
                        remaining_in_batch=left,
                    ),
                )
            )
            remaining -= take
        return remaining
