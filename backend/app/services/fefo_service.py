"""
FEFO (First-Expired-First-Out) batch selection.

A batch is expired when its expiry date is strictly before today. Batches
without an expiry date never expire and sort after every dated batch.
"""
from datetime import date
from typing import Iterable, List, Optional

from app.models.inventory import ItemBatch
from app.models.item import Item
from app.services.batch_ledger import BatchLedger


def is_expired(batch: ItemBatch, today: date) -> bool:
    return batch.expiry_date is not None and batch.expiry_date < today


def fefo_sort_key(batch: ItemBatch):
    """Ascending expiry, undated last, then creation order."""
    return (
        batch.expiry_date is None,
        batch.expiry_date or date.max,
        batch.id or 0,
    )


def order_fefo(batches: Iterable[ItemBatch], *, allow_expired: bool, today: date) -> List[ItemBatch]:
    """Filter to consumable batches and order them for consumption."""
    eligible = [
        b for b in batches
        if (b.quantity_on_hand or 0) > 0 and (allow_expired or not is_expired(b, today))
    ]
    return sorted(eligible, key=fefo_sort_key)


def select_batches_fefo(
    ledger: BatchLedger,
    item: Item,
    *,
    allow_expired: bool = False,
    today: Optional[date] = None,
) -> List[ItemBatch]:
    """
    Batches of an item ready for consumption, soonest expiry first.

    Read only: nothing is locked or mutated here, the caller holds the item
    lock for the whole unit of work.
    """
    today = today or date.today()
    return order_fefo(
        ledger.batches_for_item(item, in_stock_only=True),
        allow_expired=allow_expired,
        today=today,
    )
