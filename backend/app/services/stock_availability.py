"""
Stock availability pre-check.

Runs before any allocation so a shortfall is reported without touching the
ledger. All quantities are base units.
"""
from datetime import date
from typing import Iterable, NamedTuple, Optional

from app.exceptions import InsufficientStockError
from app.logging_config import get_logger
from app.models.inventory import ItemBatch
from app.models.item import Item
from app.services.batch_ledger import BatchLedger
from app.services.fefo_service import is_expired

logger = get_logger(__name__)


class StockAvailability(NamedTuple):
    """On-hand split by expiry state."""
    total: int
    non_expired: int
    expired: int

    def usable(self, allow_expired: bool) -> int:
        return self.total if allow_expired else self.non_expired


def calculate_availability(batches: Iterable[ItemBatch], today: date) -> StockAvailability:
    non_expired = 0
    expired = 0
    for batch in batches:
        qty = batch.quantity_on_hand or 0
        if qty <= 0:
            continue
        if is_expired(batch, today):
            expired += qty
        else:
            non_expired += qty
    return StockAvailability(non_expired + expired, non_expired, expired)


def availability_for_item(
    ledger: BatchLedger, item: Item, today: Optional[date] = None
) -> StockAvailability:
    today = today or date.today()
    return calculate_availability(ledger.batches_for_item(item, in_stock_only=True), today)


def check_availability(
    item: Item,
    availability: StockAvailability,
    requested: int,
    *,
    allow_expired: bool,
    unit_name: Optional[str] = None,
) -> None:
    """
    Fail fast when the request cannot be covered.

    Checks, in order:
    1. total on hand below the request -> INSUFFICIENT_STOCK
    2. only expired stock and expired stock not allowed
       -> ONLY_EXPIRED_STOCK_AVAILABLE
    3. usable stock (non-expired unless expired is allowed) below the
       request -> INSUFFICIENT_STOCK

    A request that passes all three can always be fully allocated.

    Raises:
        InsufficientStockError
    """
    common = dict(
        requested=requested,
        available_non_expired=availability.non_expired,
        available_expired=availability.expired,
        unit_name=unit_name,
    )

    if availability.total < requested:
        raise InsufficientStockError(
            item.item_code,
            shortage=requested - availability.total,
            **common,
        )

    if not allow_expired and availability.non_expired == 0 and availability.expired > 0:
        raise InsufficientStockError(
            item.item_code,
            shortage=requested,
            error_code="ONLY_EXPIRED_STOCK_AVAILABLE",
            message=(
                f"Only expired stock is available for {item.item_code} "
                f"({availability.expired} expired units)"
            ),
            **common,
        )

    usable = availability.usable(allow_expired)
    if usable < requested:
        raise InsufficientStockError(
            item.item_code,
            shortage=requested - usable,
            message=(
                f"Insufficient non-expired stock for {item.item_code}: requested {requested}, "
                f"available {availability.non_expired} non-expired "
                f"({availability.expired} more expired), short by {requested - usable}"
            ),
            **common,
        )

    logger.debug(
        f"Availability ok for {item.item_code}: {requested} of {usable} usable",
        extra={"item_code": item.item_code, "requested": requested, "usable": usable},
    )
