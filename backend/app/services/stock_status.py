"""
Stock status queries: per-item summary and low-stock list.

Quantities come from the batch set, not from the cached total, so a
drifted cache never hides a shortage. reconcile_cached_total is the one
write here: it resets the cache of one item from its batches.
"""
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.exceptions import NotFoundError
from app.models.inventory import ItemBatch
from app.models.item import Item
from app.schemas.warehouse import LowStockItem, ReconcileResponse, StockStatus, StockSummaryResponse
from app.services.batch_ledger import BatchLedger
from app.services.fefo_service import is_expired
from app.services.stock_availability import calculate_availability
from app.services.uom_service import UnitConversionTable


def stock_status(total: int, min_level: Optional[int], max_level: Optional[int]) -> StockStatus:
    if total <= 0:
        return StockStatus.OUT_OF_STOCK
    if min_level is not None and total <= min_level:
        return StockStatus.LOW_STOCK
    if max_level is not None and max_level > 0 and total > max_level:
        return StockStatus.OVERSTOCK
    return StockStatus.NORMAL


def item_stock_summary(db: Session, item_id: int, today: Optional[date] = None) -> StockSummaryResponse:
    """Total / non-expired / expired / near-expiry quantities of one item."""
    today = today or date.today()
    item = db.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item", item_id, error_code="ITEM_NOT_FOUND")

    batches = BatchLedger(db).batches_for_item(item, in_stock_only=True)
    availability = calculate_availability(batches, today)
    horizon = today + timedelta(days=settings.NEAR_EXPIRY_DAYS)
    near_expiry = sum(
        b.quantity_on_hand
        for b in batches
        if b.expiry_date is not None and not is_expired(b, today) and b.expiry_date < horizon
    )

    return StockSummaryResponse(
        item_id=item.id,
        item_code=item.item_code,
        item_name=item.item_name,
        unit_name=UnitConversionTable(db).unit_name(item),
        total=availability.total,
        non_expired=availability.non_expired,
        expired=availability.expired,
        near_expiry=near_expiry,
        cached_total=item.cached_total_quantity or 0,
        min_stock_level=item.min_stock_level,
        max_stock_level=item.max_stock_level,
        status=stock_status(availability.total, item.min_stock_level, item.max_stock_level),
    )


def find_low_stock_items(db: Session) -> List[LowStockItem]:
    """Active items at or below their minimum stock level, largest shortfall first."""
    on_hand_subquery = (
        db.query(
            ItemBatch.item_id,
            func.sum(ItemBatch.quantity_on_hand).label("total_on_hand"),
        )
        .group_by(ItemBatch.item_id)
        .subquery()
    )

    rows = (
        db.query(Item, func.coalesce(on_hand_subquery.c.total_on_hand, 0).label("on_hand"))
        .outerjoin(on_hand_subquery, Item.id == on_hand_subquery.c.item_id)
        .filter(
            Item.is_active.is_(True),
            Item.min_stock_level.isnot(None),
            Item.min_stock_level > 0,
        )
        .all()
    )

    units = UnitConversionTable(db)
    low_stock = []
    for item, on_hand in rows:
        on_hand = int(on_hand or 0)
        if on_hand > item.min_stock_level:
            continue
        low_stock.append(
            LowStockItem(
                item_id=item.id,
                item_code=item.item_code,
                item_name=item.item_name,
                unit_name=units.unit_name(item),
                current_stock=on_hand,
                min_stock_level=item.min_stock_level,
                shortfall=item.min_stock_level - on_hand,
                last_import_date=item.cached_last_import_date,
            )
        )

    low_stock.sort(key=lambda i: (-i.shortfall, i.item_code))
    return low_stock


def reconcile_cached_total(db: Session, item_id: int) -> ReconcileResponse:
    """Lock one item, reset its cached total from the batch set and commit."""
    ledger = BatchLedger(db)
    item = ledger.lock_items([item_id]).get(item_id)
    if item is None:
        raise NotFoundError("Item", item_id, error_code="ITEM_NOT_FOUND")

    cached_before = item.cached_total_quantity or 0
    drift = ledger.reconcile_item_total(item)
    db.commit()

    return ReconcileResponse(
        item_id=item.id,
        item_code=item.item_code,
        cached_before=cached_before,
        total=cached_before + drift,
        drift=drift,
    )
