"""
Cost valuation of allocated stock.

Unit price of a batch = most recent positive unit price on an IMPORT line
that booked stock into that batch. Unpacked children have no import line
of their own, so the lookup walks up the parent lineage. When nothing is
found the configured FALLBACK_UNIT_PRICE is used and flagged as such.

All prices are per base unit.
"""
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.logging_config import get_logger
from app.models.inventory import ItemBatch
from app.models.storage_transaction import StorageTransaction, StorageTransactionLine

logger = get_logger(__name__)

MONEY_PLACES = Decimal("0.0001")

PRICE_SOURCE_IMPORT = "import"
PRICE_SOURCE_PARENT = "parent_import"
PRICE_SOURCE_FALLBACK = "fallback"


def line_value(unit_price: Decimal, quantity: int) -> Decimal:
    return (Decimal(unit_price) * quantity).quantize(MONEY_PLACES)


def transaction_total(values: Iterable[Optional[Decimal]]) -> Decimal:
    """Sum of absolute line values."""
    total = sum((abs(Decimal(v)) for v in values if v is not None), Decimal("0"))
    return total.quantize(MONEY_PLACES)


class FinancialValuator:
    def __init__(self, db: Session, fallback_price: Optional[Decimal] = None):
        self.db = db
        self.fallback_price = Decimal(
            fallback_price if fallback_price is not None else settings.FALLBACK_UNIT_PRICE
        )
        self._cache: Dict[int, Tuple[Decimal, str]] = {}

    def _last_import_price(self, batch_id: int) -> Optional[Decimal]:
        row = (
            self.db.query(StorageTransactionLine.unit_price)
            .join(StorageTransaction, StorageTransaction.id == StorageTransactionLine.transaction_id)
            .filter(
                StorageTransaction.transaction_type == "IMPORT",
                StorageTransactionLine.batch_id == batch_id,
                StorageTransactionLine.unit_price > 0,
            )
            .order_by(StorageTransaction.transaction_date.desc(), StorageTransactionLine.id.desc())
            .first()
        )
        return Decimal(row[0]) if row is not None else None

    def unit_price(self, batch: ItemBatch) -> Tuple[Decimal, str]:
        """
        Returns (price per base unit, price source).

        price source is "import", "parent_import" or "fallback".
        """
        if batch.id in self._cache:
            return self._cache[batch.id]

        self.db.flush()
        current = batch
        source = PRICE_SOURCE_IMPORT
        seen = set()
        price = None
        while current is not None and current.id not in seen:
            seen.add(current.id)
            price = self._last_import_price(current.id)
            if price is not None:
                break
            if current.parent_batch_id is None:
                current = None
            else:
                current = self.db.get(ItemBatch, current.parent_batch_id)
                source = PRICE_SOURCE_PARENT

        if price is None:
            logger.warning(
                f"No import price for batch {batch.lot_number}, using fallback {self.fallback_price}",
                extra={"batch_id": batch.id, "fallback_price": str(self.fallback_price)},
            )
            resolved = (self.fallback_price, PRICE_SOURCE_FALLBACK)
        else:
            resolved = (price, source)

        self._cache[batch.id] = resolved
        return resolved

    def value_records(self, records) -> Decimal:
        """
        Price each allocation record in place.

        Returns the sum of absolute line values.
        """
        for record in records:
            price, source = self.unit_price(record.batch)
            record.unit_price = price
            record.price_source = source
            record.line_value = line_value(price, record.quantity)
        return transaction_total(r.line_value for r in records)
