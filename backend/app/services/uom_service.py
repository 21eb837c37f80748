"""
Unit of Measure (UOM) Service

Per-item packaging units. Every unit converts to the item's base unit by an
integer rate (box of 10 pieces -> 10), quantities on batches are always
stored in base units.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.exceptions import BusinessRuleError, NotFoundError
from app.models.inventory import ItemBatch
from app.models.item import Item, ItemUnit


class UOMConversionError(BusinessRuleError):
    """Raised when an item's unit table cannot convert a quantity."""

    error_code = "UOM_CONVERSION_ERROR"


class UnitConversionTable:
    """
    Packaging units of items, looked up through one session.

    Units are cached per item for the lifetime of the table, which is one
    unit of work.
    """

    def __init__(self, db: Session):
        self.db = db
        self._units_by_item: dict = {}

    def units_for_item(self, item: Item) -> List[ItemUnit]:
        """All units of an item in display order."""
        if item.id not in self._units_by_item:
            self._units_by_item[item.id] = (
                self.db.query(ItemUnit)
                .filter(ItemUnit.item_id == item.id)
                .order_by(ItemUnit.display_order, ItemUnit.id)
                .all()
            )
        return self._units_by_item[item.id]

    def get_unit(self, item: Item, unit_id: int) -> ItemUnit:
        """
        Resolve a unit of this item.

        Raises:
            NotFoundError: UNIT_NOT_FOUND, also when the unit exists but
                belongs to another item
        """
        for unit in self.units_for_item(item):
            if unit.id == unit_id:
                return unit
        raise NotFoundError(
            "Unit",
            unit_id,
            error_code="UNIT_NOT_FOUND",
            details={"item_code": item.item_code},
        )

    def base_unit(self, item: Item) -> ItemUnit:
        """
        The unit flagged is_base_unit, or the first rate-1 unit when nothing
        is flagged.
        """
        units = self.units_for_item(item)
        flagged = [u for u in units if u.is_base_unit]
        if len(flagged) > 1:
            raise UOMConversionError(
                f"Item {item.item_code} has {len(flagged)} base units"
            )
        if flagged:
            return flagged[0]
        for unit in units:
            if unit.conversion_rate == 1:
                return unit
        raise UOMConversionError(f"Item {item.item_code} has no base unit")

    def larger_units(self, item: Item, unit: ItemUnit) -> List[ItemUnit]:
        """Units with a strictly greater rate than `unit`, largest first."""
        larger = [u for u in self.units_for_item(item) if u.conversion_rate > unit.conversion_rate]
        return sorted(larger, key=lambda u: (-u.conversion_rate, u.id))

    @staticmethod
    def to_base_quantity(quantity: int, unit: ItemUnit) -> int:
        """
        Convert a quantity in `unit` to base units.

        Raises:
            UOMConversionError: if the rate is not a positive integer
        """
        rate = unit.conversion_rate
        if rate is None or rate < 1:
            raise UOMConversionError(
                f"Unit {unit.unit_name} has invalid conversion rate {rate}"
            )
        return quantity * rate

    @staticmethod
    def unit_rate(batch: ItemBatch) -> int:
        """Packaging rate the batch's stock is held in (1 when unrecorded)."""
        if batch.unit is None:
            return 1
        return batch.unit.conversion_rate

    def unit_name(self, item: Item, unit: Optional[ItemUnit] = None) -> str:
        """Display name for a unit, the base unit name by default."""
        if unit is not None:
            return unit.unit_name
        try:
            return self.base_unit(item).unit_name
        except UOMConversionError:
            return item.unit_of_measure or "unit"
