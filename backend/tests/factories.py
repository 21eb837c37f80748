"""
Test data factories for Clinic Warehouse.

Provides functions to create test entities with sensible defaults.
Factories flush but never commit; tests that drive a service commit first,
because the service rolls the whole session back on failure.

Usage:
    from tests.factories import create_test_item, create_test_batch

    def test_something(db_session):
        item = create_test_item(db_session, units=[("piece", 1), ("box", 10)])
        batch = create_test_batch(db_session, item, quantity=5)
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session


# =============================================================================
# SEQUENCE MANAGEMENT
# =============================================================================

# Fixed "today" so expiry arithmetic in tests is deterministic
TODAY = date(2026, 1, 15)

_sequences: Dict[str, int] = {}


def reset_sequences():
    """Reset all sequences. Call between tests for predictable codes."""
    global _sequences
    _sequences = {}


def _next(name: str) -> int:
    """Get next sequence number for a given entity type."""
    _sequences[name] = _sequences.get(name, 0) + 1
    return _sequences[name]


# =============================================================================
# PARTNER FACTORIES
# =============================================================================

def create_test_employee(db: Session, **overrides) -> "Employee":
    from app.models.partner import Employee

    seq = _next("employee")
    defaults = {
        "employee_code": f"EMP-{seq:03d}",
        "full_name": f"Employee {seq}",
        "is_active": True,
    }
    defaults.update(overrides)
    employee = Employee(**defaults)
    db.add(employee)
    db.flush()
    return employee


def create_test_supplier(db: Session, **overrides) -> "Supplier":
    from app.models.partner import Supplier

    seq = _next("supplier")
    defaults = {
        "supplier_code": f"SUP-{seq:03d}",
        "supplier_name": f"Supplier {seq}",
        "is_active": True,
    }
    defaults.update(overrides)
    supplier = Supplier(**defaults)
    db.add(supplier)
    db.flush()
    return supplier


# =============================================================================
# ITEM FACTORIES
# =============================================================================

def create_test_item(
    db: Session,
    units: Sequence[Tuple[str, int]] = (("piece", 1),),
    **overrides
) -> "Item":
    """
    Create an item with its packaging units.

    Args:
        db: Database session
        units: (unit_name, conversion_rate) pairs; the first rate-1 unit
            becomes the base unit
        **overrides: Item field overrides
    """
    from app.models.item import Item, ItemUnit

    seq = _next("item")
    base_name = next((name for name, rate in units if rate == 1), units[0][0])
    defaults = {
        "item_code": f"ITM-{seq:04d}",
        "item_name": f"Test Item {seq}",
        "unit_of_measure": base_name,
        "cached_total_quantity": 0,
        "is_active": True,
    }
    defaults.update(overrides)
    item = Item(**defaults)
    db.add(item)
    db.flush()

    for order, (name, rate) in enumerate(units):
        db.add(ItemUnit(
            item_id=item.id,
            unit_name=name,
            conversion_rate=rate,
            is_base_unit=(name == base_name),
            display_order=order,
        ))
    db.flush()
    db.refresh(item)
    return item


def get_unit(db: Session, item, unit_name: str) -> "ItemUnit":
    from app.models.item import ItemUnit

    return db.query(ItemUnit).filter_by(item_id=item.id, unit_name=unit_name).one()


def create_test_batch(
    db: Session,
    item,
    quantity: int = 10,
    expiry_date: Optional[date] = None,
    unit_name: Optional[str] = None,
    **overrides
) -> "ItemBatch":
    """
    Create a batch holding `quantity` base units.

    Keeps item.cached_total_quantity in step, the way an import would.
    """
    from app.models.inventory import ItemBatch

    seq = _next("batch")
    unit = get_unit(db, item, unit_name) if unit_name else None
    defaults = {
        "item_id": item.id,
        "unit_id": unit.id if unit else None,
        "lot_number": f"LOT-{seq:04d}",
        "expiry_date": expiry_date,
        "quantity_on_hand": quantity,
        "initial_quantity": quantity,
        "imported_at": datetime.utcnow(),
    }
    defaults.update(overrides)
    batch = ItemBatch(**defaults)
    db.add(batch)
    item.cached_total_quantity = (item.cached_total_quantity or 0) + defaults["quantity_on_hand"]
    db.flush()
    return batch


def create_test_import_price(
    db: Session,
    batch,
    unit_price: Decimal,
    transaction_date: date = date(2026, 1, 1),
    **overrides
) -> "StorageTransactionLine":
    """Record a priced IMPORT line against an existing batch."""
    from app.models.storage_transaction import StorageTransaction, StorageTransactionLine

    seq = _next("import")
    header = StorageTransaction(
        transaction_code=f"PN-TEST-{seq:03d}",
        transaction_type="IMPORT",
        transaction_date=transaction_date,
        invoice_number=overrides.pop("invoice_number", f"INV-TEST-{seq:03d}"),
    )
    db.add(header)
    db.flush()
    line = StorageTransactionLine(
        transaction_id=header.id,
        line_number=1,
        batch_id=batch.id,
        item_code=overrides.pop("item_code", "TEST"),
        quantity_change=batch.quantity_on_hand,
        unit_price=unit_price,
        line_value=unit_price * batch.quantity_on_hand,
        **overrides
    )
    db.add(line)
    db.flush()
    return line


def batch_quantities(db: Session, item) -> List[int]:
    """On-hand per batch in creation order."""
    from app.models.inventory import ItemBatch

    db.expire_all()
    return [
        b.quantity_on_hand
        for b in db.query(ItemBatch).filter_by(item_id=item.id).order_by(ItemBatch.id)
    ]
