"""
Integration Tests for export transactions

Full unit of work through ExportTransactionService: validation, locking,
allocation, unpacking, valuation, warnings and commit / rollback.
Fixtures are committed before the service runs because a failed export
rolls the session back.
"""
import pytest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from app.exceptions import (
    InactiveEntityError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from app.models.inventory import ItemBatch
from app.models.storage_transaction import StorageTransaction, StorageTransactionLine
from app.schemas.warehouse import ExportItemRequest, ExportTransactionRequest, ExportType
from app.services.export_service import ExportTransactionService
from tests.factories import (
    TODAY,
    batch_quantities,
    create_test_batch,
    create_test_employee,
    create_test_import_price,
    create_test_item,
    get_unit,
)

pytestmark = pytest.mark.integration


def _request(lines, **overrides):
    fields = {
        "transaction_date": TODAY,
        "employee_code": "EMP-001",
        "items": [ExportItemRequest(**line) for line in lines],
    }
    fields.update(overrides)
    return ExportTransactionRequest(**fields)


def _export(db, lines, **overrides):
    return ExportTransactionService(db, today=TODAY).create_export(_request(lines, **overrides))


def _line(item, unit_name, quantity, db):
    return {"item_id": item.id, "unit_id": get_unit(db, item, unit_name).id, "quantity": quantity}


class TestExportScenarios:

    def test_simple_fefo(self, db_session: Session, employee, gloves):
        """Batches of 5 (T+5) and 5 (T+10): export 7 takes 5 + 2"""
        create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=5))
        create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=10))
        db_session.commit()

        result = _export(db_session, [_line(gloves, "piece", 7, db_session)])

        assert result.kind == "EXPORT"
        assert result.transaction_code == "PX-20260115-001"
        assert [(d.lot_number, d.quantity) for d in result.items] == [("LOT-0001", 5), ("LOT-0002", 2)]
        assert batch_quantities(db_session, gloves) == [0, 3]
        db_session.refresh(gloves)
        assert gloves.cached_total_quantity == 3

        lines = db_session.query(StorageTransactionLine).order_by(StorageTransactionLine.line_number).all()
        assert [l.quantity_change for l in lines] == [-5, -2]
        assert [l.line_number for l in lines] == [1, 2]

    def test_unpacking(self, db_session: Session, employee, gloves):
        """5 loose pieces + 1 box of 10: export 15 pieces opens the box"""
        create_test_batch(db_session, gloves, quantity=5, unit_name="piece")
        box = create_test_batch(db_session, gloves, quantity=10, unit_name="box")
        db_session.commit()
        box_id, box_lot = box.id, box.lot_number

        result = _export(db_session, [_line(gloves, "piece", 15, db_session)])

        assert [d.quantity for d in result.items] == [5, 10]
        assert result.items[0].unpacking_info is None
        info = result.items[1].unpacking_info
        assert info.parent_batch_id == box_id
        assert info.parent_unit_name == "box"
        assert result.items[1].lot_number == f"{box_lot}-UNPACKED"
        assert result.items[1].unit_name == "piece"

        box = db_session.get(ItemBatch, box_id)
        assert box.quantity_on_hand == 0
        assert box.is_unpacked is True
        assert box.unpacked_by_transaction_id == result.transaction_id

    def test_sooner_expiring_box_opened_before_later_loose_stock(self, db_session: Session, employee, gloves):
        """Loose 5 (T+100) and a box of 10 (T+5): export 3 opens the box"""
        loose = create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=100))
        box = create_test_batch(db_session, gloves, quantity=10, unit_name="box", expiry_date=TODAY + timedelta(days=5))
        db_session.commit()
        loose_id, box_lot = loose.id, box.lot_number

        result = _export(db_session, [_line(gloves, "piece", 3, db_session)])

        assert [(d.lot_number, d.quantity) for d in result.items] == [(f"{box_lot}-UNPACKED", 3)]
        assert db_session.get(ItemBatch, loose_id).quantity_on_hand == 5
        assert batch_quantities(db_session, gloves) == [5, 0, 7]

    def test_insufficient_stock(self, db_session: Session, employee, gloves):
        create_test_batch(db_session, gloves, quantity=4)
        create_test_batch(db_session, gloves, quantity=3, unit_name="box")
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            _export(db_session, [_line(gloves, "piece", 10, db_session)])

        exc = exc_info.value
        assert exc.error_code == "INSUFFICIENT_STOCK"
        assert exc.details["requested"] == 10
        assert exc.details["total_available"] == 7
        assert exc.details["shortage"] == 3
        assert batch_quantities(db_session, gloves) == [4, 3]
        assert db_session.query(StorageTransaction).count() == 0

    def test_only_expired_stock(self, db_session: Session, employee, gloves):
        create_test_batch(db_session, gloves, quantity=10, expiry_date=TODAY - timedelta(days=3))
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            _export(db_session, [_line(gloves, "piece", 5, db_session)])

        assert exc_info.value.error_code == "ONLY_EXPIRED_STOCK_AVAILABLE"
        assert batch_quantities(db_session, gloves) == [10]

    def test_disposal_of_expired_stock(self, db_session: Session, employee, gloves):
        create_test_batch(db_session, gloves, quantity=10, expiry_date=TODAY - timedelta(days=3))
        db_session.commit()

        result = _export(
            db_session,
            [_line(gloves, "piece", 5, db_session)],
            export_type=ExportType.DISPOSAL,
        )

        assert result.allow_expired is True
        assert result.export_type == ExportType.DISPOSAL
        assert [w.warning_type.value for w in result.warnings] == ["EXPIRED_USED"]
        assert batch_quantities(db_session, gloves) == [5]


class TestExportValuationAndWarnings:

    def test_prices_from_imports_and_fallback(self, db_session: Session, employee, gloves):
        priced = create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=100))
        create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=200))
        create_test_import_price(db_session, priced, Decimal("1000"))
        db_session.commit()

        result = _export(db_session, [_line(gloves, "piece", 7, db_session)])

        assert [d.price_source for d in result.items] == ["import", "fallback"]
        assert result.items[0].line_value == Decimal("5000")
        assert result.items[1].line_value == Decimal("100000")
        assert result.total_value == Decimal("105000")

        header = db_session.get(StorageTransaction, result.transaction_id)
        assert header.total_value == Decimal("105000")
        assert all(line.line_value < 0 for line in header.lines)

    def test_unpacked_stock_valued_at_parent_price(self, db_session: Session, employee, gloves):
        box = create_test_batch(db_session, gloves, quantity=10, unit_name="box")
        create_test_import_price(db_session, box, Decimal("900"))
        db_session.commit()

        result = _export(db_session, [_line(gloves, "piece", 4, db_session)])

        assert result.items[0].unit_price == Decimal("900")
        assert result.items[0].price_source == "parent_import"
        assert result.total_value == Decimal("3600")

    def test_near_expiry_warning(self, db_session: Session, employee, gloves):
        create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=10))
        create_test_batch(db_session, gloves, quantity=5, expiry_date=TODAY + timedelta(days=90))
        db_session.commit()

        result = _export(db_session, [_line(gloves, "piece", 8, db_session)])

        assert len(result.warnings) == 1
        assert result.warnings[0].warning_type.value == "NEAR_EXPIRY"
        assert result.warnings[0].days_until_expiry == 10

    def test_child_refilled_twice_warns_per_record(self, db_session: Session, employee, gloves):
        """Two boxes expiring at T+10: export 15 pieces takes the child twice"""
        create_test_batch(db_session, gloves, quantity=20, unit_name="box", expiry_date=TODAY + timedelta(days=10))
        db_session.commit()

        result = _export(db_session, [_line(gloves, "piece", 15, db_session)])

        assert [d.quantity for d in result.items] == [10, 5]
        assert [(w.lot_number, w.warning_type.value) for w in result.warnings] == [
            ("LOT-0001-UNPACKED", "NEAR_EXPIRY"),
            ("LOT-0001-UNPACKED", "NEAR_EXPIRY"),
        ]


class TestExportAtomicity:

    def test_failure_on_later_line_rolls_back_everything(self, db_session: Session, employee, gloves):
        masks = create_test_item(db_session, item_code="MSK-001")
        create_test_batch(db_session, gloves, quantity=3, unit_name="piece")
        create_test_batch(db_session, gloves, quantity=20, unit_name="box")
        create_test_batch(db_session, masks, quantity=2)
        db_session.commit()

        with pytest.raises(InsufficientStockError):
            _export(db_session, [
                _line(gloves, "piece", 8, db_session),
                _line(masks, "piece", 5, db_session),
            ])

        assert batch_quantities(db_session, gloves) == [3, 20]
        assert batch_quantities(db_session, masks) == [2]
        db_session.refresh(gloves)
        assert gloves.cached_total_quantity == 23
        assert db_session.query(ItemBatch).filter(ItemBatch.lot_number.like("%-UNPACKED")).count() == 0
        assert db_session.query(StorageTransaction).count() == 0
        assert db_session.query(StorageTransactionLine).count() == 0

    def test_same_item_twice_sees_first_line(self, db_session: Session, employee, gloves):
        create_test_batch(db_session, gloves, quantity=10)
        db_session.commit()

        with pytest.raises(InsufficientStockError) as exc_info:
            _export(db_session, [
                _line(gloves, "piece", 6, db_session),
                _line(gloves, "piece", 6, db_session),
            ])

        assert exc_info.value.details["total_available"] == 4
        assert batch_quantities(db_session, gloves) == [10]

    def test_codes_are_sequential(self, db_session: Session, employee, gloves):
        create_test_batch(db_session, gloves, quantity=10)
        db_session.commit()

        first = _export(db_session, [_line(gloves, "piece", 1, db_session)])
        second = _export(db_session, [_line(gloves, "piece", 1, db_session)])

        assert (first.transaction_code, second.transaction_code) == ("PX-20260115-001", "PX-20260115-002")


class TestExportValidation:

    def test_empty_items(self, db_session: Session, employee):
        with pytest.raises(ValidationError) as exc_info:
            _export(db_session, [])
        assert exc_info.value.error_code == "EMPTY_ITEMS"

    def test_future_date(self, db_session: Session, employee, gloves):
        with pytest.raises(ValidationError) as exc_info:
            _export(
                db_session,
                [_line(gloves, "piece", 1, db_session)],
                transaction_date=TODAY + timedelta(days=1),
            )
        assert exc_info.value.error_code == "INVALID_DATE"

    def test_unknown_item(self, db_session: Session, employee, gloves):
        line = _line(gloves, "piece", 1, db_session)
        line["item_id"] = 9999

        with pytest.raises(NotFoundError) as exc_info:
            _export(db_session, [line])
        assert exc_info.value.error_code == "ITEM_NOT_FOUND"
        assert exc_info.value.details["resource_id"] == "9999"

    def test_inactive_item(self, db_session: Session, employee, gloves):
        gloves.is_active = False
        db_session.commit()

        with pytest.raises(InactiveEntityError) as exc_info:
            _export(db_session, [_line(gloves, "piece", 1, db_session)])
        assert exc_info.value.error_code == "ITEM_INACTIVE"

    def test_unit_of_other_item(self, db_session: Session, employee, gloves):
        masks = create_test_item(db_session, units=[("mask", 1)])
        db_session.commit()
        line = _line(gloves, "piece", 1, db_session)
        line["unit_id"] = get_unit(db_session, masks, "mask").id

        with pytest.raises(NotFoundError) as exc_info:
            _export(db_session, [line])
        assert exc_info.value.error_code == "UNIT_NOT_FOUND"

    def test_unknown_employee(self, db_session: Session, gloves):
        with pytest.raises(NotFoundError) as exc_info:
            _export(db_session, [_line(gloves, "piece", 1, db_session)], employee_code="NOBODY")
        assert exc_info.value.error_code == "EMPLOYEE_NOT_FOUND"

    def test_inactive_employee(self, db_session: Session, gloves):
        create_test_employee(db_session, employee_code="EMP-OLD", is_active=False)
        db_session.commit()

        with pytest.raises(InactiveEntityError) as exc_info:
            _export(db_session, [_line(gloves, "piece", 1, db_session)], employee_code="EMP-OLD")
        assert exc_info.value.error_code == "EMPLOYEE_INACTIVE"
