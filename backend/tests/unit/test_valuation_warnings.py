"""
Unit Tests for cost valuation and expiry warnings
"""
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

from sqlalchemy.orm import Session

from app.models.inventory import ItemBatch
from app.models.item import Item
from app.services.expiry_warnings import (
    EXPIRED_USED,
    NEAR_EXPIRY,
    days_until_expiry,
    export_warnings,
    import_warning,
    months_until,
)
from app.services.valuation_service import FinancialValuator, line_value, transaction_total
from tests.factories import TODAY, create_test_batch, create_test_import_price


class TestFinancialValuator:

    def test_price_from_import_line(self, db_session: Session, gloves):
        batch = create_test_batch(db_session, gloves, quantity=10)
        create_test_import_price(db_session, batch, Decimal("1200"))

        price, source = FinancialValuator(db_session).unit_price(batch)

        assert price == Decimal("1200")
        assert source == "import"

    def test_most_recent_positive_price_wins(self, db_session: Session, gloves):
        batch = create_test_batch(db_session, gloves, quantity=10)
        create_test_import_price(db_session, batch, Decimal("1000"), transaction_date=date(2025, 11, 1))
        create_test_import_price(db_session, batch, Decimal("1500"), transaction_date=date(2025, 12, 1))
        create_test_import_price(db_session, batch, Decimal("0"), transaction_date=date(2026, 1, 1))

        price, _ = FinancialValuator(db_session).unit_price(batch)

        assert price == Decimal("1500")

    def test_unpacked_child_uses_parent_price(self, db_session: Session, gloves):
        parent = create_test_batch(db_session, gloves, quantity=10, unit_name="box")
        create_test_import_price(db_session, parent, Decimal("800"))
        child = create_test_batch(db_session, gloves, quantity=5, parent_batch_id=parent.id)

        price, source = FinancialValuator(db_session).unit_price(child)

        assert price == Decimal("800")
        assert source == "parent_import"

    def test_fallback_when_no_import_price(self, db_session: Session, gloves):
        batch = create_test_batch(db_session, gloves, quantity=10)

        price, source = FinancialValuator(db_session, fallback_price=Decimal("42")).unit_price(batch)

        assert price == Decimal("42")
        assert source == "fallback"

    def test_value_records_fills_prices(self, db_session: Session, gloves):
        first = create_test_batch(db_session, gloves, quantity=10)
        second = create_test_batch(db_session, gloves, quantity=10)
        create_test_import_price(db_session, first, Decimal("100"))
        records = [
            SimpleNamespace(batch=first, quantity=3, unit_price=None, line_value=None, price_source=None),
            SimpleNamespace(batch=second, quantity=2, unit_price=None, line_value=None, price_source=None),
        ]

        total = FinancialValuator(db_session, fallback_price=Decimal("50")).value_records(records)

        assert records[0].line_value == Decimal("300")
        assert records[1].price_source == "fallback"
        assert records[1].line_value == Decimal("100")
        assert total == Decimal("400")

    def test_transaction_total_uses_absolute_values(self):
        assert line_value(Decimal("12.5"), 4) == Decimal("50.0000")
        assert transaction_total([Decimal("-50"), Decimal("20"), None]) == Decimal("70")


def _record(expiry, lot="LOT-1", batch_id=1):
    item = Item(item_code="GLV-001", item_name="Nitrile Gloves")
    batch = ItemBatch(id=batch_id, lot_number=lot, expiry_date=expiry, quantity_on_hand=0, item=item)
    return SimpleNamespace(batch=batch, quantity=1)


class TestExportWarnings:

    def test_days_until_expiry(self):
        assert days_until_expiry(TODAY + timedelta(days=3), TODAY) == 3
        assert days_until_expiry(None, TODAY) is None

    def test_near_expiry_window_is_exclusive(self):
        records = [
            _record(TODAY, batch_id=1),
            _record(TODAY + timedelta(days=1), batch_id=2),
            _record(TODAY + timedelta(days=29), batch_id=3),
            _record(TODAY + timedelta(days=30), batch_id=4),
        ]

        warnings = export_warnings(records, export_type="USAGE", today=TODAY, near_expiry_days=30)

        assert [(w.batch_id, w.warning_type) for w in warnings] == [(2, NEAR_EXPIRY), (3, NEAR_EXPIRY)]
        assert warnings[0].days_until_expiry == 1

    def test_expired_used_only_for_disposal(self):
        records = [_record(TODAY - timedelta(days=2))]

        assert export_warnings(records, export_type="USAGE", today=TODAY) == []
        warnings = export_warnings(records, export_type="DISPOSAL", today=TODAY)
        assert [w.warning_type for w in warnings] == [EXPIRED_USED]
        assert warnings[0].days_until_expiry == -2

    def test_no_warning_without_expiry(self):
        assert export_warnings([_record(None)], export_type="DISPOSAL", today=TODAY) == []

    def test_each_record_evaluated_independently(self):
        record = _record(TODAY + timedelta(days=3))

        warnings = export_warnings([record, record], export_type="USAGE", today=TODAY)

        assert [(w.batch_id, w.warning_type) for w in warnings] == [(1, NEAR_EXPIRY), (1, NEAR_EXPIRY)]


class TestImportWarning:

    def test_months_until(self):
        assert months_until(date(2026, 4, 15), TODAY) == 3
        assert months_until(date(2026, 4, 14), TODAY) == 2
        assert months_until(date(2027, 1, 20), TODAY) == 12

    def test_short_dated_lot_warns(self):
        item = Item(item_code="GLV-001", item_name="Nitrile Gloves")

        warning = import_warning(item, "L-1", date(2026, 3, 1), today=TODAY, months=3)

        assert warning.warning_type == NEAR_EXPIRY
        assert warning.lot_number == "L-1"

    def test_long_dated_lot_does_not_warn(self):
        item = Item(item_code="GLV-001", item_name="Nitrile Gloves")

        assert import_warning(item, "L-1", date(2026, 4, 15), today=TODAY, months=3) is None
        assert import_warning(item, "L-1", None, today=TODAY, months=3) is None
