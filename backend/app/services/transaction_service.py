"""
Transaction Service - shared plumbing for storage transactions

Import and export orchestrators build on StorageTransactionService, which
owns the unit of work:
1. Validate the request (non-empty, date not in the future)
2. Resolve and lock referenced entities (items in ascending id order)
3. Create the header and its lines
4. Single commit on success, rollback of everything on any failure

Usage:
    service = ExportTransactionService(db)
    result = service.create_export(request)   # commits
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.exceptions import (
    ConcurrencyError,
    InactiveEntityError,
    NotFoundError,
    ValidationError,
    WarehouseException,
)
from app.logging_config import get_logger
from app.models.inventory import ItemBatch
from app.models.item import Item, ItemUnit
from app.models.partner import Employee, Supplier
from app.models.storage_transaction import StorageTransaction, StorageTransactionLine
from app.schemas.warehouse import StockWarning
from app.services.batch_ledger import BatchLedger
from app.services.expiry_warnings import ExpiryWarning
from app.services.transaction_codes import next_transaction_code
from app.services.uom_service import UnitConversionTable
from app.services.valuation_service import transaction_total

logger = get_logger(__name__)

T = TypeVar("T")

CodeGenerator = Callable[[Session, str, date], str]


class StorageTransactionService:
    """
    Base orchestrator for one storage transaction.

    Unlike the ledger and engine below it, this layer DOES commit: one
    public call is one unit of work.
    """

    transaction_type: str = ""

    def __init__(
        self,
        db: Session,
        *,
        today: Optional[date] = None,
        code_generator: Optional[CodeGenerator] = None,
    ):
        self.db = db
        self.ledger = BatchLedger(db)
        self.units = UnitConversionTable(db)
        self._today = today
        self._code_generator = code_generator or next_transaction_code

    @property
    def today(self) -> date:
        return self._today or date.today()

    # === UNIT OF WORK ===

    def _run(self, work: Callable[[], T]) -> T:
        """Run `work`, commit, or roll back every mutation it made."""
        try:
            result = work()
            self.db.commit()
            return result
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning(
                f"{self.transaction_type} aborted by concurrent batch update",
                extra={"transaction_type": self.transaction_type},
            )
            raise ConcurrencyError(details={"transaction_type": self.transaction_type}) from exc
        except WarehouseException as exc:
            self.db.rollback()
            logger.error(
                f"{self.transaction_type} rejected: {exc.message}",
                extra={"transaction_type": self.transaction_type, "error_code": exc.error_code},
            )
            raise
        except Exception:
            self.db.rollback()
            logger.error(
                f"{self.transaction_type} failed, rolled back",
                exc_info=True,
                extra={"transaction_type": self.transaction_type},
            )
            raise

    # === VALIDATION ===

    def _validate_header(self, transaction_date: date, lines: List) -> None:
        if not lines:
            raise ValidationError(
                "Items list cannot be empty", error_code="EMPTY_ITEMS", field="items"
            )
        if transaction_date > self.today:
            raise ValidationError(
                "Transaction date cannot be in the future",
                error_code="INVALID_DATE",
                field="transaction_date",
                value=transaction_date,
            )

    def _resolve_employee(self, employee_code: str) -> Employee:
        employee = (
            self.db.query(Employee).filter(Employee.employee_code == employee_code).first()
        )
        if not employee:
            raise NotFoundError("Employee", employee_code, error_code="EMPLOYEE_NOT_FOUND")
        if not employee.is_active:
            raise InactiveEntityError("Employee", employee_code)
        return employee

    def _resolve_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier", supplier_id, error_code="SUPPLIER_NOT_FOUND")
        if not supplier.is_active:
            raise InactiveEntityError("Supplier", supplier_id)
        return supplier

    def _resolve_items(self, item_ids: Iterable[int]) -> Dict[int, Item]:
        """Lock every referenced item and check it exists and is active."""
        item_ids = list(item_ids)
        items = self.ledger.lock_items(item_ids)
        for item_id in item_ids:
            item = items.get(item_id)
            if item is None:
                raise NotFoundError("Item", item_id, error_code="ITEM_NOT_FOUND")
            if not item.is_active:
                raise InactiveEntityError("Item", item.item_code)
        return items

    # === HEADER AND LINES ===

    def _create_header(self, prefix: str, **fields) -> StorageTransaction:
        header = StorageTransaction(
            transaction_code=self._code_generator(self.db, prefix, self.today),
            transaction_type=self.transaction_type,
            status="COMPLETED",
            approval_status="PENDING_APPROVAL",
            total_value=Decimal("0"),
            created_at=datetime.utcnow(),
            **fields,
        )
        self.db.add(header)
        self.db.flush()  # Get ID for lines and unpack provenance

        logger.info(
            f"Started {self.transaction_type} {header.transaction_code}",
            extra={"transaction_code": header.transaction_code, "transaction_id": header.id},
        )
        return header

    def _add_line(
        self,
        header: StorageTransaction,
        *,
        batch: ItemBatch,
        item: Item,
        unit: Optional[ItemUnit],
        quantity_change: int,
        unit_price: Decimal,
        line_value: Decimal,
        notes: Optional[str] = None,
    ) -> StorageTransactionLine:
        line = StorageTransactionLine(
            transaction=header,
            line_number=len(header.lines) + 1,
            batch_id=batch.id,
            unit_id=unit.id if unit is not None else None,
            item_code=item.item_code,
            quantity_change=quantity_change,
            unit_price=unit_price,
            line_value=line_value,
            notes=notes,
        )
        self.db.add(line)
        return line

    def _finalize(self, header: StorageTransaction) -> None:
        header.total_value = transaction_total(line.line_value for line in header.lines)
        self.db.flush()
        logger.info(
            f"Completed {self.transaction_type} {header.transaction_code}",
            extra={
                "transaction_code": header.transaction_code,
                "lines": len(header.lines),
                "total_value": str(header.total_value),
            },
        )

    @staticmethod
    def _warning_schema(warning: ExpiryWarning) -> StockWarning:
        return StockWarning(**warning._asdict())
