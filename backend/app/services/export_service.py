"""
Export Service - stock leaving the warehouse

Per line: availability check -> FEFO selection -> allocation (larger
packaging is opened at its place in expiry order) -> valuation -> expiry warnings.
Any failure aborts the whole transaction.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.logging_config import get_logger
from app.schemas.warehouse import (
    ExportItemDetail,
    ExportTransactionRequest,
    ExportTransactionResponse,
    ExportType,
    UnpackingInfo,
)
from app.services.allocation_service import AllocationEngine, AllocationRecord
from app.services.expiry_warnings import export_warnings
from app.services.fefo_service import select_batches_fefo
from app.services.stock_availability import availability_for_item, check_availability
from app.services.transaction_service import CodeGenerator, StorageTransactionService
from app.services.valuation_service import FinancialValuator

logger = get_logger(__name__)


class ExportTransactionService(StorageTransactionService):
    transaction_type = "EXPORT"

    def __init__(
        self,
        db: Session,
        *,
        today: Optional[date] = None,
        code_generator: Optional[CodeGenerator] = None,
        valuator: Optional[FinancialValuator] = None,
        engine: Optional[AllocationEngine] = None,
    ):
        super().__init__(db, today=today, code_generator=code_generator)
        self.valuator = valuator or FinancialValuator(db)
        self.engine = engine or AllocationEngine(self.ledger, self.units)

    def create_export(self, request: ExportTransactionRequest) -> ExportTransactionResponse:
        """
        Create and commit an export transaction.

        Raises:
            ValidationError: EMPTY_ITEMS, INVALID_DATE
            NotFoundError: ITEM_NOT_FOUND, UNIT_NOT_FOUND, EMPLOYEE_NOT_FOUND
            InactiveEntityError: ITEM_INACTIVE, EMPLOYEE_INACTIVE
            InsufficientStockError: INSUFFICIENT_STOCK, ONLY_EXPIRED_STOCK_AVAILABLE
            AllocationInvariantError: allocation fell short after a passed check
        """
        return self._run(lambda: self._create_export(request))

    def _create_export(self, request: ExportTransactionRequest) -> ExportTransactionResponse:
        self._validate_header(request.transaction_date, request.items)

        allow_expired = request.allow_expired
        if request.export_type == ExportType.DISPOSAL and not allow_expired:
            logger.warning(
                "DISPOSAL export: allowing expired stock",
                extra={"export_type": request.export_type.value},
            )
            allow_expired = True

        employee = self._resolve_employee(request.employee_code)
        items = self._resolve_items(line.item_id for line in request.items)
        resolved = [
            (line, items[line.item_id], self.units.get_unit(items[line.item_id], line.unit_id))
            for line in request.items
        ]

        header = self._create_header(
            settings.EXPORT_CODE_PREFIX,
            transaction_date=request.transaction_date,
            export_type=request.export_type.value,
            reference_code=request.reference_code,
            department_name=request.department_name,
            requested_by=request.requested_by,
            notes=request.notes,
            created_by=employee,
        )

        details: List[ExportItemDetail] = []
        records: List[AllocationRecord] = []
        for line, item, unit in resolved:
            base_unit_name = self.units.unit_name(item)
            requested_base = self.units.to_base_quantity(line.quantity, unit)

            availability = availability_for_item(self.ledger, item, self.today)
            check_availability(
                item,
                availability,
                requested_base,
                allow_expired=allow_expired,
                unit_name=base_unit_name,
            )

            batches = select_batches_fefo(
                self.ledger, item, allow_expired=allow_expired, today=self.today
            )
            allocation = self.engine.allocate(
                item, unit, line.quantity, batches, transaction_id=header.id
            )
            self.valuator.value_records(allocation.records)

            for record in allocation.records:
                self._add_line(
                    header,
                    batch=record.batch,
                    item=item,
                    unit=unit,
                    quantity_change=-record.quantity,
                    unit_price=record.unit_price,
                    line_value=-record.line_value,
                    notes=line.notes,
                )
                details.append(self._detail(item, unit.unit_name, base_unit_name, record))
            records.extend(allocation.records)

            logger.info(
                f"Exported {line.quantity} {unit.unit_name} of {item.item_code}",
                extra={
                    "transaction_code": header.transaction_code,
                    "item_code": item.item_code,
                    "base_quantity": requested_base,
                    "batches": len(allocation.records),
                    "unpack_count": allocation.unpack_count,
                },
            )

        warnings = export_warnings(
            records, export_type=request.export_type.value, today=self.today
        )
        self._finalize(header)

        return ExportTransactionResponse(
            transaction_id=header.id,
            transaction_code=header.transaction_code,
            transaction_date=header.transaction_date,
            status=header.status,
            approval_status=header.approval_status,
            notes=header.notes,
            created_by=employee.full_name,
            created_at=header.created_at,
            total_items=len(details),
            total_value=header.total_value,
            warnings=[self._warning_schema(w) for w in warnings],
            export_type=request.export_type,
            allow_expired=allow_expired,
            reference_code=header.reference_code,
            department_name=header.department_name,
            requested_by=header.requested_by,
            items=details,
        )

    @staticmethod
    def _detail(item, requested_unit_name: str, base_unit_name: str, record: AllocationRecord) -> ExportItemDetail:
        batch = record.batch
        unpacking = None
        if record.unpacking is not None:
            unpacking = UnpackingInfo(**record.unpacking._asdict())
        return ExportItemDetail(
            item_id=item.id,
            item_code=item.item_code,
            item_name=item.item_name,
            batch_id=batch.id,
            lot_number=batch.lot_number,
            expiry_date=batch.expiry_date,
            bin_location=batch.bin_location,
            quantity=record.quantity,
            unit_name=base_unit_name,
            requested_unit_name=requested_unit_name,
            unit_price=record.unit_price,
            line_value=record.line_value,
            price_source=record.price_source,
            unpacking_info=unpacking,
        )
