"""
Import Service - stock received from a supplier

Each line lands in exactly one batch, found or created by (item, lot).
An existing lot must agree on expiry date and packaging unit.
"""
from datetime import datetime
from decimal import Decimal
from typing import List

from app.core.settings import settings
from app.exceptions import ConflictError, ValidationError
from app.logging_config import get_logger
from app.models.storage_transaction import StorageTransaction
from app.schemas.warehouse import (
    BatchStatus,
    ImportItemDetail,
    ImportTransactionRequest,
    ImportTransactionResponse,
)
from app.services.expiry_warnings import import_warning
from app.services.transaction_service import StorageTransactionService
from app.services.valuation_service import MONEY_PLACES, line_value

logger = get_logger(__name__)


class ImportTransactionService(StorageTransactionService):
    transaction_type = "IMPORT"

    def create_import(self, request: ImportTransactionRequest) -> ImportTransactionResponse:
        """
        Create and commit an import transaction.

        Raises:
            ValidationError: EMPTY_ITEMS, INVALID_DATE, RESERVED_LOT_NUMBER, EXPIRED_ITEM
            NotFoundError: ITEM_NOT_FOUND, UNIT_NOT_FOUND, SUPPLIER_NOT_FOUND, EMPLOYEE_NOT_FOUND
            InactiveEntityError: ITEM_INACTIVE, SUPPLIER_INACTIVE, EMPLOYEE_INACTIVE
            ConflictError: DUPLICATE_INVOICE, BATCH_EXPIRY_CONFLICT, BATCH_UNIT_CONFLICT
        """
        return self._run(lambda: self._create_import(request))

    def _create_import(self, request: ImportTransactionRequest) -> ImportTransactionResponse:
        self._validate_header(request.transaction_date, request.items)
        for line in request.items:
            if line.lot_number.endswith(settings.UNPACKED_LOT_SUFFIX):
                raise ValidationError(
                    f"Lot number {line.lot_number} uses the reserved suffix {settings.UNPACKED_LOT_SUFFIX}",
                    error_code="RESERVED_LOT_NUMBER",
                    field="lot_number",
                    value=line.lot_number,
                )
            if line.expiry_date is not None and line.expiry_date < self.today:
                raise ValidationError(
                    f"Lot {line.lot_number} expired on {line.expiry_date}",
                    error_code="EXPIRED_ITEM",
                    field="expiry_date",
                    value=line.expiry_date,
                )

        supplier = self._resolve_supplier(request.supplier_id)
        duplicate = (
            self.db.query(StorageTransaction.id)
            .filter(StorageTransaction.invoice_number == request.invoice_number)
            .first()
        )
        if duplicate:
            raise ConflictError(
                f"Invoice {request.invoice_number} has already been imported",
                error_code="DUPLICATE_INVOICE",
                details={"invoice_number": request.invoice_number, "transaction_id": duplicate[0]},
            )
        employee = self._resolve_employee(request.employee_code)
        items = self._resolve_items(line.item_id for line in request.items)
        resolved = [
            (line, items[line.item_id], self.units.get_unit(items[line.item_id], line.unit_id))
            for line in request.items
        ]

        if request.expected_delivery_date and request.transaction_date > request.expected_delivery_date:
            logger.warning(
                f"Invoice {request.invoice_number} delivered late",
                extra={
                    "invoice_number": request.invoice_number,
                    "expected_delivery_date": request.expected_delivery_date.isoformat(),
                    "transaction_date": request.transaction_date.isoformat(),
                },
            )

        header = self._create_header(
            settings.IMPORT_CODE_PREFIX,
            transaction_date=request.transaction_date,
            supplier=supplier,
            invoice_number=request.invoice_number,
            expected_delivery_date=request.expected_delivery_date,
            notes=request.notes,
            created_by=employee,
        )

        now = datetime.utcnow()
        details: List[ImportItemDetail] = []
        warnings = []
        for line, item, unit in resolved:
            base_quantity = self.units.to_base_quantity(line.quantity, unit)

            batch = self.ledger.find_by_lot(item, line.lot_number)
            if batch is None:
                batch = self.ledger.create_batch(
                    item,
                    line.lot_number,
                    expiry_date=line.expiry_date,
                    unit=unit,
                    quantity=base_quantity,
                    supplier_id=supplier.id,
                    bin_location=line.bin_location,
                    imported_at=now,
                )
                status = BatchStatus.CREATED
            else:
                self._check_existing_lot(batch, line, unit)
                self.ledger.adjust(batch, base_quantity)
                if line.bin_location and not batch.bin_location:
                    batch.bin_location = line.bin_location
                status = BatchStatus.UPDATED

            item.cached_last_import_date = now

            purchase_price = Decimal(line.purchase_price)
            unit_price = (purchase_price / unit.conversion_rate).quantize(MONEY_PLACES)
            value = line_value(purchase_price, line.quantity)
            self._add_line(
                header,
                batch=batch,
                item=item,
                unit=unit,
                quantity_change=base_quantity,
                unit_price=unit_price,
                line_value=value,
                notes=line.notes,
            )

            warning = import_warning(
                item, line.lot_number, line.expiry_date, today=self.today, batch_id=batch.id
            )
            if warning is not None:
                warnings.append(warning)

            details.append(
                ImportItemDetail(
                    item_id=item.id,
                    item_code=item.item_code,
                    item_name=item.item_name,
                    batch_id=batch.id,
                    batch_status=status,
                    lot_number=batch.lot_number,
                    expiry_date=batch.expiry_date,
                    bin_location=batch.bin_location,
                    quantity=line.quantity,
                    unit_name=unit.unit_name,
                    base_quantity=base_quantity,
                    purchase_price=purchase_price,
                    unit_price=unit_price,
                    line_value=value,
                    current_stock=batch.quantity_on_hand,
                )
            )
            logger.info(
                f"Received {line.quantity} {unit.unit_name} of {item.item_code} into lot {batch.lot_number}",
                extra={
                    "transaction_code": header.transaction_code,
                    "item_code": item.item_code,
                    "batch_id": batch.id,
                    "base_quantity": base_quantity,
                    "batch_status": status.value,
                },
            )

        self._finalize(header)

        return ImportTransactionResponse(
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
            supplier_id=supplier.id,
            supplier_name=supplier.supplier_name,
            invoice_number=header.invoice_number,
            expected_delivery_date=header.expected_delivery_date,
            items=details,
        )

    @staticmethod
    def _check_existing_lot(batch, line, unit) -> None:
        if batch.expiry_date != line.expiry_date:
            raise ConflictError(
                f"Lot {batch.lot_number} already exists with expiry {batch.expiry_date}",
                error_code="BATCH_EXPIRY_CONFLICT",
                details={
                    "lot_number": batch.lot_number,
                    "existing_expiry_date": str(batch.expiry_date),
                    "requested_expiry_date": str(line.expiry_date),
                },
            )
        if batch.unit_id is not None and batch.unit_id != unit.id:
            raise ConflictError(
                f"Lot {batch.lot_number} is held in a different unit",
                error_code="BATCH_UNIT_CONFLICT",
                details={
                    "lot_number": batch.lot_number,
                    "existing_unit_id": batch.unit_id,
                    "requested_unit_id": unit.id,
                },
            )
