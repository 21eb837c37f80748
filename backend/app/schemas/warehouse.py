"""
Warehouse Pydantic Schemas

Requests and results for storage transactions (import / export) and stock
queries. Transaction results are a tagged union on `kind`; cost fields are
optional so callers can drop them without changing the shape.
"""
from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class TransactionType(str, Enum):
    IMPORT = "IMPORT"
    EXPORT = "EXPORT"


class ExportType(str, Enum):
    """Why stock leaves the warehouse"""
    USAGE = "USAGE"        # Consumed by a department
    DISPOSAL = "DISPOSAL"  # Destroyed, expired stock allowed
    RETURN = "RETURN"      # Sent back to the supplier


class ApprovalStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class WarningType(str, Enum):
    NEAR_EXPIRY = "NEAR_EXPIRY"
    EXPIRED_USED = "EXPIRED_USED"


class BatchStatus(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"


class StockStatus(str, Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OVERSTOCK = "OVERSTOCK"
    NORMAL = "NORMAL"


# ============================================================================
# Requests
# ============================================================================

class ExportItemRequest(BaseModel):
    item_id: int
    unit_id: int
    quantity: int = Field(..., gt=0, description="Quantity in the requested unit")
    notes: Optional[str] = Field(None, max_length=1000)


class ExportTransactionRequest(BaseModel):
    transaction_date: date
    export_type: ExportType = ExportType.USAGE
    employee_code: str = Field(..., min_length=1, max_length=50)
    allow_expired: bool = Field(False, description="Forced on for DISPOSAL")
    reference_code: Optional[str] = Field(None, max_length=100)
    department_name: Optional[str] = Field(None, max_length=100)
    requested_by: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    items: List[ExportItemRequest] = Field(default_factory=list)


class ImportItemRequest(BaseModel):
    item_id: int
    unit_id: int
    lot_number: str = Field(..., min_length=1, max_length=100)
    expiry_date: Optional[date] = None
    quantity: int = Field(..., gt=0, description="Quantity in the received unit")
    purchase_price: Decimal = Field(Decimal("0"), ge=0, description="Price per received unit")
    bin_location: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class ImportTransactionRequest(BaseModel):
    transaction_date: date
    supplier_id: int
    invoice_number: str = Field(..., min_length=1, max_length=100)
    employee_code: str = Field(..., min_length=1, max_length=50)
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[ImportItemRequest] = Field(default_factory=list)


# ============================================================================
# Results
# ============================================================================

class UnpackingInfo(BaseModel):
    was_unpacked: bool = True
    parent_batch_id: int
    parent_lot_number: str
    parent_unit_name: str
    remaining_in_batch: int


class StockWarning(BaseModel):
    warning_type: WarningType
    item_code: str
    message: str
    batch_id: Optional[int] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    days_until_expiry: Optional[int] = None


class ExportItemDetail(BaseModel):
    """One batch take; quantity is in base units"""
    item_id: int
    item_code: str
    item_name: str
    batch_id: int
    lot_number: str
    expiry_date: Optional[date] = None
    bin_location: Optional[str] = None
    quantity: int
    unit_name: str
    requested_unit_name: str
    unit_price: Optional[Decimal] = None
    line_value: Optional[Decimal] = None
    price_source: Optional[str] = None
    unpacking_info: Optional[UnpackingInfo] = None


class ImportItemDetail(BaseModel):
    item_id: int
    item_code: str
    item_name: str
    batch_id: int
    batch_status: BatchStatus
    lot_number: str
    expiry_date: Optional[date] = None
    bin_location: Optional[str] = None
    quantity: int
    unit_name: str
    base_quantity: int
    purchase_price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    line_value: Optional[Decimal] = None
    current_stock: int


class TransactionResultBase(BaseModel):
    transaction_id: int
    transaction_code: str
    transaction_date: date
    status: str
    approval_status: ApprovalStatus
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    total_items: int
    total_value: Optional[Decimal] = None
    warnings: List[StockWarning] = Field(default_factory=list)


class ExportTransactionResponse(TransactionResultBase):
    kind: Literal["EXPORT"] = "EXPORT"
    export_type: ExportType
    allow_expired: bool
    reference_code: Optional[str] = None
    department_name: Optional[str] = None
    requested_by: Optional[str] = None
    items: List[ExportItemDetail] = Field(default_factory=list)


class ImportTransactionResponse(TransactionResultBase):
    kind: Literal["IMPORT"] = "IMPORT"
    supplier_id: int
    supplier_name: str
    invoice_number: str
    expected_delivery_date: Optional[date] = None
    items: List[ImportItemDetail] = Field(default_factory=list)


TransactionResult = Annotated[
    Union[ExportTransactionResponse, ImportTransactionResponse],
    Field(discriminator="kind"),
]


# ============================================================================
# Stock queries
# ============================================================================

class StockSummaryResponse(BaseModel):
    item_id: int
    item_code: str
    item_name: str
    unit_name: Optional[str] = None
    total: int
    non_expired: int
    expired: int
    near_expiry: int
    cached_total: int
    min_stock_level: Optional[int] = None
    max_stock_level: Optional[int] = None
    status: StockStatus


class LowStockItem(BaseModel):
    item_id: int
    item_code: str
    item_name: str
    unit_name: Optional[str] = None
    current_stock: int
    min_stock_level: int
    shortfall: int
    last_import_date: Optional[datetime] = None


class LowStockResponse(BaseModel):
    items: List[LowStockItem]
    count: int


class ReconcileResponse(BaseModel):
    item_id: int
    item_code: str
    cached_before: int
    total: int
    drift: int
