"""
Warehouse API Endpoints

Storage transactions (import / export) and stock queries. Services raise
WarehouseException subclasses; the handlers in main.py render them.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.warehouse import (
    ExportTransactionRequest,
    ExportTransactionResponse,
    ImportTransactionRequest,
    ImportTransactionResponse,
    LowStockResponse,
    ReconcileResponse,
    StockSummaryResponse,
)
from app.services.export_service import ExportTransactionService
from app.services.import_service import ImportTransactionService
from app.services.stock_status import (
    find_low_stock_items,
    item_stock_summary,
    reconcile_cached_total,
)

router = APIRouter()


@router.post("/exports", response_model=ExportTransactionResponse, status_code=201)
def create_export(request: ExportTransactionRequest, db: Session = Depends(get_db)):
    """
    Take stock out of the warehouse.

    Batches are consumed soonest-expiry first; a box reached in that order is
    unpacked automatically.
    """
    return ExportTransactionService(db).create_export(request)


@router.post("/imports", response_model=ImportTransactionResponse, status_code=201)
def create_import(request: ImportTransactionRequest, db: Session = Depends(get_db)):
    """Receive stock from a supplier invoice."""
    return ImportTransactionService(db).create_import(request)


@router.get("/items/{item_id}/availability", response_model=StockSummaryResponse)
def get_item_availability(item_id: int, db: Session = Depends(get_db)):
    return item_stock_summary(db, item_id)


@router.get("/low-stock", response_model=LowStockResponse)
def get_low_stock_items(db: Session = Depends(get_db)):
    """Active items at or below their minimum stock level."""
    items = find_low_stock_items(db)
    return LowStockResponse(items=items, count=len(items))


@router.post("/items/{item_id}/reconcile", response_model=ReconcileResponse)
def reconcile_item(item_id: int, db: Session = Depends(get_db)):
    """Reset an item's cached on-hand total from its batches; returns the drift corrected."""
    return reconcile_cached_total(db, item_id)
