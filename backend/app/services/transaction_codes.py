"""
Transaction code sequence: PREFIX-YYYYMMDD-NNN, restarting every day.
"""
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.storage_transaction import StorageTransaction


def next_transaction_code(db: Session, prefix: str, on_date: Optional[date] = None) -> str:
    on_date = on_date or date.today()
    stem = f"{prefix}-{on_date.strftime('%Y%m%d')}-"
    count = (
        db.query(func.count(StorageTransaction.id))
        .filter(StorageTransaction.transaction_code.like(f"{stem}%"))
        .scalar()
    )
    return f"{stem}{(count or 0) + 1:03d}"
