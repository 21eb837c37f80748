"""
Expiry warnings for allocated and received stock.

Informational only: expiry gating happens in the availability check.
"""
from datetime import date
from typing import Iterable, List, NamedTuple, Optional

from app.core.settings import settings
from app.models.item import Item

NEAR_EXPIRY = "NEAR_EXPIRY"
EXPIRED_USED = "EXPIRED_USED"


class ExpiryWarning(NamedTuple):
    warning_type: str
    item_code: str
    message: str
    batch_id: Optional[int] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[date] = None
    days_until_expiry: Optional[int] = None


def days_until_expiry(expiry_date: Optional[date], today: date) -> Optional[int]:
    if expiry_date is None:
        return None
    return (expiry_date - today).days


def months_until(expiry_date: date, today: date) -> int:
    """Whole calendar months from today until expiry."""
    months = (expiry_date.year - today.year) * 12 + (expiry_date.month - today.month)
    if expiry_date.day < today.day:
        months -= 1
    return months


def export_warnings(
    records: Iterable,
    *,
    export_type: str,
    today: date,
    near_expiry_days: Optional[int] = None,
) -> List[ExpiryWarning]:
    """
    NEAR_EXPIRY when a batch expires within near_expiry_days (exclusive),
    EXPIRED_USED when an expired batch is consumed by a DISPOSAL export.

    Every allocation record is evaluated on its own, so a batch taken
    twice (e.g. one child refilled by two unpacks) is reported twice.
    """
    threshold = near_expiry_days if near_expiry_days is not None else settings.NEAR_EXPIRY_DAYS
    warnings: List[ExpiryWarning] = []

    for record in records:
        batch = record.batch
        days = days_until_expiry(batch.expiry_date, today)
        if days is None:
            continue
        item_code = batch.item.item_code

        if 0 < days < threshold:
            warnings.append(ExpiryWarning(
                warning_type=NEAR_EXPIRY,
                item_code=item_code,
                batch_id=batch.id,
                lot_number=batch.lot_number,
                expiry_date=batch.expiry_date,
                days_until_expiry=days,
                message=f"Lot {batch.lot_number} of {item_code} expires in {days} day(s)",
            ))

        if days < 0 and export_type == "DISPOSAL":
            warnings.append(ExpiryWarning(
                warning_type=EXPIRED_USED,
                item_code=item_code,
                batch_id=batch.id,
                lot_number=batch.lot_number,
                expiry_date=batch.expiry_date,
                days_until_expiry=days,
                message=f"Expired lot {batch.lot_number} of {item_code} disposed ({-days} day(s) past expiry)",
            ))

    return warnings


def import_warning(
    item: Item,
    lot_number: str,
    expiry_date: Optional[date],
    *,
    today: date,
    batch_id: Optional[int] = None,
    months: Optional[int] = None,
) -> Optional[ExpiryWarning]:
    """NEAR_EXPIRY when a received lot has less than `months` whole months left."""
    if expiry_date is None:
        return None
    months = months if months is not None else settings.IMPORT_NEAR_EXPIRY_MONTHS
    remaining = months_until(expiry_date, today)
    if remaining >= months:
        return None
    return ExpiryWarning(
        warning_type=NEAR_EXPIRY,
        item_code=item.item_code,
        batch_id=batch_id,
        lot_number=lot_number,
        expiry_date=expiry_date,
        days_until_expiry=days_until_expiry(expiry_date, today),
        message=f"Received lot {lot_number} of {item.item_code} expires in less than {months} month(s)",
    )
