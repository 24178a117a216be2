# FILE: pharmapos/services/invoice_numbers.py
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pharmapos.core.config import settings
from pharmapos.models.sales import InvoiceNumberSeries, Sale


def _date_key(d: date) -> int:
    return int(d.strftime("%Y%m%d"))


def _format(key: str, dk: int, seq: int, pad: int) -> str:
    return f"{key}-{dk}-{seq:0{pad}d}"


def _highest_issued_seq(db: Session, key: str, dk: int) -> int:
    """Largest sequence already used by a sale for this prefix and day (0 if none)."""
    stem = f"{key}-{dk}-"
    numbers = db.execute(
        select(Sale.invoice_number).where(Sale.invoice_number.like(f"{stem}%"))
    ).scalars().all()

    highest = 0
    for number in numbers:
        tail = number[len(stem):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return highest


def next_invoice_number(
    db: Session,
    *,
    on_date: date,
    prefix: Optional[str] = None,
    pad: int = 4,
) -> str:
    """
    Concurrency-safe invoice number from InvoiceNumberSeries (UNIQUE(key, date_key)).

    Example: INV-20250114-0007

    Two checkouts creating the same day's row at once hit IntegrityError;
    two checkouts bumping the same row hit StaleDataError (version_id).
    Both propagate so the caller's unit of work retries with fresh state.

    A counter that has fallen behind the sales table (restored backup,
    deleted series row) is moved past the highest number already issued
    that day instead of handing out a taken number again.
    """
    key = (prefix or settings.INVOICE_PREFIX).strip().upper()
    dk = _date_key(on_date)

    row = db.execute(
        select(InvoiceNumberSeries)
        .where(InvoiceNumberSeries.key == key, InvoiceNumberSeries.date_key == dk)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()

    if row is None:
        row = InvoiceNumberSeries(key=key, date_key=dk, next_seq=1)
        db.add(row)

    seq = int(row.next_seq or 1)
    taken = db.execute(
        select(Sale.id).where(Sale.invoice_number == _format(key, dk, seq, pad))
    ).first()
    if taken is not None:
        seq = _highest_issued_seq(db, key, dk) + 1

    row.next_seq = seq + 1
    db.flush()

    return _format(key, dk, seq, pad)
