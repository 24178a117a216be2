# FILE: pharmapos/services/stock_alerts.py
from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from pharmapos.core.config import settings
from pharmapos.models.catalog import Medicine
from pharmapos.models.inventory import Batch
from pharmapos.schemas.inventory import BatchAlertOut


def _base_query(db: Session, medicine_id: Optional[int]):
    q = (
        db.query(Batch, Medicine.name.label("medicine_name"))
        .join(Medicine, Medicine.id == Batch.medicine_id)
        .filter(Batch.quantity_on_hand > 0)
    )
    if medicine_id:
        q = q.filter(Batch.medicine_id == medicine_id)
    return q


def _to_alerts(rows, today: date) -> List[BatchAlertOut]:
    out: List[BatchAlertOut] = []
    for batch, medicine_name in rows:
        out.append(
            BatchAlertOut(
                batch_id=batch.id,
                medicine_id=batch.medicine_id,
                medicine_name=medicine_name,
                batch_number=batch.batch_number,
                quantity_on_hand=int(batch.quantity_on_hand),
                reorder_level=int(batch.reorder_level or 0),
                expiry_date=batch.expiry_date,
                days_to_expiry=(batch.expiry_date - today).days,
            )
        )
    return out


def low_stock(
    db: Session,
    *,
    today: Optional[date] = None,
    medicine_id: Optional[int] = None,
    limit: int = 200,
) -> List[BatchAlertOut]:
    """Sellable batches holding stock at or below their reorder level."""
    today = today or date.today()
    q = (
        _base_query(db, medicine_id)
        .filter(Batch.quantity_on_hand <= Batch.reorder_level, Batch.expiry_date > today)
        .order_by(Batch.quantity_on_hand.asc(), Medicine.name.asc(), Batch.batch_number.asc())
        .limit(max(int(limit), 1))
    )
    return _to_alerts(q.all(), today)


def expired(
    db: Session,
    *,
    today: Optional[date] = None,
    medicine_id: Optional[int] = None,
    limit: int = 200,
) -> List[BatchAlertOut]:
    """Expired batches (expiry on or before today) that still hold stock."""
    today = today or date.today()
    q = (
        _base_query(db, medicine_id)
        .filter(Batch.expiry_date <= today)
        .order_by(Batch.expiry_date.asc(), Medicine.name.asc(), Batch.batch_number.asc())
        .limit(max(int(limit), 1))
    )
    return _to_alerts(q.all(), today)


def nearing_expiry(
    db: Session,
    *,
    today: Optional[date] = None,
    within_days: Optional[int] = None,
    medicine_id: Optional[int] = None,
    limit: int = 200,
) -> List[BatchAlertOut]:
    today = today or date.today()
    days = int(within_days if within_days is not None else settings.EXPIRY_ALERT_DAYS)
    q = (
        _base_query(db, medicine_id)
        .filter(Batch.expiry_date > today, Batch.expiry_date <= today + timedelta(days=days))
        .order_by(Batch.expiry_date.asc(), Medicine.name.asc(), Batch.batch_number.asc())
        .limit(max(int(limit), 1))
    )
    return _to_alerts(q.all(), today)
