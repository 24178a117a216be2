# pharmapos/services/catalog.py
from __future__ import annotations

from sqlalchemy.orm import Session

from pharmapos.core.errors import InvalidInput
from pharmapos.models.catalog import Medicine


def get_medicine(db: Session, medicine_id: int) -> Medicine:
    med = db.get(Medicine, medicine_id)
    if med is None:
        raise InvalidInput(f"Medicine {medicine_id} not found",
                           details={"medicine_id": medicine_id})
    return med


def get_sellable_medicine(db: Session, medicine_id: int) -> Medicine:
    """Existence + active status check; the catalog itself is managed elsewhere."""
    med = get_medicine(db, medicine_id)
    if not med.is_active:
        raise InvalidInput(f"Medicine {medicine_id} ({med.name}) is inactive",
                           details={"medicine_id": medicine_id})
    return med
