# FILE: pharmapos/api/routes_billing.py
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pharmapos.api.deps import current_staff, get_db
from pharmapos.api.response import ok
from pharmapos.core.rbac import StaffIdentity
from pharmapos.schemas.inventory import BatchOut
from pharmapos.schemas.sales import CheckoutIn, SaleOut
from pharmapos.services import ledger, settlement
from pharmapos.services.catalog import get_medicine

router = APIRouter()


@router.post("/checkout", status_code=201)
def checkout(
    payload: CheckoutIn,
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    sale = settlement.checkout(db, payload, staff)
    return ok(SaleOut.model_validate(sale), status_code=201)


@router.get("/medicines/{medicine_id}/batches")
def sellable_batches(
    medicine_id: int,
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    """Allocatable batches in the order checkout will draw from them."""
    medicine = get_medicine(db, medicine_id)
    today = date.today()
    batches = ledger.available_batches(db, medicine.id, today=today)
    rows = [
        BatchOut.model_validate(b).model_copy(update={"status": b.status_on(today)})
        for b in batches
    ]
    return ok(rows, meta={
        "medicine_id": medicine.id,
        "medicine_name": medicine.name,
        "available": sum(b.quantity_on_hand for b in rows),
    })
