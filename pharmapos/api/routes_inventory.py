# FILE: pharmapos/api/routes_inventory.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmapos.api.deps import current_staff, get_db, require_roles
from pharmapos.api.response import ok
from pharmapos.core.rbac import STOCK_ROLES, StaffIdentity
from pharmapos.models.inventory import Batch
from pharmapos.schemas.inventory import BatchOut, StockAdjustIn, StockReceiptIn
from pharmapos.services import ledger, stock_alerts

router = APIRouter()


def _batch_out(batch: Batch, today: date) -> BatchOut:
    return BatchOut.model_validate(batch).model_copy(update={"status": batch.status_on(today)})


# ---------- Batches ----------


@router.post("/batches", status_code=201)
def receive_stock(
    payload: StockReceiptIn,
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(require_roles(*STOCK_ROLES)),
):
    batch = ledger.receive_stock(db, payload, staff)
    return ok(_batch_out(batch, date.today()), status_code=201)


@router.get("/batches")
def list_batches(
    medicine_id: Optional[int] = Query(None),
    include_empty: bool = Query(True),
    limit: int = Query(500, ge=1, le=5000),
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    today = date.today()
    rows = ledger.list_batches(db, medicine_id=medicine_id, include_empty=include_empty, limit=limit)
    return ok([_batch_out(b, today) for b in rows], meta={"count": len(rows)})


@router.post("/batches/{batch_id}/adjust")
def adjust_batch(
    batch_id: int,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(require_roles(*STOCK_ROLES)),
):
    batch = ledger.adjust_stock(db, batch_id, payload, staff)
    return ok(_batch_out(batch, date.today()))


# ---------- Alerts ----------


@router.get("/alerts/low-stock")
def low_stock_alerts(
    medicine_id: Optional[int] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    rows = stock_alerts.low_stock(db, medicine_id=medicine_id, limit=limit)
    return ok(rows, meta={"count": len(rows)})


@router.get("/alerts/expired")
def expired_alerts(
    medicine_id: Optional[int] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    rows = stock_alerts.expired(db, medicine_id=medicine_id, limit=limit)
    return ok(rows, meta={"count": len(rows)})


@router.get("/alerts/nearing-expiry")
def nearing_expiry_alerts(
    within_days: Optional[int] = Query(None, ge=1, le=365),
    medicine_id: Optional[int] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    rows = stock_alerts.nearing_expiry(
        db, within_days=within_days, medicine_id=medicine_id, limit=limit)
    return ok(rows, meta={"count": len(rows)})
