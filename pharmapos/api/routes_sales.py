# FILE: pharmapos/api/routes_sales.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmapos.api.deps import current_staff, get_db, require_roles
from pharmapos.api.response import ok
from pharmapos.core.rbac import REFUND_ROLES, StaffIdentity
from pharmapos.models.sales import SaleStatus
from pharmapos.schemas.sales import RefundIn, SaleOut, SaleSummaryOut
from pharmapos.services import sale_store, settlement

router = APIRouter()


@router.get("")
def list_sales(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    status: Optional[SaleStatus] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    rows = sale_store.list_sales(
        db, date_from=date_from, date_to=date_to, status=status, limit=limit)
    return ok([SaleSummaryOut.model_validate(s) for s in rows], meta={"count": len(rows)})


@router.get("/{invoice_number}")
def get_sale(
    invoice_number: str,
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(current_staff),
):
    sale = sale_store.read_sale(db, invoice_number)
    return ok(SaleOut.model_validate(sale))


@router.post("/{invoice_number}/refund")
def refund_sale(
    invoice_number: str,
    payload: Optional[RefundIn] = None,
    db: Session = Depends(get_db),
    staff: StaffIdentity = Depends(require_roles(*REFUND_ROLES)),
):
    sale = settlement.refund(db, invoice_number, payload or RefundIn(), staff)
    return ok(SaleOut.model_validate(sale))
