# FILE: pharmapos/services/sale_store.py
"""
Sale record store: append-only sales keyed by invoice number.

Nothing here commits; the settlement coordinator owns the transaction.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pharmapos.core.errors import SaleNotFound
from pharmapos.models.sales import Sale, SaleLine, SaleRefund, SaleStatus
from pharmapos.services.pricing import SaleTotals


def _with_children(stmt):
    return stmt.options(
        selectinload(Sale.lines).selectinload(SaleLine.refund_lines),
        selectinload(Sale.refunds).selectinload(SaleRefund.lines),
    )


def append_sale(db: Session, sale: Sale, lines: Sequence[SaleLine]) -> Sale:
    for seq, line in enumerate(lines, start=1):
        line.line_no = seq
        sale.lines.append(line)
    db.add(sale)
    db.flush()  # sale.id, line ids; unique invoice_number enforced here
    return sale


def read_sale(db: Session, invoice_number: str, *, lock: bool = False) -> Sale:
    stmt = _with_children(select(Sale).where(Sale.invoice_number == invoice_number))
    if lock:
        stmt = stmt.with_for_update(of=Sale).execution_options(populate_existing=True)
    sale = db.execute(stmt).scalars().first()
    if sale is None:
        raise SaleNotFound(invoice_number)
    return sale


def update_sale_status(
    db: Session,
    sale: Sale,
    *,
    status: SaleStatus,
    totals: SaleTotals,
    refund: SaleRefund,
) -> Sale:
    """
    Apply a refund to the aggregate: append the refund record, replace the
    header totals with the recomputed ones and move the status.
    Lines are left untouched.
    """
    previous_total = Decimal(sale.total or 0)
    refund.amount = previous_total - totals.total
    sale.refunds.append(refund)

    sale.subtotal = totals.subtotal
    sale.discount_amount = totals.discount_amount
    sale.vat_amount = totals.vat_amount
    sale.total = totals.total
    sale.refunded_amount = Decimal(sale.refunded_amount or 0) + refund.amount
    sale.status = status.value
    db.flush()
    return sale


def list_sales(
    db: Session,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[SaleStatus] = None,
    staff_id: Optional[str] = None,
    limit: int = 100,
) -> List[Sale]:
    q = db.query(Sale)
    if date_from:
        q = q.filter(Sale.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(Sale.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    if status:
        q = q.filter(Sale.status == status.value)
    if staff_id:
        q = q.filter(Sale.staff_id == staff_id)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
