# FILE: pharmapos/services/settlement.py
"""
Sale settlement: checkout and refund as single atomic units of work.

checkout
  validate -> lock batches (ascending id) -> FEFO plan + decrement per line
  -> price -> invoice number -> append sale/lines -> commit

refund
  lock sale -> pick lines/quantities -> lock batches -> restore (or record as
  unsellable) -> reprice remaining quantities -> update status -> commit

Both run under run_unit_of_work: any failure rolls everything back, and
conflicts with concurrent writers are retried a bounded number of times.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from pharmapos.core.errors import InsufficientStock, InvalidInput
from pharmapos.core.rbac import StaffIdentity
from pharmapos.db.unit_of_work import run_unit_of_work
from pharmapos.models.catalog import Medicine
from pharmapos.models.inventory import MovementType
from pharmapos.models.sales import (
    Sale,
    SaleLine,
    SaleRefund,
    SaleRefundLine,
    SaleStatus,
)
from pharmapos.schemas.sales import CheckoutIn, RefundIn
from pharmapos.services import ledger, sale_store
from pharmapos.services.allocation import Allocation, plan_fefo, validate_quantity
from pharmapos.services.audit_logger import log_audit
from pharmapos.services.catalog import get_sellable_medicine
from pharmapos.services.invoice_numbers import next_invoice_number
from pharmapos.services.pricing import (
    calculate_totals,
    line_subtotal,
    validate_discount_percent,
)

logger = logging.getLogger(__name__)

_MOBILE_RE = re.compile(r"^\+?[0-9]{7,15}$")

REFUNDABLE_STATUSES = {SaleStatus.COMPLETED.value, SaleStatus.PARTIALLY_REFUNDED.value}


@dataclass(frozen=True)
class _RemainingQty:
    quantity: int
    unit_price: Decimal


# ---------- Checkout ----------


def validate_checkout(payload: CheckoutIn) -> None:
    """Shape checks only; touches no store."""
    if not payload.lines:
        raise InvalidInput("Cart is empty")
    for line in payload.lines:
        validate_quantity(line.medicine_id, line.quantity)
    validate_discount_percent(payload.discount_percent)

    mobile = (payload.customer.mobile or "").strip() if payload.customer else ""
    if mobile and not _MOBILE_RE.match(mobile):
        raise InvalidInput(f"Invalid customer mobile number {mobile!r}")


def checkout(
    db: Session,
    payload: CheckoutIn,
    staff: StaffIdentity,
    *,
    today: Optional[date] = None,
) -> Sale:
    validate_checkout(payload)
    today = today or date.today()

    customer = payload.customer
    customer_name = ((customer.name or "").strip() or None) if customer else None
    customer_mobile = ((customer.mobile or "").strip() or None) if customer else None

    def work() -> Sale:
        medicines: Dict[int, Medicine] = {}
        for line in payload.lines:
            if line.medicine_id not in medicines:
                medicines[line.medicine_id] = get_sellable_medicine(db, line.medicine_id)

        locked = ledger.lock_batches_for_medicines(db, medicines.keys(), today=today)

        picked: List[Tuple[Medicine, Allocation]] = []
        movements = []
        for line in payload.lines:
            plan = plan_fefo(locked[line.medicine_id], line.medicine_id,
                             line.quantity, today=today)
            for alloc in plan:
                movements.append(
                    ledger.decrement_batch(
                        db, alloc.batch, alloc.quantity,
                        staff_id=staff.staff_id, ref_type="SALE",
                    ))
                picked.append((medicines[line.medicine_id], alloc))

        sale_lines = [
            SaleLine(
                medicine_id=medicine.id,
                medicine_name=medicine.name,
                batch_id=alloc.batch.id,
                batch_number=alloc.batch.batch_number,
                expiry_date=alloc.batch.expiry_date,
                quantity=alloc.quantity,
                unit_price=alloc.unit_price,
                subtotal=line_subtotal(alloc.quantity, alloc.unit_price),
            )
            for medicine, alloc in picked
        ]
        totals = calculate_totals(sale_lines, payload.discount_percent).rounded()

        sale = Sale(
            invoice_number=next_invoice_number(db, on_date=today),
            customer_name=customer_name,
            customer_mobile=customer_mobile,
            subtotal=totals.subtotal,
            discount_percent=totals.discount_percent,
            discount_amount=totals.discount_amount,
            vat_rate=totals.vat_rate,
            vat_amount=totals.vat_amount,
            total=totals.total,
            refunded_amount=Decimal("0.00"),
            payment_method=payload.payment_method.value,
            status=SaleStatus.COMPLETED.value,
            staff_id=staff.staff_id,
            notes=payload.notes,
        )
        sale_store.append_sale(db, sale, sale_lines)

        for mv in movements:
            mv.ref_id = sale.id
            mv.remark = f"Sale {sale.invoice_number}"

        log_audit(
            db,
            staff_id=staff.staff_id,
            action="CHECKOUT",
            table_name="sales",
            record_id=sale.id,
            new_values={
                "invoice_number": sale.invoice_number,
                "total": str(sale.total),
                "lines": [
                    {"batch_id": sl.batch_id, "quantity": sl.quantity}
                    for sl in sale_lines
                ],
            },
        )
        db.flush()
        return sale

    try:
        sale = run_unit_of_work(db, work, label="Checkout")
    except InsufficientStock as exc:
        logger.info("Checkout rejected for staff %s: %s", staff.staff_id, exc.msg)
        raise

    logger.info(
        "Checkout %s by %s: %d line(s), subtotal=%s discount=%s vat=%s total=%s",
        sale.invoice_number, staff.staff_id, len(sale.lines),
        sale.subtotal, sale.discount_amount, sale.vat_amount, sale.total,
    )
    return sale


# ---------- Refund ----------


def _validate_refund(payload: RefundIn) -> None:
    if payload.lines is None:
        return
    if not payload.lines:
        raise InvalidInput("No refund lines given")
    seen = set()
    for rl in payload.lines:
        if rl.sale_line_id in seen:
            raise InvalidInput(f"Sale line {rl.sale_line_id} listed twice")
        seen.add(rl.sale_line_id)
        if rl.quantity <= 0:
            raise InvalidInput(
                f"Refund quantity for sale line {rl.sale_line_id} must be > 0",
                details={"sale_line_id": rl.sale_line_id, "quantity": rl.quantity},
            )


def _pick_reversal(sale: Sale, payload: RefundIn) -> List[Tuple[SaleLine, int]]:
    if payload.lines is None:
        return [(line, line.remaining_quantity)
                for line in sale.lines if line.remaining_quantity > 0]

    by_id = {line.id: line for line in sale.lines}
    picked: List[Tuple[SaleLine, int]] = []
    for rl in payload.lines:
        line = by_id.get(rl.sale_line_id)
        if line is None:
            raise InvalidInput(
                f"Sale line {rl.sale_line_id} does not belong to {sale.invoice_number}",
                details={"sale_line_id": rl.sale_line_id},
            )
        remaining = line.remaining_quantity
        if rl.quantity > remaining:
            raise InvalidInput(
                f"Cannot refund {rl.quantity} of sale line {line.id}; {remaining} refundable",
                details={"sale_line_id": line.id, "refundable": remaining},
            )
        picked.append((line, rl.quantity))
    return picked


def refund(
    db: Session,
    invoice_number: str,
    payload: RefundIn,
    staff: StaffIdentity,
) -> Sale:
    """
    Full (payload.lines is None) or partial refund.

    Totals are recomputed over the remaining quantities with the sale's
    original discount percentage and VAT rate.
    """
    _validate_refund(payload)

    def work() -> Sale:
        sale = sale_store.read_sale(db, invoice_number, lock=True)
        if sale.status not in REFUNDABLE_STATUSES:
            raise InvalidInput(
                f"Sale {invoice_number} is {sale.status} and cannot be refunded",
                details={"status": sale.status},
            )

        reversal = _pick_reversal(sale, payload)
        if not reversal:
            raise InvalidInput(f"Nothing left to refund on {invoice_number}")

        old_values = {"status": sale.status, "total": str(sale.total)}

        record = SaleRefund(
            reason=payload.reason or "",
            restocked=payload.restock,
            staff_id=staff.staff_id,
            amount=Decimal("0.00"),
        )
        for line, qty in reversal:
            record.lines.append(SaleRefundLine(sale_line=line, quantity=qty))

        batches = ledger.lock_batches(db, [line.batch_id for line, _ in reversal])
        for line, qty in reversal:
            batch = batches[line.batch_id]
            if payload.restock:
                ledger.restore_batch(
                    db, batch, qty,
                    staff_id=staff.staff_id, ref_type="REFUND", ref_id=sale.id,
                    remark=f"Refund {invoice_number} line {line.line_no}",
                )
            else:
                ledger.record_movement(
                    db,
                    batch=batch,
                    movement_type=MovementType.REFUND_UNSELLABLE,
                    quantity_change=0,
                    staff_id=staff.staff_id,
                    ref_type="REFUND",
                    ref_id=sale.id,
                    remark=f"{qty} unit(s) returned unsellable: {invoice_number} line {line.line_no}",
                )

        remaining = [_RemainingQty(quantity=line.remaining_quantity, unit_price=line.unit_price)
                     for line in sale.lines]
        totals = calculate_totals(remaining, sale.discount_percent,
                                  vat_rate=sale.vat_rate).rounded()
        status = (SaleStatus.REFUNDED
                  if all(r.quantity == 0 for r in remaining)
                  else SaleStatus.PARTIALLY_REFUNDED)

        db.add(record)
        sale_store.update_sale_status(db, sale, status=status, totals=totals, refund=record)

        log_audit(
            db,
            staff_id=staff.staff_id,
            action="REFUND",
            table_name="sales",
            record_id=sale.id,
            old_values=old_values,
            new_values={
                "status": sale.status,
                "total": str(sale.total),
                "refund_amount": str(record.amount),
                "restocked": payload.restock,
                "lines": [{"sale_line_id": line.id, "quantity": qty} for line, qty in reversal],
            },
        )
        db.flush()
        return sale

    sale = run_unit_of_work(db, work, label=f"Refund of {invoice_number}")
    logger.info("Refund on %s by %s: status=%s total=%s refunded=%s",
                sale.invoice_number, staff.staff_id, sale.status,
                sale.total, sale.refunded_amount)
    return sale
