# FILE: pharmapos/services/ledger.py
"""
Batch ledger: the only code path that changes Batch.quantity_on_hand.

Functions here stage changes in the caller's session and never commit,
except the two stand-alone operations (receive_stock, adjust_stock) which
run their own unit of work.

Locking: batches are always locked FOR UPDATE in ascending id order so two
checkouts touching the same batches can never wait on each other in a
cycle. On databases without row locks (SQLite) the version_id check on
Batch turns a lost update into StaleDataError, which the unit of work
retries.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pharmapos.core.errors import BatchNotFound, InvalidInput
from pharmapos.core.rbac import StaffIdentity
from pharmapos.db.unit_of_work import run_unit_of_work
from pharmapos.models.inventory import Batch, MovementType, StockMovement
from pharmapos.schemas.inventory import StockAdjustIn, StockReceiptIn
from pharmapos.services.audit_logger import log_audit
from pharmapos.services.catalog import get_medicine

logger = logging.getLogger(__name__)


def _natural_key(batch_number: str):
    # "B9" < "B10": digit runs compare as numbers, text case-insensitively
    parts = re.split(r"(\d+)", batch_number or "")
    return [int(p) if i % 2 else p.lower() for i, p in enumerate(parts)]


def fefo_key(batch: Batch):
    """
    Earliest expiry first. Equal expiries go to the lower batch number in
    natural order ("B9" before "B10"); the raw string settles the rest.
    """
    return (batch.expiry_date, _natural_key(batch.batch_number), batch.batch_number)


def _eligible(today: date):
    return (
        Batch.quantity_on_hand > 0,
        Batch.expiry_date > today,
    )


# ---------- Reads ----------


def available_batches(
    db: Session,
    medicine_id: int,
    *,
    today: date,
    lock: bool = False,
) -> List[Batch]:
    """Allocatable batches of one medicine in FEFO order."""
    stmt = (
        select(Batch)
        .where(Batch.medicine_id == medicine_id, *_eligible(today))
        .order_by(Batch.id.asc())
    )
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    rows = list(db.execute(stmt).scalars().all())
    return sorted(rows, key=fefo_key)


def lock_batches_for_medicines(
    db: Session,
    medicine_ids: Iterable[int],
    *,
    today: date,
) -> Dict[int, List[Batch]]:
    """
    Lock every allocatable batch of the given medicines (ascending id) and
    return them grouped by medicine, each group in FEFO order.
    """
    ids = sorted(set(medicine_ids))
    grouped: Dict[int, List[Batch]] = {mid: [] for mid in ids}
    if not ids:
        return grouped

    rows = db.execute(
        select(Batch)
        .where(Batch.medicine_id.in_(ids), *_eligible(today))
        .order_by(Batch.id.asc())
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()

    for batch in rows:
        grouped[batch.medicine_id].append(batch)
    for mid in grouped:
        grouped[mid].sort(key=fefo_key)
    return grouped


def lock_batches(db: Session, batch_ids: Iterable[int]) -> Dict[int, Batch]:
    ids = sorted(set(batch_ids))
    if not ids:
        return {}
    rows = db.execute(
        select(Batch)
        .where(Batch.id.in_(ids))
        .order_by(Batch.id.asc())
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()
    found = {b.id: b for b in rows}
    for bid in ids:
        if bid not in found:
            raise BatchNotFound(bid)
    return found


def list_batches(
    db: Session,
    *,
    medicine_id: Optional[int] = None,
    include_empty: bool = True,
    limit: int = 500,
) -> List[Batch]:
    q = db.query(Batch)
    if medicine_id:
        q = q.filter(Batch.medicine_id == medicine_id)
    if not include_empty:
        q = q.filter(Batch.quantity_on_hand > 0)
    return q.order_by(Batch.medicine_id.asc(), Batch.expiry_date.asc(),
                      Batch.batch_number.asc()).limit(limit).all()


# ---------- Mutations (staged, no commit) ----------


def record_movement(
    db: Session,
    *,
    batch: Batch,
    movement_type: MovementType,
    quantity_change: int,
    staff_id: Optional[str],
    ref_type: str = "",
    ref_id: Optional[int] = None,
    remark: str = "",
) -> StockMovement:
    """
    Central creator for StockMovement - always use this so the journal stays
    consistent with quantity_on_hand.
    """
    mv = StockMovement(
        batch_id=batch.id,
        medicine_id=batch.medicine_id,
        movement_type=movement_type.value,
        quantity_change=quantity_change,
        ref_type=ref_type or "",
        ref_id=ref_id,
        remark=remark or "",
        staff_id=staff_id,
    )
    db.add(mv)
    return mv


def decrement_batch(
    db: Session,
    batch: Batch,
    amount: int,
    *,
    staff_id: Optional[str],
    ref_type: str = "SALE",
    ref_id: Optional[int] = None,
) -> StockMovement:
    amount = int(amount)
    if amount <= 0:
        raise InvalidInput(f"Decrement for batch {batch.id} must be > 0")
    current = int(batch.quantity_on_hand or 0)
    if amount > current:
        # allocation already checked this; reaching here means a stale plan
        raise InvalidInput(
            f"Batch {batch.id} holds {current}, cannot remove {amount}",
            details={"batch_id": batch.id, "available": current},
        )
    batch.quantity_on_hand = current - amount
    return record_movement(
        db,
        batch=batch,
        movement_type=MovementType.SALE,
        quantity_change=-amount,
        staff_id=staff_id,
        ref_type=ref_type,
        ref_id=ref_id,
    )


def restore_batch(
    db: Session,
    batch: Batch,
    amount: int,
    *,
    staff_id: Optional[str],
    ref_type: str = "REFUND",
    ref_id: Optional[int] = None,
    remark: str = "",
) -> StockMovement:
    amount = int(amount)
    if amount <= 0:
        raise InvalidInput(f"Restore for batch {batch.id} must be > 0")
    batch.quantity_on_hand = int(batch.quantity_on_hand or 0) + amount
    return record_movement(
        db,
        batch=batch,
        movement_type=MovementType.REFUND_RESTOCK,
        quantity_change=amount,
        staff_id=staff_id,
        ref_type=ref_type,
        ref_id=ref_id,
        remark=remark,
    )


# ---------- Stand-alone operations ----------


def receive_stock(db: Session, payload: StockReceiptIn, staff: StaffIdentity) -> Batch:
    """Create a new batch from a stock receipt."""

    def work() -> Batch:
        medicine = get_medicine(db, payload.medicine_id)

        exists = (db.query(Batch.id).filter(
            Batch.medicine_id == medicine.id,
            Batch.batch_number == payload.batch_number,
        ).first())
        if exists:
            raise InvalidInput(
                f"Batch {payload.batch_number!r} already exists for medicine {medicine.id}; "
                "use a stock adjustment instead",
                details={"batch_id": exists[0]},
            )

        batch = Batch(
            medicine_id=medicine.id,
            batch_number=payload.batch_number,
            quantity_on_hand=payload.quantity,
            expiry_date=payload.expiry_date,
            manufacturing_date=payload.manufacturing_date,
            unit_sale_price=payload.unit_sale_price,
            unit_purchase_cost=payload.unit_purchase_cost,
            reorder_level=payload.reorder_level,
            supplier_name=payload.supplier_name or "",
        )
        db.add(batch)
        db.flush()  # batch.id

        record_movement(
            db,
            batch=batch,
            movement_type=MovementType.RECEIPT,
            quantity_change=payload.quantity,
            staff_id=staff.staff_id,
            ref_type="RECEIPT",
            ref_id=batch.id,
            remark=f"Received from {payload.supplier_name}" if payload.supplier_name else "",
        )
        log_audit(
            db,
            staff_id=staff.staff_id,
            action="RECEIVE",
            table_name="batches",
            record_id=batch.id,
            new_values={
                "medicine_id": medicine.id,
                "batch_number": batch.batch_number,
                "quantity": payload.quantity,
                "expiry_date": payload.expiry_date.isoformat(),
            },
        )
        return batch

    batch = run_unit_of_work(db, work, label="Stock receipt")
    logger.info("Received batch %s (%s) qty=%s for medicine %s",
                batch.id, batch.batch_number, batch.quantity_on_hand, batch.medicine_id)
    return batch


def adjust_stock(
    db: Session,
    batch_id: int,
    payload: StockAdjustIn,
    staff: StaffIdentity,
) -> Batch:
    """
    Signed manual correction (damage, recount). Never below zero.
    """
    if payload.adjustment == 0:
        raise InvalidInput("Adjustment must be non-zero")

    def work() -> Batch:
        batch = lock_batches(db, [batch_id])[batch_id]
        before = int(batch.quantity_on_hand or 0)
        after = before + payload.adjustment
        if after < 0:
            raise InvalidInput(
                f"Adjustment would make batch {batch.id} negative ({before} {payload.adjustment:+d})",
                details={"batch_id": batch.id, "available": before},
            )
        batch.quantity_on_hand = after
        record_movement(
            db,
            batch=batch,
            movement_type=MovementType.ADJUSTMENT,
            quantity_change=payload.adjustment,
            staff_id=staff.staff_id,
            ref_type="ADJUSTMENT",
            ref_id=batch.id,
            remark=payload.reason,
        )
        log_audit(
            db,
            staff_id=staff.staff_id,
            action="ADJUST",
            table_name="batches",
            record_id=batch.id,
            old_values={"quantity_on_hand": before},
            new_values={"quantity_on_hand": after, "reason": payload.reason},
        )
        db.flush()
        return batch

    batch = run_unit_of_work(db, work, label=f"Stock adjustment for batch {batch_id}")
    logger.info("Adjusted batch %s by %+d -> %s (%s)",
                batch.id, payload.adjustment, batch.quantity_on_hand, payload.reason)
    return batch
