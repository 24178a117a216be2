# FILE: pharmapos/services/allocation.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from pharmapos.core.errors import InsufficientStock, InvalidInput
from pharmapos.models.inventory import Batch
from pharmapos.services import ledger


@dataclass(frozen=True)
class Allocation:
    batch: Batch
    quantity: int

    @property
    def batch_id(self) -> int:
        return self.batch.id

    @property
    def unit_price(self):
        return self.batch.unit_sale_price


def validate_quantity(medicine_id: int, quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput(
            f"Quantity for medicine {medicine_id} must be a whole number",
            details={"medicine_id": medicine_id, "quantity": str(quantity)},
        )
    if quantity <= 0:
        raise InvalidInput(
            f"Quantity for medicine {medicine_id} must be > 0",
            details={"medicine_id": medicine_id, "quantity": quantity},
        )
    return quantity


def plan_fefo(
    batches: Iterable[Batch],
    medicine_id: int,
    requested_quantity: int,
    *,
    today: date,
) -> List[Allocation]:
    """
    FEFO allocation (First-Expiry-First-Out) over the given batches.

    - Skips empty and expired batches (expiry on or before ``today``)
    - Orders by expiry date, then batch number
    - Splits the request across batches greedily
    - All-or-nothing: raises InsufficientStock with the available total
    """
    qty = validate_quantity(medicine_id, requested_quantity)

    eligible = sorted(
        (b for b in batches
         if b.medicine_id == medicine_id and b.is_allocatable(today)),
        key=ledger.fefo_key,
    )
    available = sum(int(b.quantity_on_hand) for b in eligible)
    if available < qty:
        raise InsufficientStock(medicine_id, qty, available)

    remaining = qty
    allocations: List[Allocation] = []
    for batch in eligible:
        if remaining <= 0:
            break
        use_qty = min(int(batch.quantity_on_hand), remaining)
        allocations.append(Allocation(batch=batch, quantity=use_qty))
        remaining -= use_qty

    return allocations


def allocate(
    db: Session,
    medicine_id: int,
    requested_quantity: int,
    *,
    today: Optional[date] = None,
    lock: bool = True,
) -> List[Allocation]:
    """
    Pick batches for one medicine. Reads (and by default locks) the
    allocatable batches; does not change any quantity.
    """
    validate_quantity(medicine_id, requested_quantity)
    today = today or date.today()
    batches = ledger.available_batches(db, medicine_id, today=today, lock=lock)
    return plan_fefo(batches, medicine_id, requested_quantity, today=today)
