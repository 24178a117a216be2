"""FEFO allocation: earliest expiry first, expired and empty batches skipped,
all-or-nothing on shortfall."""

from datetime import date

import pytest

from conftest import TODAY
from pharmapos.core.errors import InsufficientStock, InvalidInput
from pharmapos.models import Batch
from pharmapos.services.allocation import allocate, plan_fefo


def _batch(id_, number, qty, expiry, medicine_id=1):
    return Batch(id=id_, medicine_id=medicine_id, batch_number=number,
                 quantity_on_hand=qty, expiry_date=expiry)


def test_earliest_expiry_is_drawn_first_and_split():
    b1 = _batch(1, "B1", 5, date(2025, 1, 1))
    b2 = _batch(2, "B2", 10, date(2025, 6, 1))

    plan = plan_fefo([b2, b1], 1, 8, today=TODAY)

    assert [(a.batch.batch_number, a.quantity) for a in plan] == [("B1", 5), ("B2", 3)]


def test_same_expiry_breaks_tie_on_batch_number():
    a = _batch(1, "LOT-B", 4, date(2025, 3, 1))
    b = _batch(2, "LOT-A", 4, date(2025, 3, 1))

    plan = plan_fefo([a, b], 1, 5, today=TODAY)

    assert [(x.batch.batch_number, x.quantity) for x in plan] == [("LOT-A", 4), ("LOT-B", 1)]


def test_batch_expiring_today_is_not_sellable():
    expiring = _batch(1, "OLD", 50, TODAY)
    fresh = _batch(2, "NEW", 3, date(2025, 2, 1))

    plan = plan_fefo([expiring, fresh], 1, 3, today=TODAY)
    assert [a.batch.batch_number for a in plan] == ["NEW"]

    with pytest.raises(InsufficientStock) as exc:
        plan_fefo([expiring, fresh], 1, 4, today=TODAY)
    assert exc.value.available == 3
    assert exc.value.requested == 4


def test_empty_batches_are_skipped():
    empty = _batch(1, "E", 0, date(2025, 1, 1))
    full = _batch(2, "F", 2, date(2025, 5, 1))

    plan = plan_fefo([empty, full], 1, 2, today=TODAY)
    assert [a.batch_id for a in plan] == [2]


def test_shortfall_reports_what_is_available():
    with pytest.raises(InsufficientStock) as exc:
        plan_fefo([_batch(1, "B1", 2, date(2025, 1, 1))], 7, 3, today=TODAY)
    # the batch belongs to medicine 1, so nothing is available for medicine 7
    assert exc.value.details == {"medicine_id": 7, "requested": 3, "available": 0}


@pytest.mark.parametrize("qty", [0, -2, 1.5, True, "3"])
def test_bad_quantities_are_invalid_input(qty):
    with pytest.raises(InvalidInput):
        plan_fefo([_batch(1, "B1", 10, date(2025, 1, 1))], 1, qty, today=TODAY)


def test_allocate_reads_batches_and_leaves_stock_untouched(db, make_medicine, make_batch):
    med = make_medicine()
    b1 = make_batch(med, "B1", 5, date(2025, 1, 1))
    b2 = make_batch(med, "B2", 10, date(2025, 6, 1))
    make_batch(med, "EXPIRED", 20, date(2024, 11, 30))

    plan = allocate(db, med.id, 8, today=TODAY)

    assert [(a.batch_id, a.quantity) for a in plan] == [(b1.id, 5), (b2.id, 3)]
    db.rollback()
    assert db.get(Batch, b1.id).quantity_on_hand == 5
    assert db.get(Batch, b2.id).quantity_on_hand == 10


def test_numbered_batches_tie_break_in_natural_order():
    b10 = _batch(1, "B10", 5, date(2025, 3, 1))
    b9 = _batch(2, "B9", 5, date(2025, 3, 1))

    plan = plan_fefo([b10, b9], 1, 6, today=TODAY)

    assert [(a.batch.batch_number, a.quantity) for a in plan] == [("B9", 5), ("B10", 1)]
