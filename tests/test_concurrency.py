"""Concurrent checkouts against the same batch never oversell."""

import threading
from datetime import date

from conftest import TODAY, reload_batch
from pharmapos.core.errors import ConcurrencyConflict, InsufficientStock
from pharmapos.models import Sale, SaleLine
from pharmapos.schemas.sales import CheckoutIn
from pharmapos.services.settlement import checkout


def _race(session_factory, staff, medicine_id, quantities):
    barrier = threading.Barrier(len(quantities))
    outcomes = [None] * len(quantities)

    def worker(i, qty):
        session = session_factory()
        try:
            barrier.wait()
            sale = checkout(
                session,
                CheckoutIn(lines=[{"medicine_id": medicine_id, "quantity": qty}]),
                staff,
                today=TODAY,
            )
            outcomes[i] = ("sold", sale.invoice_number, qty)
        except (InsufficientStock, ConcurrencyConflict) as exc:
            outcomes[i] = ("rejected", type(exc).__name__, qty)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, q)) for i, q in enumerate(quantities)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


def test_two_checkouts_for_six_against_ten(session_factory, make_medicine, make_batch, cashier):
    med = make_medicine()
    batch = make_batch(med, "HOT", 10, date(2025, 6, 1))

    outcomes = _race(session_factory, cashier, med.id, [6, 6])

    sold = [o for o in outcomes if o and o[0] == "sold"]
    assert None not in outcomes
    assert len(sold) == 1
    assert reload_batch(session_factory, batch.id) == 10 - 6 * len(sold)


def test_many_checkouts_never_exceed_stock(session_factory, make_medicine, make_batch, cashier):
    med = make_medicine()
    b1 = make_batch(med, "A", 4, date(2025, 2, 1))
    b2 = make_batch(med, "B", 6, date(2025, 4, 1))

    outcomes = _race(session_factory, cashier, med.id, [3, 3, 3, 3, 3])

    assert None not in outcomes
    sold_qty = sum(o[2] for o in outcomes if o[0] == "sold")
    remaining = reload_batch(session_factory, b1.id) + reload_batch(session_factory, b2.id)
    assert sold_qty <= 10
    assert remaining == 10 - sold_qty
    assert remaining >= 0

    with session_factory() as s:
        assert s.query(Sale).count() == len([o for o in outcomes if o[0] == "sold"])
        assert sum(l.quantity for l in s.query(SaleLine)) == sold_qty
        invoices = [inv for (inv,) in s.query(Sale.invoice_number)]
        assert len(invoices) == len(set(invoices))
