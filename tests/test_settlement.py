"""Checkout: FEFO allocation, pricing and sale recording as one transaction."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TODAY
from pharmapos.core.errors import InsufficientStock, InvalidInput, PersistenceFailure
from pharmapos.models import AuditLog, Batch, InvoiceNumberSeries, Sale, SaleLine, StockMovement
from pharmapos.schemas.sales import CheckoutIn
from pharmapos.services.settlement import checkout


def _cart(*lines, **extra):
    return CheckoutIn(
        lines=[{"medicine_id": m, "quantity": q} for m, q in lines],
        **extra,
    )


@pytest.fixture
def stocked(make_medicine, make_batch):
    med = make_medicine("Amoxicillin 250mg")
    b1 = make_batch(med, "B1", 5, date(2025, 1, 1), price="20.00")
    b2 = make_batch(med, "B2", 10, date(2025, 6, 1), price="22.00")
    return med, b1, b2


def test_checkout_splits_across_batches_in_expiry_order(db, stocked, cashier):
    med, b1, b2 = stocked

    sale = checkout(db, _cart((med.id, 8)), cashier, today=TODAY)

    assert [(l.batch_id, l.quantity) for l in sale.lines] == [(b1.id, 5), (b2.id, 3)]
    assert db.get(Batch, b1.id).quantity_on_hand == 0
    assert db.get(Batch, b2.id).quantity_on_hand == 7
    assert sale.status == "completed"
    assert sale.staff_id == "cashier-1"


def test_checkout_prices_each_slice_at_its_batch_price(db, stocked, cashier):
    med, _, _ = stocked

    sale = checkout(db, _cart((med.id, 8), discount_percent=Decimal("10")), cashier, today=TODAY)

    # 5 x 20.00 + 3 x 22.00
    assert sale.subtotal == Decimal("166.00")
    assert sale.discount_amount == Decimal("16.60")
    assert sale.vat_amount == Decimal("19.42")
    assert sale.total == Decimal("168.82")
    assert sale.total == sale.subtotal - sale.discount_amount + sale.vat_amount
    assert sale.vat_rate == Decimal("13")


def test_sale_lines_snapshot_batch_details(db, stocked, cashier):
    med, b1, _ = stocked

    sale = checkout(db, _cart((med.id, 2)), cashier, today=TODAY)
    line = sale.lines[0]

    assert line.line_no == 1
    assert line.medicine_name == "Amoxicillin 250mg"
    assert line.batch_number == "B1"
    assert line.expiry_date == date(2025, 1, 1)
    assert line.unit_price == Decimal("20.00")
    assert line.subtotal == Decimal("40.00")


def test_invoice_numbers_are_sequential_per_day(db, stocked, cashier):
    med, _, _ = stocked

    first = checkout(db, _cart((med.id, 1)), cashier, today=TODAY)
    second = checkout(db, _cart((med.id, 1)), cashier, today=TODAY)

    assert first.invoice_number == "INV-20241201-0001"
    assert second.invoice_number == "INV-20241201-0002"


def test_shortfall_on_any_line_leaves_everything_untouched(db, make_medicine, make_batch, stocked, cashier):
    med, b1, b2 = stocked
    other = make_medicine("Cetirizine 10mg")
    ob = make_batch(other, "C1", 2, date(2025, 3, 1))

    with pytest.raises(InsufficientStock) as exc:
        checkout(db, _cart((med.id, 4), (other.id, 3)), cashier, today=TODAY)

    assert exc.value.details == {"medicine_id": other.id, "requested": 3, "available": 2}
    assert db.get(Batch, b1.id).quantity_on_hand == 5
    assert db.get(Batch, b2.id).quantity_on_hand == 10
    assert db.get(Batch, ob.id).quantity_on_hand == 2
    assert db.query(Sale).count() == 0
    assert db.query(SaleLine).count() == 0
    assert db.query(StockMovement).count() == 0


def test_same_medicine_twice_in_cart_sees_earlier_lines(db, stocked, cashier):
    med, b1, b2 = stocked

    sale = checkout(db, _cart((med.id, 4), (med.id, 4)), cashier, today=TODAY)

    assert [(l.batch_id, l.quantity) for l in sale.lines] == [(b1.id, 4), (b1.id, 1), (b2.id, 3)]
    assert db.get(Batch, b2.id).quantity_on_hand == 7


def test_checkout_records_movements_and_audit(db, stocked, cashier):
    med, b1, b2 = stocked

    sale = checkout(db, _cart((med.id, 8)), cashier, today=TODAY)

    moves = db.query(StockMovement).order_by(StockMovement.batch_id).all()
    assert [(m.batch_id, m.quantity_change, m.movement_type) for m in moves] == [
        (b1.id, -5, "SALE"), (b2.id, -3, "SALE"),
    ]
    assert all(m.ref_id == sale.id and m.ref_type == "SALE" for m in moves)

    audit = db.query(AuditLog).filter(AuditLog.action == "CHECKOUT").one()
    assert audit.record_id == str(sale.id)
    assert audit.new_values["invoice_number"] == sale.invoice_number


def test_customer_details_are_optional_and_stored(db, stocked, cashier):
    med, _, _ = stocked

    anonymous = checkout(db, _cart((med.id, 1)), cashier, today=TODAY)
    named = checkout(
        db,
        _cart((med.id, 1), customer={"name": " Hari ", "mobile": "9841000000"},
              payment_method="esewa"),
        cashier,
        today=TODAY,
    )

    assert anonymous.customer_name is None
    assert named.customer_name == "Hari"
    assert named.customer_mobile == "9841000000"
    assert named.payment_method == "esewa"


@pytest.mark.parametrize(
    "cart",
    [
        _cart(),
        _cart((1, 0)),
        _cart((1, -3)),
        _cart((1, 1), discount_percent=Decimal("120")),
        _cart((1, 1), customer={"mobile": "98-41"}),
    ],
)
def test_invalid_requests_are_rejected_before_touching_stock(db, stocked, cashier, cart):
    with pytest.raises(InvalidInput):
        checkout(db, cart, cashier, today=TODAY)
    assert db.query(Sale).count() == 0


def test_inactive_or_unknown_medicine_is_rejected(db, make_medicine, make_batch, cashier):
    retired = make_medicine("Retired", active=False)
    make_batch(retired, "R1", 10, date(2025, 6, 1))

    with pytest.raises(InvalidInput):
        checkout(db, _cart((retired.id, 1)), cashier, today=TODAY)
    with pytest.raises(InvalidInput):
        checkout(db, _cart((9999, 1)), cashier, today=TODAY)


def test_only_expired_stock_means_insufficient(db, make_medicine, make_batch, cashier):
    med = make_medicine()
    make_batch(med, "OLD", 100, date(2024, 11, 1))

    with pytest.raises(InsufficientStock) as exc:
        checkout(db, _cart((med.id, 1)), cashier, today=TODAY)
    assert exc.value.available == 0


def test_discount_with_sub_cent_precision_is_rejected(db, stocked, cashier):
    med, b1, _ = stocked

    with pytest.raises(InvalidInput):
        checkout(db, _cart((med.id, 1), discount_percent=Decimal("0.004")), cashier, today=TODAY)

    assert db.get(Batch, b1.id).quantity_on_hand == 5
    assert db.query(Sale).count() == 0


def test_stored_discount_percent_matches_the_priced_one(db, stocked, cashier):
    med, _, _ = stocked

    sale = checkout(db, _cart((med.id, 3), discount_percent=Decimal("12.25")), cashier, today=TODAY)

    # 3 x 20.00 = 60.00; 12.25% = 7.35
    assert sale.discount_percent == Decimal("12.25")
    assert sale.discount_amount == Decimal("7.35")


def test_checkout_after_series_row_loss_takes_the_next_free_number(db, stocked, cashier):
    med, _, _ = stocked
    first = checkout(db, _cart((med.id, 1)), cashier, today=TODAY)
    db.query(InvoiceNumberSeries).delete()
    db.commit()

    second = checkout(db, _cart((med.id, 1)), cashier, today=TODAY)

    assert first.invoice_number == "INV-20241201-0001"
    assert second.invoice_number == "INV-20241201-0002"


def test_failure_at_save_after_decrement_leaves_no_trace(db, stocked, cashier, monkeypatch):
    med, b1, b2 = stocked
    first = checkout(db, _cart((med.id, 2)), cashier, today=TODAY)
    taken = first.invoice_number
    before = (
        db.get(Batch, b1.id).quantity_on_hand,
        db.get(Batch, b2.id).quantity_on_hand,
        db.query(Sale).count(),
        db.query(SaleLine).count(),
        db.query(StockMovement).count(),
        db.query(AuditLog).count(),
    )

    def colliding_number(session, *, on_date):
        # push the batch decrements to the database before the sale insert fails
        session.flush()
        return taken

    monkeypatch.setattr("pharmapos.services.settlement.next_invoice_number", colliding_number)

    with pytest.raises(PersistenceFailure) as exc:
        checkout(db, _cart((med.id, 6)), cashier, today=TODAY)

    assert exc.value.retryable is True
    after = (
        db.get(Batch, b1.id).quantity_on_hand,
        db.get(Batch, b2.id).quantity_on_hand,
        db.query(Sale).count(),
        db.query(SaleLine).count(),
        db.query(StockMovement).count(),
        db.query(AuditLog).count(),
    )
    assert after == before == (3, 10, 1, 1, 1, 1)
