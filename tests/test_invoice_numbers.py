"""Per-day invoice number series."""

from datetime import date
from decimal import Decimal

from pharmapos.models import InvoiceNumberSeries, Sale
from pharmapos.services.invoice_numbers import next_invoice_number


def test_series_starts_at_one_and_increments(db):
    day = date(2025, 1, 14)

    assert next_invoice_number(db, on_date=day) == "INV-20250114-0001"
    assert next_invoice_number(db, on_date=day) == "INV-20250114-0002"
    db.commit()

    row = db.query(InvoiceNumberSeries).one()
    assert (row.key, row.date_key, row.next_seq) == ("INV", 20250114, 3)


def test_each_day_has_its_own_counter(db):
    assert next_invoice_number(db, on_date=date(2025, 1, 14)) == "INV-20250114-0001"
    assert next_invoice_number(db, on_date=date(2025, 1, 15)) == "INV-20250115-0001"


def test_prefix_is_normalized(db):
    assert next_invoice_number(db, on_date=date(2025, 1, 14), prefix=" pos ") == "POS-20250114-0001"


def test_rollback_releases_the_number(db):
    day = date(2025, 2, 1)
    next_invoice_number(db, on_date=day)
    db.rollback()

    assert next_invoice_number(db, on_date=day) == "INV-20250201-0001"


def _issued(db, number):
    db.add(Sale(invoice_number=number, vat_rate=Decimal("13"), staff_id="cashier-1"))
    db.flush()


def test_missing_series_row_skips_numbers_already_issued(db):
    day = date(2025, 3, 3)
    _issued(db, "INV-20250303-0001")
    _issued(db, "INV-20250303-0002")

    assert next_invoice_number(db, on_date=day) == "INV-20250303-0003"
    assert db.query(InvoiceNumberSeries).one().next_seq == 4


def test_counter_behind_sales_catches_up(db):
    day = date(2025, 3, 3)
    db.add(InvoiceNumberSeries(key="INV", date_key=20250303, next_seq=2))
    for seq in (1, 2, 3, 12):
        _issued(db, f"INV-20250303-{seq:04d}")

    assert next_invoice_number(db, on_date=day) == "INV-20250303-0013"
    assert next_invoice_number(db, on_date=day) == "INV-20250303-0014"


def test_other_days_and_prefixes_do_not_count(db):
    _issued(db, "INV-20250302-0009")
    _issued(db, "POS-20250303-0005")

    assert next_invoice_number(db, on_date=date(2025, 3, 3)) == "INV-20250303-0001"
