# pharmapos/db/init_db.py
from __future__ import annotations

import argparse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmapos.db.session import engine
from pharmapos.db.base import Base

# Import all models so metadata is complete
from pharmapos.models import (  # noqa: F401
    AuditLog, Medicine, MedicineCategory, Batch, StockMovement, Sale, SaleLine,
    SaleRefund, SaleRefundLine, InvoiceNumberSeries)

DEMO_MEDICINES = [
    ("Paracetamol 500mg", "Paracetamol", MedicineCategory.TABLET, False),
    ("Amoxicillin 250mg", "Amoxicillin", MedicineCategory.CAPSULE, True),
    ("Cetirizine Syrup 60ml", "Cetirizine", MedicineCategory.SYRUP, False),
]


def print_tables(conn):
    names = sorted(inspect(conn).get_table_names())
    print("Existing tables:", names)
    return set(names)


def seed_demo_catalog(db: Session) -> int:
    """
    Insert the demo medicines that are missing (matched by name); safe to
    run multiple times. Stock is received through the API.
    """
    existing = {name for (name, ) in db.query(Medicine.name).all()}
    added = 0
    for name, generic, category, rx in DEMO_MEDICINES:
        if name in existing:
            continue
        db.add(Medicine(name=name, generic_name=generic,
                        category=category.value, prescription_required=rx))
        added += 1
    return added


def run(fresh: bool = False, demo: bool = False) -> None:
    if fresh:
        print("WARNING: Dropping ALL tables (dev only) …")
        Base.metadata.drop_all(bind=engine)

    print("Creating all missing tables …")
    Base.metadata.create_all(bind=engine)

    with engine.connect() as conn:
        print_tables(conn)

    if not demo:
        return
    try:
        with Session(engine) as db:
            added = seed_demo_catalog(db)
            db.commit()
            print(f"Demo catalog seeded ({added} medicine(s) inserted).")
    except SQLAlchemyError as e:
        print("Seeding failed:", e)
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, optionally seed a demo catalog).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Insert a few demo medicines.",
    )
    args = parser.parse_args()
    run(fresh=args.fresh, demo=args.demo)
