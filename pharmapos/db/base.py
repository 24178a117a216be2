# pharmapos/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All PharmaPOS tables (catalog, ledger, sales, audit) inherit from this."""
    pass
