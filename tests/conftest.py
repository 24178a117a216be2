"""Shared fixtures: a file-backed SQLite database per test, seed helpers and
JWT-authenticated API clients."""

import os
import tempfile
from datetime import date, timedelta
from decimal import Decimal

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "pharmapos-test-logs"))
os.environ.setdefault("RETRY_BACKOFF_SECONDS", "0.01")

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from pharmapos.api.deps import get_db
from pharmapos.core.config import settings
from pharmapos.core.rbac import StaffIdentity, StaffRole
from pharmapos.db.base import Base
from pharmapos.db.session import make_engine, make_session_factory
from pharmapos.models import Batch, Medicine, MedicineStatus

# Fixed business date for service-level tests; expiries are set relative to it.
TODAY = date(2024, 12, 1)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'pharmapos-test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cashier():
    return StaffIdentity(staff_id="cashier-1", role=StaffRole.CASHIER, name="Sita")


@pytest.fixture
def pharmacist():
    return StaffIdentity(staff_id="pharm-1", role=StaffRole.PHARMACIST, name="Ram")


@pytest.fixture
def make_medicine(db):
    def _make(name="Paracetamol 500mg", *, active=True, **extra):
        med = Medicine(
            name=name,
            status=(MedicineStatus.ACTIVE if active else MedicineStatus.INACTIVE).value,
            **extra,
        )
        db.add(med)
        db.commit()
        return med

    return _make


@pytest.fixture
def make_batch(db):
    def _make(medicine, batch_number, quantity, expiry_date, *, price="10.00", reorder_level=10):
        batch = Batch(
            medicine_id=medicine.id,
            batch_number=batch_number,
            quantity_on_hand=quantity,
            expiry_date=expiry_date,
            unit_sale_price=Decimal(price),
            unit_purchase_cost=Decimal("0"),
            reorder_level=reorder_level,
        )
        db.add(batch)
        db.commit()
        return batch

    return _make


def reload_batch(session_factory, batch_id):
    """Read a batch through a fresh session so the committed state is seen."""
    with session_factory() as s:
        b = s.get(Batch, batch_id)
        return int(b.quantity_on_hand)


# ---------- HTTP ----------


def make_token(role="pharmacist", sub="staff-1", name="Test Staff"):
    return jwt.encode({"sub": sub, "role": role, "name": name},
                      settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def auth_headers(role="pharmacist", sub="staff-1"):
    return {"Authorization": f"Bearer {make_token(role=role, sub=sub)}"}


@pytest.fixture
def client(session_factory):
    from pharmapos.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def future():
    """Expiry dates relative to the real calendar for HTTP tests."""

    def _days(n):
        return date.today() + timedelta(days=n)

    return _days
