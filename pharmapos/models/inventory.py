# FILE: pharmapos/models/inventory.py
from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from pharmapos.db.base import Base

Money = Numeric(12, 2)
UnitPrice = Numeric(10, 2)


class MovementType(str, enum.Enum):
    RECEIPT = "RECEIPT"
    SALE = "SALE"
    REFUND_RESTOCK = "REFUND_RESTOCK"
    REFUND_UNSELLABLE = "REFUND_UNSELLABLE"
    ADJUSTMENT = "ADJUSTMENT"


class Batch(Base):
    """
    One received lot of a medicine. Unit of stock for FEFO allocation.

    quantity_on_hand never goes below zero; an exhausted batch stays for
    audit. version_id makes every UPDATE conditional on the version read, so
    a concurrent writer that lost the race gets StaleDataError instead of
    overwriting the decrement.
    """
    __tablename__ = "batches"
    __table_args__ = (
        UniqueConstraint("medicine_id", "batch_number", name="uq_batch_medicine_number"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_batch_qty_non_negative"),
        Index("ix_batch_medicine_expiry", "medicine_id", "expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)

    batch_number = Column(String(100), nullable=False)
    quantity_on_hand = Column(Integer, nullable=False, default=0)
    expiry_date = Column(Date, nullable=False)
    manufacturing_date = Column(Date, nullable=True)

    unit_sale_price = Column(UnitPrice, nullable=False)
    unit_purchase_cost = Column(UnitPrice, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=10)
    supplier_name = Column(String(255), default="")

    received_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    version_id = Column(Integer, nullable=False)

    medicine = relationship("Medicine", back_populates="batches")
    movements = relationship("StockMovement", back_populates="batch")

    __mapper_args__ = {"version_id_col": version_id}

    def is_expired(self, today: date) -> bool:
        return self.expiry_date <= today

    def is_allocatable(self, today: date) -> bool:
        return (self.quantity_on_hand or 0) > 0 and not self.is_expired(today)

    def status_on(self, today: date) -> str:
        if (self.quantity_on_hand or 0) <= 0:
            return "sold-out"
        if self.is_expired(today):
            return "expired"
        return "available"

    def __repr__(self) -> str:
        return (f"<Batch id={self.id} medicine={self.medicine_id} "
                f"no={self.batch_number!r} qty={self.quantity_on_hand}>")


class StockMovement(Base):
    """
    Append-only journal of every quantity change on a batch.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        Index("ix_stock_movement_ref", "ref_type", "ref_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)

    movement_type = Column(String(32), nullable=False)
    quantity_change = Column(Integer, nullable=False)

    ref_type = Column(String(32), default="")
    ref_id = Column(Integer, nullable=True)
    remark = Column(String(500), default="")

    staff_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    batch = relationship("Batch", back_populates="movements")
