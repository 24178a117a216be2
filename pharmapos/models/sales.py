# FILE: pharmapos/models/sales.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, Text,
    ForeignKey, CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.orm import relationship

from pharmapos.db.base import Base
from pharmapos.models.inventory import Money, UnitPrice


class SaleStatus(str, enum.Enum):
    COMPLETED = "completed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially-refunded"


class PaymentMethod(str, enum.Enum):
    """Payment label only; no gateway is involved."""

    CASH = "cash"
    CARD = "card"
    ESEWA = "esewa"
    KHALTI = "khalti"
    MOBILE_PAYMENT = "mobile-payment"
    CREDIT = "credit"


class Sale(Base):
    """
    Committed counter sale.

    Lines are written once with the sale and never changed. Refunds append
    SaleRefund rows and recompute the header totals over what remains.
    """
    __tablename__ = "sales"
    __table_args__ = (
        CheckConstraint("total >= 0", name="ck_sale_total_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(64), unique=True, index=True, nullable=False)

    customer_name = Column(String(255), nullable=True)
    customer_mobile = Column(String(32), nullable=True)

    subtotal = Column(Money, nullable=False, default=0)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Money, nullable=False, default=0)
    vat_rate = Column(Numeric(5, 2), nullable=False)
    vat_amount = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False, default=0)
    refunded_amount = Column(Money, nullable=False, default=0)

    payment_method = Column(String(32), nullable=False, default=PaymentMethod.CASH.value)
    status = Column(String(24), nullable=False, default=SaleStatus.COMPLETED.value, index=True)

    staff_id = Column(String(64), nullable=False, index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    version_id = Column(Integer, nullable=False)

    lines = relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.line_no",
        cascade="all, delete-orphan",
    )
    refunds = relationship(
        "SaleRefund",
        back_populates="sale",
        order_by="SaleRefund.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}


class SaleLine(Base):
    """One batch slice of a requested medicine quantity."""

    __tablename__ = "sale_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_line_qty_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False)

    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)
    medicine_name = Column(String(255), nullable=False)

    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False, index=True)
    batch_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(UnitPrice, nullable=False)
    subtotal = Column(Money, nullable=False)

    sale = relationship("Sale", back_populates="lines")
    refund_lines = relationship("SaleRefundLine", back_populates="sale_line")

    @property
    def refunded_quantity(self) -> int:
        return sum(int(rl.quantity or 0) for rl in self.refund_lines)

    @property
    def remaining_quantity(self) -> int:
        return int(self.quantity or 0) - self.refunded_quantity


class SaleRefund(Base):
    __tablename__ = "sale_refunds"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)

    reason = Column(String(500), default="")
    restocked = Column(Boolean, nullable=False, default=True)
    amount = Column(Money, nullable=False, default=0)

    staff_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    sale = relationship("Sale", back_populates="refunds")
    lines = relationship(
        "SaleRefundLine",
        back_populates="refund",
        cascade="all, delete-orphan",
    )


class SaleRefundLine(Base):
    __tablename__ = "sale_refund_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_refund_line_qty_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    refund_id = Column(Integer, ForeignKey("sale_refunds.id"), nullable=False, index=True)
    sale_line_id = Column(Integer, ForeignKey("sale_lines.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    refund = relationship("SaleRefund", back_populates="lines")
    sale_line = relationship("SaleLine", back_populates="refund_lines")


class InvoiceNumberSeries(Base):
    """
    Per-day invoice counter. UNIQUE(key, date_key) plus the version counter
    make concurrent first-use and concurrent increments detectable.
    """
    __tablename__ = "invoice_number_series"
    __table_args__ = (
        UniqueConstraint("key", "date_key", name="uq_invoice_series_key_date"),
    )

    id = Column(Integer, primary_key=True)
    key = Column(String(32), nullable=False)
    date_key = Column(Integer, nullable=False)
    next_seq = Column(Integer, nullable=False, default=1)

    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}
