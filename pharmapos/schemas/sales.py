# FILE: pharmapos/schemas/sales.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from pharmapos.models.sales import PaymentMethod

# ---------- Checkout ----------


class CheckoutLineIn(BaseModel):
    medicine_id: int
    # range checked by the settlement service
    quantity: int


class CustomerIn(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    mobile: Optional[str] = Field(None, max_length=32)


class CheckoutIn(BaseModel):
    customer: Optional[CustomerIn] = None
    lines: List[CheckoutLineIn] = Field(default_factory=list)
    # range and precision checked by the settlement service
    discount_percent: Decimal = Decimal("0")
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


# ---------- Refund ----------


class RefundLineIn(BaseModel):
    sale_line_id: int
    quantity: int


class RefundIn(BaseModel):
    # None -> refund everything still refundable
    lines: Optional[List[RefundLineIn]] = None
    reason: str = Field("", max_length=500)
    restock: bool = True


# ---------- Output ----------


class SaleLineOut(BaseModel):
    id: int
    line_no: int
    medicine_id: int
    medicine_name: str
    batch_id: int
    batch_number: str
    expiry_date: Optional[date] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    refunded_quantity: int = 0

    model_config = ConfigDict(from_attributes=True)


class SaleRefundLineOut(BaseModel):
    sale_line_id: int
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class SaleRefundOut(BaseModel):
    id: int
    reason: Optional[str] = None
    restocked: bool
    amount: Decimal
    staff_id: str
    created_at: datetime
    lines: List[SaleRefundLineOut] = []

    model_config = ConfigDict(from_attributes=True)


class SaleSummaryOut(BaseModel):
    id: int
    invoice_number: str
    customer_name: Optional[str] = None
    customer_mobile: Optional[str] = None
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal
    refunded_amount: Decimal
    payment_method: str
    status: str
    staff_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaleOut(SaleSummaryOut):
    notes: Optional[str] = None
    lines: List[SaleLineOut] = []
    refunds: List[SaleRefundOut] = []
