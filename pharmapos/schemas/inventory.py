# FILE: pharmapos/schemas/inventory.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator


class StockReceiptIn(BaseModel):
    medicine_id: int
    batch_number: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., gt=0)
    expiry_date: date
    manufacturing_date: Optional[date] = None
    unit_sale_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    unit_purchase_cost: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    reorder_level: int = Field(10, ge=0)
    supplier_name: Optional[str] = None

    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.manufacturing_date and self.manufacturing_date >= self.expiry_date:
            raise ValueError("manufacturing_date must be before expiry_date")
        self.batch_number = self.batch_number.strip()
        if not self.batch_number:
            raise ValueError("batch_number must not be blank")
        return self


class StockAdjustIn(BaseModel):
    adjustment: int  # signed: +found, -damaged/lost
    reason: str = Field(..., min_length=1, max_length=500)


class BatchOut(BaseModel):
    id: int
    medicine_id: int
    batch_number: str
    quantity_on_hand: int
    expiry_date: date
    manufacturing_date: Optional[date] = None
    unit_sale_price: Decimal
    unit_purchase_cost: Decimal
    reorder_level: int
    supplier_name: Optional[str] = None
    received_at: Optional[datetime] = None
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BatchAlertOut(BaseModel):
    batch_id: int
    medicine_id: int
    medicine_name: str
    batch_number: str
    quantity_on_hand: int
    reorder_level: int
    expiry_date: date
    days_to_expiry: int
