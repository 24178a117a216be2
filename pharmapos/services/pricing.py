# pharmapos/services/pricing.py
"""
Sale pricing.

Pure Decimal arithmetic, no I/O. Amounts keep full precision until
``SaleTotals.rounded()`` quantizes them for persistence.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol

from pharmapos.core.config import settings
from pharmapos.core.errors import InvalidInput

MONEY = Decimal("0.01")
HUNDRED = Decimal("100")


class PricedLine(Protocol):
    quantity: int
    unit_price: Decimal


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if isinstance(x, float):
        # go through str so 0.1 stays 0.1
        return Decimal(str(x))
    return Decimal(x if x is not None else 0)


def money2(x) -> Decimal:
    return D(x).quantize(MONEY, rounding=ROUND_HALF_UP)


def validate_discount_percent(discount_percent) -> Decimal:
    """
    Percentage in [0, 100] with at most two decimal places, the precision
    a sale stores it with; refunds reprice with the stored value.
    """
    pct = D(discount_percent)
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        raise InvalidInput(
            f"Discount percentage must be between 0 and 100, got {pct}",
            details={"discount_percent": str(pct)},
        )
    if pct != pct.quantize(MONEY):
        raise InvalidInput(
            f"Discount percentage allows at most 2 decimal places, got {pct}",
            details={"discount_percent": str(pct)},
        )
    return pct


def line_subtotal(quantity: int, unit_price) -> Decimal:
    return money2(D(quantity) * D(unit_price))


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total: Decimal

    def rounded(self) -> "SaleTotals":
        """
        Quantize for persistence. total is rebuilt from the rounded parts so
        total == subtotal - discount + vat holds on stored values.
        """
        subtotal = money2(self.subtotal)
        discount = money2(self.discount_amount)
        vat = money2(self.vat_amount)
        taxable = subtotal - discount
        return SaleTotals(
            subtotal=subtotal,
            discount_percent=self.discount_percent,
            discount_amount=discount,
            taxable_amount=taxable,
            vat_rate=self.vat_rate,
            vat_amount=vat,
            total=taxable + vat,
        )


def calculate_totals(
    lines: Iterable[PricedLine],
    discount_percent,
    *,
    vat_rate: Optional[Decimal] = None,
) -> SaleTotals:
    pct = validate_discount_percent(discount_percent)
    rate = D(settings.VAT_RATE if vat_rate is None else vat_rate)

    subtotal = Decimal("0")
    for line in lines:
        qty = D(line.quantity)
        price = D(line.unit_price)
        if qty < 0 or price < 0:
            raise InvalidInput("Line quantity and unit price must not be negative")
        subtotal += qty * price

    discount = subtotal * pct / HUNDRED
    taxable = subtotal - discount
    vat = taxable * rate / HUNDRED

    return SaleTotals(
        subtotal=subtotal,
        discount_percent=pct,
        discount_amount=discount,
        taxable_amount=taxable,
        vat_rate=rate,
        vat_amount=vat,
        total=taxable + vat,
    )
