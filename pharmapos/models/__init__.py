# pharmapos/models/__init__.py
from .catalog import Medicine, MedicineCategory, MedicineStatus
from .inventory import Batch, StockMovement, MovementType
from .sales import (
    Sale,
    SaleLine,
    SaleRefund,
    SaleRefundLine,
    SaleStatus,
    PaymentMethod,
    InvoiceNumberSeries,
)
from .audit import AuditLog

__all__ = [
    "Medicine",
    "MedicineCategory",
    "MedicineStatus",
    "Batch",
    "StockMovement",
    "MovementType",
    "Sale",
    "SaleLine",
    "SaleRefund",
    "SaleRefundLine",
    "SaleStatus",
    "PaymentMethod",
    "InvoiceNumberSeries",
    "AuditLog",
]
