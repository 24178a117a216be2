# pharmapos/core/errors.py
"""
Error taxonomy of the settlement core.

Every error carries what the caller needs to act on it: an HTTP status, a
stable machine code, optional structured details and whether retrying the
same request can succeed.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class PharmacyError(Exception):
    status_code: int = 400
    code: str = "pharmacy_error"
    retryable: bool = False

    def __init__(self, msg: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.msg = msg
        self.details = details or {}


class InvalidInput(PharmacyError):
    """Rejected request shape: zero/negative quantity, bad discount, empty cart."""

    status_code = 422
    code = "invalid_input"


class InsufficientStock(PharmacyError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, medicine_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for medicine {medicine_id}: "
            f"requested {requested}, available {available}",
            details={
                "medicine_id": medicine_id,
                "requested": requested,
                "available": available,
            },
        )
        self.medicine_id = medicine_id
        self.requested = requested
        self.available = available


class ConcurrencyConflict(PharmacyError):
    """Another writer touched the same rows; raised once retries are exhausted."""

    status_code = 409
    code = "concurrency_conflict"
    retryable = True


class PersistenceFailure(PharmacyError):
    """Commit-time database failure. Nothing was written."""

    status_code = 503
    code = "persistence_failure"
    retryable = True


class SaleNotFound(PharmacyError):
    status_code = 404
    code = "sale_not_found"

    def __init__(self, invoice_number: str):
        super().__init__(f"Sale {invoice_number} not found",
                         details={"invoice_number": invoice_number})


class BatchNotFound(PharmacyError):
    status_code = 404
    code = "batch_not_found"

    def __init__(self, batch_id: int):
        super().__init__(f"Batch {batch_id} not found",
                         details={"batch_id": batch_id})
