# FILE: pharmapos/api/response.py
"""
Response envelope for every endpoint.

  success: {"ok": true,  "data": ..., "meta": {...}}
  failure: {"ok": false, "error": {"msg", "code", "details"}}

Money fields come out as decimal strings: pydantic models are encoded in
JSON mode, which keeps Decimal exact.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from pharmapos.core.errors import PharmacyError


def _envelope(payload: Dict[str, Any], status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def ok(
    data: Any = None,
    *,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> JSONResponse:
    payload: Dict[str, Any] = {"ok": True, "data": data}
    if meta is not None:
        payload["meta"] = meta
    return _envelope(payload, status_code)


def err(
    msg: str,
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    return _envelope(
        {"ok": False, "error": {"msg": msg, "code": code, "details": details}},
        status_code,
    )


def from_error(exc: PharmacyError) -> JSONResponse:
    """
    Envelope for a domain error. Retryable failures (conflicts, commit
    failures) say so in details so a till can resubmit the same cart.
    """
    details = dict(exc.details or {})
    if exc.retryable:
        details["retryable"] = True
    return err(exc.msg, status_code=exc.status_code, code=exc.code, details=details or None)
