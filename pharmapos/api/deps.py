# pharmapos/api/deps.py
from __future__ import annotations

from typing import Callable, Generator, Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from pharmapos.core.config import settings
from pharmapos.core.rbac import StaffIdentity, StaffRole, parse_role, require_role
from pharmapos.db.session import SessionLocal


# =========================================================
# DB
# =========================================================
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# AUTH HELPERS
# =========================================================
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_token(raw_token: str) -> dict:
    try:
        return jwt.decode(raw_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def staff_from_claims(payload: dict) -> StaffIdentity:
    staff_id = str(payload.get("sub") or "").strip()
    if not staff_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    role = parse_role(payload.get("role"))
    if role is None:
        raise HTTPException(status_code=401, detail="Unknown staff role")

    return StaffIdentity(staff_id=staff_id, role=role, name=str(payload.get("name") or ""))


# =========================================================
# CURRENT STAFF
# =========================================================
def current_staff(authorization: Optional[str] = Header(None)) -> StaffIdentity:
    raw = _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Missing token")
    return staff_from_claims(_decode_token(raw))


def require_roles(*roles: StaffRole) -> Callable[..., StaffIdentity]:
    """Dependency factory: current staff, restricted to the given roles."""

    def _dep(staff: StaffIdentity = Depends(current_staff)) -> StaffIdentity:
        require_role(staff, roles)
        return staff

    return _dep
