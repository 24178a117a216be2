from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from fastapi import HTTPException, status


class StaffRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    PHARMACIST = "pharmacist"
    CASHIER = "cashier"


STOCK_ROLES = frozenset({StaffRole.ADMIN, StaffRole.MANAGER, StaffRole.PHARMACIST})
REFUND_ROLES = STOCK_ROLES


@dataclass(frozen=True)
class StaffIdentity:
    """Authenticated staff member as resolved at the HTTP boundary."""

    staff_id: str
    role: StaffRole
    name: str = ""


def parse_role(value: Any) -> Optional[StaffRole]:
    """
    Normalize a role claim into StaffRole.
    Accepts Enum members and case-insensitive strings; unknown -> None.
    """
    if value is None:
        return None
    if isinstance(value, StaffRole):
        return value
    if isinstance(value, Enum):
        value = value.value
    try:
        return StaffRole(str(value).strip().lower())
    except ValueError:
        return None


def require_role(staff: StaffIdentity, allowed: Iterable[StaffRole]) -> None:
    if staff.role not in set(allowed):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Forbidden: role '{staff.role.value}' not permitted",
        )
