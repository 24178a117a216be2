from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pharmapos.models.audit import AuditLog


def log_audit(
    db: Session,
    *,
    staff_id: Optional[str],
    action: str,  # "CHECKOUT" | "REFUND" | "RECEIVE" | "ADJUST"
    table_name: str,
    record_id: Any,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Stage one audit event in the caller's unit of work.
    Committed (or rolled back) together with the change it describes.
    """
    entry = AuditLog(
        staff_id=staff_id,
        action=action,
        table_name=table_name,
        record_id=str(record_id),
        old_values=old_values,
        new_values=new_values,
    )
    db.add(entry)
    return entry
