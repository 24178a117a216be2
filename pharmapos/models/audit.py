from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
)

from pharmapos.db.base import Base


class AuditLog(Base):
    """
    Audit trail for stock and sale mutations.
    Written in the same transaction as the change it describes.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    staff_id = Column(String(64), nullable=True)  # system jobs may be null
    action = Column(String(32), nullable=False)  # CHECKOUT / REFUND / RECEIVE / ADJUST

    table_name = Column(String(255), nullable=False)
    record_id = Column(String(100),
                       nullable=False)  # generic pk, stored as string

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
