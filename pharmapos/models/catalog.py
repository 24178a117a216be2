# FILE: pharmapos/models/catalog.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Text
from sqlalchemy.orm import relationship

from pharmapos.db.base import Base


class MedicineCategory(str, enum.Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    SYRUP = "syrup"
    INJECTION = "injection"
    OINTMENT = "ointment"
    DROPS = "drops"
    OTHER = "other"


class MedicineStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Medicine(Base):
    """
    Catalog entry. Owned by the catalog service; the settlement core only
    reads it (existence / active status) and references it from batches and
    sale lines.
    """
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    generic_name = Column(String(255), default="")
    manufacturer = Column(String(255), default="")
    category = Column(
        Enum(*[c.value for c in MedicineCategory], name="medicine_category"),
        nullable=False,
        default=MedicineCategory.OTHER.value,
    )
    prescription_required = Column(Boolean, default=False, nullable=False)
    status = Column(
        Enum(*[s.value for s in MedicineStatus], name="medicine_status"),
        nullable=False,
        default=MedicineStatus.ACTIVE.value,
    )
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    batches = relationship("Batch", back_populates="medicine")

    @property
    def is_active(self) -> bool:
        return self.status == MedicineStatus.ACTIVE.value
