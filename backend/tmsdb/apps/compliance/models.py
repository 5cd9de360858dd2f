# backend/tmsdb/apps/compliance/models.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ...database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComplianceRequirement(Base):
    """
    Ties a regulatory requirement to the catalog entry that satisfies it.

    department and role narrow who the requirement applies to; NULL in either
    column means "everyone". role holds a UserRole value.
    """

    __tablename__ = "compliance_requirements"
    __table_args__ = (
        Index("idx_compliance_requirements_scope", "department", "role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    standard = Column(String(128), nullable=False, doc="ISO45001, OSHA 29 CFR 1910, ...")
    requirement = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(String(64), nullable=True, doc="annual, biannual, one-time, ...")

    department = Column(String(255), nullable=True)
    role = Column(String(32), nullable=True)
    catalog_id = Column(Integer, ForeignKey("training_catalog.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    catalog = relationship("CatalogEntry", lazy="joined")

    def applies_to(self, *, department: Optional[str], role: Optional[str]) -> bool:
        if not self.is_active:
            return False
        if self.department and self.department != department:
            return False
        if self.role and self.role != role:
            return False
        return True

    def __repr__(self) -> str:
        return f"<ComplianceRequirement {self.id} {self.standard} -> catalog {self.catalog_id}>"
