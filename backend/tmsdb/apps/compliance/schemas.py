# backend/tmsdb/apps/compliance/schemas.py

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..accounts.models import UserRole


# ---------------------------------------------------------------------------
# REQUIREMENTS
# ---------------------------------------------------------------------------


class ComplianceRequirementBase(BaseModel):
    standard: str = Field(..., min_length=1, max_length=128)
    requirement: str = Field(..., min_length=1)
    description: Optional[str] = None
    frequency: Optional[str] = Field(None, max_length=64)
    department: Optional[str] = Field(None, description="NULL applies to every department.")
    role: Optional[UserRole] = Field(None, description="NULL applies to every role.")
    catalog_id: int
    is_active: bool = True


class ComplianceRequirementCreate(ComplianceRequirementBase):
    pass


class ComplianceRequirementUpdate(BaseModel):
    standard: Optional[str] = Field(None, min_length=1, max_length=128)
    requirement: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    frequency: Optional[str] = Field(None, max_length=64)
    department: Optional[str] = None
    role: Optional[UserRole] = None
    catalog_id: Optional[int] = None
    is_active: Optional[bool] = None


class ComplianceRequirementRead(ComplianceRequirementBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# DASHBOARD
# ---------------------------------------------------------------------------


class DashboardMetrics(BaseModel):
    employee_count: int
    active_employees: int
    pending_trainings: int
    completed_trainings: int
    required_trainings_per_employee: float
    overall_compliance: float = Field(..., description="Percentage, one decimal place.")
    expiring_certificates: int
    expired_certificates: int


class EmployeeCompliance(BaseModel):
    employee_id: str
    employee_name: str
    department: str
    compliance_status: str = Field(..., description="Compliant / Non-Compliant")
    last_training: Optional[str] = None
    last_completion_date: Optional[datetime] = None
    next_due: Optional[date] = None
    required_count: int
    completed_count: int
    missing_trainings: List[str] = Field(default_factory=list)
