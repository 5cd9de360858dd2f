# backend/tmsdb/apps/compliance/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import get_db, get_read_db
from ...security import get_current_active_user, get_settings, require_roles
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit.services import request_meta
from ..training.schemas import DeleteResult
from . import schemas, services

router = APIRouter(prefix="/api", tags=["compliance"])

MANAGEMENT_ROLES = (UserRole.MANAGER, UserRole.HR_ADMIN)


# ---------------------------------------------------------------------------
# DASHBOARD
# ---------------------------------------------------------------------------


@router.get("/dashboard/metrics", response_model=schemas.DashboardMetrics)
def dashboard_metrics(
    db: Session = Depends(get_read_db),
    settings: Settings = Depends(get_settings),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.dashboard_metrics(
        db,
        lookahead_days=settings.compliance_expiry_lookahead_days,
        required_per_employee=settings.required_trainings_per_employee,
    )


@router.get("/dashboard/employee-compliance", response_model=List[schemas.EmployeeCompliance])
def employee_compliance(
    department: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.employee_compliance(db, department=department)


# ---------------------------------------------------------------------------
# COMPLIANCE REQUIREMENTS
# ---------------------------------------------------------------------------


@router.get("/compliance-requirements", response_model=List[schemas.ComplianceRequirementRead])
def list_requirements(
    catalog_id: Optional[int] = None,
    active_only: bool = False,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.list_requirements(db, catalog_id=catalog_id, active_only=active_only)


@router.post(
    "/compliance-requirements",
    response_model=schemas.ComplianceRequirementRead,
    status_code=status.HTTP_201_CREATED,
)
def create_requirement(
    payload: schemas.ComplianceRequirementCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.create_requirement(db, payload=payload, actor=current_user, meta=request_meta(request))


@router.get(
    "/compliance-requirements/{requirement_id}",
    response_model=schemas.ComplianceRequirementRead,
)
def get_requirement(
    requirement_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.get_requirement_or_404(db, requirement_id)


@router.put(
    "/compliance-requirements/{requirement_id}",
    response_model=schemas.ComplianceRequirementRead,
)
def update_requirement(
    requirement_id: int,
    payload: schemas.ComplianceRequirementUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.update_requirement(
        db,
        requirement_id=requirement_id,
        payload=payload,
        actor=current_user,
        meta=request_meta(request),
    )


@router.delete("/compliance-requirements/{requirement_id}", response_model=DeleteResult)
def delete_requirement(
    requirement_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    deleted = services.delete_requirement(
        db, requirement_id=requirement_id, actor=current_user, meta=request_meta(request)
    )
    return DeleteResult(deleted=deleted)
