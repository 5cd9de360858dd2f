# backend/tmsdb/apps/training/router.py

"""
Catalog, session and enrollment endpoints.

- Reads are open to any authenticated user; employees only see their own
  enrollments.
- Catalog and session mutations need manager or hr_admin.
- Employees can enroll themselves; changing or deleting an enrollment is a
  manager/hr_admin action and goes through the status guard.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ...errors import Forbidden
from ...security import get_current_active_user, has_role, require_roles
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit.services import request_meta
from . import schemas, services
from .models import CatalogType, EnrollmentStatus, SessionStatus

router = APIRouter(prefix="/api", tags=["training"])

MANAGEMENT_ROLES = (UserRole.MANAGER, UserRole.HR_ADMIN)


def _is_manager(user: account_models.User) -> bool:
    return has_role(user, *MANAGEMENT_ROLES)


# ---------------------------------------------------------------------------
# TRAINING CATALOG
# ---------------------------------------------------------------------------


@router.get("/training-catalog", response_model=List[schemas.CatalogEntryRead])
def list_catalog(
    type: Optional[CatalogType] = None,
    category: Optional[str] = None,
    is_required: Optional[bool] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_catalog(db, type=type, category=category, is_required=is_required)


@router.post(
    "/training-catalog",
    response_model=schemas.CatalogEntryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_catalog_entry(
    payload: schemas.CatalogEntryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.create_catalog_entry(db, payload=payload, actor=current_user, meta=request_meta(request))


@router.get("/training-catalog/{entry_id}", response_model=schemas.CatalogEntryRead)
def get_catalog_entry(
    entry_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_catalog_entry_or_404(db, entry_id)


@router.put("/training-catalog/{entry_id}", response_model=schemas.CatalogEntryRead)
def update_catalog_entry(
    entry_id: int,
    payload: schemas.CatalogEntryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.update_catalog_entry(
        db,
        entry_id=entry_id,
        payload=payload,
        actor=current_user,
        meta=request_meta(request),
    )


@router.delete("/training-catalog/{entry_id}", response_model=schemas.DeleteResult)
def delete_catalog_entry(
    entry_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    deleted = services.delete_catalog_entry(
        db, entry_id=entry_id, actor=current_user, meta=request_meta(request)
    )
    return schemas.DeleteResult(deleted=deleted)


# ---------------------------------------------------------------------------
# SESSIONS
# ---------------------------------------------------------------------------


@router.get("/training-sessions", response_model=List[schemas.TrainingSessionRead])
def list_sessions(
    status: Optional[SessionStatus] = None,
    catalog_id: Optional[int] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_sessions(db, status=status, catalog_id=catalog_id)


@router.get("/training-sessions/calendar", response_model=List[schemas.TrainingSessionRead])
def sessions_calendar(
    start: datetime,
    end: datetime,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    """Sessions between `start` and `end`, both inclusive."""
    return services.sessions_between(db, start=start, end=end)


@router.post(
    "/training-sessions",
    response_model=schemas.TrainingSessionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    payload: schemas.TrainingSessionCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.create_session(db, payload=payload, actor=current_user, meta=request_meta(request))


@router.get("/training-sessions/{session_id}", response_model=schemas.TrainingSessionDetail)
def get_session(
    session_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_session_or_404(db, session_id)


@router.put("/training-sessions/{session_id}", response_model=schemas.TrainingSessionRead)
def update_session(
    session_id: int,
    payload: schemas.TrainingSessionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.update_session(
        db,
        session_id=session_id,
        payload=payload,
        actor=current_user,
        meta=request_meta(request),
    )


@router.delete("/training-sessions/{session_id}", response_model=schemas.DeleteResult)
def delete_session(
    session_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    deleted = services.delete_session(
        db, session_id=session_id, actor=current_user, meta=request_meta(request)
    )
    return schemas.DeleteResult(deleted=deleted)


# ---------------------------------------------------------------------------
# ENROLLMENTS
# ---------------------------------------------------------------------------


@router.get("/training-enrollments", response_model=List[schemas.EnrollmentRead])
def list_enrollments(
    session_id: Optional[int] = None,
    employee_id: Optional[str] = None,
    status: Optional[EnrollmentStatus] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    if not _is_manager(current_user):
        employee_id = current_user.id
    return services.list_enrollments(
        db,
        session_id=session_id,
        employee_id=employee_id,
        status=status,
    )


@router.get(
    "/training-enrollments/employee/{employee_id}",
    response_model=List[schemas.EnrollmentRead],
)
def list_employee_enrollments(
    employee_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    if employee_id != current_user.id and not _is_manager(current_user):
        raise Forbidden("You can only view your own enrollments.")
    return services.list_enrollments(db, employee_id=employee_id)


@router.post(
    "/training-enrollments",
    response_model=schemas.EnrollmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_enrollment(
    payload: schemas.EnrollmentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.create_enrollment(db, payload=payload, actor=current_user, meta=request_meta(request))


@router.get("/training-enrollments/{enrollment_id}", response_model=schemas.EnrollmentRead)
def get_enrollment(
    enrollment_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    enrollment = services.get_enrollment_or_404(db, enrollment_id)
    if enrollment.employee_id != current_user.id and not _is_manager(current_user):
        raise Forbidden("You can only view your own enrollments.")
    return enrollment


@router.put("/training-enrollments/{enrollment_id}", response_model=schemas.EnrollmentRead)
def update_enrollment(
    enrollment_id: int,
    payload: schemas.EnrollmentUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.update_enrollment(
        db,
        enrollment_id=enrollment_id,
        payload=payload,
        actor=current_user,
        meta=request_meta(request),
    )


@router.delete("/training-enrollments/{enrollment_id}", response_model=schemas.DeleteResult)
def delete_enrollment(
    enrollment_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    deleted = services.delete_enrollment(
        db, enrollment_id=enrollment_id, actor=current_user, meta=request_meta(request)
    )
    return schemas.DeleteResult(deleted=deleted)
