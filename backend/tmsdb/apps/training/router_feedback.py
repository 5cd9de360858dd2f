# backend/tmsdb/apps/training/router_feedback.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ...security import get_current_active_user, has_role, require_roles
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit.services import request_meta
from . import schemas, services

router = APIRouter(prefix="/api", tags=["training_feedback"])

MANAGEMENT_ROLES = (UserRole.MANAGER, UserRole.HR_ADMIN)


# ---------------------------------------------------------------------------
# FEEDBACK
# ---------------------------------------------------------------------------


@router.get("/training-feedback", response_model=List[schemas.FeedbackRead])
def list_feedback(
    session_id: Optional[int] = None,
    enrollment_id: Optional[int] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    employee_id = None if has_role(current_user, *MANAGEMENT_ROLES) else current_user.id
    return services.list_feedback(
        db,
        session_id=session_id,
        enrollment_id=enrollment_id,
        employee_id=employee_id,
    )


@router.post(
    "/training-feedback",
    response_model=schemas.FeedbackRead,
    status_code=status.HTTP_201_CREATED,
)
def create_feedback(
    payload: schemas.FeedbackCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.create_feedback(db, payload=payload, actor=current_user, meta=request_meta(request))


# ---------------------------------------------------------------------------
# EFFECTIVENESS EVALUATIONS
# ---------------------------------------------------------------------------


@router.get("/effectiveness-evaluations", response_model=List[schemas.EvaluationRead])
def list_evaluations(
    enrollment_id: Optional[int] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_evaluations(db, user=current_user, enrollment_id=enrollment_id)


@router.post(
    "/effectiveness-evaluations",
    response_model=schemas.EvaluationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_evaluation(
    payload: schemas.EvaluationCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.create_evaluation(db, payload=payload, actor=current_user, meta=request_meta(request))


@router.put("/effectiveness-evaluations/{evaluation_id}", response_model=schemas.EvaluationRead)
def update_evaluation(
    evaluation_id: int,
    payload: schemas.EvaluationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return services.update_evaluation(
        db,
        evaluation_id=evaluation_id,
        payload=payload,
        actor=current_user,
        meta=request_meta(request),
    )
