# backend/tmsdb/apps/accounts/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import get_db, get_read_db
from ...security import get_current_active_user, get_settings, issue_token_for_user, require_roles
from ..audit.services import request_meta
from . import models, schemas, services
from .models import UserRole

router = APIRouter(prefix="/api", tags=["accounts"])


# ---------------------------------------------------------------------------
# AUTH
# ---------------------------------------------------------------------------


@router.post(
    "/login",
    response_model=schemas.Token,
    summary="Login with username and password",
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = services.authenticate_user(db, username=payload.username, password=payload.password)
    except services.AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    token, expires_in = issue_token_for_user(user, settings)
    return schemas.Token(
        token=token,
        expires_in=expires_in,
        user=schemas.UserRead.model_validate(user),
    )


@router.post("/logout", summary="Log out (clients discard their token)")
def logout(
    current_user: models.User = Depends(get_current_active_user),
):
    return {"message": "Logged out"}


@router.get(
    "/auth/user",
    response_model=schemas.UserRead,
    summary="Get current logged-in user",
)
def read_current_user(
    current_user: models.User = Depends(get_current_active_user),
):
    return current_user


# ---------------------------------------------------------------------------
# USERS (HR admin only)
# ---------------------------------------------------------------------------


@router.get("/users", response_model=List[schemas.UserRead])
def list_users(
    department: Optional[str] = None,
    role: Optional[UserRole] = None,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.list_users(db, department=department, role=role)


@router.post(
    "/users",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    payload: schemas.UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.create_user(db, payload=payload, actor=current_user, meta=request_meta(request))


@router.get("/users/{user_id}", response_model=schemas.UserRead)
def get_user(
    user_id: str,
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.get_user_or_404(db, user_id)


@router.put("/users/{user_id}", response_model=schemas.UserRead)
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.update_user(
        db,
        user_id=user_id,
        payload=payload,
        actor=current_user,
        meta=request_meta(request),
    )


# ---------------------------------------------------------------------------
# DEPARTMENTS
# ---------------------------------------------------------------------------


@router.get("/departments", response_model=List[schemas.DepartmentRead])
def list_departments(
    db: Session = Depends(get_read_db),
    current_user: models.User = Depends(require_roles(UserRole.MANAGER, UserRole.HR_ADMIN)),
):
    return services.list_departments(db)


@router.post(
    "/departments",
    response_model=schemas.DepartmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_department(
    payload: schemas.DepartmentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    return services.create_department(db, payload=payload, actor=current_user, meta=request_meta(request))
