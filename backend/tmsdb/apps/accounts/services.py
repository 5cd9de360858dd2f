# backend/tmsdb/apps/accounts/services.py

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import Conflict, InvalidInput, NotFound
from ...security import get_password_hash, verify_password
from ..audit import services as audit_services
from ..audit.models import AuditAction
from . import models, schemas

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when login credentials are invalid or the account is inactive."""


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------


def _normalise_username(value: str) -> str:
    return value.strip()


def _normalise_email(value: Optional[str]) -> Optional[str]:
    return value.strip().lower() if value else None


def _clean_department(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def authenticate_user(db: Session, *, username: str, password: str) -> models.User:
    user = (
        db.query(models.User)
        .filter(models.User.username == _normalise_username(username))
        .first()
    )
    if user is None or not verify_password(password, user.hashed_password):
        logger.warning("Login failed", extra={"username": username})
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        logger.warning("Login refused for inactive account", extra={"username": username})
        raise AuthenticationError("Invalid credentials")
    return user


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_or_404(db: Session, user_id: str) -> models.User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def list_users(
    db: Session,
    *,
    department: Optional[str] = None,
    role: Optional[models.UserRole] = None,
) -> List[models.User]:
    q = db.query(models.User)
    if department:
        q = q.filter(models.User.department == department)
    if role:
        q = q.filter(models.User.role == role)
    return q.order_by(models.User.username.asc()).all()


def _ensure_unique(
    db: Session,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
    employee_number: Optional[str] = None,
    exclude_id: Optional[str] = None,
) -> None:
    checks = (
        ("username", models.User.username, username),
        ("email", models.User.email, email),
        ("employee_number", models.User.employee_number, employee_number),
    )
    for field, column, value in checks:
        if not value:
            continue
        q = db.query(models.User.id).filter(column == value)
        if exclude_id:
            q = q.filter(models.User.id != exclude_id)
        if q.first():
            raise Conflict(f"A user with this {field} already exists.")


def create_user(
    db: Session,
    *,
    payload: schemas.UserCreate,
    actor: Optional[models.User],
    meta: audit_services.RequestMeta,
) -> models.User:
    username = _normalise_username(payload.username)
    email = _normalise_email(payload.email)
    _ensure_unique(db, username=username, email=email, employee_number=payload.employee_number)

    with transaction(db):
        user = models.User(
            username=username,
            email=email,
            hashed_password=get_password_hash(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            profile_image_url=payload.profile_image_url,
            role=payload.role,
            department=_clean_department(payload.department),
            employee_number=payload.employee_number,
            is_active=True,
        )
        db.add(user)
        db.flush()
        audit_services.record(
            db,
            entity_type="user",
            entity_id=user.id,
            action=AuditAction.CREATE,
            actor_id=actor.id if actor else None,
            meta=meta,
            changes=audit_services.snapshot(user),
        )
    db.refresh(user)
    return user


def update_user(
    db: Session,
    *,
    user_id: str,
    payload: schemas.UserUpdate,
    actor: models.User,
    meta: audit_services.RequestMeta,
) -> models.User:
    user = get_user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)

    if "email" in data:
        data["email"] = _normalise_email(data["email"])
    if "department" in data:
        data["department"] = _clean_department(data["department"])
    _ensure_unique(
        db,
        email=data.get("email"),
        employee_number=data.get("employee_number"),
        exclude_id=user.id,
    )

    password = data.pop("password", None)
    if user.id == actor.id and data.get("is_active") is False:
        raise InvalidInput.for_field("is_active", "you cannot deactivate your own account")

    with transaction(db):
        before = audit_services.snapshot(user)
        for field, value in data.items():
            setattr(user, field, value)
        if password:
            user.hashed_password = get_password_hash(password)
        db.flush()
        changes = audit_services.diff(before, audit_services.snapshot(user))
        if password:
            changes["password"] = {"from": "***", "to": "***"}
        audit_services.record(
            db,
            entity_type="user",
            entity_id=user.id,
            action=AuditAction.UPDATE,
            actor_id=actor.id,
            meta=meta,
            changes=changes,
        )
    db.refresh(user)
    return user


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


def list_departments(db: Session) -> List[schemas.DepartmentRead]:
    """
    Stored departments, plus names that only appear on user records.
    """
    stored = db.query(models.Department).order_by(models.Department.name.asc()).all()
    out = [schemas.DepartmentRead.model_validate(d) for d in stored]
    known = {d.name for d in stored}

    user_departments = (
        db.query(models.User.department)
        .filter(models.User.department.isnot(None))
        .distinct()
        .all()
    )
    for (name,) in sorted(user_departments):
        if name and name not in known:
            out.append(schemas.DepartmentRead(name=name))
            known.add(name)
    return out


def create_department(
    db: Session,
    *,
    payload: schemas.DepartmentCreate,
    actor: models.User,
    meta: audit_services.RequestMeta,
) -> models.Department:
    name = payload.name.strip()
    if not name:
        raise InvalidInput.for_field("name", "department name cannot be blank")
    if db.query(models.Department.id).filter(models.Department.name == name).first():
        raise Conflict("A department with this name already exists.")
    if payload.manager_id and get_user(db, payload.manager_id) is None:
        raise InvalidInput.for_field("manager_id", "manager not found")

    with transaction(db):
        department = models.Department(
            name=name,
            description=payload.description,
            manager_id=payload.manager_id,
        )
        db.add(department)
        db.flush()
        audit_services.record(
            db,
            entity_type="department",
            entity_id=department.id,
            action=AuditAction.CREATE,
            actor_id=actor.id,
            meta=meta,
            changes=audit_services.snapshot(department),
        )
    db.refresh(department)
    return department
