# backend/tmsdb/apps/compliance/services.py

"""
Compliance aggregation plus CRUD for ComplianceRequirement rows.

Which catalog entries an employee must hold:
- every `is_required` entry with no active requirement rows, or with at
  least one active requirement whose department/role scope matches;
- every entry linked by an active requirement that matches the employee.

A completion counts while its completion date plus the entry's validity
period (months) is today or later; entries without a validity period never
expire.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import InvalidInput, NotFound
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit import services as audit_services
from ..audit.models import AuditAction
from ..training import models as training_models
from ..training.lifecycle import expiry_date
from ..training.models import EnrollmentStatus
from . import models, schemas

logger = logging.getLogger(__name__)

COMPLIANT = "Compliant"
NON_COMPLIANT = "Non-Compliant"
UNASSIGNED_DEPARTMENT = "Unassigned"


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _role_value(role) -> Optional[str]:
    if role is None:
        return None
    return role.value if isinstance(role, UserRole) else str(role)


def _pct(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 1)


# ---------------------------------------------------------------------------
# Snapshot of everything the aggregator reads
# ---------------------------------------------------------------------------


@dataclass
class Completion:
    enrollment_id: int
    employee_id: str
    catalog_id: Optional[int]
    title: str
    completion_date: Optional[datetime]
    expires_on: Optional[date]

    def is_valid(self, today: date) -> bool:
        if self.completion_date is None:
            return False
        return self.expires_on is None or self.expires_on >= today


@dataclass
class ComplianceSnapshot:
    required_entries: List[training_models.CatalogEntry]
    requirements_by_catalog: Dict[int, List[models.ComplianceRequirement]]
    completions_by_employee: Dict[str, List[Completion]] = field(default_factory=dict)
    all_completions: List[Completion] = field(default_factory=list)

    def applicable_entries(self, user: account_models.User) -> Dict[int, training_models.CatalogEntry]:
        department = user.department
        role = _role_value(user.role)
        out: Dict[int, training_models.CatalogEntry] = {}

        for entry in self.required_entries:
            scoped = self.requirements_by_catalog.get(entry.id)
            if not scoped or any(r.applies_to(department=department, role=role) for r in scoped):
                out[entry.id] = entry

        for catalog_id, scoped in self.requirements_by_catalog.items():
            if catalog_id in out:
                continue
            for requirement in scoped:
                if requirement.applies_to(department=department, role=role):
                    out[catalog_id] = requirement.catalog
                    break
        return out


def load_snapshot(db: Session) -> ComplianceSnapshot:
    required_entries = (
        db.query(training_models.CatalogEntry)
        .filter(training_models.CatalogEntry.is_required.is_(True))
        .order_by(training_models.CatalogEntry.title.asc())
        .all()
    )

    requirements_by_catalog: Dict[int, List[models.ComplianceRequirement]] = defaultdict(list)
    active = (
        db.query(models.ComplianceRequirement)
        .filter(models.ComplianceRequirement.is_active.is_(True))
        .all()
    )
    for requirement in active:
        requirements_by_catalog[requirement.catalog_id].append(requirement)

    snapshot = ComplianceSnapshot(
        required_entries=required_entries,
        requirements_by_catalog=dict(requirements_by_catalog),
    )

    rows = (
        db.query(training_models.Enrollment)
        .filter(training_models.Enrollment.status == EnrollmentStatus.COMPLETED)
        .all()
    )
    by_employee: Dict[str, List[Completion]] = defaultdict(list)
    for enrollment in rows:
        session = enrollment.session
        catalog = session.catalog if session is not None else None
        completion = Completion(
            enrollment_id=enrollment.id,
            employee_id=enrollment.employee_id,
            catalog_id=catalog.id if catalog is not None else None,
            title=session.title if session is not None else "",
            completion_date=_naive_utc(enrollment.completion_date),
            expires_on=expiry_date(
                enrollment.completion_date,
                catalog.validity_period if catalog is not None else None,
            ),
        )
        by_employee[enrollment.employee_id].append(completion)
        snapshot.all_completions.append(completion)
    snapshot.completions_by_employee = dict(by_employee)
    return snapshot


def _employees(db: Session) -> List[account_models.User]:
    return (
        db.query(account_models.User)
        .filter(
            account_models.User.role == UserRole.EMPLOYEE,
            account_models.User.is_active.is_(True),
        )
        .order_by(account_models.User.last_name.asc(), account_models.User.username.asc())
        .all()
    )


def _best_valid(completions: Iterable[Completion], today: date) -> Dict[int, Completion]:
    """Latest valid completion per catalog entry."""
    best: Dict[int, Completion] = {}
    for c in completions:
        if c.catalog_id is None or not c.is_valid(today):
            continue
        current = best.get(c.catalog_id)
        if current is None or c.completion_date > current.completion_date:
            best[c.catalog_id] = c
    return best


# ---------------------------------------------------------------------------
# Organisation metrics
# ---------------------------------------------------------------------------


def dashboard_metrics(
    db: Session,
    *,
    lookahead_days: int = 60,
    required_per_employee: Optional[int] = None,
    today: Optional[date] = None,
) -> schemas.DashboardMetrics:
    today = today or _today()
    horizon = today + timedelta(days=max(lookahead_days, 0))

    employees = _employees(db)
    employee_count = len(employees)
    active_users = (
        db.query(account_models.User.id)
        .filter(account_models.User.is_active.is_(True))
        .count()
    )
    pending = (
        db.query(training_models.Enrollment.id)
        .filter(training_models.Enrollment.status == EnrollmentStatus.ENROLLED)
        .count()
    )

    snapshot = load_snapshot(db)
    completed = len(snapshot.all_completions)

    applicable_pairs = 0
    satisfied_pairs = 0
    for user in employees:
        applicable = snapshot.applicable_entries(user)
        valid = _best_valid(snapshot.completions_by_employee.get(user.id, ()), today)
        applicable_pairs += len(applicable)
        satisfied_pairs += sum(1 for catalog_id in applicable if catalog_id in valid)

    if required_per_employee:
        divisor = float(required_per_employee)
        overall = _pct(completed, employee_count * required_per_employee)
    else:
        divisor = round(applicable_pairs / employee_count, 2) if employee_count else 0.0
        if applicable_pairs:
            overall = _pct(satisfied_pairs, applicable_pairs)
        else:
            # nothing applies, so every employee is compliant
            overall = 100.0 if employee_count else 0.0

    expiring = 0
    expired = 0
    for c in snapshot.all_completions:
        if c.expires_on is None or c.completion_date is None:
            continue
        if c.expires_on < today:
            expired += 1
        elif c.expires_on <= horizon:
            expiring += 1

    logger.debug(
        "Compliance metrics computed",
        extra={"employees": employee_count, "applicable_pairs": applicable_pairs, "satisfied_pairs": satisfied_pairs},
    )
    return schemas.DashboardMetrics(
        employee_count=employee_count,
        active_employees=active_users,
        pending_trainings=pending,
        completed_trainings=completed,
        required_trainings_per_employee=divisor,
        overall_compliance=overall,
        expiring_certificates=expiring,
        expired_certificates=expired,
    )


# ---------------------------------------------------------------------------
# Per-employee status
# ---------------------------------------------------------------------------


def employee_compliance(
    db: Session,
    *,
    today: Optional[date] = None,
    department: Optional[str] = None,
) -> List[schemas.EmployeeCompliance]:
    today = today or _today()
    snapshot = load_snapshot(db)
    out: List[schemas.EmployeeCompliance] = []

    for user in _employees(db):
        if department and user.department != department:
            continue
        completions = snapshot.completions_by_employee.get(user.id, [])
        applicable = snapshot.applicable_entries(user)
        valid = _best_valid(completions, today)

        satisfied = [valid[cid] for cid in applicable if cid in valid]
        missing = sorted(entry.title for cid, entry in applicable.items() if cid not in valid)

        dated = [c for c in completions if c.completion_date is not None]
        latest = max(dated, key=lambda c: c.completion_date) if dated else None
        expiries = [c.expires_on for c in satisfied if c.expires_on is not None]

        out.append(
            schemas.EmployeeCompliance(
                employee_id=user.id,
                employee_name=user.display_name,
                department=user.department or UNASSIGNED_DEPARTMENT,
                compliance_status=NON_COMPLIANT if missing else COMPLIANT,
                last_training=latest.title if latest else None,
                last_completion_date=latest.completion_date if latest else None,
                next_due=min(expiries) if expiries else None,
                required_count=len(applicable),
                completed_count=len(satisfied),
                missing_trainings=missing,
            )
        )
    return out


# ---------------------------------------------------------------------------
# Requirement CRUD
# ---------------------------------------------------------------------------


def list_requirements(
    db: Session,
    *,
    catalog_id: Optional[int] = None,
    active_only: bool = False,
) -> List[models.ComplianceRequirement]:
    q = db.query(models.ComplianceRequirement)
    if catalog_id is not None:
        q = q.filter(models.ComplianceRequirement.catalog_id == catalog_id)
    if active_only:
        q = q.filter(models.ComplianceRequirement.is_active.is_(True))
    return q.order_by(models.ComplianceRequirement.standard.asc(), models.ComplianceRequirement.id.asc()).all()


def get_requirement(db: Session, requirement_id: int) -> Optional[models.ComplianceRequirement]:
    return (
        db.query(models.ComplianceRequirement)
        .filter(models.ComplianceRequirement.id == requirement_id)
        .first()
    )


def get_requirement_or_404(db: Session, requirement_id: int) -> models.ComplianceRequirement:
    requirement = get_requirement(db, requirement_id)
    if requirement is None:
        raise NotFound("Compliance requirement not found.")
    return requirement


def _check_catalog(db: Session, catalog_id: int) -> None:
    exists = (
        db.query(training_models.CatalogEntry.id)
        .filter(training_models.CatalogEntry.id == catalog_id)
        .first()
    )
    if not exists:
        raise InvalidInput.for_field("catalog_id", "training catalog entry not found")


def _normalise(data: dict) -> dict:
    if "role" in data:
        data["role"] = _role_value(data["role"])
    if "department" in data and isinstance(data["department"], str):
        data["department"] = data["department"].strip() or None
    return data


def create_requirement(
    db: Session,
    *,
    payload: schemas.ComplianceRequirementCreate,
    actor: account_models.User,
    meta: audit_services.RequestMeta,
) -> models.ComplianceRequirement:
    _check_catalog(db, payload.catalog_id)
    with transaction(db):
        requirement = models.ComplianceRequirement(**_normalise(payload.model_dump()))
        db.add(requirement)
        db.flush()
        audit_services.record(
            db,
            entity_type="compliance_requirement",
            entity_id=requirement.id,
            action=AuditAction.CREATE,
            actor_id=actor.id,
            meta=meta,
            changes=audit_services.snapshot(requirement),
        )
    db.refresh(requirement)
    return requirement


def update_requirement(
    db: Session,
    *,
    requirement_id: int,
    payload: schemas.ComplianceRequirementUpdate,
    actor: account_models.User,
    meta: audit_services.RequestMeta,
) -> models.ComplianceRequirement:
    requirement = get_requirement_or_404(db, requirement_id)
    data = _normalise(payload.model_dump(exclude_unset=True))
    for required in ("standard", "requirement", "catalog_id", "is_active"):
        if required in data and data[required] is None:
            raise InvalidInput.for_field(required, "cannot be null")
    if "catalog_id" in data:
        _check_catalog(db, data["catalog_id"])

    with transaction(db):
        before = audit_services.snapshot(requirement)
        for key, value in data.items():
            setattr(requirement, key, value)
        db.flush()
        audit_services.record(
            db,
            entity_type="compliance_requirement",
            entity_id=requirement.id,
            action=AuditAction.UPDATE,
            actor_id=actor.id,
            meta=meta,
            changes=audit_services.diff(before, audit_services.snapshot(requirement)),
        )
    db.refresh(requirement)
    return requirement


def delete_requirement(
    db: Session,
    *,
    requirement_id: int,
    actor: account_models.User,
    meta: audit_services.RequestMeta,
) -> bool:
    requirement = get_requirement(db, requirement_id)
    if requirement is None:
        return False
    before = audit_services.snapshot(requirement)
    with transaction(db):
        db.delete(requirement)
        db.flush()
        audit_services.record(
            db,
            entity_type="compliance_requirement",
            entity_id=requirement_id,
            action=AuditAction.DELETE,
            actor_id=actor.id,
            meta=meta,
            changes=before,
        )
    return True
