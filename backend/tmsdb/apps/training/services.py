# backend/tmsdb/apps/training/services.py

"""
Record operations for the training app.

Every mutation runs inside `transaction(db)` and appends its audit row in the
same unit of work. Lookups of referenced rows happen before the transaction
opens so a bad reference is reported as InvalidInput, never as a database
integrity error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import Conflict, Forbidden, InvalidInput, NotFound
from ...security import has_role
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit import services as audit_services
from ..audit.models import AuditAction
from ..compliance import models as compliance_models
from . import lifecycle, models, schemas
from .models import CatalogType, EnrollmentStatus, SessionStatus

logger = logging.getLogger(__name__)

RequestMeta = audit_services.RequestMeta

_PRIVILEGED = (UserRole.MANAGER, UserRole.HR_ADMIN)
_CLOSED_SESSION_STATES = (SessionStatus.CANCELLED, SessionStatus.COMPLETED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _actor_id(actor: Optional[account_models.User]) -> Optional[str]:
    return actor.id if actor is not None else None


def _audit_create(db: Session, entity_type: str, obj: Any, actor, meta: RequestMeta) -> None:
    audit_services.record(
        db,
        entity_type=entity_type,
        entity_id=obj.id,
        action=AuditAction.CREATE,
        actor_id=_actor_id(actor),
        meta=meta,
        changes=audit_services.snapshot(obj),
    )


def _apply_update(
    db: Session,
    entity_type: str,
    obj: Any,
    data: Dict[str, Any],
    actor,
    meta: RequestMeta,
) -> None:
    before = audit_services.snapshot(obj)
    for field, value in data.items():
        setattr(obj, field, value)
    db.flush()
    audit_services.record(
        db,
        entity_type=entity_type,
        entity_id=obj.id,
        action=AuditAction.UPDATE,
        actor_id=_actor_id(actor),
        meta=meta,
        changes=audit_services.diff(before, audit_services.snapshot(obj)),
    )


def _delete(db: Session, entity_type: str, obj: Any, actor, meta: RequestMeta) -> None:
    before = audit_services.snapshot(obj)
    entity_id = obj.id
    with transaction(db):
        db.delete(obj)
        db.flush()
        audit_services.record(
            db,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.DELETE,
            actor_id=_actor_id(actor),
            meta=meta,
            changes=before,
        )


# ---------------------------------------------------------------------------
# TRAINING CATALOG
# ---------------------------------------------------------------------------


def list_catalog(
    db: Session,
    *,
    type: Optional[CatalogType] = None,
    category: Optional[str] = None,
    is_required: Optional[bool] = None,
) -> List[models.CatalogEntry]:
    q = db.query(models.CatalogEntry)
    if type is not None:
        q = q.filter(models.CatalogEntry.type == type)
    if category:
        q = q.filter(models.CatalogEntry.category == category.strip().lower())
    if is_required is not None:
        q = q.filter(models.CatalogEntry.is_required.is_(is_required))
    return q.order_by(models.CatalogEntry.title.asc(), models.CatalogEntry.id.asc()).all()


def get_catalog_entry(db: Session, entry_id: int) -> Optional[models.CatalogEntry]:
    return db.query(models.CatalogEntry).filter(models.CatalogEntry.id == entry_id).first()


def get_catalog_entry_or_404(db: Session, entry_id: int) -> models.CatalogEntry:
    entry = get_catalog_entry(db, entry_id)
    if entry is None:
        raise NotFound("Training catalog entry not found.")
    return entry


def add_catalog_entry(
    db: Session,
    *,
    payload: schemas.CatalogEntryCreate,
    actor_id: Optional[str],
) -> models.CatalogEntry:
    """
    Insert and flush without committing; callers own the transaction.
    """
    entry = models.CatalogEntry(**payload.model_dump(), created_by=actor_id)
    db.add(entry)
    db.flush()
    return entry


def create_catalog_entry(
    db: Session,
    *,
    payload: schemas.CatalogEntryCreate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.CatalogEntry:
    with transaction(db):
        entry = add_catalog_entry(db, payload=payload, actor_id=actor.id)
        _audit_create(db, "training_catalog", entry, actor, meta)
    db.refresh(entry)
    return entry


def update_catalog_entry(
    db: Session,
    *,
    entry_id: int,
    payload: schemas.CatalogEntryUpdate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.CatalogEntry:
    entry = get_catalog_entry_or_404(db, entry_id)
    data = payload.model_dump(exclude_unset=True)

    for required in ("title", "type", "category", "duration", "currency"):
        if required in data and data[required] is None:
            raise InvalidInput.for_field(required, "cannot be null")

    merged_type = data.get("type", entry.type)
    merged_provider = data["provider_name"] if "provider_name" in data else entry.provider_name
    if merged_type == CatalogType.EXTERNAL and not merged_provider:
        raise InvalidInput.for_field("provider_name", "Provider name is required for external training")

    with transaction(db):
        _apply_update(db, "training_catalog", entry, data, actor, meta)
    db.refresh(entry)
    return entry


def delete_catalog_entry(
    db: Session,
    *,
    entry_id: int,
    actor: account_models.User,
    meta: RequestMeta,
) -> bool:
    entry = get_catalog_entry(db, entry_id)
    if entry is None:
        return False

    has_sessions = (
        db.query(models.TrainingSession.id)
        .filter(models.TrainingSession.catalog_id == entry.id)
        .first()
    )
    if has_sessions:
        raise Conflict("Catalog entry has scheduled sessions and cannot be deleted.")
    has_requirements = (
        db.query(compliance_models.ComplianceRequirement.id)
        .filter(compliance_models.ComplianceRequirement.catalog_id == entry.id)
        .first()
    )
    if has_requirements:
        raise Conflict("Catalog entry is linked to compliance requirements and cannot be deleted.")

    _delete(db, "training_catalog", entry, actor, meta)
    return True


# ---------------------------------------------------------------------------
# SESSIONS
# ---------------------------------------------------------------------------


def list_sessions(
    db: Session,
    *,
    status: Optional[SessionStatus] = None,
    catalog_id: Optional[int] = None,
) -> List[models.TrainingSession]:
    q = db.query(models.TrainingSession)
    if status is not None:
        q = q.filter(models.TrainingSession.status == status)
    if catalog_id is not None:
        q = q.filter(models.TrainingSession.catalog_id == catalog_id)
    return q.order_by(models.TrainingSession.session_date.desc(), models.TrainingSession.id.desc()).all()


def sessions_between(db: Session, *, start: datetime, end: datetime) -> List[models.TrainingSession]:
    """Sessions whose date falls within [start, end], earliest first."""
    start, end = _as_utc(start), _as_utc(end)
    if end < start:
        raise InvalidInput.for_field("end", "end must not be before start")
    return (
        db.query(models.TrainingSession)
        .filter(
            models.TrainingSession.session_date >= start,
            models.TrainingSession.session_date <= end,
        )
        .order_by(models.TrainingSession.session_date.asc(), models.TrainingSession.id.asc())
        .all()
    )


def get_session(db: Session, session_id: int) -> Optional[models.TrainingSession]:
    return db.query(models.TrainingSession).filter(models.TrainingSession.id == session_id).first()


def get_session_or_404(db: Session, session_id: int) -> models.TrainingSession:
    session = get_session(db, session_id)
    if session is None:
        raise NotFound("Training session not found.")
    return session


def _catalog_reference(db: Session, catalog_id: Optional[int]) -> Optional[models.CatalogEntry]:
    if catalog_id is None:
        return None
    entry = get_catalog_entry(db, catalog_id)
    if entry is None:
        raise InvalidInput.for_field("catalog_id", "training catalog entry not found")
    return entry


def create_session(
    db: Session,
    *,
    payload: schemas.TrainingSessionCreate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.TrainingSession:
    catalog = _catalog_reference(db, payload.catalog_id)
    data = payload.model_dump()

    if catalog is not None:
        data["title"] = (data.get("title") or "").strip() or catalog.title
        data["duration"] = data.get("duration") or catalog.duration
        data["trainer_type"] = data.get("trainer_type") or catalog.trainer_type
        data["trainer_name"] = data.get("trainer_name") or catalog.trainer_name

    errors = []
    if not (data.get("title") or "").strip():
        errors.append({"field": "title", "reason": "field required"})
    if not data.get("duration"):
        errors.append({"field": "duration", "reason": "field required"})
    if not data.get("trainer_type"):
        errors.append({"field": "trainer_type", "reason": "field required"})
    if errors:
        raise InvalidInput(errors)

    with transaction(db):
        session = models.TrainingSession(**data, created_by=actor.id)
        db.add(session)
        db.flush()
        _audit_create(db, "training_session", session, actor, meta)
    db.refresh(session)
    return session


def update_session(
    db: Session,
    *,
    session_id: int,
    payload: schemas.TrainingSessionUpdate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.TrainingSession:
    session = get_session_or_404(db, session_id)
    data = payload.model_dump(exclude_unset=True)

    for required in ("title", "session_date", "duration", "trainer_type", "status"):
        if required in data and data[required] is None:
            raise InvalidInput.for_field(required, "cannot be null")
    if data.get("catalog_id") is not None:
        _catalog_reference(db, data["catalog_id"])

    with transaction(db):
        _apply_update(db, "training_session", session, data, actor, meta)
    db.refresh(session)
    return session


def delete_session(
    db: Session,
    *,
    session_id: int,
    actor: account_models.User,
    meta: RequestMeta,
) -> bool:
    session = get_session(db, session_id)
    if session is None:
        return False
    has_enrollments = (
        db.query(models.Enrollment.id)
        .filter(models.Enrollment.session_id == session.id)
        .first()
    )
    if has_enrollments:
        raise Conflict("Session has enrollments and cannot be deleted.")
    has_attachments = (
        db.query(models.EvidenceAttachment.id)
        .filter(models.EvidenceAttachment.session_id == session.id)
        .first()
    )
    if has_attachments:
        raise Conflict("Session has evidence attachments and cannot be deleted.")

    _delete(db, "training_session", session, actor, meta)
    return True


# ---------------------------------------------------------------------------
# ENROLLMENTS
# ---------------------------------------------------------------------------


def list_enrollments(
    db: Session,
    *,
    session_id: Optional[int] = None,
    employee_id: Optional[str] = None,
    status: Optional[EnrollmentStatus] = None,
) -> List[models.Enrollment]:
    q = db.query(models.Enrollment)
    if session_id is not None:
        q = q.filter(models.Enrollment.session_id == session_id)
    if employee_id:
        q = q.filter(models.Enrollment.employee_id == employee_id)
    if status is not None:
        q = q.filter(models.Enrollment.status == status)
    return q.order_by(models.Enrollment.created_at.desc(), models.Enrollment.id.desc()).all()


def get_enrollment(db: Session, enrollment_id: int) -> Optional[models.Enrollment]:
    return db.query(models.Enrollment).filter(models.Enrollment.id == enrollment_id).first()


def get_enrollment_or_404(db: Session, enrollment_id: int) -> models.Enrollment:
    enrollment = get_enrollment(db, enrollment_id)
    if enrollment is None:
        raise NotFound("Enrollment not found.")
    return enrollment


def _enrollment_reference(db: Session, enrollment_id: int) -> models.Enrollment:
    enrollment = get_enrollment(db, enrollment_id)
    if enrollment is None:
        raise InvalidInput.for_field("enrollment_id", "enrollment not found")
    return enrollment


def create_enrollment(
    db: Session,
    *,
    payload: schemas.EnrollmentCreate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.Enrollment:
    privileged = has_role(actor, *_PRIVILEGED)
    employee_id = payload.employee_id or actor.id
    if not privileged:
        if employee_id != actor.id:
            raise Forbidden("Employees may only enroll themselves.")
        if payload.status != EnrollmentStatus.ENROLLED:
            raise Forbidden("Only managers can record attendance or completion.")

    session = get_session(db, payload.session_id)
    if session is None:
        raise InvalidInput.for_field("session_id", "training session not found")
    employee = db.query(account_models.User).filter(account_models.User.id == employee_id).first()
    if employee is None:
        raise InvalidInput.for_field("employee_id", "employee not found")
    if session.status in _CLOSED_SESSION_STATES:
        raise InvalidInput.for_field("session_id", f"session is {session.status.value}")

    existing = (
        db.query(models.Enrollment.id)
        .filter(
            models.Enrollment.session_id == session.id,
            models.Enrollment.employee_id == employee_id,
        )
        .first()
    )
    if existing:
        raise Conflict("Employee is already enrolled in this session.")
    if session.max_participants:
        taken = (
            db.query(func.count(models.Enrollment.id))
            .filter(models.Enrollment.session_id == session.id)
            .scalar()
        )
        if taken >= session.max_participants:
            raise Conflict("Session is full.")

    data = payload.model_dump()
    data["employee_id"] = employee_id
    if data["status"] == EnrollmentStatus.COMPLETED and data.get("completion_date") is None:
        data["completion_date"] = _utcnow()

    try:
        with transaction(db):
            enrollment = models.Enrollment(**data)
            db.add(enrollment)
            db.flush()
            _audit_create(db, "training_enrollment", enrollment, actor, meta)
    except IntegrityError:
        raise Conflict("Employee is already enrolled in this session.")
    db.refresh(enrollment)
    return enrollment


def update_enrollment(
    db: Session,
    *,
    enrollment_id: int,
    payload: schemas.EnrollmentUpdate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.Enrollment:
    enrollment = get_enrollment_or_404(db, enrollment_id)
    data = payload.model_dump(exclude_unset=True)

    if "status" in data:
        if data["status"] is None:
            raise InvalidInput.for_field("status", "cannot be null")
        lifecycle.ensure_transition(enrollment.status, data["status"])
        if data["status"] != enrollment.status:
            logger.info(
                "Enrollment status change",
                extra={"enrollment_id": enrollment.id, "from": enrollment.status.value, "to": data["status"].value},
            )
        if (
            data["status"] == EnrollmentStatus.COMPLETED
            and data.get("completion_date") is None
            and enrollment.completion_date is None
        ):
            data["completion_date"] = _utcnow()

    with transaction(db):
        _apply_update(db, "training_enrollment", enrollment, data, actor, meta)
    db.refresh(enrollment)
    return enrollment


def delete_enrollment(
    db: Session,
    *,
    enrollment_id: int,
    actor: account_models.User,
    meta: RequestMeta,
) -> bool:
    enrollment = get_enrollment(db, enrollment_id)
    if enrollment is None:
        return False
    dependants = (
        (models.TrainingFeedback, models.TrainingFeedback.enrollment_id),
        (models.EffectivenessEvaluation, models.EffectivenessEvaluation.enrollment_id),
        (models.EvidenceAttachment, models.EvidenceAttachment.enrollment_id),
    )
    for model, column in dependants:
        if db.query(model.id).filter(column == enrollment.id).first():
            raise Conflict("Enrollment has feedback, evaluations or evidence and cannot be deleted.")

    _delete(db, "training_enrollment", enrollment, actor, meta)
    return True


# ---------------------------------------------------------------------------
# FEEDBACK
# ---------------------------------------------------------------------------


def list_feedback(
    db: Session,
    *,
    session_id: Optional[int] = None,
    enrollment_id: Optional[int] = None,
    employee_id: Optional[str] = None,
) -> List[models.TrainingFeedback]:
    q = db.query(models.TrainingFeedback)
    if session_id is not None:
        q = q.filter(models.TrainingFeedback.session_id == session_id)
    if enrollment_id is not None:
        q = q.filter(models.TrainingFeedback.enrollment_id == enrollment_id)
    if employee_id:
        q = q.filter(models.TrainingFeedback.employee_id == employee_id)
    return q.order_by(models.TrainingFeedback.submitted_at.desc(), models.TrainingFeedback.id.desc()).all()


def create_feedback(
    db: Session,
    *,
    payload: schemas.FeedbackCreate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.TrainingFeedback:
    enrollment = _enrollment_reference(db, payload.enrollment_id)
    if not has_role(actor, *_PRIVILEGED) and enrollment.employee_id != actor.id:
        raise Forbidden("You can only give feedback on your own enrollments.")
    if payload.session_id is not None and payload.session_id != enrollment.session_id:
        raise InvalidInput.for_field("session_id", "does not match the enrollment's session")

    existing = (
        db.query(models.TrainingFeedback.id)
        .filter(models.TrainingFeedback.enrollment_id == enrollment.id)
        .first()
    )
    if existing:
        raise Conflict("Feedback has already been submitted for this enrollment.")

    data = payload.model_dump()
    data["session_id"] = enrollment.session_id
    data["employee_id"] = actor.id

    try:
        with transaction(db):
            feedback = models.TrainingFeedback(**data)
            db.add(feedback)
            db.flush()
            _audit_create(db, "training_feedback", feedback, actor, meta)
    except IntegrityError:
        raise Conflict("Feedback has already been submitted for this enrollment.")
    db.refresh(feedback)
    return feedback


# ---------------------------------------------------------------------------
# EFFECTIVENESS EVALUATIONS
# ---------------------------------------------------------------------------


def list_evaluations(
    db: Session,
    *,
    user: account_models.User,
    enrollment_id: Optional[int] = None,
) -> List[models.EffectivenessEvaluation]:
    """
    Managers see the evaluations they authored; employees see their own.
    """
    q = db.query(models.EffectivenessEvaluation)
    if has_role(user, *_PRIVILEGED):
        q = q.filter(models.EffectivenessEvaluation.manager_id == user.id)
    else:
        q = q.filter(models.EffectivenessEvaluation.employee_id == user.id)
    if enrollment_id is not None:
        q = q.filter(models.EffectivenessEvaluation.enrollment_id == enrollment_id)
    return q.order_by(
        models.EffectivenessEvaluation.evaluation_date.desc(),
        models.EffectivenessEvaluation.id.desc(),
    ).all()


def get_evaluation_or_404(db: Session, evaluation_id: int) -> models.EffectivenessEvaluation:
    evaluation = (
        db.query(models.EffectivenessEvaluation)
        .filter(models.EffectivenessEvaluation.id == evaluation_id)
        .first()
    )
    if evaluation is None:
        raise NotFound("Evaluation not found.")
    return evaluation


def create_evaluation(
    db: Session,
    *,
    payload: schemas.EvaluationCreate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.EffectivenessEvaluation:
    enrollment = _enrollment_reference(db, payload.enrollment_id)

    data = payload.model_dump()
    data["employee_id"] = enrollment.employee_id
    data["manager_id"] = actor.id
    if data.get("evaluation_date") is None:
        data["evaluation_date"] = _utcnow()

    with transaction(db):
        evaluation = models.EffectivenessEvaluation(**data)
        db.add(evaluation)
        db.flush()
        _audit_create(db, "effectiveness_evaluation", evaluation, actor, meta)
    db.refresh(evaluation)
    return evaluation


def update_evaluation(
    db: Session,
    *,
    evaluation_id: int,
    payload: schemas.EvaluationUpdate,
    actor: account_models.User,
    meta: RequestMeta,
) -> models.EffectivenessEvaluation:
    evaluation = get_evaluation_or_404(db, evaluation_id)
    data = payload.model_dump(exclude_unset=True)
    for required in ("evaluation_date", "overall_effectiveness", "follow_up_required"):
        if required in data and data[required] is None:
            raise InvalidInput.for_field(required, "cannot be null")

    with transaction(db):
        _apply_update(db, "effectiveness_evaluation", evaluation, data, actor, meta)
    db.refresh(evaluation)
    return evaluation

