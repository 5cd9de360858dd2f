from __future__ import annotations

from datetime import datetime

import pytest
from fastapi import HTTPException

from tmsdb.apps.accounts.models import UserRole
from tmsdb.apps.audit import models as audit_models
from tmsdb.apps.training import router, schemas, services
from tmsdb.apps.training.models import EnrollmentStatus, SessionStatus


def _enroll(db, actor, meta, **fields):
    return services.create_enrollment(
        db, payload=schemas.EnrollmentCreate(**fields), actor=actor, meta=meta
    )


def test_employee_enrolls_self(db_session, make_session, employee, meta):
    session = make_session()
    enrollment = _enroll(db_session, employee, meta, session_id=session.id)

    assert enrollment.employee_id == employee.id
    assert enrollment.status == EnrollmentStatus.ENROLLED
    read = schemas.EnrollmentRead.model_validate(enrollment)
    assert read.session.id == session.id


def test_unknown_session_is_invalid_input(db_session, employee, meta):
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, employee, meta, session_id=12345)
    assert exc.value.status_code == 400
    assert exc.value.detail == [{"field": "session_id", "reason": "training session not found"}]


def test_unknown_employee_is_invalid_input(db_session, make_session, manager, meta):
    session = make_session()
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, manager, meta, session_id=session.id, employee_id="nobody")
    assert exc.value.status_code == 400
    assert exc.value.detail[0]["field"] == "employee_id"


def test_double_enrollment_conflicts(db_session, make_session, employee, meta):
    session = make_session()
    _enroll(db_session, employee, meta, session_id=session.id)
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, employee, meta, session_id=session.id)
    assert exc.value.status_code == 409


def test_full_session_conflicts(db_session, make_session, make_user, manager, meta):
    session = make_session(max_participants=1)
    first = make_user(UserRole.EMPLOYEE)
    second = make_user(UserRole.EMPLOYEE)

    _enroll(db_session, manager, meta, session_id=session.id, employee_id=first.id)
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, manager, meta, session_id=session.id, employee_id=second.id)
    assert exc.value.status_code == 409
    assert exc.value.detail == "Session is full."


@pytest.mark.parametrize("state", [SessionStatus.CANCELLED, SessionStatus.COMPLETED])
def test_closed_session_rejects_enrollment(db_session, make_session, employee, meta, state):
    session = make_session(status=state)
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, employee, meta, session_id=session.id)
    assert exc.value.status_code == 400


def test_employee_cannot_enroll_someone_else(db_session, make_session, make_user, employee, meta):
    session = make_session()
    other = make_user(UserRole.EMPLOYEE)
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, employee, meta, session_id=session.id, employee_id=other.id)
    assert exc.value.status_code == 403


def test_employee_cannot_self_certify(db_session, make_session, employee, meta):
    session = make_session()
    with pytest.raises(HTTPException) as exc:
        _enroll(db_session, employee, meta, session_id=session.id, status=EnrollmentStatus.COMPLETED)
    assert exc.value.status_code == 403


def test_manager_recording_completion_stamps_date(db_session, make_session, employee, manager, meta):
    session = make_session()
    enrollment = _enroll(
        db_session,
        manager,
        meta,
        session_id=session.id,
        employee_id=employee.id,
        status=EnrollmentStatus.COMPLETED,
    )
    assert enrollment.completion_date is not None


def test_status_moves_forward_and_stamps_completion(db_session, make_session, make_enrollment, employee, manager, meta):
    enrollment = make_enrollment(make_session(), employee)

    services.update_enrollment(
        db_session,
        enrollment_id=enrollment.id,
        payload=schemas.EnrollmentUpdate(status=EnrollmentStatus.ATTENDED),
        actor=manager,
        meta=meta,
    )
    assert enrollment.completion_date is None

    services.update_enrollment(
        db_session,
        enrollment_id=enrollment.id,
        payload=schemas.EnrollmentUpdate(status=EnrollmentStatus.COMPLETED, score=92),
        actor=manager,
        meta=meta,
    )
    assert enrollment.status == EnrollmentStatus.COMPLETED
    assert enrollment.score == 92
    assert enrollment.completion_date is not None

    logs = (
        db_session.query(audit_models.AuditLog)
        .filter_by(entity_type="training_enrollment", entity_id=str(enrollment.id))
        .all()
    )
    assert len(logs) == 2
    assert {log.changes["status"]["to"] for log in logs} == {"attended", "completed"}


def test_completed_enrollment_cannot_go_back(db_session, make_session, make_enrollment, employee, manager, meta):
    enrollment = make_enrollment(
        make_session(),
        employee,
        status=EnrollmentStatus.COMPLETED,
        completion_date=datetime(2026, 1, 5),
    )
    with pytest.raises(HTTPException) as exc:
        services.update_enrollment(
            db_session,
            enrollment_id=enrollment.id,
            payload=schemas.EnrollmentUpdate(status=EnrollmentStatus.ENROLLED),
            actor=manager,
            meta=meta,
        )
    assert exc.value.status_code == 400
    assert exc.value.detail[0]["reason"] == "Cannot transition from completed to enrolled"
    assert enrollment.status == EnrollmentStatus.COMPLETED


def test_explicit_completion_date_is_kept(db_session, make_session, make_enrollment, employee, manager, meta):
    enrollment = make_enrollment(make_session(), employee)
    services.update_enrollment(
        db_session,
        enrollment_id=enrollment.id,
        payload=schemas.EnrollmentUpdate(status=EnrollmentStatus.COMPLETED, completion_date=datetime(2026, 2, 1)),
        actor=manager,
        meta=meta,
    )
    assert enrollment.completion_date.replace(tzinfo=None) == datetime(2026, 2, 1)


def test_employee_list_is_scoped_to_self(db_session, make_session, make_enrollment, make_user, employee, manager):
    session = make_session()
    mine = make_enrollment(session, employee)
    make_enrollment(session, make_user(UserRole.EMPLOYEE))

    own = router.list_enrollments(
        session_id=None, employee_id=None, status=None, db=db_session, current_user=employee
    )
    assert [e.id for e in own] == [mine.id]

    everyone = router.list_enrollments(
        session_id=session.id, employee_id=None, status=None, db=db_session, current_user=manager
    )
    assert len(everyone) == 2


def test_employee_cannot_read_other_enrollment(db_session, make_session, make_enrollment, make_user, employee):
    other = make_enrollment(make_session(), make_user(UserRole.EMPLOYEE))
    with pytest.raises(HTTPException) as exc:
        router.get_enrollment(other.id, db=db_session, current_user=employee)
    assert exc.value.status_code == 403

    with pytest.raises(HTTPException) as exc:
        router.list_employee_enrollments(other.employee_id, db=db_session, current_user=employee)
    assert exc.value.status_code == 403


def test_delete_enrollment_and_missing_id(db_session, make_session, make_enrollment, employee, manager, meta):
    enrollment = make_enrollment(make_session(), employee)
    assert services.delete_enrollment(db_session, enrollment_id=enrollment.id, actor=manager, meta=meta) is True
    assert services.delete_enrollment(db_session, enrollment_id=enrollment.id, actor=manager, meta=meta) is False
