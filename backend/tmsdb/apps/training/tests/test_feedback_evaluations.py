from __future__ import annotations

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from tmsdb.apps.accounts.models import UserRole
from tmsdb.apps.training import router_feedback, schemas, services
from tmsdb.apps.training.models import EnrollmentStatus

RATINGS = dict(overall_rating=5, content_rating=4, trainer_rating=5, relevance_rating=3)


@pytest.fixture()
def enrollment(make_session, make_enrollment, employee):
    return make_enrollment(make_session(), employee, status=EnrollmentStatus.ATTENDED)


def test_employee_submits_feedback(db_session, enrollment, employee, meta):
    feedback = services.create_feedback(
        db_session,
        payload=schemas.FeedbackCreate(enrollment_id=enrollment.id, comments="Useful", **RATINGS),
        actor=employee,
        meta=meta,
    )
    assert feedback.session_id == enrollment.session_id
    assert feedback.employee_id == employee.id
    assert feedback.submitted_at is not None


def test_feedback_only_once_per_enrollment(db_session, enrollment, employee, meta):
    payload = schemas.FeedbackCreate(enrollment_id=enrollment.id, **RATINGS)
    services.create_feedback(db_session, payload=payload, actor=employee, meta=meta)
    with pytest.raises(HTTPException) as exc:
        services.create_feedback(db_session, payload=payload, actor=employee, meta=meta)
    assert exc.value.status_code == 409


def test_feedback_on_someone_elses_enrollment_is_forbidden(db_session, enrollment, make_user, meta):
    stranger = make_user(UserRole.EMPLOYEE)
    with pytest.raises(HTTPException) as exc:
        services.create_feedback(
            db_session,
            payload=schemas.FeedbackCreate(enrollment_id=enrollment.id, **RATINGS),
            actor=stranger,
            meta=meta,
        )
    assert exc.value.status_code == 403


def test_feedback_session_must_match_enrollment(db_session, enrollment, employee, meta):
    with pytest.raises(HTTPException) as exc:
        services.create_feedback(
            db_session,
            payload=schemas.FeedbackCreate(enrollment_id=enrollment.id, session_id=enrollment.session_id + 1, **RATINGS),
            actor=employee,
            meta=meta,
        )
    assert exc.value.status_code == 400


def test_feedback_for_unknown_enrollment_is_invalid(db_session, employee, meta):
    with pytest.raises(HTTPException) as exc:
        services.create_feedback(
            db_session,
            payload=schemas.FeedbackCreate(enrollment_id=999, **RATINGS),
            actor=employee,
            meta=meta,
        )
    assert exc.value.status_code == 400


@pytest.mark.parametrize("rating", [0, 6])
def test_ratings_are_one_to_five(rating):
    with pytest.raises(ValidationError):
        schemas.FeedbackCreate(enrollment_id=1, **{**RATINGS, "overall_rating": rating})


def test_employee_only_lists_own_feedback(db_session, make_session, make_enrollment, make_user, employee, manager, meta):
    session = make_session()
    other = make_user(UserRole.EMPLOYEE)
    for person in (employee, other):
        e = make_enrollment(session, person)
        services.create_feedback(
            db_session,
            payload=schemas.FeedbackCreate(enrollment_id=e.id, **RATINGS),
            actor=person,
            meta=meta,
        )

    own = router_feedback.list_feedback(session_id=None, enrollment_id=None, db=db_session, current_user=employee)
    assert [f.employee_id for f in own] == [employee.id]
    everyone = router_feedback.list_feedback(session_id=session.id, enrollment_id=None, db=db_session, current_user=manager)
    assert len(everyone) == 2


def test_manager_evaluates_enrollment(db_session, enrollment, employee, manager, meta):
    evaluation = services.create_evaluation(
        db_session,
        payload=schemas.EvaluationCreate(
            enrollment_id=enrollment.id,
            overall_effectiveness=4,
            knowledge_application=5,
            follow_up_required=True,
        ),
        actor=manager,
        meta=meta,
    )
    assert evaluation.employee_id == employee.id
    assert evaluation.manager_id == manager.id
    assert evaluation.evaluation_date is not None

    updated = services.update_evaluation(
        db_session,
        evaluation_id=evaluation.id,
        payload=schemas.EvaluationUpdate(follow_up_required=False, comments="Resolved"),
        actor=manager,
        meta=meta,
    )
    assert updated.follow_up_required is False
    assert updated.comments == "Resolved"


def test_evaluation_visibility(db_session, enrollment, employee, manager, make_user, meta):
    services.create_evaluation(
        db_session,
        payload=schemas.EvaluationCreate(enrollment_id=enrollment.id, overall_effectiveness=3),
        actor=manager,
        meta=meta,
    )
    other_manager = make_user(UserRole.MANAGER)

    assert len(router_feedback.list_evaluations(enrollment_id=None, db=db_session, current_user=employee)) == 1
    assert len(router_feedback.list_evaluations(enrollment_id=None, db=db_session, current_user=manager)) == 1
    assert router_feedback.list_evaluations(enrollment_id=None, db=db_session, current_user=other_manager) == []


def test_update_unknown_evaluation_is_404(db_session, manager, meta):
    with pytest.raises(HTTPException) as exc:
        services.update_evaluation(
            db_session,
            evaluation_id=77,
            payload=schemas.EvaluationUpdate(comments="x"),
            actor=manager,
            meta=meta,
        )
    assert exc.value.status_code == 404


def test_enrollment_with_feedback_cannot_be_deleted(db_session, enrollment, employee, manager, meta):
    services.create_feedback(
        db_session,
        payload=schemas.FeedbackCreate(enrollment_id=enrollment.id, **RATINGS),
        actor=employee,
        meta=meta,
    )
    with pytest.raises(HTTPException) as exc:
        services.delete_enrollment(db_session, enrollment_id=enrollment.id, actor=manager, meta=meta)
    assert exc.value.status_code == 409
