from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi import HTTPException

from tmsdb.apps.accounts.models import UserRole
from tmsdb.apps.audit import models as audit_models
from tmsdb.apps.compliance import models, router, schemas, services
from tmsdb.apps.training.models import EnrollmentStatus

TODAY = date(2026, 1, 1)


def _requirement(db, catalog, **overrides):
    values = dict(standard="ISO45001", requirement="Hold a current certificate", catalog_id=catalog.id)
    values.update(overrides)
    requirement = models.ComplianceRequirement(**values)
    db.add(requirement)
    db.commit()
    return requirement


def _complete(make_session, make_enrollment, catalog, person, when):
    return make_enrollment(
        make_session(catalog),
        person,
        status=EnrollmentStatus.COMPLETED,
        completion_date=when,
    )


def _by_id(rows):
    return {row.employee_id: row for row in rows}


def test_empty_organisation_has_zero_compliance(db_session):
    metrics = services.dashboard_metrics(db_session, today=TODAY)
    assert metrics.employee_count == 0
    assert metrics.overall_compliance == 0.0
    assert metrics.required_trainings_per_employee == 0.0


def test_configured_divisor_with_no_employees_is_zero(db_session, manager):
    metrics = services.dashboard_metrics(db_session, required_per_employee=4, today=TODAY)
    assert metrics.overall_compliance == 0.0


def test_employees_with_nothing_required_are_fully_compliant(db_session, make_catalog, employee, make_user):
    make_user(UserRole.EMPLOYEE)
    make_catalog("Optional Welding")

    metrics = services.dashboard_metrics(db_session, today=TODAY)

    assert metrics.employee_count == 2
    assert metrics.required_trainings_per_employee == 0.0
    assert metrics.overall_compliance == 100.0


def test_dashboard_route_uses_settings(db_session, settings, manager):
    metrics = router.dashboard_metrics(db=db_session, settings=settings, current_user=manager)
    assert isinstance(metrics, schemas.DashboardMetrics)
    assert metrics.active_employees == 1


def test_derived_divisor_and_percentage(db_session, make_catalog, make_session, make_enrollment, make_user, employee, manager):
    painter = make_user(UserRole.EMPLOYEE, department="Paint")
    everyone = make_catalog("Lockout Tagout", is_required=True)
    assembly_only = make_catalog("Torque Tools")
    _requirement(db_session, assembly_only, department="Assembly")

    _complete(make_session, make_enrollment, everyone, employee, datetime(2025, 12, 1))
    make_enrollment(make_session(assembly_only), painter)

    metrics = services.dashboard_metrics(db_session, today=TODAY)

    assert metrics.employee_count == 2
    assert metrics.active_employees == 3
    assert metrics.pending_trainings == 1
    assert metrics.completed_trainings == 1
    # employee: 2 applicable, painter: 1 applicable
    assert metrics.required_trainings_per_employee == 1.5
    assert metrics.overall_compliance == 33.3


def test_configured_divisor(db_session, make_catalog, make_session, make_enrollment, make_user, employee):
    make_user(UserRole.EMPLOYEE)
    entry = make_catalog(is_required=True)
    _complete(make_session, make_enrollment, entry, employee, datetime(2025, 12, 1))

    metrics = services.dashboard_metrics(db_session, required_per_employee=2, today=TODAY)

    assert metrics.required_trainings_per_employee == 2.0
    assert metrics.overall_compliance == 25.0


def test_expiring_and_expired_certificates(db_session, make_catalog, make_session, make_enrollment, make_user, employee):
    entry = make_catalog(is_required=True, validity_period=12)
    forever = make_catalog("Induction", validity_period=None)
    _complete(make_session, make_enrollment, entry, employee, datetime(2025, 1, 20))
    _complete(make_session, make_enrollment, entry, make_user(UserRole.EMPLOYEE), datetime(2024, 11, 3))
    _complete(make_session, make_enrollment, entry, make_user(UserRole.EMPLOYEE), datetime(2025, 9, 1))
    _complete(make_session, make_enrollment, forever, employee, datetime(2015, 1, 1))

    metrics = services.dashboard_metrics(db_session, lookahead_days=30, today=TODAY)

    assert metrics.expiring_certificates == 1
    assert metrics.expired_certificates == 1
    assert metrics.completed_trainings == 4


def test_employee_status_and_missing_trainings(db_session, make_catalog, make_session, make_enrollment, make_user, employee):
    painter = make_user(UserRole.EMPLOYEE, department="Paint", first_name="Grace", last_name="Hopper")
    lockout = make_catalog("Lockout Tagout", is_required=True, validity_period=12)
    spray = make_catalog("Spray Booth", is_required=True)
    _requirement(db_session, spray, department="Paint")

    _complete(make_session, make_enrollment, lockout, employee, datetime(2025, 6, 15))

    rows = _by_id(services.employee_compliance(db_session, today=TODAY))

    ada = rows[employee.id]
    assert ada.employee_name == "Ada Lovelace"
    assert ada.compliance_status == services.COMPLIANT
    assert ada.required_count == 1
    assert ada.completed_count == 1
    assert ada.last_training == "Lockout Tagout"
    assert ada.next_due == date(2026, 6, 15)
    assert ada.missing_trainings == []

    grace = rows[painter.id]
    assert grace.compliance_status == services.NON_COMPLIANT
    assert grace.missing_trainings == ["Lockout Tagout", "Spray Booth"]
    assert grace.last_training is None


def test_expired_completion_does_not_count(db_session, make_catalog, make_session, make_enrollment, employee):
    entry = make_catalog(is_required=True, validity_period=6)
    _complete(make_session, make_enrollment, entry, employee, datetime(2025, 1, 1))

    [row] = services.employee_compliance(db_session, today=TODAY)
    assert row.compliance_status == services.NON_COMPLIANT
    assert row.missing_trainings == ["OSHA Basics"]


def test_no_applicable_requirements_is_compliant(db_session, employee, make_user):
    make_user(UserRole.EMPLOYEE)
    rows = services.employee_compliance(db_session, today=TODAY)
    assert {r.compliance_status for r in rows} == {services.COMPLIANT}
    assert {r.department for r in rows} == {"Assembly", services.UNASSIGNED_DEPARTMENT}


def test_role_scoped_requirement(db_session, make_catalog, employee):
    entry = make_catalog("Supervisor Basics")
    _requirement(db_session, entry, role=UserRole.MANAGER.value)

    [row] = services.employee_compliance(db_session, today=TODAY)
    assert row.required_count == 0


def test_inactive_requirement_is_ignored(db_session, make_catalog, employee):
    entry = make_catalog(is_required=True)
    _requirement(db_session, entry, department="Paint", is_active=False)

    [row] = services.employee_compliance(db_session, today=TODAY)
    assert row.required_count == 1


def test_department_filter(db_session, employee, make_user):
    make_user(UserRole.EMPLOYEE, department="Paint")
    rows = services.employee_compliance(db_session, today=TODAY, department="Paint")
    assert [r.department for r in rows] == ["Paint"]


def test_requirement_crud(db_session, http_request, make_catalog, hr_admin, manager):
    entry = make_catalog()
    created = router.create_requirement(
        schemas.ComplianceRequirementCreate(
            standard="OSHA 29 CFR 1910",
            requirement="Annual lockout refresher",
            department=" Assembly ",
            role=UserRole.EMPLOYEE,
            catalog_id=entry.id,
        ),
        http_request,
        db=db_session,
        current_user=hr_admin,
    )
    assert created.department == "Assembly"
    assert schemas.ComplianceRequirementRead.model_validate(created).role == UserRole.EMPLOYEE

    updated = router.update_requirement(
        created.id,
        schemas.ComplianceRequirementUpdate(is_active=False),
        http_request,
        db=db_session,
        current_user=hr_admin,
    )
    assert updated.is_active is False
    assert router.list_requirements(catalog_id=None, active_only=True, db=db_session, current_user=manager) == []

    result = router.delete_requirement(created.id, http_request, db=db_session, current_user=hr_admin)
    assert result.deleted is True
    actions = [
        log.action
        for log in db_session.query(audit_models.AuditLog)
        .filter_by(entity_type="compliance_requirement")
        .order_by(audit_models.AuditLog.id)
    ]
    assert actions == [
        audit_models.AuditAction.CREATE,
        audit_models.AuditAction.UPDATE,
        audit_models.AuditAction.DELETE,
    ]


def test_requirement_needs_existing_catalog(db_session, hr_admin, meta):
    with pytest.raises(HTTPException) as exc:
        services.create_requirement(
            db_session,
            payload=schemas.ComplianceRequirementCreate(standard="ISO", requirement="x", catalog_id=999),
            actor=hr_admin,
            meta=meta,
        )
    assert exc.value.status_code == 400
