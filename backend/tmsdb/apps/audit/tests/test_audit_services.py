from __future__ import annotations

import pytest

from tmsdb.apps.audit import models as audit_models
from tmsdb.apps.audit import router as audit_router
from tmsdb.apps.audit import services as audit_services
from tmsdb.database import transaction


def _record(db, meta, *, entity_id="1", entity_type="training_catalog", actor_id=None):
    return audit_services.record(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=audit_models.AuditAction.CREATE,
        actor_id=actor_id,
        meta=meta,
        changes={"title": "OSHA Basics"},
    )


def test_record_writes_row_in_callers_transaction(db_session, meta, hr_admin):
    with transaction(db_session):
        entry = _record(db_session, meta, entity_id=42, actor_id=hr_admin.id)

    stored = db_session.query(audit_models.AuditLog).one()
    assert stored.id == entry.id
    assert stored.entity_id == "42"
    assert stored.performed_by == hr_admin.id
    assert stored.user_agent == "pytest"
    assert stored.performed_at is not None


def test_failed_unit_of_work_leaves_no_audit_row(db_session, meta):
    with pytest.raises(ValueError):
        with transaction(db_session):
            _record(db_session, meta)
            raise ValueError("business write failed")

    assert db_session.query(audit_models.AuditLog).count() == 0


def test_audit_rows_cannot_be_modified(db_session, meta):
    with transaction(db_session):
        entry = _record(db_session, meta)

    entry.user_agent = "tampered"
    with pytest.raises(RuntimeError):
        db_session.commit()
    db_session.rollback()


def test_audit_rows_cannot_be_deleted(db_session, meta):
    with transaction(db_session):
        entry = _record(db_session, meta)

    db_session.delete(entry)
    with pytest.raises(RuntimeError):
        db_session.commit()
    db_session.rollback()


def test_list_is_newest_first_and_filtered(db_session, meta):
    with transaction(db_session):
        first = _record(db_session, meta, entity_id="1")
        second = _record(db_session, meta, entity_id="2")
        _record(db_session, meta, entity_id="3", entity_type="training_session")

    rows = audit_services.list_audit_logs(db_session, entity_type="training_catalog")
    assert [r.id for r in rows] == [second.id, first.id]

    rows = audit_services.list_audit_logs(db_session, entity_type="training_catalog", entity_id="1")
    assert [r.id for r in rows] == [first.id]


def test_limit_is_clamped(db_session, meta):
    with transaction(db_session):
        for i in range(3):
            _record(db_session, meta, entity_id=str(i))

    assert len(audit_services.list_audit_logs(db_session, limit=0)) == 1
    assert len(audit_services.list_audit_logs(db_session, limit=2)) == 2
    assert len(audit_services.list_audit_logs(db_session, limit=5000)) == 3


def test_snapshot_drops_password_hash(employee):
    data = audit_services.snapshot(employee)
    assert data["username"] == "worker"
    assert "hashed_password" not in data


def test_diff_reports_only_changed_keys():
    changes = audit_services.diff({"a": 1, "b": 2}, {"a": 1, "b": 3})
    assert changes == {"b": {"from": 2, "to": 3}}


def test_request_meta_reads_client_and_agent(http_request):
    meta = audit_services.request_meta(http_request)
    assert meta == audit_services.RequestMeta(ip_address="127.0.0.1", user_agent="pytest")
    assert audit_services.request_meta(None) == audit_services.RequestMeta()


def test_router_lists_logs(db_session, meta, hr_admin):
    with transaction(db_session):
        _record(db_session, meta)

    rows = audit_router.list_audit_logs(
        limit=10, entity_type=None, entity_id=None, db=db_session, current_user=hr_admin
    )
    assert len(rows) == 1
