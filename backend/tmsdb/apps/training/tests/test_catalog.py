from __future__ import annotations

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from tmsdb.apps.audit import models as audit_models
from tmsdb.apps.compliance import models as compliance_models
from tmsdb.apps.training import router, schemas, services
from tmsdb.apps.training.models import CatalogType
from tmsdb.utils.money import to_minor_units


def _audit_rows(db, entity_type="training_catalog"):
    return db.query(audit_models.AuditLog).filter_by(entity_type=entity_type).all()


def test_hr_admin_creates_minimal_internal_entry(db_session, http_request, hr_admin):
    payload = schemas.CatalogEntryCreate(title="OSHA Basics", type="internal", category="safety", duration=4)

    entry = router.create_catalog_entry(payload, http_request, db=db_session, current_user=hr_admin)

    assert entry.id is not None
    assert entry.created_at is not None
    assert entry.cost is None
    assert entry.provider_name is None
    assert entry.currency == "USD"
    assert entry.created_by == hr_admin.id

    read = schemas.CatalogEntryRead.model_validate(entry)
    assert read.title == "OSHA Basics"
    [log] = _audit_rows(db_session)
    assert log.action == audit_models.AuditAction.CREATE
    assert log.entity_id == str(entry.id)


@pytest.mark.parametrize("entry_type", ["internal", "certification", "compliance"])
def test_non_external_entries_need_no_provider(entry_type):
    payload = schemas.CatalogEntryCreate(title="Forklift", type=entry_type, category="Technical", duration=2)
    assert payload.provider_name is None
    assert payload.category == "technical"


@pytest.mark.parametrize("provider", [None, "", "   "])
def test_external_entry_requires_provider(provider):
    with pytest.raises(ValidationError) as exc:
        schemas.CatalogEntryCreate(
            title="Fire Safety",
            type="external",
            category="safety",
            duration=6,
            provider_name=provider,
        )
    assert [e["loc"] for e in exc.value.errors()] == [("provider_name",)]


def test_cost_is_stored_in_minor_units(db_session, hr_admin, meta):
    payload = schemas.CatalogEntryCreate(
        title="Fire Safety",
        type="external",
        category="safety",
        duration=6,
        cost="250.00",
        currency="usd",
        provider_name="Fire Safety Institute",
    )
    entry = services.create_catalog_entry(db_session, payload=payload, actor=hr_admin, meta=meta)

    assert entry.cost == 25000
    assert entry.currency == "USD"
    assert f"{entry.cost / 100:.2f}" == "250.00"


@pytest.mark.parametrize(
    "raw,expected",
    [("250.00", 25000), (250, 25000), ("19.995", 2000), ("", None), (None, None)],
)
def test_to_minor_units(raw, expected):
    assert to_minor_units(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "-1", True])
def test_to_minor_units_rejects_bad_amounts(raw):
    with pytest.raises(ValueError):
        to_minor_units(raw)


def test_negative_cost_is_a_validation_error():
    with pytest.raises(ValidationError):
        schemas.CatalogEntryCreate(title="x", type="internal", category="safety", duration=1, cost="-5")


def test_list_catalog_filters(db_session, make_catalog):
    make_catalog("Lockout Tagout", is_required=True)
    make_catalog("ISO 9001 Awareness", category="quality")
    make_catalog("Fire Safety", type=CatalogType.EXTERNAL, provider_name="FSI")

    assert [e.title for e in services.list_catalog(db_session)] == [
        "Fire Safety",
        "ISO 9001 Awareness",
        "Lockout Tagout",
    ]
    assert [e.title for e in services.list_catalog(db_session, is_required=True)] == ["Lockout Tagout"]
    assert [e.title for e in services.list_catalog(db_session, category="Quality")] == ["ISO 9001 Awareness"]
    assert [e.title for e in services.list_catalog(db_session, type=CatalogType.EXTERNAL)] == ["Fire Safety"]


def test_update_records_diff(db_session, make_catalog, manager, meta):
    entry = make_catalog()
    services.update_catalog_entry(
        db_session,
        entry_id=entry.id,
        payload=schemas.CatalogEntryUpdate(duration=8, cost="12.50"),
        actor=manager,
        meta=meta,
    )

    assert entry.duration == 8
    assert entry.cost == 1250
    [log] = _audit_rows(db_session)
    assert log.action == audit_models.AuditAction.UPDATE
    assert log.changes["duration"] == {"from": 4, "to": 8}
    assert log.changes["cost"] == {"from": None, "to": 1250}


def test_update_to_external_without_provider_is_rejected(db_session, make_catalog, manager, meta):
    entry = make_catalog()
    with pytest.raises(HTTPException) as exc:
        services.update_catalog_entry(
            db_session,
            entry_id=entry.id,
            payload=schemas.CatalogEntryUpdate(type=CatalogType.EXTERNAL),
            actor=manager,
            meta=meta,
        )
    assert exc.value.status_code == 400
    assert exc.value.detail[0]["field"] == "provider_name"
    assert entry.type == CatalogType.INTERNAL
    assert _audit_rows(db_session) == []


def test_update_cannot_null_required_field(db_session, make_catalog, manager, meta):
    entry = make_catalog()
    with pytest.raises(HTTPException) as exc:
        services.update_catalog_entry(
            db_session,
            entry_id=entry.id,
            payload=schemas.CatalogEntryUpdate(title=None),
            actor=manager,
            meta=meta,
        )
    assert exc.value.status_code == 400


@pytest.mark.parametrize("field", ["title", "category", "currency"])
def test_update_rejects_blank_text(field):
    with pytest.raises(ValidationError):
        schemas.CatalogEntryUpdate(**{field: "   "})


def test_update_strips_text_fields(db_session, make_catalog, manager, meta):
    entry = make_catalog()
    services.update_catalog_entry(
        db_session,
        entry_id=entry.id,
        payload=schemas.CatalogEntryUpdate(title=" Lockout Tagout ", category=" Technical ", currency=" eur "),
        actor=manager,
        meta=meta,
    )

    assert entry.title == "Lockout Tagout"
    assert entry.category == "technical"
    assert entry.currency == "EUR"


def test_get_unknown_entry_is_404(db_session, employee):
    with pytest.raises(HTTPException) as exc:
        router.get_catalog_entry(999, db=db_session, current_user=employee)
    assert exc.value.status_code == 404


def test_delete_unknown_entry_returns_false(db_session, http_request, hr_admin):
    result = router.delete_catalog_entry(999, http_request, db=db_session, current_user=hr_admin)
    assert result.deleted is False
    assert _audit_rows(db_session) == []


def test_delete_entry_keeps_snapshot_in_audit(db_session, make_catalog, hr_admin, meta):
    entry = make_catalog()
    entry_id = entry.id

    assert services.delete_catalog_entry(db_session, entry_id=entry_id, actor=hr_admin, meta=meta) is True
    assert services.get_catalog_entry(db_session, entry_id) is None
    [log] = _audit_rows(db_session)
    assert log.action == audit_models.AuditAction.DELETE
    assert log.changes["title"] == "OSHA Basics"


def test_delete_entry_with_sessions_conflicts(db_session, make_catalog, make_session, hr_admin, meta):
    entry = make_catalog()
    make_session(entry)
    with pytest.raises(HTTPException) as exc:
        services.delete_catalog_entry(db_session, entry_id=entry.id, actor=hr_admin, meta=meta)
    assert exc.value.status_code == 409


def test_delete_entry_with_requirements_conflicts(db_session, make_catalog, hr_admin, meta):
    entry = make_catalog()
    db_session.add(
        compliance_models.ComplianceRequirement(standard="OSHA", requirement="Annual refresher", catalog_id=entry.id)
    )
    db_session.commit()
    with pytest.raises(HTTPException) as exc:
        services.delete_catalog_entry(db_session, entry_id=entry.id, actor=hr_admin, meta=meta)
    assert exc.value.status_code == 409
