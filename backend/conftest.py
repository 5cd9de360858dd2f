from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest
from starlette.requests import Request

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

import tmsdb  # noqa: E402,F401  registers every model on Base.metadata
from tmsdb.config import Settings  # noqa: E402
from tmsdb.database import Base, build_engine, build_session_factory  # noqa: E402
from tmsdb.security import get_password_hash  # noqa: E402
from tmsdb.apps.accounts import models as account_models  # noqa: E402
from tmsdb.apps.audit.services import RequestMeta  # noqa: E402
from tmsdb.apps.training import models as training_models  # noqa: E402

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_write_url=TEST_DATABASE_URL,
        secret_key="test-secret-key",
        upload_dir=tmp_path / "uploads",
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture()
def db_session(settings):
    engine = build_engine(TEST_DATABASE_URL, settings)
    Base.metadata.create_all(bind=engine)
    TestingSession = build_session_factory(engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def http_request() -> Request:
    return Request(
        {
            "type": "http",
            "headers": [(b"user-agent", b"pytest")],
            "client": ("127.0.0.1", 1234),
        }
    )


@pytest.fixture()
def password_hash() -> str:
    # One hash per test, shared by every user it creates.
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture()
def make_user(db_session, password_hash):
    counter = {"n": 0}

    def _make(
        role: account_models.UserRole = account_models.UserRole.EMPLOYEE,
        *,
        username: Optional[str] = None,
        department: Optional[str] = None,
        is_active: bool = True,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> account_models.User:
        counter["n"] += 1
        user = account_models.User(
            username=username or f"{role.value}{counter['n']}",
            hashed_password=password_hash,
            role=role,
            department=department,
            is_active=is_active,
            first_name=first_name,
            last_name=last_name,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def hr_admin(make_user):
    return make_user(account_models.UserRole.HR_ADMIN, username="hr")


@pytest.fixture()
def manager(make_user):
    return make_user(account_models.UserRole.MANAGER, username="boss", department="Assembly")


@pytest.fixture()
def employee(make_user):
    return make_user(
        account_models.UserRole.EMPLOYEE,
        username="worker",
        department="Assembly",
        first_name="Ada",
        last_name="Lovelace",
    )


@pytest.fixture()
def meta():
    return RequestMeta(ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture()
def make_catalog(db_session):
    def _make(title: str = "OSHA Basics", **overrides) -> training_models.CatalogEntry:
        values = dict(
            title=title,
            type=training_models.CatalogType.INTERNAL,
            category="safety",
            duration=4,
            currency="USD",
            is_required=False,
        )
        values.update(overrides)
        entry = training_models.CatalogEntry(**values)
        db_session.add(entry)
        db_session.commit()
        db_session.refresh(entry)
        return entry

    return _make


@pytest.fixture()
def make_session(db_session):
    def _make(catalog=None, **overrides) -> training_models.TrainingSession:
        values = dict(
            catalog_id=catalog.id if catalog is not None else None,
            title=catalog.title if catalog is not None else "Toolbox talk",
            session_date=datetime(2026, 3, 10, 9, 0),
            duration=catalog.duration if catalog is not None else 1,
            trainer_type=training_models.TrainerType.INTERNAL,
            status=training_models.SessionStatus.SCHEDULED,
        )
        values.update(overrides)
        session = training_models.TrainingSession(**values)
        db_session.add(session)
        db_session.commit()
        db_session.refresh(session)
        return session

    return _make


@pytest.fixture()
def make_enrollment(db_session):
    def _make(session, employee, **overrides) -> training_models.Enrollment:
        values = dict(
            session_id=session.id,
            employee_id=employee.id,
            status=training_models.EnrollmentStatus.ENROLLED,
        )
        values.update(overrides)
        enrollment = training_models.Enrollment(**values)
        db_session.add(enrollment)
        db_session.commit()
        db_session.refresh(enrollment)
        return enrollment

    return _make
