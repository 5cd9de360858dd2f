# backend/tmsdb/apps/training/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(enum_cls):
    return [m.value for m in enum_cls]


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class CatalogType(str, enum.Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    CERTIFICATION = "certification"
    COMPLIANCE = "compliance"


class TrainerType(str, enum.Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EnrollmentStatus(str, enum.Enum):
    """
    enrolled -> attended | absent | completed, attended -> completed.
    See lifecycle.py for the guard.
    """

    ENROLLED = "enrolled"
    ATTENDED = "attended"
    COMPLETED = "completed"
    ABSENT = "absent"


# ---------------------------------------------------------------------------
# TRAINING CATALOG
# ---------------------------------------------------------------------------


class CatalogEntry(Base):
    """
    A course the organisation offers or recognises.

    - validity_period = months a completion stays valid; NULL = never expires
    - cost            = integer minor units (cents), currency defaults to USD
    - provider_name   = mandatory when type == external
    """

    __tablename__ = "training_catalog"
    __table_args__ = (
        Index("idx_training_catalog_required", "is_required"),
        Index("idx_training_catalog_type_category", "type", "category"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(CatalogType, name="catalog_type_enum", values_callable=_values), nullable=False)
    category = Column(String(64), nullable=False, doc="safety, quality, compliance, technical, ...")
    duration = Column("duration_hours", Integer, nullable=False)
    validity_period = Column("validity_period_months", Integer, nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    compliance_standard = Column(String(128), nullable=True, doc="ISO45001, OSHA 29 CFR 1926, ...")
    prerequisites = Column(Text, nullable=True)

    trainer_name = Column(String(255), nullable=True)
    trainer_type = Column(Enum(TrainerType, name="trainer_type_enum", values_callable=_values), nullable=True)

    cost = Column(Integer, nullable=True, doc="Minor currency units (e.g. cents).")
    currency = Column(String(3), nullable=False, default="USD")
    provider_name = Column(String(255), nullable=True)
    provider_contact = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    external_url = Column(String(512), nullable=True)

    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    sessions = relationship("TrainingSession", back_populates="catalog", lazy="selectin")

    def __repr__(self) -> str:
        return f"<CatalogEntry {self.id} {self.title!r} ({self.type})>"


# ---------------------------------------------------------------------------
# SESSIONS
# ---------------------------------------------------------------------------


class TrainingSession(Base):
    """
    A scheduled delivery of a catalog entry.
    """

    __tablename__ = "training_sessions"
    __table_args__ = (
        Index("idx_training_sessions_date", "session_date"),
        Index("idx_training_sessions_catalog_status", "catalog_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    catalog_id = Column(Integer, ForeignKey("training_catalog.id"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    session_date = Column(DateTime(timezone=True), nullable=False)
    duration = Column("duration_hours", Integer, nullable=False)
    venue = Column(String(255), nullable=True)
    trainer_name = Column(String(255), nullable=True)
    trainer_type = Column(Enum(TrainerType, name="trainer_type_enum", values_callable=_values), nullable=False)
    max_participants = Column(Integer, nullable=True)
    status = Column(
        Enum(SessionStatus, name="session_status_enum", values_callable=_values),
        nullable=False,
        default=SessionStatus.SCHEDULED,
    )
    materials = Column(Text, nullable=True, doc="JSON array of material URLs.")

    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    catalog = relationship("CatalogEntry", back_populates="sessions", lazy="joined")
    enrollments = relationship("Enrollment", back_populates="session", lazy="selectin")

    def __repr__(self) -> str:
        return f"<TrainingSession {self.id} {self.title!r} {self.status}>"


# ---------------------------------------------------------------------------
# ENROLLMENTS
# ---------------------------------------------------------------------------


class Enrollment(Base):
    __tablename__ = "training_enrollments"
    __table_args__ = (
        UniqueConstraint("session_id", "employee_id", name="uq_training_enrollments_session_employee"),
        Index("idx_training_enrollments_employee_status", "employee_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("training_sessions.id"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    status = Column(
        Enum(EnrollmentStatus, name="enrollment_status_enum", values_callable=_values),
        nullable=False,
        default=EnrollmentStatus.ENROLLED,
        index=True,
    )
    completion_date = Column(DateTime(timezone=True), nullable=True)
    score = Column(Integer, nullable=True)
    certificate_url = Column(String(512), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    session = relationship("TrainingSession", back_populates="enrollments", lazy="joined")
    employee = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        return f"<Enrollment {self.id} session={self.session_id} employee={self.employee_id} {self.status}>"


# ---------------------------------------------------------------------------
# FEEDBACK + EFFECTIVENESS
# ---------------------------------------------------------------------------


class TrainingFeedback(Base):
    """Trainee's rating of a session; at most one per enrollment."""

    __tablename__ = "training_feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    enrollment_id = Column(Integer, ForeignKey("training_enrollments.id"), nullable=False, unique=True)
    session_id = Column(Integer, ForeignKey("training_sessions.id"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    overall_rating = Column(Integer, nullable=False)
    content_rating = Column(Integer, nullable=False)
    trainer_rating = Column(Integer, nullable=False)
    relevance_rating = Column(Integer, nullable=False)
    comments = Column(Text, nullable=True)
    suggestions = Column(Text, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class EffectivenessEvaluation(Base):
    """Manager's post-training assessment of whether the training stuck."""

    __tablename__ = "effectiveness_evaluations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    enrollment_id = Column(Integer, ForeignKey("training_enrollments.id"), nullable=False, index=True)
    employee_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    manager_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    evaluation_date = Column(DateTime(timezone=True), nullable=False)
    knowledge_application = Column(Integer, nullable=True)
    behavior_change = Column(Integer, nullable=True)
    performance_improvement = Column(Integer, nullable=True)
    compliance_adherence = Column(Integer, nullable=True)
    overall_effectiveness = Column(Integer, nullable=False)
    comments = Column(Text, nullable=True)
    action_plan = Column(Text, nullable=True)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


# ---------------------------------------------------------------------------
# EVIDENCE FILES
# ---------------------------------------------------------------------------


class EvidenceAttachment(Base):
    """
    Metadata for an uploaded evidence file.

    file_name is the generated on-disk name; original_file_name and file_type
    are replayed on download.
    """

    __tablename__ = "evidence_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    enrollment_id = Column(Integer, ForeignKey("training_enrollments.id"), nullable=True, index=True)
    session_id = Column(Integer, ForeignKey("training_sessions.id"), nullable=True, index=True)

    file_name = Column(String(255), nullable=False)
    original_file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    file_type = Column(String(128), nullable=False)
    file_path = Column(String(1024), nullable=False)
    description = Column(Text, nullable=True)

    uploaded_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
