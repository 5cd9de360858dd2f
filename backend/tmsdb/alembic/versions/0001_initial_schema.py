"""initial training portal schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ENUMS = {
    "user_role_enum": ("employee", "manager", "hr_admin"),
    "audit_action_enum": ("create", "update", "delete", "bulk_import"),
    "catalog_type_enum": ("internal", "external", "certification", "compliance"),
    "trainer_type_enum": ("internal", "external"),
    "session_status_enum": ("scheduled", "completed", "cancelled"),
    "enrollment_status_enum": ("enrolled", "attended", "completed", "absent"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created once up front; trainer_type_enum is shared by two tables.
    return postgresql.ENUM(*_ENUMS[name], name=name, create_type=False)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name, values in _ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("last_name", sa.String(length=128), nullable=True),
        sa.Column("profile_image_url", sa.String(length=512), nullable=True),
        sa.Column("role", _enum("user_role_enum"), nullable=False),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("employee_number", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("employee_number"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_department", "users", ["department"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("manager_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", _enum("audit_action_enum"), nullable=False),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("performed_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
    )
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_performed_by", "audit_logs", ["performed_by"])
    op.create_index("ix_audit_logs_performed_at", "audit_logs", ["performed_at"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("ix_audit_logs_performed_at_desc", "audit_logs", [sa.text("performed_at DESC")])

    op.create_table(
        "training_catalog",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", _enum("catalog_type_enum"), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=False),
        sa.Column("validity_period_months", sa.Integer(), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("compliance_standard", sa.String(length=128), nullable=True),
        sa.Column("prerequisites", sa.Text(), nullable=True),
        sa.Column("trainer_name", sa.String(length=255), nullable=True),
        sa.Column("trainer_type", _enum("trainer_type_enum"), nullable=True),
        sa.Column("cost", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("provider_name", sa.String(length=255), nullable=True),
        sa.Column("provider_contact", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("external_url", sa.String(length=512), nullable=True),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_training_catalog_required", "training_catalog", ["is_required"])
    op.create_index("idx_training_catalog_type_category", "training_catalog", ["type", "category"])

    op.create_table(
        "training_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("catalog_id", sa.Integer(), sa.ForeignKey("training_catalog.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("session_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=False),
        sa.Column("venue", sa.String(length=255), nullable=True),
        sa.Column("trainer_name", sa.String(length=255), nullable=True),
        sa.Column("trainer_type", _enum("trainer_type_enum"), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        sa.Column("status", _enum("session_status_enum"), nullable=False),
        sa.Column("materials", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_training_sessions_catalog_id", "training_sessions", ["catalog_id"])
    op.create_index("idx_training_sessions_date", "training_sessions", ["session_date"])
    op.create_index("idx_training_sessions_catalog_status", "training_sessions", ["catalog_id", "status"])

    op.create_table(
        "training_enrollments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("training_sessions.id"), nullable=False),
        sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", _enum("enrollment_status_enum"), nullable=False),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("certificate_url", sa.String(length=512), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "employee_id", name="uq_training_enrollments_session_employee"),
    )
    op.create_index("ix_training_enrollments_session_id", "training_enrollments", ["session_id"])
    op.create_index("ix_training_enrollments_employee_id", "training_enrollments", ["employee_id"])
    op.create_index("ix_training_enrollments_status", "training_enrollments", ["status"])
    op.create_index("idx_training_enrollments_employee_status", "training_enrollments", ["employee_id", "status"])

    op.create_table(
        "training_feedback",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("training_enrollments.id"), nullable=False),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("training_sessions.id"), nullable=False),
        sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("overall_rating", sa.Integer(), nullable=False),
        sa.Column("content_rating", sa.Integer(), nullable=False),
        sa.Column("trainer_rating", sa.Integer(), nullable=False),
        sa.Column("relevance_rating", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("suggestions", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("enrollment_id"),
    )
    op.create_index("ix_training_feedback_session_id", "training_feedback", ["session_id"])
    op.create_index("ix_training_feedback_employee_id", "training_feedback", ["employee_id"])

    op.create_table(
        "effectiveness_evaluations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("training_enrollments.id"), nullable=False),
        sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("manager_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("evaluation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("knowledge_application", sa.Integer(), nullable=True),
        sa.Column("behavior_change", sa.Integer(), nullable=True),
        sa.Column("performance_improvement", sa.Integer(), nullable=True),
        sa.Column("compliance_adherence", sa.Integer(), nullable=True),
        sa.Column("overall_effectiveness", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("action_plan", sa.Text(), nullable=True),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_effectiveness_evaluations_enrollment_id", "effectiveness_evaluations", ["enrollment_id"])
    op.create_index("ix_effectiveness_evaluations_employee_id", "effectiveness_evaluations", ["employee_id"])
    op.create_index("ix_effectiveness_evaluations_manager_id", "effectiveness_evaluations", ["manager_id"])

    op.create_table(
        "evidence_attachments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("training_enrollments.id"), nullable=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("training_sessions.id"), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("original_file_name", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_type", sa.String(length=128), nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("uploaded_by", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_evidence_attachments_enrollment_id", "evidence_attachments", ["enrollment_id"])
    op.create_index("ix_evidence_attachments_session_id", "evidence_attachments", ["session_id"])

    op.create_table(
        "compliance_requirements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("standard", sa.String(length=128), nullable=False),
        sa.Column("requirement", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("frequency", sa.String(length=64), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=True),
        sa.Column("catalog_id", sa.Integer(), sa.ForeignKey("training_catalog.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_compliance_requirements_catalog_id", "compliance_requirements", ["catalog_id"])
    op.create_index("idx_compliance_requirements_scope", "compliance_requirements", ["department", "role"])


def downgrade() -> None:
    for table in (
        "compliance_requirements",
        "evidence_attachments",
        "effectiveness_evaluations",
        "training_feedback",
        "training_enrollments",
        "training_sessions",
        "training_catalog",
        "audit_logs",
        "departments",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name in reversed(list(_ENUMS)):
            postgresql.ENUM(name=name).drop(bind, checkfirst=True)
