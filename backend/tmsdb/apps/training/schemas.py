# backend/tmsdb/apps/training/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from ...utils.money import to_minor_units
from .models import CatalogType, EnrollmentStatus, SessionStatus, TrainerType

_OPTIONAL_TEXT_FIELDS = (
    "description",
    "compliance_standard",
    "prerequisites",
    "trainer_name",
    "provider_name",
    "provider_contact",
    "location",
    "external_url",
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ---------------------------------------------------------------------------
# TRAINING CATALOG
# ---------------------------------------------------------------------------


class CatalogEntryBase(BaseModel):
    """
    Fields shared by create and read.

    cost is exposed in minor units (cents) once stored.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: CatalogType = Field(..., description="internal / external / certification / compliance.")
    category: str = Field(..., min_length=1, max_length=64, description="safety, quality, compliance, technical, ...")
    duration: int = Field(..., ge=1, description="Duration in hours.")
    validity_period: Optional[int] = Field(
        None,
        ge=1,
        description="Months a completion stays valid. NULL means it never expires.",
    )
    is_required: bool = False
    compliance_standard: Optional[str] = None
    prerequisites: Optional[str] = None
    trainer_name: Optional[str] = None
    trainer_type: Optional[TrainerType] = None
    currency: str = Field("USD", min_length=3, max_length=3)
    provider_name: Optional[str] = None
    provider_contact: Optional[str] = None
    location: Optional[str] = None
    external_url: Optional[str] = None


class CatalogEntryCreate(CatalogEntryBase):
    """
    The single validation path for catalog rows, used by the API and by
    spreadsheet import alike.
    """

    cost: Optional[int] = Field(
        None,
        description="Decimal amount on input (e.g. '250.00'); stored as integer minor units (25000).",
    )
    provider_name: Optional[str] = Field(None, validate_default=True)

    @field_validator("title", "category", mode="before")
    @classmethod
    def _strip_required_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("category")
    @classmethod
    def _lower_category(cls, value: str) -> str:
        return value.lower()

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "USD"
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("cost", mode="before")
    @classmethod
    def _cost_to_minor_units(cls, value: Any) -> Optional[int]:
        return to_minor_units(value)

    @field_validator("provider_name")
    @classmethod
    def _provider_required_for_external(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if info.data.get("type") == CatalogType.EXTERNAL and not value:
            raise ValueError("Provider name is required for external training")
        return value


class CatalogEntryUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[CatalogType] = None
    category: Optional[str] = Field(None, min_length=1, max_length=64)
    duration: Optional[int] = Field(None, ge=1)
    validity_period: Optional[int] = Field(None, ge=1)
    is_required: Optional[bool] = None
    compliance_standard: Optional[str] = None
    prerequisites: Optional[str] = None
    trainer_name: Optional[str] = None
    trainer_type: Optional[TrainerType] = None
    cost: Optional[int] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    provider_name: Optional[str] = None
    provider_contact: Optional[str] = None
    location: Optional[str] = None
    external_url: Optional[str] = None

    @field_validator("title", "category", "currency", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator(*_OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("category")
    @classmethod
    def _lower_category(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value

    @field_validator("cost", mode="before")
    @classmethod
    def _cost_to_minor_units(cls, value: Any) -> Optional[int]:
        return to_minor_units(value)


class CatalogEntryRead(CatalogEntryBase):
    id: int
    cost: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# SESSIONS
# ---------------------------------------------------------------------------


class TrainingSessionCreate(BaseModel):
    """
    title, duration and trainer_type default from the catalog entry when omitted.
    """

    catalog_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    session_date: datetime
    duration: Optional[int] = Field(None, ge=1, description="Hours.")
    venue: Optional[str] = None
    trainer_name: Optional[str] = None
    trainer_type: Optional[TrainerType] = None
    max_participants: Optional[int] = Field(None, ge=1)
    status: SessionStatus = SessionStatus.SCHEDULED
    materials: Optional[str] = None


class TrainingSessionUpdate(BaseModel):
    catalog_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    session_date: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=1)
    venue: Optional[str] = None
    trainer_name: Optional[str] = None
    trainer_type: Optional[TrainerType] = None
    max_participants: Optional[int] = Field(None, ge=1)
    status: Optional[SessionStatus] = None
    materials: Optional[str] = None


class TrainingSessionRead(BaseModel):
    id: int
    catalog_id: Optional[int] = None
    title: str
    session_date: datetime
    duration: int
    venue: Optional[str] = None
    trainer_name: Optional[str] = None
    trainer_type: TrainerType
    max_participants: Optional[int] = None
    status: SessionStatus
    materials: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TrainingSessionDetail(TrainingSessionRead):
    catalog: Optional[CatalogEntryRead] = None


# ---------------------------------------------------------------------------
# ENROLLMENTS
# ---------------------------------------------------------------------------


class EnrollmentCreate(BaseModel):
    session_id: int
    employee_id: Optional[str] = Field(None, description="Defaults to the current user.")
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    completion_date: Optional[datetime] = None
    score: Optional[int] = Field(None, ge=0, le=100)
    certificate_url: Optional[str] = None
    notes: Optional[str] = None


class EnrollmentUpdate(BaseModel):
    status: Optional[EnrollmentStatus] = None
    completion_date: Optional[datetime] = None
    score: Optional[int] = Field(None, ge=0, le=100)
    certificate_url: Optional[str] = None
    notes: Optional[str] = None


class EnrollmentRead(BaseModel):
    id: int
    session_id: int
    employee_id: str
    status: EnrollmentStatus
    completion_date: Optional[datetime] = None
    score: Optional[int] = None
    certificate_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    session: Optional[TrainingSessionRead] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# FEEDBACK
# ---------------------------------------------------------------------------


class FeedbackCreate(BaseModel):
    enrollment_id: int
    session_id: Optional[int] = Field(None, description="Defaults to the enrollment's session.")
    overall_rating: int = Field(..., ge=1, le=5)
    content_rating: int = Field(..., ge=1, le=5)
    trainer_rating: int = Field(..., ge=1, le=5)
    relevance_rating: int = Field(..., ge=1, le=5)
    comments: Optional[str] = None
    suggestions: Optional[str] = None


class FeedbackRead(BaseModel):
    id: int
    enrollment_id: int
    session_id: int
    employee_id: str
    overall_rating: int
    content_rating: int
    trainer_rating: int
    relevance_rating: int
    comments: Optional[str] = None
    suggestions: Optional[str] = None
    submitted_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# EFFECTIVENESS EVALUATIONS
# ---------------------------------------------------------------------------


class EvaluationCreate(BaseModel):
    enrollment_id: int
    evaluation_date: Optional[datetime] = Field(None, description="Defaults to now.")
    knowledge_application: Optional[int] = Field(None, ge=1, le=5)
    behavior_change: Optional[int] = Field(None, ge=1, le=5)
    performance_improvement: Optional[int] = Field(None, ge=1, le=5)
    compliance_adherence: Optional[int] = Field(None, ge=1, le=5)
    overall_effectiveness: int = Field(..., ge=1, le=5)
    comments: Optional[str] = None
    action_plan: Optional[str] = None
    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None


class EvaluationUpdate(BaseModel):
    evaluation_date: Optional[datetime] = None
    knowledge_application: Optional[int] = Field(None, ge=1, le=5)
    behavior_change: Optional[int] = Field(None, ge=1, le=5)
    performance_improvement: Optional[int] = Field(None, ge=1, le=5)
    compliance_adherence: Optional[int] = Field(None, ge=1, le=5)
    overall_effectiveness: Optional[int] = Field(None, ge=1, le=5)
    comments: Optional[str] = None
    action_plan: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[datetime] = None


class EvaluationRead(BaseModel):
    id: int
    enrollment_id: int
    employee_id: str
    manager_id: str
    evaluation_date: datetime
    knowledge_application: Optional[int] = None
    behavior_change: Optional[int] = None
    performance_improvement: Optional[int] = None
    compliance_adherence: Optional[int] = None
    overall_effectiveness: int
    comments: Optional[str] = None
    action_plan: Optional[str] = None
    follow_up_required: bool
    follow_up_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# EVIDENCE ATTACHMENTS
# ---------------------------------------------------------------------------


class EvidenceAttachmentRead(BaseModel):
    id: int
    enrollment_id: Optional[int] = None
    session_id: Optional[int] = None
    file_name: str
    original_file_name: str
    file_size: int
    file_type: str
    description: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# GENERIC RESULTS
# ---------------------------------------------------------------------------


class DeleteResult(BaseModel):
    deleted: bool


class BulkImportError(BaseModel):
    row: int
    error: str


class BulkImportResult(BaseModel):
    message: str
    total_rows: int
    success: int
    errors: list[BulkImportError] = Field(default_factory=list)
