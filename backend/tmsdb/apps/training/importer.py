# backend/tmsdb/apps/training/importer.py

"""
Spreadsheet template and bulk import for the training catalog.

Rows go through the same CatalogEntryCreate schema as the JSON API. A bad
row is reported with its spreadsheet line number (index + 2, the header is
line 1) and never stops the batch.
"""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
from openpyxl.utils import get_column_letter
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import InvalidInput, summarise_validation_error
from ..accounts import models as account_models
from ..audit import services as audit_services
from ..audit.models import AuditAction
from . import schemas, services

logger = logging.getLogger(__name__)

TEMPLATE_SHEET = "Training Catalog Template"
TEMPLATE_FILENAME = "training-catalog-template.xlsx"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
IMPORT_EXTENSIONS = frozenset({".xlsx", ".xls", ".csv"})

# spreadsheet column -> schema field, with the column width used in the template
TEMPLATE_COLUMNS: Dict[str, tuple] = {
    "title": ("title", 25),
    "description": ("description", 50),
    "type": ("type", 12),
    "category": ("category", 12),
    "duration": ("duration", 10),
    "validityPeriod": ("validity_period", 15),
    "complianceStandard": ("compliance_standard", 20),
    "prerequisites": ("prerequisites", 30),
    "isRequired": ("is_required", 10),
    "trainerName": ("trainer_name", 20),
    "trainerType": ("trainer_type", 15),
    "cost": ("cost", 10),
    "currency": ("currency", 10),
    "providerName": ("provider_name", 25),
    "providerContact": ("provider_contact", 25),
    "location": ("location", 20),
    "externalUrl": ("external_url", 40),
}

SAMPLE_ROWS: List[Dict[str, Any]] = [
    {
        "title": "OSHA Safety Fundamentals",
        "description": "Basic workplace safety training covering OSHA regulations and safety procedures",
        "type": "internal",
        "category": "safety",
        "duration": 4,
        "validityPeriod": 12,
        "complianceStandard": "OSHA 29 CFR 1926",
        "prerequisites": "None",
        "isRequired": "TRUE",
        "trainerName": "John Smith",
        "trainerType": "internal",
        "cost": "",
        "currency": "USD",
        "providerName": "",
        "providerContact": "",
        "location": "",
        "externalUrl": "",
    },
    {
        "title": "External Fire Safety Training",
        "description": "Comprehensive fire safety and emergency response training",
        "type": "external",
        "category": "safety",
        "duration": 6,
        "validityPeriod": 24,
        "complianceStandard": "NFPA 101",
        "prerequisites": "Basic Safety Orientation",
        "isRequired": "FALSE",
        "trainerName": "",
        "trainerType": "external",
        "cost": 250.00,
        "currency": "USD",
        "providerName": "Fire Safety Institute",
        "providerContact": "contact@firesafety.com",
        "location": "Chicago, IL",
        "externalUrl": "https://firesafety.com/training",
    },
]

_LOWERCASE_FIELDS = {"type", "trainer_type", "category"}
_WHOLE_NUMBER_FIELDS = {"duration", "validity_period"}
_TRUTHY = {"true", "yes", "y", "1"}


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


def build_template() -> bytes:
    df = pd.DataFrame(SAMPLE_ROWS, columns=list(TEMPLATE_COLUMNS))
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=TEMPLATE_SHEET, index=False)
        sheet = writer.sheets[TEMPLATE_SHEET]
        for position, (_, width) in enumerate(TEMPLATE_COLUMNS.values(), start=1):
            sheet.column_dimensions[get_column_letter(position)].width = width
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Row normalisation
# ---------------------------------------------------------------------------


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, str) and pd.isna(value):
        return None
    if hasattr(value, "item") and callable(value.item):
        value = value.item()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _whole_number(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return value
    return int(number) if number.is_integer() else value


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in _TRUTHY


def normalise_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map template columns onto schema fields. Blank cells are dropped so the
    schema reports them as missing.
    """
    out: Dict[str, Any] = {}
    for column, (field, _) in TEMPLATE_COLUMNS.items():
        value = _clean(raw.get(column))
        if value is None:
            continue
        if field == "is_required":
            value = _truthy(value)
        elif field in _WHOLE_NUMBER_FIELDS:
            value = _whole_number(value)
        elif field == "cost":
            pass
        else:
            value = str(value).strip()
            if field in _LOWERCASE_FIELDS:
                value = value.lower()
        out[field] = value
    return out


def read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=object)
    if suffix in (".xlsx", ".xls"):
        return pd.read_excel(path, sheet_name=0, dtype=object)
    raise InvalidInput.for_field("excel", "Upload a .xlsx, .xls or .csv file")


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def import_catalog(
    db: Session,
    *,
    path: Path,
    actor: account_models.User,
    meta: audit_services.RequestMeta,
) -> schemas.BulkImportResult:
    try:
        df = read_frame(path)
    except InvalidInput:
        raise
    except Exception:
        logger.warning("Unreadable catalog import", extra={"path": str(path)}, exc_info=True)
        raise InvalidInput.for_field("excel", "File could not be read as a spreadsheet")

    total_rows = len(df.index)
    success = 0
    errors: List[schemas.BulkImportError] = []

    with transaction(db):
        for idx, row in df.iterrows():
            row_number = int(idx) + 2
            try:
                payload = schemas.CatalogEntryCreate(**normalise_row(row.to_dict()))
            except ValidationError as exc:
                errors.append(schemas.BulkImportError(row=row_number, error=summarise_validation_error(exc)))
                continue

            try:
                with db.begin_nested():
                    services.add_catalog_entry(db, payload=payload, actor_id=actor.id)
            except SQLAlchemyError:
                logger.warning("Catalog import row failed", extra={"row": row_number}, exc_info=True)
                errors.append(schemas.BulkImportError(row=row_number, error="Row could not be saved"))
                continue
            success += 1

        audit_services.record(
            db,
            entity_type="training_catalog",
            entity_id=0,
            action=AuditAction.BULK_IMPORT,
            actor_id=actor.id,
            meta=meta,
            changes={
                "total_rows": total_rows,
                "success_count": success,
                "error_count": len(errors),
            },
        )

    logger.info(
        "Catalog import finished",
        extra={"total_rows": total_rows, "success": success, "failed": len(errors)},
    )
    return schemas.BulkImportResult(
        message=f"Import completed. {success} trainings created successfully.",
        total_rows=total_rows,
        success=success,
        errors=errors,
    )
