# backend/tmsdb/apps/training/router_import.py

"""
Spreadsheet template download and bulk catalog import.

Registered ahead of the catalog router so `/training-catalog/template` is not
captured by `/training-catalog/{entry_id}`.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import get_db
from ...errors import InvalidInput
from ...security import get_settings, require_roles
from ...utils.storage import delete_if_exists, save_stream, unique_file_name
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit.services import request_meta
from . import importer, schemas

router = APIRouter(prefix="/api/training-catalog", tags=["training_import"])

MANAGEMENT_ROLES = (UserRole.MANAGER, UserRole.HR_ADMIN)


@router.get("/template", summary="Download the catalog import template (XLSX)")
def download_template(
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    return Response(
        content=importer.build_template(),
        media_type=importer.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={importer.TEMPLATE_FILENAME}"},
    )


@router.post(
    "/bulk-import",
    response_model=schemas.BulkImportResult,
    summary="Create catalog entries from an uploaded spreadsheet",
)
def bulk_import(
    request: Request,
    excel: UploadFile = File(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: account_models.User = Depends(require_roles(*MANAGEMENT_ROLES)),
):
    suffix = Path(excel.filename or "").suffix.lower()
    if suffix not in importer.IMPORT_EXTENSIONS:
        raise InvalidInput.for_field("excel", "Upload a .xlsx, .xls or .csv file")

    temp_path = Path(settings.upload_dir) / unique_file_name("excel", suffix)
    try:
        save_stream(excel.file, temp_path, max_bytes=settings.max_upload_bytes)
        return importer.import_catalog(
            db,
            path=temp_path,
            actor=current_user,
            meta=request_meta(request),
        )
    finally:
        delete_if_exists(temp_path)
