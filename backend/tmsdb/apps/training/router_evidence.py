# backend/tmsdb/apps/training/router_evidence.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ...config import Settings
from ...database import get_db, get_read_db
from ...security import get_current_active_user, get_settings
from ..accounts import models as account_models
from ..audit.services import request_meta
from . import evidence, schemas

router = APIRouter(prefix="/api/evidence-attachments", tags=["training_evidence"])


@router.post(
    "",
    response_model=schemas.EvidenceAttachmentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an evidence file for an enrollment or session",
)
def upload_evidence(
    request: Request,
    file: UploadFile = File(...),
    enrollment_id: Optional[int] = Form(None),
    session_id: Optional[int] = Form(None),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return evidence.create_attachment(
        db,
        upload=file,
        enrollment_id=enrollment_id,
        session_id=session_id,
        description=description,
        actor=current_user,
        meta=request_meta(request),
        upload_dir=settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
    )


@router.get("", response_model=List[schemas.EvidenceAttachmentRead])
def list_evidence(
    enrollment_id: Optional[int] = None,
    session_id: Optional[int] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return evidence.list_attachments(db, enrollment_id=enrollment_id, session_id=session_id)


@router.get(
    "/{attachment_id}/download",
    response_class=FileResponse,
    summary="Download an evidence file with its original name",
)
def download_evidence(
    attachment_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    attachment = evidence.get_attachment_or_404(db, attachment_id)
    path = evidence.stored_file_or_404(attachment)
    return FileResponse(
        path=str(path),
        media_type=attachment.file_type or "application/octet-stream",
        filename=attachment.original_file_name or path.name,
    )


@router.delete("/{attachment_id}", response_model=schemas.DeleteResult)
def delete_evidence(
    attachment_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    deleted = evidence.delete_attachment(
        db, attachment_id=attachment_id, actor=current_user, meta=request_meta(request)
    )
    return schemas.DeleteResult(deleted=deleted)
