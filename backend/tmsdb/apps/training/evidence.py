# backend/tmsdb/apps/training/evidence.py

"""
Evidence attachments: upload validation, on-disk storage and metadata rows.

Uploads are checked (extension, MIME type, size, referenced rows) before a
single byte is written. The stored name is generated; the original filename
and content-type are kept on the row for download.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import Forbidden, InvalidInput, NotFound, PayloadTooLarge
from ...security import has_role
from ...utils.storage import delete_if_exists, save_stream, stream_size, unique_file_name
from ..accounts import models as account_models
from ..accounts.models import UserRole
from ..audit import services as audit_services
from ..audit.models import AuditAction
from . import models, services

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"jpeg", "jpg", "png", "pdf", "doc", "docx", "ppt", "pptx"})
ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    }
)
STORED_NAME_PREFIX = "file"


def _extension(filename: Optional[str]) -> str:
    return Path(filename or "").suffix.lstrip(".").lower()


def validate_file_type(filename: Optional[str], content_type: Optional[str]) -> str:
    """Return the normalised extension, or raise InvalidInput."""
    if not filename:
        raise InvalidInput.for_field("file", "no file uploaded")
    ext = _extension(filename)
    mime = (content_type or "").split(";")[0].strip().lower()
    if ext not in ALLOWED_EXTENSIONS or mime not in ALLOWED_MIME_TYPES:
        logger.info(
            "Rejected evidence upload",
            extra={"upload_name": filename, "content_type": mime, "reason": "type"},
        )
        raise InvalidInput.for_field(
            "file",
            "Only images (jpeg, jpg, png), PDFs and Office documents (doc, docx, ppt, pptx) are allowed",
        )
    return ext


def list_attachments(
    db: Session,
    *,
    enrollment_id: Optional[int] = None,
    session_id: Optional[int] = None,
) -> List[models.EvidenceAttachment]:
    q = db.query(models.EvidenceAttachment)
    if enrollment_id is not None:
        q = q.filter(models.EvidenceAttachment.enrollment_id == enrollment_id)
    if session_id is not None:
        q = q.filter(models.EvidenceAttachment.session_id == session_id)
    return q.order_by(models.EvidenceAttachment.uploaded_at.desc(), models.EvidenceAttachment.id.desc()).all()


def get_attachment(db: Session, attachment_id: int) -> Optional[models.EvidenceAttachment]:
    return (
        db.query(models.EvidenceAttachment)
        .filter(models.EvidenceAttachment.id == attachment_id)
        .first()
    )


def get_attachment_or_404(db: Session, attachment_id: int) -> models.EvidenceAttachment:
    attachment = get_attachment(db, attachment_id)
    if attachment is None:
        raise NotFound("Attachment not found.")
    return attachment


def stored_file_or_404(attachment: models.EvidenceAttachment) -> Path:
    path = Path(attachment.file_path)
    if not path.exists():
        raise NotFound("Attachment file is missing from storage.")
    return path


def create_attachment(
    db: Session,
    *,
    upload: UploadFile,
    enrollment_id: Optional[int],
    session_id: Optional[int],
    description: Optional[str],
    actor: account_models.User,
    meta: audit_services.RequestMeta,
    upload_dir: Path,
    max_bytes: int,
) -> models.EvidenceAttachment:
    if enrollment_id is None and session_id is None:
        raise InvalidInput.for_field("enrollment_id", "enrollment_id or session_id is required")

    privileged = has_role(actor, UserRole.MANAGER, UserRole.HR_ADMIN)
    if enrollment_id is not None:
        enrollment = services.get_enrollment(db, enrollment_id)
        if enrollment is None:
            raise InvalidInput.for_field("enrollment_id", "enrollment not found")
        if enrollment.employee_id != actor.id and not privileged:
            raise Forbidden("You can only attach evidence to your own enrollments.")
        if session_id is not None and session_id != enrollment.session_id:
            raise InvalidInput.for_field("session_id", "session does not match the enrollment")
    if session_id is not None:
        if services.get_session(db, session_id) is None:
            raise InvalidInput.for_field("session_id", "training session not found")
        # Employees may attach to a session only when enrolled in it.
        if enrollment_id is None and not privileged:
            if not services.list_enrollments(db, session_id=session_id, employee_id=actor.id):
                raise Forbidden("You can only attach evidence to sessions you are enrolled in.")

    ext = validate_file_type(upload.filename, upload.content_type)
    size = stream_size(upload.file)
    if max_bytes and size > max_bytes:
        logger.info(
            "Rejected evidence upload",
            extra={"upload_name": upload.filename, "size": size, "reason": "size"},
        )
        raise PayloadTooLarge()

    file_name = unique_file_name(STORED_NAME_PREFIX, ext)
    dest = Path(upload_dir) / file_name
    written = save_stream(upload.file, dest, max_bytes=max_bytes)

    try:
        with transaction(db):
            attachment = models.EvidenceAttachment(
                enrollment_id=enrollment_id,
                session_id=session_id,
                file_name=file_name,
                original_file_name=upload.filename,
                file_size=written,
                file_type=(upload.content_type or "").split(";")[0].strip().lower(),
                file_path=str(dest),
                description=(description or "").strip() or None,
                uploaded_by=actor.id,
            )
            db.add(attachment)
            db.flush()
            audit_services.record(
                db,
                entity_type="evidence_attachment",
                entity_id=attachment.id,
                action=AuditAction.CREATE,
                actor_id=actor.id,
                meta=meta,
                changes=audit_services.snapshot(attachment),
            )
    except Exception:
        delete_if_exists(dest)
        raise
    db.refresh(attachment)
    return attachment


def delete_attachment(
    db: Session,
    *,
    attachment_id: int,
    actor: account_models.User,
    meta: audit_services.RequestMeta,
) -> bool:
    attachment = get_attachment(db, attachment_id)
    if attachment is None:
        return False
    if attachment.uploaded_by != actor.id and not has_role(actor, UserRole.MANAGER, UserRole.HR_ADMIN):
        raise Forbidden("You can only delete evidence you uploaded.")

    before = audit_services.snapshot(attachment)
    file_path = attachment.file_path
    with transaction(db):
        db.delete(attachment)
        db.flush()
        audit_services.record(
            db,
            entity_type="evidence_attachment",
            entity_id=attachment_id,
            action=AuditAction.DELETE,
            actor_id=actor.id,
            meta=meta,
            changes=before,
        )
    delete_if_exists(file_path)
    return True
