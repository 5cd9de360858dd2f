# backend/tmsdb/apps/audit/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_read_db
from ...security import require_roles
from ..accounts import models as account_models
from ..accounts.models import UserRole
from . import schemas, services

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("", response_model=List[schemas.AuditLogRead])
def list_audit_logs(
    limit: int = 100,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(require_roles(UserRole.HR_ADMIN)),
):
    """Newest first; `limit` is clamped to 1..1000."""
    return services.list_audit_logs(db, limit=limit, entity_type=entity_type, entity_id=entity_id)
