from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from .models import AuditAction


class AuditLogRead(BaseModel):
    id: int
    entity_type: str
    entity_id: str
    action: AuditAction
    changes: Optional[Any] = None
    performed_by: Optional[str] = None
    performed_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    class Config:
        from_attributes = True
