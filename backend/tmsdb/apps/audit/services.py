from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence

import sqlalchemy as sa
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

_MAX_LIMIT = 1000
_SECRET_FIELDS = {"hashed_password"}


@dataclass(frozen=True)
class RequestMeta:
    """Who/where details captured with every audit row."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def request_meta(request: Optional[Request]) -> RequestMeta:
    if request is None:
        return RequestMeta()
    client = getattr(request, "client", None)
    return RequestMeta(
        ip_address=client.host if client else None,
        user_agent=request.headers.get("user-agent"),
    )


def snapshot(obj: Any, fields: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    JSON-safe dict of an ORM object's column values (secrets excluded).
    """
    mapper = sa.inspect(obj).mapper
    names = [attr.key for attr in mapper.column_attrs]
    if fields is not None:
        wanted = set(fields)
        names = [n for n in names if n in wanted]
    data = {n: getattr(obj, n) for n in names if n not in _SECRET_FIELDS}
    return jsonable_encoder(data)


def diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    changes: Dict[str, Dict[str, Any]] = {}
    for key, new_value in after.items():
        old_value = before.get(key)
        if old_value != new_value:
            changes[key] = {"from": old_value, "to": new_value}
    return changes


def record(
    db: Session,
    *,
    entity_type: str,
    entity_id: Any,
    action: models.AuditAction,
    actor_id: Optional[str],
    meta: RequestMeta,
    changes: Optional[Dict[str, Any]] = None,
) -> models.AuditLog:
    """
    Append one audit row inside the caller's transaction.

    Only flushes; the caller's `transaction()` commits the business write and
    this row together. A failure here propagates so the whole unit rolls back.
    """
    entry = models.AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        changes=changes,
        performed_by=actor_id,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    try:
        db.add(entry)
        db.flush()
    except Exception:
        logger.warning(
            "Failed to write audit log",
            extra={"entity_type": entity_type, "entity_id": str(entity_id), "action": action.value},
        )
        raise
    return entry


def list_audit_logs(
    db: Session,
    *,
    limit: int = 100,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> Sequence[models.AuditLog]:
    limit = max(1, min(limit, _MAX_LIMIT))
    query = db.query(models.AuditLog)
    if entity_type:
        query = query.filter(models.AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditLog.entity_id == str(entity_id))
    return (
        query.order_by(models.AuditLog.performed_at.desc(), models.AuditLog.id.desc())
        .limit(limit)
        .all()
    )
