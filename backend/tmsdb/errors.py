# backend/tmsdb/errors.py
"""
Error taxonomy shared by every app.

Each error is an HTTPException so services can raise it directly and FastAPI
renders the right status code. `InvalidInput.detail` is either a message or a
list of {"field": ..., "reason": ...} items.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Union

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

logger = logging.getLogger(__name__)

FieldErrors = List[Dict[str, str]]


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Insufficient permissions for this operation") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class InvalidInput(HTTPException):
    def __init__(self, detail: Union[str, FieldErrors]) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    @classmethod
    def for_field(cls, field: str, reason: str) -> "InvalidInput":
        return cls([{"field": field, "reason": reason}])


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class PayloadTooLarge(HTTPException):
    def __init__(self, detail: str = "Upload exceeds maximum file size.") -> None:
        super().__init__(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail)


def _field_name(loc: Any) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "form")]
    return ".".join(parts) or "body"


def describe_validation_errors(errors: List[Dict[str, Any]]) -> FieldErrors:
    """Flatten pydantic error dicts into field/reason pairs."""
    out: FieldErrors = []
    for err in errors:
        field = _field_name(err.get("loc", ()))
        if err.get("type") == "missing":
            reason = "field required"
        else:
            reason = str(err.get("msg", "invalid value"))
            if reason.startswith("Value error, "):
                reason = reason[len("Value error, "):]
        out.append({"field": field, "reason": reason})
    return out


def summarise_validation_error(exc: ValidationError) -> str:
    """
    One-line message for row-oriented reporting (bulk import).
    """
    parts = []
    for item in describe_validation_errors(exc.errors()):
        if item["reason"] == "field required":
            parts.append(f"Missing required field: {item['field']}")
        else:
            parts.append(f"{item['field']}: {item['reason']}")
    return "; ".join(parts)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": describe_validation_errors(list(exc.errors()))},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
