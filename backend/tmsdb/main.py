# backend/tmsdb/main.py
"""
Application factory.

`create_app(settings)` builds the database engines once, keeps them and the
settings on `app.state`, and wires routers, CORS and error handlers.
Run with `uvicorn tmsdb.main:create_app --factory` or `python -m tmsdb.serve`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .database import init_database
from .errors import register_exception_handlers

from .apps.accounts.router import router as accounts_router
from .apps.audit.router import router as audit_router
from .apps.compliance.router import router as compliance_router
from .apps.training.router import router as training_router
from .apps.training.router_evidence import router as evidence_router
from .apps.training.router_feedback import router as feedback_router
from .apps.training.router_import import router as import_router

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_LOG_FORMAT)
    root.setLevel(level)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Training portal started", extra={"upload_dir": str(settings.upload_dir)})
        try:
            yield
        finally:
            app.state.database.dispose()

    app = FastAPI(title="Training Management API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = init_database(settings)

    cors_origins = list(settings.cors_allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/", tags=["health"])
    def read_root():
        return {"status": "ok"}

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    app.include_router(accounts_router)
    # before training_router: /training-catalog/template vs /training-catalog/{entry_id}
    app.include_router(import_router)
    app.include_router(training_router)
    app.include_router(feedback_router)
    app.include_router(evidence_router)
    app.include_router(compliance_router)
    app.include_router(audit_router)
    return app
