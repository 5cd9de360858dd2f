# backend/tmsdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- String relationship targets ("User", "CatalogEntry") resolve.

The actual model classes are kept in tmsdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models        # users / departments
from .apps.audit import models as audit_models              # append-only audit trail
from .apps.training import models as training_models        # catalog, sessions, enrollments, evidence
from .apps.compliance import models as compliance_models    # compliance requirements

__all__ = [
    "accounts_models",
    "audit_models",
    "training_models",
    "compliance_models",
]
