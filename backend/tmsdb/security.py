# backend/tmsdb/security.py

"""
Security helpers for the training portal.

Responsibilities:
- Password hashing and verification (Argon2id)
- JWT access token creation and decoding
- FastAPI dependencies for the current user and role gates

Credentials are signed, expiring tokens checked against SECRET_KEY before
any storage lookup; the user id travels in the `sub` claim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Set, Tuple, Union

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .errors import Forbidden, Unauthenticated
from .apps.accounts import models as account_models
from .apps.accounts.models import UserRole

# Used by FastAPI's OpenAPI docs; missing headers are turned into 401 below.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


# ---------------------------------------------------------------------------
# SETTINGS
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# PASSWORD HASHING
# ---------------------------------------------------------------------------

_pwd_hasher = PasswordHasher()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if the plain password matches the hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return _pwd_hasher.verify(hashed_password, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def get_password_hash(password: str) -> str:
    """Hash a password for storing in the database (Argon2id)."""
    return _pwd_hasher.hash(password)


# ---------------------------------------------------------------------------
# JWT TOKENS
# ---------------------------------------------------------------------------


def create_access_token(
    *,
    data: dict,
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> Tuple[str, int]:
    """
    Create a signed JWT and return it with its lifetime in seconds.

    `data` should already include the subject, e.g. {"sub": user.id, "role": "manager"}.
    """
    to_encode = data.copy()
    lifetime = (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": datetime.now(timezone.utc) + lifetime})

    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)
    return encoded_jwt, int(lifetime.total_seconds())


def issue_token_for_user(user: account_models.User, settings: Settings) -> Tuple[str, int]:
    role = user.role.value if isinstance(user.role, UserRole) else str(user.role)
    return create_access_token(data={"sub": user.id, "role": role}, settings=settings)


def decode_subject(token: str, settings: Settings) -> str:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise Unauthenticated()
    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated()
    return str(subject)


# ---------------------------------------------------------------------------
# FASTAPI DEPENDENCIES
# ---------------------------------------------------------------------------


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> account_models.User:
    """
    Resolve the bearer token to exactly one User, or raise 401.
    """
    if not token:
        raise Unauthenticated("Not authenticated")

    user_id = decode_subject(token, settings)
    user = (
        db.query(account_models.User)
        .filter(account_models.User.id == user_id)
        .first()
    )
    if user is None:
        raise Unauthenticated()
    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    """
    Deactivated users are rejected here rather than deeper in the app.
    """
    if not getattr(current_user, "is_active", False):
        raise Unauthenticated("Inactive user account")
    return current_user


# ---------------------------------------------------------------------------
# ROLE-BASED ACCESS HELPER
# ---------------------------------------------------------------------------


def require_roles(
    *allowed_roles: Union[UserRole, str],
) -> Callable[[account_models.User], account_models.User]:
    """
    Dependency factory to enforce that the current user has one of the given roles.

    Usage:
        @router.post(...)
        def endpoint(
            current_user: User = Depends(require_roles(UserRole.MANAGER, UserRole.HR_ADMIN))
        ):
            ...

    Strings are accepted too: require_roles("hr_admin").
    """
    normalised_roles: Set[UserRole] = set()
    for r in allowed_roles:
        if isinstance(r, UserRole):
            normalised_roles.add(r)
        else:
            try:
                normalised_roles.add(UserRole(r))
            except ValueError:
                raise ValueError(f"Unknown role {r!r} passed to require_roles()")

    def dependency(
        current_user: account_models.User = Depends(get_current_active_user),
    ) -> account_models.User:
        if current_user.role not in normalised_roles:
            raise Forbidden()
        return current_user

    return dependency


def has_role(user: account_models.User, *roles: UserRole) -> bool:
    return user.role in roles
