"""Authentication module: deep module exposing FastAPI dependencies.

Public interface:
    ``Principal``      - the authenticated actor (user id + role).
    ``require_auth``   - returns Principal or raises 401.
    ``optional_auth``  - returns Principal or None, never raises.
    ``require_admin``  - returns Principal, raises 403 unless ADMIN/SUPER_ADMIN.

When ``settings.auth_enabled`` is False all dependencies return an anonymous
SUPER_ADMIN principal so the development workflow is unbroken.

Token redemption endpoints deliberately depend on none of these: the
delivery token itself is the capability.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import TokenPayload, decode_token
from ..database import get_db
from ..exceptions import AuthenticationError, ForbiddenError
from ..models.enums import Role

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

ANONYMOUS_USER_ID = "anonymous"


@dataclass(frozen=True)
class Principal:
    """Resolved identity available to every authenticated endpoint.

    Immutable for the duration of a request. Endpoints pass it to the
    PermissionResolver; nothing caches a resolved level on it.
    """

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)


_ANONYMOUS = Principal(user_id=ANONYMOUS_USER_ID, role=Role.SUPER_ADMIN)


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    """Require a valid JWT and return the caller's Principal.

    When ``AUTH_ENABLED=false`` returns the anonymous SUPER_ADMIN.
    """
    if not settings.auth_enabled:
        return _ANONYMOUS

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    return _load_principal(payload, db)


def optional_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    """Principal for a valid token, otherwise None. Never raises."""
    if not settings.auth_enabled:
        return _ANONYMOUS
    if credentials is None:
        return None
    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        return None
    try:
        return _load_principal(payload, db)
    except AuthenticationError:
        return None


def require_admin(
    principal: Principal = Depends(require_auth),
) -> Principal:
    """Require an ADMIN or SUPER_ADMIN caller. Raises 403 otherwise."""
    if not principal.is_admin:
        raise ForbiddenError("Admin access required")
    return principal


def _load_principal(payload: TokenPayload, db: Session) -> Principal:
    """Re-read the user row so role changes and deactivation apply at once."""
    from ..models.user import User

    user = db.query(User).filter(User.id == payload.sub).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return Principal(user_id=user.id, role=Role(user.role))
