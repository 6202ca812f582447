from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lms_platform.api.deps import get_cfg
from lms_platform.config import Config
from lms_platform.db import connect
from lms_platform.errors import AuthenticationError, AuthorizationError, ValidationError

from .crud import get_user_by_id
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def read_session_token(
    request: Request,
    cfg: Config,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> str | None:
    """Bearer header first, then the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(cfg.AUTH_COOKIE_NAME) or None


def require_authenticated(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    """Authenticate a request from its token alone.

    Supports both:
      - Authorization: Bearer <jwt>
      - the httpOnly session cookie set by /user/login and /user/register

    The decoded identity ({id, email, role, subscription}) is attached to
    `request.state.identity` and returned. The database is not read here.
    """
    token = read_session_token(request, cfg, credentials)
    if not token:
        raise AuthenticationError("Unauthenticated! Please login again")

    # InvalidTokenError propagates to the error responder.
    identity = decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    request.state.identity = identity
    return identity


def require_role(*allowed_roles: str) -> Callable[..., Dict[str, Any]]:
    """Build a dependency admitting only the given roles.

    The role is trusted from the token; a role change takes effect at the next login.
    """
    allowed = tuple(r.upper() for r in allowed_roles)

    def _require_role(identity: Dict[str, Any] = Depends(require_authenticated)) -> Dict[str, Any]:
        if str(identity.get("role") or "").upper() not in allowed:
            raise AuthorizationError("You do not have permission to access this resource")
        return identity

    return _require_role


require_admin = require_role("ADMIN")


def require_active_subscription(
    identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    """Require an active subscription, read fresh from the database.

    Unlike the role check this ignores the token snapshot, so cancellations
    apply immediately. Admins are always allowed.
    """
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, int(identity["id"]))
    if row is None:
        raise AuthenticationError("User no longer exists! Please login again")

    if str(row["role"]) == "ADMIN":
        return identity

    status = (row["subscription_status"] or "").strip().lower()
    if status != "active":
        _debug(f"subscription gate denied user_id={identity['id']} status={status or 'none'}")
        raise AuthorizationError("You do not have an active subscription")

    identity["subscription"] = {"id": row["subscription_id"], "status": status}
    return identity


def require_logged_out(request: Request, cfg: Config = Depends(get_cfg)) -> None:
    """Refuse to log in again while a session cookie is present."""
    if request.cookies.get(cfg.AUTH_COOKIE_NAME):
        raise ValidationError("Already logged in! Please logout first")
