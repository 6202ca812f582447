from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping

import jwt
from passlib.context import CryptContext

from lms_platform.errors import InvalidTokenError
from lms_platform.util.hashing import sha256_hex


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except Exception:
        return False


def subscription_snapshot(user: Mapping[str, Any]) -> Dict[str, Any]:
    """The `{id, status}` pair embedded in tokens and returned to clients."""
    return {
        "id": user.get("subscription_id") or None,
        "status": user.get("subscription_status") or None,
    }


def create_access_token(
    *,
    secret: str,
    user: Mapping[str, Any],
    expires_minutes: int,
    now: datetime | None = None,
) -> str:
    """Issue a session token for a user row.

    The payload carries identity, role and a subscription snapshot. Nothing is
    stored server-side; the snapshot goes stale until the next login.
    """
    if not secret:
        raise ValueError("jwt_secret_blank")

    issued = now or datetime.now(timezone.utc)
    exp = issued + timedelta(minutes=max(1, int(expires_minutes)))

    user_id = int(user["user_id"])
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "id": user_id,
        "email": str(user["email"]),
        "role": str(user["role"]),
        "subscription": subscription_snapshot(user),
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature + expiry and return the identity.

    Fully offline: the database is never consulted.
    Raises InvalidTokenError for anything that does not verify.
    """
    if not token:
        raise InvalidTokenError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_JWT_ALG],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("Session expired! Please login again")
    except jwt.InvalidTokenError:
        raise InvalidTokenError("Invalid session token! Please login again")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidTokenError("Invalid session token! Please login again")

    sub = payload.get("subscription") or {}
    return {
        "id": user_id,
        "email": payload.get("email"),
        "role": payload.get("role"),
        "subscription": {"id": sub.get("id"), "status": sub.get("status")},
    }


def generate_reset_token() -> tuple[str, str]:
    """Return (token emailed to the user, sha256 hex stored on the user row)."""
    token = secrets.token_hex(20)
    return token, sha256_hex(token)
