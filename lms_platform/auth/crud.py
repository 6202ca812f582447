from __future__ import annotations

import re
from typing import Any, Dict, Optional

from lms_platform.config import Config
from lms_platform.db import connect, count
from lms_platform.util.hashing import sha256_hex
from lms_platform.util.time import utc_in_minutes_iso, utcnow_iso

from .security import generate_reset_token, hash_password, subscription_snapshot, verify_password


ROLES = ("USER", "ADMIN")

_EMAIL_RE = re.compile(r"^[^<>()\[\]\\.,;:\s@\"]+(\.[^<>()\[\]\\.,;:\s@\"]+)*@([a-zA-Z\-0-9]+\.)+[a-zA-Z]{2,}$")

_PRIVATE_FIELDS = ("password_hash", "forgot_password_token", "forgot_password_expiry")


def normalize_username(user_name: str) -> str:
    return (user_name or "").strip().lower()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """Shape a user row for the wire. Secrets never leave this function."""
    d = dict(row)
    for k in _PRIVATE_FIELDS:
        d.pop(k, None)
    d["avatar"] = {
        "public_id": d.pop("avatar_public_id", "") or "",
        "secure_url": d.pop("avatar_secure_url", "") or "",
    }
    d["subscription"] = subscription_snapshot(d)
    d.pop("subscription_id", None)
    d.pop("subscription_status", None)
    return d


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_username(conn: Any, user_name: str) -> Optional[Any]:
    u = normalize_username(user_name)
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE user_name=?",
        (u,),
    ).fetchone()


def create_user(
    conn: Any,
    *,
    user_name: str,
    full_name: str,
    email: str,
    password: str,
    role: str = "USER",
) -> Dict[str, Any]:
    """Insert a user after the uniqueness checks. Raises ValueError(<reason>)."""
    u = normalize_username(user_name)
    e = normalize_email(email)
    name = (full_name or "").strip()
    if not u:
        raise ValueError("username_blank")
    if not (5 <= len(name) <= 30):
        raise ValueError("full_name_length")
    if not is_valid_email(e):
        raise ValueError("email_invalid")
    if role not in ROLES:
        raise ValueError("invalid_role")

    if get_user_by_username(conn, u) is not None:
        raise ValueError("username_exists")
    if get_user_by_email(conn, e) is not None:
        raise ValueError("email_exists")

    now = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO users (user_name, full_name, email, password_hash, role, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?)
        RETURNING user_id
        """,
        (u, name, e, hash_password(password), role, now, now),
    ).fetchone()
    created = get_user_by_id(conn, int(row["user_id"]))
    assert created is not None
    return public_user(created)


def verify_user_credentials(conn: Any, email: str, password: str) -> tuple[Optional[Any], str]:
    """Return (row, "") on success, else (None, reason).

    reason is "email_not_registered" or "wrong_password".
    """
    row = get_user_by_email(conn, email)
    if row is None:
        return None, "email_not_registered"
    if not verify_password(password, str(row["password_hash"])):
        return None, "wrong_password"
    return row, ""


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE user_id=?",
        (now, now, int(user_id)),
    )


def update_password(conn: Any, user_id: int, password: str) -> None:
    conn.execute(
        "UPDATE users SET password_hash=?, updated_at=? WHERE user_id=?",
        (hash_password(password), utcnow_iso(), int(user_id)),
    )


def update_profile(
    conn: Any,
    user_id: int,
    *,
    full_name: str | None = None,
    avatar_public_id: str | None = None,
    avatar_secure_url: str | None = None,
) -> None:
    fields: list[tuple[str, Any]] = []
    if full_name is not None:
        fields.append(("full_name", full_name))
    if avatar_public_id is not None:
        fields.append(("avatar_public_id", avatar_public_id))
    if avatar_secure_url is not None:
        fields.append(("avatar_secure_url", avatar_secure_url))
    if not fields:
        return
    fields.append(("updated_at", utcnow_iso()))

    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [int(user_id)]
    conn.execute(f"UPDATE users SET {sets} WHERE user_id=?", params)


def start_password_reset(conn: Any, user_id: int, *, expires_minutes: int) -> str:
    """Store a fresh reset ticket; return the plain token for the email link."""
    token, token_hash = generate_reset_token()
    conn.execute(
        "UPDATE users SET forgot_password_token=?, forgot_password_expiry=?, updated_at=? WHERE user_id=?",
        (token_hash, utc_in_minutes_iso(expires_minutes), utcnow_iso(), int(user_id)),
    )
    return token


def clear_password_reset(conn: Any, user_id: int) -> None:
    conn.execute(
        "UPDATE users SET forgot_password_token=NULL, forgot_password_expiry=NULL, updated_at=? WHERE user_id=?",
        (utcnow_iso(), int(user_id)),
    )


def get_user_by_reset_token(conn: Any, token: str) -> Optional[Any]:
    """Find the user holding an unexpired ticket for this plain token."""
    if not token:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE forgot_password_token=? AND forgot_password_expiry > ?",
        (sha256_hex(token), utcnow_iso()),
    ).fetchone()


def set_user_subscription(
    conn: Any,
    *,
    user_id: int,
    subscription_id: str | None = None,
    subscription_status: str | None = None,
) -> None:
    """Persist subscription state onto the user row.

    Only `lms_platform.billing.subscriptions` should call this.
    """
    fields: list[tuple[str, Any]] = []
    if subscription_id is not None:
        fields.append(("subscription_id", subscription_id))
    if subscription_status is not None:
        fields.append(("subscription_status", subscription_status))
    if not fields:
        return
    fields.append(("updated_at", utcnow_iso()))

    sets = ", ".join([f"{k}=?" for k, _ in fields])
    params = [v for _, v in fields] + [int(user_id)]
    conn.execute(f"UPDATE users SET {sets} WHERE user_id=?", params)


def user_stats(conn: Any) -> Dict[str, int]:
    return {
        "usersCount": count(conn, "SELECT COUNT(*) AS n FROM users"),
        "subscribedUser": count(conn, "SELECT COUNT(*) AS n FROM users WHERE subscription_status='active'"),
    }


def bootstrap_admin_if_needed(cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    - AUTH_BOOTSTRAP_ADMIN_USERNAME (default: admin)
    - AUTH_BOOTSTRAP_ADMIN_EMAIL (default: admin@example.com)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (no default; nothing is created when blank)
    """

    with connect(cfg.DB_DSN) as conn:
        if count(conn, "SELECT COUNT(*) AS n FROM users") > 0:
            return None

        user_name = normalize_username(cfg.AUTH_BOOTSTRAP_ADMIN_USERNAME)
        password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD
        if not user_name or not password:
            return None

        return create_user(
            conn,
            user_name=user_name,
            full_name="Administrator",
            email=cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL,
            password=password,
            role="ADMIN",
        )
