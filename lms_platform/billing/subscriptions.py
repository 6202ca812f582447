"""Subscription state machine.

    none --create--> pending --verify--> active --cancel--> canceled

The status lives on the user row (`subscription_id`, `subscription_status`)
and this module is the only writer. Transitions are driven by the client
relaying what Razorpay returned; `verify_subscription` checks Razorpay's
HMAC-SHA256 signature before anything is activated.

Known gaps, kept on purpose:
- `create_subscription` is not idempotent: calling it twice creates two
  gateway subscriptions and the second id overwrites the first.
- If the gateway call succeeds and the local write fails, nothing compensates.
"""

from __future__ import annotations

import hmac
from typing import Any, Dict, List, Tuple

from lms_platform.auth.crud import get_user_by_id, set_user_subscription
from lms_platform.auth.security import subscription_snapshot
from lms_platform.config import Config
from lms_platform.errors import (
    AuthorizationError,
    NotFoundError,
    PaymentVerificationError,
    UpstreamServiceError,
    ValidationError,
)
from lms_platform.util.hashing import hmac_sha256_hex
from lms_platform.util.time import ts_to_month_index, utcnow_iso


STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_CANCELED = "canceled"

# Razorpay's own name for a subscription awaiting its first payment.
_VERIFIABLE_STATUSES = (STATUS_PENDING, "created")

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


def _debug(msg: str) -> None:
    print(f"[billing] {msg}")


def normalize_gateway_status(status: str | None) -> str | None:
    s = (status or "").strip().lower()
    if not s:
        return None
    if s == "cancelled":
        return STATUS_CANCELED
    return s


def expected_signature(secret: str, payment_id: str, subscription_id: str) -> str:
    """Razorpay subscription signature: hex HMAC-SHA256 of "<payment_id>|<subscription_id>"."""
    return hmac_sha256_hex(secret, f"{payment_id}|{subscription_id}")


def signature_matches(secret: str, payment_id: str, subscription_id: str, signature: str) -> bool:
    expected = expected_signature(secret, payment_id, subscription_id)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))


def _load_billable_user(conn: Any, user_id: int, *, action: str) -> Any:
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFoundError("User does not exist! Please login")
    if str(row["role"]) == "ADMIN":
        raise AuthorizationError(f"Admin cannot {action} subscription")
    return row


def create_subscription(conn: Any, *, gateway: Any, cfg: Config, user_id: int) -> Dict[str, Any]:
    """none -> pending. Returns the new snapshot {id, status}."""
    row = _load_billable_user(conn, user_id, action="purchase")

    plan_id = cfg.RAZORPAY_PLAN_ID
    if not plan_id:
        raise UpstreamServiceError("Subscription plan is not configured")

    previous = row["subscription_id"]
    if previous:
        _debug(
            f"user_id={user_id} already has subscription {previous} "
            f"(status={row['subscription_status']}); creating another"
        )

    sub = gateway.create_subscription(plan_id)
    subscription_id = str(sub.get("id") or "")
    if not subscription_id:
        raise UpstreamServiceError("Payment gateway returned no subscription id")

    set_user_subscription(
        conn,
        user_id=user_id,
        subscription_id=subscription_id,
        subscription_status=STATUS_PENDING,
    )
    _debug(f"user_id={user_id} subscription {subscription_id} -> {STATUS_PENDING}")
    return {"id": subscription_id, "status": STATUS_PENDING}


def verify_subscription(
    conn: Any,
    *,
    cfg: Config,
    user_id: int,
    payment_id: str,
    signature: str,
    subscription_id: str | None = None,
) -> Dict[str, Any]:
    """pending -> active, iff the gateway signature checks out.

    The signature is recomputed over the subscription id stored on the user,
    not the one the client sent; a differing client id is rejected. On
    mismatch nothing is written.
    """
    payment_id = (payment_id or "").strip()
    if not payment_id or not (signature or "").strip():
        raise ValidationError("razorpay_payment_id and razorpay_signature are required")

    row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFoundError("User does not exist! Please login")

    stored_id = row["subscription_id"] or ""
    status = (row["subscription_status"] or "").strip().lower()
    if not stored_id or status not in _VERIFIABLE_STATUSES:
        raise ValidationError("No pending subscription to verify")

    if subscription_id and subscription_id.strip() != stored_id:
        _debug(f"user_id={user_id} verify rejected: subscription id mismatch")
        raise PaymentVerificationError()

    if not cfg.RAZORPAY_SECRET:
        raise UpstreamServiceError("Payment gateway is not configured")

    if not signature_matches(cfg.RAZORPAY_SECRET, payment_id, stored_id, signature):
        _debug(f"user_id={user_id} verify rejected: signature mismatch for {stored_id}")
        raise PaymentVerificationError()

    conn.execute(
        """
        INSERT INTO payments (user_id, razorpay_payment_id, razorpay_subscription_id, razorpay_signature, created_at)
        VALUES (?,?,?,?,?)
        """,
        (int(user_id), payment_id, stored_id, signature, utcnow_iso()),
    )
    set_user_subscription(conn, user_id=user_id, subscription_status=STATUS_ACTIVE)
    _debug(f"user_id={user_id} subscription {stored_id} -> {STATUS_ACTIVE}")
    return {"id": stored_id, "status": STATUS_ACTIVE}


def cancel_subscription(conn: Any, *, gateway: Any, user_id: int) -> Dict[str, Any]:
    """active -> whatever the gateway reports (normally canceled)."""
    row = _load_billable_user(conn, user_id, action="cancel")

    subscription_id = row["subscription_id"]
    if not subscription_id:
        raise ValidationError("No subscription to cancel")

    result = gateway.cancel_subscription(str(subscription_id))
    status = normalize_gateway_status(result.get("status")) or STATUS_CANCELED

    set_user_subscription(conn, user_id=user_id, subscription_status=status)
    _debug(f"user_id={user_id} subscription {subscription_id} -> {status}")
    return {"id": subscription_id, "status": status}


def current_subscription(conn: Any, user_id: int) -> Dict[str, Any]:
    row = get_user_by_id(conn, user_id)
    if row is None:
        raise NotFoundError("User does not exist! Please login")
    return subscription_snapshot(dict(row))


def monthly_subscription_counts(items: List[Dict[str, Any]]) -> Tuple[Dict[str, int], List[int]]:
    """Count gateway subscriptions by the month they started.

    Returns ({month name: count}, [12 counts, January first]).
    """
    final_months = {name: 0 for name in MONTH_NAMES}
    for item in items or []:
        idx = ts_to_month_index(item.get("start_at"))
        if idx is None:
            continue
        final_months[MONTH_NAMES[idx]] += 1
    return final_months, [final_months[name] for name in MONTH_NAMES]
