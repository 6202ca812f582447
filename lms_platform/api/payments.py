from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from lms_platform.api.deps import get_cfg, get_gateway
from lms_platform.auth import require_active_subscription, require_admin, require_authenticated
from lms_platform.billing import subscriptions
from lms_platform.config import Config
from lms_platform.db import connect


router = APIRouter(prefix="/payment", tags=["payment"])


class VerifySubscriptionRequest(BaseModel):
    razorpay_payment_id: str = ""
    razorpay_signature: str = ""
    razorpay_subscription_id: str = ""


@router.get("/razorpay-key")
def razorpay_key(
    _identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    """Public key id the checkout widget needs. The secret never leaves the server."""
    return {"success": True, "message": "Razorpay API key", "key": cfg.RAZORPAY_KEY_ID}


@router.post("/subscribe")
def subscribe(
    identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
    gateway: Any = Depends(get_gateway),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        snapshot = subscriptions.create_subscription(
            conn,
            gateway=gateway,
            cfg=cfg,
            user_id=int(identity["id"]),
        )
    return {
        "success": True,
        "message": "Subscribed successfully",
        "subscription_id": snapshot["id"],
        "subscription": snapshot,
    }


@router.post("/verify-subscription")
def verify_subscription(
    payload: VerifySubscriptionRequest,
    identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        snapshot = subscriptions.verify_subscription(
            conn,
            cfg=cfg,
            user_id=int(identity["id"]),
            payment_id=payload.razorpay_payment_id,
            signature=payload.razorpay_signature,
            subscription_id=payload.razorpay_subscription_id or None,
        )
    return {"success": True, "message": "Verified successfully", "subscription": snapshot}


@router.post("/unsubscribe")
def unsubscribe(
    identity: Dict[str, Any] = Depends(require_active_subscription),
    cfg: Config = Depends(get_cfg),
    gateway: Any = Depends(get_gateway),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        snapshot = subscriptions.cancel_subscription(conn, gateway=gateway, user_id=int(identity["id"]))
    return {"success": True, "message": "Subscription cancelled!", "subscription": snapshot}


@router.get("/")
def all_payments(
    count: int = Query(100, ge=1, le=100),
    skip: int = Query(0, ge=0),
    _admin: Dict[str, Any] = Depends(require_admin),
    gateway: Any = Depends(get_gateway),
) -> Dict[str, Any]:
    """Gateway subscriptions plus a count of how many started in each month."""
    collection = gateway.list_subscriptions(count=count, skip=skip)
    final_months, monthly_sales_record = subscriptions.monthly_subscription_counts(collection.get("items") or [])
    return {
        "success": True,
        "message": "All payments",
        "subscription": collection,
        "finalMonths": final_months,
        "monthlySalesRecord": monthly_sales_record,
    }
