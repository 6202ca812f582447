from __future__ import annotations

from typing import Any, Dict

from lms_platform.config import Config
from lms_platform.errors import UpstreamServiceError


def _debug(msg: str) -> None:
    print(f"[billing] {msg}")


class RazorpayGateway:
    """Thin wrapper over the Razorpay SDK.

    Only the three calls the subscription flow needs. Every SDK failure is
    re-raised as UpstreamServiceError; nothing is retried.
    """

    def __init__(self, cfg: Config):
        self._key_id = cfg.RAZORPAY_KEY_ID
        self._secret = cfg.RAZORPAY_SECRET
        self._total_count = int(cfg.RAZORPAY_TOTAL_COUNT)
        self._client: Any = None

    @property
    def enabled(self) -> bool:
        return bool(self._key_id and self._secret)

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.enabled:
            raise UpstreamServiceError("Payment gateway is not configured")
        try:
            import razorpay  # type: ignore
        except Exception as e:
            raise UpstreamServiceError(
                "Razorpay selected but the 'razorpay' package is not installed."
            ) from e
        self._client = razorpay.Client(auth=(self._key_id, self._secret))
        return self._client

    def _call(self, what: str, fn: Any, *args: Any) -> Dict[str, Any]:
        try:
            return dict(fn(*args))
        except UpstreamServiceError:
            raise
        except Exception as e:
            _debug(f"razorpay {what} failed: {e}")
            raise UpstreamServiceError(f"Payment gateway error: {e}") from e

    def create_subscription(self, plan_id: str) -> Dict[str, Any]:
        """Returns the gateway subscription entity ({id, status, ...})."""
        client = self._get_client()
        data = {
            "plan_id": plan_id,
            "customer_notify": 1,
            "total_count": self._total_count,
        }
        return self._call("subscription.create", client.subscription.create, data)

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        client = self._get_client()
        return self._call("subscription.cancel", client.subscription.cancel, subscription_id)

    def list_subscriptions(self, count: int = 100, skip: int = 0) -> Dict[str, Any]:
        """Returns the gateway collection ({entity, count, items: [...]})."""
        client = self._get_client()
        return self._call("subscription.all", client.subscription.all, {"count": int(count), "skip": int(skip)})
