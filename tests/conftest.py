from __future__ import annotations

from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from lms_platform.api.server import create_app
from lms_platform.auth.crud import create_user, get_user_by_id
from lms_platform.auth.security import create_access_token
from lms_platform.config import Config
from lms_platform.db import connect, init_db
from lms_platform.errors import UpstreamServiceError


JWT_SECRET = "test-jwt-secret-that-is-at-least-32-bytes"
RAZORPAY_SECRET = "rzp_test_secret"


class FakeGateway:
    """Stands in for RazorpayGateway; records every call."""

    def __init__(self) -> None:
        self.created: List[str] = []
        self.cancelled: List[str] = []
        self.cancel_status = "cancelled"
        self.items: List[Dict[str, Any]] = []

    def create_subscription(self, plan_id: str) -> Dict[str, Any]:
        self.created.append(plan_id)
        return {"id": f"sub_test_{len(self.created)}", "status": "created", "plan_id": plan_id}

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        self.cancelled.append(subscription_id)
        return {"id": subscription_id, "status": self.cancel_status}

    def list_subscriptions(self, count: int = 100, skip: int = 0) -> Dict[str, Any]:
        items = self.items[skip : skip + count]
        return {"entity": "collection", "count": len(items), "items": items}


class FakeMedia:
    def __init__(self) -> None:
        self.uploads: List[Dict[str, Any]] = []
        self.destroyed: List[str] = []
        self.fail_uploads = False

    def upload(self, file: Any, *, resource_type: str = "image", **options: Any) -> Dict[str, str]:
        if self.fail_uploads:
            raise UpstreamServiceError("File can not get uploaded")
        self.uploads.append({"resource_type": resource_type, "options": options, "data": file.read()})
        public_id = f"lms/{resource_type}_{len(self.uploads)}"
        return {"public_id": public_id, "secure_url": f"https://media.example.com/{public_id}"}

    def destroy(self, public_id: str, *, resource_type: str = "image") -> None:
        self.destroyed.append(public_id)


class FakeMailer:
    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []
        self.fail = False

    def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise UpstreamServiceError("Email could not be sent")
        self.sent.append({"to": to, "subject": subject, "html": html_body})


@pytest.fixture
def cfg(tmp_path) -> Config:
    c = Config(
        DB_DSN=str(tmp_path / "lms.sqlite"),
        ENVIRONMENT="test",
        FRONTEND_URL="http://frontend.test",
        AUTH_JWT_SECRET=JWT_SECRET,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="",
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_SECURE=False,
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_SECRET=RAZORPAY_SECRET,
        RAZORPAY_PLAN_ID="plan_test",
        CONTACT_EMAIL="inbox@example.com",
    )
    init_db(c.DB_DSN)
    return c


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def app(cfg, gateway, media, mailer):
    return create_app(cfg, gateway=gateway, media=media, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(cfg):
    """Insert a user straight into the store and return its public dict."""

    def _make(user_name: str, email: str, *, role: str = "USER", password: str = "secret123", full_name: str = "Test Person"):
        with connect(cfg.DB_DSN) as conn:
            return create_user(
                conn,
                user_name=user_name,
                full_name=full_name,
                email=email,
                password=password,
                role=role,
            )

    return _make


@pytest.fixture
def auth_headers(cfg):
    """Bearer headers for a user id, minted from the current row."""

    def _headers(user_id: int) -> Dict[str, str]:
        with connect(cfg.DB_DSN) as conn:
            row = get_user_by_id(conn, user_id)
        token = create_access_token(secret=cfg.AUTH_JWT_SECRET, user=dict(row), expires_minutes=60)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin(make_user):
    return make_user("admin01", "admin@example.com", role="ADMIN", full_name="Site Admin")


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin["user_id"])
