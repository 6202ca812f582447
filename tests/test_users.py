import re

from fastapi.testclient import TestClient

from lms_platform.auth.crud import get_user_by_email
from lms_platform.auth.security import verify_password
from lms_platform.db import connect, count


REGISTER = {
    "userName": "alice01",
    "fullName": "Alice Liddell",
    "email": "alice@example.com",
    "password": "p1",
    "confirmPassword": "p1",
}


def _users(cfg) -> int:
    with connect(cfg.DB_DSN) as conn:
        return count(conn, "SELECT COUNT(*) AS n FROM users")


def test_register_creates_user_and_sets_cookie(client, cfg):
    r = client.post("/api/v1/user/register", data=REGISTER)

    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["user"]["user_name"] == "alice01"
    assert body["user"]["role"] == "USER"
    assert "password_hash" not in body["user"]
    assert "password" not in body["user"]
    assert cfg.AUTH_COOKIE_NAME in r.cookies

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, "alice@example.com")
    assert row["password_hash"] != "p1"
    assert verify_password("p1", row["password_hash"])
    assert _users(cfg) == 1


def test_register_session_is_usable(client):
    client.post("/api/v1/user/register", data=REGISTER)
    r = client.get("/api/v1/user/me")
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "alice@example.com"


def test_register_duplicate_username_or_email_is_rejected(client, cfg, make_user):
    make_user("alice01", "someone@example.com")
    make_user("someone", "alice@example.com")

    r = client.post("/api/v1/user/register", data=REGISTER)
    assert r.status_code == 400
    assert r.json()["message"] == "Username already exists"

    r = client.post("/api/v1/user/register", data={**REGISTER, "userName": "alice02"})
    assert r.status_code == 400
    assert r.json()["message"] == "Email is already registered"

    assert _users(cfg) == 2


def test_register_password_mismatch_creates_nothing(client, cfg):
    r = client.post("/api/v1/user/register", data={**REGISTER, "confirmPassword": "p2"})
    assert r.status_code == 400
    assert _users(cfg) == 0


def test_register_missing_fields(client, cfg):
    r = client.post("/api/v1/user/register", data={"userName": "alice01"})
    assert r.status_code == 400
    assert r.json()["message"] == "All fields are required"
    assert _users(cfg) == 0


def test_register_with_avatar(client, media):
    r = client.post(
        "/api/v1/user/register",
        data=REGISTER,
        files={"avatar": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert r.status_code == 201
    avatar = r.json()["user"]["avatar"]
    assert avatar["public_id"] == "lms/image_1"
    assert avatar["secure_url"].endswith("lms/image_1")
    assert media.uploads[0]["options"]["crop"] == "fill"


def test_register_survives_avatar_upload_failure(client, cfg, media):
    media.fail_uploads = True
    r = client.post(
        "/api/v1/user/register",
        data=REGISTER,
        files={"avatar": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert r.status_code == 201
    assert r.json()["user"]["avatar"] == {"public_id": "", "secure_url": ""}
    assert _users(cfg) == 1


def test_login_success_sets_cookie(app, make_user):
    make_user("alice01", "alice@example.com", password="p1")
    with TestClient(app) as c:
        r = c.post("/api/v1/user/login", json={"email": "alice@example.com", "password": "p1"})
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "alice@example.com"
    assert r.json()["access_token"]
    assert "token" in r.cookies


def test_login_wrong_password_sets_no_cookie(app, make_user):
    make_user("alice01", "alice@example.com", password="p1")
    with TestClient(app) as c:
        r = c.post("/api/v1/user/login", json={"email": "alice@example.com", "password": "wrong"})
    assert r.status_code == 400
    assert r.json()["message"] == "Password is wrong"
    assert "set-cookie" not in r.headers


def test_login_unknown_email(app):
    with TestClient(app) as c:
        r = c.post("/api/v1/user/login", json={"email": "nobody@example.com", "password": "p1"})
    assert r.status_code == 401
    assert "set-cookie" not in r.headers


def test_login_refused_while_logged_in(client, make_user):
    client.post("/api/v1/user/register", data=REGISTER)
    r = client.post("/api/v1/user/login", json={"email": "alice@example.com", "password": "p1"})
    assert r.status_code == 400
    assert "Already logged in" in r.json()["message"]


def test_logout_clears_cookie(client):
    client.post("/api/v1/user/register", data=REGISTER)
    r = client.get("/api/v1/user/logout")
    assert r.status_code == 200
    assert "token=" in r.headers["set-cookie"]
    assert client.get("/api/v1/user/me").status_code == 401


def test_forgot_and_reset_password(client, cfg, mailer, make_user):
    u = make_user("alice01", "alice@example.com", password="p1")

    r = client.post("/api/v1/user/forgot-password", json={"email": "alice@example.com"})
    assert r.status_code == 200
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "alice@example.com"
    m = re.search(r"http://frontend\.test/reset-password/([0-9a-f]+)", mailer.sent[0]["html"])
    assert m is not None
    reset_token = m.group(1)

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, "alice@example.com")
    assert row["forgot_password_token"] != reset_token

    r = client.post(f"/api/v1/user/reset-password/{reset_token}", json={"password": "p2"})
    assert r.status_code == 200

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, "alice@example.com")
    assert verify_password("p2", row["password_hash"])
    assert row["forgot_password_token"] is None
    assert row["user_id"] == u["user_id"]

    # Tickets are single use.
    r = client.post(f"/api/v1/user/reset-password/{reset_token}", json={"password": "p3"})
    assert r.status_code == 400


def test_expired_reset_ticket_is_rejected(client, cfg, make_user):
    u = make_user("alice01", "alice@example.com")
    from lms_platform.auth.crud import start_password_reset

    with connect(cfg.DB_DSN) as conn:
        token = start_password_reset(conn, u["user_id"], expires_minutes=-1)

    r = client.post(f"/api/v1/user/reset-password/{token}", json={"password": "p2"})
    assert r.status_code == 400


def test_forgot_password_mail_failure_clears_ticket(client, cfg, mailer, make_user):
    make_user("alice01", "alice@example.com")
    mailer.fail = True

    r = client.post("/api/v1/user/forgot-password", json={"email": "alice@example.com"})
    assert r.status_code == 502

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, "alice@example.com")
    assert row["forgot_password_token"] is None
    assert row["forgot_password_expiry"] is None


def test_forgot_password_unknown_email(client, mailer):
    r = client.post("/api/v1/user/forgot-password", json={"email": "nobody@example.com"})
    assert r.status_code == 400
    assert mailer.sent == []


def test_change_password(client, cfg, make_user, auth_headers):
    u = make_user("alice01", "alice@example.com", password="p1")
    headers = auth_headers(u["user_id"])

    r = client.post(
        "/api/v1/user/change-password",
        json={"oldPassword": "wrong", "newPassword": "p2"},
        headers=headers,
    )
    assert r.status_code == 400

    r = client.post(
        "/api/v1/user/change-password",
        json={"oldPassword": "p1", "newPassword": "p2"},
        headers=headers,
    )
    assert r.status_code == 200

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, "alice@example.com")
    assert verify_password("p2", row["password_hash"])


def test_update_profile_replaces_avatar(client, cfg, media, make_user, auth_headers):
    u = make_user("alice01", "alice@example.com")
    headers = auth_headers(u["user_id"])

    r = client.put(
        "/api/v1/user/update-profile",
        data={"fullName": "Alice Pleasance"},
        files={"avatar": ("a.png", b"one", "image/png")},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["user"]["full_name"] == "Alice Pleasance"
    assert r.json()["user"]["avatar"]["public_id"] == "lms/image_1"

    r = client.put(
        "/api/v1/user/update-profile",
        files={"avatar": ("b.png", b"two", "image/png")},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["user"]["avatar"]["public_id"] == "lms/image_2"
    assert media.destroyed == ["lms/image_1"]


def test_update_profile_rejects_short_name(client, make_user, auth_headers):
    u = make_user("alice01", "alice@example.com")
    r = client.put(
        "/api/v1/user/update-profile",
        data={"fullName": "Al"},
        headers=auth_headers(u["user_id"]),
    )
    assert r.status_code == 400


def test_update_profile_keeps_old_avatar_when_store_write_fails(client, cfg, media, make_user, auth_headers, monkeypatch):
    from lms_platform.api import users as users_api
    from lms_platform.auth.crud import update_profile
    from lms_platform.errors import InternalError

    u = make_user("alice01", "alice@example.com")
    with connect(cfg.DB_DSN) as conn:
        update_profile(conn, u["user_id"], avatar_public_id="lms/old", avatar_secure_url="https://media.example.com/lms/old")

    def _fail(*args, **kwargs):
        raise InternalError("database unavailable")

    monkeypatch.setattr(users_api, "update_profile", _fail)

    r = client.put(
        "/api/v1/user/update-profile",
        files={"avatar": ("b.png", b"two", "image/png")},
        headers=auth_headers(u["user_id"]),
    )
    assert r.status_code == 500
    assert media.destroyed == []

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, "alice@example.com")
    assert row["avatar_public_id"] == "lms/old"
