from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from pydantic import BaseModel, Field

from lms_platform.api.deps import get_cfg, get_mailer, get_media
from lms_platform.auth import require_authenticated, require_logged_out
from lms_platform.auth.crud import (
    clear_password_reset,
    create_user,
    get_user_by_email,
    get_user_by_id,
    get_user_by_reset_token,
    public_user,
    start_password_reset,
    touch_last_login,
    update_password,
    update_profile,
    verify_user_credentials,
)
from lms_platform.auth.security import create_access_token, verify_password
from lms_platform.config import Config
from lms_platform.db import connect
from lms_platform.errors import (
    AuthenticationError,
    NotFoundError,
    UpstreamServiceError,
    ValidationError,
)
from lms_platform.media.cloudinary_media import AVATAR_OPTIONS


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter(prefix="/user", tags=["user"])


_CREATE_USER_ERRORS = {
    "username_blank": "Username is required",
    "username_exists": "Username already exists",
    "email_exists": "Email is already registered",
    "email_invalid": "Please enter a valid email",
    "full_name_length": "Full name must be between 5 and 30 characters",
}


# -----------------------------
# Session cookie
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    # Browsers require Secure when SameSite=None
    if cfg.AUTH_COOKIE_SAMESITE.lower() == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def _set_auth_cookie(response: Response, *, token: str, cfg: Config) -> None:
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        samesite=cfg.AUTH_COOKIE_SAMESITE.lower(),
        secure=_cookie_secure(cfg),
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60,
        path=cfg.AUTH_COOKIE_PATH,
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


def _clear_auth_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH,
        domain=cfg.AUTH_COOKIE_DOMAIN,
        secure=_cookie_secure(cfg),
        httponly=True,
        samesite=cfg.AUTH_COOKIE_SAMESITE.lower(),
    )


def _issue_session(response: Response, row: Any, cfg: Config) -> str:
    token = create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user=dict(row),
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    _set_auth_cookie(response, token=token, cfg=cfg)
    return token


# -----------------------------
# Register / login / logout
# -----------------------------


@router.post("/register", status_code=201)
def register(
    response: Response,
    user_name: str = Form("", alias="userName"),
    full_name: str = Form("", alias="fullName"),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form("", alias="confirmPassword"),
    avatar: Optional[UploadFile] = File(default=None),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    """Create an account, optionally with an avatar, and log it in.

    The avatar is uploaded after the user row is committed. If the upload
    fails the account still exists with an empty avatar.
    """
    if not (user_name and full_name and email and password and confirm_password):
        raise ValidationError("All fields are required")
    if password != confirm_password:
        raise ValidationError("Password and Confirm Password must be same")

    with connect(cfg.DB_DSN) as conn:
        try:
            u = create_user(
                conn,
                user_name=user_name,
                full_name=full_name,
                email=email,
                password=password,
            )
        except ValueError as e:
            raise ValidationError(_CREATE_USER_ERRORS.get(str(e), "Registration failed!"))

    user_id = int(u["user_id"])
    _debug(f"registered user_id={user_id} user_name={u['user_name']}")

    if avatar is not None and avatar.filename:
        try:
            uploaded = media.upload(avatar.file, **AVATAR_OPTIONS)
        except UpstreamServiceError as e:
            _debug(f"avatar upload failed for user_id={user_id}: {e.message}; keeping empty avatar")
        else:
            with connect(cfg.DB_DSN) as conn:
                update_profile(
                    conn,
                    user_id,
                    avatar_public_id=uploaded["public_id"],
                    avatar_secure_url=uploaded["secure_url"],
                )

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, user_id)
    token = _issue_session(response, row, cfg)

    return {
        "success": True,
        "message": "User registered successfully",
        "user": public_user(row),
        "access_token": token,
        "token_type": "bearer",
    }


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


@router.post("/login", dependencies=[Depends(require_logged_out)])
def login(payload: LoginRequest, response: Response, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    if not payload.email or not payload.password:
        raise ValidationError("Email and Password is required")

    with connect(cfg.DB_DSN) as conn:
        row, reason = verify_user_credentials(conn, payload.email, payload.password)
        if row is None:
            if reason == "email_not_registered":
                raise AuthenticationError("Email is not registered")
            raise ValidationError("Password is wrong")
        touch_last_login(conn, int(row["user_id"]))

    token = _issue_session(response, row, cfg)
    return {
        "success": True,
        "message": "Login successful!",
        "user": public_user(row),
        "access_token": token,
        "token_type": "bearer",
    }


@router.get("/logout")
def logout(response: Response, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    """Clear the session cookie. The token itself stays valid until it expires."""
    _clear_auth_cookie(response, cfg)
    return {"success": True, "message": "Logged out"}


@router.get("/me")
def profile(
    identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, int(identity["id"]))
    if row is None:
        raise NotFoundError("User does not exist")
    return {"success": True, "message": "User Details", "user": public_user(row)}


# -----------------------------
# Passwords
# -----------------------------


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    password: str = ""


class ChangePasswordRequest(BaseModel):
    old_password: str = Field("", alias="oldPassword")
    new_password: str = Field("", alias="newPassword")


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    cfg: Config = Depends(get_cfg),
    mailer: Any = Depends(get_mailer),
) -> Dict[str, Any]:
    """Email a one-time reset link. The ticket is cleared again if sending fails."""
    if not payload.email:
        raise ValidationError("Email is required")

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_email(conn, payload.email)
        if row is None:
            raise ValidationError("Email is not registered")
        user_id = int(row["user_id"])
        reset_token = start_password_reset(conn, user_id, expires_minutes=cfg.PASSWORD_RESET_EXPIRE_MINUTES)

    reset_url = f"{cfg.FRONTEND_URL.rstrip('/')}/reset-password/{reset_token}"
    message = f'Reset your password by clicking on this link <a href="{reset_url}">Reset Password</a>'
    try:
        mailer.send(str(row["email"]), "Reset Password", message)
    except UpstreamServiceError:
        with connect(cfg.DB_DSN) as conn:
            clear_password_reset(conn, user_id)
        raise

    return {"success": True, "message": "Password reset link has been sent to your email"}


@router.post("/reset-password/{reset_token}")
def reset_password(
    reset_token: str,
    payload: ResetPasswordRequest,
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_reset_token(conn, reset_token)
        if row is None:
            raise ValidationError("Token is invalid or expired! Please resend it")
        if not payload.password:
            raise ValidationError("Please enter a new password")

        user_id = int(row["user_id"])
        update_password(conn, user_id, payload.password)
        clear_password_reset(conn, user_id)

    _debug(f"password reset for user_id={user_id}")
    return {"success": True, "message": "Password reset successful"}


@router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    if not payload.old_password or not payload.new_password:
        raise ValidationError("All fields are required")
    if payload.old_password == payload.new_password:
        raise ValidationError("New password is same as old password")

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, int(identity["id"]))
        if row is None:
            raise ValidationError("User does not exist")
        if not verify_password(payload.old_password, str(row["password_hash"])):
            raise ValidationError("Old password is wrong")
        update_password(conn, int(row["user_id"]), payload.new_password)

    return {"success": True, "message": "Password changed successfully"}


# -----------------------------
# Profile
# -----------------------------


@router.put("/update-profile")
def update_profile_endpoint(
    full_name: Optional[str] = Form(None, alias="fullName"),
    avatar: Optional[UploadFile] = File(default=None),
    identity: Dict[str, Any] = Depends(require_authenticated),
    cfg: Config = Depends(get_cfg),
    media: Any = Depends(get_media),
) -> Dict[str, Any]:
    user_id = int(identity["id"])
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, user_id)
    if row is None:
        raise ValidationError("User does not exist")

    name = (full_name or "").strip() or None
    if name is not None and not (5 <= len(name) <= 30):
        raise ValidationError(_CREATE_USER_ERRORS["full_name_length"])

    avatar_fields: Dict[str, str] = {}
    if avatar is not None and avatar.filename:
        uploaded = media.upload(avatar.file, **AVATAR_OPTIONS)
        avatar_fields = {
            "avatar_public_id": uploaded["public_id"],
            "avatar_secure_url": uploaded["secure_url"],
        }

    with connect(cfg.DB_DSN) as conn:
        update_profile(conn, user_id, full_name=name, **avatar_fields)

    # Old avatar goes only once the row points at the new one.
    old_public_id = row["avatar_public_id"]
    if avatar_fields and old_public_id:
        try:
            media.destroy(old_public_id)
        except UpstreamServiceError:
            _debug(f"orphaned avatar {old_public_id} for user_id={user_id}")

    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, user_id)

    return {"success": True, "message": "User detail updated successfully", "user": public_user(row)}
