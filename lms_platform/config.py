import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide API keys via environment variables or a .env file.
    Do not hardcode secrets in source code.

    One instance is built at startup and shared read-only by every request
    (see `lms_platform.api.server.create_app`).
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set LMS_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: LMS_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("LMS_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("LMS_DB_PATH", "./lms_platform.sqlite")
    )

    # "production" hides stack traces in error responses.
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    # Public site (used for password reset links + CORS).
    FRONTEND_URL: str = os.environ.get("FRONTEND_URL", "http://localhost:5173")

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 days

    # Bootstrap first admin user if users table is empty
    AUTH_BOOTSTRAP_ADMIN_USERNAME: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_USERNAME", "admin")
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@example.com")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "")

    # Cookie-based browser sessions
    # - The API sets an httpOnly cookie on /user/login and /user/register
    # - The API reads the token from either Authorization: Bearer ... OR the cookie
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "none")  # lax|strict|none
    # NOTE: Browsers require Secure when SameSite=None.
    AUTH_COOKIE_SECURE: bool = _env_bool("AUTH_COOKIE_SECURE", True) is True

    # Password reset links stay valid for this long.
    PASSWORD_RESET_EXPIRE_MINUTES: int = int(os.environ.get("PASSWORD_RESET_EXPIRE_MINUTES", "5"))

    # -----------------
    # CORS
    # -----------------
    # Comma-separated. Defaults to FRONTEND_URL when unset.
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "")

    # -----------------
    # Billing (Razorpay)
    # -----------------
    RAZORPAY_KEY_ID: str | None = os.environ.get("RAZORPAY_KEY_ID")
    RAZORPAY_SECRET: str | None = os.environ.get("RAZORPAY_SECRET")
    RAZORPAY_PLAN_ID: str | None = os.environ.get("RAZORPAY_PLAN_ID")
    # Number of billing cycles per subscription.
    RAZORPAY_TOTAL_COUNT: int = int(os.environ.get("RAZORPAY_TOTAL_COUNT", "12"))

    # -----------------
    # Media (Cloudinary)
    # -----------------
    CLOUDINARY_CLOUD_NAME: str | None = os.environ.get("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY: str | None = os.environ.get("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str | None = os.environ.get("CLOUDINARY_API_SECRET")
    CLOUDINARY_FOLDER: str = os.environ.get("CLOUDINARY_FOLDER", "lms")

    # -----------------
    # Email (SMTP)
    # -----------------
    SMTP_HOST: str = os.environ.get("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT: int = int(os.environ.get("SMTP_PORT", "465"))
    SMTP_USERNAME: str | None = os.environ.get("SMTP_USERNAME")
    SMTP_PASSWORD: str | None = os.environ.get("SMTP_PASSWORD")
    SMTP_FROM: str = os.environ.get("SMTP_FROM", '"Zenstudy" <zenstudy@gmail.com>')
    # Port 465 uses implicit TLS; anything else uses STARTTLS.
    SMTP_USE_SSL: bool = _env_bool("SMTP_USE_SSL", True) is True

    # Contact form messages are relayed here.
    CONTACT_EMAIL: str | None = os.environ.get("CONTACT_EMAIL")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "production"


def load_config() -> Config:
    return Config()
