from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from lms_platform import __version__
from lms_platform.api import courses, misc, payments, users
from lms_platform.auth.crud import bootstrap_admin_if_needed
from lms_platform.billing.gateway import RazorpayGateway
from lms_platform.config import Config, load_config
from lms_platform.db import init_db
from lms_platform.errors import install_error_handlers
from lms_platform.mail.smtp_mailer import Mailer
from lms_platform.media.cloudinary_media import MediaStore


API_PREFIX = "/api/v1"


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def create_app(
    cfg: Optional[Config] = None,
    *,
    gateway: Any = None,
    media: Any = None,
    mailer: Any = None,
) -> FastAPI:
    """Build the API.

    Config and the gateway / media / mailer clients are created once here and
    shared read-only by every request through `app.state`. Pass your own to
    swap a collaborator (tests do).
    """
    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Ensure schema exists.
        init_db(cfg.DB_DSN)

        # Bootstrap first admin if needed (only when users table is empty)
        boot = bootstrap_admin_if_needed(cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: user_name={boot.get('user_name')} role={boot.get('role')}")
        yield

    app = FastAPI(title="LMS Platform", version=__version__, lifespan=lifespan)
    app.state.cfg = cfg
    app.state.gateway = gateway if gateway is not None else RazorpayGateway(cfg)
    app.state.media = media if media is not None else MediaStore(cfg)
    app.state.mailer = mailer if mailer is not None else Mailer(cfg)

    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or cfg.FRONTEND_URL or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    install_error_handlers(app)

    @app.get("/ping", response_class=PlainTextResponse)
    def ping() -> str:
        return "/pong"

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    app.include_router(users.router, prefix=API_PREFIX)
    app.include_router(courses.router, prefix=API_PREFIX)
    app.include_router(payments.router, prefix=API_PREFIX)
    app.include_router(misc.router, prefix=API_PREFIX)

    return app


app = create_app()
