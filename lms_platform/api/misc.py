from __future__ import annotations

import html
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lms_platform.api.deps import get_cfg, get_mailer
from lms_platform.auth import require_admin
from lms_platform.auth.crud import is_valid_email, user_stats
from lms_platform.config import Config
from lms_platform.db import connect
from lms_platform.errors import UpstreamServiceError, ValidationError


router = APIRouter(tags=["misc"])


class ContactRequest(BaseModel):
    name: str = ""
    email: str = ""
    message: str = ""


@router.get("/admin/stats")
def admin_user_stats(
    _admin: Dict[str, Any] = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        stats = user_stats(conn)
    return {"success": True, "message": "Users Stats", **stats}


@router.post("/contact")
def contact_us(
    payload: ContactRequest,
    cfg: Config = Depends(get_cfg),
    mailer: Any = Depends(get_mailer),
) -> Dict[str, Any]:
    """Relay a public contact form to the site inbox."""
    name = payload.name.strip()
    email = payload.email.strip()
    message = payload.message.strip()
    if not (name and email and message):
        raise ValidationError("Name, Email and Message are required")
    if not is_valid_email(email):
        raise ValidationError("Please enter a valid email")

    inbox = cfg.CONTACT_EMAIL or cfg.SMTP_USERNAME
    if not inbox:
        raise UpstreamServiceError("Contact inbox is not configured")

    body = (
        f"<p><b>Name:</b> {html.escape(name)}</p>"
        f"<p><b>Email:</b> {html.escape(email)}</p>"
        f"<p>{html.escape(message)}</p>"
    )
    mailer.send(inbox, "Contact Us Form", body)
    return {"success": True, "message": "Form submitted successfully"}
