"""Accessors for the process-wide state set up by `create_app`.

Everything here is read-only after startup; handlers receive it through
FastAPI dependencies instead of importing module globals.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from lms_platform.config import Config
from lms_platform.errors import InternalError


def _state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise InternalError(f"server_{name}_missing")
    return value


def get_cfg(request: Request) -> Config:
    return _state(request, "cfg")


def get_gateway(request: Request) -> Any:
    return _state(request, "gateway")


def get_media(request: Request) -> Any:
    return _state(request, "media")


def get_mailer(request: Request) -> Any:
    return _state(request, "mailer")
