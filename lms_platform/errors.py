"""Typed application errors and the single JSON error responder.

Handlers raise one of the `AppError` subclasses below; `install_error_handlers`
turns every failure (typed or not) into:

    {"success": false, "message": "...", "stack": "..."}

`stack` is only included outside production.
"""

from __future__ import annotations

import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = int(status_code)
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Unauthenticated! Please login again"


class InvalidTokenError(AuthenticationError):
    default_message = "Session token is invalid"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "You do not have permission to access this resource"


class PaymentVerificationError(AppError):
    status_code = 400
    default_message = "Payment unsuccessful! Please try again"


class UpstreamServiceError(AppError):
    status_code = 502
    default_message = "Upstream service failed"


class InternalError(AppError):
    status_code = 500


def error_body(message: str, exc: BaseException, *, production: bool) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if not production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def _is_production(request: Request) -> bool:
    cfg = getattr(request.app.state, "cfg", None)
    return bool(getattr(cfg, "is_production", False))


def install_error_handlers(app: FastAPI) -> None:
    """Register the centralized responder for every error kind."""

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            _debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc, production=_is_production(request)),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        parts = []
        for err in exc.errors():
            loc = ".".join(str(x) for x in err.get("loc", ()) if x not in ("body", "form", "query", "path"))
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        message = "; ".join(parts) or ValidationError.default_message
        return JSONResponse(
            status_code=400,
            content=error_body(message, exc, production=_is_production(request)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = str(exc.detail)
        if exc.status_code == 404 and message == "Not Found":
            message = "OOPS! 404 Page not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message, exc, production=_is_production(request)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"{request.method} {request.url.path} -> unexpected {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=500,
            content=error_body(str(exc) or InternalError.default_message, exc, production=_is_production(request)),
        )
