"""
authnexus.api.errors

Exception handlers that render every failure as `{message, kind, details?}`.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authnexus.errors import AuthNexusError, ValidationError, kind_for_status
from authnexus.observability.logging import get_logger

log = get_logger(__name__)


def _render(exc: AuthNexusError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthNexusError)
    async def handle_domain_error(request: Request, exc: AuthNexusError):
        log_fn = log.error if exc.status_code >= 500 else log.warning
        log_fn("request_failed", status_code=exc.status_code, kind=exc.kind, message=exc.message)
        return _render(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
        ]
        log.warning("request_invalid", errors=len(errors))
        return _render(ValidationError("Invalid request body", errors))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": message, "kind": kind_for_status(exc.status_code)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        log.exception("unhandled_error")
        return _render(AuthNexusError())


# --- Module Notes -----------------------------------------------------------
# Handlers are the only place errors turn into HTTP; services raise the typed errors
# from `authnexus.errors` and never build responses themselves.
