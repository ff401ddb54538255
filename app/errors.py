"""Exception handlers: the JSON envelope on API paths, small HTML pages on web paths."""

import logging
from html import escape
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from app.config import get_settings
from app.schemas.common import ApiResponse, FieldError

logger = logging.getLogger("ifrs_explorer")

SECRET_FIELDS = {"password", "new_password", "token"}


def error_response(
    status_code: int,
    message: str,
    error: str | None = None,
    errors: list[FieldError] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ApiResponse[Any](success=False, message=message, error=error, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def _field_name(loc: tuple) -> str:
    # ("body", "email") -> "email"; ("query", "pageSize") -> "pageSize"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "unknown"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    """Envelope with per-field errors on API paths, a plain error page elsewhere."""
    errors = []
    for err in exc.errors():
        field = _field_name(err.get("loc", ()))
        errors.append(
            FieldError(
                field=field,
                message=str(err.get("msg", "Invalid value")).removeprefix("Value error, "),
                # never echo secrets back
                value=None if field in SECRET_FIELDS else err.get("input"),
            )
        )
    if not _is_api(request):
        items = "".join(f"<li>{escape(e.field)}: {escape(e.message)}</li>" for e in errors)
        return HTMLResponse(content=f"<h1>422</h1><p>Invalid request</p><ul>{items}</ul>", status_code=422)
    return error_response(422, "Validation failed", error="Validation failed", errors=errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Envelope for API paths. Web paths redirect 401 to /login."""
    headers = getattr(exc, "headers", None)
    if exc.status_code == 401 and not _is_api(request):
        if request.headers.get("HX-Request"):
            response = HTMLResponse(content="", status_code=200)
            response.headers["HX-Redirect"] = "/login"
            return response
        return RedirectResponse(url="/login", status_code=302)

    if _is_api(request):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = "Route not found"
            detail = f"Cannot {request.method} {request.url.path}"
            return error_response(404, message, error=detail)
        return error_response(
            exc.status_code,
            str(exc.detail),
            error=HTTPStatus(exc.status_code).phrase,
            headers=headers,
        )

    return HTMLResponse(
        content=f"<h1>{exc.status_code}</h1><p>{escape(str(exc.detail))}</p>",
        status_code=exc.status_code,
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handle rate limit exceeded."""
    if _is_api(request):
        return error_response(429, "Too many requests", error="Rate limit exceeded. Please try again later.")
    return HTMLResponse(content="<h1>429</h1><p>Too many requests. Please try again later.</p>", status_code=429)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(409, "Resource already exists", error="Duplicate entry")


async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Database connection error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(500, "Database connection error", error="Service temporarily unavailable")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if get_settings().is_development else "Something went wrong"
    return error_response(500, "Internal server error", error=detail)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(InterfaceError, database_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
