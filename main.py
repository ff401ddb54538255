"""IFRS Explorer - business reporting dashboard over a relational database."""

import logging
import math
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.database import Database, get_db
from app.dependencies import (
    CurrentUser,
    clear_auth_cookie,
    get_optional_user,
    require_web_auth,
    set_auth_cookie,
)
from app.errors import error_response, register_exception_handlers
from app.rate_limit import limiter
from app.routers import auth_router, db_router
from app.routers.auth import FORGOT_PASSWORD_MESSAGE
from app.routers.db import table_identifier
from app.schemas.auth import RegisterRequest, ResetPasswordRequest
from app.services.auth import get_auth_service
from app.services.explorer import TableNotFoundError, get_explorer_service
from app.services.jwt import get_jwt_service
from app.services.query_builder import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, RowQuery
from app.sidebar import SIDEBAR_TABLES, find_sidebar_table

# Logging
logger = logging.getLogger("ifrs_explorer")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    for warning in settings.validate():
        logger.warning(warning)
    app.state.database = Database.from_settings(settings)
    logger.info("IFRS Explorer started (env=%s)", settings.APP_ENV)
    try:
        yield
    finally:
        app.state.database.dispose()


app = FastAPI(title="IFRS Explorer", version=APP_VERSION, lifespan=lifespan)
app.state.limiter = limiter


# --- Security headers middleware ---
# Tailwind and htmx are served from these CDNs.
SCRIPT_SOURCES = ("https://cdn.tailwindcss.com", "https://unpkg.com")

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        f"script-src 'self' 'unsafe-inline' 'unsafe-eval' {' '.join(SCRIPT_SOURCES)}",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data:",
        "connect-src 'self'",
        "font-src 'self'",
        "frame-ancestors 'none'",
    ]
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        # No caching of pages or API responses; static assets excepted.
        if not request.url.path.startswith("/static/"):
            response.headers.setdefault("Cache-Control", "no-store")
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = 10 * 1024 * 1024  # 10MB

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return error_response(413, "Request body too large", error="Payload Too Large")
        return await call_next(request)


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = {
        "/api/auth/register",
        "/api/auth/login",
        "/api/auth/forgot-password",
        "/api/auth/reset-password",
        "/register",
        "/login",
        "/forgot-password",
        "/reset-password",
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        client = request.client.host if request.client else "unknown"
        if method == "POST" and path in self.AUDIT_PATHS:
            logger.info("AUDIT %s %s -> %d (%.0fms) from %s", method, path, response.status_code, duration_ms, client)
        elif get_settings().DEBUG:
            logger.debug("%s %s -> %d (%.0fms)", method, path, response.status_code, duration_ms)

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(AuditLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app)

# Static files
app.mount("/static", StaticFiles(directory="static"), name="static")

# Templates
templates = Jinja2Templates(directory="templates")

# API routers
app.include_router(auth_router)
app.include_router(db_router)


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "ifrs-explorer", "version": APP_VERSION}


def _login_redirect(user_id: int, email: str) -> RedirectResponse:
    token = get_jwt_service().create_token(user_id=user_id, email=email)
    response = RedirectResponse(url="/", status_code=302)
    set_auth_cookie(response, token)
    return response


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err["loc"])
    return f"{field}: {err['msg'].removeprefix('Value error, ')}"


# --- Web routes ---
@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, user: CurrentUser | None = Depends(get_optional_user)) -> Response:
    """Render login page."""
    if user:
        return RedirectResponse(url="/", status_code=302)
    return templates.TemplateResponse(request, "login.html", {})


@app.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
) -> Response:
    """Handle login form submission."""
    result = get_auth_service().authenticate(db, email, password)
    if not result.success:
        return templates.TemplateResponse(request, "login.html", {"error": result.error, "email": email})
    return _login_redirect(result.user.id, result.user.email)


@app.get("/register", response_class=HTMLResponse)
def register_page(request: Request, user: CurrentUser | None = Depends(get_optional_user)) -> Response:
    """Render register page."""
    if user:
        return RedirectResponse(url="/", status_code=302)
    return templates.TemplateResponse(request, "register.html", {})


@app.post("/register", response_class=HTMLResponse)
def register_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    first_name: str = Form(...),
    last_name: str = Form(...),
    db: Session = Depends(get_db),
) -> Response:
    """Handle register form submission."""
    form = {"email": email, "first_name": first_name, "last_name": last_name}
    try:
        body = RegisterRequest(email=email, password=password, first_name=first_name, last_name=last_name)
    except ValidationError as e:
        return templates.TemplateResponse(request, "register.html", {"error": _first_error(e), **form})

    result = get_auth_service().register(db, body.email, body.password, body.first_name, body.last_name)
    if not result.success:
        return templates.TemplateResponse(request, "register.html", {"error": result.error, **form})
    return _login_redirect(result.user.id, result.user.email)


@app.get("/logout")
def logout() -> RedirectResponse:
    """Clear auth cookie and redirect to login."""
    response = RedirectResponse(url="/login", status_code=302)
    clear_auth_cookie(response)
    return response


@app.get("/forgot-password", response_class=HTMLResponse)
def forgot_password_page(request: Request) -> HTMLResponse:
    """Render forgot password page."""
    return templates.TemplateResponse(request, "forgot_password.html", {})


@app.post("/forgot-password", response_class=HTMLResponse)
def forgot_password_submit(
    request: Request,
    email: str = Form(...),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Handle forgot password form. Logs the reset link to the server console."""
    token = get_auth_service().request_password_reset(db, email)
    if token:
        base_url = str(request.base_url).rstrip("/")
        logger.info("PASSWORD RESET: %s/reset-password?token=%s", base_url, token)
    return templates.TemplateResponse(request, "forgot_password.html", {"message": FORGOT_PASSWORD_MESSAGE})


@app.get("/reset-password", response_class=HTMLResponse)
def reset_password_page(request: Request, token: str | None = None) -> HTMLResponse:
    """Render reset password page."""
    if not token:
        return templates.TemplateResponse(request, "reset_password.html", {"error": "Missing reset token."})
    return templates.TemplateResponse(request, "reset_password.html", {"token": token})


@app.post("/reset-password", response_class=HTMLResponse)
def reset_password_submit(
    request: Request,
    token: str = Form(...),
    new_password: str = Form(...),
    db: Session = Depends(get_db),
) -> Response:
    """Handle reset password form. Signs the user in on success."""
    try:
        body = ResetPasswordRequest(token=token, new_password=new_password)
    except ValidationError as e:
        return templates.TemplateResponse(request, "reset_password.html", {"error": _first_error(e), "token": token})

    result = get_auth_service().reset_password(db, body.token, body.new_password)
    if not result.success:
        return templates.TemplateResponse(request, "reset_password.html", {"error": result.error, "token": token})
    return _login_redirect(result.user.id, result.user.email)


def _dashboard_context(db: Session, user: CurrentUser, selected_table_id: str | None = None) -> dict:
    selected = find_sidebar_table(selected_table_id) if selected_table_id else None
    return {
        "user": user,
        "reports": SIDEBAR_TABLES,
        "db_objects": get_explorer_service().list_objects(db),
        "selected_table_id": selected_table_id,
        "selected_label": selected.label if selected else selected_table_id,
    }


@app.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    user: CurrentUser = Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render dashboard with the report and database object sidebar."""
    return templates.TemplateResponse(request, "dashboard.html", _dashboard_context(db, user))


@app.get("/tables/{table_id}", response_class=HTMLResponse)
def table_page(
    request: Request,
    ident: tuple[str, str] = Depends(table_identifier),
    user: CurrentUser = Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render dashboard with one table selected."""
    schema, table = ident
    return templates.TemplateResponse(request, "dashboard.html", _dashboard_context(db, user, f"{schema}.{table}"))


@app.get("/partials/table-rows/{table_id}", response_class=HTMLResponse)
def table_rows_partial(
    request: Request,
    ident: tuple[str, str] = Depends(table_identifier),
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    sort: str = "",
    order: str = "asc",
    search: str = "",
    user: CurrentUser = Depends(require_web_auth),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """HTMX partial: one page of a table with sort, search and pagination controls."""
    schema, table = ident
    options = RowQuery(page=page, page_size=page_size, sort=sort[:128], order=order, search=search[:200])
    try:
        result = get_explorer_service().get_rows(db, schema, table, options)
    except TableNotFoundError:
        raise HTTPException(status_code=404, detail="Table not found") from None

    return templates.TemplateResponse(
        request,
        "partials/table_rows.html",
        {
            "table_id": f"{schema}.{table}",
            "columns": result.columns,
            "rows": result.rows,
            "total": result.total,
            "page": options.page,
            "page_size": options.page_size,
            "page_sizes": [10, 25, 50, MAX_PAGE_SIZE],
            "total_pages": max(1, math.ceil(result.total / options.page_size)),
            "sort": result.sort,
            "order": result.order,
            "search": options.search,
        },
    )
