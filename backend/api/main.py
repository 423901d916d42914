"""FastAPI application for the Admin Panel API proxy."""
import os
import sys
import time as _startup_time_module
from contextlib import asynccontextmanager
from dotenv import load_dotenv

_APP_START_TIME = _startup_time_module.time()

# Load .env file if present
load_dotenv(os.path.join(os.path.dirname(__file__), '..', '.env'))

# Add parent dir to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from slowapi import _rate_limit_exceeded_handler  # noqa: E402
from slowapi.errors import RateLimitExceeded  # noqa: E402

# ── Import shared dependencies ──────────────────────────────────
# Re-exported here so tests can do `from api.main import _sessions`
from .dependencies import (  # noqa: E402
    _sessions,
    _is_token_valid,
    _logger,
    _sanitize_500,
    get_current_user,
    get_transport,
    limiter,
    purge_expired_sessions,
    require_auth,
)

# CORS origins from env
_raw_origins = os.environ.get('ALLOWED_ORIGINS', '')
ALLOWED_ORIGINS = (
    [o.strip() for o in _raw_origins.split(',') if o.strip()]
    or ['http://localhost:3000', 'http://localhost:5173', 'http://localhost:8000']
)

_OPENAPI_TAGS = [
    {"name": "Health", "description": "Service health and version info"},
    {"name": "Auth", "description": "Authentication: login, logout and session"},
    {"name": "Employees", "description": "Employee management (CRUD)"},
    {"name": "Leaves", "description": "Leave management (CRUD)"},
    {"name": "Users", "description": "User management (CRUD)"},
]

async def _periodic_cleanup():
    """Background task: purge expired sessions every 5 minutes."""
    import asyncio
    while True:
        await asyncio.sleep(300)
        try:
            sess = purge_expired_sessions()
            if sess:
                _logger.debug("Periodic cleanup: removed %d expired sessions", sess)
        except Exception as _exc:  # pragma: no cover
            _logger.warning("Periodic cleanup error: %s", _exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    import asyncio
    cleanup_task = asyncio.create_task(_periodic_cleanup())
    yield
    cleanup_task.cancel()
    _logger.info("Admin Panel API shutting down")


app = FastAPI(
    lifespan=lifespan,
    title="Admin Panel API",
    description=(
        "Session-authenticated proxy in front of the employee/leave/user backend.\n\n"
        "## Authentication\n"
        "Most endpoints require an `x-auth-token` header obtained from `POST /api/auth/login`.\n"
        "Requests are forwarded to the backend with the session's bearer token.\n"
    ),
    version="0.1.0",
    openapi_tags=_OPENAPI_TAGS,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "x-auth-token", "Authorization"],
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
    response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
    # Only send HSTS if running in production (check env)
    if os.environ.get('PANEL_HSTS', '').lower() in ('1', 'true', 'yes'):
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Collapse Pydantic validation errors into one readable detail string."""
    _TYPE_MSGS = {
        "missing": "Field required",
        "int_parsing": "Must be a whole number",
        "date_parsing": "Must be a date in YYYY-MM-DD format",
        "date_from_datetime_parsing": "Must be a date in YYYY-MM-DD format",
        "string_too_short": "Input too short",
        "greater_than_equal": "Value too small",
        "less_than_equal": "Value too large",
        "literal_error": "Invalid choice",
        "value_error": "Invalid value",
    }
    errors = []
    for e in exc.errors():
        field = ".".join(str(loc) for loc in e.get("loc", []) if loc not in ("body", "query", "path"))
        etype = e.get("type", "")
        msg = _TYPE_MSGS.get(etype, e.get("msg", "Invalid value"))
        if field:
            errors.append(f"{field}: {msg}")
        else:
            errors.append(msg)
    detail = "; ".join(errors) if errors else "Invalid input"
    return JSONResponse(status_code=422, content={"detail": detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions, log with details, return sanitized 500."""
    err = _sanitize_500(exc, f"{request.method} {request.url.path}")
    return JSONResponse(status_code=err.status_code, content={"detail": err.detail})


# ── Public paths (no auth required) ────────────────────────────
_PUBLIC_PATHS = {'/api/auth/login', '/api/auth/logout', '/api', '/api/health', '/api/version'}


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log every request as structured JSON with timing info and request-ID."""
    import time as _t
    import uuid as _uuid
    import json as _json_mod
    req_id = _uuid.uuid4().hex[:8]
    start = _t.time()
    response = await call_next(request)
    duration_ms = round((_t.time() - start) * 1000)
    token = request.headers.get('x-auth-token')
    user = _sessions.get(token, {}).get('email', '-') if token else '-'
    entry = {
        "req_id": req_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "user": user,
    }
    _logger.info(_json_mod.dumps(entry, ensure_ascii=False))
    response.headers["X-Request-ID"] = req_id
    return response


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    """Require a session for all /api/* endpoints except public ones."""
    path = request.url.path
    client_ip = request.client.host if request.client else 'unknown'

    if path in _PUBLIC_PATHS or not path.startswith('/api/') or request.method == 'OPTIONS':
        return await call_next(request)
    token = request.headers.get('x-auth-token')
    if not token or not _is_token_valid(token):
        _logger.warning("AUTH 401 | ip=%s method=%s path=%s", client_ip, request.method, path)
        return JSONResponse(
            status_code=401,
            content={"detail": "Not signed in"}
        )
    return await call_next(request)


# ── Include routers ─────────────────────────────────────────────
from .routers import auth, records  # noqa: E402

app.include_router(auth.router)
app.include_router(records.employees)
app.include_router(records.leaves)
app.include_router(records.users)


# ── Routes ──────────────────────────────────────────────────────

_API_VERSION = "0.1.0"


@app.get(
    "/api/health",
    tags=["Health"],
    summary="Health check",
    description="Returns service status, API version and uptime in seconds. Public.",
)
def health():
    import time as _t
    return {
        "status": "ok",
        "version": _API_VERSION,
        "uptime_seconds": round(_t.time() - _APP_START_TIME, 1),
    }


@app.get(
    "/api/version",
    tags=["Health"],
    summary="API version",
    description="Returns the current API version string.",
)
def version():
    """Return current API version. Public, no auth required."""
    return {"version": _API_VERSION, "service": "Admin Panel API"}


@app.get("/api", tags=["Health"], summary="API root", description="Returns basic service info.")
def root():
    return {"service": "Admin Panel API", "version": _API_VERSION, "entities": ["employees", "leaves", "users"]}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host="0.0.0.0", port=int(os.environ.get('PORT', '8000')), reload=True)
