"""
Shared dependencies for the Admin Panel API.
Config, logging, the proxy session store and the backend HTTP client.
"""
import os
import logging
import logging.handlers
import time as _time

import httpx
from fastapi import HTTPException, Header, Depends
from typing import AsyncIterator, Optional
from slowapi import Limiter
from slowapi.util import get_remote_address

from panellib.client import ResourceClient
from panellib.errors import AuthError, NotFoundError, RemoteError
from panellib.schemas import EntitySchema
from panellib.session import StaticSession

# ── Structured JSON Logging setup ───────────────────────────────
import json as _json
from datetime import datetime as _dt, timezone as _tz

class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _dt.fromtimestamp(record.created, tz=_tz.utc).strftime('%Y-%m-%dT%H:%M:%S.') + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return _json.dumps(entry, ensure_ascii=False)

_log_file = os.environ.get('PANEL_LOG_FILE', '/tmp/admin-panel.log')
_handler = logging.handlers.RotatingFileHandler(
    _log_file, maxBytes=10 * 1024 * 1024, backupCount=3
)
_handler.setFormatter(_JsonFormatter())
_stderr_handler = logging.StreamHandler()
_stderr_handler.setFormatter(_JsonFormatter())

# Log level configurable via ENV
_log_level_str = os.environ.get('PANEL_LOG_LEVEL', 'INFO').upper()
_log_level = getattr(logging, _log_level_str, logging.INFO)

_logger = logging.getLogger('panelapi')
# panellib logs through its module loggers; route them to the same handlers
_lib_logger = logging.getLogger('panellib')
for _lg in (_logger, _lib_logger):
    _lg.setLevel(_log_level)
    _lg.addHandler(_handler)
    _lg.addHandler(_stderr_handler)

# ── Config ──────────────────────────────────────────────────────
BACKEND_URL = os.environ.get('BACKEND_URL', 'http://localhost:3000').rstrip('/')
PAGE_SIZE = int(os.environ.get('PAGE_SIZE', '10'))
_raw_timeout = os.environ.get('BACKEND_TIMEOUT', '')
# Unset means httpx's default timeout
BACKEND_TIMEOUT = float(_raw_timeout) if _raw_timeout else None

# ── Rate Limiter ─────────────────────────────────────────────────
limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

# ── Session store ────────────────────────────────────────────────
# NOTE: In-process dict, not safe for multi-worker deployments.
_sessions: dict[str, dict] = {}

# Session lifetime (seconds)
SESSION_MAX_AGE = float(os.environ.get('SESSION_MAX_AGE', '3600'))


def _is_token_valid(token: str) -> bool:
    """Return True if the token exists and has not expired."""
    session = _sessions.get(token)
    if not session:
        return False
    expires_at = session.get('expires_at')
    if expires_at is not None and _time.time() > expires_at:
        del _sessions[token]
        return False
    return True


def get_current_user(
    x_auth_token: Optional[str] = Header(None),
) -> Optional[dict]:
    """Return the proxy session for the X-Auth-Token header, or None."""
    if x_auth_token and _is_token_valid(x_auth_token):
        return _sessions[x_auth_token]
    return None


def require_auth(user: Optional[dict] = Depends(get_current_user)) -> dict:
    """Dependency: requires a signed-in session."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user


def purge_expired_sessions() -> int:
    """Remove all expired sessions from the in-memory store. Returns count removed."""
    now = _time.time()
    to_remove = [
        tok for tok, s in list(_sessions.items())
        if s.get('expires_at') is not None and now > s['expires_at']
    ]
    for tok in to_remove:
        _sessions.pop(tok, None)
    return len(to_remove)


# ── Backend HTTP client ──────────────────────────────────────────

def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for backend calls. None means a real network transport.

    Tests override this dependency with an ``httpx.MockTransport``.
    """
    return None


async def get_http_client(
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> AsyncIterator[httpx.AsyncClient]:
    kwargs = {}
    if BACKEND_TIMEOUT is not None:
        kwargs['timeout'] = BACKEND_TIMEOUT
    async with httpx.AsyncClient(transport=transport, **kwargs) as client:
        yield client


def resource_client(schema: EntitySchema):
    """Factory: returns a dependency that builds a ResourceClient for ``schema``."""
    def _dep(
        user: dict = Depends(require_auth),
        http: httpx.AsyncClient = Depends(get_http_client),
    ) -> ResourceClient:
        return ResourceClient(http, BACKEND_URL, schema, StaticSession.from_session(user))
    return _dep


# ── Error mapping ────────────────────────────────────────────────

def remote_to_http(e: RemoteError, context: str = '') -> HTTPException:
    """Map a normalized backend failure onto the proxy's HTTP status."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, AuthError):
        return HTTPException(status_code=e.status or 401, detail=e.message)
    _logger.warning("Backend failure context=%s status=%s msg=%s", context, e.status, e.message)
    # Backend 4xx (e.g. its own validation) keeps its status; the rest is a bad gateway
    if e.status is not None and 400 <= e.status < 500:
        return HTTPException(status_code=e.status, detail=e.message)
    return HTTPException(status_code=502, detail=e.message)


def _sanitize_500(e: Exception, context: str = '') -> HTTPException:
    """Log full exception, return sanitized 500."""
    _logger.error(
        "500 error context=%s type=%s msg=%s",
        context, type(e).__name__, str(e),
        exc_info=(type(e), e, e.__traceback__),
    )
    return HTTPException(
        status_code=500,
        detail="Internal server error. Please try again.",
    )
