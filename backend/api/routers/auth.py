"""Auth router: proxy sessions backed by the remote backend's login."""
import time as _time
import secrets
import httpx
from fastapi import APIRouter, HTTPException, Header, Depends, Request
from pydantic import BaseModel
from typing import Optional

from panellib.auth import BackendAuthenticator
from panellib.errors import AuthError, RemoteError
from ..dependencies import (
    _logger, _sessions, limiter, require_auth, get_http_client, remote_to_http,
    BACKEND_URL, SESSION_MAX_AGE,
)

router = APIRouter()


class LoginBody(BaseModel):
    email: str
    password: str


@router.post("/api/auth/login", tags=["Auth"], summary="Login", description="Authenticate against the backend with email and password. Returns a session token valid for one hour (configurable via SESSION_MAX_AGE).")
@limiter.limit("5/minute")
async def login(request: Request, body: LoginBody, http: httpx.AsyncClient = Depends(get_http_client)):
    client_ip = request.client.host if request.client else 'unknown'
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    try:
        result = await BackendAuthenticator(http, BACKEND_URL).login(body.email, body.password)
    except AuthError as e:
        _logger.warning("AUTH LOGIN_FAIL | ip=%s email=%s", client_ip, body.email)
        raise HTTPException(status_code=401, detail=e.message)
    except RemoteError as e:
        # The backend reports bad credentials as a 4xx of its own choosing
        if e.status is not None and 400 <= e.status < 500:
            _logger.warning("AUTH LOGIN_FAIL | ip=%s email=%s status=%d", client_ip, body.email, e.status)
            raise HTTPException(status_code=401, detail=e.message)
        raise remote_to_http(e, 'login')

    _logger.info("AUTH LOGIN_OK | ip=%s email=%s", client_ip, body.email)

    token = secrets.token_hex(32)
    expires_at = _time.time() + SESSION_MAX_AGE
    _sessions[token] = {**result, 'expires_at': expires_at}
    return {
        "ok": True,
        "token": token,
        "user": result['user'],
        "expires_at": expires_at,
    }


@router.post("/api/auth/logout", tags=["Auth"], summary="Logout", description="Invalidate the current session token.")
def logout(x_auth_token: Optional[str] = Header(None)):
    if x_auth_token and x_auth_token in _sessions:
        del _sessions[x_auth_token]
    return {"ok": True}


@router.get("/api/auth/session", tags=["Auth"], summary="Current session", description="Return the signed-in user. Backend tokens are never exposed.")
def get_session(user: dict = Depends(require_auth)):
    return {
        "email": user.get('email'),
        "name": user.get('name'),
        "user": user.get('user', {}),
        "expires_at": user.get('expires_at'),
    }
