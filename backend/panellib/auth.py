"""Credential exchange with the backend's auth endpoints."""
import logging
from typing import Any

import httpx

from .client import unwrap
from .errors import AuthError, TransportError

_logger = logging.getLogger(__name__)


class BackendAuthenticator:
    """Trades email/password for the backend's token pair and user profile."""

    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self.http = http
        self.base_url = base_url.rstrip('/')

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        headers = {'Accept': 'application/json', **kwargs.pop('headers', {})}
        try:
            response = await self.http.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.RequestError as exc:
            raise TransportError(f"Backend unreachable: {type(exc).__name__}") from exc
        return unwrap(response)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and load the profile. Returns the data a proxy session keeps."""
        data = await self._call('POST', '/auth/login', json={'email': email, 'password': password})
        try:
            token = data['token']
            access_token = token['accessToken']
            refresh_token = token.get('refreshToken')
        except (KeyError, TypeError) as exc:
            raise TransportError("Malformed login response from backend") from exc
        if not access_token:
            raise AuthError("Login did not return an access token", 401)

        profile = await self._call(
            'GET', '/auth/session', headers={'Authorization': f"Bearer {access_token}"},
        )
        if not isinstance(profile, dict):
            profile = {}
        _logger.debug("Backend login ok for %s", email)
        return {
            'email': data.get('email') or profile.get('email') or email,
            'name': profile.get('firstName') or email,
            'user': profile,
            'access_token': access_token,
            'refresh_token': refresh_token,
        }
