"""Session providers: where the resource client gets its bearer credential."""
from typing import Optional, Protocol

from .errors import AuthError


class SessionProvider(Protocol):
    def access_token(self) -> str:
        ...


class StaticSession:
    """Holds a fixed backend token pair, e.g. one stored after login."""

    def __init__(self, access_token: Optional[str], refresh_token: Optional[str] = None):
        self._access_token = access_token
        self.refresh_token = refresh_token

    def access_token(self) -> str:
        if not self._access_token:
            raise AuthError("Not signed in", 401)
        return self._access_token

    @classmethod
    def from_session(cls, session: dict) -> "StaticSession":
        """Build a provider from a stored proxy session dict."""
        return cls(session.get('access_token'), session.get('refresh_token'))
