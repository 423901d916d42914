"""Error taxonomy shared by the resource client and the controllers."""
from dataclasses import dataclass
from typing import Optional

FALLBACK_MESSAGE = "An error occurred"


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class PanelError(Exception):
    """Base class for every error raised by panellib."""


class ValidationError(PanelError):
    """Local, field-scoped validation failure. Never reaches the network."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors) or "Invalid input")

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


class RemoteError(PanelError):
    """Normalized failure from the backend-calling client."""

    def __init__(self, message: str = FALLBACK_MESSAGE, status: Optional[int] = None):
        self.message = message or FALLBACK_MESSAGE
        self.status = status
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, message={self.message!r})"


class NotFoundError(RemoteError):
    """The backend answered 404 for the requested record."""


class AuthError(RemoteError):
    """The backend rejected the credential (401/403). Not retried."""


class TransportError(RemoteError):
    """Network failure, unexpected status or malformed response body."""


def error_for_status(status: int, message: str) -> RemoteError:
    if status == 404:
        return NotFoundError(message, status)
    if status in (401, 403):
        return AuthError(message, status)
    return TransportError(message, status)
