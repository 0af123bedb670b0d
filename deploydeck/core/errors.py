"""Error taxonomy shared by the storage layer, the cache and the API client.

Callers branch on the class: an ``AuthError`` should force a logout, a
``TransportError`` should offer a retry, and so on. ``StorageError`` never
escapes the cache; it only reaches callers of the credential store.
"""

from __future__ import annotations


class DeployDeckError(Exception):
    """Root of every error raised by this package."""


class StorageError(DeployDeckError):
    """The durable key-value store failed to read or write."""


class ApiError(DeployDeckError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        code: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.code = code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status_code={self.status_code!r}, "
            f"endpoint={self.endpoint!r}, code={self.code!r}, message={self.message!r})"
        )


class AuthError(ApiError):
    """Credential rejected (401/403)."""


class NotFoundError(ApiError):
    """Resource does not exist under the current scope (404)."""


class ValidationError(ApiError):
    """Mutation payload rejected, either locally or by the server."""


class TransportError(ApiError):
    """Network failure, timeout, throttling, server error or unreadable response."""


def error_for_status(
    status_code: int, *, endpoint: str, code: str, message: str
) -> ApiError:
    """Map an HTTP failure status onto the taxonomy."""
    if status_code in (401, 403):
        cls: type[ApiError] = AuthError
    elif status_code == 404:
        cls = NotFoundError
    elif status_code in (400, 409, 422):
        cls = ValidationError
    else:
        # 408, 429, 5xx and anything unexpected
        cls = TransportError
    return cls(message, status_code=status_code, endpoint=endpoint, code=code)
