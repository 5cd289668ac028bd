"""Exception hierarchy for cachedclient.

All exceptions inherit from :class:`CachedClientError`.  Failures raised
while producing a cached value propagate unchanged to every caller waiting
on that computation; the cache never wraps or replays them.

Subclass hierarchy::

    CachedClientError
    +-- TransportError      (status_code: int | None)
    |   +-- ConnectionError_
    |   +-- AuthError        (401 / 403)
    |   +-- NotFoundError    (404)
    |   +-- ClientError      (other 4xx)
    |   +-- ServerError      (5xx)
    +-- DecodeError
    +-- ConfigError
"""

from __future__ import annotations

from typing import Optional


class CachedClientError(Exception):
    """Base exception for all cachedclient errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(CachedClientError):
    """Raised when a request fails at the transport level or with a non-success status.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the failed response, or ``None`` when no
            response was received.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConnectionError_(TransportError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """


class AuthError(TransportError):
    """Raised when the remote endpoint answers HTTP 401 or 403."""


class NotFoundError(TransportError):
    """Raised when the remote endpoint answers HTTP 404."""


class ClientError(TransportError):
    """Raised for 4xx responses other than 401, 403 and 404."""


class ServerError(TransportError):
    """Raised when the remote endpoint answers with an HTTP 5xx status."""


class DecodeError(CachedClientError):
    """Raised when a response body cannot be decoded into the expected type."""


class ConfigError(CachedClientError):
    """Raised for invalid client configuration (bad base URL, unparseable env values)."""
