"""HTTP transports that send one request and decode the JSON response.

:class:`HttpTransport` wraps :class:`httpx.Client` and
:class:`AsyncHttpTransport` wraps :class:`httpx.AsyncClient`.  Both send
``Accept: application/json``, map network failures and non-success statuses
onto :class:`~cachedclient.exceptions.TransportError` subclasses, and decode
the body (optionally validating it into a type with Pydantic).

There are no retries at this layer: a failed request raises immediately and
the cache above it evicts the entry so the next call starts fresh.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from cachedclient.exceptions import (
    AuthError,
    ClientError,
    ConnectionError_,
    DecodeError,
    NotFoundError,
    ServerError,
    TransportError,
)
from cachedclient.models import ClientConfig
from cachedclient.output import get_output


def _default_headers(config: ClientConfig) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    headers.update(config.headers)
    return headers


def _body_kwargs(body: Any) -> dict[str, Any]:
    """Raw ``str``/``bytes`` bodies are sent as-is; anything else is sent as JSON."""
    if body is None:
        return {}
    if isinstance(body, (str, bytes)):
        return {"content": body}
    return {"json": body}


def map_response_error(response: httpx.Response) -> None:
    """Raise a typed :class:`TransportError` for an unsuccessful HTTP status."""
    status = response.status_code
    if response.is_success:
        return

    # Try to extract an error message from the response body.
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {status}"
    full_msg = f"{prefix}: {msg}" if msg else prefix

    if status in (401, 403):
        raise AuthError(full_msg, status_code=status)
    if status == 404:
        raise NotFoundError(full_msg, status_code=status)
    if status >= 500:
        raise ServerError(full_msg, status_code=status)
    if status >= 400:
        raise ClientError(full_msg, status_code=status)
    # 1xx / 3xx that survived redirect handling.
    raise TransportError(full_msg, status_code=status)


def decode_response(response: httpx.Response, response_type: Any = None) -> Any:
    """Decode a successful response body.

    An empty body decodes to ``None``.  When *response_type* is given, the
    JSON value is validated into it with :class:`pydantic.TypeAdapter`.

    Raises:
        DecodeError: If the body is not JSON or does not match *response_type*.
    """
    if not response.content:
        data = None
    else:
        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(
                f"Response from {response.request.url} is not valid JSON: {exc}"
            ) from exc

    if response_type is None:
        return data
    try:
        return TypeAdapter(response_type).validate_python(data)
    except ValidationError as exc:
        raise DecodeError(
            f"Response from {response.request.url} does not match {response_type!r}: {exc}"
        ) from exc


class HttpTransport:
    """Blocking JSON transport backed by :class:`httpx.Client`.

    Args:
        config: Base URL, timeout, TLS and header settings.
        transport: Optional low-level httpx transport (e.g.
            :class:`httpx.MockTransport` in tests).

    Example::

        with HttpTransport(ClientConfig(base_url="https://api.example.com")) as t:
            users = t.request("GET", "/users")
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            headers=_default_headers(config),
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=config.follow_redirects,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def request(
        self,
        method: str,
        relative_url: str,
        body: Any = None,
        response_type: Any = None,
    ) -> Any:
        """Send one request and return the decoded body.

        Raises:
            ConnectionError_: On network / timeout errors.
            TransportError: On a non-success HTTP status or a redirect loop.
            DecodeError: If the body cannot be decoded, including a corrupt
                ``Content-Encoding``.
        """
        get_output().debug(f"{method.upper()} {self._config.base_url}{relative_url}")
        try:
            response = self._client.request(method, relative_url, **_body_kwargs(body))
        except httpx.TransportError as exc:
            raise ConnectionError_(f"{method.upper()} {relative_url} failed: {exc}") from exc
        except httpx.TooManyRedirects as exc:
            raise TransportError(f"{method.upper()} {relative_url} failed: {exc}") from exc
        except httpx.DecodingError as exc:
            raise DecodeError(f"Response from {relative_url} could not be decoded: {exc}") from exc
        map_response_error(response)
        return decode_response(response, response_type)


class AsyncHttpTransport:
    """Non-blocking JSON transport backed by :class:`httpx.AsyncClient`.

    Mirrors :class:`HttpTransport`; use as an async context manager or call
    :meth:`aclose` when done.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=_default_headers(config),
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=config.follow_redirects,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._config.base_url

    async def __aenter__(self) -> AsyncHttpTransport:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        relative_url: str,
        body: Any = None,
        response_type: Any = None,
    ) -> Any:
        """Send one request and return the decoded body (see :meth:`HttpTransport.request`)."""
        get_output().debug(f"{method.upper()} {self._config.base_url}{relative_url}")
        try:
            response = await self._client.request(method, relative_url, **_body_kwargs(body))
        except httpx.TransportError as exc:
            raise ConnectionError_(f"{method.upper()} {relative_url} failed: {exc}") from exc
        except httpx.TooManyRedirects as exc:
            raise TransportError(f"{method.upper()} {relative_url} failed: {exc}") from exc
        except httpx.DecodingError as exc:
            raise DecodeError(f"Response from {relative_url} could not be decoded: {exc}") from exc
        map_response_error(response)
        return decode_response(response, response_type)
