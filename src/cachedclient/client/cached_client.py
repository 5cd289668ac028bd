"""Memoizing HTTP client.

:class:`CachedClient` sends ``GET``/``POST`` requests through an
:class:`~cachedclient.client.transport.HttpTransport` and memoizes the decoded
responses in a named :class:`~cachedclient.cache.store.CacheStore`:

- The cache key is the ``key`` argument when given, else the relative URL.
- Without an ``expiration`` the request always goes to the network and the
  cache is neither read nor written.
- With an expiration, concurrent calls for one key share a single request,
  and the result is reused until the descriptor reports it expired.
- A failed request raises to every caller waiting on it and leaves nothing
  behind in the cache.

Calls block until the response (or failure) is available.

See Also:
    :class:`~cachedclient.client.async_client.AsyncCachedClient` for the
    ``async``/``await`` equivalent.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from cachedclient.cache.store import CacheStore, CollectionRegistry, ExpirationArg
from cachedclient.client.transport import HttpTransport
from cachedclient.config import resolve_config


class CachedClient:
    """Synchronous memoizing JSON client bound to one base address and collection.

    Args:
        base_url: Base address every relative URL is resolved against.
        collection_name: Name of the cache collection; defaults to *base_url*.
        timeout: Request timeout in seconds (overrides ``CACHEDCLIENT_TIMEOUT``).
        verify_ssl: Verify TLS certificates (overrides ``CACHEDCLIENT_VERIFY_SSL``).
        headers: Extra headers sent with every request.
        follow_redirects: Follow HTTP redirects (overrides
            ``CACHEDCLIENT_FOLLOW_REDIRECTS``).
        transport: Object with a ``request(method, relative_url, body,
            response_type)`` method used instead of a new
            :class:`HttpTransport`.  Not closed by :meth:`close`.
        http_transport: Low-level httpx transport for the default
            :class:`HttpTransport` (e.g. :class:`httpx.MockTransport`).
        store: Explicit store to use, shared with whoever else holds it.
        registry: Registry to open the collection from.  Ignored when
            *store* is given.

    Example::

        with CachedClient("https://api.example.com") as client:
            user = client.get(
                "/users/1",
                expiration=AbsoluteExpiration.after(timedelta(minutes=5)),
            )
    """

    def __init__(
        self,
        base_url: str,
        collection_name: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        verify_ssl: Optional[bool] = None,
        headers: Optional[dict[str, str]] = None,
        follow_redirects: Optional[bool] = None,
        transport: Optional[Any] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        store: Optional[CacheStore] = None,
        registry: Optional[CollectionRegistry[CacheStore]] = None,
    ) -> None:
        self._config = resolve_config(
            base_url,
            collection_name=collection_name,
            timeout=timeout,
            verify_ssl=verify_ssl,
            headers=headers,
            follow_redirects=follow_redirects,
        )
        name = self.collection_name
        if store is not None:
            self._store = store
        elif registry is not None:
            self._store = registry.open(name)
        else:
            self._store = CacheStore(name)

        self._owns_transport = transport is None
        self._transport = transport if transport is not None else HttpTransport(self._config, http_transport)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def collection_name(self) -> str:
        return self._config.collection_name or self._config.base_url

    @property
    def store(self) -> CacheStore:
        """The collection this client reads and writes."""
        return self._store

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> CachedClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport if this client created it.  Cached entries are kept."""
        if self._owns_transport:
            self._transport.close()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def get(
        self,
        relative_url: str,
        expiration: ExpirationArg = None,
        key: Optional[str] = None,
        response_type: Any = None,
    ) -> Any:
        """Send (or reuse) a GET request.

        Args:
            relative_url: Path appended to the base address.
            expiration: ``None``/``NoCache`` to bypass the cache, a
                ``datetime`` or :class:`AbsoluteExpiration` for a fixed
                lifetime, or a :class:`CachePolicy`.
            key: Cache key; defaults to *relative_url*.
            response_type: Optional type the JSON body is validated into.

        Returns:
            The decoded response body.

        Raises:
            TransportError: On network failures or non-success statuses.
            DecodeError: If the body cannot be decoded.
        """
        return self._store.get_or_create(
            relative_url if key is None else key,
            lambda: self._transport.request("GET", relative_url, None, response_type),
            expiration,
        )

    def post(
        self,
        relative_url: str,
        body: Any = None,
        expiration: ExpirationArg = None,
        key: Optional[str] = None,
        response_type: Any = None,
    ) -> Any:
        """Send (or reuse) a POST request.

        *body* is sent as raw content when it is ``str``/``bytes`` and as
        JSON otherwise.  The body is not part of the default cache key; pass
        *key* when different bodies must be cached separately.  See
        :meth:`get` for the remaining arguments.
        """
        return self._store.get_or_create(
            relative_url if key is None else key,
            lambda: self._transport.request("POST", relative_url, body, response_type),
            expiration,
        )

    def invalidate(self, key: str) -> bool:
        """Drop the cached entry for *key*.  Returns whether one existed."""
        return self._store.remove(key)

    def clear(self) -> None:
        """Drop every cached entry of this client's collection."""
        self._store.clear()


def new_client(
    base_url: str,
    collection_name: Optional[str] = None,
    **kwargs: Any,
) -> CachedClient:
    """Create a :class:`CachedClient`; *collection_name* defaults to *base_url*."""
    return CachedClient(base_url, collection_name, **kwargs)
