"""Asynchronous memoizing client -- mirrors :class:`~cachedclient.client.cached_client.CachedClient`.

:class:`AsyncCachedClient` offers the same ``get``/``post`` contract as the
blocking client but awaits an
:class:`~cachedclient.client.transport.AsyncHttpTransport` and stores shared
:class:`asyncio.Task` computations in an
:class:`~cachedclient.cache.async_store.AsyncCacheStore`.

.. note::
   The client, its transport and its store belong to a single event loop.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from cachedclient.cache.async_store import AsyncCacheStore
from cachedclient.cache.store import CollectionRegistry, ExpirationArg
from cachedclient.client.transport import AsyncHttpTransport
from cachedclient.config import resolve_config


class AsyncCachedClient:
    """Non-blocking memoizing JSON client.

    Takes the same arguments as
    :class:`~cachedclient.client.cached_client.CachedClient`, except that
    *transport* must expose an ``async`` ``request`` method and
    *http_transport* must be an :class:`httpx.AsyncBaseTransport`.

    Example::

        async with AsyncCachedClient("https://api.example.com") as client:
            users = await client.get("/users", expiration=policy)
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
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        store: Optional[AsyncCacheStore] = None,
        registry: Optional[CollectionRegistry[AsyncCacheStore]] = None,
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
            self._store = AsyncCacheStore(name)

        self._owns_transport = transport is None
        self._transport = (
            transport if transport is not None else AsyncHttpTransport(self._config, http_transport)
        )

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def collection_name(self) -> str:
        return self._config.collection_name or self._config.base_url

    @property
    def store(self) -> AsyncCacheStore:
        return self._store

    async def __aenter__(self) -> AsyncCachedClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def get(
        self,
        relative_url: str,
        expiration: ExpirationArg = None,
        key: Optional[str] = None,
        response_type: Any = None,
    ) -> Any:
        """Send (or reuse) a GET request.  See :meth:`CachedClient.get`."""

        async def produce() -> Any:
            return await self._transport.request("GET", relative_url, None, response_type)

        return await self._store.get_or_create(
            relative_url if key is None else key, produce, expiration
        )

    async def post(
        self,
        relative_url: str,
        body: Any = None,
        expiration: ExpirationArg = None,
        key: Optional[str] = None,
        response_type: Any = None,
    ) -> Any:
        """Send (or reuse) a POST request.  See :meth:`CachedClient.post`."""

        async def produce() -> Any:
            return await self._transport.request("POST", relative_url, body, response_type)

        return await self._store.get_or_create(
            relative_url if key is None else key, produce, expiration
        )

    def invalidate(self, key: str) -> bool:
        """Drop the cached entry for *key*.  Returns whether one existed."""
        return self._store.remove(key)

    def clear(self) -> None:
        """Drop every cached entry of this client's collection."""
        self._store.clear()
