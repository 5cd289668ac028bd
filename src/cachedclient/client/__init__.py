"""HTTP clients for cachedclient.

Provides the JSON transports that talk to the network and the memoizing
clients layered on top of them.

Classes:
    :class:`HttpTransport` -- blocking transport backed by :class:`httpx.Client`.
    :class:`AsyncHttpTransport` -- non-blocking transport backed by :class:`httpx.AsyncClient`.
    :class:`CachedClient` -- blocking memoizing client.
    :class:`AsyncCachedClient` -- ``async`` memoizing client.

Example::

    from cachedclient.client import new_client

    with new_client("https://api.example.com") as client:
        users = client.get("/users", expiration=policy)
"""

from cachedclient.client.async_client import AsyncCachedClient
from cachedclient.client.cached_client import CachedClient, new_client
from cachedclient.client.transport import AsyncHttpTransport, HttpTransport

__all__ = [
    "AsyncCachedClient",
    "AsyncHttpTransport",
    "CachedClient",
    "HttpTransport",
    "new_client",
]
