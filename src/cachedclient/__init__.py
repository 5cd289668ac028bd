"""cachedclient -- memoizing JSON HTTP client with per-entry expiration.

This package wraps a plain HTTP transport with an in-memory cache keyed by
request path (or an explicit key).  Concurrent calls for the same key share a
single in-flight request, expiration is decided per entry by a pluggable
descriptor, and a failed request is never left behind in the cache.

Typical usage::

    from datetime import datetime, timedelta, timezone

    from cachedclient import AbsoluteExpiration, new_client

    with new_client("https://api.example.com") as client:
        until = datetime.now(timezone.utc) + timedelta(minutes=5)
        users = client.get("/users", expiration=AbsoluteExpiration(until))

Modules:
    cache: Expiration descriptors, single-computation cells, and cache stores.
    client: HTTP transports and the sync/async memoizing clients.
    config: Configuration resolution (arguments, environment, defaults).
    exceptions: Error hierarchy for transport, decode, and config failures.
    models: Pydantic configuration models.
    output: stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"

from cachedclient.cache import (
    AbsoluteExpiration,
    AsyncCacheStore,
    CachePolicy,
    CacheStore,
    ChangeMonitor,
    CollectionRegistry,
    NoCache,
    RemovalReason,
)
from cachedclient.client import (
    AsyncCachedClient,
    AsyncHttpTransport,
    CachedClient,
    HttpTransport,
    new_client,
)
from cachedclient.exceptions import (
    CachedClientError,
    ConfigError,
    DecodeError,
    TransportError,
)
from cachedclient.models import ClientConfig

__all__ = [
    "AbsoluteExpiration",
    "AsyncCacheStore",
    "AsyncCachedClient",
    "AsyncHttpTransport",
    "CachePolicy",
    "CacheStore",
    "CachedClient",
    "CachedClientError",
    "ChangeMonitor",
    "ClientConfig",
    "CollectionRegistry",
    "ConfigError",
    "DecodeError",
    "HttpTransport",
    "NoCache",
    "RemovalReason",
    "TransportError",
    "new_client",
]
