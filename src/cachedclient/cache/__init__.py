"""In-memory response caching for cachedclient.

This package provides the process-lifetime cache behind
:class:`~cachedclient.client.CachedClient`:

- :mod:`~cachedclient.cache.expiration` -- expiration descriptors
  (:class:`NoCache`, :class:`AbsoluteExpiration`, :class:`CachePolicy`) and
  :class:`ChangeMonitor` dependencies.
- :mod:`~cachedclient.cache.entry` -- the :class:`Deferred` single-computation
  cell and :class:`CacheEntry`.
- :mod:`~cachedclient.cache.store` -- the thread-safe :class:`CacheStore` and
  the :class:`CollectionRegistry` of named collections.
- :mod:`~cachedclient.cache.async_store` -- :class:`AsyncCacheStore` for
  coroutine producers.
"""

from cachedclient.cache.async_store import AsyncCacheStore, AsyncDeferred
from cachedclient.cache.entry import CacheEntry, Deferred
from cachedclient.cache.expiration import (
    AbsoluteExpiration,
    CachePolicy,
    ChangeMonitor,
    Expiration,
    NoCache,
    RemovalReason,
    coerce_expiration,
)
from cachedclient.cache.store import BaseCacheStore, CacheStore, CollectionRegistry

__all__ = [
    "AbsoluteExpiration",
    "AsyncCacheStore",
    "AsyncDeferred",
    "BaseCacheStore",
    "CacheEntry",
    "CachePolicy",
    "CacheStore",
    "ChangeMonitor",
    "CollectionRegistry",
    "Deferred",
    "Expiration",
    "NoCache",
    "RemovalReason",
    "coerce_expiration",
]
