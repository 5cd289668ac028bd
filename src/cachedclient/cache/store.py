"""Thread-safe in-memory cache stores and the registry of named collections.

A :class:`CacheStore` is one named *collection*: a mapping from key to
:class:`~cachedclient.cache.entry.CacheEntry`.  Its central operation,
:meth:`CacheStore.get_or_create`, installs a pending entry on a miss and lets
every concurrent caller for that key attach to it, so a key is produced at
most once per validity window.

Locking is two-level.  The store lock guards only the mapping itself
(check-then-install, replace-on-expiry, remove-on-failure) and is never held
while a producer runs.  Each entry's cell carries its own lock, so slow
requests for one key never serialise requests for another.

Expired entries are dropped lazily when looked up, or eagerly through
:meth:`CacheStore.purge_expired`.  Removal callbacks declared on a
:class:`~cachedclient.cache.expiration.CachePolicy` run after the store lock
has been released.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from cachedclient.cache.entry import CacheEntry, Deferred
from cachedclient.cache.expiration import (
    CachePolicy,
    Expiration,
    RemovalReason,
    bypasses_cache,
    coerce_expiration,
    utc_now,
)
from cachedclient.output import get_output

T = TypeVar("T")

ExpirationArg = Union[Expiration, datetime, None]
_Removal = tuple[CacheEntry, RemovalReason]


class BaseCacheStore:
    """Key-to-entry mapping, expiry bookkeeping and statistics shared by the sync and async stores.

    Args:
        name: Collection name, used in diagnostics and :meth:`stats`.
        clock: Callable returning the current aware datetime.  Tests inject
            a fake clock to drive expiration deterministically.
    """

    def __init__(self, name: str, clock: Callable[[], datetime] = utc_now) -> None:
        self._name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def name(self) -> str:
        """The collection name."""
        return self._name

    # ------------------------------------------------------------------ #
    # Inspection and removal
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        """Number of installed entries, including expired ones not yet purged."""
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        removed: list[_Removal] = []
        with self._lock:
            entry = self._live_entry(key, self._clock(), removed)  # type: ignore[arg-type]
        self._notify_removed(removed)
        return entry is not None

    def keys(self) -> list[str]:
        """Snapshot of the installed keys."""
        with self._lock:
            return list(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """Return the value of a live, already computed entry, or ``None``.

        Never triggers or waits for a computation.
        """
        removed: list[_Removal] = []
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now, removed)
            if entry is not None and entry.cell.succeeded:
                entry.touch(now)
                value = entry.cell.peek()
            else:
                value = None
        self._notify_removed(removed)
        return value

    def remove(self, key: str) -> bool:
        """Remove the entry for *key*.  Returns whether one was installed."""
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._notify_removed([(entry, RemovalReason.REMOVED)])
        return True

    def clear(self) -> None:
        """Remove every entry of this collection."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        self._notify_removed([(entry, RemovalReason.REMOVED) for entry in entries])

    def purge_expired(self) -> int:
        """Eagerly drop every expired entry.  Returns how many were removed."""
        removed: list[_Removal] = []
        with self._lock:
            now = self._clock()
            for key, entry in list(self._entries.items()):
                if entry.is_expired(now):
                    del self._entries[key]
                    self._evictions += 1
                    removed.append((entry, entry.expiration.removal_reason(entry, now)))
        self._notify_removed(removed)
        return len(removed)

    def stats(self) -> dict[str, Any]:
        """Return collection statistics (name, size, hits, misses, evictions)."""
        with self._lock:
            return {
                "name": self._name,
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def close(self) -> None:
        """Release every entry.  The store stays usable afterwards."""
        self.clear()

    # ------------------------------------------------------------------ #
    # Helpers for subclasses (call with self._lock held unless noted)
    # ------------------------------------------------------------------ #

    def _live_entry(
        self, key: str, now: datetime, removed: list[_Removal]
    ) -> Optional[CacheEntry]:
        """Return the unexpired entry for *key*, unlinking it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._entries[key]
            self._evictions += 1
            removed.append((entry, entry.expiration.removal_reason(entry, now)))
            return None
        return entry

    def _attach_or_install(
        self,
        key: str,
        expiration: Expiration,
        make_cell: Callable[[CacheEntry], Any],
        removed: list[_Removal],
    ) -> CacheEntry:
        """Return the live entry for *key*, installing a new pending one on a miss."""
        now = self._clock()
        entry = self._live_entry(key, now, removed)
        if entry is not None:
            entry.touch(now)
            self._hits += 1
            get_output().debug(f"Cache hit [{self._name}]: {key}")
            return entry

        entry = CacheEntry(key, None, expiration, now)
        entry.cell = make_cell(entry)
        self._entries[key] = entry
        self._misses += 1
        get_output().debug(f"Cache miss [{self._name}]: {key}")
        return entry

    def _evict_failed(self, entry: CacheEntry, exc: BaseException) -> None:
        """Unlink *entry* after its producer failed.  Acquires the lock itself.

        A newer entry installed under the same key is left untouched.
        """
        with self._lock:
            if self._entries.get(entry.key) is not entry:
                return
            del self._entries[entry.key]
            self._evictions += 1
        get_output().debug(
            f"Evicted [{self._name}] {entry.key} after failure: {type(exc).__name__}"
        )
        self._notify_removed([(entry, RemovalReason.FAILED)])

    def _notify_removed(self, removed: list[_Removal]) -> None:
        """Run removal callbacks.  Must be called without the lock held."""
        for entry, reason in removed:
            policy = entry.expiration
            if not isinstance(policy, CachePolicy) or policy.on_removed is None:
                continue
            try:
                policy.on_removed(entry.key, reason)
            except Exception as exc:
                # Callback failures must not mask the caller's own result.
                get_output().warning(
                    f"Removal callback for {entry.key!r} in collection "
                    f"{self._name!r} raised {type(exc).__name__}: {exc}"
                )


class CacheStore(BaseCacheStore):
    """Thread-safe named cache collection.

    Example::

        store = CacheStore("https://api.example.com")
        value = store.get_or_create("/users", fetch_users, AbsoluteExpiration(until))
    """

    def get_or_create(
        self,
        key: str,
        producer: Callable[[], T],
        expiration: ExpirationArg,
    ) -> T:
        """Return the cached value for *key*, producing it on a miss.

        Exactly one producer call happens per key per validity window;
        concurrent callers block on the in-flight computation.  If the
        producer raises, the entry is removed and the exception is re-raised
        to every caller attached to it.

        Args:
            key: Cache key.
            producer: Zero-argument callable computing the value.
            expiration: Expiration descriptor.  ``None`` or
                :class:`~cachedclient.cache.expiration.NoCache` bypasses the
                store and calls *producer* directly.

        Returns:
            The produced or cached value.
        """
        descriptor = coerce_expiration(expiration)
        if bypasses_cache(descriptor):
            get_output().debug(f"Cache bypass [{self._name}]: {key}")
            return producer()

        def make_cell(entry: CacheEntry) -> Deferred[T]:
            return Deferred(producer, on_failure=lambda exc: self._evict_failed(entry, exc))

        removed: list[_Removal] = []
        with self._lock:
            entry = self._attach_or_install(key, descriptor, make_cell, removed)
        self._notify_removed(removed)
        return entry.cell.result()


class CollectionRegistry(Generic[T]):
    """Explicitly owned registry of named collections.

    Collection names are unique within a registry: :meth:`open` returns the
    existing store for a name or creates one.  Clients sharing a registry and
    a collection name therefore share cached entries; clients with different
    names never do.

    Args:
        store_factory: Callable building a store from a collection name.
    """

    def __init__(self, store_factory: Callable[[str], T] = CacheStore) -> None:  # type: ignore[assignment]
        self._factory = store_factory
        self._lock = threading.Lock()
        self._stores: dict[str, T] = {}

    def open(self, name: str) -> T:
        """Return the store registered under *name*, creating it on first use."""
        with self._lock:
            store = self._stores.get(name)
            if store is None:
                store = self._factory(name)
                self._stores[name] = store
            return store

    def get(self, name: str) -> Optional[T]:
        """Return the store registered under *name*, or ``None``."""
        with self._lock:
            return self._stores.get(name)

    def close(self, name: str) -> bool:
        """Unregister and clear the store named *name*.  Returns whether it existed."""
        with self._lock:
            store = self._stores.pop(name, None)
        if store is None:
            return False
        store.close()  # type: ignore[attr-defined]
        return True

    def names(self) -> list[str]:
        """Names of all registered collections."""
        with self._lock:
            return list(self._stores)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._stores

    def __len__(self) -> int:
        with self._lock:
            return len(self._stores)
