"""asyncio counterpart of :class:`~cachedclient.cache.store.CacheStore`.

The single computation behind an entry is a shared :class:`asyncio.Task`.
Callers await it through :func:`asyncio.shield`, so cancelling one waiter
never cancels the request other waiters depend on.  Lookup and installation
happen without an ``await`` in between, which makes them atomic with respect
to other coroutines on the same event loop.

.. note::
   An :class:`AsyncCacheStore` is bound to the event loop that first runs a
   producer for it.  Use one store per loop.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from cachedclient.cache.entry import CacheEntry
from cachedclient.cache.expiration import bypasses_cache, coerce_expiration
from cachedclient.cache.store import BaseCacheStore, ExpirationArg
from cachedclient.output import get_output

T = TypeVar("T")


class AsyncDeferred(Generic[T]):
    """Awaitable cell whose producer coroutine runs at most once.

    Args:
        producer: Zero-argument callable returning an awaitable of the value.
        on_failure: Called with the exception when the producer raises,
            before the exception reaches any waiter.
    """

    def __init__(
        self,
        producer: Callable[[], Awaitable[T]],
        on_failure: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self._producer = producer
        self._on_failure = on_failure
        self._task: Optional[asyncio.Task[T]] = None

    @property
    def is_done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def succeeded(self) -> bool:
        task = self._task
        return (
            task is not None
            and task.done()
            and not task.cancelled()
            and task.exception() is None
        )

    def peek(self) -> Optional[T]:
        if self.succeeded:
            return self._task.result()  # type: ignore[union-attr]
        return None

    async def result(self) -> T:
        """Await the value, starting the producer on first access.

        Raises:
            RuntimeError: If the producer awaits its own value.
        """
        if self._task is not None and self._task is asyncio.current_task():
            raise RuntimeError("value requested by its own producer")
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        return await asyncio.shield(self._task)

    async def _run(self) -> T:
        try:
            return await self._producer()
        except BaseException as exc:
            if self._on_failure is not None:
                self._on_failure(exc)
            raise


class AsyncCacheStore(BaseCacheStore):
    """Named cache collection for coroutine producers."""

    async def get_or_create(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        expiration: ExpirationArg,
    ) -> T:
        """Return the cached value for *key*, awaiting *producer* on a miss.

        Same contract as :meth:`CacheStore.get_or_create
        <cachedclient.cache.store.CacheStore.get_or_create>`: one producer
        run per key per validity window, failures evict the entry and reach
        every waiter unchanged, and a ``None``/``NoCache`` expiration
        bypasses the store.
        """
        descriptor = coerce_expiration(expiration)
        if bypasses_cache(descriptor):
            get_output().debug(f"Cache bypass [{self._name}]: {key}")
            return await producer()

        def make_cell(entry: CacheEntry) -> AsyncDeferred[T]:
            return AsyncDeferred(producer, on_failure=lambda exc: self._evict_failed(entry, exc))

        removed: list = []
        with self._lock:
            entry = self._attach_or_install(key, descriptor, make_cell, removed)
        self._notify_removed(removed)
        return await entry.cell.result()
