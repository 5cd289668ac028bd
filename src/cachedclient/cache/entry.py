"""Single-computation cells and the store entries that hold them.

:class:`Deferred` runs its producer at most once, no matter how many threads
ask for the value.  Every caller observes the same value or the same
exception.  When the producer fails, the ``on_failure`` hook runs *before*
waiting callers are released, which is how the store guarantees that a
failure is never served from the cache: by the time anyone sees the error,
the entry is already gone.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Generic, Optional, TypeVar

from cachedclient.cache.expiration import Expiration

T = TypeVar("T")

_PENDING = "pending"
_RUNNING = "running"
_DONE = "done"


class Deferred(Generic[T]):
    """Lazily computed value, produced exactly once and shared by all accessors.

    Args:
        producer: Zero-argument callable computing the value.
        on_failure: Called with the exception when *producer* raises, before
            the exception is delivered to any caller.
    """

    def __init__(
        self,
        producer: Callable[[], T],
        on_failure: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self._producer = producer
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._state = _PENDING
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._owner: Optional[int] = None

    @property
    def is_done(self) -> bool:
        """Whether the computation has finished (successfully or not)."""
        return self._done.is_set()

    @property
    def succeeded(self) -> bool:
        """Whether the computation finished with a value."""
        return self._done.is_set() and self._error is None

    def peek(self) -> Optional[T]:
        """Return the computed value without triggering or waiting for the computation."""
        if self.succeeded:
            return self._value
        return None

    def result(self) -> T:
        """Return the value, computing it on first access and blocking while in flight.

        Raises:
            RuntimeError: If the producer asks for its own value.
            BaseException: Whatever the producer raised, unchanged.
        """
        with self._lock:
            if self._state == _RUNNING and self._owner == threading.get_ident():
                raise RuntimeError("value requested by its own producer")
            owner = self._state == _PENDING
            if owner:
                self._state = _RUNNING
                self._owner = threading.get_ident()

        if owner:
            self._run()

        self._done.wait()
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def _run(self) -> None:
        try:
            self._value = self._producer()
        except BaseException as exc:
            self._error = exc
            try:
                if self._on_failure is not None:
                    self._on_failure(exc)
            finally:
                self._finish()
            return
        self._finish()

    def _finish(self) -> None:
        with self._lock:
            self._state = _DONE
            # Drop the producer closure so the response it captured can be freed.
            self._producer = None  # type: ignore[assignment]
        self._done.set()


class CacheEntry(Generic[T]):
    """A keyed cell plus the expiration descriptor and access times governing it.

    Entries are owned by a store.  A fresh entry replaces an expired one; an
    entry's cell is never reset.
    """

    __slots__ = ("key", "cell", "expiration", "created_at", "last_accessed")

    def __init__(self, key: str, cell: object, expiration: Expiration, now: datetime) -> None:
        self.key = key
        self.cell = cell
        self.expiration = expiration
        self.created_at = now
        self.last_accessed = now

    def is_expired(self, now: datetime) -> bool:
        return self.expiration.is_expired(self, now)

    def touch(self, now: datetime) -> None:
        self.last_accessed = now

    def __repr__(self) -> str:
        return f"CacheEntry(key={self.key!r}, expiration={self.expiration!r})"
