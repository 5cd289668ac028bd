"""Expiration descriptors deciding when a cache entry must be recomputed.

A single ``expiration`` argument selects one of three variants:

- ``None`` or :class:`NoCache` -- caching is bypassed entirely; no entry is
  ever stored or read.
- :class:`AbsoluteExpiration` -- the entry is valid until a fixed instant.
  A plain :class:`~datetime.datetime` is accepted in its place.
- :class:`CachePolicy` -- a richer policy: sliding window from last access,
  invalidation through :class:`ChangeMonitor` dependencies, an arbitrary
  predicate, and a callback when the entry is removed.

The store evaluates :meth:`is_expired` under its lock every time an entry is
looked up, so implementations must be cheap and must not block.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

if TYPE_CHECKING:
    from cachedclient.cache.entry import CacheEntry


class RemovalReason(str, enum.Enum):
    """Why an entry left the store, as reported to :attr:`CachePolicy.on_removed`."""

    EXPIRED = "expired"
    CHANGE_MONITOR_CHANGED = "change_monitor_changed"
    REMOVED = "removed"
    FAILED = "failed"


def utc_now() -> datetime:
    """Default store clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # Naive datetimes are interpreted in local time.
    if value.tzinfo is None:
        return value.astimezone()
    return value


class ChangeMonitor:
    """Thread-safe dependency flag that invalidates every entry watching it.

    Example::

        users_changed = ChangeMonitor()
        policy = CachePolicy(change_monitors=(users_changed,))
        client.get("/users", expiration=policy)
        ...
        users_changed.notify_changed()  # next get("/users") refetches
    """

    def __init__(self) -> None:
        self._changed = threading.Event()

    @property
    def has_changed(self) -> bool:
        """Whether :meth:`notify_changed` has been called."""
        return self._changed.is_set()

    def notify_changed(self) -> None:
        """Mark the dependency as changed.  Irreversible."""
        self._changed.set()


@dataclass(frozen=True)
class NoCache:
    """Bypass the cache: the producer runs on every call and nothing is stored."""

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return True

    def removal_reason(self, entry: CacheEntry, now: datetime) -> RemovalReason:
        return RemovalReason.EXPIRED


@dataclass(frozen=True)
class AbsoluteExpiration:
    """Entry is valid until the instant ``at`` (exclusive)."""

    at: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.at, datetime):
            raise TypeError(f"AbsoluteExpiration.at must be a datetime, got {type(self.at).__name__}")
        object.__setattr__(self, "at", _aware(self.at))

    @classmethod
    def after(cls, delta: timedelta, now: Optional[datetime] = None) -> AbsoluteExpiration:
        """Build an expiration *delta* from *now* (default: current UTC time)."""
        return cls((now or utc_now()) + delta)

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return now >= self.at

    def removal_reason(self, entry: CacheEntry, now: datetime) -> RemovalReason:
        return RemovalReason.EXPIRED


@dataclass(frozen=True)
class CachePolicy:
    """Rich expiration policy evaluated by the store on every lookup.

    Attributes:
        absolute_expiration: Fixed instant after which the entry is invalid.
        sliding_expiration: Maximum idle time since the entry was last read.
        change_monitors: Dependencies; the entry expires once any of them
            reports a change.
        expire_when: Extra predicate ``(entry, now) -> bool``.
        on_removed: Callback ``(key, reason)`` invoked after the entry has
            been removed from the store.

    Raises:
        ValueError: If both ``absolute_expiration`` and
            ``sliding_expiration`` are set, or the sliding window is not
            positive.
    """

    absolute_expiration: Optional[datetime] = None
    sliding_expiration: Optional[timedelta] = None
    change_monitors: tuple[ChangeMonitor, ...] = field(default_factory=tuple)
    expire_when: Optional[Callable[[CacheEntry, datetime], bool]] = None
    on_removed: Optional[Callable[[str, RemovalReason], Any]] = None

    def __post_init__(self) -> None:
        if self.absolute_expiration is not None and self.sliding_expiration is not None:
            raise ValueError(
                "absolute_expiration and sliding_expiration cannot both be set"
            )
        if self.sliding_expiration is not None and self.sliding_expiration <= timedelta(0):
            raise ValueError("sliding_expiration must be positive")
        if self.absolute_expiration is not None:
            object.__setattr__(self, "absolute_expiration", _aware(self.absolute_expiration))
        object.__setattr__(self, "change_monitors", tuple(self.change_monitors))

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        if self.absolute_expiration is not None and now >= self.absolute_expiration:
            return True
        if self.sliding_expiration is not None and now - entry.last_accessed >= self.sliding_expiration:
            return True
        if any(monitor.has_changed for monitor in self.change_monitors):
            return True
        if self.expire_when is not None and self.expire_when(entry, now):
            return True
        return False

    def removal_reason(self, entry: CacheEntry, now: datetime) -> RemovalReason:
        if any(monitor.has_changed for monitor in self.change_monitors):
            return RemovalReason.CHANGE_MONITOR_CHANGED
        return RemovalReason.EXPIRED


Expiration = Union[NoCache, AbsoluteExpiration, CachePolicy]


def coerce_expiration(value: Union[Expiration, datetime, None]) -> Expiration:
    """Normalise the public ``expiration`` argument into a descriptor.

    ``None`` becomes :class:`NoCache` and a bare datetime becomes
    :class:`AbsoluteExpiration`.

    Raises:
        TypeError: For any other type.
    """
    if value is None:
        return NoCache()
    if isinstance(value, (NoCache, AbsoluteExpiration, CachePolicy)):
        return value
    if isinstance(value, datetime):
        return AbsoluteExpiration(value)
    raise TypeError(
        "expiration must be None, a datetime, NoCache, AbsoluteExpiration "
        f"or CachePolicy, got {type(value).__name__}"
    )


def bypasses_cache(expiration: Expiration) -> bool:
    return isinstance(expiration, NoCache)
