"""Tests for CacheStore get-or-create semantics and the collection registry."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from cachedclient.cache import (
    AbsoluteExpiration,
    CachePolicy,
    CacheStore,
    ChangeMonitor,
    CollectionRegistry,
    NoCache,
    RemovalReason,
)
from cachedclient.output import OutputManager, set_output
from conftest import CountingProducer, FakeClock, wait_until


@pytest.fixture()
def store(clock: FakeClock) -> CacheStore:
    return CacheStore("test", clock=clock)


def _for(clock: FakeClock, seconds: float = 60) -> AbsoluteExpiration:
    return AbsoluteExpiration(clock.now + timedelta(seconds=seconds))


# ------------------------------------------------------------------ #
# Hits, misses and bypass
# ------------------------------------------------------------------ #


class TestGetOrCreate:
    def test_miss_then_hit(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("a", "b")
        assert store.get_or_create("k", producer, _for(clock)) == "a"
        assert store.get_or_create("k", producer, _for(clock)) == "a"
        assert producer.calls == 1
        assert store.stats()["hits"] == 1
        assert store.stats()["misses"] == 1

    def test_distinct_keys_do_not_share(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("a", "b")
        assert store.get_or_create("k1", producer, _for(clock)) == "a"
        assert store.get_or_create("k2", producer, _for(clock)) == "b"
        assert producer.calls == 2

    @pytest.mark.parametrize("expiration", [None, NoCache()])
    def test_no_expiration_bypasses_store(self, store: CacheStore, expiration) -> None:
        producer = CountingProducer("a", "b", "c")
        results = [store.get_or_create("k", producer, expiration) for _ in range(3)]
        assert results == ["a", "b", "c"]
        assert producer.calls == 3
        assert len(store) == 0
        assert "k" not in store

    def test_bypass_ignores_existing_entry(self, store: CacheStore, clock: FakeClock) -> None:
        store.get_or_create("k", CountingProducer("cached"), _for(clock))
        assert store.get_or_create("k", CountingProducer("fresh"), None) == "fresh"
        assert store.get("k") == "cached"

    def test_datetime_accepted_as_absolute(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("a", "b")
        until = clock.now + timedelta(seconds=30)
        store.get_or_create("k", producer, until)
        store.get_or_create("k", producer, until)
        assert producer.calls == 1


# ------------------------------------------------------------------ #
# Expiry
# ------------------------------------------------------------------ #


class TestExpiry:
    def test_expiry_triggers_recompute(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("old", "new")
        expiration = _for(clock, seconds=10)
        assert store.get_or_create("k", producer, expiration) == "old"
        clock.advance(seconds=10)
        assert store.get_or_create("k", producer, _for(clock)) == "new"
        assert producer.calls == 2

    def test_past_expiration_recomputes_every_call(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("a", "b")
        past = AbsoluteExpiration(clock.now - timedelta(seconds=1))
        assert store.get_or_create("k", producer, past) == "a"
        assert store.get_or_create("k", producer, past) == "b"
        assert producer.calls == 2

    def test_sliding_expiration_renewed_by_access(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("a", "b")
        policy = CachePolicy(sliding_expiration=timedelta(seconds=10))
        store.get_or_create("k", producer, policy)
        for _ in range(3):
            clock.advance(seconds=8)
            assert store.get_or_create("k", producer, policy) == "a"
        clock.advance(seconds=10)
        assert store.get_or_create("k", producer, policy) == "b"
        assert producer.calls == 2

    def test_change_monitor_invalidates(self, store: CacheStore) -> None:
        monitor = ChangeMonitor()
        producer = CountingProducer("a", "b")
        policy = CachePolicy(change_monitors=(monitor,))
        store.get_or_create("k", producer, policy)
        assert store.get_or_create("k", producer, policy) == "a"
        monitor.notify_changed()
        fresh = CachePolicy(change_monitors=(ChangeMonitor(),))
        assert store.get_or_create("k", producer, fresh) == "b"

    def test_existing_entry_keeps_its_own_expiration(self, store: CacheStore, clock: FakeClock) -> None:
        producer = CountingProducer("a", "b")
        store.get_or_create("k", producer, _for(clock, seconds=10))
        # A longer expiration on a later call does not extend the entry.
        clock.advance(seconds=11)
        assert store.get_or_create("k", producer, _for(clock, seconds=100)) == "b"

    def test_purge_expired(self, store: CacheStore, clock: FakeClock) -> None:
        store.get_or_create("short", CountingProducer(), _for(clock, seconds=5))
        store.get_or_create("long", CountingProducer(), _for(clock, seconds=50))
        clock.advance(seconds=6)
        assert store.purge_expired() == 1
        assert store.keys() == ["long"]
        assert store.stats()["evictions"] == 1

    def test_get_drops_expired_entry(self, store: CacheStore, clock: FakeClock) -> None:
        store.get_or_create("k", CountingProducer("a"), _for(clock, seconds=5))
        assert store.get("k") == "a"
        clock.advance(seconds=5)
        assert store.get("k") is None
        assert len(store) == 0


# ------------------------------------------------------------------ #
# Failure handling
# ------------------------------------------------------------------ #


class TestFailure:
    def test_failure_does_not_poison(self, store: CacheStore, clock: FakeClock) -> None:
        error = RuntimeError("network down")
        producer = CountingProducer(error, "recovered")
        with pytest.raises(RuntimeError) as exc_info:
            store.get_or_create("k", producer, _for(clock))
        assert exc_info.value is error
        assert "k" not in store
        assert store.get_or_create("k", producer, _for(clock)) == "recovered"
        assert producer.calls == 2

    def test_producer_reentering_its_own_key(self, store: CacheStore, clock: FakeClock) -> None:
        def producer():
            return store.get_or_create("k", producer, _for(clock))

        with pytest.raises(RuntimeError, match="its own producer"):
            store.get_or_create("k", producer, _for(clock))
        assert "k" not in store
        assert store.get_or_create("k", lambda: "fresh", _for(clock)) == "fresh"

    def test_failure_reaches_every_waiter(self, store: CacheStore, clock: FakeClock) -> None:
        gate = threading.Event()
        calls: list[int] = []
        error = ValueError("bad body")

        def producer():
            calls.append(1)
            gate.wait(5)
            raise error

        errors: list[BaseException] = []

        def call():
            try:
                store.get_or_create("k", producer, _for(clock))
            except ValueError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=call) for _ in range(5)]
        for t in threads:
            t.start()
        wait_until(lambda: store.stats()["hits"] == 4)
        gate.set()
        for t in threads:
            t.join(5)

        assert calls == [1]
        assert len(errors) == 5
        assert all(e is error for e in errors)
        assert len(store) == 0

    def test_failed_entry_does_not_evict_replacement(self, store: CacheStore, clock: FakeClock) -> None:
        gate = threading.Event()

        def slow_failure():
            gate.wait(5)
            raise RuntimeError("late failure")

        errors: list[BaseException] = []

        def call():
            try:
                store.get_or_create("k", slow_failure, _for(clock))
            except RuntimeError as exc:
                errors.append(exc)

        thread = threading.Thread(target=call)
        thread.start()
        wait_until(lambda: "k" in store)
        # Replace the in-flight entry, then let the old computation fail.
        store.remove("k")
        assert store.get_or_create("k", CountingProducer("replacement"), _for(clock)) == "replacement"
        gate.set()
        thread.join(5)

        assert len(errors) == 1
        assert store.get("k") == "replacement"


# ------------------------------------------------------------------ #
# Single-flight
# ------------------------------------------------------------------ #


class TestSingleFlight:
    def test_concurrent_callers_share_one_producer(self, store: CacheStore, clock: FakeClock) -> None:
        gate = threading.Event()
        calls: list[int] = []

        def producer():
            calls.append(1)
            gate.wait(5)
            return {"id": 7}

        results: list[object] = []
        threads = [
            threading.Thread(
                target=lambda: results.append(store.get_or_create("k", producer, _for(clock)))
            )
            for _ in range(10)
        ]
        for t in threads:
            t.start()
        wait_until(lambda: store.stats()["hits"] == 9)
        gate.set()
        for t in threads:
            t.join(5)

        assert calls == [1]
        assert len(results) == 10
        assert all(r is results[0] for r in results)

    def test_slow_key_does_not_block_other_keys(self, store: CacheStore, clock: FakeClock) -> None:
        gate = threading.Event()

        def slow():
            gate.wait(5)
            return "slow"

        thread = threading.Thread(target=lambda: store.get_or_create("slow", slow, _for(clock)))
        thread.start()
        wait_until(lambda: "slow" in store)
        assert store.get_or_create("fast", CountingProducer("fast"), _for(clock)) == "fast"
        gate.set()
        thread.join(5)


# ------------------------------------------------------------------ #
# Removal callbacks
# ------------------------------------------------------------------ #


class TestRemovalCallbacks:
    def _policy(self, removed: list, **kwargs) -> CachePolicy:
        return CachePolicy(on_removed=lambda key, reason: removed.append((key, reason)), **kwargs)

    def test_expired_reason(self, store: CacheStore, clock: FakeClock) -> None:
        removed: list = []
        policy = self._policy(removed, absolute_expiration=clock.now + timedelta(seconds=1))
        store.get_or_create("k", CountingProducer(), policy)
        clock.advance(seconds=2)
        store.get_or_create("k", CountingProducer(), policy)
        assert removed == [("k", RemovalReason.EXPIRED)]

    def test_change_monitor_reason(self, store: CacheStore) -> None:
        removed: list = []
        monitor = ChangeMonitor()
        store.get_or_create("k", CountingProducer(), self._policy(removed, change_monitors=(monitor,)))
        monitor.notify_changed()
        assert store.purge_expired() == 1
        assert removed == [("k", RemovalReason.CHANGE_MONITOR_CHANGED)]

    def test_removed_reason(self, store: CacheStore) -> None:
        removed: list = []
        store.get_or_create("a", CountingProducer(), self._policy(removed))
        store.get_or_create("b", CountingProducer(), self._policy(removed))
        assert store.remove("a") is True
        assert store.remove("a") is False
        store.clear()
        assert removed == [("a", RemovalReason.REMOVED), ("b", RemovalReason.REMOVED)]

    def test_failed_reason(self, store: CacheStore) -> None:
        removed: list = []
        with pytest.raises(KeyError):
            store.get_or_create("k", CountingProducer(KeyError("x")), self._policy(removed))
        assert removed == [("k", RemovalReason.FAILED)]

    def test_callback_error_reported_not_raised(self, store: CacheStore, capsys) -> None:
        set_output(OutputManager(no_color=True))

        def explode(key, reason):
            raise RuntimeError("callback broke")

        store.get_or_create("k", CountingProducer(), CachePolicy(on_removed=explode))
        assert store.remove("k") is True
        assert "callback broke" in capsys.readouterr().err


# ------------------------------------------------------------------ #
# Collections
# ------------------------------------------------------------------ #


class TestCollections:
    def test_stores_are_isolated(self, clock: FakeClock) -> None:
        first = CacheStore("one", clock=clock)
        second = CacheStore("two", clock=clock)
        first.get_or_create("k", CountingProducer("from-one"), _for(clock))
        assert "k" not in second
        assert second.get_or_create("k", CountingProducer("from-two"), _for(clock)) == "from-two"
        assert first.get("k") == "from-one"

    def test_registry_reuses_store_by_name(self) -> None:
        registry = CollectionRegistry()
        assert registry.open("a") is registry.open("a")
        assert registry.open("a") is not registry.open("b")
        assert sorted(registry.names()) == ["a", "b"]
        assert "a" in registry
        assert len(registry) == 2

    def test_registry_close(self, clock: FakeClock) -> None:
        registry = CollectionRegistry(lambda name: CacheStore(name, clock=clock))
        store = registry.open("a")
        store.get_or_create("k", CountingProducer(), _for(clock))
        assert registry.close("a") is True
        assert len(store) == 0
        assert registry.get("a") is None
        assert registry.close("a") is False
        assert registry.open("a") is not store

    def test_stats(self, store: CacheStore, clock: FakeClock) -> None:
        store.get_or_create("k", CountingProducer(), _for(clock))
        assert store.stats() == {
            "name": "test",
            "size": 1,
            "hits": 0,
            "misses": 1,
            "evictions": 0,
        }
