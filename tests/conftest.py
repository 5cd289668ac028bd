"""Shared test fixtures for cachedclient.

Provides a controllable clock for driving expiration, counting producers and
HTTP handlers for asserting how many requests actually happened, and
automatic cleanup of the global output manager and environment.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from cachedclient.output import reset_output


BASE_URL = "https://api.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test."""
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear CACHEDCLIENT_* variables so the host environment never leaks in."""
    for var in [
        "CACHEDCLIENT_TIMEOUT",
        "CACHEDCLIENT_VERIFY_SSL",
        "CACHEDCLIENT_FOLLOW_REDIRECTS",
        "NO_COLOR",
    ]:
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Producers and handlers
# ---------------------------------------------------------------------------


class CountingProducer:
    """Callable returning successive values and counting invocations.

    Each item of *results* is either returned or, if it is an exception,
    raised.  The last item repeats once the list is exhausted.
    """

    def __init__(self, *results: Any) -> None:
        self._results = list(results) or ["value"]
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self) -> Any:
        with self._lock:
            index = min(self.calls, len(self._results) - 1)
            self.calls += 1
        result = self._results[index]
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingHandler:
    """httpx.MockTransport handler that records requests and answers from a function."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self._respond = respond
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self._respond(request)

    @property
    def count(self) -> int:
        return len(self.requests)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def json_handler(data: Any = None, status_code: int = 200) -> RecordingHandler:
    """Handler answering every request with the same JSON payload."""
    return RecordingHandler(lambda request: httpx.Response(status_code, json=data))


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll *predicate* until it holds, failing the test after *timeout* seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not reached before timeout")
        time.sleep(0.005)
