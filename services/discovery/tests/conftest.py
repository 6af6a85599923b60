"""
Shared test fixtures for the discovery test suite.

Provides:
- a controllable millisecond clock for TTL tests
- dict-backed and always-failing key-value backends
- a scriptable location provider whose callbacks the test fires by hand
- a recording geocoder and attraction source
- factory functions for Coordinates / Attraction
"""

from __future__ import annotations

import os
from typing import Any
from unittest.mock import MagicMock

import pytest

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("CACHE_BACKEND", "memory")

from services.discovery.cache.backends import InMemoryBackend  # noqa: E402
from services.discovery.cache.store import ExpiringCacheStore  # noqa: E402
from services.discovery.errors import NetworkError, ProviderUnavailable, StorageError  # noqa: E402
from services.discovery.location.provider import TrackingOptions  # noqa: E402
from services.discovery.models import Attraction, CityInfo, Coordinates  # noqa: E402


BERLIN = Coordinates(52.5200, 13.4050)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

class FailingBackend:
    """Backend whose every operation raises StorageError."""

    async def read(self, key: str) -> bytes | None:
        raise StorageError("disk on fire")

    async def write(self, key: str, value: bytes) -> None:
        raise StorageError("disk on fire")

    async def delete(self, key: str) -> None:
        raise StorageError("disk on fire")

    async def clear(self) -> None:
        raise StorageError("disk on fire")

    async def aclose(self) -> None:
        return None


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def cache(memory_backend: InMemoryBackend, clock: FakeClock) -> ExpiringCacheStore:
    return ExpiringCacheStore(memory_backend, clock=clock)


# ---------------------------------------------------------------------------
# Location provider
# ---------------------------------------------------------------------------

class ScriptedHandle:
    def __init__(self) -> None:
        self.cancel_count = 0

    def cancel(self) -> None:
        self.cancel_count += 1


class ScriptedProvider:
    """
    Location provider driven by the test.

    get_current_position() pops from `positions` (or raises `error`);
    subscribe() records the callback so tests can emit() fixes in order.
    """

    def __init__(
        self,
        positions: list[Coordinates] | None = None,
        granted: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.positions = list(positions or [])
        self.granted = granted
        self.error = error
        self.callbacks: list[Any] = []
        self.handles: list[ScriptedHandle] = []
        self.options: list[TrackingOptions] = []
        self.position_calls = 0

    async def request_permission(self) -> bool:
        return self.granted

    async def get_current_position(self) -> Coordinates:
        self.position_calls += 1
        if self.error is not None:
            raise self.error
        if not self.positions:
            raise ProviderUnavailable("no fix")
        if len(self.positions) == 1:
            return self.positions[0]
        return self.positions.pop(0)

    async def subscribe(self, options: TrackingOptions, callback) -> ScriptedHandle:
        handle = ScriptedHandle()
        self.options.append(options)
        self.callbacks.append(callback)
        self.handles.append(handle)
        return handle

    def emit(self, coords: Coordinates, index: int = -1) -> None:
        """Fire a position update on the given (default: latest) subscription."""
        self.callbacks[index](coords)


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider(positions=[BERLIN])


# ---------------------------------------------------------------------------
# Geocoder / attraction source
# ---------------------------------------------------------------------------

class RecordingGeocoder:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[Coordinates] = []
        self.fail = fail

    async def lookup(self, coords: Coordinates) -> CityInfo | None:
        self.calls.append(coords)
        if self.fail:
            raise RuntimeError("geocoder exploded")
        return CityInfo(
            city=f"City@{coords.latitude:.2f}",
            country="Germany",
            full_address="somewhere",
            latitude=coords.latitude,
            longitude=coords.longitude,
        )


@pytest.fixture
def geocoder() -> RecordingGeocoder:
    return RecordingGeocoder()


class FakeSource:
    """Attraction source returning a fixed candidate list, counting calls."""

    def __init__(self, candidates: list[Attraction] | None = None, fail: bool = False) -> None:
        self.candidates = candidates if candidates is not None else default_candidates()
        self.fail = fail
        self.calls: list[Coordinates] = []

    async def fetch(self, coords: Coordinates) -> list[Attraction]:
        self.calls.append(coords)
        if self.fail:
            raise NetworkError("source down", status_code=503)
        return list(self.candidates)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

def make_anthropic_response(text: str, input_tokens: int = 120, output_tokens: int = 80) -> MagicMock:
    response = MagicMock()
    block = MagicMock()
    block.text = text
    response.content = [block]
    response.usage.input_tokens = input_tokens
    response.usage.output_tokens = output_tokens
    return response


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------

def make_attraction(**overrides: Any) -> Attraction:
    defaults: dict[str, Any] = {
        "id": "node/1",
        "name": "Pergamonmuseum",
        "coordinates": Coordinates(52.5212, 13.3969),
        "category": "museum",
        "distance": 0.0,
        "rating": 4.5,
    }
    defaults.update(overrides)
    return Attraction(**defaults)


def default_candidates() -> list[Attraction]:
    return [
        make_attraction(id="node/1", name="Pergamonmuseum", coordinates=Coordinates(52.5212, 13.3969)),
        make_attraction(
            id="way/2", name="Tiergarten", category="park",
            coordinates=Coordinates(52.5145, 13.3501), rating=3.0,
        ),
        make_attraction(
            id="node/3", name="Berliner Dom", category="church",
            coordinates=Coordinates(52.5191, 13.4010), rating=5.0,
        ),
    ]
