"""
Tests for LocationTracker.

The ScriptedProvider hands the tracker's callback back to the test, so
position updates are delivered by hand, in order, exactly when the test
wants them.

Coverage targets:
  - state machine (IDLE → RESOLVED → TRACKING and back)
  - permission / provider failures recorded, never raised
  - significance filtering against the last accepted fix
  - stop_tracking() idempotence and late-callback suppression
  - best-effort reverse geocoding
"""

from __future__ import annotations

import asyncio

import pytest

from services.discovery.errors import PermissionDenied, ProviderUnavailable
from services.discovery.location.provider import TrackingOptions
from services.discovery.location.replay import ReplayLocationProvider
from services.discovery.location.tracker import LocationTracker, TrackerState
from services.discovery.models import Coordinates
from services.discovery.tests.conftest import (
    BERLIN,
    RecordingGeocoder,
    ScriptedProvider,
)

# ~1 degree of latitude in meters
_M_PER_DEG_LAT = 111_320


def north_of(origin: Coordinates, meters: float) -> Coordinates:
    return Coordinates(origin.latitude + meters / _M_PER_DEG_LAT, origin.longitude)


async def drain() -> None:
    """Let scheduled geocode tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def tracker(provider, geocoder) -> LocationTracker:
    return LocationTracker(provider, geocoder)


def test_fixtures_and_imported_fakes_are_the_same_classes(provider, geocoder):
    # conftest must load once, under its package name, for isinstance to hold
    assert isinstance(provider, ScriptedProvider)
    assert isinstance(geocoder, RecordingGeocoder)


# ---------------------------------------------------------------------------
# load_location
# ---------------------------------------------------------------------------

class TestLoadLocation:
    def test_starts_idle(self, tracker):
        assert tracker.state is TrackerState.IDLE
        assert tracker.coordinates is None
        assert tracker.error is None

    @pytest.mark.asyncio
    async def test_success_resolves_and_geocodes(self, tracker, geocoder):
        coords = await tracker.load_location()

        assert coords == BERLIN
        assert tracker.coordinates == BERLIN
        assert tracker.state is TrackerState.RESOLVED
        assert tracker.city_info is not None
        assert tracker.city_info.city == "City@52.52"
        assert geocoder.calls == [BERLIN]
        assert tracker.loading is False

    @pytest.mark.asyncio
    async def test_permission_denied_is_recorded(self, geocoder):
        tracker = LocationTracker(ScriptedProvider([BERLIN], granted=False), geocoder)

        assert await tracker.load_location() is None
        assert isinstance(tracker.error, PermissionDenied)
        assert tracker.state is TrackerState.IDLE
        assert geocoder.calls == []

    @pytest.mark.asyncio
    async def test_provider_unavailable_is_recorded(self, geocoder):
        provider = ScriptedProvider(error=ProviderUnavailable("GPS off"))
        tracker = LocationTracker(provider, geocoder)

        assert await tracker.load_location() is None
        assert isinstance(tracker.error, ProviderUnavailable)
        assert tracker.loading is False

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_becomes_provider_unavailable(self):
        tracker = LocationTracker(ScriptedProvider(error=RuntimeError("boom")))
        assert await tracker.load_location() is None
        assert isinstance(tracker.error, ProviderUnavailable)

    @pytest.mark.asyncio
    async def test_failure_keeps_last_known_fix(self, provider, geocoder):
        tracker = LocationTracker(provider, geocoder)
        await tracker.load_location()

        provider.error = ProviderUnavailable("lost signal")
        assert await tracker.refresh_location() is None
        assert tracker.coordinates == BERLIN
        assert tracker.state is TrackerState.RESOLVED
        assert isinstance(tracker.error, ProviderUnavailable)

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, provider, tracker):
        provider.error = ProviderUnavailable("cold start")
        await tracker.load_location()
        provider.error = None
        await tracker.load_location()
        assert tracker.error is None

    @pytest.mark.asyncio
    async def test_geocode_failure_does_not_fail_resolution(self, provider):
        tracker = LocationTracker(provider, RecordingGeocoder(fail=True))
        assert await tracker.load_location() == BERLIN
        assert tracker.city_info is None
        assert tracker.error is None

    @pytest.mark.asyncio
    async def test_without_geocoder(self, provider):
        tracker = LocationTracker(provider)
        assert await tracker.load_location() == BERLIN
        assert tracker.city_info is None

    @pytest.mark.asyncio
    async def test_refresh_always_queries_provider(self, provider, tracker):
        await tracker.load_location()
        await tracker.refresh_location()
        assert provider.position_calls == 2


# ---------------------------------------------------------------------------
# start_tracking / significance filtering
# ---------------------------------------------------------------------------

class TestTracking:
    @pytest.mark.asyncio
    async def test_start_tracking_subscribes_with_coarse_options(self, provider, geocoder):
        options = TrackingOptions(min_distance_meters=500, min_interval_ms=120_000)
        tracker = LocationTracker(provider, geocoder, options=options)

        assert await tracker.start_tracking() is True
        assert tracker.state is TrackerState.TRACKING
        assert provider.options == [options]

    @pytest.mark.asyncio
    async def test_first_update_without_baseline_is_accepted(self, provider, tracker):
        await tracker.start_tracking()
        provider.emit(BERLIN)
        assert tracker.coordinates == BERLIN

    @pytest.mark.asyncio
    async def test_small_update_is_discarded(self, provider, tracker, geocoder):
        await tracker.load_location()
        await tracker.start_tracking()

        provider.emit(north_of(BERLIN, 50))
        await drain()

        assert tracker.coordinates == BERLIN
        assert geocoder.calls == [BERLIN]

    @pytest.mark.asyncio
    async def test_large_update_is_accepted_and_geocoded(self, provider, tracker, geocoder):
        await tracker.load_location()
        await tracker.start_tracking()

        far = north_of(BERLIN, 800)
        provider.emit(far)
        await drain()

        assert tracker.coordinates == far
        assert geocoder.calls[-1] == far
        assert tracker.city_info.latitude == far.latitude

    @pytest.mark.asyncio
    async def test_small_update_after_large_uses_new_baseline(self, provider, tracker):
        """600 m then +300 m: the second hop is 900 m from the start but only
        300 m from the accepted fix, so it must be discarded."""
        await tracker.start_tracking(previous=BERLIN)

        first = north_of(BERLIN, 600)
        provider.emit(first)
        assert tracker.coordinates == first

        provider.emit(north_of(BERLIN, 900))
        assert tracker.coordinates == first

    @pytest.mark.asyncio
    async def test_small_moves_accumulate_until_significant(self, provider, tracker):
        await tracker.start_tracking(previous=BERLIN)

        provider.emit(north_of(BERLIN, 200))
        provider.emit(north_of(BERLIN, 400))
        assert tracker.coordinates is None

        provider.emit(north_of(BERLIN, 550))
        assert tracker.coordinates == north_of(BERLIN, 550)

    @pytest.mark.asyncio
    async def test_updates_processed_in_arrival_order(self, provider, tracker):
        await tracker.start_tracking(previous=BERLIN)
        stops = [north_of(BERLIN, m) for m in (600, 1200, 1800)]
        seen: list[Coordinates] = []
        tracker.add_listener(seen.append)

        for stop in stops:
            provider.emit(stop)

        assert seen == stops

    @pytest.mark.asyncio
    async def test_permission_denied_on_start(self, geocoder):
        tracker = LocationTracker(ScriptedProvider([BERLIN], granted=False), geocoder)
        assert await tracker.start_tracking() is False
        assert isinstance(tracker.error, PermissionDenied)
        assert tracker.is_tracking is False

    @pytest.mark.asyncio
    async def test_restart_replaces_subscription(self, provider, tracker):
        await tracker.start_tracking()
        await tracker.start_tracking()

        assert provider.handles[0].cancel_count == 1
        assert provider.handles[1].cancel_count == 0
        assert tracker.is_tracking is True

    @pytest.mark.asyncio
    async def test_load_location_while_tracking_keeps_tracking(self, tracker):
        await tracker.start_tracking()
        await tracker.load_location()
        assert tracker.state is TrackerState.TRACKING


# ---------------------------------------------------------------------------
# stop_tracking / cancellation
# ---------------------------------------------------------------------------

class TestStopTracking:
    def test_stop_before_start_is_noop(self, tracker):
        tracker.stop_tracking()
        assert tracker.is_tracking is False
        assert tracker.state is TrackerState.IDLE

    @pytest.mark.asyncio
    async def test_stop_twice(self, provider, tracker):
        await tracker.start_tracking()
        tracker.stop_tracking()
        tracker.stop_tracking()

        assert tracker.is_tracking is False
        assert provider.handles[0].cancel_count == 1

    @pytest.mark.asyncio
    async def test_stop_returns_to_resolved(self, tracker):
        await tracker.load_location()
        await tracker.start_tracking()
        tracker.stop_tracking()
        assert tracker.state is TrackerState.RESOLVED

    @pytest.mark.asyncio
    async def test_late_callback_after_stop_is_ignored(self, provider, tracker):
        await tracker.load_location()
        await tracker.start_tracking()
        tracker.stop_tracking()

        provider.emit(north_of(BERLIN, 5000))
        assert tracker.coordinates == BERLIN

    @pytest.mark.asyncio
    async def test_callback_from_replaced_subscription_is_ignored(self, provider, tracker):
        await tracker.start_tracking(previous=BERLIN)
        await tracker.start_tracking(previous=BERLIN)

        provider.emit(north_of(BERLIN, 5000), index=0)
        assert tracker.coordinates is None

        provider.emit(north_of(BERLIN, 5000), index=1)
        assert tracker.coordinates == north_of(BERLIN, 5000)

    @pytest.mark.asyncio
    async def test_in_flight_geocode_after_stop_does_not_apply(self, provider):
        release = asyncio.Event()

        class SlowGeocoder(RecordingGeocoder):
            async def lookup(self, coords):
                await release.wait()
                return await super().lookup(coords)

        tracker = LocationTracker(provider, SlowGeocoder())
        await tracker.start_tracking(previous=BERLIN)
        provider.emit(north_of(BERLIN, 800))
        await drain()

        tracker.stop_tracking()
        release.set()
        await drain()

        assert tracker.city_info is None

    @pytest.mark.asyncio
    async def test_stop_during_subscribe_cancels_new_handle(self, provider, geocoder):
        gate = asyncio.Event()

        class SlowProvider(ScriptedProvider):
            async def subscribe(self, options, callback):
                await gate.wait()
                return await super().subscribe(options, callback)

        slow = SlowProvider([BERLIN])
        tracker = LocationTracker(slow, geocoder)

        start = asyncio.create_task(tracker.start_tracking())
        await drain()
        tracker.stop_tracking()
        gate.set()

        assert await start is False
        assert tracker.is_tracking is False
        assert slow.handles[0].cancel_count == 1

    @pytest.mark.asyncio
    async def test_aclose_stops_tracking(self, provider, tracker):
        await tracker.start_tracking()
        await tracker.aclose()
        assert tracker.is_tracking is False


# ---------------------------------------------------------------------------
# ReplayLocationProvider end to end
# ---------------------------------------------------------------------------

class TestReplayProvider:
    @pytest.mark.asyncio
    async def test_replay_filters_jitter(self, geocoder):
        fixes = [
            BERLIN,
            north_of(BERLIN, 30),
            north_of(BERLIN, 700),
            north_of(BERLIN, 750),
            north_of(BERLIN, 1400),
        ]
        provider = ReplayLocationProvider(fixes)
        tracker = LocationTracker(provider, geocoder)
        accepted: list[Coordinates] = []
        tracker.add_listener(accepted.append)

        await tracker.load_location()
        await tracker.start_tracking()
        await provider.handles[0].wait()
        await tracker.aclose()

        assert accepted == [BERLIN, north_of(BERLIN, 700), north_of(BERLIN, 1400)]

    @pytest.mark.asyncio
    async def test_replay_without_fixes_is_unavailable(self):
        tracker = LocationTracker(ReplayLocationProvider([]))
        assert await tracker.load_location() is None
        assert isinstance(tracker.error, ProviderUnavailable)
