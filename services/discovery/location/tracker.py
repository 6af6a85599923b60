"""
LocationTracker — owns the current-position state for one consumer.

States:
  IDLE      no fix yet
  RESOLVED  has a last-known fix
  TRACKING  RESOLVED + an active provider subscription

Only fixes that clear the movement threshold are propagated: each tracking
update is compared against the last *accepted* fix (the baseline), so a run
of small moves accumulates until it becomes significant, and a small move
right after a large one is measured from the large one.

Cancellation: stop_tracking() bumps a generation counter. Every callback
and every reverse-geocode task carries the generation it was created under
and is dropped if it no longer matches, so nothing mutates state after
stop_tracking() returns, even if the provider fires one last time.

Failures never raise out of this class. Permission and provider errors are
recorded on .error and the last known fix stays valid.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Protocol

from services.discovery.errors import LocationError, PermissionDenied, ProviderUnavailable
from services.discovery.geo.distance import MOVEMENT_THRESHOLD_M, is_significant_movement
from services.discovery.location.provider import (
    LocationProvider,
    SubscriptionHandle,
    TrackingOptions,
)
from services.discovery.models import CityInfo, Coordinates

logger = logging.getLogger(__name__)

LocationListener = Callable[[Coordinates], None]


class ReverseGeocoder(Protocol):
    async def lookup(self, coords: Coordinates) -> CityInfo | None:
        ...


class TrackerState(str, Enum):
    IDLE = "idle"
    RESOLVED = "resolved"
    TRACKING = "tracking"


class LocationTracker:
    """
    Usage:
        tracker = LocationTracker(provider, geocoder)
        await tracker.load_location()
        await tracker.start_tracking()
        ...
        tracker.stop_tracking()
    """

    def __init__(
        self,
        provider: LocationProvider,
        geocoder: ReverseGeocoder | None = None,
        options: TrackingOptions | None = None,
        threshold_m: float = MOVEMENT_THRESHOLD_M,
    ) -> None:
        self._provider = provider
        self._geocoder = geocoder
        self._options = options or TrackingOptions()
        self._threshold_m = threshold_m

        self._coordinates: Coordinates | None = None
        self._baseline: Coordinates | None = None
        self._city_info: CityInfo | None = None
        self._error: LocationError | None = None
        self._loading = False

        self._handle: SubscriptionHandle | None = None
        self._generation = 0
        self._geocode_tasks: set[asyncio.Task] = set()
        self._listeners: list[LocationListener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> TrackerState:
        if self._handle is not None:
            return TrackerState.TRACKING
        if self._coordinates is not None:
            return TrackerState.RESOLVED
        return TrackerState.IDLE

    @property
    def coordinates(self) -> Coordinates | None:
        return self._coordinates

    @property
    def city_info(self) -> CityInfo | None:
        return self._city_info

    @property
    def error(self) -> LocationError | None:
        return self._error

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def is_tracking(self) -> bool:
        return self._handle is not None

    def add_listener(self, listener: LocationListener) -> None:
        """Register a callback fired with every newly accepted fix."""
        self._listeners.append(listener)

    def remove_listener(self, listener: LocationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # One-shot resolution
    # ------------------------------------------------------------------

    async def load_location(self) -> Coordinates | None:
        """
        Query the provider for a fresh fix and attach city metadata.

        Returns the new coordinates, or None if the provider failed; the
        failure is available on .error.
        """
        self._loading = True
        self._error = None
        try:
            try:
                if not await self._provider.request_permission():
                    raise PermissionDenied("Location permission denied")
                coords = await self._provider.get_current_position()
            except LocationError as exc:
                self._record_error(exc)
                return None
            except Exception as exc:
                self._record_error(ProviderUnavailable(str(exc) or type(exc).__name__))
                return None

            self._accept(coords)

            city = await self._safe_lookup(coords)
            if self._coordinates == coords:
                self._city_info = city
            return coords
        finally:
            self._loading = False

    async def refresh_location(self) -> Coordinates | None:
        """Manual re-trigger (pull-to-refresh). Always a live provider query."""
        return await self.load_location()

    # ------------------------------------------------------------------
    # Continuous tracking
    # ------------------------------------------------------------------

    async def start_tracking(self, previous: Coordinates | None = None) -> bool:
        """
        Subscribe to provider updates.

        Args:
            previous: Baseline for the first significance check. Defaults to
                      the last accepted fix; None with no fix means the first
                      update is always accepted.

        Returns:
            True if a subscription is active when this returns.
        """
        self.stop_tracking()
        generation = self._generation

        if previous is not None:
            self._baseline = previous
        elif self._baseline is None:
            self._baseline = self._coordinates

        def _callback(coords: Coordinates) -> None:
            self._on_position(generation, coords)

        try:
            if not await self._provider.request_permission():
                raise PermissionDenied("Location permission denied")
            handle = await self._provider.subscribe(self._options, _callback)
        except LocationError as exc:
            if generation == self._generation:
                self._record_error(exc)
            return False
        except Exception as exc:
            if generation == self._generation:
                self._record_error(ProviderUnavailable(str(exc) or type(exc).__name__))
            return False

        if generation != self._generation:
            # stop_tracking() ran while the subscription was being set up
            handle.cancel()
            return False

        self._handle = handle
        logger.info(
            "tracking started: min_distance_m=%.0f min_interval_ms=%d",
            self._options.min_distance_meters,
            self._options.min_interval_ms,
        )
        return True

    def stop_tracking(self) -> None:
        """Release the subscription. A no-op when nothing is subscribed."""
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.cancel()
        except Exception:
            logger.warning("subscription cancel failed", exc_info=True)
        logger.info("tracking stopped")

    async def aclose(self) -> None:
        """Stop tracking and wait for outstanding geocode tasks to wind down."""
        self.stop_tracking()
        tasks = list(self._geocode_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_position(self, generation: int, coords: Coordinates) -> None:
        if generation != self._generation:
            logger.debug("dropping update from cancelled subscription")
            return

        if not is_significant_movement(self._baseline, coords, self._threshold_m):
            logger.debug("insignificant movement discarded: %s", coords)
            return

        self._accept(coords)
        self._schedule_geocode(generation, coords)

    def _accept(self, coords: Coordinates) -> None:
        self._coordinates = coords
        self._baseline = coords
        for listener in list(self._listeners):
            try:
                listener(coords)
            except Exception:
                logger.warning("location listener failed", exc_info=True)

    def _schedule_geocode(self, generation: int, coords: Coordinates) -> None:
        if self._geocoder is None:
            return
        task = asyncio.create_task(self._geocode(generation, coords))
        self._geocode_tasks.add(task)
        task.add_done_callback(self._geocode_tasks.discard)

    async def _geocode(self, generation: int, coords: Coordinates) -> None:
        city = await self._safe_lookup(coords)
        if generation != self._generation or self._coordinates != coords:
            return
        self._city_info = city

    async def _safe_lookup(self, coords: Coordinates) -> CityInfo | None:
        if self._geocoder is None:
            return None
        try:
            return await self._geocoder.lookup(coords)
        except Exception:
            logger.warning("reverse geocode failed for %s", coords, exc_info=True)
            return None

    def _record_error(self, exc: LocationError) -> None:
        self._error = exc
        logger.warning("location error: %s: %s", type(exc).__name__, exc)
