"""
Location layer — current-position state and movement filtering.

LocationTracker
    One-shot fetch plus coarse continuous tracking; only significant
    movement is propagated.

NominatimGeocoder
    Best-effort reverse geocoding to city metadata.

ReplayLocationProvider
    Plays back recorded fixes through the LocationProvider contract.

Usage:
    from services.discovery.location import LocationTracker, NominatimGeocoder
"""

from __future__ import annotations

from services.discovery.location.geocoder import NominatimGeocoder
from services.discovery.location.provider import (
    LocationProvider,
    SubscriptionHandle,
    TrackingOptions,
)
from services.discovery.location.replay import ReplayLocationProvider
from services.discovery.location.tracker import LocationTracker, TrackerState

__all__ = [
    "LocationProvider",
    "LocationTracker",
    "NominatimGeocoder",
    "ReplayLocationProvider",
    "SubscriptionHandle",
    "TrackerState",
    "TrackingOptions",
]
