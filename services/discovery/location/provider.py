"""
Contract for platform location providers.

The core never talks to GPS hardware; it is handed an object implementing
LocationProvider. Providers deliver tracking updates in arrival order through
a plain callback and return a handle whose cancel() ends the subscription.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from services.discovery.models import Coordinates

PositionCallback = Callable[[Coordinates], None]


@dataclass(frozen=True)
class TrackingOptions:
    """Coarse polling parameters for a tracking subscription."""

    min_distance_meters: float = 500.0
    min_interval_ms: int = 120_000


class SubscriptionHandle(Protocol):
    """Handle returned by LocationProvider.subscribe()."""

    def cancel(self) -> None:
        """Stop delivering updates. Safe to call more than once."""
        ...


class LocationProvider(Protocol):
    """Protocol for platform location providers."""

    async def request_permission(self) -> bool:
        """Return True if foreground location permission is granted."""
        ...

    async def get_current_position(self) -> Coordinates:
        """Return a single fix. Raises ProviderUnavailable on failure."""
        ...

    async def subscribe(
        self, options: TrackingOptions, callback: PositionCallback
    ) -> SubscriptionHandle:
        """Start delivering fixes to callback until the handle is cancelled."""
        ...
