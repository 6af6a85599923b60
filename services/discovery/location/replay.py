"""
ReplayLocationProvider — plays back a recorded list of fixes.

Stands in for a device location service in tests and offline runs. The
first fix answers get_current_position(); subscribe() delivers the fixes in
order, one every options.min_interval_ms (scaled by time_scale), from a
background asyncio task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from services.discovery.errors import ProviderUnavailable
from services.discovery.location.provider import PositionCallback, TrackingOptions
from services.discovery.models import Coordinates

logger = logging.getLogger(__name__)


class ReplayHandle:
    """Subscription handle wrapping the playback task."""

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until playback finishes or is cancelled."""
        if self._task is None:
            return
        await asyncio.wait({self._task})


class ReplayLocationProvider:
    """
    Args:
        fixes:       Recorded fixes, oldest first.
        granted:     Result of request_permission().
        time_scale:  Multiplier applied to min_interval_ms between
                     deliveries; 0 delivers as fast as the loop allows.
    """

    def __init__(
        self,
        fixes: Sequence[Coordinates],
        granted: bool = True,
        time_scale: float = 0.0,
    ) -> None:
        self._fixes = list(fixes)
        self._granted = granted
        self._time_scale = time_scale
        self.handles: list[ReplayHandle] = []

    async def request_permission(self) -> bool:
        return self._granted

    async def get_current_position(self) -> Coordinates:
        if not self._fixes:
            raise ProviderUnavailable("no recorded fixes to replay")
        return self._fixes[0]

    async def subscribe(
        self, options: TrackingOptions, callback: PositionCallback
    ) -> ReplayHandle:
        handle = ReplayHandle()
        delay_s = options.min_interval_ms / 1000 * self._time_scale

        async def _play() -> None:
            for fix in self._fixes[1:]:
                await asyncio.sleep(delay_s)
                if handle.cancelled:
                    return
                callback(fix)
            logger.debug("replay finished: %d fixes delivered", len(self._fixes) - 1)

        handle._task = asyncio.create_task(_play())
        self.handles.append(handle)
        return handle
