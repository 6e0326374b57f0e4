"""Caller-side refresh coordination for the health snapshot.

The service itself does not guard against overlapping fetches. This
coordinator is what a screen (or any long-lived caller) uses instead:

* one refresh at a time (re-entrancy flag);
* no more than one refresh per ``min_interval`` unless forced;
* a periodic background refresh while active, once ``start()`` is called;
* results from a superseded refresh, or arriving after ``stop()``, are dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from cardiolink.domains.health.domain_logic.health_service import HealthDataService
from cardiolink.domains.health.domain_logic.models import SnapshotResult

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Throttled, non-overlapping snapshot refreshes.

    Usage::

        coordinator = RefreshCoordinator(service)
        coordinator.start()            # periodic refresh every 2 minutes
        await coordinator.refresh()    # e.g. app returned to foreground
        coordinator.latest             # most recent published result
        await coordinator.stop()
    """

    def __init__(
        self,
        service: HealthDataService,
        *,
        min_interval: float = 30.0,
        period: float = 120.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval < 0 or period <= 0:
            raise ValueError("min_interval must be >= 0 and period must be > 0")
        self._service = service
        self._min_interval = min_interval
        self._period = period
        self._monotonic = monotonic

        self._in_progress = False
        self._active = True
        self._generation = 0
        self._last_refresh: float | None = None
        self._task: asyncio.Task | None = None
        self.latest: SnapshotResult | None = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def active(self) -> bool:
        return self._active

    async def refresh(self, *, force: bool = False) -> SnapshotResult | None:
        """Fetch and publish a snapshot; None when skipped or discarded."""
        if not self._active:
            return None
        if self._in_progress:
            logger.debug("Refresh already in progress, skipping")
            return None
        now = self._monotonic()
        if (
            not force
            and self._last_refresh is not None
            and now - self._last_refresh < self._min_interval
        ):
            logger.debug("Refresh throttled (%.1fs since last)", now - self._last_refresh)
            return None

        self._last_refresh = now
        self._generation += 1
        generation = self._generation
        self._in_progress = True
        try:
            result = await self._service.get_snapshot()
        finally:
            self._in_progress = False

        if not self._active or generation != self._generation:
            logger.debug("Discarding stale refresh result (generation %d)", generation)
            return None
        self.latest = result
        return result

    def start(self) -> None:
        """Begin periodic refreshes on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._active = True
        self._task = asyncio.get_running_loop().create_task(self._periodic())

    async def stop(self) -> None:
        """Cancel periodic refreshes; later results are discarded."""
        self._active = False
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _periodic(self) -> None:
        while self._active:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Periodic health refresh failed")
            await asyncio.sleep(self._period)
