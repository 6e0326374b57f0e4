"""Widening look-back scan over the health data provider.

Wearables sync late and sparsely, so a single fixed query range often comes
back empty. The scanner walks 24h -> 3d -> 7d -> 30d and stops at the first
window that returns anything. Readings are never merged across windows.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Set
from datetime import datetime

from cardiolink.domains.health.connectors import HealthDataSource
from cardiolink.domains.health.domain_logic.error_classifier import (
    describe_error,
    is_permission_error,
)
from cardiolink.domains.health.domain_logic.models import (
    DEFAULT_SCAN_WINDOWS,
    MetricKind,
    Reading,
    ScanOutcome,
    ScanWindow,
    WindowAttempt,
)

logger = logging.getLogger(__name__)


class PermissionsRevokedError(Exception):
    """A window query was refused; every later window would be refused too."""

    def __init__(self, window: str, detail: str) -> None:
        super().__init__(f"Permission error while scanning {window} window: {detail}")
        self.window = window
        self.detail = detail


def _local_now() -> datetime:
    return datetime.now().astimezone()


class TimeWindowScanner:
    """Queries the provider window by window, strictly in order.

    Usage::

        scanner = TimeWindowScanner(source)
        readings = await scanner.scan({MetricKind.HEART_RATE, MetricKind.STEPS})
    """

    def __init__(
        self,
        source: HealthDataSource,
        windows: tuple[ScanWindow, ...] = DEFAULT_SCAN_WINDOWS,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        if not windows:
            raise ValueError("At least one scan window is required")
        self._source = source
        self._windows = windows
        self._clock = clock

    async def scan(self, kinds: Set[MetricKind]) -> list[Reading]:
        """Readings from the first non-empty window, or [] if all are empty.

        Raises:
            PermissionsRevokedError: a window query failed with a permission error.
        """
        outcome = await self.trace(kinds)
        if outcome.aborted:
            last = outcome.attempts[-1]
            raise PermissionsRevokedError(last.label, outcome.permission_error or "")
        return outcome.readings

    async def trace(self, kinds: Set[MetricKind]) -> ScanOutcome:
        """Run the scan and keep a record of every window tried.

        Never raises for provider errors: a permission error stops the scan
        and is recorded on the outcome, anything else moves on to the next
        window.
        """
        kinds = frozenset(kinds)
        now = self._clock()
        outcome = ScanOutcome()

        for window in self._windows:
            start, end = window.bounds(now)
            attempt = WindowAttempt(label=window.label, start=start, end=end)
            outcome.attempts.append(attempt)
            logger.debug("Trying %s range: %s to %s", window.label, start, end)

            try:
                readings = await self._source.query_readings(kinds, start, end)
            except Exception as exc:
                attempt.error = describe_error(exc)
                if is_permission_error(exc):
                    logger.warning(
                        "Permission error in %s range, aborting scan: %s",
                        window.label, attempt.error,
                    )
                    outcome.permission_error = attempt.error
                    return outcome
                logger.info("Error fetching %s range, trying next: %s", window.label, attempt.error)
                continue

            attempt.point_count = len(readings)
            logger.debug("Found %d data points in %s range", len(readings), window.label)
            if readings:
                outcome.readings = list(readings)
                outcome.winning_window = window.label
                logger.info("Using %d data points from %s range", len(readings), window.label)
                return outcome

        logger.info("No health data found in any of %d ranges", len(self._windows))
        return outcome
