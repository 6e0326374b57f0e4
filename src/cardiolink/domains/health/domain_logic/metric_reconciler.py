"""Metric reconciliation: many raw readings in, one value per metric out.

Reduction rules per MetricKind (see ``REDUCTION_POLICIES``):

* LATEST_NONZERO (heart rate, SpO2, sleep): newest reading by observed_at,
  ignoring readings with a zero/negative value. A zero heart rate is a sensor
  dropout, not the latest heart rate.
* DAILY_SUM (active energy, steps, distance): sum of readings observed since
  local midnight. A sum of zero is reported as absent, not as 0.
* LATEST (workout): newest reading, with its activity type as the detail.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime

from cardiolink.domains.health.domain_logic.models import (
    DEFAULT_UNITS,
    REDUCTION_POLICIES,
    HealthSnapshot,
    MetricKind,
    MetricSnapshot,
    Reading,
    ReductionPolicy,
)

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def start_of_day(now: datetime) -> datetime:
    """Midnight of the calendar day containing ``now``, in ``now``'s timezone."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _newest_first(readings: list[Reading]) -> list[Reading]:
    # sorted() is stable with reverse=True, so ties keep their input order.
    return sorted(readings, key=lambda r: r.observed_at, reverse=True)


class MetricReconciler:
    """Collapses a reading set into a HealthSnapshot.

    Usage::

        reconciler = MetricReconciler()
        snapshot = reconciler.reconcile(readings)
        snapshot[MetricKind.STEPS].value
    """

    def __init__(self, clock: Callable[[], datetime] = _local_now) -> None:
        self._clock = clock

    def reconcile(self, readings: list[Reading], now: datetime | None = None) -> HealthSnapshot:
        now = now or self._clock()
        by_kind: dict[MetricKind, list[Reading]] = defaultdict(list)
        for reading in readings:
            by_kind[reading.metric_kind].append(reading)

        for kind, points in by_kind.items():
            logger.debug("  %s: %d data points", kind.value, len(points))

        entries: dict[MetricKind, MetricSnapshot] = {}
        for kind in MetricKind:
            policy = REDUCTION_POLICIES[kind]
            points = by_kind.get(kind, [])
            if policy is ReductionPolicy.DAILY_SUM:
                entries[kind] = self._daily_sum(kind, points, now)
            elif policy is ReductionPolicy.LATEST_NONZERO:
                entries[kind] = self._latest(kind, [r for r in points if r.value > 0])
            else:
                entries[kind] = self._latest(kind, points)

        snapshot = HealthSnapshot(entries)
        logger.debug("Reconciled snapshot: %r", snapshot)
        return snapshot

    @staticmethod
    def _latest(kind: MetricKind, points: list[Reading]) -> MetricSnapshot:
        if not points:
            return MetricSnapshot(kind, unit=DEFAULT_UNITS[kind])
        latest = _newest_first(points)[0]
        return MetricSnapshot(
            kind,
            value=latest.value,
            observed_at=latest.observed_at,
            unit=latest.unit or DEFAULT_UNITS[kind],
            detail=latest.payload,
        )

    @staticmethod
    def _daily_sum(kind: MetricKind, points: list[Reading], now: datetime) -> MetricSnapshot:
        midnight = start_of_day(now)
        today = [r for r in points if midnight <= r.observed_at <= now]
        total = sum(r.value for r in today)
        logger.debug("%s: %d of %d data points fall on today", kind.value, len(today), len(points))
        if total <= 0:
            return MetricSnapshot(kind, unit=DEFAULT_UNITS[kind])
        return MetricSnapshot(
            kind,
            value=total,
            observed_at=max(r.observed_at for r in today),
            unit=today[0].unit or DEFAULT_UNITS[kind],
        )
