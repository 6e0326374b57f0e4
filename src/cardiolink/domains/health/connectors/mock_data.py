"""Mock health readings for development and testing.

Represents an ordinary day for a median healthy adult: a night of sleep, a
morning walk, a few heart rate and SpO2 samples, and a short run.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from cardiolink.domains.health.domain_logic.models import MetricKind, Reading

SOURCE_LABEL = "mock"


def _reading(
    kind: MetricKind,
    value: float,
    unit: str,
    start: datetime,
    minutes: float = 1,
    payload: str | None = None,
) -> Reading:
    return Reading(
        metric_kind=kind,
        value=value,
        unit=unit,
        observed_at=start,
        recorded_interval=(start, start + timedelta(minutes=minutes)),
        payload=payload,
        source=SOURCE_LABEL,
    )


def get_mock_readings(now: datetime) -> list[Reading]:
    """Return one day of mock readings, none of them later than ``now``."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    yesterday = midnight - timedelta(days=1)
    readings = [
        # Last night's sleep, recorded the previous evening
        _reading(MetricKind.SLEEP_DURATION, 7.1, "hr", yesterday + timedelta(hours=23), minutes=426),
        # Yesterday's totals (must not count towards today)
        _reading(MetricKind.STEPS, 6400, "count", yesterday + timedelta(hours=18), minutes=60),
        _reading(MetricKind.ACTIVE_ENERGY, 310, "kcal", yesterday + timedelta(hours=18), minutes=60),
    ]

    # Samples spread over today up to now
    elapsed = now - midnight
    for fraction, bpm, spo2 in ((0.2, 58, 97), (0.5, 71, 98), (0.9, 68, 97)):
        at = midnight + elapsed * fraction
        readings.append(_reading(MetricKind.HEART_RATE, bpm, "count/min", at))
        readings.append(_reading(MetricKind.BLOOD_OXYGEN, spo2, "%", at))
    for fraction, steps, kcal, km in ((0.3, 1200, 45, 0.9), (0.6, 3100, 160, 2.4), (0.8, 900, 38, 0.7)):
        at = midnight + elapsed * fraction
        readings.append(_reading(MetricKind.STEPS, steps, "count", at, minutes=30))
        readings.append(_reading(MetricKind.ACTIVE_ENERGY, kcal, "kcal", at, minutes=30))
        readings.append(_reading(MetricKind.DISTANCE, km, "km", at, minutes=30))

    readings.append(
        _reading(MetricKind.WORKOUT, 32, "min", midnight + elapsed * 0.6, minutes=32, payload="running")
    )
    return readings
