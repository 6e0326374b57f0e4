"""Apple Health XML export parser.

Parses the ``export.xml`` file produced by Apple Health (iOS → Share → Export
Health Data) into ``Reading`` objects. Supports large files via iterparse.

HealthKit type mappings:
- HKQuantityTypeIdentifierHeartRate → HEART_RATE (count/min)
- HKQuantityTypeIdentifierOxygenSaturation → BLOOD_OXYGEN (fraction → %)
- HKQuantityTypeIdentifierActiveEnergyBurned → ACTIVE_ENERGY (kcal)
- HKQuantityTypeIdentifierStepCount → STEPS
- HKQuantityTypeIdentifierDistanceWalkingRunning → DISTANCE (km)
- HKCategoryTypeIdentifierSleepAnalysis → SLEEP_DURATION (hours, end - start)
- Workout elements → WORKOUT (minutes, activity type as payload)
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path

from cardiolink.domains.health.domain_logic.models import MetricKind, Reading

logger = logging.getLogger(__name__)

# HealthKit quantity type identifiers
_HR = "HKQuantityTypeIdentifierHeartRate"
_SPO2 = "HKQuantityTypeIdentifierOxygenSaturation"
_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
_STEPS = "HKQuantityTypeIdentifierStepCount"
_DISTANCE = "HKQuantityTypeIdentifierDistanceWalkingRunning"

_SLEEP = "HKCategoryTypeIdentifierSleepAnalysis"

_QUANTITY_KINDS = {
    _HR: MetricKind.HEART_RATE,
    _SPO2: MetricKind.BLOOD_OXYGEN,
    _ENERGY: MetricKind.ACTIVE_ENERGY,
    _STEPS: MetricKind.STEPS,
    _DISTANCE: MetricKind.DISTANCE,
}

# Awake/in-bed samples are not sleep.
_NOT_ASLEEP = {
    "HKCategoryValueSleepAnalysisAwake",
    "HKCategoryValueSleepAnalysisInBed",
}

_TO_KM = {"km": 1.0, "m": 0.001, "mi": 1.609344}
_TO_KCAL = {"kcal": 1.0, "Cal": 1.0, "kJ": 0.239006}

SOURCE_LABEL = "apple_health"


class AppleHealthParseError(Exception):
    """Raised when parsing Apple Health export XML fails."""


def _parse_date(date_str: str) -> datetime:
    """Parse Apple Health date format: '2025-12-01 08:30:00 -0500'.

    ISO 8601 strings are accepted too; a timestamp without an offset is
    taken as UTC so every reading compares against aware query bounds.
    """
    try:
        return datetime.strptime(date_str, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        # Fallback for ISO format
        parsed = datetime.fromisoformat(date_str)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalise(kind: MetricKind, value: float, unit: str) -> tuple[float, str]:
    """Convert a raw HealthKit quantity into the unit the reconciler reports."""
    if kind is MetricKind.BLOOD_OXYGEN:
        return (value * 100 if value <= 1 else value), "%"
    if kind is MetricKind.DISTANCE:
        return value * _TO_KM.get(unit, 1.0), "km"
    if kind is MetricKind.ACTIVE_ENERGY:
        return value * _TO_KCAL.get(unit, 1.0), "kcal"
    return value, unit


def _quantity_reading(elem: ET.Element, kind: MetricKind) -> Reading | None:
    start_str = elem.get("startDate", "")
    value_str = elem.get("value", "")
    if not start_str or not value_str:
        return None
    start = _parse_date(start_str)
    end = _parse_date(elem.get("endDate", "") or start_str)
    value, unit = _normalise(kind, float(value_str), elem.get("unit", ""))
    return Reading(
        metric_kind=kind,
        value=value,
        unit=unit,
        observed_at=start,
        recorded_interval=(start, end),
        source=elem.get("sourceName", SOURCE_LABEL),
    )


def _sleep_reading(elem: ET.Element) -> Reading | None:
    start_str = elem.get("startDate", "")
    end_str = elem.get("endDate", "")
    if not start_str or not end_str or elem.get("value", "") in _NOT_ASLEEP:
        return None
    start = _parse_date(start_str)
    end = _parse_date(end_str)
    return Reading(
        metric_kind=MetricKind.SLEEP_DURATION,
        value=(end - start).total_seconds() / 3600,
        unit="hr",
        observed_at=start,
        recorded_interval=(start, end),
        payload=elem.get("value") or None,
        source=elem.get("sourceName", SOURCE_LABEL),
    )


def _workout_reading(elem: ET.Element) -> Reading | None:
    start_str = elem.get("startDate", "")
    if not start_str:
        return None
    start = _parse_date(start_str)
    end = _parse_date(elem.get("endDate", "") or start_str)
    activity = elem.get("workoutActivityType", "").replace("HKWorkoutActivityType", "").lower()
    return Reading(
        metric_kind=MetricKind.WORKOUT,
        value=float(elem.get("duration", "0") or "0"),
        unit=elem.get("durationUnit", "min"),
        observed_at=start,
        recorded_interval=(start, end),
        payload=activity or "workout",
        source=elem.get("sourceName", SOURCE_LABEL),
    )


def parse_apple_health_export(export_path: str | Path) -> list[Reading]:
    """Parse an Apple Health export.xml into readings, in export order.

    Unparseable individual records are skipped.

    Raises:
        AppleHealthParseError: If the file is missing or is not valid XML.
    """
    path = Path(export_path)
    if not path.exists():
        raise AppleHealthParseError(f"Export file not found: {path}")

    readings: list[Reading] = []
    skipped = 0

    try:
        for _event, elem in ET.iterparse(str(path), events=("end",)):
            tag = elem.tag
            if tag not in ("Record", "Workout"):
                continue
            try:
                if tag == "Workout":
                    reading = _workout_reading(elem)
                else:
                    rec_type = elem.get("type", "")
                    if rec_type in _QUANTITY_KINDS:
                        reading = _quantity_reading(elem, _QUANTITY_KINDS[rec_type])
                    elif rec_type == _SLEEP:
                        reading = _sleep_reading(elem)
                    else:
                        reading = None
            except (ValueError, TypeError):
                skipped += 1
                reading = None
            if reading is not None:
                readings.append(reading)
            elem.clear()

    except ET.ParseError as exc:
        raise AppleHealthParseError(f"Invalid XML: {exc}") from exc

    logger.info(
        "Parsed Apple Health export: %d readings (%d malformed records skipped)",
        len(readings), skipped,
    )
    return readings
