"""Health data models and domain constants for the reconciliation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Mapping


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class MetricKind(str, Enum):
    """Physiological metrics read from the health data provider."""

    HEART_RATE = "heart_rate"
    BLOOD_OXYGEN = "blood_oxygen"
    ACTIVE_ENERGY = "active_energy"
    SLEEP_DURATION = "sleep_duration"
    STEPS = "steps"
    DISTANCE = "distance"
    WORKOUT = "workout"


class ReductionPolicy(str, Enum):
    """How many readings of one metric collapse into one value."""

    LATEST_NONZERO = "latest_nonzero"
    DAILY_SUM = "daily_sum"
    LATEST = "latest"


REDUCTION_POLICIES: dict[MetricKind, ReductionPolicy] = {
    MetricKind.HEART_RATE: ReductionPolicy.LATEST_NONZERO,
    MetricKind.BLOOD_OXYGEN: ReductionPolicy.LATEST_NONZERO,
    MetricKind.SLEEP_DURATION: ReductionPolicy.LATEST_NONZERO,
    MetricKind.ACTIVE_ENERGY: ReductionPolicy.DAILY_SUM,
    MetricKind.STEPS: ReductionPolicy.DAILY_SUM,
    MetricKind.DISTANCE: ReductionPolicy.DAILY_SUM,
    MetricKind.WORKOUT: ReductionPolicy.LATEST,
}

DEFAULT_UNITS: dict[MetricKind, str] = {
    MetricKind.HEART_RATE: "count/min",
    MetricKind.BLOOD_OXYGEN: "%",
    MetricKind.ACTIVE_ENERGY: "kcal",
    MetricKind.SLEEP_DURATION: "hr",
    MetricKind.STEPS: "count",
    MetricKind.DISTANCE: "km",
    MetricKind.WORKOUT: "min",
}

ALL_METRIC_KINDS: frozenset[MetricKind] = frozenset(MetricKind)


class Capability(str, Enum):
    """OS runtime permissions needed before the provider can be read."""

    ACTIVITY_RECOGNITION = "activity_recognition"
    LOCATION = "location"
    BODY_SENSORS = "body_sensors"


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    RESTRICTED = "restricted"
    LIMITED = "limited"
    PERMANENTLY_DENIED = "permanently_denied"

    @property
    def is_granted(self) -> bool:
        return self is PermissionStatus.GRANTED


class FailureReason(str, Enum):
    """Why a fetch produced no usable snapshot."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PERMISSIONS_NOT_GRANTED = "permissions_not_granted"
    PERMISSIONS_REVOKED = "permissions_revoked"
    NO_DATA_IN_RANGE = "no_data_in_range"
    DATA_ALL_ZERO = "data_all_zero"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Readings and snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Reading:
    """One provider-reported observation."""

    metric_kind: MetricKind
    value: float
    unit: str
    observed_at: datetime
    recorded_interval: tuple[datetime, datetime]
    payload: str | None = None   # Workout activity type
    source: str = ""


@dataclass(frozen=True)
class MetricSnapshot:
    """The reconciled value of one metric (value and timestamp are both set or both None)."""

    metric_kind: MetricKind
    value: float | None = None
    observed_at: datetime | None = None
    unit: str = ""
    detail: str | None = None

    @property
    def has_value(self) -> bool:
        return self.value is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric_kind.value,
            "value": self.value,
            "observed_at": self.observed_at.isoformat() if self.observed_at else None,
            "unit": self.unit,
            "detail": self.detail,
        }


class HealthSnapshot:
    """One MetricSnapshot per MetricKind, keyed by the closed enumeration.

    Missing kinds are filled with empty snapshots, so lookups never miss.

    Usage::

        snapshot = HealthSnapshot({MetricKind.STEPS: steps_snapshot})
        snapshot[MetricKind.HEART_RATE].value  # None
    """

    def __init__(self, entries: Mapping[MetricKind, MetricSnapshot] | None = None) -> None:
        entries = entries or {}
        self._entries: dict[MetricKind, MetricSnapshot] = {}
        for kind in MetricKind:
            entry = entries.get(kind) or MetricSnapshot(kind, unit=DEFAULT_UNITS[kind])
            if entry.metric_kind is not kind:
                raise ValueError(f"Snapshot for {entry.metric_kind.value} filed under {kind.value}")
            if (entry.value is None) != (entry.observed_at is None):
                raise ValueError(
                    f"{kind.value}: value and observed_at must both be set or both be None"
                )
            self._entries[kind] = entry

    @classmethod
    def empty(cls) -> HealthSnapshot:
        return cls()

    def __getitem__(self, kind: MetricKind) -> MetricSnapshot:
        return self._entries[kind]

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HealthSnapshot):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        present = {k.value: s.value for k, s in self._entries.items() if s.has_value}
        return f"HealthSnapshot({present})"

    def present(self) -> list[MetricSnapshot]:
        """Entries that carry a value."""
        return [s for s in self._entries.values() if s.has_value]

    def to_dict(self) -> dict[str, Any]:
        return {kind.value: snap.to_dict() for kind, snap in self._entries.items()}


# ---------------------------------------------------------------------------
# Permission state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PermissionState:
    """Combined OS + provider permission state, replaced whole after every check."""

    runtime_granted: bool = False
    provider_authorized: bool = False
    provider_available: bool = False
    runtime_statuses: Mapping[Capability, PermissionStatus] = field(default_factory=dict)
    # Description of the provider failure behind an unavailable or unauthorized state.
    provider_error: str = ""

    @property
    def granted(self) -> bool:
        return self.runtime_granted and self.provider_authorized and self.provider_available

    def to_dict(self) -> dict[str, Any]:
        return {
            "runtime_granted": self.runtime_granted,
            "provider_authorized": self.provider_authorized,
            "provider_available": self.provider_available,
            "runtime_statuses": {c.value: s.value for c, s in self.runtime_statuses.items()},
            "provider_error": self.provider_error,
        }


# ---------------------------------------------------------------------------
# Scan windows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanWindow:
    """A look-back range ending at "now"."""

    label: str
    span: timedelta

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        return now - self.span, now


# Widening order matters: the first window with data wins.
DEFAULT_SCAN_WINDOWS: tuple[ScanWindow, ...] = (
    ScanWindow("24 hours", timedelta(hours=24)),
    ScanWindow("3 days", timedelta(days=3)),
    ScanWindow("7 days", timedelta(days=7)),
    ScanWindow("30 days", timedelta(days=30)),
)


@dataclass
class WindowAttempt:
    """What one window query returned, kept for diagnostics."""

    label: str
    start: datetime
    end: datetime
    point_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "point_count": self.point_count,
            "error": self.error,
        }


@dataclass
class ScanOutcome:
    """Full trace of one scan: winning readings plus every window tried."""

    readings: list[Reading] = field(default_factory=list)
    attempts: list[WindowAttempt] = field(default_factory=list)
    winning_window: str | None = None
    permission_error: str | None = None

    @property
    def aborted(self) -> bool:
        return self.permission_error is not None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Failure:
    reason: FailureReason
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"reason": self.reason.value, "detail": self.detail}


@dataclass(frozen=True)
class SnapshotResult:
    """Either a meaningful snapshot or a typed failure, never both."""

    snapshot: HealthSnapshot | None = None
    failure: Failure | None = None

    def __post_init__(self) -> None:
        if (self.snapshot is None) == (self.failure is None):
            raise ValueError("SnapshotResult needs exactly one of snapshot or failure")

    @classmethod
    def success(cls, snapshot: HealthSnapshot) -> SnapshotResult:
        return cls(snapshot=snapshot)

    @classmethod
    def fail(cls, reason: FailureReason, detail: str = "") -> SnapshotResult:
        return cls(failure=Failure(reason, detail))

    @property
    def ok(self) -> bool:
        return self.snapshot is not None

    def to_dict(self) -> dict[str, Any]:
        if self.snapshot is not None:
            return {"status": "ok", "snapshot": self.snapshot.to_dict()}
        else:
            return {"status": "failure", "failure": self.failure.to_dict()}


@dataclass
class DiagnosticReport:
    """Best-effort introspection of the whole pipeline; built fresh per run."""

    permission_state: PermissionState | None = None
    windows_tried: list[WindowAttempt] = field(default_factory=list)
    breakdown_by_metric: dict[MetricKind, int] = field(default_factory=dict)
    snapshot: HealthSnapshot | None = None
    errors: list[str] = field(default_factory=list)
    success: bool = False
    data_found_in: str | None = None

    @property
    def points_found(self) -> int:
        return sum(self.breakdown_by_metric.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "permission_state": self.permission_state.to_dict() if self.permission_state else None,
            "windows_tried": [w.to_dict() for w in self.windows_tried],
            "breakdown_by_metric": {k.value: v for k, v in self.breakdown_by_metric.items()},
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "data_found_in": self.data_found_in,
            "errors": list(self.errors),
            "success": self.success,
        }


def count_by_metric(readings: Iterable[Reading]) -> dict[MetricKind, int]:
    """Number of readings per metric kind, in first-seen order."""
    counts: dict[MetricKind, int] = {}
    for reading in readings:
        counts[reading.metric_kind] = counts.get(reading.metric_kind, 0) + 1
    return counts
