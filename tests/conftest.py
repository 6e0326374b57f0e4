"""Shared test fixtures for CardioLink health tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEALTH_SOURCE", "mock")
    monkeypatch.setenv("APPLE_HEALTH_EXPORT_PATH", "")
    monkeypatch.setenv("AUTO_DIAGNOSTICS", "true")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from cardiolink.domains.health.connectors.providers import StaticRuntimePermissions  # noqa: E402
from cardiolink.domains.health.domain_logic.models import (  # noqa: E402
    MetricKind,
    Reading,
)

# Mid-afternoon, so "today" and "yesterday" are unambiguous.
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def make_reading(
    kind: MetricKind,
    value: float,
    at: datetime,
    unit: str = "",
    payload: str | None = None,
) -> Reading:
    """Create a test reading with a one-minute recorded interval."""
    return Reading(
        metric_kind=kind,
        value=value,
        unit=unit,
        observed_at=at,
        recorded_interval=(at, at + timedelta(minutes=1)),
        payload=payload,
        source="test",
    )


# ---------------------------------------------------------------------------
# Scripted provider
# ---------------------------------------------------------------------------

class ScriptedHealthDataSource:
    """HealthDataSource fake that answers queries from a script.

    ``responses`` is consumed one entry per query: a list of readings is
    returned, an exception instance is raised. Once exhausted, ``default``
    is returned. Every query is recorded in ``calls``.
    """

    def __init__(
        self,
        responses: list | None = None,
        *,
        default: list[Reading] | None = None,
        authorized: bool = True,
        authorization_error: Exception | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._default = default or []
        self._authorized = authorized
        self._authorization_error = authorization_error
        self.calls: list[tuple[frozenset, datetime, datetime]] = []
        self.authorization_requests = 0

    async def query_readings(self, kinds, start, end):
        self.calls.append((frozenset(kinds), start, end))
        if self._responses:
            response = self._responses.pop(0)
        else:
            response = self._default
        if isinstance(response, BaseException):
            raise response
        return list(response)

    async def request_authorization(self, kinds):
        self.authorization_requests += 1
        if self._authorization_error is not None:
            raise self._authorization_error
        return self._authorized

    @property
    def data_source(self) -> str:
        return "scripted"


@pytest.fixture
def runtime_permissions() -> StaticRuntimePermissions:
    """Runtime permissions with every capability granted."""
    return StaticRuntimePermissions()


@pytest.fixture
def now() -> datetime:
    """The fixed 'now' used by every clock in these tests."""
    return NOW


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def reading():
    """Factory for test readings: ``reading(MetricKind.STEPS, 500, at)``."""
    return make_reading


@pytest.fixture
def scripted_source():
    """Factory for ScriptedHealthDataSource instances."""
    return ScriptedHealthDataSource
