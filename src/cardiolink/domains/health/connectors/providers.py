"""Concrete HealthDataSource and RuntimePermissions implementations."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Set
from datetime import datetime

from cardiolink.domains.health.connectors.mock_data import get_mock_readings
from cardiolink.domains.health.domain_logic.models import (
    Capability,
    MetricKind,
    PermissionStatus,
    Reading,
)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class MockHealthDataSource:
    """Serves a generated day of readings. Always available and authorized."""

    def __init__(self, clock: Callable[[], datetime] = _local_now) -> None:
        self._clock = clock

    async def query_readings(
        self,
        kinds: Set[MetricKind],
        start: datetime,
        end: datetime,
    ) -> list[Reading]:
        return [
            r for r in get_mock_readings(self._clock())
            if r.metric_kind in kinds and start <= r.observed_at <= end
        ]

    async def request_authorization(self, kinds: Set[MetricKind]) -> bool:
        return True

    @property
    def data_source(self) -> str:
        return "mock"


class StaticRuntimePermissions:
    """In-memory runtime permission table.

    Server deployments have no OS permission prompts; this stands in for
    them. ``request()`` grants a capability unless it is permanently denied.
    """

    def __init__(
        self,
        statuses: Mapping[Capability, PermissionStatus] | None = None,
        *,
        default: PermissionStatus = PermissionStatus.GRANTED,
    ) -> None:
        self._statuses = {c: default for c in Capability}
        self._statuses.update(statuses or {})
        self.requested: list[Capability] = []

    async def status(self, capability: Capability) -> PermissionStatus:
        return self._statuses[capability]

    async def request(self, capability: Capability) -> PermissionStatus:
        self.requested.append(capability)
        if self._statuses[capability] is not PermissionStatus.PERMANENTLY_DENIED:
            self._statuses[capability] = PermissionStatus.GRANTED
        return self._statuses[capability]
