"""Health data connectors — the provider read API and OS permission API.

The reconciliation pipeline only ever talks to these two protocols. Concrete
implementations live in sibling modules (Apple Health export, mock data).
"""

from __future__ import annotations

from collections.abc import Set
from datetime import datetime
from typing import Protocol, runtime_checkable

from cardiolink.domains.health.domain_logic.models import (
    Capability,
    MetricKind,
    PermissionStatus,
    Reading,
)


class ProviderError(Exception):
    """A provider query failed for a transient or unclassified reason."""


class ProviderPermissionError(ProviderError):
    """The provider refused access (not granted, revoked, unauthorized)."""


class ProviderUnavailableError(ProviderError):
    """The provider is not installed or cannot be reached at all."""


@runtime_checkable
class HealthDataSource(Protocol):
    """Read-only interface to the third-party health data provider."""

    async def query_readings(
        self,
        kinds: Set[MetricKind],
        start: datetime,
        end: datetime,
    ) -> list[Reading]:
        """Readings of the given kinds observed within [start, end]."""
        ...

    async def request_authorization(self, kinds: Set[MetricKind]) -> bool:
        """Prompt for data access; True if granted.

        Raises ``ProviderUnavailableError`` (or any exception) when the
        provider is absent; that is the only way availability is detected.
        """
        ...

    @property
    def data_source(self) -> str:
        """Label for the provider: 'apple_health', 'mock', ..."""
        ...


@runtime_checkable
class RuntimePermissions(Protocol):
    """OS-level runtime permission API, one status per capability."""

    async def status(self, capability: Capability) -> PermissionStatus:
        ...

    async def request(self, capability: Capability) -> PermissionStatus:
        ...
