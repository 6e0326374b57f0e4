"""Apple Health data source — reads from exported Health data XML.

Users export via iOS Health app → Share → Export Health Data → produces
export.xml. This source parses that XML once and answers window queries
from the parsed readings.
"""

from __future__ import annotations

import logging
from collections.abc import Set
from datetime import datetime
from pathlib import Path

from cardiolink.domains.health.connectors import ProviderError, ProviderUnavailableError
from cardiolink.domains.health.connectors.apple_health_parser import (
    AppleHealthParseError,
    parse_apple_health_export,
)
from cardiolink.domains.health.domain_logic.models import MetricKind, Reading

logger = logging.getLogger(__name__)


class AppleHealthDataSource:
    """HealthDataSource backed by an Apple Health XML export.

    An export that exists is treated as an authorized provider; a missing
    export is an unavailable one.

    Usage::

        source = AppleHealthDataSource("/path/to/export.xml")
        if await source.request_authorization({MetricKind.STEPS}):
            readings = await source.query_readings({MetricKind.STEPS}, start, end)
    """

    def __init__(self, export_path: str) -> None:
        self._export_path = export_path
        self._readings: list[Reading] | None = None

    def _available(self) -> bool:
        return bool(self._export_path) and Path(self._export_path).exists()

    async def request_authorization(self, kinds: Set[MetricKind]) -> bool:
        if not self._available():
            raise ProviderUnavailableError(
                f"Apple Health export not found: {self._export_path or '(not configured)'}"
            )
        return True

    async def query_readings(
        self,
        kinds: Set[MetricKind],
        start: datetime,
        end: datetime,
    ) -> list[Reading]:
        readings = self._load()
        return [
            r for r in readings
            if r.metric_kind in kinds and start <= r.observed_at <= end
        ]

    @property
    def data_source(self) -> str:
        return "apple_health"

    def _load(self) -> list[Reading]:
        """Parse the export on first use and keep the result."""
        if self._readings is None:
            if not self._available():
                raise ProviderUnavailableError(f"Apple Health export not found: {self._export_path}")
            try:
                self._readings = parse_apple_health_export(self._export_path)
            except AppleHealthParseError as exc:
                logger.exception("Failed to parse Apple Health export")
                raise ProviderError(str(exc)) from exc
        return self._readings
