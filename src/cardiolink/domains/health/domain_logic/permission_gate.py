"""Permission gate — combined OS runtime + provider authorization state."""

from __future__ import annotations

import logging
from collections.abc import Callable, Set
from datetime import datetime, timedelta

from cardiolink.domains.health.connectors import HealthDataSource, RuntimePermissions
from cardiolink.domains.health.domain_logic.error_classifier import (
    describe_error,
    is_permission_error,
    is_unavailable_error,
)
from cardiolink.domains.health.domain_logic.models import (
    ALL_METRIC_KINDS,
    Capability,
    MetricKind,
    PermissionState,
    PermissionStatus,
)

logger = logging.getLogger(__name__)

_VERIFY_LOOKBACK = timedelta(days=1)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class PermissionGate:
    """Computes a fresh PermissionState on every call; nothing is cached.

    Provider availability has no direct query. Requesting authorization and
    getting any answer back means the provider is installed; an exception
    from that call means it is not.

    Usage::

        gate = PermissionGate(source, runtime_permissions)
        state = await gate.check_all()
        if not state.granted:
            state = await gate.request_all()
    """

    def __init__(
        self,
        source: HealthDataSource,
        runtime: RuntimePermissions,
        *,
        kinds: Set[MetricKind] = ALL_METRIC_KINDS,
        capabilities: tuple[Capability, ...] = tuple(Capability),
        verify_access: bool = True,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._source = source
        self._runtime = runtime
        self._kinds = frozenset(kinds)
        self._capabilities = capabilities
        self._verify_access = verify_access
        self._clock = clock
        self.last_error: str = ""

    async def check_all(self) -> PermissionState:
        """Query every runtime capability and the provider, return the combined state."""
        self.last_error = ""
        statuses: dict[Capability, PermissionStatus] = {}
        for capability in self._capabilities:
            try:
                statuses[capability] = await self._runtime.status(capability)
            except Exception as exc:
                logger.warning("Runtime permission check for %s failed: %s", capability.value, exc)
                statuses[capability] = PermissionStatus.DENIED
            logger.debug("Runtime permission %s: %s", capability.value, statuses[capability].value)

        runtime_granted = all(s.is_granted for s in statuses.values())
        available, authorized = await self._probe_provider()
        if available and authorized and self._verify_access:
            authorized = await self._verify_data_access()

        state = PermissionState(
            runtime_granted=runtime_granted,
            provider_authorized=authorized,
            provider_available=available,
            runtime_statuses=statuses,
            provider_error=self.last_error,
        )
        logger.info(
            "Permission state: runtime=%s provider_available=%s provider_authorized=%s",
            state.runtime_granted, state.provider_available, state.provider_authorized,
        )
        return state

    async def request_all(self) -> PermissionState:
        """Prompt for each missing runtime permission, then the provider, then re-check."""
        for capability in self._capabilities:
            try:
                current = await self._runtime.status(capability)
                if current.is_granted:
                    continue
                result = await self._runtime.request(capability)
                logger.info("Requested %s permission: %s", capability.value, result.value)
            except Exception as exc:
                logger.warning("Requesting %s permission failed: %s", capability.value, exc)

        # check_all() prompts the provider as part of probing availability.
        return await self.check_all()

    async def _probe_provider(self) -> tuple[bool, bool]:
        """Return (available, authorized) from one authorization request."""
        try:
            authorized = bool(await self._source.request_authorization(self._kinds))
        except Exception as exc:
            self.last_error = describe_error(exc)
            if is_unavailable_error(exc):
                logger.info("Health provider not installed: %s", self.last_error)
            else:
                logger.warning(
                    "Health provider authorization failed, treating as unavailable: %s",
                    self.last_error,
                )
            return False, False
        if not authorized:
            self.last_error = "authorization request was declined"
        return True, authorized

    async def _verify_data_access(self) -> bool:
        """One-day read to catch revoked grants; other errors don't count against access."""
        now = self._clock()
        try:
            points = await self._source.query_readings(self._kinds, now - _VERIFY_LOOKBACK, now)
        except Exception as exc:
            if is_permission_error(exc):
                self.last_error = describe_error(exc)
                logger.warning("Provider access verification refused: %s", self.last_error)
                return False
            logger.info("Provider access verification failed without a permission error: %s", exc)
            return True
        logger.debug("Provider access verified (%d data points)", len(points))
        return True
