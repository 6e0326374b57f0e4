"""Health data service — the fetch path exposed to the UI layer.

Wires PermissionGate -> TimeWindowScanner -> MetricReconciler ->
DataAvailabilityClassifier, and runs the DiagnosticRunner automatically when
a fetch ends with no usable data or initialization fails. One instance is
built by the application factory and reused across calls; it is not a
process-wide singleton.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from cardiolink.domains.health.connectors import HealthDataSource
from cardiolink.domains.health.domain_logic.availability_classifier import (
    DataAvailabilityClassifier,
)
from cardiolink.domains.health.domain_logic.diagnostic_runner import DiagnosticRunner, log_report
from cardiolink.domains.health.domain_logic.error_classifier import describe_error
from cardiolink.domains.health.domain_logic.messages import user_message
from cardiolink.domains.health.domain_logic.metric_reconciler import MetricReconciler
from cardiolink.domains.health.domain_logic.models import (
    ALL_METRIC_KINDS,
    DiagnosticReport,
    Failure,
    FailureReason,
    MetricKind,
    PermissionState,
    SnapshotResult,
)
from cardiolink.domains.health.domain_logic.permission_gate import PermissionGate
from cardiolink.domains.health.domain_logic.time_window_scanner import (
    PermissionsRevokedError,
    TimeWindowScanner,
)

logger = logging.getLogger(__name__)

# Outcomes that mean "nothing usable came back" and warrant a diagnostic pass.
_DIAGNOSE_ON = frozenset({
    FailureReason.NO_DATA_IN_RANGE,
    FailureReason.DATA_ALL_ZERO,
    FailureReason.UNKNOWN,
})


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _with_cause(message: str, state: PermissionState) -> str:
    return f"{message}: {state.provider_error}" if state.provider_error else message


class HealthDataService:
    """Fetches, reconciles and classifies health data for one user session.

    Usage::

        service = HealthDataService.build(source, runtime_permissions)
        result = await service.get_snapshot()
        if result.ok:
            heart_rate = result.snapshot[MetricKind.HEART_RATE].value
        else:
            print(service.user_message())
    """

    def __init__(
        self,
        source: HealthDataSource,
        gate: PermissionGate,
        scanner: TimeWindowScanner,
        reconciler: MetricReconciler,
        classifier: DataAvailabilityClassifier,
        diagnostics: DiagnosticRunner,
        *,
        auto_diagnostics: bool = True,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._source = source
        self._gate = gate
        self._scanner = scanner
        self._reconciler = reconciler
        self._classifier = classifier
        self._diagnostics = diagnostics
        self._auto_diagnostics = auto_diagnostics
        self._clock = clock

        self._initialized = False
        self._last_error = ""
        self._permission_state = PermissionState()
        self._last_failure: Failure | None = None
        self._last_diagnostic: DiagnosticReport | None = None

    @classmethod
    def build(cls, source, runtime, *, auto_diagnostics: bool = True, clock=_local_now) -> HealthDataService:
        """Assemble the default pipeline around one source and permission API."""
        gate = PermissionGate(source, runtime, clock=clock)
        scanner = TimeWindowScanner(source, clock=clock)
        reconciler = MetricReconciler(clock=clock)
        return cls(
            source,
            gate,
            scanner,
            reconciler,
            DataAvailabilityClassifier(),
            DiagnosticRunner(gate, scanner, reconciler),
            auto_diagnostics=auto_diagnostics,
            clock=clock,
        )

    # ---------------------------------------------------------------
    # State
    # ---------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def permission_state(self) -> PermissionState:
        return self._permission_state

    @property
    def last_failure(self) -> Failure | None:
        return self._last_failure

    @property
    def last_diagnostic(self) -> DiagnosticReport | None:
        return self._last_diagnostic

    @property
    def data_source(self) -> str:
        return self._source.data_source

    def reset(self) -> None:
        self._initialized = False
        self._last_error = ""
        self._permission_state = PermissionState()
        self._last_failure = None
        logger.debug("Health service reset")

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------

    async def initialize(self) -> None:
        """Request permissions and probe the provider once. Safe to call repeatedly."""
        if self._initialized:
            return
        logger.info("Initializing health data service (%s)", self.data_source)
        try:
            self._permission_state = await self._gate.request_all()
            state = self._permission_state
            if not state.provider_available:
                self._last_error = _with_cause("Health provider is not available on this device", state)
            elif not state.provider_authorized:
                self._last_error = _with_cause("Health provider permissions not granted", state)
            else:
                await self._probe_recent_data()
                self._last_error = ""
        except Exception as exc:
            self._last_error = f"Failed to initialize health service: {describe_error(exc)}"
            logger.error(self._last_error)
            self._initialized = True
            await self._run_automatic_diagnostic("initialization failure")
            return

        self._initialized = True
        if self._last_error:
            logger.warning("Health service initialized with problems: %s", self._last_error)
        else:
            logger.info("Health service initialized successfully")

    async def request_permissions(self) -> PermissionState:
        """Forget current state, prompt for everything again, re-initialize."""
        logger.info("Re-requesting all health permissions")
        self.reset()
        await self.initialize()
        self._permission_state = await self._gate.check_all()
        return self._permission_state

    # ---------------------------------------------------------------
    # Fetch
    # ---------------------------------------------------------------

    async def get_snapshot(self) -> SnapshotResult:
        """Fetch the current HealthSnapshot or a typed failure. Never raises."""
        try:
            result = await self._fetch()
        except Exception as exc:
            self._last_error = f"Error getting health data: {describe_error(exc)}"
            logger.exception("Health snapshot fetch failed")
            result = SnapshotResult.fail(FailureReason.UNKNOWN, self._last_error)

        self._last_failure = result.failure
        if result.failure is not None:
            logger.info("Health snapshot unavailable: %s", result.failure.reason.value)
            if result.failure.reason in _DIAGNOSE_ON:
                await self._run_automatic_diagnostic(result.failure.reason.value)
        return result

    async def _fetch(self) -> SnapshotResult:
        await self.initialize()

        state = await self._gate.check_all()
        self._permission_state = state
        if not state.granted:
            self._last_error = "Permissions are not valid. Please re-grant permissions."
            logger.warning("Permission gate closed: %s", state.to_dict())
            return self._classifier.gate_failure(state)

        try:
            readings = await self._scanner.scan(ALL_METRIC_KINDS)
        except PermissionsRevokedError as exc:
            self._last_error = str(exc)
            return SnapshotResult.fail(FailureReason.PERMISSIONS_REVOKED, exc.detail)

        snapshot = self._reconciler.reconcile(readings)
        return self._classifier.classify(snapshot, state)

    async def get_diagnostic_report(self) -> DiagnosticReport:
        report = await self._diagnostics.run()
        self._last_diagnostic = report
        return report

    async def has_any_data(self) -> bool:
        """One 7-day query across every metric kind."""
        await self.initialize()
        now = self._clock()
        try:
            readings = await self._source.query_readings(ALL_METRIC_KINDS, now - timedelta(days=7), now)
        except Exception as exc:
            logger.info("Error checking for health data: %s", exc)
            return False
        logger.debug("Checking for any health data - found %d data points", len(readings))
        return bool(readings)

    async def is_available(self) -> bool:
        await self.initialize()
        return self._initialized and not self._last_error and self._permission_state.provider_available

    def user_message(self) -> str:
        """Guidance text for the most recent failed fetch."""
        return user_message(self._last_failure)

    # ---------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------

    async def _probe_recent_data(self) -> None:
        now = self._clock()
        try:
            points = await self._source.query_readings(
                frozenset({MetricKind.HEART_RATE}), now - timedelta(hours=1), now
            )
            logger.debug("Test data access successful - %d data points", len(points))
        except Exception as exc:
            # Probe failures never block initialization.
            logger.info("Test data access failed: %s", exc)

    async def _run_automatic_diagnostic(self, reason: str) -> None:
        if not self._auto_diagnostics:
            return
        report = await self.get_diagnostic_report()
        log_report(report, reason=reason)
