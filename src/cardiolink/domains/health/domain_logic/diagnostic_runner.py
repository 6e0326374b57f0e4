"""On-demand pipeline diagnostic.

Re-runs the permission check, the window scan and reconciliation, recording
what each step observed. Every exception becomes an entry in
``report.errors``; ``run()`` always returns a report.
"""

from __future__ import annotations

import logging

from cardiolink.domains.health.domain_logic.error_classifier import describe_error
from cardiolink.domains.health.domain_logic.metric_reconciler import MetricReconciler
from cardiolink.domains.health.domain_logic.models import (
    ALL_METRIC_KINDS,
    DiagnosticReport,
    PermissionState,
    count_by_metric,
)
from cardiolink.domains.health.domain_logic.permission_gate import PermissionGate
from cardiolink.domains.health.domain_logic.time_window_scanner import TimeWindowScanner

logger = logging.getLogger(__name__)


class DiagnosticRunner:
    """Read-only introspection pass over gate -> scanner -> reconciler.

    Usage::

        runner = DiagnosticRunner(gate, scanner, reconciler)
        report = await runner.run()
        if not report.success:
            print(report.errors)
    """

    def __init__(
        self,
        gate: PermissionGate,
        scanner: TimeWindowScanner,
        reconciler: MetricReconciler,
    ) -> None:
        self._gate = gate
        self._scanner = scanner
        self._reconciler = reconciler

    async def run(self) -> DiagnosticReport:
        report = DiagnosticReport()
        try:
            await self._run_steps(report)
        except Exception as exc:  # pragma: no cover - steps guard themselves
            report.errors.append(f"Error during diagnostic: {describe_error(exc)}")
        report.success = self._succeeded(report)
        return report

    async def _run_steps(self, report: DiagnosticReport) -> None:
        # 1. Permissions and provider availability
        logger.debug("Diagnostic step 1: checking permissions")
        try:
            report.permission_state = await self._gate.check_all()
        except Exception as exc:
            report.errors.append(f"Permission check failed: {describe_error(exc)}")
        else:
            report.errors.extend(_permission_errors(report.permission_state))

        # 2. Data across every window, keeping per-window counts
        logger.debug("Diagnostic step 2: scanning time windows")
        try:
            outcome = await self._scanner.trace(ALL_METRIC_KINDS)
        except Exception as exc:
            report.errors.append(f"Time window scan failed: {describe_error(exc)}")
            return

        report.windows_tried = outcome.attempts
        for attempt in outcome.attempts:
            if attempt.error:
                report.errors.append(f"Error checking {attempt.label} range: {attempt.error}")
        if outcome.aborted:
            report.errors.append("Scan stopped early: provider permissions appear to be revoked")
        if not outcome.readings:
            report.errors.append("No health data found in any time range")
            return

        report.data_found_in = outcome.winning_window
        report.breakdown_by_metric = count_by_metric(outcome.readings)

        # 3. Reconciliation of whatever was found
        logger.debug("Diagnostic step 3: reconciling %d data points", len(outcome.readings))
        try:
            report.snapshot = self._reconciler.reconcile(outcome.readings)
        except Exception as exc:
            report.errors.append(f"Data processing failed: {describe_error(exc)}")

    @staticmethod
    def _succeeded(report: DiagnosticReport) -> bool:
        state = report.permission_state
        if state is None:
            return False
        data_available = report.points_found > 0
        permissions_verified = state.runtime_granted and state.provider_authorized
        return data_available and state.provider_available and permissions_verified


def _permission_errors(state: PermissionState) -> list[str]:
    errors = []
    cause = f": {state.provider_error}" if state.provider_error else ""
    if not state.provider_available:
        errors.append(f"Health provider is not available on this device{cause}")
    elif not state.provider_authorized:
        errors.append(f"Health provider permissions not granted{cause}")
    if not state.runtime_granted:
        missing = ", ".join(
            f"{c.value}={s.value}" for c, s in state.runtime_statuses.items() if not s.is_granted
        )
        errors.append(f"Some runtime permissions are not granted ({missing or 'unknown'})")
    return errors


def log_report(report: DiagnosticReport, *, reason: str = "") -> None:
    """Write a diagnostic report to the log as a readable block."""
    logger.info("=== HEALTH DATA DIAGNOSTIC%s ===", f" ({reason})" if reason else "")
    state = report.permission_state
    if state is not None:
        logger.info("Provider available: %s", state.provider_available)
        logger.info("Provider authorized: %s", state.provider_authorized)
        logger.info("Runtime permissions: %s", {c.value: s.value for c, s in state.runtime_statuses.items()})
    for attempt in report.windows_tried:
        logger.info("Range %s: %d data points", attempt.label, attempt.point_count)
    if report.data_found_in:
        logger.info("Data found in %s range (%d points)", report.data_found_in, report.points_found)
    for kind, count in report.breakdown_by_metric.items():
        logger.info("  %s: %d data points", kind.value, count)
    for error in report.errors:
        logger.warning("  - %s", error)
    if report.success:
        logger.info("Health data integration is working correctly")
    else:
        logger.warning("Health data integration has issues - see errors above")
    logger.info("=== DIAGNOSTIC COMPLETE ===")
