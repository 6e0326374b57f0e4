"""Decides whether a reconciled snapshot is meaningful, and why not if it isn't.

This is the single place that turns "no usable data" into a FailureReason.
It reads PermissionState, never the error text of the data query, because
the state may have been refreshed after the query ran.
"""

from __future__ import annotations

import logging

from cardiolink.domains.health.domain_logic.models import (
    FailureReason,
    HealthSnapshot,
    PermissionState,
    SnapshotResult,
)

logger = logging.getLogger(__name__)


class DataAvailabilityClassifier:
    """Absent -> permission/provider/no-data reason; all zero -> DataAllZero; else success."""

    def classify(self, snapshot: HealthSnapshot, permission_state: PermissionState) -> SnapshotResult:
        present = snapshot.present()

        if not present:
            reason = self._absent_reason(permission_state)
            logger.info("Snapshot has no values: %s", reason.value)
            return SnapshotResult.fail(reason)

        # Only when *every* present value is zero; a mix of zeros and nulls
        # with one real value is still success.
        if all(entry.value == 0 for entry in present):
            logger.info("Snapshot has %d values, all zero", len(present))
            return SnapshotResult.fail(FailureReason.DATA_ALL_ZERO)

        logger.debug("Snapshot is meaningful (%d metrics present)", len(present))
        return SnapshotResult.success(snapshot)

    def gate_failure(self, permission_state: PermissionState) -> SnapshotResult:
        """Failure for a fetch stopped before scanning because the gate is closed."""
        if not permission_state.provider_available:
            return SnapshotResult.fail(FailureReason.PROVIDER_UNAVAILABLE)
        return SnapshotResult.fail(FailureReason.PERMISSIONS_NOT_GRANTED)

    @staticmethod
    def _absent_reason(permission_state: PermissionState) -> FailureReason:
        if not permission_state.provider_available:
            return FailureReason.PROVIDER_UNAVAILABLE
        if not permission_state.provider_authorized:
            return FailureReason.PERMISSIONS_NOT_GRANTED
        return FailureReason.NO_DATA_IN_RANGE
