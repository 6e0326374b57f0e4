"""Tests for the DataAvailabilityClassifier."""

from __future__ import annotations

import pytest

from cardiolink.domains.health.domain_logic.availability_classifier import (
    DataAvailabilityClassifier,
)
from cardiolink.domains.health.domain_logic.models import (
    FailureReason,
    HealthSnapshot,
    MetricKind,
    MetricSnapshot,
    PermissionState,
)

GRANTED = PermissionState(runtime_granted=True, provider_authorized=True, provider_available=True)


def _snapshot(now, **values) -> HealthSnapshot:
    entries = {
        MetricKind(name): MetricSnapshot(MetricKind(name), value=value, observed_at=now)
        for name, value in values.items()
    }
    return HealthSnapshot(entries)


@pytest.fixture
def classifier() -> DataAvailabilityClassifier:
    return DataAvailabilityClassifier()


class TestAbsentData:
    @pytest.mark.parametrize("runtime", [True, False])
    @pytest.mark.parametrize("authorized", [True, False])
    def test_provider_unavailable_wins(self, classifier, runtime, authorized):
        state = PermissionState(
            runtime_granted=runtime, provider_authorized=authorized, provider_available=False
        )
        result = classifier.classify(HealthSnapshot.empty(), state)
        assert result.failure.reason is FailureReason.PROVIDER_UNAVAILABLE

    def test_not_authorized(self, classifier):
        state = PermissionState(runtime_granted=True, provider_authorized=False, provider_available=True)
        result = classifier.classify(HealthSnapshot.empty(), state)
        assert result.failure.reason is FailureReason.PERMISSIONS_NOT_GRANTED

    def test_no_data_in_range(self, classifier):
        result = classifier.classify(HealthSnapshot.empty(), GRANTED)
        assert not result.ok
        assert result.failure.reason is FailureReason.NO_DATA_IN_RANGE


class TestDegenerateData:
    def test_single_zero_heart_rate_is_all_zero(self, classifier, now):
        result = classifier.classify(_snapshot(now, heart_rate=0), GRANTED)
        assert result.failure.reason is FailureReason.DATA_ALL_ZERO

    def test_several_zeros_are_all_zero(self, classifier, now):
        result = classifier.classify(_snapshot(now, heart_rate=0, workout=0.0), GRANTED)
        assert result.failure.reason is FailureReason.DATA_ALL_ZERO

    def test_any_nonzero_is_success(self, classifier, now):
        snapshot = _snapshot(now, heart_rate=0, steps=1200)
        result = classifier.classify(snapshot, GRANTED)
        assert result.ok
        assert result.snapshot is snapshot


class TestSuccess:
    def test_partial_coverage_tolerated(self, classifier, now):
        snapshot = _snapshot(now, blood_oxygen=97)
        result = classifier.classify(snapshot, GRANTED)
        assert result.ok
        assert result.snapshot[MetricKind.HEART_RATE].value is None

    def test_success_ignores_permission_state(self, classifier, now):
        # Data already in hand is returned even if the state says otherwise.
        result = classifier.classify(_snapshot(now, steps=10), PermissionState())
        assert result.ok


class TestGateFailure:
    def test_unavailable_provider(self, classifier):
        result = classifier.gate_failure(PermissionState(runtime_granted=True))
        assert result.failure.reason is FailureReason.PROVIDER_UNAVAILABLE

    def test_runtime_denied(self, classifier):
        state = PermissionState(runtime_granted=False, provider_authorized=True, provider_available=True)
        assert classifier.gate_failure(state).failure.reason is FailureReason.PERMISSIONS_NOT_GRANTED
