"""Tests for the MetricReconciler — per-metric reduction rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cardiolink.domains.health.domain_logic.metric_reconciler import (
    MetricReconciler,
    start_of_day,
)
from cardiolink.domains.health.domain_logic.models import HealthSnapshot, MetricKind


@pytest.fixture
def reconciler(clock) -> MetricReconciler:
    return MetricReconciler(clock=clock)


class TestLatestNonZero:
    def test_latest_heart_rate_wins(self, reconciler, reading, now):
        readings = [
            reading(MetricKind.HEART_RATE, 64, now - timedelta(hours=3)),
            reading(MetricKind.HEART_RATE, 71, now - timedelta(minutes=5)),
            reading(MetricKind.HEART_RATE, 68, now - timedelta(hours=1)),
        ]
        snapshot = reconciler.reconcile(readings)
        assert snapshot[MetricKind.HEART_RATE].value == 71
        assert snapshot[MetricKind.HEART_RATE].observed_at == now - timedelta(minutes=5)

    def test_zero_discarded_even_when_later(self, reconciler, reading, now):
        t0 = now - timedelta(hours=2)
        t1 = now - timedelta(minutes=10)
        readings = [
            reading(MetricKind.HEART_RATE, 72, t0),
            reading(MetricKind.HEART_RATE, 0, t1),
        ]
        snapshot = reconciler.reconcile(readings)
        assert snapshot[MetricKind.HEART_RATE].value == 72
        assert snapshot[MetricKind.HEART_RATE].observed_at == t0

    @pytest.mark.parametrize(
        "kind", [MetricKind.HEART_RATE, MetricKind.BLOOD_OXYGEN, MetricKind.SLEEP_DURATION]
    )
    def test_all_zero_yields_null(self, reconciler, reading, now, kind):
        readings = [
            reading(kind, 0, now - timedelta(hours=1)),
            reading(kind, 0, now - timedelta(hours=2)),
        ]
        snapshot = reconciler.reconcile(readings)
        assert snapshot[kind].value is None
        assert snapshot[kind].observed_at is None

    def test_latest_not_limited_to_today(self, reconciler, reading, now):
        last_week = now - timedelta(days=5)
        snapshot = reconciler.reconcile([reading(MetricKind.BLOOD_OXYGEN, 97, last_week)])
        assert snapshot[MetricKind.BLOOD_OXYGEN].value == 97
        assert snapshot[MetricKind.BLOOD_OXYGEN].observed_at == last_week

    def test_tie_keeps_input_order(self, reconciler, reading, now):
        at = now - timedelta(hours=1)
        readings = [
            reading(MetricKind.HEART_RATE, 60, at),
            reading(MetricKind.HEART_RATE, 80, at),
        ]
        assert reconciler.reconcile(readings)[MetricKind.HEART_RATE].value == 60
        assert reconciler.reconcile(list(reversed(readings)))[MetricKind.HEART_RATE].value == 80


class TestDailySum:
    def test_steps_exclude_yesterday(self, reconciler, reading, now):
        midnight = start_of_day(now)
        readings = [
            reading(MetricKind.STEPS, 500, midnight + timedelta(hours=8)),
            reading(MetricKind.STEPS, 300, midnight + timedelta(hours=13)),
            reading(MetricKind.STEPS, 200, midnight - timedelta(hours=6)),
        ]
        snapshot = reconciler.reconcile(readings)
        assert snapshot[MetricKind.STEPS].value == 800
        assert snapshot[MetricKind.STEPS].observed_at == midnight + timedelta(hours=13)

    def test_only_yesterday_yields_null(self, reconciler, reading, now):
        yesterday = start_of_day(now) - timedelta(hours=2)
        snapshot = reconciler.reconcile([reading(MetricKind.ACTIVE_ENERGY, 250, yesterday)])
        assert snapshot[MetricKind.ACTIVE_ENERGY].value is None
        assert snapshot[MetricKind.ACTIVE_ENERGY].observed_at is None

    def test_zero_sum_yields_null_not_zero(self, reconciler, reading, now):
        readings = [
            reading(MetricKind.DISTANCE, 0, now - timedelta(hours=1)),
            reading(MetricKind.DISTANCE, 0, now - timedelta(hours=2)),
        ]
        assert reconciler.reconcile(readings)[MetricKind.DISTANCE].value is None

    def test_reading_at_midnight_counts(self, reconciler, reading, now):
        midnight = start_of_day(now)
        snapshot = reconciler.reconcile([reading(MetricKind.STEPS, 40, midnight)])
        assert snapshot[MetricKind.STEPS].value == 40

    def test_future_reading_excluded(self, reconciler, reading, now):
        snapshot = reconciler.reconcile([
            reading(MetricKind.STEPS, 100, now - timedelta(minutes=1)),
            reading(MetricKind.STEPS, 999, now + timedelta(minutes=30)),
        ])
        assert snapshot[MetricKind.STEPS].value == 100

    def test_explicit_now_overrides_clock(self, reconciler, reading, now):
        tomorrow = now + timedelta(days=1)
        snapshot = reconciler.reconcile(
            [reading(MetricKind.STEPS, 100, now)], now=tomorrow
        )
        assert snapshot[MetricKind.STEPS].value is None

    def test_day_boundary_uses_clock_timezone(self, reading):
        tz = timezone(timedelta(hours=-5))
        local_now = datetime(2026, 3, 10, 10, 0, tzinfo=tz)
        reconciler = MetricReconciler(clock=lambda: local_now)
        # 03:00 UTC on the 10th is 22:00 on the 9th in UTC-5: yesterday.
        late_yesterday = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)
        this_morning = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        snapshot = reconciler.reconcile([
            reading(MetricKind.STEPS, 700, late_yesterday),
            reading(MetricKind.STEPS, 1500, this_morning),
        ])
        assert snapshot[MetricKind.STEPS].value == 1500


class TestWorkout:
    def test_latest_workout_with_payload(self, reconciler, reading, now):
        readings = [
            reading(MetricKind.WORKOUT, 45, now - timedelta(days=2), payload="cycling"),
            reading(MetricKind.WORKOUT, 30, now - timedelta(hours=4), payload="running"),
        ]
        workout = reconciler.reconcile(readings)[MetricKind.WORKOUT]
        assert workout.value == 30
        assert workout.detail == "running"
        assert workout.observed_at == now - timedelta(hours=4)


class TestSnapshotShape:
    def test_empty_readings_give_all_null(self, reconciler):
        snapshot = reconciler.reconcile([])
        assert len(snapshot) == len(MetricKind)
        assert snapshot.present() == []
        assert snapshot == HealthSnapshot.empty()

    def test_every_entry_pairs_value_with_timestamp(self, reconciler, reading, now):
        readings = [
            reading(MetricKind.HEART_RATE, 0, now - timedelta(hours=1)),
            reading(MetricKind.STEPS, 1200, now - timedelta(hours=1)),
            reading(MetricKind.SLEEP_DURATION, 6.5, now - timedelta(hours=14)),
            reading(MetricKind.DISTANCE, 0, now - timedelta(hours=2)),
        ]
        for entry in reconciler.reconcile(readings):
            assert (entry.value is None) == (entry.observed_at is None)

    def test_default_unit_when_reading_has_none(self, reconciler, reading, now):
        snapshot = reconciler.reconcile([reading(MetricKind.STEPS, 10, now)])
        assert snapshot[MetricKind.STEPS].unit == "count"
