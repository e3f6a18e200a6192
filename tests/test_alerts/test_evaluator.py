"""Tests for the stateless threshold evaluator."""

import pytest

from vitalwatch.alerts.config import AlertConfig
from vitalwatch.alerts.evaluator import evaluate
from vitalwatch.alerts.thresholds import DEFAULT_THRESHOLDS, Range, SimpleThreshold


@pytest.fixture
def config():
    return AlertConfig()


class TestSimpleMetrics:
    def test_heart_rate_far_above_range_is_high(self, make_reading, config):
        decision = evaluate(make_reading("heartRate", 130, "bpm"), config)

        assert decision is not None
        assert decision.severity == "high"
        assert decision.title == "Abnormal heartRate detected"
        assert decision.message == (
            "heartRate reading (130 bpm) is higher than normal range."
        )

    def test_heart_rate_slightly_above_range_is_medium(self, make_reading, config):
        decision = evaluate(make_reading("heartRate", 105, "bpm"), config)

        assert decision is not None
        assert decision.severity == "medium"
        assert "higher" in decision.message

    def test_range_bounds_are_normal(self, make_reading, config):
        assert evaluate(make_reading("heartRate", 100, "bpm"), config) is None
        assert evaluate(make_reading("heartRate", 60, "bpm"), config) is None

    def test_escalation_boundary_is_exclusive(self, make_reading, config):
        # 100 * 1.2 == 120 exactly: not past the escalation point
        decision = evaluate(make_reading("heartRate", 120, "bpm"), config)
        assert decision.severity == "medium"

    def test_low_heart_rate(self, make_reading, config):
        medium = evaluate(make_reading("heartRate", 50, "bpm"), config)
        high = evaluate(make_reading("heartRate", 40, "bpm"), config)

        assert medium.severity == "medium"
        assert "lower than normal range" in medium.message
        assert high.severity == "high"

    def test_oxygen_saturation_below_range_is_medium(self, make_reading, config):
        decision = evaluate(make_reading("oxygenSaturation", 90, "%"), config)

        assert decision is not None
        assert decision.severity == "medium"
        assert decision.message == (
            "oxygenSaturation reading (90 %) is lower than normal range."
        )

    def test_fractional_value_rendered_as_is(self, make_reading, config):
        decision = evaluate(make_reading("temperature", 38.4, "°C"), config)

        assert decision.severity == "medium"
        assert "(38.4 °C)" in decision.message

    def test_wrapped_value_is_unwrapped(self, make_reading, config):
        decision = evaluate(make_reading("bloodGlucose", {"value": 150}, "mg/dL"), config)

        assert decision is not None
        assert decision.severity == "medium"

    def test_metric_without_threshold_never_alerts(self, make_reading, config):
        assert evaluate(make_reading("steps", 500, "steps"), config) is None
        assert evaluate(make_reading("weight", 400, "kg"), config) is None

    def test_missing_value_is_skipped(self, make_reading, config):
        assert evaluate(make_reading("heartRate", None, "bpm"), config) is None


class TestBloodPressure:
    def test_hypertensive_crisis_is_critical(self, make_reading, config):
        reading = make_reading("bloodPressure", {"systolic": 165, "diastolic": 95}, "mmHg")
        decision = evaluate(reading, config)

        assert decision is not None
        assert decision.severity == "critical"
        assert decision.message == (
            "Blood pressure reading (165/95 mmHg) is higher than normal range."
        )

    def test_diastolic_alone_can_be_critical(self, make_reading, config):
        reading = make_reading("bloodPressure", {"systolic": 130, "diastolic": 105}, "mmHg")
        assert evaluate(reading, config).severity == "critical"

    def test_elevated_is_medium(self, make_reading, config):
        reading = make_reading("bloodPressure", {"systolic": 145, "diastolic": 85}, "mmHg")
        assert evaluate(reading, config).severity == "medium"

    def test_low_is_medium(self, make_reading, config):
        reading = make_reading("bloodPressure", {"systolic": 85, "diastolic": 55}, "mmHg")
        decision = evaluate(reading, config)

        assert decision.severity == "medium"
        assert "lower than normal range" in decision.message

    def test_high_check_wins_over_low(self, make_reading, config):
        reading = make_reading("bloodPressure", {"systolic": 150, "diastolic": 55}, "mmHg")
        decision = evaluate(reading, config)

        assert "higher" in decision.message

    def test_normal_reading(self, make_reading, config):
        reading = make_reading("bloodPressure", {"systolic": 120, "diastolic": 80}, "mmHg")
        assert evaluate(reading, config) is None

    def test_missing_value_is_skipped(self, make_reading, config):
        assert evaluate(make_reading("bloodPressure", None, "mmHg"), config) is None


class TestSnapshotAndConfig:
    def test_snapshot_captures_reading_and_threshold(self, make_reading, config):
        decision = evaluate(make_reading("heartRate", 130, "bpm"), config)
        snap = decision.metric_snapshot

        assert snap.metric_type == "heartRate"
        assert snap.value == 130
        assert snap.unit == "bpm"
        assert snap.threshold == {"min": 60, "max": 100, "unit": "bpm"}

    def test_snapshot_is_detached_from_reading(self, make_reading, config):
        value = {"systolic": 165, "diastolic": 95}
        decision = evaluate(make_reading("bloodPressure", value, "mmHg"), config)
        value["systolic"] = 0

        assert decision.metric_snapshot.value["systolic"] == 165

    def test_configurable_multiplier(self, make_reading):
        strict = AlertConfig(high_multiplier=1.1)
        decision = evaluate(make_reading("heartRate", 115, "bpm"), strict)
        assert decision.severity == "high"

    def test_configurable_bp_critical_limit(self, make_reading):
        relaxed = AlertConfig(bp_critical_systolic=170.0)
        reading = make_reading("bloodPressure", {"systolic": 165, "diastolic": 95}, "mmHg")
        assert evaluate(reading, relaxed).severity == "medium"

    def test_custom_threshold_table(self, make_reading, config):
        table = dict(DEFAULT_THRESHOLDS)
        table["steps"] = SimpleThreshold(Range(1000, 50000), "steps")

        decision = evaluate(make_reading("steps", 500, "steps"), config, table)
        assert decision is not None
        assert decision.severity == "high"

    def test_deterministic(self, make_reading, config):
        reading = make_reading("heartRate", 130, "bpm")
        assert evaluate(reading, config) == evaluate(reading, config)
