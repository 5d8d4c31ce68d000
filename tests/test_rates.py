"""Tests for the depletion rate buffer and learner."""

from datetime import UTC, datetime, timedelta

import pytest

from podwise.intelligence.models import (
    BatteryEvent,
    BatteryEventType,
    DepletionRateSample,
    DepletionTarget,
    IntelligenceSettings,
)
from podwise.intelligence.rates import DepletionRateBuffer, learn_from_discharge

T0 = datetime(2026, 1, 15, 9, 0, tzinfo=UTC)


def _sample(rate: float, target: DepletionTarget = DepletionTarget.left, minutes: int = 0):
    return DepletionRateSample(
        timestamp=T0 + timedelta(minutes=minutes),
        minutes_per_percent=rate,
        target=target,
        start_percent=80,
        end_percent=70,
    )


def _event(minutes: float, event_type=BatteryEventType.discharge, **kwargs) -> BatteryEvent:
    return BatteryEvent(timestamp=T0 + timedelta(minutes=minutes), event_type=event_type, **kwargs)


class TestDepletionRateBuffer:
    def test_empty_target(self):
        buffer = DepletionRateBuffer()
        for target in DepletionTarget:
            assert buffer.get_sample_count(target) == 0
            assert buffer.get_confidence(target) == 0.0
            assert buffer.get_median_rate(target) is None
            assert buffer.get_mean_rate(target) is None

    def test_median_and_mean(self):
        buffer = DepletionRateBuffer()
        for rate in (2.5, 3.0, 2.0):
            buffer.add_sample(_sample(rate))
        assert buffer.get_median_rate(DepletionTarget.left) == pytest.approx(2.5)
        assert buffer.get_mean_rate(DepletionTarget.left) == pytest.approx(2.5)

    def test_median_even_count_averages_middle(self):
        buffer = DepletionRateBuffer()
        for rate in (1.0, 4.0, 2.0, 3.0):
            buffer.add_sample(_sample(rate))
        assert buffer.get_median_rate(DepletionTarget.left) == pytest.approx(2.5)

    def test_targets_are_independent(self):
        buffer = DepletionRateBuffer()
        buffer.add_sample(_sample(4.0, DepletionTarget.case))
        assert buffer.get_sample_count(DepletionTarget.case) == 1
        assert buffer.get_sample_count(DepletionTarget.left) == 0
        assert buffer.get_median_rate(DepletionTarget.right) is None

    def test_evicts_oldest_when_full(self):
        buffer = DepletionRateBuffer(max_samples=3)
        for i, rate in enumerate((1.0, 2.0, 3.0, 4.0)):
            buffer.add_sample(_sample(rate, minutes=i))
        samples = buffer.get_samples(DepletionTarget.left)
        assert [s.minutes_per_percent for s in samples] == [2.0, 3.0, 4.0]
        assert buffer.get_sample_count(DepletionTarget.left) == 3

    def test_confidence_grows_with_samples_and_stays_below_one(self):
        buffer = DepletionRateBuffer()
        previous = 0.0
        for i in range(20):
            buffer.add_sample(_sample(3.0, minutes=i))
            confidence = buffer.get_confidence(DepletionTarget.left)
            assert previous < confidence <= 1.0
            previous = confidence

    def test_single_sample_confidence_is_modest(self):
        buffer = DepletionRateBuffer()
        buffer.add_sample(_sample(3.0))
        assert 0.0 < buffer.get_confidence(DepletionTarget.left) < 0.5


class TestLearnFromDischarge:
    def test_creates_sample_from_previous_reading(self):
        buffer = DepletionRateBuffer()
        prior = _event(0, left_battery=80)
        event = _event(60, left_battery=70)

        added = learn_from_discharge(event, [prior], buffer, IntelligenceSettings())

        assert len(added) == 1
        sample = added[0]
        assert sample.target == DepletionTarget.left
        assert sample.minutes_per_percent == pytest.approx(6.0)
        assert (sample.start_percent, sample.end_percent) == (80, 70)
        assert buffer.get_sample_count(DepletionTarget.left) == 1

    def test_uses_nearest_event_with_a_reading_for_the_target(self):
        buffer = DepletionRateBuffer()
        history = [
            _event(30, BatteryEventType.usage_started, right_battery=90),
            _event(0, left_battery=90),
        ]
        event = _event(60, left_battery=80, right_battery=85)

        learn_from_discharge(event, history, buffer, IntelligenceSettings())

        assert buffer.get_median_rate(DepletionTarget.left) == pytest.approx(6.0)
        assert buffer.get_median_rate(DepletionTarget.right) == pytest.approx(6.0)

    def test_skips_when_gap_too_short(self):
        buffer = DepletionRateBuffer()
        added = learn_from_discharge(
            _event(2, left_battery=70),
            [_event(0, left_battery=80)],
            buffer,
            IntelligenceSettings(min_time_gap_minutes=5),
        )
        assert added == []

    def test_skips_zero_elapsed_time(self):
        buffer = DepletionRateBuffer()
        added = learn_from_discharge(
            _event(0, left_battery=70),
            [_event(0, left_battery=80)],
            buffer,
            IntelligenceSettings(min_time_gap_minutes=0),
        )
        assert added == []

    def test_skips_non_decreasing_level(self):
        buffer = DepletionRateBuffer()
        for end in (80, 90):
            added = learn_from_discharge(
                _event(60, left_battery=end),
                [_event(0, left_battery=80)],
                buffer,
                IntelligenceSettings(),
            )
            assert added == []

    def test_skips_missing_prior_reading(self):
        buffer = DepletionRateBuffer()
        added = learn_from_discharge(
            _event(60, left_battery=70),
            [_event(0, right_battery=80)],
            buffer,
            IntelligenceSettings(),
        )
        assert added == []

    def test_skips_out_of_order_reading(self):
        buffer = DepletionRateBuffer()
        added = learn_from_discharge(
            _event(0, left_battery=70),
            [_event(60, left_battery=80)],
            buffer,
            IntelligenceSettings(min_time_gap_minutes=0),
        )
        assert added == []

    def test_skips_while_charging(self):
        buffer = DepletionRateBuffer()
        added = learn_from_discharge(
            _event(60, left_battery=70),
            [_event(0, BatteryEventType.charging_started, left_battery=80, left_charging=True)],
            buffer,
            IntelligenceSettings(),
        )
        assert added == []

    def test_learning_disabled(self):
        buffer = DepletionRateBuffer()
        added = learn_from_discharge(
            _event(60, left_battery=70),
            [_event(0, left_battery=80)],
            buffer,
            IntelligenceSettings(learning_enabled=False),
        )
        assert added == []
        assert buffer.get_sample_count(DepletionTarget.left) == 0
