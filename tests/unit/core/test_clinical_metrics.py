"""
Tests for the clinical metrics functions.

Testing philosophy:
- Table-driven cases pin every classification boundary
- Property-based tests cover totality, monotonicity and idempotence
- No mocking: every function under test is pure
"""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from dialysis_core.domain.models import (
    BloodPressureReading,
    BPCategory,
    BPSource,
    BPThresholds,
    DryWeightStatus,
    SafetyLevel,
    TrendDirection,
    UFInput,
    UFThresholds,
)
from dialysis_core.domain.rounding import round_half_up
from dialysis_core.services.clinical_metrics import (
    assess_dry_weight,
    assess_ultrafiltration,
    average_blood_pressure,
    averages_by_source,
    classify_blood_pressure,
    classify_uf_safety,
    detect_trend,
    detect_vital_trend,
    is_uf_rate_safe,
    latest_by_source,
    mean_arterial_pressure,
    merge_bp_timeline,
    ultrafiltration_rate,
)

BASE_TIME = datetime(2026, 1, 5, 7, 0, tzinfo=UTC)

pressures = st.floats(min_value=0.0, max_value=300.0, allow_nan=False, allow_infinity=False)


def make_readings(
    systolics: list[float], source: BPSource = BPSource.UNKNOWN
) -> list[BloodPressureReading]:
    """Readings one day apart, oldest first."""
    return [
        BloodPressureReading(
            systolic=s, diastolic=80, taken_at=BASE_TIME + timedelta(days=i), source=source
        )
        for i, s in enumerate(systolics)
    ]


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected", [(2.5, 3), (0.5, 1), (1.4999, 1), (93.333, 93), (-2.5, -2)]
    )
    def test_halves_round_up(self, value: float, expected: int) -> None:
        assert round_half_up(value) == expected


class TestClassifyBloodPressure:
    """Rules are evaluated in order; the first match wins."""

    @pytest.mark.parametrize(
        "systolic,diastolic,category,rank,stage",
        [
            (85, 70, BPCategory.LOW, 0, None),
            (120, 55, BPCategory.LOW, 0, None),
            (110, 70, BPCategory.NORMAL, 1, None),
            (119, 79, BPCategory.NORMAL, 1, None),
            (120, 79, BPCategory.ELEVATED, 2, None),
            (129, 79, BPCategory.ELEVATED, 2, None),
            (125, 80, BPCategory.HIGH, 3, 1),
            (130, 79, BPCategory.HIGH, 3, 1),
            (139, 85, BPCategory.HIGH, 3, 1),
            (150, 89, BPCategory.HIGH, 3, 1),
            (150, 95, BPCategory.HIGH, 4, 2),
            (179, 119, BPCategory.HIGH, 4, 2),
            (180, 95, BPCategory.CRISIS, 5, None),
            (150, 120, BPCategory.CRISIS, 5, None),
        ],
    )
    def test_default_threshold_boundaries(
        self, systolic: float, diastolic: float, category: BPCategory, rank: int, stage: int | None
    ) -> None:
        result = classify_blood_pressure(systolic, diastolic)

        assert result.category == category
        assert result.label == category.value
        assert result.severity_rank == rank
        assert result.stage == stage

    def test_stage1_rule_matches_before_crisis(self) -> None:
        """A very high systolic with diastolic at or under 89 stops at stage 1."""
        result = classify_blood_pressure(200, 80)

        assert result.category == BPCategory.HIGH
        assert result.stage == 1

    def test_custom_thresholds_are_used(self) -> None:
        thresholds = BPThresholds(normal_sys=130, normal_dia=85)

        assert classify_blood_pressure(125, 82, thresholds).category == BPCategory.NORMAL
        assert classify_blood_pressure(125, 82).category == BPCategory.HIGH

    @given(systolic=pressures, diastolic=pressures)
    def test_total_over_non_negative_input(self, systolic: float, diastolic: float) -> None:
        result = classify_blood_pressure(systolic, diastolic)

        assert result.category in set(BPCategory)
        assert 0 <= result.severity_rank <= 5

    @given(a=pressures, b=pressures, diastolic=pressures)
    def test_monotonic_in_systolic(self, a: float, b: float, diastolic: float) -> None:
        low, high = sorted((a, b))
        assert (
            classify_blood_pressure(low, diastolic).severity_rank
            <= classify_blood_pressure(high, diastolic).severity_rank
        )

    @given(a=pressures, b=pressures, systolic=pressures)
    def test_monotonic_in_diastolic(self, a: float, b: float, systolic: float) -> None:
        low, high = sorted((a, b))
        assert (
            classify_blood_pressure(systolic, low).severity_rank
            <= classify_blood_pressure(systolic, high).severity_rank
        )

    @given(systolic=pressures, diastolic=pressures)
    def test_idempotent(self, systolic: float, diastolic: float) -> None:
        assert classify_blood_pressure(systolic, diastolic) == classify_blood_pressure(
            systolic, diastolic
        )


class TestMeanArterialPressure:
    def test_textbook_value(self) -> None:
        assert mean_arterial_pressure(120, 80) == 93

    def test_rounds_to_nearest(self) -> None:
        assert mean_arterial_pressure(121, 80) == 94
        assert mean_arterial_pressure(100, 70) == 80

    @pytest.mark.parametrize("systolic,diastolic", [(120, None), (None, 80), (None, None)])
    def test_missing_pressure_returns_none(
        self, systolic: float | None, diastolic: float | None
    ) -> None:
        assert mean_arterial_pressure(systolic, diastolic) is None


class TestUltrafiltrationRate:
    def test_standard_session(self) -> None:
        assert ultrafiltration_rate(2000, 70, 240) == pytest.approx(7.14, abs=0.01)

    @given(volume=st.floats(min_value=0, max_value=10_000), weight=st.floats(-200, 200))
    def test_zero_duration_is_zero(self, volume: float, weight: float) -> None:
        assert ultrafiltration_rate(volume, weight, 0) == 0

    @pytest.mark.parametrize("weight,duration", [(0, 240), (-70, 240), (70, -30)])
    def test_unknown_weight_or_duration_is_zero(self, weight: float, duration: float) -> None:
        assert ultrafiltration_rate(2000, weight, duration) == 0.0

    @pytest.mark.parametrize(
        "rate,level",
        [
            (0.0, SafetyLevel.SAFE),
            (9.99, SafetyLevel.SAFE),
            (10.0, SafetyLevel.CAUTION),
            (12.99, SafetyLevel.CAUTION),
            (13.0, SafetyLevel.RISK),
            (25.0, SafetyLevel.RISK),
        ],
    )
    def test_safety_bands_closed_on_lower_bound(self, rate: float, level: SafetyLevel) -> None:
        assert classify_uf_safety(rate) == level

    def test_custom_safety_bands(self) -> None:
        thresholds = UFThresholds(safe_below=8, caution_below=12)

        assert classify_uf_safety(9, thresholds) == SafetyLevel.CAUTION
        assert classify_uf_safety(12, thresholds) == SafetyLevel.RISK

    def test_is_uf_rate_safe(self) -> None:
        assert is_uf_rate_safe(2000, 70, 240)
        assert not is_uf_rate_safe(3500, 70, 240)


class TestAssessUltrafiltration:
    def test_caution_session_lists_longer_durations(self) -> None:
        assessment = assess_ultrafiltration(
            UFInput(volume_removed_ml=3500, patient_weight_kg=70, duration_minutes=240),
            target_uf_ml=2800,
        )

        assert assessment.rate == pytest.approx(12.5)
        assert assessment.safety_level == SafetyLevel.CAUTION
        assert assessment.percent_of_target == 125

        rates = {
            alt.duration_minutes: (alt.rate, alt.safety_level) for alt in assessment.alternatives
        }
        assert rates == {
            240: (12.5, SafetyLevel.CAUTION),
            270: (11.1, SafetyLevel.CAUTION),
            300: (10.0, SafetyLevel.CAUTION),
            330: (9.1, SafetyLevel.SAFE),
        }

    def test_safe_session_has_no_alternatives(self) -> None:
        assessment = assess_ultrafiltration(
            UFInput(volume_removed_ml=2000, patient_weight_kg=70, duration_minutes=240)
        )

        assert assessment.safety_level == SafetyLevel.SAFE
        assert assessment.alternatives == []
        assert assessment.percent_of_target is None

    def test_session_in_progress_reads_as_safe(self) -> None:
        assessment = assess_ultrafiltration(
            UFInput(volume_removed_ml=500, patient_weight_kg=70, duration_minutes=0)
        )

        assert assessment.rate == 0.0
        assert assessment.safety_level == SafetyLevel.SAFE


class TestDetectTrend:
    @pytest.mark.parametrize("count", [0, 1, 2, 3])
    def test_fewer_than_four_readings_is_none(self, count: int) -> None:
        assert detect_trend(make_readings([120 + 10 * i for i in range(count)])) is None

    def test_four_readings_use_single_prior_reading(self) -> None:
        trend = detect_trend(make_readings([100, 120, 120, 120]))

        assert trend is not None
        assert trend.direction == TrendDirection.UP
        assert trend.difference == pytest.approx(20)

    def test_strictly_increasing_is_rising(self) -> None:
        trend = detect_trend(make_readings([110, 115, 120, 125, 130, 135]))

        assert trend is not None
        assert trend.direction == TrendDirection.UP
        assert trend.label == "Rising"

    def test_strictly_decreasing_is_falling(self) -> None:
        trend = detect_trend(make_readings([135, 130, 125, 120, 115, 110]))

        assert trend is not None
        assert trend.direction == TrendDirection.DOWN
        assert trend.label == "Falling"

    def test_five_mmhg_difference_is_still_stable(self) -> None:
        trend = detect_trend(make_readings([120, 120, 120, 125, 125, 125]))

        assert trend is not None
        assert trend.direction == TrendDirection.STABLE
        assert trend.label == "Stable"

    def test_only_last_six_readings_count(self) -> None:
        trend = detect_trend(make_readings([200, 200, 120, 120, 120, 120, 120, 120]))

        assert trend is not None
        assert trend.direction == TrendDirection.STABLE


class TestDetectVitalTrend:
    def test_rising_reports_percent_change(self) -> None:
        trend = detect_vital_trend([80, 80, 80, 70, 70, 70])

        assert trend is not None
        assert trend.direction == TrendDirection.UP
        assert trend.percent_change == pytest.approx(14.3)

    @pytest.mark.parametrize("values", [[], [70], [70, 71], [70, 71, 72]])
    def test_without_prior_window_is_none(self, values: list[float]) -> None:
        assert detect_vital_trend(values) is None

    def test_small_difference_is_stable(self) -> None:
        trend = detect_vital_trend([72.5, 72, 72.2, 72, 72])

        assert trend is not None
        assert trend.direction == TrendDirection.STABLE
        assert trend.percent_change == 0.0

    def test_zero_prior_mean_has_no_percent(self) -> None:
        trend = detect_vital_trend([5, 5, 5, 0, 0, 0])

        assert trend is not None
        assert trend.direction == TrendDirection.UP
        assert trend.percent_change == 0.0


class TestBloodPressureAggregation:
    def test_timeline_sorted_and_limited(self) -> None:
        readings = make_readings(list(range(100, 112)))
        shuffled = readings[::2] + readings[1::2]

        timeline = merge_bp_timeline(shuffled)

        assert [r.systolic for r in timeline] == list(range(102, 112))

    def test_average_of_nothing_is_none(self) -> None:
        assert average_blood_pressure([]) is None

    def test_averages_by_source(self) -> None:
        readings = [
            BloodPressureReading(systolic=130, diastolic=80, source=BPSource.PRE_DIALYSIS),
            BloodPressureReading(systolic=140, diastolic=90, source=BPSource.PRE_DIALYSIS),
            BloodPressureReading(systolic=120, diastolic=75, source=BPSource.HOME),
            BloodPressureReading(systolic=200, diastolic=100, source=BPSource.UNKNOWN),
        ]

        averages = averages_by_source(readings)

        pre = averages[BPSource.PRE_DIALYSIS]
        assert pre is not None
        assert (pre.systolic, pre.diastolic, pre.count) == (135, 85, 2)
        assert averages[BPSource.POST_DIALYSIS] is None
        overall = averages["overall"]
        assert overall is not None
        assert (overall.systolic, overall.diastolic, overall.count) == (130, 82, 3)

    def test_latest_by_source(self) -> None:
        home = make_readings([120, 125, 118], source=BPSource.HOME)

        latest = latest_by_source(reversed(home))

        assert latest[BPSource.HOME] == home[-1]
        assert latest[BPSource.PRE_DIALYSIS] is None


class TestAssessDryWeight:
    @pytest.mark.parametrize(
        "current,status",
        [
            (73.0, DryWeightStatus.CRITICAL),
            (72.5, DryWeightStatus.WARNING),
            (72.0, DryWeightStatus.WARNING),
            (71.2, DryWeightStatus.ABOVE),
            (70.5, DryWeightStatus.AT),
            (70.0, DryWeightStatus.AT),
            (69.8, DryWeightStatus.BELOW),
            (69.0, DryWeightStatus.LOW),
        ],
    )
    def test_status_bands(self, current: float, status: DryWeightStatus) -> None:
        assert assess_dry_weight(current, 70.5).status == status

    def test_direction_uses_dead_band(self) -> None:
        assert assess_dry_weight(72.5, 70.5, previous_kg=72.0).direction == TrendDirection.UP
        assert assess_dry_weight(72.0, 70.5, previous_kg=72.5).direction == TrendDirection.DOWN
        assert assess_dry_weight(72.0, 70.5, previous_kg=71.95).direction == TrendDirection.STABLE

    def test_percent_difference(self) -> None:
        assessment = assess_dry_weight(77.0, 70.0)

        assert assessment.difference_kg == pytest.approx(7.0)
        assert assessment.difference_percent == pytest.approx(10.0)

    def test_unknown_dry_weight_has_zero_percent(self) -> None:
        assert assess_dry_weight(70.0, 0).difference_percent == 0.0
