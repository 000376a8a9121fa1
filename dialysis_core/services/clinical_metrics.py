"""
Derived clinical metrics for dialysis patients.

Everything here is a pure function over already-validated readings:
- Blood pressure classification and mean arterial pressure
- Ultrafiltration (UF) rate and its safety tier
- Short-window trend detection for blood pressure and other vitals
- Dry-weight position

Insufficient data is answered with None rather than an exception, so callers can
show a placeholder. The one clamped edge case is the UF rate, which is 0.0 until
both a session duration and a patient weight are known.
"""

from collections.abc import Iterable, Sequence
from statistics import fmean
from typing import Literal

import structlog

from dialysis_core.domain.models import (
    DEFAULT_BP_THRESHOLDS,
    DEFAULT_UF_THRESHOLDS,
    BloodPressureReading,
    BPAverage,
    BPCategory,
    BPClassification,
    BPSource,
    BPThresholds,
    BPTrend,
    DryWeightAssessment,
    DryWeightStatus,
    SafetyLevel,
    TrendDirection,
    UFAlternative,
    UFAssessment,
    UFInput,
    UFThresholds,
    VitalTrend,
)
from dialysis_core.domain.rounding import round_half_up

logger = structlog.get_logger(__name__)

# Hypotension floor applied before the hypertension scale
LOW_SYSTOLIC = 90
LOW_DIASTOLIC = 60

# Systolic noise band for trend detection (mmHg); fixed, not a user threshold
TREND_NOISE_MMHG = 5.0
TREND_WINDOW = 3

SPARKLINE_LIMIT = 10
ALTERNATIVE_DURATIONS_MINUTES = (240, 270, 300, 330)

_TREND_LABELS = {
    TrendDirection.UP: "Rising",
    TrendDirection.DOWN: "Falling",
    TrendDirection.STABLE: "Stable",
}


# Blood pressure


def classify_blood_pressure(
    systolic: float,
    diastolic: float,
    thresholds: BPThresholds = DEFAULT_BP_THRESHOLDS,
) -> BPClassification:
    """
    Classify a reading. Rules are evaluated in order and the first match wins.

    The boundaries mix ``<`` and ``<=`` (Elevated is inclusive on systolic but
    exclusive on diastolic); they are kept exactly as the product defines them.
    """
    t = thresholds

    if systolic < LOW_SYSTOLIC or diastolic < LOW_DIASTOLIC:
        return BPClassification(category=BPCategory.LOW, severity_rank=0)
    if systolic < t.normal_sys and diastolic < t.normal_dia:
        return BPClassification(category=BPCategory.NORMAL, severity_rank=1)
    if systolic <= t.elevated_sys and diastolic < t.elevated_dia:
        return BPClassification(category=BPCategory.ELEVATED, severity_rank=2)
    if systolic <= t.stage1_sys or diastolic <= t.stage1_dia:
        return BPClassification(category=BPCategory.HIGH, severity_rank=3, stage=1)
    if systolic >= t.stage2_sys or diastolic >= t.stage2_dia:
        return BPClassification(category=BPCategory.CRISIS, severity_rank=5)
    return BPClassification(category=BPCategory.HIGH, severity_rank=4, stage=2)


def mean_arterial_pressure(systolic: float | None, diastolic: float | None) -> int | None:
    """MAP in mmHg, or None when either pressure is missing."""
    if systolic is None or diastolic is None:
        return None
    return round_half_up((2 * diastolic + systolic) / 3)


def merge_bp_timeline(
    readings: Iterable[BloodPressureReading], limit: int = SPARKLINE_LIMIT
) -> list[BloodPressureReading]:
    """Sort readings oldest first and keep the most recent ``limit``."""
    ordered = sorted(readings, key=lambda r: r.taken_at)
    if limit <= 0:
        return []
    return ordered[-limit:]


def detect_trend(readings: Sequence[BloodPressureReading]) -> BPTrend | None:
    """
    Compare mean systolic of the last three readings with the three before.

    ``readings`` must be ordered oldest first. Returns None when either window
    is empty, i.e. with fewer than four readings.
    """
    recent = readings[-TREND_WINDOW:]
    prior = readings[-2 * TREND_WINDOW : -TREND_WINDOW]
    if not recent or not prior:
        logger.debug("trend_insufficient_data", reading_count=len(readings))
        return None

    diff = fmean(r.systolic for r in recent) - fmean(r.systolic for r in prior)

    if diff > TREND_NOISE_MMHG:
        direction = TrendDirection.UP
    elif diff < -TREND_NOISE_MMHG:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return BPTrend(direction=direction, label=_TREND_LABELS[direction], difference=diff)


def detect_vital_trend(values_newest_first: Sequence[float]) -> VitalTrend | None:
    """
    Trend for a generic vital series given newest value first.

    Used for heart rate, temperature and SpO2 as well as systolic pressure on the
    vitals overview. A mean difference under 1 unit counts as stable.
    """
    if len(values_newest_first) < 2:
        return None
    recent = values_newest_first[:TREND_WINDOW]
    prior = values_newest_first[TREND_WINDOW : 2 * TREND_WINDOW]
    if not prior:
        return None

    recent_avg = fmean(recent)
    prior_avg = fmean(prior)
    diff = recent_avg - prior_avg

    if abs(diff) < 1:
        return VitalTrend(
            direction=TrendDirection.STABLE,
            label=_TREND_LABELS[TrendDirection.STABLE],
            percent_change=0.0,
        )

    percent = 0.0 if prior_avg == 0 else round(abs(diff / prior_avg * 100), 1)
    direction = TrendDirection.UP if diff > 0 else TrendDirection.DOWN
    return VitalTrend(direction=direction, label=_TREND_LABELS[direction], percent_change=percent)


def average_blood_pressure(readings: Iterable[BloodPressureReading]) -> BPAverage | None:
    items = list(readings)
    if not items:
        return None
    return BPAverage(
        systolic=round_half_up(fmean(r.systolic for r in items)),
        diastolic=round_half_up(fmean(r.diastolic for r in items)),
        count=len(items),
    )


def averages_by_source(
    readings: Iterable[BloodPressureReading],
) -> dict[BPSource | Literal["overall"], BPAverage | None]:
    """Averages for pre-dialysis, post-dialysis and home readings, plus overall."""
    grouped: dict[BPSource, list[BloodPressureReading]] = {
        BPSource.PRE_DIALYSIS: [],
        BPSource.POST_DIALYSIS: [],
        BPSource.HOME: [],
    }
    for reading in readings:
        if reading.source in grouped:
            grouped[reading.source].append(reading)

    averages: dict[BPSource | Literal["overall"], BPAverage | None] = {
        source: average_blood_pressure(items) for source, items in grouped.items()
    }
    averages["overall"] = average_blood_pressure(
        reading for items in grouped.values() for reading in items
    )
    return averages


def latest_by_source(
    readings: Iterable[BloodPressureReading],
) -> dict[BPSource, BloodPressureReading | None]:
    latest: dict[BPSource, BloodPressureReading | None] = {source: None for source in BPSource}
    for reading in readings:
        current = latest[reading.source]
        if current is None or reading.taken_at > current.taken_at:
            latest[reading.source] = reading
    return latest


# Ultrafiltration


def ultrafiltration_rate(
    volume_removed_ml: float, patient_weight_kg: float, duration_minutes: float
) -> float:
    """
    UF rate in ml/kg/hr.

    Returns 0.0 while the duration or weight is not yet known (zero or negative);
    the session screen shows a rate before the session has finished.
    """
    duration_hours = duration_minutes / 60
    if duration_hours <= 0 or patient_weight_kg <= 0:
        return 0.0
    return volume_removed_ml / patient_weight_kg / duration_hours


def classify_uf_safety(
    rate: float, thresholds: UFThresholds = DEFAULT_UF_THRESHOLDS
) -> SafetyLevel:
    if rate < thresholds.safe_below:
        return SafetyLevel.SAFE
    if rate < thresholds.caution_below:
        return SafetyLevel.CAUTION
    return SafetyLevel.RISK


def is_uf_rate_safe(
    volume_removed_ml: float,
    patient_weight_kg: float,
    duration_minutes: float,
    thresholds: UFThresholds = DEFAULT_UF_THRESHOLDS,
) -> bool:
    rate = ultrafiltration_rate(volume_removed_ml, patient_weight_kg, duration_minutes)
    return classify_uf_safety(rate, thresholds) is SafetyLevel.SAFE


def assess_ultrafiltration(
    uf_input: UFInput,
    thresholds: UFThresholds = DEFAULT_UF_THRESHOLDS,
    target_uf_ml: float | None = None,
    alternative_durations: Sequence[float] = ALTERNATIVE_DURATIONS_MINUTES,
) -> UFAssessment:
    """
    Rate, safety tier and planning hints for one session.

    When the rate is not safe, the rates the same volume would give over the
    ``alternative_durations`` are included (rounded to 0.1 before tiering) so the
    patient can discuss a longer session with their care team.
    """
    rate = ultrafiltration_rate(
        uf_input.volume_removed_ml, uf_input.patient_weight_kg, uf_input.duration_minutes
    )
    level = classify_uf_safety(rate, thresholds)

    percent_of_target = None
    if target_uf_ml:
        percent_of_target = round_half_up(uf_input.volume_removed_ml / target_uf_ml * 100)

    alternatives: list[UFAlternative] = []
    if level is not SafetyLevel.SAFE:
        for minutes in alternative_durations:
            alt_rate = round(
                ultrafiltration_rate(
                    uf_input.volume_removed_ml, uf_input.patient_weight_kg, minutes
                ),
                1,
            )
            alternatives.append(
                UFAlternative(
                    duration_minutes=minutes,
                    rate=alt_rate,
                    safety_level=classify_uf_safety(alt_rate, thresholds),
                )
            )

    return UFAssessment(
        rate=rate,
        safety_level=level,
        percent_of_target=percent_of_target,
        alternatives=alternatives,
    )


# Weight


def assess_dry_weight(
    current_kg: float, dry_weight_kg: float, previous_kg: float | None = None
) -> DryWeightAssessment:
    """Where the current weight sits relative to the target dry weight."""
    difference = current_kg - dry_weight_kg
    percent = abs(difference / dry_weight_kg * 100) if dry_weight_kg > 0 else 0.0

    if difference > 2:
        status = DryWeightStatus.CRITICAL
    elif difference > 1:
        status = DryWeightStatus.WARNING
    elif difference > 0.5:
        status = DryWeightStatus.ABOVE
    elif difference >= -0.5:
        status = DryWeightStatus.AT
    elif difference >= -1:
        status = DryWeightStatus.BELOW
    else:
        status = DryWeightStatus.LOW

    direction = TrendDirection.STABLE
    if previous_kg is not None:
        change = current_kg - previous_kg
        if change > 0.1:
            direction = TrendDirection.UP
        elif change < -0.1:
            direction = TrendDirection.DOWN

    return DryWeightAssessment(
        difference_kg=difference,
        difference_percent=percent,
        status=status,
        direction=direction,
    )
