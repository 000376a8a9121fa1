"""
Patient dashboard composition.

Combines the clinical metrics and entitlement model over one consistent snapshot
of patient data:
1. Pull readings, sessions, thresholds and billing data from the providers
2. Merge session blood pressure into the reading timeline
3. Derive classification, MAP, trend, UF safety and dry-weight status
4. Attach usage status and the features locked on the effective plan

Providers are protocols so the host application decides how data is fetched and
cached; this module only computes.
"""

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Literal, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dialysis_core.domain.models import (
    DEFAULT_BP_THRESHOLDS,
    DEFAULT_UF_THRESHOLDS,
    BloodPressureReading,
    BPAverage,
    BPClassification,
    BPSource,
    BPThresholds,
    BPTrend,
    DialysisSession,
    DryWeightAssessment,
    UFAssessment,
    UFThresholds,
)
from dialysis_core.domain.subscription import (
    FeatureKey,
    PlanId,
    ResourceKey,
    Subscription,
    UsageSnapshot,
)
from dialysis_core.services import clinical_metrics, entitlements

logger = structlog.get_logger(__name__)


class ReadingsProvider(Protocol):
    """Source of recorded blood pressure readings and dialysis sessions."""

    def blood_pressure_readings(self) -> Sequence[BloodPressureReading]: ...

    def sessions(self) -> Sequence[DialysisSession]: ...


class SettingsProvider(Protocol):
    """Per-patient thresholds and targets."""

    def bp_thresholds(self) -> BPThresholds: ...

    def uf_thresholds(self) -> UFThresholds: ...

    def dry_weight_kg(self) -> float | None: ...


class SubscriptionProvider(Protocol):
    """Snapshot of billing state as reported by the billing service."""

    def subscription(self) -> Subscription: ...

    def usage_counters(self) -> Mapping[ResourceKey, int]: ...


class InMemoryPatientData:
    """
    Provider implementation over plain in-memory data.

    Used by the console summary and tests; a host application would back the same
    protocols with its API client.
    """

    def __init__(
        self,
        readings: Sequence[BloodPressureReading] = (),
        sessions: Sequence[DialysisSession] = (),
        subscription: Subscription | None = None,
        usage_counters: Mapping[ResourceKey, int] | None = None,
        bp_thresholds: BPThresholds = DEFAULT_BP_THRESHOLDS,
        uf_thresholds: UFThresholds = DEFAULT_UF_THRESHOLDS,
        dry_weight_kg: float | None = None,
    ) -> None:
        self._readings = tuple(readings)
        self._sessions = tuple(sessions)
        self._subscription = subscription or Subscription()
        self._usage_counters = dict(usage_counters or {})
        self._bp_thresholds = bp_thresholds
        self._uf_thresholds = uf_thresholds
        self._dry_weight_kg = dry_weight_kg

    def blood_pressure_readings(self) -> Sequence[BloodPressureReading]:
        return self._readings

    def sessions(self) -> Sequence[DialysisSession]:
        return self._sessions

    def bp_thresholds(self) -> BPThresholds:
        return self._bp_thresholds

    def uf_thresholds(self) -> UFThresholds:
        return self._uf_thresholds

    def dry_weight_kg(self) -> float | None:
        return self._dry_weight_kg

    def subscription(self) -> Subscription:
        return self._subscription

    def usage_counters(self) -> Mapping[ResourceKey, int]:
        return self._usage_counters


class DashboardSnapshot(BaseModel):
    """Everything the dashboard renders, computed from one data snapshot."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    latest_bp: BloodPressureReading | None = None
    bp_classification: BPClassification | None = None
    mean_arterial_pressure: int | None = None
    bp_trend: BPTrend | None = None
    bp_averages: dict[BPSource | Literal["overall"], BPAverage | None] = Field(
        default_factory=dict
    )

    last_session: DialysisSession | None = None
    uf_assessment: UFAssessment | None = None
    dry_weight: DryWeightAssessment | None = None

    plan: PlanId
    usage: UsageSnapshot
    locked_features: list[FeatureKey] = Field(default_factory=list)


def session_bp_readings(sessions: Sequence[DialysisSession]) -> list[BloodPressureReading]:
    """Pre- and post-dialysis readings recorded on sessions, tagged by source."""
    readings: list[BloodPressureReading] = []
    for session in sessions:
        if session.pre_bp is not None:
            readings.append(session.pre_bp.model_copy(update={"source": BPSource.PRE_DIALYSIS}))
        if session.post_bp is not None:
            readings.append(session.post_bp.model_copy(update={"source": BPSource.POST_DIALYSIS}))
    return readings


class PatientDashboardService:
    """Builds dashboard snapshots from the readings, settings and billing providers."""

    def __init__(
        self,
        readings: ReadingsProvider,
        settings: SettingsProvider,
        billing: SubscriptionProvider,
    ) -> None:
        self.readings = readings
        self.settings = settings
        self.billing = billing
        self.logger = logger.bind(component="patient_dashboard")

    def build_snapshot(self, now: datetime | None = None) -> DashboardSnapshot:
        now = now or datetime.now(UTC)

        sessions = sorted(self.readings.sessions(), key=lambda s: s.started_at)
        all_readings = [*self.readings.blood_pressure_readings(), *session_bp_readings(sessions)]
        timeline = clinical_metrics.merge_bp_timeline(all_readings)

        latest_bp = timeline[-1] if timeline else None
        classification = None
        map_value = None
        if latest_bp is not None:
            classification = clinical_metrics.classify_blood_pressure(
                latest_bp.systolic, latest_bp.diastolic, self.settings.bp_thresholds()
            )
            map_value = clinical_metrics.mean_arterial_pressure(
                latest_bp.systolic, latest_bp.diastolic
            )

        last_session = sessions[-1] if sessions else None
        uf_assessment = None
        if last_session is not None:
            uf_assessment = clinical_metrics.assess_ultrafiltration(
                last_session.uf_input(),
                self.settings.uf_thresholds(),
                target_uf_ml=last_session.target_uf_ml,
            )

        dry_weight = self._assess_dry_weight(sessions)

        subscription = self.billing.subscription()
        plan = entitlements.get_plan(entitlements.effective_plan_id(subscription, now))
        usage = entitlements.build_usage_snapshot(plan, self.billing.usage_counters())

        snapshot = DashboardSnapshot(
            generated_at=now,
            latest_bp=latest_bp,
            bp_classification=classification,
            mean_arterial_pressure=map_value,
            bp_trend=clinical_metrics.detect_trend(timeline),
            bp_averages=clinical_metrics.averages_by_source(all_readings),
            last_session=last_session,
            uf_assessment=uf_assessment,
            dry_weight=dry_weight,
            plan=plan.id,
            usage=usage,
            locked_features=entitlements.locked_features(plan),
        )

        self.logger.info(
            "dashboard_snapshot_built",
            reading_count=len(all_readings),
            session_count=len(sessions),
            bp_category=classification.label if classification else None,
            uf_safety=uf_assessment.safety_level.value if uf_assessment else None,
            plan=plan.id.value,
            resources_at_limit=[r.value for r, item in usage.usage.items() if item.at_limit],
        )
        return snapshot

    def _assess_dry_weight(self, sessions: Sequence[DialysisSession]) -> DryWeightAssessment | None:
        """Compare the latest pre-dialysis weight with the target, if both are known."""
        dry_weight_kg = self.settings.dry_weight_kg()
        weights = [s.pre_weight_kg for s in sessions if s.pre_weight_kg is not None]
        if dry_weight_kg is None or not weights:
            return None
        previous = weights[-2] if len(weights) > 1 else None
        return clinical_metrics.assess_dry_weight(weights[-1], dry_weight_kg, previous)
