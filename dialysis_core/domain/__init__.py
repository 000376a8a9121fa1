"""Domain models for dialysis tracking: readings, derived results and plans."""

from .models import (
    DEFAULT_BP_THRESHOLDS,
    DEFAULT_UF_THRESHOLDS,
    BloodPressureReading,
    BPAverage,
    BPCategory,
    BPClassification,
    BPSource,
    BPThresholds,
    BPTrend,
    DialysisSession,
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
from .result import Result
from .subscription import (
    BillingInterval,
    EntitlementError,
    FeatureKey,
    FeatureNotAvailable,
    PlanConfig,
    PlanId,
    PlanTableError,
    ResourceKey,
    ResourceLimitReached,
    Subscription,
    SubscriptionInactive,
    SubscriptionStatus,
    UnknownPlan,
    UsageItem,
    UsageSnapshot,
)

__all__ = [
    "DEFAULT_BP_THRESHOLDS",
    "DEFAULT_UF_THRESHOLDS",
    "BloodPressureReading",
    "BPAverage",
    "BPCategory",
    "BPClassification",
    "BPSource",
    "BPThresholds",
    "BPTrend",
    "DialysisSession",
    "DryWeightAssessment",
    "DryWeightStatus",
    "SafetyLevel",
    "TrendDirection",
    "UFAlternative",
    "UFAssessment",
    "UFInput",
    "UFThresholds",
    "VitalTrend",
    "Result",
    "BillingInterval",
    "EntitlementError",
    "FeatureKey",
    "FeatureNotAvailable",
    "PlanConfig",
    "PlanId",
    "PlanTableError",
    "ResourceKey",
    "ResourceLimitReached",
    "Subscription",
    "SubscriptionInactive",
    "SubscriptionStatus",
    "UnknownPlan",
    "UsageItem",
    "UsageSnapshot",
]
