"""
Subscription and entitlement domain models.

Plans, resources and features are closed enums so an unknown key fails when the
data is parsed instead of silently reading as "not granted".
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PlanId(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    FAMILY = "family"


class BillingInterval(str, Enum):
    MONTH = "month"
    YEAR = "year"


class SubscriptionStatus(str, Enum):
    """Status as reported by the billing service."""

    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"


class ResourceKey(str, Enum):
    """Tracked resources with per-plan creation limits."""

    SESSIONS = "sessions"
    WEIGHT_LOGS = "weightLogs"
    FLUID_LOGS = "fluidLogs"
    VITAL_RECORDS = "vitalRecords"
    SYMPTOM_LOGS = "symptomLogs"
    MEDICATIONS = "medications"
    MEAL_LOGS = "mealLogs"
    REPORTS = "reports"
    AI_REQUESTS = "aiRequests"


class FeatureKey(str, Enum):
    SESSION_HISTORY = "sessionHistory"
    BASIC_VITALS_MONITORING = "basicVitalsMonitoring"
    MEDICATION_TRACKER = "medicationTracker"
    SYMPTOMS_VITALS_HUB = "symptomsVitalsHub"
    AI_HEALTH_ANALYSIS = "aiHealthAnalysis"
    NUTRI_SCAN_AI = "nutriScanAI"
    EXPORT_DATA = "exportData"
    CAREGIVER_ACCESS = "caregiverAccess"
    FAMILY_DASHBOARD = "familyDashboard"


class PlanConfig(BaseModel):
    """Static description of what a plan grants."""

    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str = Field(min_length=1)
    description: str
    price_monthly: float = Field(ge=0.0)
    price_yearly: float = Field(ge=0.0)
    limits: dict[ResourceKey, int | None]
    features: frozenset[FeatureKey] = Field(default_factory=frozenset)

    def limit_for(self, resource: ResourceKey) -> int | None:
        return self.limits[resource]

    def price_for(self, interval: BillingInterval) -> float:
        return self.price_yearly if interval is BillingInterval.YEAR else self.price_monthly


class UsageItem(BaseModel):
    """
    Usage of one resource against its plan limit.

    Built through ``compute_usage_item``; ``remaining`` is None when the limit is
    unbounded so it can never be used in arithmetic by mistake.
    """

    model_config = ConfigDict(frozen=True)

    current: int = Field(ge=0)
    limit: int | None = Field(None, ge=0)
    remaining: int | None = Field(None, ge=0)
    percent_used: int = Field(default=0, ge=0, le=100)
    unlimited: bool = False
    at_limit: bool = False
    near_limit: bool = False

    @model_validator(mode="after")
    def unlimited_matches_limit(self) -> "UsageItem":
        if self.unlimited != (self.limit is None):
            raise ValueError("unlimited must be set exactly when limit is None")
        if self.unlimited and self.remaining is not None:
            raise ValueError("unlimited usage has no finite remaining count")
        return self


class UsageSnapshot(BaseModel):
    """Point-in-time usage for every tracked resource of a plan."""

    model_config = ConfigDict(frozen=True)

    plan: PlanId
    usage: dict[ResourceKey, UsageItem]


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan: PlanId = PlanId.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    interval: BillingInterval = BillingInterval.MONTH
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False


# Errors


class PlanTableError(ValueError):
    """Raised when the static plan table is incomplete or inconsistent."""


class EntitlementError(Exception):
    """Base class for expected entitlement denials, carrying a stable code."""

    code = "SUB_000"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ResourceLimitReached(EntitlementError):
    code = "SUB_001"


class FeatureNotAvailable(EntitlementError):
    code = "SUB_002"


class SubscriptionInactive(EntitlementError):
    code = "SUB_003"


class UnknownPlan(EntitlementError):
    code = "SUB_004"
