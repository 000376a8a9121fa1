"""
Clinical domain models for dialysis patient tracking.

These models represent the readings and derived results the metrics functions
work with. They use Pydantic for validation at the boundary: raw numbers coming
from forms or API payloads are checked here, so the metric functions themselves
can stay pure arithmetic.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BPSource(str, Enum):
    """Where a blood pressure reading was taken."""

    PRE_DIALYSIS = "pre_dialysis"
    POST_DIALYSIS = "post_dialysis"
    HOME = "home"
    UNKNOWN = "unknown"


class BPCategory(str, Enum):
    """Blood pressure classification labels shown to the patient."""

    LOW = "Low"
    NORMAL = "Normal"
    ELEVATED = "Elevated"
    HIGH = "High"
    CRISIS = "Crisis"


class SafetyLevel(str, Enum):
    """Ultrafiltration safety tier."""

    SAFE = "safe"
    CAUTION = "caution"
    RISK = "risk"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class DryWeightStatus(str, Enum):
    """Position of the current weight relative to the target dry weight."""

    CRITICAL = "critical"  # more than 2 kg above
    WARNING = "warning"
    ABOVE = "above"
    AT = "at"
    BELOW = "below"
    LOW = "low"  # more than 1 kg below


class BloodPressureReading(BaseModel):
    """Single blood pressure reading, immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    systolic: float = Field(ge=0, description="Systolic pressure in mmHg")
    diastolic: float = Field(ge=0, description="Diastolic pressure in mmHg")
    taken_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: BPSource = BPSource.UNKNOWN


class BPThresholds(BaseModel):
    """Per-user blood pressure cut-offs in mmHg."""

    model_config = ConfigDict(frozen=True)

    normal_sys: float = Field(default=120, gt=0)
    normal_dia: float = Field(default=80, gt=0)
    elevated_sys: float = Field(default=129, gt=0)
    elevated_dia: float = Field(default=80, gt=0)
    stage1_sys: float = Field(default=139, gt=0)
    stage1_dia: float = Field(default=89, gt=0)
    stage2_sys: float = Field(default=180, gt=0)
    stage2_dia: float = Field(default=120, gt=0)


class UFThresholds(BaseModel):
    """Ultrafiltration rate bands in ml/kg/hr."""

    model_config = ConfigDict(frozen=True)

    safe_below: float = Field(default=10.0, gt=0.0)
    caution_below: float = Field(default=13.0, gt=0.0)

    @model_validator(mode="after")
    def bands_ascending(self) -> "UFThresholds":
        if self.safe_below > self.caution_below:
            raise ValueError("safe_below must not exceed caution_below")
        return self


DEFAULT_BP_THRESHOLDS = BPThresholds()
DEFAULT_UF_THRESHOLDS = UFThresholds()


class UFInput(BaseModel):
    """Inputs for an ultrafiltration rate calculation."""

    model_config = ConfigDict(frozen=True)

    volume_removed_ml: float = Field(ge=0)
    patient_weight_kg: float = Field(ge=0)
    duration_minutes: float = Field(ge=0)


class DialysisSession(BaseModel):
    """A logged dialysis session as supplied by the readings provider."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime
    duration_minutes: float = Field(ge=0)
    pre_weight_kg: float | None = Field(None, ge=0)
    post_weight_kg: float | None = Field(None, ge=0)
    uf_removed_ml: float = Field(default=0, ge=0)
    target_uf_ml: float | None = Field(None, ge=0)
    pre_bp: BloodPressureReading | None = None
    post_bp: BloodPressureReading | None = None

    def uf_input(self) -> UFInput:
        """UF inputs for this session, weighing the patient before treatment."""
        weight = self.pre_weight_kg if self.pre_weight_kg is not None else self.post_weight_kg
        return UFInput(
            volume_removed_ml=self.uf_removed_ml,
            patient_weight_kg=weight or 0,
            duration_minutes=self.duration_minutes,
        )


# Derived results


class BPClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: BPCategory
    severity_rank: int = Field(ge=0)
    stage: Literal[1, 2] | None = None

    @property
    def label(self) -> str:
        return self.category.value


class BPTrend(BaseModel):
    """Direction of systolic pressure across the two most recent windows."""

    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    label: str
    difference: float = Field(description="Recent window mean minus prior window mean")


class VitalTrend(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    label: str
    percent_change: float = Field(ge=0.0)


class BPAverage(BaseModel):
    model_config = ConfigDict(frozen=True)

    systolic: int
    diastolic: int
    count: int = Field(gt=0)


class UFAlternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_minutes: float
    rate: float
    safety_level: SafetyLevel


class UFAssessment(BaseModel):
    """UF rate with its safety tier and planning hints."""

    model_config = ConfigDict(frozen=True)

    rate: float = Field(ge=0.0, description="ml/kg/hr")
    safety_level: SafetyLevel
    percent_of_target: int | None = None
    alternatives: list[UFAlternative] = Field(default_factory=list)


class DryWeightAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    difference_kg: float
    difference_percent: float = Field(ge=0.0)
    status: DryWeightStatus
    direction: TrendDirection = TrendDirection.STABLE
