"""
Configuration management with environment variable support and validation.

Design principles:
- Clinical defaults live in code, per-deployment overrides come from the environment
- Validation at startup (fail fast on inverted threshold bands)
- Type safety with Pydantic
"""

import logging
import os
from functools import lru_cache
from typing import Literal, TypeVar, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from dialysis_core.domain.models import BPThresholds, UFThresholds
from dialysis_core.services.units import FluidUnit, WeightUnit

# Load environment variables from .env file
load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
UnitT = TypeVar("UnitT", WeightUnit, FluidUnit)


class ClinicalConfig(BaseModel):
    """Default clinical thresholds used when a patient has not set their own."""

    bp_thresholds: BPThresholds = Field(default_factory=BPThresholds)
    uf_thresholds: UFThresholds = Field(default_factory=UFThresholds)

    @model_validator(mode="after")
    def bp_bands_ascending(self) -> "ClinicalConfig":
        t = self.bp_thresholds
        if not (t.normal_sys <= t.elevated_sys <= t.stage1_sys < t.stage2_sys):
            raise ValueError("systolic thresholds must ascend from normal to stage 2")
        if not (t.normal_dia <= t.stage1_dia < t.stage2_dia):
            raise ValueError("diastolic thresholds must ascend from normal to stage 2")
        return self


class UnitsConfig(BaseModel):
    """Default display units for new patients."""

    weight_unit: WeightUnit = Field(default=WeightUnit.KG)
    fluid_unit: FluidUnit = Field(default=FluidUnit.ML)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    clinical: ClinicalConfig = Field(default_factory=ClinicalConfig)
    units: UnitsConfig = Field(default_factory=UnitsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> LogLevel:
    v = val.strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _enum_env(name: str, enum_type: type[UnitT], default: UnitT) -> UnitT:
    raw = os.getenv(name, "").strip().lower()
    try:
        return enum_type(raw)
    except ValueError:
        return default


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    defaults = BPThresholds()
    bp_thresholds = BPThresholds(
        normal_sys=_float_env("BP_NORMAL_SYS", defaults.normal_sys),
        normal_dia=_float_env("BP_NORMAL_DIA", defaults.normal_dia),
        elevated_sys=_float_env("BP_ELEVATED_SYS", defaults.elevated_sys),
        elevated_dia=_float_env("BP_ELEVATED_DIA", defaults.elevated_dia),
        stage1_sys=_float_env("BP_STAGE1_SYS", defaults.stage1_sys),
        stage1_dia=_float_env("BP_STAGE1_DIA", defaults.stage1_dia),
        stage2_sys=_float_env("BP_STAGE2_SYS", defaults.stage2_sys),
        stage2_dia=_float_env("BP_STAGE2_DIA", defaults.stage2_dia),
    )
    uf_thresholds = UFThresholds(
        safe_below=_float_env("UF_SAFE_THRESHOLD", 10.0),
        caution_below=_float_env("UF_CAUTION_THRESHOLD", 13.0),
    )

    units_config = UnitsConfig(
        weight_unit=_enum_env("WEIGHT_UNIT", WeightUnit, WeightUnit.KG),
        fluid_unit=_enum_env("FLUID_UNIT", FluidUnit, FluidUnit.ML),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        clinical=ClinicalConfig(bp_thresholds=bp_thresholds, uf_thresholds=uf_thresholds),
        units=units_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def reset_config_cache() -> None:
    get_config.cache_clear()


def configure_logging(config: LoggingConfig) -> None:
    """Configure structlog for the process (call once at startup)."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, config.level))

    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def validate_config() -> AppConfig:
    """Validate configuration at startup."""
    logger = structlog.get_logger(__name__)
    try:
        config = get_config()
    except ValueError as e:
        logger.error("configuration_invalid", error=str(e))
        raise

    logger.info(
        "configuration_loaded",
        environment=config.environment,
        log_level=config.logging.level,
        uf_safe_below=config.clinical.uf_thresholds.safe_below,
    )
    return config
