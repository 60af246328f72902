"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Safety policy passed explicitly into the engine, never read as a global
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class DosePolicy(BaseModel):
    """Safety thresholds and bounds used by the guard, forecaster and evaluator."""

    warning_fraction: float = Field(
        default=0.10, gt=0.0, le=1.0, description="Fraction of annual limit that triggers a warning"
    )
    on_track_fraction: float = Field(
        default=0.20,
        gt=0.0,
        le=1.0,
        description="Fraction of annual limit above which a job is off track",
    )
    high_rate_threshold: float = Field(
        default=2.0, gt=0.0, description="Dose rate (mSv/hour) above which a warning fires"
    )
    shift_minutes: int = Field(
        default=480, gt=0, le=1440, description="Reference shift length for end-of-shift forecasts"
    )

    # Ingestion bounds (inclusive)
    min_dose: float = Field(default=0.0, ge=0.0, description="Smallest accepted reading in mSv")
    max_dose: float = Field(default=1000.0, gt=0.0, description="Largest accepted reading in mSv")

    output_decimals: int = Field(default=4, ge=0, le=10, description="Rounding of reported doses")

    @model_validator(mode="after")
    def check_ordering(self) -> "DosePolicy":
        if self.on_track_fraction < self.warning_fraction:
            raise ValueError("on_track_fraction must not be below warning_fraction")
        if self.max_dose <= self.min_dose:
            raise ValueError("max_dose must be greater than min_dose")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    policy: DosePolicy = Field(default_factory=DosePolicy)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    policy = DosePolicy(
        warning_fraction=float(os.getenv("DOSE_WARNING_FRACTION", "0.10")),
        on_track_fraction=float(os.getenv("DOSE_ON_TRACK_FRACTION", "0.20")),
        high_rate_threshold=float(os.getenv("DOSE_HIGH_RATE_THRESHOLD", "2.0")),
        shift_minutes=int(os.getenv("DOSE_SHIFT_MINUTES", "480")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        policy=policy,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
