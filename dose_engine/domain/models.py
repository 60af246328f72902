"""
Domain models for dose accumulation and forecasting.

These models represent the core business concepts and are framework-agnostic.
Inputs (Worker, Job, DoseReading) are immutable for the duration of a
computation; outputs (Forecast, DoseSummary) are built fresh on every call.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_ENTRIES_WARNING = "No dose entries found for this job"


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Severity(str, Enum):
    """Finding severity levels, shared with the alerting layer."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertStatus(str, Enum):
    """Overall dose classification handed to notification delivery."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


class FindingCode(str, Enum):
    NO_ENTRIES = "no_entries"
    ANNUAL_LIMIT_FRACTION = "annual_limit_fraction"
    HIGH_DOSE_RATE = "high_dose_rate"


class Worker(BaseModel):
    """A person accumulating dose, with their personal annual ceiling."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(default="", max_length=100)
    employee_id: str = Field(default="", max_length=20)
    role: Literal["worker", "supervisor", "rpo", "admin"] = "worker"
    annual_limit: float = Field(
        default=50.0, gt=0.0, le=1000.0, description="Annual dose limit in mSv"
    )
    is_active: bool = True


class Job(BaseModel):
    """A time-bounded job that workers log readings against."""

    model_config = ConfigDict(frozen=True)

    id: str
    job_number: str = Field(default="", max_length=20)
    site: str = Field(default="", max_length=100)
    description: str = ""
    start_time: datetime
    planned_duration_minutes: int = Field(gt=0, le=1440)
    supervisor_id: str
    status: Literal["planned", "in_progress", "completed", "cancelled"] = "planned"

    @field_validator("start_time")
    @classmethod
    def _start_time_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ReadingCandidate(BaseModel):
    """
    A reading as handed over by the ingestion API.

    Field shape only: dose bounds and the future-timestamp rule belong to the
    ingestion guard, so out-of-range values must still construct here.
    """

    model_config = ConfigDict(frozen=True)

    worker_id: str
    job_id: str
    timestamp: datetime
    dose_value: float = Field(description="Dose in mSv")
    source_instrument: str = ""
    instrument_serial: str = ""
    location: str = ""
    notes: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class DoseReading(ReadingCandidate):
    """An accepted, immutable ledger entry."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    accepted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Finding(BaseModel):
    """Structured counterpart of a human-readable forecast warning."""

    model_config = ConfigDict(frozen=True)

    code: FindingCode
    severity: Severity
    message: str


class Forecast(BaseModel):
    """Linear extrapolation of a worker's dose for one job."""

    current_dose: float
    elapsed_minutes: int = Field(ge=0)
    remaining_minutes: int = Field(ge=0)
    forecast_end_of_shift: float
    forecast_end_of_job: float
    hourly_rate: float = Field(ge=0.0, description="mSv per hour")
    is_on_track: bool
    warnings: list[str] = Field(default_factory=list)
    findings: list[Finding] = Field(default_factory=list)
    alert_status: AlertStatus = AlertStatus.NORMAL


class DoseSummary(BaseModel):
    """Ledger statistics plus the embedded forecast."""

    job_id: str
    worker_id: str | None = None
    total_dose: float
    average_dose: float
    variance: float
    entry_count: int = Field(ge=0)
    last_entry_timestamp: datetime | None = None
    forecast: Forecast
