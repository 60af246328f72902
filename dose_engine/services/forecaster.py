"""
Linear dose extrapolation over the job and the reference shift.

The observed average rate (total dose over elapsed job time) is projected
forward over the remaining job time and, separately, over what is left of a
fixed reference shift that starts with the job.
"""

from dataclasses import dataclass
from datetime import datetime

from dose_engine.config import DosePolicy
from dose_engine.domain.models import ensure_utc


@dataclass(frozen=True)
class DoseProjection:
    """Full-precision time and rate fields of a forecast."""

    current_dose: float
    elapsed_minutes: float
    remaining_minutes: float
    hourly_rate: float
    forecast_end_of_shift: float
    forecast_end_of_job: float


class Forecaster:
    def __init__(self, policy: DosePolicy | None = None) -> None:
        self.policy = policy or DosePolicy()

    def project(
        self,
        start_time: datetime,
        planned_duration_minutes: int,
        total_dose: float,
        now: datetime,
    ) -> DoseProjection:
        # now before start_time (clock skew, future job) clamps to zero
        elapsed = max(0.0, (ensure_utc(now) - ensure_utc(start_time)).total_seconds() / 60.0)
        remaining = max(0.0, planned_duration_minutes - elapsed)

        hourly_rate = (total_dose / elapsed) * 60.0 if elapsed > 0 else 0.0
        per_minute = hourly_rate / 60.0

        shift_minutes = self.policy.shift_minutes
        shift_elapsed = min(elapsed, shift_minutes)
        shift_remaining = max(0.0, shift_minutes - shift_elapsed)

        return DoseProjection(
            current_dose=total_dose,
            elapsed_minutes=elapsed,
            remaining_minutes=remaining,
            hourly_rate=hourly_rate,
            forecast_end_of_shift=total_dose + per_minute * shift_remaining,
            forecast_end_of_job=total_dose + per_minute * remaining,
        )

    @staticmethod
    def empty(planned_duration_minutes: int) -> DoseProjection:
        """Projection for a ledger with no readings at all."""
        return DoseProjection(
            current_dose=0.0,
            elapsed_minutes=0.0,
            remaining_minutes=float(planned_duration_minutes),
            hourly_rate=0.0,
            forecast_end_of_shift=0.0,
            forecast_end_of_job=0.0,
        )
