"""
Stateless classification of a forecast snapshot against safety thresholds.

Two fractions of the worker's annual limit are in play: crossing the
warning fraction (10% by default) only warns, while crossing the on-track
fraction (20% by default) flips ``is_on_track`` to False. The checks are
independent and any number of warnings may fire.
"""

from dataclasses import dataclass, field

from dose_engine.config import DosePolicy
from dose_engine.domain.models import (
    NO_ENTRIES_WARNING,
    AlertStatus,
    Finding,
    FindingCode,
    Severity,
)


@dataclass(frozen=True)
class ThresholdAssessment:
    is_on_track: bool
    findings: list[Finding] = field(default_factory=list)
    alert_status: AlertStatus = AlertStatus.NORMAL

    @property
    def warnings(self) -> list[str]:
        return [finding.message for finding in self.findings]


NO_ENTRIES_ASSESSMENT = ThresholdAssessment(
    is_on_track=True,
    findings=[
        Finding(code=FindingCode.NO_ENTRIES, severity=Severity.LOW, message=NO_ENTRIES_WARNING)
    ],
)


def _format_limit(value: float) -> str:
    # 50.0 -> "50", 123.4567 -> "123.4567"; never truncated
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


class ThresholdEvaluator:
    def __init__(self, policy: DosePolicy | None = None) -> None:
        self.policy = policy or DosePolicy()

    def evaluate(
        self,
        total_dose: float,
        hourly_rate: float,
        forecast_end_of_job: float,
        annual_limit: float,
    ) -> ThresholdAssessment:
        policy = self.policy
        findings: list[Finding] = []

        if forecast_end_of_job > policy.warning_fraction * annual_limit:
            findings.append(
                Finding(
                    code=FindingCode.ANNUAL_LIMIT_FRACTION,
                    severity=Severity.MEDIUM,
                    message=(
                        f"Forecast exceeds {policy.warning_fraction:.0%} of annual limit "
                        f"({_format_limit(annual_limit)} mSv)"
                    ),
                )
            )

        if hourly_rate > policy.high_rate_threshold:
            findings.append(
                Finding(
                    code=FindingCode.HIGH_DOSE_RATE,
                    severity=Severity.HIGH,
                    message=f"High dose rate detected: {hourly_rate:.2f} mSv/hour",
                )
            )

        is_on_track = forecast_end_of_job <= policy.on_track_fraction * annual_limit

        return ThresholdAssessment(
            is_on_track=is_on_track,
            findings=findings,
            alert_status=self._classify(
                total_dose, forecast_end_of_job, annual_limit, is_on_track, findings
            ),
        )

    @staticmethod
    def _classify(
        total_dose: float,
        forecast_end_of_job: float,
        annual_limit: float,
        is_on_track: bool,
        findings: list[Finding],
    ) -> AlertStatus:
        if total_dose > annual_limit or forecast_end_of_job > annual_limit:
            return AlertStatus.EXCEEDED
        if not is_on_track:
            return AlertStatus.CRITICAL
        if findings:
            return AlertStatus.WARNING
        return AlertStatus.NORMAL
