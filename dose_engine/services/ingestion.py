"""
Ingestion guard: the last business check before a reading enters the ledger.

Rules, in order:
1. dose within the policy bounds (inclusive), else OutOfRangeDoseError
2. timestamp not strictly after now, else FutureTimestampError

Field shape is the API layer's job; persistence is the store's.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from dose_engine.config import DosePolicy
from dose_engine.domain.errors import (
    FutureTimestampError,
    OutOfRangeDoseError,
    ReadingValidationError,
)
from dose_engine.domain.models import DoseReading, ReadingCandidate, ensure_utc
from dose_engine.observability import logger
from dose_engine.services.ledger import Result


def utc_now() -> datetime:
    return datetime.now(UTC)


class IngestionGuard:
    def __init__(
        self,
        policy: DosePolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.policy = policy or DosePolicy()
        self.clock = clock
        self.logger = logger.bind(component="ingestion_guard")

    def validate(
        self, candidate: ReadingCandidate, now: datetime | None = None
    ) -> Result[DoseReading, ReadingValidationError]:
        now = ensure_utc(now if now is not None else self.clock())

        error: ReadingValidationError | None = None
        if not self.policy.min_dose <= candidate.dose_value <= self.policy.max_dose:
            error = OutOfRangeDoseError(
                candidate.dose_value, self.policy.min_dose, self.policy.max_dose
            )
        elif candidate.timestamp > now:
            error = FutureTimestampError(candidate.timestamp, now)

        if error is not None:
            self.logger.warning(
                "dose_reading_rejected",
                reason=type(error).__name__,
                worker_id=candidate.worker_id,
                job_id=candidate.job_id,
                dose=candidate.dose_value,
                timestamp=candidate.timestamp.isoformat(),
            )
            return Result.err(error)

        reading = DoseReading(**candidate.model_dump(), accepted_at=now)
        self.logger.info(
            "dose_reading_accepted",
            reading_id=reading.id,
            worker_id=reading.worker_id,
            job_id=reading.job_id,
            dose=reading.dose_value,
            timestamp=reading.timestamp.isoformat(),
        )
        return Result.ok(reading)

    def accept(self, candidate: ReadingCandidate, now: datetime | None = None) -> DoseReading:
        """Like ``validate`` but raises the ReadingValidationError instead of returning it."""
        return self.validate(candidate, now).unwrap()
