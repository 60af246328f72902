"""
Error taxonomy for the dose engine.

Exception Hierarchy:
    DoseEngineError (base)
    ├── ReadingValidationError      - bad candidate reading (caller fixes input)
    │   ├── OutOfRangeDoseError
    │   └── FutureTimestampError
    ├── NotFoundError               - job or worker id does not resolve
    │   ├── JobNotFoundError
    │   └── WorkerNotFoundError
    └── SummaryComputationFailed    - wrapper raised by summary assembly

Only SummaryComputationFailed is eligible for caller-side retry, and only
when its cause is not itself a validation or not-found error. The engine
performs no writes while summarising, so retries are idempotent.
"""

from datetime import datetime
from typing import Any


class DoseEngineError(Exception):
    """Base exception for all dose engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ReadingValidationError(DoseEngineError):
    """A candidate reading broke an ingestion rule."""


class OutOfRangeDoseError(ReadingValidationError):
    def __init__(self, dose_value: float, min_dose: float, max_dose: float) -> None:
        message = f"Invalid dose value: must be between {min_dose:g} and {max_dose:g} mSv"
        super().__init__(
            message,
            {"dose_value": dose_value, "min_dose": min_dose, "max_dose": max_dose},
        )
        self.dose_value = dose_value


class FutureTimestampError(ReadingValidationError):
    def __init__(self, timestamp: datetime, now: datetime) -> None:
        super().__init__(
            "Dose entry timestamp cannot be in the future",
            {"timestamp": timestamp.isoformat(), "now": now.isoformat()},
        )
        self.timestamp = timestamp


class NotFoundError(DoseEngineError):
    """A referenced record does not exist in the store."""


class JobNotFoundError(NotFoundError):
    def __init__(self, job_id: str) -> None:
        super().__init__("Job not found", {"job_id": job_id})
        self.job_id = job_id


class WorkerNotFoundError(NotFoundError):
    def __init__(self, worker_id: str) -> None:
        super().__init__("Worker not found", {"worker_id": worker_id})
        self.worker_id = worker_id


class SummaryComputationFailed(DoseEngineError):
    """
    Summary assembly failed.

    The original exception is kept both as ``cause`` and as ``__cause__``
    (raised with ``from``) so it reaches the logs intact.
    """

    def __init__(self, message: str, cause: BaseException, details: dict[str, Any] | None = None):
        error_details = dict(details or {})
        error_details["cause"] = type(cause).__name__
        super().__init__(message, error_details)
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return not isinstance(self.cause, NotFoundError | ReadingValidationError)
