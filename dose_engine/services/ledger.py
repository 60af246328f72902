"""
Storage seams and the read-only reading ledger view.

Key patterns:
- Protocol-based dependency injection (no storage technology in the core)
- Generic Result type for expected, recoverable failures
- Stable time ordering enforced on read, whatever the store returns
"""

from collections.abc import Iterable, Iterator, Sequence
from typing import Generic, Protocol, TypeVar

from dose_engine.domain.models import DoseReading, Job, Worker

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Outcome of a check whose failure is an ordinary answer, not a fault.

    The ingestion guard returns one per candidate reading: the accepted
    ``DoseReading`` or the ``ReadingValidationError`` explaining the
    rejection. Callers that would rather raise use ``unwrap``.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if (value is None) == (error is None):
            raise ValueError("Result needs exactly one of value or error")
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return not self.is_ok()

    def unwrap(self) -> ValueT:
        """Return the accepted value, re-raising the rejection otherwise."""
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class JobLookup(Protocol):
    """Read access to job records."""

    async def get_job(self, job_id: str) -> Job | None: ...


class WorkerLookup(Protocol):
    """Read access to worker records."""

    async def get_worker(self, worker_id: str) -> Worker | None: ...


class ReadingLedger(Protocol):
    """
    Read access to accepted readings.

    Contract: readings come back in non-decreasing timestamp order, stable on
    ties (insertion order). Without ``worker_id`` the whole job is returned.
    """

    async def list_readings(
        self, job_id: str, worker_id: str | None = None
    ) -> Sequence[DoseReading]: ...


class ReadingSink(Protocol):
    """Append-only write access used after the ingestion guard accepts a reading."""

    async def append_reading(self, reading: DoseReading) -> None: ...


class LedgerView(Sequence[DoseReading]):
    """
    Immutable, time-ordered snapshot of one ledger read.

    ``sorted`` is stable, so readings sharing a timestamp keep the order the
    store delivered them in, which is insertion order.
    """

    def __init__(self, readings: Iterable[DoseReading]) -> None:
        self._readings: tuple[DoseReading, ...] = tuple(
            sorted(readings, key=lambda reading: reading.timestamp)
        )

    def __getitem__(self, index):  # type: ignore[override]
        return self._readings[index]

    def __len__(self) -> int:
        return len(self._readings)

    def __iter__(self) -> Iterator[DoseReading]:
        return iter(self._readings)

    def newest_first(self) -> list[DoseReading]:
        return list(reversed(self._readings))


async def read_ledger(
    ledger: ReadingLedger, job_id: str, worker_id: str | None = None
) -> LedgerView:
    """Fetch readings from the store and freeze them into a LedgerView."""
    return LedgerView(await ledger.list_readings(job_id, worker_id))
