"""Shared fixtures: a fixed job timeline and an engine over the in-memory store."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from adapters.memory.store import InMemoryDoseStore
from dose_engine.domain.models import DoseReading, Job, Worker
from dose_engine.services.engine import DoseEngine

JOB_START = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def job_start() -> datetime:
    return JOB_START


@pytest.fixture
def at() -> Callable[[float], datetime]:
    """Instant ``minutes`` after the job start."""

    def _at(minutes: float) -> datetime:
        return JOB_START + timedelta(minutes=minutes)

    return _at


@pytest.fixture
def make_reading() -> Callable[..., DoseReading]:
    def _make(
        dose: float,
        minutes: float,
        worker_id: str = "sup-1",
        job_id: str = "job-1",
        reading_id: str | None = None,
    ) -> DoseReading:
        extra = {"id": reading_id} if reading_id else {}
        return DoseReading(
            worker_id=worker_id,
            job_id=job_id,
            timestamp=JOB_START + timedelta(minutes=minutes),
            dose_value=dose,
            source_instrument="EPD",
            instrument_serial="EPD-0001",
            location="Bay 1",
            **extra,
        )

    return _make


@pytest.fixture
def store() -> InMemoryDoseStore:
    return InMemoryDoseStore(
        jobs=[
            Job(
                id="job-1",
                job_number="RX-001",
                site="Reactor hall B",
                start_time=JOB_START,
                planned_duration_minutes=480,
                supervisor_id="sup-1",
                status="in_progress",
            ),
            Job(
                id="job-orphan",
                start_time=JOB_START,
                planned_duration_minutes=120,
                supervisor_id="sup-missing",
            ),
        ],
        workers=[
            Worker(id="sup-1", name="Supervisor", role="supervisor", annual_limit=50.0),
            Worker(id="wrk-1", name="Technician", annual_limit=20.0),
        ],
    )


@pytest.fixture
def engine(store: InMemoryDoseStore) -> DoseEngine:
    now = JOB_START + timedelta(minutes=180)
    return DoseEngine(store, store, store, sink=store, clock=lambda: now)
