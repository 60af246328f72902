"""
In-memory store implementing the engine's lookup and ledger protocols.

Used by tests, demos and local development. Readings are append-only; each
gets a monotonically increasing insertion sequence so that readings with
equal timestamps come back in the order they were appended.
"""

import asyncio
from collections.abc import Iterable

import structlog

from dose_engine.domain.models import DoseReading, Job, Worker

logger = structlog.get_logger(__name__)


class InMemoryDoseStore:
    """
    Dict-backed JobLookup, WorkerLookup, ReadingLedger and ReadingSink.

    ``fail_reads`` simulates a store outage: every read raises
    ConnectionError, which lets callers exercise their retry paths.
    """

    def __init__(
        self,
        jobs: Iterable[Job] = (),
        workers: Iterable[Worker] = (),
        source_name: str = "memory",
    ) -> None:
        self.source_name = source_name
        self._jobs: dict[str, Job] = {job.id: job for job in jobs}
        self._workers: dict[str, Worker] = {worker.id: worker for worker in workers}
        self._readings: list[tuple[int, DoseReading]] = []
        self._sequence = 0
        self._append_lock = asyncio.Lock()
        self.fail_reads = False
        self.logger = logger.bind(source=source_name)

    def add_job(self, job: Job) -> None:
        self._jobs[job.id] = job

    def add_worker(self, worker: Worker) -> None:
        self._workers[worker.id] = worker

    def _check_available(self) -> None:
        if self.fail_reads:
            raise ConnectionError(f"Store {self.source_name} is unavailable")

    async def get_job(self, job_id: str) -> Job | None:
        self._check_available()
        return self._jobs.get(job_id)

    async def get_worker(self, worker_id: str) -> Worker | None:
        self._check_available()
        return self._workers.get(worker_id)

    async def list_readings(self, job_id: str, worker_id: str | None = None) -> list[DoseReading]:
        self._check_available()
        matching = [
            (sequence, reading)
            for sequence, reading in self._readings
            if reading.job_id == job_id and (worker_id is None or reading.worker_id == worker_id)
        ]
        matching.sort(key=lambda item: (item[1].timestamp, item[0]))
        return [reading for _, reading in matching]

    async def append_reading(self, reading: DoseReading) -> None:
        async with self._append_lock:
            self._sequence += 1
            sequence = self._sequence
            self._readings.append((sequence, reading))
        self.logger.info(
            "dose_reading_stored",
            reading_id=reading.id,
            worker_id=reading.worker_id,
            job_id=reading.job_id,
            sequence=sequence,
        )
