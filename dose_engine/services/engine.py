"""
Dose engine facade: composes ledger reads, aggregation, forecasting and
threshold evaluation into Forecast and DoseSummary values.

Every call re-reads the ledger and recomputes from scratch. The engine holds
no mutable state, so concurrent calls need no coordination; two calls for
the same pair may see different ledger snapshots if a reading lands between
them.
"""

import math
from collections.abc import Callable
from datetime import datetime

from dose_engine.config import DosePolicy
from dose_engine.domain.errors import (
    JobNotFoundError,
    ReadingValidationError,
    SummaryComputationFailed,
    WorkerNotFoundError,
)
from dose_engine.domain.models import (
    DoseReading,
    DoseSummary,
    Forecast,
    Job,
    ReadingCandidate,
    Worker,
    ensure_utc,
)
from dose_engine.observability import logger
from dose_engine.services.aggregator import aggregate
from dose_engine.services.forecaster import DoseProjection, Forecaster
from dose_engine.services.ingestion import IngestionGuard, utc_now
from dose_engine.services.ledger import (
    JobLookup,
    LedgerView,
    ReadingLedger,
    ReadingSink,
    Result,
    WorkerLookup,
    read_ledger,
)
from dose_engine.services.thresholds import (
    NO_ENTRIES_ASSESSMENT,
    ThresholdAssessment,
    ThresholdEvaluator,
)


def _whole_minutes(minutes: float) -> int:
    # halves round up: 2.5 -> 3, 476.5 -> 477
    return math.floor(minutes + 0.5)


class DoseEngine:
    """
    Entry point used by the API layer.

    Not-found errors from ``compute_forecast`` surface as-is. Summary
    operations wrap any failure in SummaryComputationFailed, keeping the
    original exception as its cause.
    """

    def __init__(
        self,
        jobs: JobLookup,
        workers: WorkerLookup,
        ledger: ReadingLedger,
        sink: ReadingSink | None = None,
        policy: DosePolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.jobs = jobs
        self.workers = workers
        self.ledger = ledger
        self.sink = sink
        self.policy = policy or DosePolicy()
        self.clock = clock
        self.guard = IngestionGuard(self.policy, clock)
        self.forecaster = Forecaster(self.policy)
        self.evaluator = ThresholdEvaluator(self.policy)
        self.logger = logger.bind(component="dose_engine")

    # -- ingestion ---------------------------------------------------------

    def validate_reading(
        self, candidate: ReadingCandidate, now: datetime | None = None
    ) -> Result[DoseReading, ReadingValidationError]:
        return self.guard.validate(candidate, now)

    async def record_reading(
        self, candidate: ReadingCandidate, now: datetime | None = None
    ) -> DoseReading:
        """Validate a candidate and append it through the configured sink."""
        if self.sink is None:
            raise RuntimeError("DoseEngine was created without a ReadingSink")
        reading = self.guard.accept(candidate, now)
        await self.sink.append_reading(reading)
        return reading

    async def list_job_readings(self, job_id: str, newest_first: bool = True) -> list[DoseReading]:
        await self._require_job(job_id)
        view = await read_ledger(self.ledger, job_id)
        self.logger.info("job_readings_listed", job_id=job_id, entry_count=len(view))
        return view.newest_first() if newest_first else list(view)

    # -- forecasting -------------------------------------------------------

    async def compute_forecast(
        self, job_id: str, worker_id: str, now: datetime | None = None
    ) -> Forecast:
        job = await self._require_job(job_id)
        return await self._forecast_for(job, worker_id, self._resolve_now(now))

    async def compute_job_summary(self, job_id: str, now: datetime | None = None) -> DoseSummary:
        """
        Statistics over every reading on the job, across all workers.

        The embedded forecast belongs to the job's supervisor: it covers the
        supervisor's own readings and is judged against the supervisor's
        annual limit.
        """
        now = self._resolve_now(now)
        try:
            job = await self._require_job(job_id)
            view = await read_ledger(self.ledger, job_id)
            forecast = await self._forecast_for(job, job.supervisor_id, now)
            return self._summarize(job_id, None, view, forecast)
        except Exception as e:
            self.logger.exception("job_summary_failed", job_id=job_id, error=str(e))
            raise SummaryComputationFailed(
                "Failed to get dose summary", cause=e, details={"job_id": job_id}
            ) from e

    async def compute_worker_summary(
        self, job_id: str, worker_id: str, now: datetime | None = None
    ) -> DoseSummary:
        """Statistics and forecast for a single (worker, job) ledger."""
        now = self._resolve_now(now)
        try:
            job = await self._require_job(job_id)
            worker = await self._require_worker(worker_id)
            view = await read_ledger(self.ledger, job_id, worker_id)
            forecast = self._build_forecast(job, worker, view, now)
            return self._summarize(job_id, worker_id, view, forecast)
        except Exception as e:
            self.logger.exception(
                "worker_summary_failed", job_id=job_id, worker_id=worker_id, error=str(e)
            )
            raise SummaryComputationFailed(
                "Failed to get dose summary",
                cause=e,
                details={"job_id": job_id, "worker_id": worker_id},
            ) from e

    # -- internals ---------------------------------------------------------

    def _resolve_now(self, now: datetime | None) -> datetime:
        return ensure_utc(now if now is not None else self.clock())

    async def _require_job(self, job_id: str) -> Job:
        job = await self.jobs.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def _require_worker(self, worker_id: str) -> Worker:
        worker = await self.workers.get_worker(worker_id)
        if worker is None:
            raise WorkerNotFoundError(worker_id)
        return worker

    async def _forecast_for(self, job: Job, worker_id: str, now: datetime) -> Forecast:
        worker = await self._require_worker(worker_id)
        view = await read_ledger(self.ledger, job.id, worker_id)
        return self._build_forecast(job, worker, view, now)

    def _build_forecast(
        self, job: Job, worker: Worker, view: LedgerView, now: datetime
    ) -> Forecast:
        stats = aggregate(view)
        if stats.is_empty:
            # no readings yet: threshold checks are skipped
            projection = self.forecaster.empty(job.planned_duration_minutes)
            assessment = NO_ENTRIES_ASSESSMENT
        else:
            projection = self.forecaster.project(
                job.start_time, job.planned_duration_minutes, stats.total_dose, now
            )
            assessment = self.evaluator.evaluate(
                projection.current_dose,
                projection.hourly_rate,
                projection.forecast_end_of_job,
                worker.annual_limit,
            )

        forecast = self._to_forecast(projection, assessment)
        self.logger.info(
            "forecast_computed",
            job_id=job.id,
            worker_id=worker.id,
            entry_count=len(view),
            current_dose=forecast.current_dose,
            forecast_end_of_job=forecast.forecast_end_of_job,
            is_on_track=forecast.is_on_track,
            alert_status=forecast.alert_status.value,
        )
        if not stats.is_empty and assessment.findings:
            self.logger.warning(
                "dose_thresholds_crossed",
                job_id=job.id,
                worker_id=worker.id,
                warnings=forecast.warnings,
            )
        return forecast

    def _to_forecast(self, projection: DoseProjection, assessment: ThresholdAssessment) -> Forecast:
        decimals = self.policy.output_decimals
        return Forecast(
            current_dose=round(projection.current_dose, decimals),
            elapsed_minutes=_whole_minutes(projection.elapsed_minutes),
            remaining_minutes=_whole_minutes(projection.remaining_minutes),
            forecast_end_of_shift=round(projection.forecast_end_of_shift, decimals),
            forecast_end_of_job=round(projection.forecast_end_of_job, decimals),
            hourly_rate=round(projection.hourly_rate, decimals),
            is_on_track=assessment.is_on_track,
            warnings=assessment.warnings,
            findings=list(assessment.findings),
            alert_status=assessment.alert_status,
        )

    def _summarize(
        self, job_id: str, worker_id: str | None, view: LedgerView, forecast: Forecast
    ) -> DoseSummary:
        stats = aggregate(view).rounded(self.policy.output_decimals)
        self.logger.info(
            "dose_summary_computed",
            job_id=job_id,
            worker_id=worker_id,
            entry_count=stats.entry_count,
            total_dose=stats.total_dose,
        )
        return DoseSummary(
            job_id=job_id,
            worker_id=worker_id,
            total_dose=stats.total_dose,
            average_dose=stats.average_dose,
            variance=stats.variance,
            entry_count=stats.entry_count,
            last_entry_timestamp=stats.last_entry_timestamp,
            forecast=forecast,
        )
