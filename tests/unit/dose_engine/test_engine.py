"""
Tests for the dose engine facade against the in-memory store.

Covers:
- Per-worker forecasts, including the empty-ledger short circuit
- Job summaries across workers with the supervisor's forecast embedded
- Error propagation and wrapping
- Recording and listing readings
"""

import asyncio
from collections.abc import Callable
from datetime import datetime

import pytest

from adapters.memory.store import InMemoryDoseStore
from dose_engine.domain.errors import (
    FutureTimestampError,
    JobNotFoundError,
    OutOfRangeDoseError,
    SummaryComputationFailed,
    WorkerNotFoundError,
)
from dose_engine.domain.models import (
    AlertStatus,
    DoseReading,
    Job,
    ReadingCandidate,
    Worker,
)
from dose_engine.services.engine import DoseEngine

ReadingFactory = Callable[..., DoseReading]
Instant = Callable[[float], datetime]

NO_ENTRIES = "No dose entries found for this job"


async def seed(store: InMemoryDoseStore, *readings: DoseReading) -> None:
    for reading in readings:
        await store.append_reading(reading)


class TestComputeForecast:
    async def test_three_hour_scenario(
        self, engine: DoseEngine, store: InMemoryDoseStore, make_reading: ReadingFactory
    ) -> None:
        await seed(store, make_reading(0.5, 60), make_reading(1.0, 120))

        forecast = await engine.compute_forecast("job-1", "sup-1")

        assert forecast.current_dose == 1.5
        assert forecast.elapsed_minutes == 180
        assert forecast.remaining_minutes == 300
        assert forecast.hourly_rate == pytest.approx(0.5)
        assert forecast.forecast_end_of_shift == pytest.approx(4.0)
        assert forecast.forecast_end_of_job == pytest.approx(4.0)
        assert forecast.is_on_track is True
        assert forecast.warnings == []
        assert forecast.alert_status == AlertStatus.NORMAL

    async def test_empty_ledger_short_circuit(self, engine: DoseEngine) -> None:
        forecast = await engine.compute_forecast("job-1", "sup-1")

        assert forecast.current_dose == 0
        assert forecast.elapsed_minutes == 0
        assert forecast.remaining_minutes == 480
        assert forecast.forecast_end_of_shift == 0
        assert forecast.forecast_end_of_job == 0
        assert forecast.hourly_rate == 0
        assert forecast.is_on_track is True
        assert forecast.warnings == [NO_ENTRIES]

    async def test_high_rate_in_first_hour(
        self,
        engine: DoseEngine,
        store: InMemoryDoseStore,
        make_reading: ReadingFactory,
        at: Instant,
    ) -> None:
        await seed(store, make_reading(5.0, 30))

        forecast = await engine.compute_forecast("job-1", "sup-1", now=at(60))

        assert forecast.hourly_rate == pytest.approx(5.0)
        assert "High dose rate detected: 5.00 mSv/hour" in forecast.warnings
        assert forecast.forecast_end_of_job == pytest.approx(40.0)
        assert forecast.is_on_track is False
        assert forecast.alert_status == AlertStatus.CRITICAL

    async def test_forecast_only_uses_the_workers_own_readings(
        self, engine: DoseEngine, store: InMemoryDoseStore, make_reading: ReadingFactory
    ) -> None:
        await seed(store, make_reading(0.5, 60), make_reading(4.5, 90, worker_id="wrk-1"))

        forecast = await engine.compute_forecast("job-1", "wrk-1")

        # 4.5 mSv over 180 min -> 1.5 mSv/h; 300 min left -> 12.0 mSv
        assert forecast.current_dose == 4.5
        assert forecast.hourly_rate == pytest.approx(1.5)
        assert forecast.forecast_end_of_job == pytest.approx(12.0)
        assert forecast.warnings == ["Forecast exceeds 10% of annual limit (20 mSv)"]
        assert forecast.is_on_track is False

    async def test_unknown_job_surfaces_as_is(self, engine: DoseEngine) -> None:
        with pytest.raises(JobNotFoundError):
            await engine.compute_forecast("job-missing", "sup-1")

    async def test_unknown_worker_surfaces_as_is(self, engine: DoseEngine) -> None:
        with pytest.raises(WorkerNotFoundError) as exc_info:
            await engine.compute_forecast("job-1", "nobody")

        assert exc_info.value.worker_id == "nobody"

    async def test_outputs_are_rounded_to_four_decimals(
        self,
        engine: DoseEngine,
        store: InMemoryDoseStore,
        make_reading: ReadingFactory,
        at: Instant,
    ) -> None:
        await seed(store, make_reading(1.0, 10))

        forecast = await engine.compute_forecast("job-1", "sup-1", now=at(70))

        # 1 mSv over 70 min -> 0.857142... mSv/h
        assert forecast.hourly_rate == 0.8571
        assert forecast.elapsed_minutes == 70

    @pytest.mark.parametrize(
        ("now_minutes", "elapsed", "remaining"),
        [(2.5, 3, 478), (3.5, 4, 477), (180.5, 181, 300)],
    )
    async def test_half_minutes_round_up(
        self,
        engine: DoseEngine,
        store: InMemoryDoseStore,
        make_reading: ReadingFactory,
        at: Instant,
        now_minutes: float,
        elapsed: int,
        remaining: int,
    ) -> None:
        await seed(store, make_reading(0.1, 1))

        forecast = await engine.compute_forecast("job-1", "sup-1", now=at(now_minutes))

        assert forecast.elapsed_minutes == elapsed
        assert forecast.remaining_minutes == remaining

    async def test_future_dated_job_clamps_elapsed_time(
        self, store: InMemoryDoseStore, make_reading: ReadingFactory, at: Instant
    ) -> None:
        store.add_job(
            Job(
                id="job-later",
                start_time=at(600),
                planned_duration_minutes=240,
                supervisor_id="sup-1",
            )
        )
        await seed(store, make_reading(2.0, 0, job_id="job-later"))
        engine = DoseEngine(store, store, store, clock=lambda: at(0))

        forecast = await engine.compute_forecast("job-later", "sup-1")

        assert forecast.elapsed_minutes == 0
        assert forecast.remaining_minutes == 240
        assert forecast.hourly_rate == 0
        assert forecast.forecast_end_of_job == 2.0


class TestComputeJobSummary:
    async def test_summary_spans_all_workers(
        self,
        engine: DoseEngine,
        store: InMemoryDoseStore,
        make_reading: ReadingFactory,
        at: Instant,
    ) -> None:
        await seed(
            store,
            make_reading(1.0, 120),
            make_reading(4.5, 90, worker_id="wrk-1"),
            make_reading(0.5, 60),
        )

        summary = await engine.compute_job_summary("job-1")

        assert summary.job_id == "job-1"
        assert summary.worker_id is None
        assert summary.total_dose == 6.0
        assert summary.average_dose == 2.0
        assert summary.variance == 3.1667
        assert summary.entry_count == 3
        assert summary.last_entry_timestamp == at(120)

    async def test_summary_embeds_supervisor_forecast(
        self, engine: DoseEngine, store: InMemoryDoseStore, make_reading: ReadingFactory
    ) -> None:
        await seed(
            store,
            make_reading(0.5, 60),
            make_reading(1.0, 120),
            make_reading(4.5, 90, worker_id="wrk-1"),
        )

        summary = await engine.compute_job_summary("job-1")

        assert summary.forecast.current_dose == 1.5
        assert summary.forecast.forecast_end_of_job == pytest.approx(4.0)
        assert summary.forecast.is_on_track is True

    async def test_empty_job_summary(self, engine: DoseEngine) -> None:
        summary = await engine.compute_job_summary("job-1")

        assert summary.total_dose == 0
        assert summary.average_dose == 0
        assert summary.variance == 0
        assert summary.entry_count == 0
        assert summary.last_entry_timestamp is None
        assert summary.forecast.warnings == [NO_ENTRIES]
        assert summary.forecast.remaining_minutes == 480

    async def test_unknown_job_is_wrapped(self, engine: DoseEngine) -> None:
        with pytest.raises(SummaryComputationFailed) as exc_info:
            await engine.compute_job_summary("job-missing")

        error = exc_info.value
        assert isinstance(error.cause, JobNotFoundError)
        assert error.__cause__ is error.cause
        assert error.retryable is False

    async def test_missing_supervisor_is_wrapped(self, engine: DoseEngine) -> None:
        with pytest.raises(SummaryComputationFailed) as exc_info:
            await engine.compute_job_summary("job-orphan")

        assert isinstance(exc_info.value.cause, WorkerNotFoundError)

    async def test_store_outage_is_retryable(
        self, engine: DoseEngine, store: InMemoryDoseStore
    ) -> None:
        store.fail_reads = True

        with pytest.raises(SummaryComputationFailed) as exc_info:
            await engine.compute_job_summary("job-1")

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert exc_info.value.retryable is True


class TestComputeWorkerSummary:
    async def test_pair_summary(
        self,
        engine: DoseEngine,
        store: InMemoryDoseStore,
        make_reading: ReadingFactory,
        at: Instant,
    ) -> None:
        await seed(
            store,
            make_reading(0.5, 60),
            make_reading(3.0, 90, worker_id="wrk-1"),
            make_reading(1.5, 150, worker_id="wrk-1"),
        )

        summary = await engine.compute_worker_summary("job-1", "wrk-1")

        assert summary.worker_id == "wrk-1"
        assert summary.total_dose == 4.5
        assert summary.average_dose == 2.25
        assert summary.variance == 0.5625
        assert summary.entry_count == 2
        assert summary.last_entry_timestamp == at(150)
        assert summary.forecast.current_dose == 4.5
        assert summary.forecast.alert_status == AlertStatus.CRITICAL

    async def test_unknown_worker_is_wrapped(self, engine: DoseEngine) -> None:
        with pytest.raises(SummaryComputationFailed) as exc_info:
            await engine.compute_worker_summary("job-1", "nobody")

        assert isinstance(exc_info.value.cause, WorkerNotFoundError)


class TestReadings:
    def _candidate(self, at: Instant, dose: float, minutes: float) -> ReadingCandidate:
        return ReadingCandidate(
            worker_id="sup-1",
            job_id="job-1",
            timestamp=at(minutes),
            dose_value=dose,
            source_instrument="EPD",
            instrument_serial="EPD-0001",
            location="Bay 1",
        )

    async def test_record_then_forecast(self, engine: DoseEngine, at: Instant) -> None:
        await engine.record_reading(self._candidate(at, 0.5, 60))
        await engine.record_reading(self._candidate(at, 1.0, 120))

        forecast = await engine.compute_forecast("job-1", "sup-1")

        assert forecast.current_dose == 1.5

    async def test_rejected_readings_are_not_stored(self, engine: DoseEngine, at: Instant) -> None:
        with pytest.raises(OutOfRangeDoseError):
            await engine.record_reading(self._candidate(at, 1000.0001, 60))
        with pytest.raises(FutureTimestampError):
            await engine.record_reading(self._candidate(at, 1.0, 181))

        assert await engine.list_job_readings("job-1") == []

    def test_validate_reading_returns_result(self, engine: DoseEngine, at: Instant) -> None:
        assert engine.validate_reading(self._candidate(at, 1000.0, 60)).is_ok()
        assert engine.validate_reading(self._candidate(at, -0.0001, 60)).is_err()

    async def test_record_without_sink_fails(self, store: InMemoryDoseStore, at: Instant) -> None:
        engine = DoseEngine(store, store, store, clock=lambda: at(180))

        with pytest.raises(RuntimeError, match="ReadingSink"):
            await engine.record_reading(self._candidate(at, 1.0, 60))

    async def test_list_job_readings_newest_first(
        self, engine: DoseEngine, store: InMemoryDoseStore, make_reading: ReadingFactory
    ) -> None:
        await seed(
            store,
            make_reading(1.0, 60, reading_id="a"),
            make_reading(2.0, 30, reading_id="b", worker_id="wrk-1"),
            make_reading(3.0, 60, reading_id="c"),
        )

        newest = await engine.list_job_readings("job-1")
        oldest = await engine.list_job_readings("job-1", newest_first=False)

        assert [r.id for r in oldest] == ["b", "a", "c"]
        assert [r.id for r in newest] == ["c", "a", "b"]

    async def test_list_readings_for_unknown_job(self, engine: DoseEngine) -> None:
        with pytest.raises(JobNotFoundError):
            await engine.list_job_readings("job-missing")

    async def test_concurrent_appends_keep_every_reading(
        self, engine: DoseEngine, store: InMemoryDoseStore, make_reading: ReadingFactory
    ) -> None:
        readings = [make_reading(0.1, 60, reading_id=f"r{i}") for i in range(20)]

        await asyncio.gather(*(store.append_reading(r) for r in readings))
        summary = await engine.compute_job_summary("job-1")

        assert summary.entry_count == 20
        assert summary.total_dose == 2.0


async def test_concurrent_forecasts_are_independent(
    engine: DoseEngine, store: InMemoryDoseStore, make_reading: ReadingFactory
) -> None:
    store.add_worker(Worker(id="wrk-2", annual_limit=50.0))
    await seed(store, make_reading(0.5, 60), make_reading(3.0, 90, worker_id="wrk-2"))

    results = await asyncio.gather(
        engine.compute_forecast("job-1", "sup-1"),
        engine.compute_forecast("job-1", "wrk-2"),
        engine.compute_forecast("job-1", "sup-1", now=engine.clock()),
    )

    assert results[0] == results[2]
    assert results[1].current_dose == 3.0
