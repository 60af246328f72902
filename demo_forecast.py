"""
End-to-end demonstration of the dose engine against the in-memory store.

This script walks through:
1. Configuration loading and validation
2. Reading ingestion, including rejected readings
3. Per-worker forecast for a job
4. Job-level summary (forecast against the supervisor)
5. Error handling for unknown jobs

Run with: uv run python demo_forecast.py
"""

import asyncio
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.memory.store import InMemoryDoseStore
from dose_engine.config import get_config
from dose_engine.domain.errors import ReadingValidationError, SummaryComputationFailed
from dose_engine.domain.models import Forecast, Job, ReadingCandidate, Worker
from dose_engine.observability import configure_logging
from dose_engine.services.engine import DoseEngine

console = Console()

JOB_START = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)
NOW = JOB_START + timedelta(minutes=180)


def build_engine() -> tuple[DoseEngine, InMemoryDoseStore]:
    config = get_config()
    store = InMemoryDoseStore(
        jobs=[
            Job(
                id="job-1",
                job_number="RX-001",
                site="Reactor hall B",
                description="Steam generator inspection",
                start_time=JOB_START,
                planned_duration_minutes=480,
                supervisor_id="sup-1",
                status="in_progress",
            )
        ],
        workers=[
            Worker(id="sup-1", name="Supervisor", role="supervisor", annual_limit=50.0),
            Worker(id="wrk-1", name="Technician", annual_limit=20.0),
        ],
    )
    engine = DoseEngine(store, store, store, sink=store, policy=config.policy, clock=lambda: NOW)
    return engine, store


def forecast_table(title: str, forecast: Forecast) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Current dose (mSv)", f"{forecast.current_dose:.4f}")
    table.add_row("Elapsed (min)", str(forecast.elapsed_minutes))
    table.add_row("Remaining (min)", str(forecast.remaining_minutes))
    table.add_row("Hourly rate (mSv/h)", f"{forecast.hourly_rate:.4f}")
    table.add_row("End of shift (mSv)", f"{forecast.forecast_end_of_shift:.4f}")
    table.add_row("End of job (mSv)", f"{forecast.forecast_end_of_job:.4f}")
    table.add_row("On track", "yes" if forecast.is_on_track else "NO")
    table.add_row("Status", forecast.alert_status.value.upper())
    table.add_row("Warnings", "\n".join(forecast.warnings) or "-")
    return table


async def demo_ingestion(engine: DoseEngine) -> None:
    console.print(Panel("Recording dose readings", style="blue"))
    candidates = [
        ReadingCandidate(
            worker_id="sup-1", job_id="job-1", timestamp=JOB_START + timedelta(minutes=60),
            dose_value=0.5, source_instrument="EPD", instrument_serial="EPD-0042", location="Bay 1",
        ),
        ReadingCandidate(
            worker_id="sup-1", job_id="job-1", timestamp=JOB_START + timedelta(minutes=120),
            dose_value=1.0, source_instrument="EPD", instrument_serial="EPD-0042", location="Bay 1",
        ),
        ReadingCandidate(
            worker_id="wrk-1", job_id="job-1", timestamp=JOB_START + timedelta(minutes=90),
            dose_value=4.5, source_instrument="EPD", instrument_serial="EPD-0107", location="Bay 2",
        ),
        ReadingCandidate(
            worker_id="wrk-1", job_id="job-1", timestamp=JOB_START + timedelta(minutes=150),
            dose_value=1200.0, source_instrument="EPD", instrument_serial="EPD-0107",
            location="Bay 2",
        ),
        ReadingCandidate(
            worker_id="wrk-1", job_id="job-1", timestamp=NOW + timedelta(minutes=5),
            dose_value=0.2, source_instrument="EPD", instrument_serial="EPD-0107", location="Bay 2",
        ),
    ]
    for candidate in candidates:
        try:
            reading = await engine.record_reading(candidate)
            console.print(
                f"✅ accepted {reading.dose_value} mSv for {reading.worker_id}", style="green"
            )
        except ReadingValidationError as e:
            console.print(f"❌ rejected {candidate.dose_value} mSv: {e.message}", style="red")


async def demo_forecasts(engine: DoseEngine) -> None:
    console.print(Panel("Forecasts", style="blue"))
    for worker_id in ("sup-1", "wrk-1"):
        forecast = await engine.compute_forecast("job-1", worker_id)
        console.print(forecast_table(f"Forecast for {worker_id}", forecast))

    summary = await engine.compute_job_summary("job-1")
    table = Table(title="Job summary job-1")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Total dose (mSv)", f"{summary.total_dose:.4f}")
    table.add_row("Average dose (mSv)", f"{summary.average_dose:.4f}")
    table.add_row("Variance", f"{summary.variance:.4f}")
    table.add_row("Entries", str(summary.entry_count))
    last_entry = summary.last_entry_timestamp
    table.add_row("Last entry", last_entry.isoformat() if last_entry else "-")
    table.add_row("Supervisor on track", "yes" if summary.forecast.is_on_track else "NO")
    console.print(table)


async def demo_errors(engine: DoseEngine) -> None:
    console.print(Panel("Error handling", style="blue"))
    try:
        await engine.compute_job_summary("job-missing")
    except SummaryComputationFailed as e:
        console.print(
            f"Summary failed as expected: {type(e.cause).__name__} (retryable={e.retryable})",
            style="yellow",
        )


async def main() -> None:
    configure_logging(get_config().logging)
    engine, _ = build_engine()
    await demo_ingestion(engine)
    await demo_forecasts(engine)
    await demo_errors(engine)


if __name__ == "__main__":
    asyncio.run(main())
