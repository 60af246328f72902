"""
Core services for the dose engine.

This package contains the ingestion guard, aggregator, forecaster,
threshold evaluator and the engine facade that composes them.
"""

from .aggregator import LedgerStatistics, aggregate
from .engine import DoseEngine
from .forecaster import DoseProjection, Forecaster
from .ingestion import IngestionGuard
from .ledger import (
    JobLookup,
    LedgerView,
    ReadingLedger,
    ReadingSink,
    Result,
    WorkerLookup,
)
from .thresholds import ThresholdAssessment, ThresholdEvaluator

__all__ = [
    "DoseEngine",
    "DoseProjection",
    "Forecaster",
    "IngestionGuard",
    "JobLookup",
    "LedgerStatistics",
    "LedgerView",
    "ReadingLedger",
    "ReadingSink",
    "Result",
    "ThresholdAssessment",
    "ThresholdEvaluator",
    "WorkerLookup",
    "aggregate",
]
