"""Reduce a ledger view into cumulative dose statistics."""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from dose_engine.domain.models import DoseReading


@dataclass(frozen=True)
class LedgerStatistics:
    """Full-precision statistics; round only via ``rounded``."""

    total_dose: float
    average_dose: float
    variance: float
    entry_count: int
    last_entry_timestamp: datetime | None

    @property
    def is_empty(self) -> bool:
        return self.entry_count == 0

    def rounded(self, decimals: int = 4) -> "LedgerStatistics":
        return LedgerStatistics(
            total_dose=round(self.total_dose, decimals),
            average_dose=round(self.average_dose, decimals),
            variance=round(self.variance, decimals),
            entry_count=self.entry_count,
            last_entry_timestamp=self.last_entry_timestamp,
        )


EMPTY_STATISTICS = LedgerStatistics(
    total_dose=0.0, average_dose=0.0, variance=0.0, entry_count=0, last_entry_timestamp=None
)


def aggregate(readings: Iterable[DoseReading]) -> LedgerStatistics:
    """
    Compute total, mean and population variance of the readings.

    ``readings`` must already be in ledger order; the last one supplies
    ``last_entry_timestamp``.
    """
    entries = list(readings)
    if not entries:
        return EMPTY_STATISTICS

    doses = [entry.dose_value for entry in entries]
    count = len(doses)
    total = math.fsum(doses)
    mean = total / count
    variance = math.fsum((dose - mean) ** 2 for dose in doses) / count

    return LedgerStatistics(
        total_dose=total,
        average_dose=mean,
        variance=variance,
        entry_count=count,
        last_entry_timestamp=entries[-1].timestamp,
    )
