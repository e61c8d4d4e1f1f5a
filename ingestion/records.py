"""
Canonical daily record shape shared by ingestion, storage and analysis.
One record per calendar date: invested principal, share value and benchmark levels.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Optional, Sequence, Tuple, List


@dataclass(frozen=True)
class DailyRecord:
    """
    Portfolio snapshot for a single date.

    Attributes:
        date: Calendar date (unique key within a series)
        principal: Cumulative invested capital (non-negative)
        share_value: Net asset value per unit (positive once normalized,
            None only before share-value derivation)
        benchmarks: Benchmark key -> index level (None when not observed)
        market_value: Total market value, when supplied or derived
        units: Units outstanding, when supplied or derived
    """
    date: date
    principal: float
    share_value: Optional[float]
    benchmarks: Dict[str, Optional[float]] = field(default_factory=dict)
    market_value: Optional[float] = None
    units: Optional[float] = None

    def benchmark(self, name: str) -> Optional[float]:
        """Level for a benchmark, None if absent or non-positive."""
        value = self.benchmarks.get(name)
        if value is None or value <= 0:
            return None
        return value

    def with_updates(self, **changes) -> 'DailyRecord':
        """Copy of this record with the given fields replaced."""
        return replace(self, **changes)


# Ordered, non-empty, immutable sequence of DailyRecord
Series = Tuple[DailyRecord, ...]


def share_values(series: Sequence[DailyRecord]) -> List[float]:
    """Share values in series order (None mapped to 0.0)."""
    return [r.share_value if r.share_value is not None else 0.0 for r in series]


def record_dates(series: Sequence[DailyRecord]) -> List[date]:
    return [r.date for r in series]


def benchmark_names(series: Sequence[DailyRecord]) -> List[str]:
    """
    All benchmark keys present anywhere in the series.

    Keys keep first-seen order so output dictionaries are stable.
    """
    names: Dict[str, None] = {}
    for record in series:
        for name in record.benchmarks:
            names.setdefault(name, None)
    return list(names)


def benchmark_levels(series: Sequence[DailyRecord], name: str) -> List[Optional[float]]:
    """Levels for one benchmark in series order (None where absent)."""
    return [r.benchmark(name) for r in series]
