"""
Calendar bucket utilities.
Pure functions for annual/quarterly/monthly returns, best/worst rankings and seasonality.
"""

import numpy as np
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from analysis.calculations.returns import total_return

PERIODS = ('year', 'quarter', 'month')
DEFAULT_TOP_K = 5

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


class CalendarError(Exception):
    """Raised when calendar bucketing inputs are invalid."""
    pass


def bucket_key(day: date, period: str) -> str:
    """
    Calendar bucket for a date.

    Returns:
        'YYYY', 'YYYY-Qn' or 'YYYY-MM'

    Raises:
        CalendarError: If period is not year, quarter or month
    """
    if period == 'year':
        return f"{day.year}"
    if period == 'quarter':
        return f"{day.year}-Q{(day.month - 1) // 3 + 1}"
    if period == 'month':
        return f"{day.year}-{day.month:02d}"
    raise CalendarError(f"Unknown period {period!r}, expected one of {PERIODS}")


def period_returns(
    values: Sequence[float],
    dates: Sequence[date],
    period: str,
    benchmarks: Optional[Dict[str, Sequence[Optional[float]]]] = None
) -> List[Dict[str, Any]]:
    """
    Return of each calendar bucket from its first and last record.

    Buckets with fewer than 2 records are excluded, not zero-filled. A
    benchmark return is None unless the benchmark has a positive level at both
    ends of the bucket.

    Args:
        values: Share values in chronological order
        dates: Corresponding dates (ascending)
        period: 'year', 'quarter' or 'month'
        benchmarks: Benchmark key -> levels aligned with values

    Returns:
        List of dicts (period, start_date, end_date, fund_return,
        benchmark_returns) in chronological order

    Raises:
        CalendarError: If inputs are inconsistent or period is unknown
    """
    if len(values) != len(dates):
        raise CalendarError("Values and dates must have same length")

    benchmarks = benchmarks or {}
    for name, levels in benchmarks.items():
        if len(levels) != len(values):
            raise CalendarError(f"Benchmark {name} must have same length as values")

    # Bucket key -> [first index, last index, count]
    buckets: Dict[str, List[int]] = {}
    for i, day in enumerate(dates):
        key = bucket_key(day, period)
        if key not in buckets:
            buckets[key] = [i, i, 1]
        else:
            buckets[key][1] = i
            buckets[key][2] += 1

    results = []
    for key, (first, last, count) in buckets.items():
        if count < 2:
            continue

        fund = total_return(values[first], values[last])
        if fund is None:
            continue

        results.append({
            'period': key,
            'start_date': dates[first],
            'end_date': dates[last],
            'fund_return': fund,
            'benchmark_returns': {
                name: total_return(levels[first], levels[last])
                for name, levels in benchmarks.items()
            },
        })

    return results


def rank_periods(periods: Sequence[Any], k: int = DEFAULT_TOP_K, key: str = 'fund_return') -> Dict[str, List[Any]]:
    """
    Best and worst periods by return.

    Sorting is stable over the chronological input, so ties keep the earlier
    period first in both rankings.

    Args:
        periods: Period returns in chronological order (dicts or objects)
        k: Number of periods per ranking
        key: Field holding the return

    Returns:
        {'best': top k descending, 'worst': top k ascending}

    Raises:
        CalendarError: If k is negative
    """
    if k < 0:
        raise CalendarError(f"k must be non-negative, got {k}")

    def value(item):
        return item[key] if isinstance(item, dict) else getattr(item, key)

    best = sorted(periods, key=lambda p: -value(p))[:k]
    worst = sorted(periods, key=value)[:k]
    return {'best': best, 'worst': worst}


def _slot(period_key: str) -> int:
    # '2024-03' -> 3, '2024-Q2' -> 2
    suffix = period_key.split('-', 1)[1]
    return int(suffix[1:]) if suffix.startswith('Q') else int(suffix)


def return_matrix(periods: Sequence[Dict[str, Any]]) -> Dict[int, Dict[int, float]]:
    """
    Year x slot matrix of bucket returns (slot = month 1-12 or quarter 1-4).

    Args:
        periods: Monthly or quarterly period returns

    Returns:
        {year: {slot: fund_return}} with only populated cells present
    """
    matrix: Dict[int, Dict[int, float]] = {}
    for item in periods:
        year = int(item['period'][:4])
        matrix.setdefault(year, {})[_slot(item['period'])] = item['fund_return']
    return matrix


def seasonality_stats(matrix: Dict[int, Dict[int, float]], slots: int = 12) -> List[Dict[str, Any]]:
    """
    Per-slot average return and win rate across years.

    Args:
        matrix: Output of return_matrix
        slots: 12 for months, 4 for quarters

    Returns:
        One dict per slot: slot, avg (None if no data), win_rate (percent of
        positive years, 0 if no data), count
    """
    stats = []
    for slot in range(1, slots + 1):
        cells = [row[slot] for row in matrix.values() if slot in row]
        if cells:
            avg = float(np.mean(cells))
            win_rate = sum(1 for c in cells if c > 0) / len(cells) * 100
        else:
            avg = None
            win_rate = 0.0
        stats.append({'slot': slot, 'avg': avg, 'win_rate': win_rate, 'count': len(cells)})
    return stats
