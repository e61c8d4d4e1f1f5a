"""
Growth projection utilities.
Pure functions for "what if I invested X on date Y" comparisons.
"""

from datetime import date
from typing import Dict, List, Optional, Sequence, Any

from analysis.calculations.returns import annualized_return, elapsed_years

DEFAULT_DEPOSIT_RATE = 0.03


class GrowthError(Exception):
    """Raised when growth projection inputs are inconsistent."""
    pass


def growth_outcome(amount: float, start_value: float, end_value: float, years: float) -> Dict[str, float]:
    """
    Ending value of an amount that tracks start_value -> end_value.

    Returns:
        Dictionary with final_value, profit, total_return and annualized_return
        (percent, sub-year spans not annualized)

    Raises:
        GrowthError: If either value is not positive
    """
    if start_value is None or end_value is None or start_value <= 0 or end_value <= 0:
        raise GrowthError("Growth values must be positive")

    ratio = end_value / start_value
    final_value = amount * ratio
    return {
        'final_value': final_value,
        'profit': final_value - amount,
        'total_return': (ratio - 1) * 100,
        'annualized_return': annualized_return(start_value, end_value, years),
    }


def deposit_outcome(amount: float, rate: float, years: float) -> Dict[str, float]:
    """
    Fixed-rate deposit compounded annually over fractional years.

    Formula: amount × (1 + rate) ** years
    """
    return growth_outcome(amount, 1.0, (1 + rate) ** years, years)


def project(
    amount: float,
    values: Sequence[float],
    dates: Sequence[date],
    start_index: int = 0,
    benchmarks: Optional[Dict[str, Sequence[Optional[float]]]] = None,
    deposit_rate: float = DEFAULT_DEPOSIT_RATE
) -> Optional[Dict[str, Any]]:
    """
    Project a lump sum from start_index to the last record.

    Benchmarks without a positive level at both endpoints are skipped.
    Outperformance is the fund's final value minus each alternative's, kept
    per benchmark and separately for the deposit.

    Args:
        amount: Amount invested
        values: Share values in chronological order
        dates: Corresponding dates
        start_index: Index of the investment date
        benchmarks: Benchmark key -> levels aligned with values
        deposit_rate: Annual deposit rate as decimal

    Returns:
        Projection dictionary, or None when amount <= 0 or start_index does
        not leave a later record

    Raises:
        GrowthError: If values and dates differ in length
    """
    if len(values) != len(dates):
        raise GrowthError("Values and dates must have same length")

    if amount is None or amount <= 0:
        return None

    end_index = len(values) - 1
    if start_index < 0 or start_index >= end_index:
        return None

    start_value, end_value = values[start_index], values[end_index]
    if start_value is None or end_value is None or start_value <= 0 or end_value <= 0:
        return None

    years = elapsed_years(dates[start_index], dates[end_index])
    fund = growth_outcome(amount, start_value, end_value, years)
    deposit = deposit_outcome(amount, deposit_rate, years)

    benchmark_outcomes = {}
    for name, levels in (benchmarks or {}).items():
        first, last = levels[start_index], levels[end_index]
        if first is None or last is None or first <= 0 or last <= 0:
            continue
        benchmark_outcomes[name] = growth_outcome(amount, first, last, years)

    benchmark_outperformance = {
        name: fund['final_value'] - outcome['final_value'] for name, outcome in benchmark_outcomes.items()
    }

    return {
        'amount': amount,
        'start_date': dates[start_index],
        'end_date': dates[end_index],
        'years': years,
        'fund': fund,
        'benchmarks': benchmark_outcomes,
        'deposit': deposit,
        'deposit_rate': deposit_rate,
        'benchmark_outperformance': benchmark_outperformance,
        'deposit_outperformance': fund['final_value'] - deposit['final_value'],
    }


def start_options(dates: Sequence[date]) -> List[Dict[str, Any]]:
    """
    First record index of each calendar year, excluding the last record.

    Returns:
        [{'index', 'date', 'label'}] in chronological order
    """
    options = []
    last_year = None
    for index, day in enumerate(dates[:-1]):
        if day.year != last_year:
            options.append({'index': index, 'date': day, 'label': str(day.year)})
            last_year = day.year
    return options
