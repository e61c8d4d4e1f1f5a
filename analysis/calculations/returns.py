"""
Returns calculation utilities.
Pure functions for daily, period and annualized returns of share values and index levels.
"""

import numpy as np
from datetime import date
from typing import List, Dict, Optional, Sequence, Tuple, Union

DAYS_PER_YEAR = 365.25
TRADING_DAYS = 252

# Trading-day lengths for multi-year rolling returns
ROLLING_RETURN_WINDOWS = {
    '3Y': TRADING_DAYS * 3,
    '5Y': TRADING_DAYS * 5,
    '8Y': TRADING_DAYS * 8,
}


class ReturnsError(Exception):
    """Raised when returns calculation fails."""
    pass


def _usable(value: Optional[float]) -> bool:
    return value is not None and value > 0


def daily_returns(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    """
    Simple returns between consecutive points.

    Formula: r_t = V_t / V_{t-1} - 1

    Args:
        values: Share values or index levels in chronological order

    Returns:
        List of len(values) - 1 returns as decimals; None where either point
        is missing or non-positive

    Example:
        [1.0, 1.1, None, 1.21] -> [0.1, None, None]
    """
    returns: List[Optional[float]] = []
    for i in range(1, len(values)):
        previous, current = values[i - 1], values[i]
        if _usable(previous) and _usable(current):
            returns.append(current / previous - 1)
        else:
            returns.append(None)
    return returns


def aligned_returns(
    first: Sequence[Optional[float]],
    second: Sequence[Optional[float]]
) -> Tuple[List[float], List[float]]:
    """
    Keep only the positions where both return series are defined.

    Raises:
        ReturnsError: If the series have different lengths
    """
    if len(first) != len(second):
        raise ReturnsError("Return series must have same length")

    pairs = [(a, b) for a, b in zip(first, second) if a is not None and b is not None]
    return [a for a, _ in pairs], [b for _, b in pairs]


def valid_returns(returns: Sequence[Optional[float]]) -> List[float]:
    return [r for r in returns if r is not None]


def elapsed_years(start: date, end: date) -> float:
    """Elapsed calendar time in years of 365.25 days."""
    return (end - start).days / DAYS_PER_YEAR


def total_return(first: Optional[float], last: Optional[float]) -> Optional[float]:
    """
    Total return in percent.

    Returns:
        (last / first - 1) * 100, or None when either value is missing or non-positive
    """
    if not _usable(first) or not _usable(last):
        return None
    return (last / first - 1) * 100


def annualized_return(first: Optional[float], last: Optional[float], years: float) -> Optional[float]:
    """
    Compound annual growth rate in percent.

    Spans shorter than one year are not extrapolated: the annualized figure
    equals the total return.

    Args:
        first: Starting value
        last: Ending value
        years: Elapsed years between the two values

    Returns:
        CAGR percentage, or None when either value is missing or non-positive

    Raises:
        ReturnsError: If years is negative
    """
    if years < 0:
        raise ReturnsError(f"Elapsed years must be non-negative, got {years}")

    total = total_return(first, last)
    if total is None:
        return None

    if years < 1:
        return total

    return ((last / first) ** (1 / years) - 1) * 100


def rolling_annualized_returns(
    values: Sequence[float],
    dates: Sequence[date],
    window_days: int,
    step: int = 30
) -> Dict[str, Union[List[Dict[str, Union[date, float]]], float, None]]:
    """
    Rolling multi-year CAGR over a trading-day window.

    Each point covers the window_days records ending at it and is annualized
    over window_days / 252 years. Points are sampled every `step` records
    starting at the first full window; the last point is always included.

    Args:
        values: Share values in chronological order
        dates: Corresponding dates
        window_days: Window length in records (756 = 3 years)
        step: Sampling interval in records

    Returns:
        Dictionary with:
        - points: [{'date', 'return'}] annualized returns in percent
        - min, max, avg, current: summary of all sampled points (None if no points)
        - positive_pct: share of points with a positive return, in percent

    Raises:
        ReturnsError: If inputs are inconsistent
    """
    if len(values) != len(dates):
        raise ReturnsError("Values and dates must have same length")

    if window_days <= 0 or step <= 0:
        raise ReturnsError("window_days and step must be positive")

    indices = list(range(window_days, len(values), step))
    if len(values) > window_days and indices[-1] != len(values) - 1:
        indices.append(len(values) - 1)

    years = window_days / TRADING_DAYS
    points = []
    for i in indices:
        start, end = values[i - window_days], values[i]
        cagr = annualized_return(start, end, years)
        if cagr is not None:
            points.append({'date': dates[i], 'return': cagr})

    if not points:
        return {'points': [], 'min': None, 'max': None, 'avg': None, 'current': None, 'positive_pct': None}

    returns = np.array([p['return'] for p in points])
    return {
        'points': points,
        'min': float(returns.min()),
        'max': float(returns.max()),
        'avg': float(returns.mean()),
        'current': float(returns[-1]),
        'positive_pct': float((returns > 0).mean() * 100),
    }
