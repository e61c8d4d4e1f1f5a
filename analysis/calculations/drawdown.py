"""
Drawdown and recovery calculation utilities.
Pure functions for drawdown curves and maximum drawdown analysis.
"""

import numpy as np
from datetime import date
from typing import List, Dict, Union, Optional


class DrawdownError(Exception):
    """Raised when drawdown calculation fails."""
    pass


def drawdown_series(prices: List[float]) -> np.ndarray:
    """
    Percentage decline from the running peak at each point.

    Formula: dd_t = (P_t - max(P_0..P_t)) / max(P_0..P_t) × 100

    Args:
        prices: Positive prices in chronological order

    Returns:
        Numpy array of drawdowns (<= 0), same length as prices

    Raises:
        DrawdownError: If prices contain zero or negative values
    """
    if len(prices) == 0:
        return np.array([])

    if any(p is None or p <= 0 for p in prices):
        raise DrawdownError("Zero or negative prices not allowed")

    prices_array = np.asarray(prices, dtype=float)
    running_max = np.maximum.accumulate(prices_array)
    return (prices_array - running_max) / running_max * 100


def running_peaks(prices: List[float]) -> np.ndarray:
    return np.maximum.accumulate(np.asarray(prices, dtype=float))


def drawdown_stats(
    prices: List[float],
    dates: List[date]
) -> Dict[str, Union[float, date, int, None]]:
    """
    Calculate maximum drawdown statistics for a price series.

    Finds the largest peak-to-trough decline and recovery information.

    Args:
        prices: List of prices in chronological order
        dates: Corresponding dates

    Returns:
        Dictionary with drawdown statistics:
        - max_drawdown_pct: Largest decline in percent (<= 0)
        - current_drawdown_pct: Drawdown at the last point
        - average_drawdown_pct: Mean of strictly negative drawdowns (0 if none)
        - time_in_drawdown: Fraction of points below the running peak
        - peak_date: Date of peak before max drawdown
        - trough_date: Date of lowest point
        - recovery_date: First date back at or above the peak (None if no recovery)
        - drawdown_days: Records from peak to trough
        - recovery_days: Records from trough to recovery (None if no recovery)

    Raises:
        DrawdownError: If insufficient data or invalid inputs
    """
    if len(prices) < 2:
        raise DrawdownError("Insufficient data: need at least 2 prices")

    if len(prices) != len(dates):
        raise DrawdownError("Prices and dates must have same length")

    prices_array = np.asarray(prices, dtype=float)
    drawdowns = drawdown_series(prices)

    # First occurrence of the deepest point
    trough_idx = int(np.argmin(drawdowns))
    max_drawdown_pct = float(drawdowns[trough_idx])

    negative = drawdowns[drawdowns < 0]
    average_drawdown_pct = float(negative.mean()) if len(negative) else 0.0
    time_in_drawdown = len(negative) / len(drawdowns)

    # Peak is the first point reaching the running max at the trough
    peak_value = running_peaks(prices)[trough_idx]
    peak_idx = int(np.argmax(prices_array[:trough_idx + 1] >= peak_value))

    recovery_idx = None
    if max_drawdown_pct == 0:
        # No decline: recovered at the peak itself
        recovery_idx = peak_idx
    else:
        for i in range(trough_idx + 1, len(prices_array)):
            if prices_array[i] >= peak_value:
                recovery_idx = i
                break

    return {
        'max_drawdown_pct': max_drawdown_pct,
        'current_drawdown_pct': float(drawdowns[-1]),
        'average_drawdown_pct': average_drawdown_pct,
        'time_in_drawdown': time_in_drawdown,
        'peak_date': dates[peak_idx],
        'trough_date': dates[trough_idx],
        'recovery_date': dates[recovery_idx] if recovery_idx is not None else None,
        'drawdown_days': trough_idx - peak_idx,
        'recovery_days': (recovery_idx - trough_idx) if recovery_idx is not None else None
    }


def max_drawdown(prices: List[float]) -> float:
    """Deepest drawdown in percent (<= 0); 0.0 for fewer than 2 prices."""
    if len(prices) < 2:
        return 0.0
    return float(drawdown_series(prices).min())
