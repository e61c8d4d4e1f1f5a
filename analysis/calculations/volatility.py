"""
Volatility calculation utilities.
Pure functions for rolling and full-period realized volatility of simple daily returns.
"""

import numpy as np
import math
from typing import List, Optional, Sequence

from analysis.calculations.returns import daily_returns, valid_returns, TRADING_DAYS

# Extra records required beyond the window before a rolling series is produced
ROLLING_BUFFER = 10


class VolatilityError(Exception):
    """Raised when volatility calculation fails."""
    pass


def sample_std(returns: Sequence[float]) -> float:
    """
    Sample standard deviation (ddof=1).

    Returns:
        Standard deviation, or 0.0 with fewer than 2 returns
    """
    if len(returns) < 2:
        return 0.0
    return float(np.std(np.asarray(returns, dtype=float), ddof=1))


def realized_vol(returns: Sequence[float], annualize: int = TRADING_DAYS) -> float:
    """
    Annualized volatility of simple returns in percent.

    Formula: σ = std(returns, ddof=1) × √annualize × 100

    Args:
        returns: Daily simple returns as decimals
        annualize: Annualization factor (252 for daily to annual)

    Returns:
        Annualized volatility percentage (25.0 = 25%); 0.0 with fewer than 2 returns

    Raises:
        VolatilityError: If returns contain NaN or infinite values
    """
    returns_array = np.asarray(returns, dtype=float)

    if np.any(np.isnan(returns_array)):
        raise VolatilityError("NaN values not allowed in returns")

    if np.any(np.isinf(returns_array)):
        raise VolatilityError("Infinite values not allowed in returns")

    return sample_std(returns_array) * math.sqrt(annualize) * 100


def window_volatility(values: Sequence[Optional[float]], annualize: int = TRADING_DAYS) -> float:
    """
    Annualized volatility of the daily returns inside one window of values.

    Returns are taken between consecutive positive values only; a window with
    fewer than 2 such returns gives 0.0.
    """
    returns = valid_returns(daily_returns(values))
    if len(returns) < 2:
        return 0.0
    return realized_vol(returns, annualize)


def rolling_volatility(
    values: Sequence[Optional[float]],
    window: int,
    annualize: int = TRADING_DAYS
) -> List[float]:
    """
    Calculate rolling volatility over all full windows.

    The window at index i holds the `window` values ending at i, so the first
    entry belongs to index window - 1.

    Args:
        values: Share values or index levels in chronological order
        window: Number of values per window
        annualize: Annualization factor

    Returns:
        List of annualized volatilities (percent), one per index from window - 1;
        empty when there are fewer than window + ROLLING_BUFFER values

    Raises:
        VolatilityError: If window < 2
    """
    if window < 2:
        raise VolatilityError("Window must be >= 2 for standard deviation")

    if len(values) < window + ROLLING_BUFFER:
        return []

    return [
        window_volatility(values[i - window + 1:i + 1], annualize)
        for i in range(window - 1, len(values))
    ]


def volatility_summary(volatilities: Sequence[float]) -> dict:
    """
    Average, current, max and min of a rolling volatility series.

    Returns:
        Dictionary with avg/current/max/min, all None for an empty series
    """
    if not volatilities:
        return {'avg': None, 'current': None, 'max': None, 'min': None}

    vol_array = np.asarray(volatilities, dtype=float)
    return {
        'avg': float(vol_array.mean()),
        'current': float(vol_array[-1]),
        'max': float(vol_array.max()),
        'min': float(vol_array.min()),
    }
