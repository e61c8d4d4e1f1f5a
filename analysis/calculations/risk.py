"""
Risk-adjusted performance utilities.
Pure functions for correlation, beta/alpha and Sharpe/Sortino/Calmar/information ratios.

Inputs are daily simple returns as decimals; annualization uses 252 trading days.
Undefined ratios (no deviation, no downside, no drawdown) are None rather than inf.
"""

import numpy as np
import math
from typing import List, Optional, Sequence

from analysis.calculations.returns import TRADING_DAYS

DEFAULT_RISK_FREE_RATE = 0.02


class RiskError(Exception):
    """Raised when risk calculation inputs are inconsistent."""
    pass


def _check_paired(first: Sequence[float], second: Sequence[float]) -> None:
    if len(first) != len(second):
        raise RiskError(f"Return series must have same length, got {len(first)} and {len(second)}")


def correlation(first: Sequence[float], second: Sequence[float]) -> float:
    """
    Pearson correlation of two aligned return series.

    Returns:
        Correlation in [-1, 1]; 0.0 with fewer than 2 observations or zero variance

    Raises:
        RiskError: If the series have different lengths
    """
    _check_paired(first, second)
    if len(first) < 2:
        return 0.0

    a = np.asarray(first, dtype=float) - np.mean(first)
    b = np.asarray(second, dtype=float) - np.mean(second)
    denominator = math.sqrt(float(np.sum(a * a)) * float(np.sum(b * b)))
    if denominator == 0:
        return 0.0

    # Clip rounding noise just outside [-1, 1]
    return float(min(1.0, max(-1.0, np.sum(a * b) / denominator)))


def beta(portfolio: Sequence[float], benchmark: Sequence[float]) -> float:
    """
    Sensitivity of portfolio returns to benchmark returns.

    Formula: β = cov(portfolio, benchmark) / var(benchmark)

    Returns:
        Beta; 0.0 with fewer than 2 observations or zero benchmark variance

    Raises:
        RiskError: If the series have different lengths
    """
    _check_paired(portfolio, benchmark)
    if len(portfolio) < 2:
        return 0.0

    p = np.asarray(portfolio, dtype=float) - np.mean(portfolio)
    b = np.asarray(benchmark, dtype=float) - np.mean(benchmark)
    variance = float(np.sum(b * b))
    if variance == 0:
        return 0.0
    return float(np.sum(p * b)) / variance


def alpha(annualized_return: Optional[float], beta_value: float, benchmark_annualized: Optional[float]) -> Optional[float]:
    """
    Single-factor alpha in percentage points.

    Formula: α = R_portfolio - β × R_benchmark (annualized, percent)
    """
    if annualized_return is None or benchmark_annualized is None:
        return None
    return annualized_return - beta_value * benchmark_annualized


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> Optional[float]:
    """
    Annualized Sharpe ratio.

    Formula: (mean × 252 - rf) / (std × √252), std with ddof=1

    Returns:
        Sharpe ratio, or None with fewer than 2 returns or zero deviation
    """
    if len(returns) < 2:
        return None

    returns_array = np.asarray(returns, dtype=float)
    std = float(np.std(returns_array, ddof=1))
    if std == 0:
        return None

    return (float(returns_array.mean()) * TRADING_DAYS - risk_free_rate) / (std * math.sqrt(TRADING_DAYS))


def sortino_ratio(returns: Sequence[float], risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> Optional[float]:
    """
    Annualized Sortino ratio.

    Downside deviation is the root mean square of the negative returns.

    Returns:
        Sortino ratio, or None when there are no negative returns
    """
    if len(returns) == 0:
        return None

    returns_array = np.asarray(returns, dtype=float)
    negative = returns_array[returns_array < 0]
    if len(negative) == 0:
        return None

    downside = math.sqrt(float(np.mean(negative ** 2)))
    if downside == 0:
        return None

    return (float(returns_array.mean()) * TRADING_DAYS - risk_free_rate) / (downside * math.sqrt(TRADING_DAYS))


def calmar_ratio(annualized_return: Optional[float], max_drawdown_pct: float) -> Optional[float]:
    """
    Annualized return over the magnitude of the max drawdown (both percent).

    Returns:
        Calmar ratio, or None without a drawdown or annualized return
    """
    if annualized_return is None or max_drawdown_pct == 0:
        return None
    return annualized_return / abs(max_drawdown_pct)


def information_ratio(portfolio: Sequence[float], benchmark: Sequence[float]) -> Optional[float]:
    """
    Annualized excess return over tracking error.

    Formula: mean(p - b) × 252 / (std(p - b) × √252)

    Returns:
        Information ratio, or None with fewer than 2 observations or zero tracking error

    Raises:
        RiskError: If the series have different lengths
    """
    _check_paired(portfolio, benchmark)
    if len(portfolio) < 2:
        return None

    excess = np.asarray(portfolio, dtype=float) - np.asarray(benchmark, dtype=float)
    tracking_error = float(np.std(excess, ddof=1))
    if tracking_error == 0:
        return None

    return float(excess.mean()) * TRADING_DAYS / (tracking_error * math.sqrt(TRADING_DAYS))


def average_returns(series: List[Sequence[Optional[float]]]) -> List[Optional[float]]:
    """
    Point-wise mean of several return series.

    A point is the mean of the series defined there, None where none is.

    Raises:
        RiskError: If the series have different lengths
    """
    if not series:
        return []

    length = len(series[0])
    if any(len(s) != length for s in series):
        raise RiskError("Return series must have same length")

    averaged: List[Optional[float]] = []
    for i in range(length):
        present = [s[i] for s in series if s[i] is not None]
        averaged.append(sum(present) / len(present) if present else None)
    return averaged
