"""
Result types returned by the metrics engine.
Request-scoped value objects - created per analysis call, never persisted by the engine.
"""

from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Dict, List, Optional


def to_jsonable(value: Any) -> Any:
    """
    Convert engine output to JSON-safe primitives.

    Dates become ISO strings, dataclasses and mappings become dicts, sequences
    become lists. Non-finite floats are left to the guardrails.
    """
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, '__dataclass_fields__'):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass(frozen=True)
class MetricsResult(_Serializable):
    """
    Whole-period performance of the portfolio and its benchmarks.

    Returns are percentages (20.0 = 20%). Benchmark figures are None when the
    benchmark lacks a positive level at either end of the series; averages
    cover the benchmarks that have one.
    """
    start_date: date
    end_date: date
    years: float
    current_share_value: float
    total_return: float
    annualized_return: float
    benchmark_returns: Dict[str, Optional[float]]
    benchmark_annualized: Dict[str, Optional[float]]
    avg_benchmark_return: Optional[float]
    avg_benchmark_annualized: Optional[float]
    outperformance: Optional[float]
    annualized_outperformance: Optional[float]
    total_principal: float
    total_market_value: Optional[float] = None
    total_units: Optional[float] = None


@dataclass(frozen=True)
class DrawdownPoint(_Serializable):
    date: date
    share_value: float
    peak: float
    drawdown: float


@dataclass(frozen=True)
class DrawdownSummary(_Serializable):
    """
    Drawdown statistics over the whole series.

    drawdown figures are percentages (<= 0); time_in_drawdown is the fraction
    of points below the running peak; drawdown_days and recovery_days count
    records, not calendar days.
    """
    max_drawdown: float
    current_drawdown: float
    average_drawdown: float
    time_in_drawdown: float
    peak_date: date
    trough_date: date
    recovery_date: Optional[date]
    drawdown_days: int
    recovery_days: Optional[int]


@dataclass(frozen=True)
class VolatilityPoint(_Serializable):
    """Annualized rolling volatility (percent) of the window ending at date."""
    date: date
    window: int
    portfolio: float
    benchmarks: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CorrelationData(_Serializable):
    """Per-benchmark correlation, beta and alpha of daily returns."""
    correlation: Dict[str, float] = field(default_factory=dict)
    beta: Dict[str, float] = field(default_factory=dict)
    alpha: Dict[str, Optional[float]] = field(default_factory=dict)
    observations: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskMetrics(_Serializable):
    """
    Full-period risk profile.

    volatility and max_drawdown are percentages; ratios are unitless and None
    where undefined (no deviation, no downside, no drawdown).
    """
    volatility: float
    sharpe_ratio: Optional[float]
    sortino_ratio: Optional[float]
    max_drawdown: float
    calmar_ratio: Optional[float]
    information_ratio: Optional[float]
    beta: Dict[str, float]
    alpha: Dict[str, Optional[float]]
    risk_free_rate: float


@dataclass(frozen=True)
class AnnualReturn(_Serializable):
    year: int
    start_date: date
    end_date: date
    fund_return: float
    benchmark_returns: Dict[str, Optional[float]] = field(default_factory=dict)


@dataclass(frozen=True)
class PeriodReturn(_Serializable):
    """Return of one calendar bucket keyed 'YYYY', 'YYYY-Qn' or 'YYYY-MM'."""
    period: str
    start_date: date
    end_date: date
    fund_return: float
    benchmark_returns: Dict[str, Optional[float]] = field(default_factory=dict)


@dataclass(frozen=True)
class RollingMetricsPoint(_Serializable):
    """
    Trailing-window statistics at one date, keyed by window label ('30d').

    A window that is not yet full reports 0.
    """
    date: date
    returns: Dict[str, float]
    volatility: Dict[str, float]
    sharpe: Dict[str, float]
    correlation: Dict[str, Dict[str, float]]


@dataclass(frozen=True)
class GrowthOutcome(_Serializable):
    final_value: float
    profit: float
    total_return: float
    annualized_return: float


@dataclass(frozen=True)
class GrowthProjection(_Serializable):
    """Outcome of a hypothetical lump sum invested at start_date."""
    amount: float
    start_date: date
    end_date: date
    years: float
    fund: GrowthOutcome
    deposit: GrowthOutcome
    deposit_rate: float
    benchmarks: Dict[str, GrowthOutcome] = field(default_factory=dict)
    benchmark_outperformance: Dict[str, float] = field(default_factory=dict)
    deposit_outperformance: float = 0.0


@dataclass(frozen=True)
class ProjectionStartOption(_Serializable):
    index: int
    date: date
    label: str


def serialize_list(items: List[Any]) -> List[Dict[str, Any]]:
    return [to_jsonable(item) for item in items]
