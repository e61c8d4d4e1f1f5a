"""
Metrics engine over a normalized Series.
Pure and stateless - every call re-derives its result from the input records.

Insufficient data yields None or empty results; only caller misuse (bad window,
unknown period) raises.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ingestion.records import DailyRecord, share_values, record_dates, benchmark_names, benchmark_levels
from analysis.calculations.returns import (
    daily_returns,
    aligned_returns,
    valid_returns,
    elapsed_years,
    total_return,
    annualized_return,
    rolling_annualized_returns as _rolling_annualized_returns,
)
from analysis.calculations.volatility import (
    rolling_volatility,
    window_volatility,
    realized_vol,
    VolatilityError,
)
from analysis.calculations.drawdown import drawdown_series, running_peaks, drawdown_stats
from analysis.calculations.risk import (
    correlation,
    beta,
    alpha,
    sharpe_ratio,
    sortino_ratio,
    calmar_ratio,
    information_ratio,
    average_returns,
    DEFAULT_RISK_FREE_RATE,
)
from analysis.calculations.calendar import (
    period_returns,
    rank_periods as _rank_periods,
    return_matrix,
    seasonality_stats as _seasonality_stats,
    DEFAULT_TOP_K,
    CalendarError,
)
from analysis.calculations.growth import project, start_options, DEFAULT_DEPOSIT_RATE
from analysis.models import (
    MetricsResult,
    DrawdownPoint,
    DrawdownSummary,
    VolatilityPoint,
    CorrelationData,
    RiskMetrics,
    AnnualReturn,
    PeriodReturn,
    RollingMetricsPoint,
    GrowthOutcome,
    GrowthProjection,
    ProjectionStartOption,
)

Series = Sequence[DailyRecord]

DEFAULT_ROLLING_WINDOWS = (30, 60, 90)


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else None


def _benchmark_map(series: Series) -> Dict[str, List[Optional[float]]]:
    return {name: benchmark_levels(series, name) for name in benchmark_names(series)}


def calculate_overall_metrics(series: Series) -> Optional[MetricsResult]:
    """
    Whole-period returns of the portfolio and each benchmark.

    Args:
        series: Normalized records in ascending date order

    Returns:
        MetricsResult, or None for fewer than 2 records
    """
    if len(series) < 2:
        return None

    first, last = series[0], series[-1]
    years = elapsed_years(first.date, last.date)

    fund_total = total_return(first.share_value, last.share_value)
    fund_annualized = annualized_return(first.share_value, last.share_value, years)
    if fund_total is None:
        return None

    benchmark_totals = {}
    benchmark_annualized = {}
    for name in benchmark_names(series):
        start, end = first.benchmark(name), last.benchmark(name)
        benchmark_totals[name] = total_return(start, end)
        benchmark_annualized[name] = annualized_return(start, end, years)

    avg_total = _mean(benchmark_totals.values())
    avg_annualized = _mean(benchmark_annualized.values())

    return MetricsResult(
        start_date=first.date,
        end_date=last.date,
        years=years,
        current_share_value=last.share_value,
        total_return=fund_total,
        annualized_return=fund_annualized,
        benchmark_returns=benchmark_totals,
        benchmark_annualized=benchmark_annualized,
        avg_benchmark_return=avg_total,
        avg_benchmark_annualized=avg_annualized,
        outperformance=fund_total - avg_total if avg_total is not None else None,
        annualized_outperformance=fund_annualized - avg_annualized if avg_annualized is not None else None,
        total_principal=last.principal,
        total_market_value=last.market_value,
        total_units=last.units,
    )


def calculate_correlations(series: Series) -> CorrelationData:
    """
    Correlation, beta and alpha of daily returns against each benchmark.

    Returns are paired on the days where both the portfolio and the benchmark
    have one. Alpha uses whole-period annualized returns.

    Returns:
        CorrelationData; empty maps for fewer than 2 records
    """
    if len(series) < 2:
        return CorrelationData()

    portfolio = daily_returns(share_values(series))
    overall = calculate_overall_metrics(series)

    correlations, betas, alphas, observations = {}, {}, {}, {}
    for name, levels in _benchmark_map(series).items():
        p, b = aligned_returns(portfolio, daily_returns(levels))
        correlations[name] = correlation(p, b)
        betas[name] = beta(p, b)
        observations[name] = len(p)
        alphas[name] = alpha(
            overall.annualized_return if overall else None,
            betas[name],
            overall.benchmark_annualized.get(name) if overall else None
        )

    return CorrelationData(correlation=correlations, beta=betas, alpha=alphas, observations=observations)


def calculate_annual_returns(series: Series) -> List[AnnualReturn]:
    """Calendar-year returns; years with fewer than 2 records are excluded."""
    return [
        AnnualReturn(
            year=int(item['period']),
            start_date=item['start_date'],
            end_date=item['end_date'],
            fund_return=item['fund_return'],
            benchmark_returns=item['benchmark_returns'],
        )
        for item in period_returns(share_values(series), record_dates(series), 'year', _benchmark_map(series))
    ]


def calculate_period_returns(series: Series, period: str) -> List[PeriodReturn]:
    """
    Returns per calendar bucket.

    Args:
        series: Normalized records
        period: 'year', 'quarter' or 'month'

    Raises:
        CalendarError: If period is unknown
    """
    return [
        PeriodReturn(**item)
        for item in period_returns(share_values(series), record_dates(series), period, _benchmark_map(series))
    ]


def rank_periods(periods: Sequence[PeriodReturn], k: int = DEFAULT_TOP_K) -> Dict[str, List[PeriodReturn]]:
    """Best and worst k periods; ties keep chronological order."""
    return _rank_periods(periods, k)


def calculate_risk_metrics(series: Series, risk_free_rate: float = DEFAULT_RISK_FREE_RATE) -> Optional[RiskMetrics]:
    """
    Full-period volatility, drawdown and risk-adjusted ratios.

    The information ratio is measured against the average of all benchmarks'
    daily returns.

    Args:
        series: Normalized records
        risk_free_rate: Annual risk-free rate as decimal

    Returns:
        RiskMetrics, or None for fewer than 2 records
    """
    overall = calculate_overall_metrics(series)
    if overall is None:
        return None

    portfolio = daily_returns(share_values(series))
    returns = valid_returns(portfolio)

    max_dd = float(drawdown_series(share_values(series)).min())
    correlations = calculate_correlations(series)

    benchmark_returns = [daily_returns(levels) for levels in _benchmark_map(series).values()]
    info_ratio = None
    if benchmark_returns:
        p, b = aligned_returns(portfolio, average_returns(benchmark_returns))
        info_ratio = information_ratio(p, b)

    return RiskMetrics(
        volatility=realized_vol(returns),
        sharpe_ratio=sharpe_ratio(returns, risk_free_rate),
        sortino_ratio=sortino_ratio(returns, risk_free_rate),
        max_drawdown=max_dd,
        calmar_ratio=calmar_ratio(overall.annualized_return, max_dd),
        information_ratio=info_ratio,
        beta=correlations.beta,
        alpha=correlations.alpha,
        risk_free_rate=risk_free_rate,
    )


def calculate_drawdown(series: Series) -> Tuple[List[DrawdownPoint], Optional[DrawdownSummary]]:
    """
    Drawdown curve and summary.

    Returns:
        (points, summary); summary is None for fewer than 2 records
    """
    if not series:
        return [], None

    values = share_values(series)
    drawdowns = drawdown_series(values)
    peaks = running_peaks(values)

    points = [
        DrawdownPoint(date=r.date, share_value=r.share_value, peak=float(peak), drawdown=float(dd))
        for r, peak, dd in zip(series, peaks, drawdowns)
    ]

    if len(series) < 2:
        return points, None

    stats = drawdown_stats(values, record_dates(series))
    summary = DrawdownSummary(
        max_drawdown=stats['max_drawdown_pct'],
        current_drawdown=stats['current_drawdown_pct'],
        average_drawdown=stats['average_drawdown_pct'],
        time_in_drawdown=stats['time_in_drawdown'],
        peak_date=stats['peak_date'],
        trough_date=stats['trough_date'],
        recovery_date=stats['recovery_date'],
        drawdown_days=stats['drawdown_days'],
        recovery_days=stats['recovery_days'],
    )
    return points, summary


def calculate_volatility(series: Series, window: int = 30) -> List[VolatilityPoint]:
    """
    Rolling annualized volatility for the portfolio and every benchmark.

    Returns:
        One point per index from window - 1; empty when the series holds
        fewer than window + 10 records

    Raises:
        VolatilityError: If window < 2
    """
    if window < 2:
        raise VolatilityError("Window must be >= 2 for standard deviation")

    portfolio = rolling_volatility(share_values(series), window)
    if not portfolio:
        return []

    benchmarks = {name: rolling_volatility(levels, window) for name, levels in _benchmark_map(series).items()}

    return [
        VolatilityPoint(
            date=series[window - 1 + offset].date,
            window=window,
            portfolio=value,
            benchmarks={name: vols[offset] for name, vols in benchmarks.items()},
        )
        for offset, value in enumerate(portfolio)
    ]


def calculate_rolling_metrics(
    series: Series,
    windows: Sequence[int] = DEFAULT_ROLLING_WINDOWS,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
) -> List[RollingMetricsPoint]:
    """
    Trailing-window return, volatility, Sharpe and benchmark correlation.

    Points start at the smallest window; each window reports 0 until it has
    `w` daily returns behind the point.

    Raises:
        VolatilityError: If any window < 2
    """
    if not windows or min(windows) < 2:
        raise VolatilityError("Rolling windows must be >= 2")

    values = share_values(series)
    portfolio = daily_returns(values)
    benchmarks = {name: daily_returns(levels) for name, levels in _benchmark_map(series).items()}

    points = []
    for i in range(min(windows), len(series)):
        returns, vols, sharpes, corrs = {}, {}, {}, {}
        for w in windows:
            label = f"{w}d"
            if i < w:
                returns[label] = vols[label] = sharpes[label] = 0.0
                corrs[label] = {name: 0.0 for name in benchmarks}
                continue

            window_returns = portfolio[i - w:i]
            returns[label] = total_return(values[i - w], values[i]) or 0.0
            vols[label] = window_volatility(values[i - w:i + 1])
            sharpes[label] = sharpe_ratio(valid_returns(window_returns), risk_free_rate) or 0.0
            corrs[label] = {
                name: correlation(*aligned_returns(window_returns, bench[i - w:i]))
                for name, bench in benchmarks.items()
            }

        points.append(RollingMetricsPoint(
            date=series[i].date,
            returns=returns,
            volatility=vols,
            sharpe=sharpes,
            correlation=corrs,
        ))

    return points


def rolling_annualized_returns(values, dates, window_days: int, step: int = 30) -> dict:
    """Rolling multi-year CAGR; see analysis.calculations.returns."""
    return _rolling_annualized_returns(values, dates, window_days, step)


def monthly_return_matrix(series: Series, period: str = 'month') -> Dict[int, Dict[int, float]]:
    """
    Year x month (or quarter) matrix of bucket returns.

    Raises:
        CalendarError: If period is not month or quarter
    """
    if period not in ('month', 'quarter'):
        raise CalendarError(f"Matrix period must be month or quarter, got {period!r}")

    items = period_returns(share_values(series), record_dates(series), period)
    return return_matrix(items)


def seasonality_stats(series: Series, period: str = 'month') -> List[dict]:
    """Average return and win rate per calendar month (or quarter) across years."""
    slots = 12 if period == 'month' else 4
    return _seasonality_stats(monthly_return_matrix(series, period), slots)


def project_growth(
    series: Series,
    amount: float,
    start_index: int = 0,
    deposit_rate: float = DEFAULT_DEPOSIT_RATE
) -> Optional[GrowthProjection]:
    """
    "What if" projection of a lump sum from start_index to the last record.

    Returns:
        GrowthProjection, or None when amount <= 0 or start_index leaves no
        later record
    """
    result = project(
        amount,
        share_values(series),
        record_dates(series),
        start_index=start_index,
        benchmarks=_benchmark_map(series),
        deposit_rate=deposit_rate
    )
    if result is None:
        return None

    return GrowthProjection(
        amount=result['amount'],
        start_date=result['start_date'],
        end_date=result['end_date'],
        years=result['years'],
        fund=GrowthOutcome(**result['fund']),
        deposit=GrowthOutcome(**result['deposit']),
        deposit_rate=result['deposit_rate'],
        benchmarks={name: GrowthOutcome(**outcome) for name, outcome in result['benchmarks'].items()},
        benchmark_outperformance=result['benchmark_outperformance'],
        deposit_outperformance=result['deposit_outperformance'],
    )


def projection_start_options(series: Series) -> List[ProjectionStartOption]:
    """Start-date choices for project_growth: the first record of each year."""
    return [ProjectionStartOption(**option) for option in start_options(record_dates(series))]


def full_period_volatility(series: Series) -> float:
    """Annualized volatility (percent) of all daily returns; 0.0 if undefined."""
    returns = valid_returns(daily_returns(share_values(series)))
    if len(returns) < 2:
        return 0.0
    return float(realized_vol(returns))
