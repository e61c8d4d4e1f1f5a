"""
Metrics aggregator - composes all portfolio calculations into MetricsJSON.
Pure function that combines returns, risk, drawdown, volatility, calendar
buckets, rolling CAGR and growth projection for one portfolio.
"""

from datetime import date, datetime
from typing import Dict, Any, Optional, Sequence

from ingestion.records import DailyRecord, share_values, record_dates, benchmark_names
from analysis import engine
from analysis.calculations.returns import ROLLING_RETURN_WINDOWS
from analysis.calculations.volatility import volatility_summary
from analysis.calculations.risk import DEFAULT_RISK_FREE_RATE
from analysis.calculations.calendar import DEFAULT_TOP_K, MONTH_NAMES
from analysis.calculations.growth import DEFAULT_DEPOSIT_RATE
from analysis.guardrails import run_all_guardrails, sanitize_metrics, DataQualityError
from analysis.models import to_jsonable, serialize_list

CALCULATION_VERSION = '1.0.0'
DEFAULT_GROWTH_AMOUNT = 10000.0


class MetricsAggregatorError(Exception):
    """Raised when metrics aggregation fails."""
    pass


def compose_metrics(
    series: Sequence[DailyRecord],
    portfolio: str,
    as_of_date: date,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    volatility_windows: Sequence[int] = engine.DEFAULT_ROLLING_WINDOWS,
    top_periods: int = DEFAULT_TOP_K,
    deposit_rate: float = DEFAULT_DEPOSIT_RATE,
    growth_amount: float = DEFAULT_GROWTH_AMOUNT,
    include_series: bool = False,
    source: Optional[str] = None
) -> Dict[str, Any]:
    """
    Compose all portfolio metrics into standardized JSON format.

    Args:
        series: Normalized records in ascending date order
        portfolio: Portfolio name
        as_of_date: Date for which metrics are calculated
        risk_free_rate: Annual risk-free rate as decimal
        volatility_windows: Rolling volatility windows in records
        top_periods: Number of best/worst periods per ranking
        deposit_rate: Annual deposit rate for the growth comparison
        growth_amount: Lump sum for the default growth projection
        include_series: Also emit the drawdown and volatility curves
        source: Where the records came from (csv path or 'sqlite')

    Returns:
        Complete MetricsJSON dictionary; every float is finite or None

    Raises:
        MetricsAggregatorError: If composition fails
    """
    if not series:
        raise MetricsAggregatorError("Empty portfolio series provided")

    try:
        data_quality = run_all_guardrails(series, volatility_windows, today=as_of_date)
    except DataQualityError as e:
        raise MetricsAggregatorError(str(e)) from e

    dates = record_dates(series)
    data_period = {
        'start_date': dates[0].isoformat(),
        'end_date': dates[-1].isoformat(),
        'records': len(series),
        'benchmarks': benchmark_names(series)
    }

    overall = engine.calculate_overall_metrics(series)
    risk = engine.calculate_risk_metrics(series, risk_free_rate)
    drawdown_points, drawdown_summary = engine.calculate_drawdown(series)
    growth = engine.project_growth(series, growth_amount, deposit_rate=deposit_rate)

    metrics = {
        'portfolio': portfolio,
        'as_of_date': as_of_date.isoformat(),
        'data_period': data_period,
        'overall': overall.to_dict() if overall else None,
        'risk': risk.to_dict() if risk else None,
        'correlations': engine.calculate_correlations(series).to_dict(),
        'drawdown': {
            'summary': drawdown_summary.to_dict() if drawdown_summary else None
        },
        'volatility': _calculate_volatility_metrics(series, volatility_windows, include_series),
        'annual_returns': serialize_list(engine.calculate_annual_returns(series)),
        'period_returns': {},
        'best_worst': {},
        'rolling_returns': _calculate_rolling_returns(series),
        'seasonality': {
            'month': _label_slots(engine.seasonality_stats(series, 'month'), 'month'),
            'quarter': _label_slots(engine.seasonality_stats(series, 'quarter'), 'quarter')
        },
        'growth': growth.to_dict() if growth else None,
        'growth_start_options': serialize_list(engine.projection_start_options(series)),
        'data_quality': {
            'warnings': data_quality['warnings'],
            'recommendations': data_quality['recommendations'],
            'available_windows': data_quality['data_quality_checks']['sufficient_data']['available_windows']
        },
        'metadata': {
            'calculated_at': datetime.now().isoformat(),
            'calculation_version': CALCULATION_VERSION,
            'data_sources': [source] if source else [],
            'parameters': {
                'risk_free_rate': risk_free_rate,
                'volatility_windows': list(volatility_windows),
                'top_periods': top_periods,
                'deposit_rate': deposit_rate,
                'growth_amount': growth_amount
            }
        }
    }

    for period in ('quarter', 'month'):
        periods = engine.calculate_period_returns(series, period)
        ranked = engine.rank_periods(periods, top_periods)
        metrics['period_returns'][period] = serialize_list(periods)
        metrics['best_worst'][period] = {
            'best': serialize_list(ranked['best']),
            'worst': serialize_list(ranked['worst'])
        }

    if include_series:
        metrics['drawdown']['points'] = serialize_list(drawdown_points)

    return sanitize_metrics(metrics)


def _calculate_volatility_metrics(
    series: Sequence[DailyRecord],
    windows: Sequence[int],
    include_series: bool
) -> Dict[str, Any]:
    """Full-period volatility plus a rolling summary per window."""
    result: Dict[str, Any] = {'full_period': engine.full_period_volatility(series)}

    for window in windows:
        points = engine.calculate_volatility(series, window)
        entry = {
            'window': window,
            'portfolio': volatility_summary([p.portfolio for p in points]),
            'benchmarks': {
                name: volatility_summary([p.benchmarks[name] for p in points])
                for name in benchmark_names(series)
            } if points else {}
        }
        if include_series:
            entry['points'] = serialize_list(points)
        result[f"{window}d"] = entry

    return result


def _calculate_rolling_returns(series: Sequence[DailyRecord]) -> Dict[str, Any]:
    """Rolling CAGR summaries for 3Y/5Y/8Y; None where history is too short."""
    values, dates = share_values(series), record_dates(series)
    rolling = {}
    for label, window_days in ROLLING_RETURN_WINDOWS.items():
        result = engine.rolling_annualized_returns(values, dates, window_days)
        rolling[label] = to_jsonable(result) if result['points'] else None
    return rolling


def _label_slots(stats, period: str):
    labeled = []
    for item in stats:
        name = MONTH_NAMES[item['slot'] - 1] if period == 'month' else f"Q{item['slot']}"
        labeled.append({**item, 'label': name})
    return labeled
