"""
Guardrails for analysis engine - validation and safety checks.
Data-sufficiency, freshness and integrity checks produce warnings; only an
empty series is an error.
"""

import math
import numpy as np
from datetime import date
from typing import Dict, Any, List, Optional, Sequence, Tuple

from ingestion.records import DailyRecord, benchmark_names
from analysis.calculations.volatility import ROLLING_BUFFER

# Daily share-value moves beyond this are flagged as likely data errors
LARGE_MOVE_THRESHOLD = 0.20


class DataQualityError(Exception):
    """Raised when data quality issues make analysis impossible."""
    pass


def sanitize_number(value: Any) -> Any:
    """
    Map NaN and infinite floats to None; other values pass through.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    if isinstance(value, np.integer):
        return int(value)
    return value


def sanitize_metrics(obj: Any) -> Any:
    """Recursively sanitize every number in a nested dict/list structure."""
    if isinstance(obj, dict):
        return {k: sanitize_metrics(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_metrics(v) for v in obj]
    return sanitize_number(obj)


def check_sufficient_data(
    series: Sequence[DailyRecord],
    volatility_windows: Sequence[int]
) -> Tuple[List[int], List[int]]:
    """
    Split requested volatility windows by whether the series can fill them.

    Args:
        series: Normalized records
        volatility_windows: Requested rolling windows

    Returns:
        Tuple of (available_windows, insufficient_windows)

    Raises:
        DataQualityError: If the series is empty
    """
    if not series:
        raise DataQualityError("No portfolio records available for analysis")

    available, insufficient = [], []
    for window in volatility_windows:
        if len(series) >= window + ROLLING_BUFFER:
            available.append(window)
        else:
            insufficient.append(window)
    return available, insufficient


def check_data_freshness(
    series: Sequence[DailyRecord],
    max_age_days: int = 7,
    today: Optional[date] = None
) -> List[str]:
    """
    Warn when the latest record is older than max_age_days.

    Returns:
        List of freshness warnings
    """
    if not series:
        return []

    today = today or date.today()
    latest = series[-1].date
    age = (today - latest).days

    if age > max_age_days:
        return [
            f"Portfolio data is {age} days old (latest: {latest}). "
            f"Consider importing recent valuations."
        ]
    return []


def check_benchmark_coverage(series: Sequence[DailyRecord]) -> List[str]:
    """
    Warn about benchmarks never observed or missing at the start of the series.

    Returns:
        List of coverage warnings
    """
    warnings = []
    for name in benchmark_names(series):
        observed = [i for i, r in enumerate(series) if r.benchmark(name) is not None]
        if not observed:
            warnings.append(f"Benchmark {name} has no levels; it is excluded from comparisons")
        elif observed[0] > 0:
            warnings.append(
                f"Benchmark {name} starts on {series[observed[0]].date}, "
                f"after the portfolio's first record ({series[0].date})"
            )
    return warnings


def validate_share_value_integrity(series: Sequence[DailyRecord]) -> List[str]:
    """
    Flag daily share-value moves larger than LARGE_MOVE_THRESHOLD.

    Returns:
        List of integrity warnings
    """
    warnings = []
    for previous, current in zip(series, series[1:]):
        if not previous.share_value or not current.share_value:
            continue
        change = current.share_value / previous.share_value - 1
        if abs(change) > LARGE_MOVE_THRESHOLD:
            warnings.append(
                f"Large share value movement on {current.date}: {change:.1%} change "
                f"({previous.share_value:.4f} → {current.share_value:.4f})"
            )
    return warnings


def run_all_guardrails(
    series: Sequence[DailyRecord],
    volatility_windows: Sequence[int] = (30, 60, 90),
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Run all guardrail checks and compile results.

    Args:
        series: Normalized records
        volatility_windows: Requested rolling windows
        today: Reference date for freshness (defaults to today)

    Returns:
        Dictionary with check results, warnings and recommendations

    Raises:
        DataQualityError: If the series is empty
    """
    available, insufficient = check_sufficient_data(series, volatility_windows)

    results = {
        'records': len(series),
        'data_quality_checks': {
            'sufficient_data': {
                'available_windows': available,
                'insufficient_windows': insufficient
            },
            'freshness_check': check_data_freshness(series, today=today),
            'benchmark_coverage': check_benchmark_coverage(series),
            'share_value_integrity': validate_share_value_integrity(series)
        },
        'warnings': [],
        'recommendations': _generate_recommendations(len(series), insufficient)
    }

    checks = results['data_quality_checks']
    if len(series) < 2:
        results['warnings'].append("Only one record: return and risk metrics need at least 2")
    if insufficient:
        results['warnings'].append(
            f"Insufficient data for volatility windows: {insufficient}. "
            f"Each window needs window + {ROLLING_BUFFER} records."
        )
    results['warnings'].extend(checks['freshness_check'])
    results['warnings'].extend(checks['benchmark_coverage'])
    results['warnings'].extend(checks['share_value_integrity'])

    return results


def _generate_recommendations(record_count: int, insufficient_windows: List[int]) -> List[str]:
    """Generate actionable recommendations based on data coverage."""
    recommendations = []

    if insufficient_windows:
        recommendations.append(
            "Import more daily valuations (target: 100+ records) for rolling volatility analysis"
        )

    if record_count < 252:
        recommendations.append(
            "Collect at least one year of history for meaningful annualized returns"
        )
    else:
        recommendations.append(
            "Sufficient data for annualized return, volatility and drawdown analysis"
        )

    return recommendations


def create_data_quality_report(guardrail_results: Dict[str, Any], portfolio: str) -> str:
    """
    Create human-readable data quality report.

    Args:
        guardrail_results: Results from run_all_guardrails()
        portfolio: Portfolio name for the heading

    Returns:
        Formatted text report
    """
    report = [
        f"Data Quality Report for {portfolio}",
        f"Records: {guardrail_results['records']}",
        "=" * 50,
        ""
    ]

    warnings = guardrail_results.get('warnings', [])
    if warnings:
        report.append("WARNINGS:")
        for warning in warnings:
            report.append(f"   • {warning}")
        report.append("")

    data_check = guardrail_results['data_quality_checks']['sufficient_data']
    report.append("VOLATILITY WINDOWS:")
    if data_check['available_windows']:
        report.append(f"   Available: {', '.join(str(w) for w in data_check['available_windows'])}")
    if data_check['insufficient_windows']:
        report.append(f"   Insufficient data: {', '.join(str(w) for w in data_check['insufficient_windows'])}")
    report.append("")

    recommendations = guardrail_results.get('recommendations', [])
    if recommendations:
        report.append("RECOMMENDATIONS:")
        for rec in recommendations:
            report.append(f"   • {rec}")
        report.append("")

    if warnings:
        report.append("OVERALL STATUS: WARNINGS PRESENT")
    else:
        report.append("OVERALL STATUS: DATA QUALITY ACCEPTABLE")

    return "\n".join(report)
