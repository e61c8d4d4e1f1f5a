"""
Orchestrated analysis job - portfolio records to MetricsJSON pipeline.
Loads a series from SQLite or a CSV file, calls pure functions, persists analysis JSON.
"""

import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from ingestion.records import Series
from ingestion.transforms.csv_parser import parse_csv_file
from ingestion.transforms.normalizers import normalize_series
from storage.loaders import load_portfolio_series
from analysis.metrics_aggregator import compose_metrics
from reports.atomic_writer import write_json_atomic
from utils.config import Settings

logger = logging.getLogger(__name__)


class AnalysisJobError(Exception):
    """Raised when the analysis input cannot be loaded."""
    pass


def load_series(
    portfolio: str,
    conn: Optional[sqlite3.Connection] = None,
    csv_path: Optional[Union[str, Path]] = None,
    benchmarks: Optional[List[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> Series:
    """
    Load a normalized series from a CSV file or the portfolio store.

    Args:
        portfolio: Portfolio name (store key)
        conn: SQLite connection, used when csv_path is not given
        csv_path: CSV file to analyze directly
        benchmarks: Stored benchmarks to merge (store only)
        start_date: Optional inclusive lower bound
        end_date: Optional inclusive upper bound

    Returns:
        Normalized Series (possibly empty)

    Raises:
        AnalysisJobError: If neither source is given
        CSVParseError: If the CSV file is unreadable
    """
    if csv_path is not None:
        result = parse_csv_file(csv_path)
        for error in result.errors:
            logger.warning(f"{csv_path}: {error}")
        records = [
            r for r in result.records
            if (start_date is None or r.date >= start_date) and (end_date is None or r.date <= end_date)
        ]
        return normalize_series(records)

    if conn is None:
        raise AnalysisJobError("Either a database connection or a CSV path is required")

    return load_portfolio_series(conn, portfolio, benchmarks, start_date, end_date)


def analyze_portfolio(
    portfolio: str,
    output_path: Path,
    conn: Optional[sqlite3.Connection] = None,
    csv_path: Optional[Union[str, Path]] = None,
    as_of_date: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    settings: Optional[Settings] = None,
    include_series: bool = False
) -> Dict[str, Any]:
    """
    Run complete analysis for a portfolio and save results to JSON.

    Never raises: failures are reported in the returned dictionary.

    Args:
        portfolio: Portfolio name
        output_path: Path to save MetricsJSON file
        conn: SQLite connection (store source)
        csv_path: CSV file (file source, wins over conn)
        as_of_date: Date for analysis (defaults to today)
        start_date: Start of record window (optional filter)
        end_date: End of record window (optional filter)
        settings: Analysis parameters (defaults to Settings())
        include_series: Also write drawdown and volatility curves

    Returns:
        Dictionary with job results and summary
    """
    if as_of_date is None:
        as_of_date = date.today()
    settings = settings or Settings()

    start_time = datetime.now()

    def failed(message: str) -> Dict[str, Any]:
        logger.error(f"Analysis of {portfolio} failed: {message}")
        return {
            'portfolio': portfolio,
            'status': 'failed',
            'error_message': message,
            'output_path': None,
            'metrics_calculated': 0,
            'duration_seconds': (datetime.now() - start_time).total_seconds()
        }

    try:
        series = load_series(
            portfolio,
            conn=conn,
            csv_path=csv_path,
            benchmarks=settings.default_benchmarks if conn is not None and csv_path is None else None,
            start_date=start_date,
            end_date=end_date
        )

        if not series:
            return failed(f'No records found for portfolio {portfolio}')

        metrics_json = compose_metrics(
            series,
            portfolio=portfolio,
            as_of_date=as_of_date,
            risk_free_rate=settings.risk_free_rate,
            volatility_windows=settings.volatility_windows,
            top_periods=settings.top_periods,
            deposit_rate=settings.deposit_rate,
            growth_amount=settings.growth_amount,
            include_series=include_series,
            source=str(csv_path) if csv_path is not None else 'sqlite'
        )

        write_result = write_json_atomic(metrics_json, Path(output_path))
        if write_result['status'] != 'completed':
            return failed(write_result['error'])

        metrics_count = _count_calculated_metrics(metrics_json)
        logger.info(f"Analyzed {portfolio}: {len(series)} records, {metrics_count} metrics -> {output_path}")

        return {
            'portfolio': portfolio,
            'status': 'completed',
            'output_path': str(output_path),
            'metrics_calculated': metrics_count,
            'records': len(series),
            'warnings': metrics_json['data_quality']['warnings'],
            'metrics': metrics_json,
            'duration_seconds': (datetime.now() - start_time).total_seconds()
        }

    except Exception as e:
        return failed(str(e))


def _count_calculated_metrics(metrics_json: Dict[str, Any]) -> int:
    """
    Count how many headline metrics were successfully calculated (not None).

    Args:
        metrics_json: Complete MetricsJSON dictionary

    Returns:
        Number of non-null metrics
    """
    count = 0

    overall = metrics_json.get('overall') or {}
    for key in ('total_return', 'annualized_return', 'avg_benchmark_return', 'outperformance'):
        if overall.get(key) is not None:
            count += 1
    count += sum(1 for v in (overall.get('benchmark_returns') or {}).values() if v is not None)

    risk = metrics_json.get('risk') or {}
    for key in ('volatility', 'sharpe_ratio', 'sortino_ratio', 'max_drawdown', 'calmar_ratio', 'information_ratio'):
        if risk.get(key) is not None:
            count += 1

    volatility = metrics_json.get('volatility', {})
    count += sum(
        1 for entry in volatility.values()
        if isinstance(entry, dict) and entry.get('portfolio', {}).get('current') is not None
    )

    count += sum(1 for v in metrics_json.get('rolling_returns', {}).values() if v is not None)

    if metrics_json.get('growth') is not None:
        count += 1

    return count


def batch_analyze_portfolios(
    conn: sqlite3.Connection,
    portfolios: List[str],
    output_dir: Path,
    as_of_date: Optional[date] = None,
    settings: Optional[Settings] = None
) -> Dict[str, Any]:
    """
    Run analysis for multiple stored portfolios.

    Args:
        conn: SQLite connection
        portfolios: Portfolio names
        output_dir: Directory to save JSON files
        as_of_date: Analysis date
        settings: Analysis parameters

    Returns:
        Summary of batch analysis results
    """
    if as_of_date is None:
        as_of_date = date.today()

    start_time = datetime.now()
    results = [
        analyze_portfolio(
            portfolio,
            Path(output_dir) / f'{portfolio}.json',
            conn=conn,
            as_of_date=as_of_date,
            settings=settings
        )
        for portfolio in portfolios
    ]

    completed = [r for r in results if r['status'] == 'completed']
    failed = [r for r in results if r['status'] == 'failed']

    return {
        'total_portfolios': len(portfolios),
        'completed': len(completed),
        'failed': len(failed),
        'success_rate': len(completed) / len(portfolios) if portfolios else 0,
        'total_metrics_calculated': sum(r.get('metrics_calculated', 0) for r in completed),
        'duration_seconds': (datetime.now() - start_time).total_seconds(),
        'results': results
    }
