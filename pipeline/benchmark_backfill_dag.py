"""
Benchmark backfill DAG - keeps the benchmark level store current.
Composes: Provider → Transform → Validate → Store → Track, once per benchmark.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Any, Optional, List

from ingestion.providers.yfinance_adapter import (
    fetch_benchmark_window,
    resolve_symbol,
    BENCHMARK_SYMBOLS,
    BenchmarkFetchError,
)
from ingestion.transforms.normalizers import normalize_benchmark_levels
from ingestion.transforms.validators import validate_benchmark_level_row, ValidationError
from storage.loaders import upsert_benchmark_levels, latest_benchmark_date
from storage.run_registry import start_run, finish_run, RunStatus

logger = logging.getLogger(__name__)

DAG_NAME = 'benchmark_backfill'
SOURCE = 'yfinance'
DEFAULT_LOOKBACK_DAYS = 365


class PipelineError(Exception):
    """Raised when a pipeline stage cannot produce usable rows."""
    pass


@dataclass
class BenchmarkBackfillConfig:
    """Configuration for the benchmark backfill pipeline."""
    benchmarks: List[str]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    incremental: bool = False
    symbols: Dict[str, str] = field(default_factory=lambda: dict(BENCHMARK_SYMBOLS))
    retries: int = 3
    backoff_s: float = 1.0
    timeout_s: float = 30

    def __post_init__(self):
        """Validate and set defaults."""
        if not self.benchmarks:
            raise ValueError("benchmarks must be a non-empty list")

        self.benchmarks = [b.lower() for b in self.benchmarks]

        if self.end_date is None:
            self.end_date = date.today()

        if self.start_date is None:
            self.start_date = self.end_date - timedelta(days=DEFAULT_LOOKBACK_DAYS)

        if self.start_date > self.end_date:
            raise ValueError("start_date must be <= end_date")

        for benchmark in self.benchmarks:
            try:
                resolve_symbol(benchmark, self.symbols)
            except BenchmarkFetchError as e:
                raise ValueError(str(e)) from e

    @classmethod
    def from_settings(cls, settings, benchmarks: Optional[List[str]] = None, **overrides) -> 'BenchmarkBackfillConfig':
        """Build a config from Settings, defaulting to the configured benchmarks."""
        return cls(
            benchmarks=list(benchmarks or settings.default_benchmarks),
            symbols=dict(settings.benchmark_symbols),
            retries=settings.fetch_retries,
            backoff_s=settings.fetch_backoff_s,
            timeout_s=settings.requests_timeout_s,
            **overrides
        )

    @property
    def days_range(self) -> int:
        return (self.end_date - self.start_date).days


def run_benchmark_backfill(config: BenchmarkBackfillConfig, conn: sqlite3.Connection) -> Dict[str, Any]:
    """
    Run the benchmark backfill pipeline.

    Benchmarks are fetched one after another. A benchmark whose fetch or
    validation fails is recorded and skipped; the run fails only when every
    attempted benchmark fails.

    Pipeline stages per benchmark:
    1. Resolve the fetch window (incremental runs start after the latest stored date)
    2. Fetch raw levels from the provider
    3. Normalize to canonical rows
    4. Validate each row
    5. Store valid rows

    Args:
        config: Pipeline configuration
        conn: SQLite database connection

    Returns:
        Dictionary with run results and per-benchmark outcomes
    """
    run_id = start_run(conn, DAG_NAME)
    start_time = datetime.now()

    result = {
        'run_id': run_id,
        'start_date': config.start_date,
        'end_date': config.end_date,
        'status': 'running',
        'rows_fetched': 0,
        'rows_stored': 0,
        'validation_warnings': 0,
        'benchmarks': {},
        'failed_benchmarks': [],
        'error_message': None
    }

    try:
        for benchmark in config.benchmarks:
            outcome = _backfill_benchmark(benchmark, config, conn)
            result['benchmarks'][benchmark] = outcome
            result['rows_fetched'] += outcome['rows_fetched']
            result['rows_stored'] += outcome['rows_stored']
            result['validation_warnings'] += outcome['validation_warnings']
            if outcome['status'] == 'failed':
                result['failed_benchmarks'].append(benchmark)

        attempted = [b for b, o in result['benchmarks'].items() if o['status'] != 'up_to_date']
        all_failed = bool(attempted) and len(result['failed_benchmarks']) == len(attempted)

        if result['failed_benchmarks']:
            result['error_message'] = "; ".join(
                f"{b}: {result['benchmarks'][b]['error_message']}" for b in result['failed_benchmarks']
            )

        status = RunStatus.FAILED if all_failed else RunStatus.COMPLETED
        finish_run(
            conn=conn,
            run_id=run_id,
            status=status,
            finished_at=datetime.now(),
            rows_in=result['rows_fetched'],
            rows_out=result['rows_stored'],
            error_message=result['error_message']
        )

        result['status'] = status.value
        result['duration_seconds'] = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Backfill run {run_id} {status.value}: {result['rows_stored']}/{result['rows_fetched']} "
            f"levels stored across {len(config.benchmarks)} benchmarks"
        )
        return result

    except Exception as e:
        # Storage or registry failure - record and report
        error_message = str(e)
        logger.error(f"Backfill run {run_id} failed: {error_message}")

        finish_run(
            conn=conn,
            run_id=run_id,
            status=RunStatus.FAILED,
            finished_at=datetime.now(),
            rows_in=result['rows_fetched'],
            rows_out=result['rows_stored'],
            error_message=error_message
        )

        result['status'] = 'failed'
        result['error_message'] = error_message
        result['duration_seconds'] = (datetime.now() - start_time).total_seconds()
        return result


def _fetch_window_start(benchmark: str, config: BenchmarkBackfillConfig, conn: sqlite3.Connection) -> date:
    if not config.incremental:
        return config.start_date

    latest = latest_benchmark_date(conn, benchmark)
    if latest is None or latest < config.start_date:
        return config.start_date
    return latest + timedelta(days=1)


def _backfill_benchmark(
    benchmark: str,
    config: BenchmarkBackfillConfig,
    conn: sqlite3.Connection
) -> Dict[str, Any]:
    """Fetch, validate and store one benchmark; fetch and validation failures are returned."""
    symbol = resolve_symbol(benchmark, config.symbols)
    window_start = _fetch_window_start(benchmark, config, conn)

    outcome = {
        'symbol': symbol,
        'status': 'running',
        'start_date': window_start,
        'end_date': config.end_date,
        'rows_fetched': 0,
        'rows_stored': 0,
        'rows_inserted': 0,
        'rows_updated': 0,
        'validation_warnings': 0,
        'error_message': None
    }

    if window_start > config.end_date:
        logger.info(f"{benchmark} already stored through {config.end_date}; nothing to fetch")
        outcome['status'] = 'up_to_date'
        return outcome

    try:
        raw_rows = fetch_benchmark_window(
            symbol,
            start=window_start,
            end=config.end_date,
            retries=config.retries,
            backoff_s=config.backoff_s,
            timeout=config.timeout_s
        )
        outcome['rows_fetched'] = len(raw_rows)

        if not raw_rows:
            # Empty window (holidays, weekend) is not an error
            outcome['status'] = 'completed'
            return outcome

        rows = normalize_benchmark_levels(
            raw_rows,
            benchmark=benchmark,
            source=SOURCE,
            ingested_at=datetime.now()
        )

        valid_rows = []
        for row in rows:
            try:
                validate_benchmark_level_row(row)
                valid_rows.append(row)
            except ValidationError as e:
                outcome['validation_warnings'] += 1
                logger.warning(f"Validation warning for {benchmark} {row.get('date', 'unknown')}: {e}")

        if not valid_rows:
            raise PipelineError(f"All {len(rows)} rows failed validation")

    except (BenchmarkFetchError, PipelineError) as e:
        logger.error(f"Backfill of {benchmark} ({symbol}) failed: {e}")
        outcome['status'] = 'failed'
        outcome['error_message'] = str(e)
        return outcome

    inserted, updated = upsert_benchmark_levels(conn, valid_rows)
    outcome.update({
        'status': 'completed',
        'rows_stored': len(valid_rows),
        'rows_inserted': inserted,
        'rows_updated': updated,
        'first_date': valid_rows[0]['date'],
        'last_date': valid_rows[-1]['date'],
        'first_level': valid_rows[0]['level'],
        'last_level': valid_rows[-1]['level'],
    })
    return outcome
