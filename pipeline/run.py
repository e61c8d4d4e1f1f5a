#!/usr/bin/env python3
"""
Pipeline runner CLI - makes the benchmark backfill human-visible.
Usage: python pipeline/run.py benchmark_backfill [BENCHMARK ...] [options]
       python pipeline/run.py runs [--limit N]
"""

import sys
import argparse
from datetime import date, timedelta
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pipeline.benchmark_backfill_dag import (
    run_benchmark_backfill,
    BenchmarkBackfillConfig,
    DAG_NAME,
)
from storage.loaders import init_database, get_connection
from storage.run_registry import list_recent_runs, get_dag_stats
from utils.config import load_settings, configure_logging, ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Run data pipelines',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python pipeline/run.py benchmark_backfill
  python pipeline/run.py benchmark_backfill sha csi300 --days 30
  python pipeline/run.py benchmark_backfill hangseng --start 2020-01-01 --end 2024-12-31
  python pipeline/run.py benchmark_backfill --incremental
  python pipeline/run.py runs --limit 10
        """
    )
    parser.add_argument('--db-path', help='Path to SQLite database (default: from settings)')
    parser.add_argument('--config', help='Path to dashboard YAML config')

    subparsers = parser.add_subparsers(dest='dag', required=True)

    backfill = subparsers.add_parser(DAG_NAME, help='Fetch benchmark index levels into the store')
    backfill.add_argument('benchmarks', nargs='*',
                          help='Benchmark keys (default: configured benchmarks)')
    backfill.add_argument('--days', type=int, default=365,
                          help='Days of history to fetch when --start is not given (default: 365)')
    backfill.add_argument('--start', type=date.fromisoformat, help='Start date (YYYY-MM-DD)')
    backfill.add_argument('--end', type=date.fromisoformat, help='End date (YYYY-MM-DD, default: today)')
    backfill.add_argument('--incremental', action='store_true',
                          help='Only fetch dates after the latest stored level')

    runs = subparsers.add_parser('runs', help='Show recent pipeline runs')
    runs.add_argument('--limit', type=int, default=10, help='Number of runs to show (default: 10)')
    runs.add_argument('--days', type=int, default=30, help='Stats lookback in days (default: 30)')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)

    db_path = args.db_path or settings.db_path
    conn = get_connection(db_path)
    init_database(conn)

    try:
        if args.dag == 'runs':
            _display_runs(conn, args.limit, args.days)
            return 0
        return _run_backfill(args, settings, conn, db_path)
    finally:
        conn.close()


def _run_backfill(args, settings, conn, db_path) -> int:
    end_date = args.end or date.today()
    start_date = args.start or end_date - timedelta(days=args.days)

    try:
        config = BenchmarkBackfillConfig.from_settings(
            settings,
            benchmarks=args.benchmarks,
            start_date=start_date,
            end_date=end_date,
            incremental=args.incremental
        )
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print(f"🚀 Running {DAG_NAME} for {', '.join(config.benchmarks)}")
    print(f"📅 Date range: {config.start_date} to {config.end_date} ({config.days_range} days)")
    if config.incremental:
        print("🔁 Incremental: starting after the latest stored level")
    print()

    result = run_benchmark_backfill(config, conn)

    print("📊 Pipeline Results:")
    print(f"   Status: {result['status'].upper()}")
    print(f"   Run ID: {result['run_id']}")
    print(f"   Duration: {result['duration_seconds']:.1f}s")
    print(f"   Levels fetched: {result['rows_fetched']}")
    print(f"   Levels stored: {result['rows_stored']}")
    if result['validation_warnings'] > 0:
        print(f"   Validation warnings: {result['validation_warnings']}")
    print()

    _display_benchmark_results(result)

    if result['status'] == 'completed':
        print(f"💾 Data stored in: {db_path}")
        return 0

    print("❌ Pipeline Failed:")
    print(f"   Error: {result.get('error_message') or 'Unknown error'}")
    return 1


def _display_benchmark_results(result: dict):
    """Display one line per benchmark."""
    icons = {'completed': '✅', 'up_to_date': '⏭️ ', 'failed': '❌'}
    for benchmark, outcome in result['benchmarks'].items():
        icon = icons.get(outcome['status'], '•')
        line = f"   {icon} {benchmark} ({outcome['symbol']}): "
        if outcome['status'] == 'failed':
            line += outcome['error_message']
        elif outcome['status'] == 'up_to_date':
            line += "already up to date"
        else:
            line += f"{outcome['rows_stored']} levels"
            if outcome.get('first_level') is not None:
                change = (outcome['last_level'] / outcome['first_level'] - 1) * 100
                line += f", {outcome['first_date']} → {outcome['last_date']} ({change:+.2f}%)"
        print(line)
    print()


def _display_runs(conn, limit: int, days: int):
    """Display recent runs and aggregate stats."""
    runs = list_recent_runs(conn, limit=limit)
    if not runs:
        print("No pipeline runs recorded")
        return

    print(f"📋 Recent runs (latest {len(runs)}):")
    for run in runs:
        duration = f"{run['duration_seconds']}s" if run['duration_seconds'] is not None else "-"
        print(f"   #{run['run_id']} {run['dag_name']} {run['status'].value:<9} "
              f"{run['started_at']:%Y-%m-%d %H:%M}  in={run['rows_in'] or 0} out={run['rows_out'] or 0}  {duration}")
        if run['error_message']:
            print(f"      ⚠️  {run['error_message']}")
    print()

    stats = get_dag_stats(conn, DAG_NAME, days=days)
    if stats['total_runs']:
        print(f"📈 {DAG_NAME} over {days} days: {stats['total_runs']} runs, "
              f"{stats['success_rate']:.0%} successful, {stats['total_rows_out']} levels stored")


if __name__ == '__main__':
    sys.exit(main())
