#!/usr/bin/env python3
"""
CLI tool for analyzing a portfolio.
Usage: python analysis/analyze_portfolio.py PORTFOLIO [options]
"""

import sys
import argparse
import json
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from analysis.analysis_job import analyze_portfolio
from storage.loaders import get_connection, init_database
from reports.formatters import format_signed_percentage, format_percentage, format_ratio, format_share_value
from utils.config import load_settings, configure_logging, ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Analyze performance metrics for a portfolio',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python analysis/analyze_portfolio.py main
  python analysis/analyze_portfolio.py main --csv ./data/raw/main.csv
  python analysis/analyze_portfolio.py main --start 2022-01-01 --end 2024-12-31
        """
    )

    parser.add_argument('portfolio', help='Portfolio name (e.g., main)')
    parser.add_argument('--csv', help='Analyze a CSV file directly instead of the database')
    parser.add_argument('--db-path', help='Path to SQLite database (default: from settings)')
    parser.add_argument('--config', help='Path to dashboard YAML config')
    parser.add_argument('--output',
                        help='Output JSON file path (default: {output_dir}/{PORTFOLIO}.json)')
    parser.add_argument('--as-of',
                        type=date.fromisoformat,
                        help='Analysis date (YYYY-MM-DD, default: today)')
    parser.add_argument('--start',
                        type=date.fromisoformat,
                        help='Start date for record filter (YYYY-MM-DD)')
    parser.add_argument('--end',
                        type=date.fromisoformat,
                        help='End date for record filter (YYYY-MM-DD)')
    parser.add_argument('--include-series',
                        action='store_true',
                        help='Also write drawdown and volatility curves')
    parser.add_argument('--quiet', '-q',
                        action='store_true',
                        help='Minimal output (just success/failure)')
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

    output = Path(args.output) if args.output else Path(settings.output_dir) / f'{args.portfolio}.json'
    db_path = args.db_path or settings.db_path

    conn = None
    if args.csv is None:
        if not Path(db_path).exists():
            print(f"❌ Database not found: {db_path}", file=sys.stderr)
            print(f"💡 Import a CSV first: python cli.py import {args.portfolio} FILE.csv", file=sys.stderr)
            return 1
        conn = get_connection(db_path)
        init_database(conn)

    if not args.quiet:
        print(f"🔍 Analyzing {args.portfolio}")
        print(f"📊 Source: {args.csv or db_path}")
        if args.start or args.end:
            print(f"📅 Window: {args.start or 'earliest'} to {args.end or 'latest'}")
        print()

    try:
        result = analyze_portfolio(
            args.portfolio,
            output,
            conn=conn,
            csv_path=args.csv,
            as_of_date=args.as_of,
            start_date=args.start,
            end_date=args.end,
            settings=settings,
            include_series=args.include_series
        )
    finally:
        if conn is not None:
            conn.close()

    if result['status'] != 'completed':
        print(f"❌ Analysis failed for {args.portfolio}: {result['error_message']}", file=sys.stderr)
        return 1

    if args.quiet:
        print(f"✅ {args.portfolio} analysis complete: {result['output_path']}")
        return 0

    print("✅ Analysis completed successfully!")
    print(f"📊 Metrics calculated: {result['metrics_calculated']}")
    print(f"📈 Records: {result['records']}")
    print(f"⏱️  Duration: {result['duration_seconds']:.1f}s")
    print(f"💾 Results saved to: {result['output_path']}")
    print()
    _show_quick_summary(result['metrics'])

    for warning in result['warnings']:
        print(f"⚠️  {warning}")

    return 0


def _show_quick_summary(metrics: dict) -> None:
    """Show quick summary of calculated metrics."""
    print(f"📋 Quick Summary for {metrics['portfolio']}:")

    overall = metrics.get('overall')
    if overall:
        print(f"   Share Value: {format_share_value(overall['current_share_value'])} ({overall['end_date']})")
        print(f"   Total Return: {format_signed_percentage(overall['total_return'])}")
        print(f"   Annualized: {format_signed_percentage(overall['annualized_return'])}")
        if overall['outperformance'] is not None:
            print(f"   vs Benchmarks: {format_signed_percentage(overall['outperformance'])}")

    risk = metrics.get('risk')
    if risk:
        print(f"   Volatility: {format_percentage(risk['volatility'])}")
        print(f"   Sharpe: {format_ratio(risk['sharpe_ratio'])}")
        print(f"   Max Drawdown: {format_percentage(risk['max_drawdown'])}")

    print()


if __name__ == '__main__':
    sys.exit(main())
