#!/usr/bin/env python3
"""
Main CLI for the Portfolio Analytics Dashboard.
Usage: python cli.py COMMAND [options]

Commands:
  template   Write a sample CSV in either accepted layout
  import     Parse a CSV and store its records under a portfolio name
  analyze    Compute MetricsJSON for a portfolio
  report     Render the dashboard for a portfolio as markdown
  list       Show stored portfolios
  delete     Remove a stored portfolio
"""

import sys
import json
import argparse
from datetime import date, datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from ingestion.transforms.csv_parser import parse_csv_file, CSVParseError
from ingestion.transforms.template import generate_template_csv
from storage.loaders import (
    get_connection,
    init_database,
    upsert_portfolio_records,
    list_portfolios,
    delete_portfolio,
)
from analysis.analysis_job import analyze_portfolio
from analysis import analyze_portfolio as analyze_cli
from reports.dashboard_view import build_dashboard_view, render_markdown
from reports.atomic_writer import write_both_atomic, write_text_atomic, verify_file_integrity
from reports.path_policy import create_report_paths, DEFAULT_REPORTS_DIR, PathPolicyError
from utils.config import load_settings, configure_logging, ConfigError

MAX_ERRORS_SHOWN = 10


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Portfolio Analytics Dashboard',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py template --format full --output my_portfolio.csv
  python cli.py import main my_portfolio.csv
  python cli.py analyze main --start 2023-01-01
  python cli.py report main
  python cli.py report main --csv my_portfolio.csv
  python cli.py list
        """
    )
    parser.add_argument('--db-path', help='Path to SQLite database (default: from settings)')
    parser.add_argument('--config', help='Path to dashboard YAML config')

    subparsers = parser.add_subparsers(dest='command', required=True)

    template = subparsers.add_parser('template', help='Write a sample CSV')
    template.add_argument('--format', choices=['simple', 'full'], default='simple',
                          help='simple: date, principle, market_value; full: adds share_value and benchmarks')
    template.add_argument('--benchmarks', nargs='+', help='Benchmark columns for the full layout')
    template.add_argument('--output', help='Output file (default: print to stdout)')

    import_cmd = subparsers.add_parser('import', help='Import a CSV into the portfolio store')
    import_cmd.add_argument('portfolio', help='Portfolio name')
    import_cmd.add_argument('csv', help='CSV file to import')

    analyze = subparsers.add_parser('analyze', help='Compute MetricsJSON (see analysis/analyze_portfolio.py --help)',
                                    add_help=False)
    analyze.add_argument('args', nargs=argparse.REMAINDER)

    report = subparsers.add_parser('report', help='Render the dashboard as a markdown report')
    report.add_argument('portfolio', help='Portfolio name')
    report.add_argument('--csv', help='Analyze a CSV file directly instead of the database')
    report.add_argument('--metrics', help='Render an existing MetricsJSON file instead of analyzing')
    report.add_argument('--as-of', type=date.fromisoformat, help='Analysis date (YYYY-MM-DD, default: today)')
    report.add_argument('--output-dir', help=f'Reports directory (default: {DEFAULT_REPORTS_DIR})')

    subparsers.add_parser('list', help='Show stored portfolios')

    delete = subparsers.add_parser('delete', help='Remove a stored portfolio')
    delete.add_argument('portfolio', help='Portfolio name')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(argv)

    if args.command == 'analyze':
        # Global options go before the command; pass them through
        passthrough = list(args.args)
        if args.db_path:
            passthrough += ['--db-path', args.db_path]
        if args.config:
            passthrough += ['--config', args.config]
        return analyze_cli.main(passthrough)

    if args.command == 'template':
        return generate_template(args)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level)
    db_path = args.db_path or settings.db_path

    if args.command == 'import':
        return import_portfolio(args.portfolio, Path(args.csv), db_path)
    if args.command == 'report':
        return generate_report(args, settings, db_path)
    if args.command == 'list':
        return show_portfolios(db_path)
    return remove_portfolio(args.portfolio, db_path)


def generate_template(args) -> int:
    """Write or print a template CSV."""
    kwargs = {'benchmarks': args.benchmarks} if args.benchmarks else {}
    content = generate_template_csv(args.format, **kwargs)

    if not args.output:
        print(content, end='')
        return 0

    result = write_text_atomic(content, Path(args.output))
    if result['status'] != 'completed':
        print(f"❌ Write failed: {result['error']}", file=sys.stderr)
        return 1

    print(f"📝 {args.format} template written to {args.output}")
    return 0


def import_portfolio(portfolio: str, csv_path: Path, db_path: str) -> int:
    """
    Parse a CSV and upsert its valid records.

    Row errors are reported but do not stop the import.
    """
    print(f"📥 Importing {csv_path} as {portfolio}")

    try:
        result = parse_csv_file(csv_path)
    except CSVParseError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print(f"   Layout: {result.csv_format}")
    if result.benchmarks:
        print(f"   Benchmarks: {', '.join(result.benchmarks)}")

    if result.errors:
        print(f"⚠️  {len(result.errors)} rows skipped:")
        for error in result.errors[:MAX_ERRORS_SHOWN]:
            print(f"   • {error}")
        if len(result.errors) > MAX_ERRORS_SHOWN:
            print(f"   ... and {len(result.errors) - MAX_ERRORS_SHOWN} more")

    if not result.records:
        print("❌ No valid records to import", file=sys.stderr)
        return 1

    conn = get_connection(db_path)
    try:
        init_database(conn)
        inserted, updated = upsert_portfolio_records(conn, portfolio, result.records)
    finally:
        conn.close()

    first, last = result.records[0], result.records[-1]
    print(f"✅ Stored {len(result.records)} records ({inserted} new, {updated} updated)")
    print(f"📅 {first.date} to {last.date}")
    print(f"💾 Database: {db_path}")
    return 0


def generate_report(args, settings, db_path: str) -> int:
    """
    Analyze a portfolio (or load existing metrics) and write the markdown dashboard
    with its metrics sidecar.
    """
    if args.metrics:
        try:
            with open(args.metrics, 'r', encoding='utf-8') as f:
                metrics = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"❌ Could not read metrics {args.metrics}: {e}", file=sys.stderr)
            return 1
        print(f"📂 Loaded metrics from {args.metrics}")
    else:
        metrics = _analyze_for_report(args, settings, db_path)
        if metrics is None:
            return 1

    view = build_dashboard_view(metrics)
    report_content = render_markdown(view)

    base_dir = Path(args.output_dir) if args.output_dir else DEFAULT_REPORTS_DIR
    try:
        paths = create_report_paths(args.portfolio, datetime.now(), base_dir)
    except PathPolicyError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    write_result = write_both_atomic(
        report_content=report_content,
        metrics=metrics,
        report_path=paths['report_path'],
        metrics_path=paths['metrics_path']
    )

    if write_result['status'] != 'completed':
        print(f"❌ Write failed: {write_result['error']}", file=sys.stderr)
        return 1

    if not verify_file_integrity(paths['report_path'], write_result['report_bytes']):
        print(f"❌ Report failed integrity check: {paths['report_path']}", file=sys.stderr)
        return 1

    for card in view['cards']:
        if card['title'] == 'Portfolio Health':
            print(f"🩺 Health: {card['items']['Health Score']}, {card['items']['Risk Level']}")
    for warning in view['warnings']:
        print(f"⚠️  {warning}")

    print()
    print("✅ Report generation complete!")
    print(f"📄 Report: {paths['report_path']}")
    print(f"📊 Metrics: {paths['metrics_path']}")
    return 0


def _analyze_for_report(args, settings, db_path: str):
    conn = None
    if args.csv is None:
        if not Path(db_path).exists():
            print(f"❌ Database not found: {db_path}", file=sys.stderr)
            print(f"💡 Import a CSV first: python cli.py import {args.portfolio} FILE.csv", file=sys.stderr)
            return None
        conn = get_connection(db_path)
        init_database(conn)

    print(f"🔍 Analyzing {args.portfolio}")
    try:
        result = analyze_portfolio(
            args.portfolio,
            Path(settings.output_dir) / f'{args.portfolio}.json',
            conn=conn,
            csv_path=args.csv,
            as_of_date=args.as_of,
            settings=settings
        )
    finally:
        if conn is not None:
            conn.close()

    if result['status'] != 'completed':
        print(f"❌ Analysis failed for {args.portfolio}: {result['error_message']}", file=sys.stderr)
        return None

    print(f"📈 {result['records']} records, {result['metrics_calculated']} metrics")
    return result['metrics']


def show_portfolios(db_path: str) -> int:
    """List stored portfolios."""
    if not Path(db_path).exists():
        print("No portfolios stored yet")
        return 0

    conn = get_connection(db_path)
    try:
        init_database(conn)
        portfolios = list_portfolios(conn)
    finally:
        conn.close()

    if not portfolios:
        print("No portfolios stored yet")
        return 0

    print(f"📋 {len(portfolios)} portfolio(s) in {db_path}:")
    for p in portfolios:
        print(f"   {p['portfolio']:<20} {p['records']:>6} records  {p['start_date']} to {p['end_date']}")
    return 0


def remove_portfolio(portfolio: str, db_path: str) -> int:
    """Delete a stored portfolio."""
    if not Path(db_path).exists():
        print(f"❌ Database not found: {db_path}", file=sys.stderr)
        return 1

    conn = get_connection(db_path)
    try:
        removed = delete_portfolio(conn, portfolio)
    finally:
        conn.close()

    if removed == 0:
        print(f"❌ No records stored for portfolio {portfolio}", file=sys.stderr)
        return 1

    print(f"🗑️  Removed {removed} records of {portfolio}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
