"""
Filename and path policy for dashboard report storage.
Deterministic, sortable paths per portfolio: {base}/{PORTFOLIO}/{YYYY-MM-DD_HHMMSS}_report.md
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

DEFAULT_REPORTS_DIR = Path('./reports/output')
MAX_NAME_LENGTH = 40

REPORT_FILENAME_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})_(\d{2})(\d{2})(\d{2})_report\.md$')


class PathPolicyError(Exception):
    """Raised when path policy validation fails."""
    pass


def create_report_paths(
    portfolio: str,
    timestamp: datetime,
    base_dir: Path = DEFAULT_REPORTS_DIR
) -> Dict[str, Path]:
    """
    Create all report-related paths for a portfolio and timestamp.

    Args:
        portfolio: Portfolio name
        timestamp: Local generation time
        base_dir: Base reports directory

    Returns:
        Dictionary with:
        - report_path: Markdown report
        - metrics_path: Metrics JSON sidecar
        - portfolio_dir: Directory holding every report for the portfolio
        - timestamp_str: Sortable timestamp used in the filenames

    Raises:
        PathPolicyError: If the portfolio name is invalid
    """
    portfolio_dir = Path(base_dir) / normalize_portfolio_name(portfolio)

    # No colons so the names are valid on Windows too
    time_str = timestamp.strftime('%Y-%m-%d_%H%M%S')

    return {
        'report_path': portfolio_dir / f'{time_str}_report.md',
        'metrics_path': portfolio_dir / f'{time_str}_metrics.json',
        'portfolio_dir': portfolio_dir,
        'timestamp_str': time_str
    }


def normalize_portfolio_name(portfolio: str) -> str:
    """
    Uppercase a portfolio name and replace filesystem-unsafe characters.

    Raises:
        PathPolicyError: If the name is empty or too long
    """
    if not portfolio or not isinstance(portfolio, str) or not portfolio.strip():
        raise PathPolicyError("Portfolio name cannot be empty")

    if len(portfolio) > MAX_NAME_LENGTH:
        raise PathPolicyError(f"Portfolio name too long (max {MAX_NAME_LENGTH} chars): {portfolio}")

    return re.sub(r'[^A-Z0-9_]', '_', portfolio.strip().upper())


def parse_timestamp_from_filename(filename: str) -> datetime:
    """
    Parse timestamp from a report filename (e.g. '2025-09-06_143000_report.md').

    Raises:
        PathPolicyError: If filename format is invalid
    """
    match = REPORT_FILENAME_PATTERN.match(filename)
    if not match:
        raise PathPolicyError(f"Invalid filename format: {filename}")

    try:
        return datetime(*map(int, match.groups()))
    except ValueError as e:
        raise PathPolicyError(f"Invalid date/time in filename {filename}: {e}")


def list_report_files(portfolio_dir: Path) -> List[Path]:
    """Timestamped reports in a portfolio directory, newest first."""
    if not portfolio_dir.exists():
        return []

    reports = [p for p in portfolio_dir.glob('*_report.md') if REPORT_FILENAME_PATTERN.match(p.name)]
    # Filenames sort chronologically
    reports.sort(reverse=True)
    return reports


def get_latest_report_path(portfolio_dir: Path) -> Optional[Path]:
    """Most recent report for a portfolio, or None."""
    reports = list_report_files(portfolio_dir)
    return reports[0] if reports else None
