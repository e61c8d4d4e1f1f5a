"""
yfinance adapter - fetch benchmark index levels from Yahoo Finance.
Network IO allowed here, but minimal business logic.
"""

import logging
import time
import yfinance as yf
import pandas as pd
from datetime import date, timedelta
from typing import Dict, Any, List

logger = logging.getLogger(__name__)

# Benchmark key -> Yahoo Finance index symbol
BENCHMARK_SYMBOLS = {
    'sha': '000001.SS',
    'she': '399001.SZ',
    'csi300': '000300.SS',
    'sp500': '^GSPC',
    'nasdaq': '^IXIC',
    'ftse100': '^FTSE',
    'hangseng': '^HSI',
    'nikkei225': '^N225',
    'tsx': '^GSPTSE',
    'klse': '^KLSE',
    'cac40': '^FCHI',
    'dax': '^GDAXI',
    'sti': '^STI',
    'asx200': '^AXJO',
}

PRICE_FIELDS = ['Open', 'High', 'Low', 'Close', 'Adj Close']


class BenchmarkFetchError(Exception):
    """Raised when fetching benchmark levels fails."""
    pass


def resolve_symbol(benchmark: str, symbols: Dict[str, str] = None) -> str:
    """
    Map a benchmark key to its Yahoo Finance symbol.

    Raises:
        BenchmarkFetchError: If the key is unknown
    """
    table = symbols if symbols is not None else BENCHMARK_SYMBOLS
    symbol = table.get(benchmark.lower()) if benchmark else None
    if symbol is None:
        raise BenchmarkFetchError(f"Unknown benchmark: {benchmark!r}")
    return symbol


def fetch_benchmark_window(
    symbol: str,
    start: date,
    end: date,
    retries: int = 3,
    backoff_s: float = 1.0,
    timeout: float = 30
) -> List[Dict[str, Any]]:
    """
    Fetch daily index levels for a symbol within a date window.
    Returns raw data in provider format - no normalization.

    Attempts are sequential; the wait before attempt n+1 is backoff_s * 2**(n-1).

    Args:
        symbol: Yahoo Finance symbol (e.g. '000300.SS')
        start: Start date (inclusive)
        end: End date (inclusive)
        retries: Total number of attempts
        backoff_s: Base wait between attempts in seconds
        timeout: Per-request timeout in seconds

    Returns:
        List of raw price dictionaries with 'Date' and price fields

    Raises:
        BenchmarkFetchError: If validation fails or every attempt fails
    """
    _validate_date_range(start, end)
    _validate_symbol(symbol)

    if retries < 1:
        raise BenchmarkFetchError(f"retries must be >= 1, got {retries}")

    last_error = None
    for attempt in range(1, retries + 1):
        try:
            return _download(symbol, start, end, timeout)
        except Exception as e:
            last_error = e
            logger.warning(f"Fetch attempt {attempt}/{retries} for {symbol} failed: {e}")
            if attempt < retries:
                time.sleep(backoff_s * (2 ** (attempt - 1)))

    logger.error(f"Giving up on {symbol} after {retries} attempts")
    raise BenchmarkFetchError(f"Failed to fetch levels for {symbol}: {last_error}") from last_error


def _download(symbol: str, start: date, end: date, timeout: float) -> List[Dict[str, Any]]:
    # yfinance uses exclusive end dates, so add 1 day
    yf_end = end + timedelta(days=1)

    data = yf.download(
        symbol,
        start=start.isoformat(),
        end=yf_end.isoformat(),
        progress=False,
        auto_adjust=False,
        timeout=timeout
    )

    if data is None or data.empty:
        return []

    # Multi-level columns come back when yfinance keys fields by ticker
    if isinstance(data.columns, pd.MultiIndex):
        data.columns = data.columns.get_level_values(0)

    rows = []
    for date_idx, row in data.iterrows():
        row_dict = {'Date': date_idx.strftime('%Y-%m-%d')}
        for field in PRICE_FIELDS:
            if field in data.columns and pd.notna(row[field]):
                row_dict[field] = float(row[field])
        rows.append(row_dict)

    return rows


def _validate_date_range(start: date, end: date) -> None:
    """
    Validate date range parameters.

    Raises:
        BenchmarkFetchError: If validation fails
    """
    if start > end:
        raise BenchmarkFetchError(f"start date ({start}) must be <= end date ({end})")

    today = date.today()
    if start > today:
        raise BenchmarkFetchError("Future dates not allowed for historical data")


def _validate_symbol(symbol: str) -> None:
    if not symbol or not isinstance(symbol, str):
        raise BenchmarkFetchError("Symbol must be non-empty string")

    if len(symbol) > 15:
        raise BenchmarkFetchError("Symbol too long (max 15 characters)")

    allowed_chars = set('ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-^=')
    if not set(symbol.upper()).issubset(allowed_chars):
        raise BenchmarkFetchError(f"Symbol contains invalid characters: {symbol}")
