"""
Database loaders - idempotent upsert functions for SQLite.
Thin IO layer with focus on data integrity and idempotence.
"""

import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Any, List, Tuple, Optional, Sequence, Union

from ingestion.records import DailyRecord, Series
from ingestion.transforms.normalizers import merge_benchmark_levels, normalize_series

logger = logging.getLogger(__name__)


def init_database(conn: sqlite3.Connection) -> None:
    """
    Initialize database with required tables.
    Idempotent - safe to call multiple times.

    Args:
        conn: SQLite connection
    """
    conn.execute("PRAGMA foreign_keys = ON")

    # Benchmark index levels keyed by (benchmark, date)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS benchmark_levels (
            benchmark TEXT NOT NULL,
            date DATE NOT NULL,
            level REAL NOT NULL CHECK(level > 0),
            source TEXT NOT NULL,
            ingested_at DATETIME NOT NULL,
            PRIMARY KEY (benchmark, date)
        )
    """)

    # Portfolio valuations keyed by (portfolio, date); benchmarks as JSON
    conn.execute("""
        CREATE TABLE IF NOT EXISTS portfolio_records (
            portfolio TEXT NOT NULL,
            date DATE NOT NULL,
            principal REAL NOT NULL CHECK(principal >= 0),
            share_value REAL NOT NULL CHECK(share_value > 0),
            market_value REAL,
            units REAL,
            benchmarks TEXT NOT NULL DEFAULT '{}',
            ingested_at DATETIME NOT NULL,
            PRIMARY KEY (portfolio, date)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS runs (
            run_id INTEGER PRIMARY KEY AUTOINCREMENT,
            dag_name TEXT NOT NULL,
            started_at DATETIME NOT NULL,
            finished_at DATETIME,
            status TEXT NOT NULL CHECK(status IN ('running', 'completed', 'failed')),
            rows_in INTEGER,
            rows_out INTEGER,
            log_path TEXT,
            error_message TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_levels_date ON benchmark_levels(date)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_records_date ON portfolio_records(date)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status)")

    conn.commit()


def get_connection(db_path: Union[str, Path] = './data/portfolio.db') -> sqlite3.Connection:
    """
    Get SQLite connection with proper configuration.

    Args:
        db_path: Path to SQLite database file (':memory:' for tests)

    Returns:
        Configured SQLite connection
    """
    if str(db_path) != ':memory:':
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _as_date(value: Union[str, date]) -> date:
    return date.fromisoformat(value) if isinstance(value, str) else value


def _as_timestamp(value: Union[str, datetime]) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


def upsert_benchmark_levels(conn: sqlite3.Connection, rows: List[Dict[str, Any]]) -> Tuple[int, int]:
    """
    Upsert benchmark level rows into database.
    Idempotent - can be called multiple times with same data.

    Args:
        conn: SQLite connection
        rows: Canonical level dicts (benchmark, date, level, source, ingested_at)

    Returns:
        Tuple of (inserted_count, updated_count)
    """
    if not rows:
        return (0, 0)

    inserted = 0
    updated = 0

    for row in rows:
        key = (row['benchmark'], _as_date(row['date']).isoformat())
        cursor = conn.execute(
            "SELECT COUNT(*) FROM benchmark_levels WHERE benchmark = ? AND date = ?",
            key
        )
        exists = cursor.fetchone()[0] > 0

        if exists:
            conn.execute("""
                UPDATE benchmark_levels SET level = ?, source = ?, ingested_at = ?
                WHERE benchmark = ? AND date = ?
            """, (row['level'], row['source'], _as_timestamp(row['ingested_at']), *key))
            updated += 1
        else:
            conn.execute("""
                INSERT INTO benchmark_levels (benchmark, date, level, source, ingested_at)
                VALUES (?, ?, ?, ?, ?)
            """, (*key, row['level'], row['source'], _as_timestamp(row['ingested_at'])))
            inserted += 1

    conn.commit()
    return (inserted, updated)


def query_benchmark_levels(
    conn: sqlite3.Connection,
    benchmarks: Optional[Sequence[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> Dict[str, Dict[date, float]]:
    """
    Stored levels by benchmark, optionally filtered by key and date range.

    Args:
        conn: SQLite connection
        benchmarks: Benchmark keys to include (all when None)
        start_date: Inclusive lower bound
        end_date: Inclusive upper bound

    Returns:
        Benchmark key -> {date: level}
    """
    query = "SELECT benchmark, date, level FROM benchmark_levels WHERE 1 = 1"
    params: List[Any] = []

    if benchmarks:
        query += f" AND benchmark IN ({', '.join('?' for _ in benchmarks)})"
        params.extend(benchmarks)

    if start_date is not None:
        query += " AND date >= ?"
        params.append(start_date.isoformat())

    if end_date is not None:
        query += " AND date <= ?"
        params.append(end_date.isoformat())

    query += " ORDER BY benchmark, date ASC"

    levels: Dict[str, Dict[date, float]] = {}
    for benchmark, day, level in conn.execute(query, params):
        levels.setdefault(benchmark, {})[_as_date(day)] = level
    return levels


def benchmark_levels_as_of(
    conn: sqlite3.Connection,
    as_of: date,
    benchmarks: Optional[Sequence[str]] = None
) -> Dict[str, float]:
    """
    Latest stored level of each benchmark on or before a date.

    Benchmarks with nothing stored up to that date are left out.
    """
    query = """
        SELECT b.benchmark, b.level
        FROM benchmark_levels b
        JOIN (
            SELECT benchmark, MAX(date) AS date
            FROM benchmark_levels
            WHERE date <= ?
            GROUP BY benchmark
        ) latest ON latest.benchmark = b.benchmark AND latest.date = b.date
    """
    params: List[Any] = [as_of.isoformat()]

    if benchmarks:
        query += f" WHERE b.benchmark IN ({', '.join('?' for _ in benchmarks)})"
        params.extend(benchmarks)

    return {benchmark: level for benchmark, level in conn.execute(query, params)}


def latest_benchmark_date(conn: sqlite3.Connection, benchmark: str) -> Optional[date]:
    """Most recent stored date for a benchmark, None if none stored."""
    row = conn.execute(
        "SELECT MAX(date) FROM benchmark_levels WHERE benchmark = ?", (benchmark,)
    ).fetchone()
    return _as_date(row[0]) if row and row[0] else None


def upsert_portfolio_records(
    conn: sqlite3.Connection,
    portfolio: str,
    records: Sequence[DailyRecord],
    ingested_at: Optional[datetime] = None
) -> Tuple[int, int]:
    """
    Upsert parsed portfolio records under a portfolio name.
    Later imports replace earlier rows for the same date.

    Args:
        conn: SQLite connection
        portfolio: Portfolio name
        records: Records with share values (output of parse_csv)
        ingested_at: Import timestamp (defaults to now)

    Returns:
        Tuple of (inserted_count, updated_count)
    """
    if not records:
        return (0, 0)

    ingested_at = ingested_at or datetime.now()
    inserted = 0
    updated = 0

    for record in records:
        key = (portfolio, record.date.isoformat())
        values = (
            record.principal,
            record.share_value,
            record.market_value,
            record.units,
            json.dumps({k: v for k, v in record.benchmarks.items() if v is not None}),
            _as_timestamp(ingested_at),
        )
        cursor = conn.execute(
            "SELECT COUNT(*) FROM portfolio_records WHERE portfolio = ? AND date = ?", key
        )
        exists = cursor.fetchone()[0] > 0

        if exists:
            conn.execute("""
                UPDATE portfolio_records SET
                    principal = ?, share_value = ?, market_value = ?, units = ?,
                    benchmarks = ?, ingested_at = ?
                WHERE portfolio = ? AND date = ?
            """, (*values, *key))
            updated += 1
        else:
            conn.execute("""
                INSERT INTO portfolio_records (
                    principal, share_value, market_value, units, benchmarks,
                    ingested_at, portfolio, date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (*values, *key))
            inserted += 1

    conn.commit()
    logger.info(f"Stored {len(records)} records for portfolio {portfolio} ({inserted} new, {updated} updated)")
    return (inserted, updated)


def query_portfolio_records(
    conn: sqlite3.Connection,
    portfolio: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[DailyRecord]:
    """
    Stored records for a portfolio in ascending date order, as stored.

    Args:
        conn: SQLite connection
        portfolio: Portfolio name
        start_date: Optional inclusive lower bound
        end_date: Optional inclusive upper bound
    """
    query = """
        SELECT date, principal, share_value, market_value, units, benchmarks
        FROM portfolio_records
        WHERE portfolio = ?
    """
    params: List[Any] = [portfolio]

    if start_date is not None:
        query += " AND date >= ?"
        params.append(start_date.isoformat())

    if end_date is not None:
        query += " AND date <= ?"
        params.append(end_date.isoformat())

    query += " ORDER BY date ASC"

    return [
        DailyRecord(
            date=_as_date(day),
            principal=principal,
            share_value=share_value,
            benchmarks=json.loads(benchmarks or '{}'),
            market_value=market_value,
            units=units,
        )
        for day, principal, share_value, market_value, units, benchmarks in conn.execute(query, params)
    ]


def load_portfolio_series(
    conn: sqlite3.Connection,
    portfolio: str,
    benchmarks: Optional[Sequence[str]] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> Series:
    """
    Load a portfolio as a normalized Series with stored benchmark levels merged.

    Levels imported with the portfolio win over stored ones for the same date;
    gaps are forward-filled by the normalizer.

    Args:
        conn: SQLite connection
        portfolio: Portfolio name
        benchmarks: Stored benchmark keys to merge (all stored when None)
        start_date: Optional inclusive lower bound
        end_date: Optional inclusive upper bound

    Returns:
        Normalized Series, empty if the portfolio has no records
    """
    records = query_portfolio_records(conn, portfolio, start_date, end_date)
    if not records:
        return ()

    first_date = records[0].date
    levels = query_benchmark_levels(conn, benchmarks, first_date, records[-1].date)

    # Seed the first date with the prior close so a holiday start still has a level
    for benchmark, level in benchmark_levels_as_of(conn, first_date, benchmarks).items():
        levels.setdefault(benchmark, {}).setdefault(first_date, level)

    logger.info(f"Loaded {len(records)} records for {portfolio}, merging benchmarks: {sorted(levels) or 'none'}")
    return normalize_series(merge_benchmark_levels(records, levels))


def list_portfolios(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    """
    Stored portfolios with record counts and date coverage.

    Returns:
        [{'portfolio', 'records', 'start_date', 'end_date'}] sorted by name
    """
    cursor = conn.execute("""
        SELECT portfolio, COUNT(*), MIN(date), MAX(date)
        FROM portfolio_records
        GROUP BY portfolio
        ORDER BY portfolio
    """)
    return [
        {
            'portfolio': name,
            'records': count,
            'start_date': _as_date(start),
            'end_date': _as_date(end),
        }
        for name, count, start, end in cursor.fetchall()
    ]


def delete_portfolio(conn: sqlite3.Connection, portfolio: str) -> int:
    """Delete all records of a portfolio; returns the number removed."""
    cursor = conn.execute("DELETE FROM portfolio_records WHERE portfolio = ?", (portfolio,))
    conn.commit()
    return cursor.rowcount
