"""
Run registry - track backfill execution with status, row counts, and timing.
Thin IO layer for run lifecycle management.
"""

import sqlite3
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional
from enum import Enum


class RunStatus(str, Enum):
    """Enumeration of run statuses."""
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


class RunNotFoundError(Exception):
    """Raised when run ID is not found."""
    pass


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value.replace(' ', 'T')) if value else None


def _duration_seconds(started_at: Optional[datetime], finished_at: Optional[datetime]) -> Optional[int]:
    if started_at and finished_at:
        return int((finished_at - started_at).total_seconds())
    return None


def start_run(
    conn: sqlite3.Connection,
    dag_name: str,
    started_at: Optional[datetime] = None
) -> int:
    """
    Start a new pipeline run and return run ID.

    Args:
        conn: SQLite connection
        dag_name: Name of the pipeline/DAG being run
        started_at: Start timestamp (defaults to now)

    Returns:
        Run ID for tracking this execution
    """
    if started_at is None:
        started_at = datetime.now()

    cursor = conn.execute("""
        INSERT INTO runs (dag_name, started_at, status)
        VALUES (?, ?, ?)
    """, (dag_name, started_at.isoformat(), RunStatus.RUNNING.value))

    conn.commit()
    return cursor.lastrowid


def finish_run(
    conn: sqlite3.Connection,
    run_id: int,
    status: RunStatus,
    finished_at: Optional[datetime] = None,
    rows_in: Optional[int] = None,
    rows_out: Optional[int] = None,
    log_path: Optional[str] = None,
    error_message: Optional[str] = None
) -> None:
    """
    Mark a run as finished with final status and row counts.

    Args:
        conn: SQLite connection
        run_id: Run ID from start_run()
        status: Final status (COMPLETED or FAILED)
        finished_at: End timestamp (defaults to now)
        rows_in: Benchmark levels fetched
        rows_out: Benchmark levels stored
        log_path: Path to detailed log file
        error_message: Error message if failed

    Raises:
        RunNotFoundError: If run_id doesn't exist
    """
    if finished_at is None:
        finished_at = datetime.now()

    cursor = conn.execute("SELECT run_id FROM runs WHERE run_id = ?", (run_id,))
    if cursor.fetchone() is None:
        raise RunNotFoundError(f"Run ID {run_id} not found")

    conn.execute("""
        UPDATE runs SET
            status = ?,
            finished_at = ?,
            rows_in = ?,
            rows_out = ?,
            log_path = ?,
            error_message = ?
        WHERE run_id = ?
    """, (RunStatus(status).value, finished_at.isoformat(), rows_in, rows_out, log_path, error_message, run_id))

    conn.commit()


def get_run_status(conn: sqlite3.Connection, run_id: int) -> Dict[str, Any]:
    """
    Get detailed status and row counts for a run.

    Args:
        conn: SQLite connection
        run_id: Run ID to query

    Returns:
        Dictionary with run details and computed duration/success rate

    Raises:
        RunNotFoundError: If run_id doesn't exist
    """
    cursor = conn.execute("""
        SELECT run_id, dag_name, started_at, finished_at, status,
               rows_in, rows_out, log_path, error_message
        FROM runs
        WHERE run_id = ?
    """, (run_id,))

    row = cursor.fetchone()
    if row is None:
        raise RunNotFoundError(f"Run ID {run_id} not found")

    run_info = {
        'run_id': row[0],
        'dag_name': row[1],
        'started_at': _parse_timestamp(row[2]),
        'finished_at': _parse_timestamp(row[3]),
        'status': RunStatus(row[4]),
        'rows_in': row[5],
        'rows_out': row[6],
        'log_path': row[7],
        'error_message': row[8]
    }
    run_info['duration_seconds'] = _duration_seconds(run_info['started_at'], run_info['finished_at'])

    # Levels fetched but not stored (bad rows, duplicates)
    if run_info['rows_in']:
        run_info['success_rate'] = (run_info['rows_out'] or 0) / run_info['rows_in']
        run_info['rows_dropped'] = run_info['rows_in'] - (run_info['rows_out'] or 0)
    else:
        run_info['success_rate'] = None
        run_info['rows_dropped'] = None

    return run_info


def list_recent_runs(
    conn: sqlite3.Connection,
    limit: int = 50,
    dag_name: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    List recent runs with basic info, most recent first.

    Args:
        conn: SQLite connection
        limit: Maximum number of runs to return
        dag_name: Filter by specific DAG name (optional)

    Returns:
        List of run dictionaries with basic info
    """
    query = """
        SELECT run_id, dag_name, started_at, finished_at, status, rows_in, rows_out, error_message
        FROM runs
    """
    params: List[Any] = []
    if dag_name:
        query += " WHERE dag_name = ?"
        params.append(dag_name)
    query += " ORDER BY started_at DESC, run_id DESC LIMIT ?"
    params.append(limit)

    runs = []
    for row in conn.execute(query, params).fetchall():
        started_at, finished_at = _parse_timestamp(row[2]), _parse_timestamp(row[3])
        runs.append({
            'run_id': row[0],
            'dag_name': row[1],
            'started_at': started_at,
            'finished_at': finished_at,
            'status': RunStatus(row[4]),
            'rows_in': row[5],
            'rows_out': row[6],
            'error_message': row[7],
            'duration_seconds': _duration_seconds(started_at, finished_at)
        })

    return runs


def get_dag_stats(
    conn: sqlite3.Connection,
    dag_name: str,
    days: int = 30,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Get aggregate statistics for a DAG over recent period.

    Args:
        conn: SQLite connection
        dag_name: DAG name to analyze
        days: Number of days to look back
        now: Reference time (defaults to now)

    Returns:
        Dictionary with aggregate statistics
    """
    cutoff = (now or datetime.now()) - timedelta(days=days)

    cursor = conn.execute("""
        SELECT
            COUNT(*) as total_runs,
            SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed_runs,
            SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) as failed_runs,
            SUM(CASE WHEN status = 'running' THEN 1 ELSE 0 END) as running_runs,
            AVG(CASE WHEN finished_at IS NOT NULL
                THEN (julianday(finished_at) - julianday(started_at)) * 86400
                ELSE NULL END) as avg_duration_seconds,
            SUM(COALESCE(rows_in, 0)) as total_rows_in,
            SUM(COALESCE(rows_out, 0)) as total_rows_out
        FROM runs
        WHERE dag_name = ? AND started_at >= ?
    """, (dag_name, cutoff.isoformat()))

    row = cursor.fetchone()

    stats = {
        'dag_name': dag_name,
        'period_days': days,
        'total_runs': row[0] or 0,
        'completed_runs': row[1] or 0,
        'failed_runs': row[2] or 0,
        'running_runs': row[3] or 0,
        'avg_duration_seconds': row[4],
        'total_rows_in': row[5] or 0,
        'total_rows_out': row[6] or 0
    }

    if stats['total_runs'] > 0:
        stats['success_rate'] = stats['completed_runs'] / stats['total_runs']
        stats['failure_rate'] = stats['failed_runs'] / stats['total_runs']
    else:
        stats['success_rate'] = None
        stats['failure_rate'] = None

    return stats
