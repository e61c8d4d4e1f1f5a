"""
Tests for run registry - backfill execution tracking.
Uses in-memory SQLite for fast, isolated tests.
"""

import pytest
import sqlite3
from datetime import datetime

from storage.run_registry import (
    start_run,
    finish_run,
    get_run_status,
    list_recent_runs,
    get_dag_stats,
    RunStatus,
    RunNotFoundError
)
from storage.loaders import init_database


@pytest.fixture
def in_memory_db():
    """Create in-memory SQLite database for testing."""
    conn = sqlite3.connect(':memory:')
    init_database(conn)
    return conn


class TestRunRegistry:
    """Tests for run registry functions."""

    def test_start_run_creates_record(self, in_memory_db):
        """Test that start_run creates a new run record."""
        run_id = start_run(
            conn=in_memory_db,
            dag_name='benchmark_backfill',
            started_at=datetime(2024, 1, 16, 9, 0, 0)
        )

        assert isinstance(run_id, int)
        assert run_id > 0

        row = in_memory_db.execute(
            "SELECT dag_name, started_at, status FROM runs WHERE run_id = ?",
            (run_id,)
        ).fetchone()

        assert row == ('benchmark_backfill', '2024-01-16T09:00:00', 'running')

    def test_start_run_auto_timestamp(self, in_memory_db):
        """Test that start_run uses current time if not provided."""
        before = datetime.now()
        run_id = start_run(conn=in_memory_db, dag_name='benchmark_backfill')
        after = datetime.now()

        stored = get_run_status(in_memory_db, run_id)['started_at']
        assert before <= stored <= after

    def test_finish_run_success(self, in_memory_db):
        """Test finishing a run with success status and row counts."""
        run_id = start_run(in_memory_db, 'benchmark_backfill', datetime(2024, 1, 16, 9, 0, 0))

        finish_run(
            conn=in_memory_db,
            run_id=run_id,
            status=RunStatus.COMPLETED,
            finished_at=datetime(2024, 1, 16, 9, 5, 30),
            rows_in=100,
            rows_out=98,
            log_path='./data/logs/run_001.log'
        )

        run_info = get_run_status(in_memory_db, run_id)
        assert run_info['status'] == RunStatus.COMPLETED
        assert run_info['rows_in'] == 100
        assert run_info['rows_out'] == 98
        assert run_info['rows_dropped'] == 2
        assert run_info['success_rate'] == pytest.approx(0.98)
        assert run_info['log_path'] == './data/logs/run_001.log'
        assert run_info['duration_seconds'] == 330

    def test_finish_run_failure_keeps_error_message(self, in_memory_db):
        """Test a failed run records its error message."""
        run_id = start_run(in_memory_db, 'benchmark_backfill')

        finish_run(
            conn=in_memory_db,
            run_id=run_id,
            status=RunStatus.FAILED,
            error_message='Network timeout'
        )

        run_info = get_run_status(in_memory_db, run_id)
        assert run_info['status'] == RunStatus.FAILED
        assert run_info['error_message'] == 'Network timeout'

    def test_finish_run_nonexistent(self, in_memory_db):
        """Test finishing a run that doesn't exist."""
        with pytest.raises(RunNotFoundError, match="Run ID 999 not found"):
            finish_run(conn=in_memory_db, run_id=999, status=RunStatus.COMPLETED)

    def test_get_run_status_running(self, in_memory_db):
        """Test retrieving a run that has not finished."""
        started_at = datetime(2024, 1, 16, 9, 0, 0)
        run_id = start_run(in_memory_db, 'benchmark_backfill', started_at)

        run_info = get_run_status(in_memory_db, run_id)

        assert run_info['status'] == RunStatus.RUNNING
        assert run_info['started_at'] == started_at
        assert run_info['finished_at'] is None
        assert run_info['duration_seconds'] is None
        assert run_info['success_rate'] is None

    def test_get_run_status_nonexistent(self, in_memory_db):
        """Test retrieving status of nonexistent run."""
        with pytest.raises(RunNotFoundError, match="Run ID 999 not found"):
            get_run_status(in_memory_db, 999)

    def test_list_recent_runs_empty(self, in_memory_db):
        """Test listing runs when none exist."""
        assert list_recent_runs(in_memory_db) == []

    def test_list_recent_runs_most_recent_first(self, in_memory_db):
        """Test runs are listed newest first with their statuses."""
        run1 = start_run(in_memory_db, 'benchmark_backfill', datetime(2024, 1, 16, 9, 0, 0))
        run2 = start_run(in_memory_db, 'portfolio_analysis', datetime(2024, 1, 16, 10, 0, 0))
        run3 = start_run(in_memory_db, 'benchmark_backfill', datetime(2024, 1, 16, 11, 0, 0))

        finish_run(in_memory_db, run1, RunStatus.COMPLETED, datetime(2024, 1, 16, 9, 1, 0))
        finish_run(in_memory_db, run2, RunStatus.FAILED, datetime(2024, 1, 16, 10, 1, 0))

        runs = list_recent_runs(in_memory_db, limit=10)

        assert [r['run_id'] for r in runs] == [run3, run2, run1]
        assert [r['status'] for r in runs] == [RunStatus.RUNNING, RunStatus.FAILED, RunStatus.COMPLETED]
        assert runs[2]['duration_seconds'] == 60

    def test_list_recent_runs_limit_and_filter(self, in_memory_db):
        """Test limit and DAG-name filter."""
        for _ in range(3):
            start_run(in_memory_db, 'benchmark_backfill')
        start_run(in_memory_db, 'portfolio_analysis')

        assert len(list_recent_runs(in_memory_db, limit=2)) == 2
        filtered = list_recent_runs(in_memory_db, dag_name='benchmark_backfill')
        assert len(filtered) == 3
        assert all(r['dag_name'] == 'benchmark_backfill' for r in filtered)

    def test_get_dag_stats(self, in_memory_db):
        """Test aggregate stats over the lookback window."""
        now = datetime(2024, 2, 1, 12, 0, 0)
        old = start_run(in_memory_db, 'benchmark_backfill', datetime(2023, 11, 1, 9, 0, 0))
        finish_run(in_memory_db, old, RunStatus.FAILED, datetime(2023, 11, 1, 9, 1, 0))

        ok = start_run(in_memory_db, 'benchmark_backfill', datetime(2024, 1, 20, 9, 0, 0))
        finish_run(in_memory_db, ok, RunStatus.COMPLETED, datetime(2024, 1, 20, 9, 2, 0), rows_in=10, rows_out=10)
        bad = start_run(in_memory_db, 'benchmark_backfill', datetime(2024, 1, 25, 9, 0, 0))
        finish_run(in_memory_db, bad, RunStatus.FAILED, datetime(2024, 1, 25, 9, 0, 30))

        stats = get_dag_stats(in_memory_db, 'benchmark_backfill', days=30, now=now)

        assert stats['total_runs'] == 2
        assert stats['completed_runs'] == 1
        assert stats['failed_runs'] == 1
        assert stats['success_rate'] == 0.5
        assert stats['total_rows_in'] == 10

    def test_get_dag_stats_no_runs(self, in_memory_db):
        """Test stats for a DAG that never ran."""
        stats = get_dag_stats(in_memory_db, 'benchmark_backfill')

        assert stats['total_runs'] == 0
        assert stats['success_rate'] is None

    def test_run_status_enum_values(self):
        """Test that RunStatus enum has expected values."""
        assert RunStatus.RUNNING == 'running'
        assert RunStatus.COMPLETED == 'completed'
        assert RunStatus.FAILED == 'failed'
