"""
Tests for the pipeline runner CLI.
"""

import pytest
from unittest.mock import patch
from datetime import date

from pipeline import run


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    for var in ('DASHBOARD_CONFIG', 'PORTFOLIO_DB_PATH', 'LOG_LEVEL'):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


class TestPipelineRunner:
    """Tests for run.main()."""

    @patch('pipeline.benchmark_backfill_dag.fetch_benchmark_window')
    def test_backfill_then_runs(self, mock_fetch, tmp_path, capsys):
        mock_fetch.return_value = [
            {'Date': '2024-01-02', 'Close': 3000.0},
            {'Date': '2024-01-03', 'Close': 3030.0},
        ]
        db_path = str(tmp_path / 'portfolio.db')

        exit_code = run.main(['--db-path', db_path, 'benchmark_backfill', 'sha',
                              '--start', '2024-01-01', '--end', '2024-01-03'])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "Running benchmark_backfill for sha" in out
        assert "Status: COMPLETED" in out
        assert "2 levels, 2024-01-02 → 2024-01-03 (+1.00%)" in out

        assert run.main(['--db-path', db_path, 'runs']) == 0
        out = capsys.readouterr().out
        assert "#1 benchmark_backfill completed" in out
        assert "100% successful" in out

    @patch('pipeline.benchmark_backfill_dag.fetch_benchmark_window')
    def test_days_option(self, mock_fetch, tmp_path):
        mock_fetch.return_value = []

        run.main(['--db-path', str(tmp_path / 'p.db'), 'benchmark_backfill', 'csi300',
                  '--end', '2024-03-31', '--days', '30'])

        assert mock_fetch.call_args.kwargs['start'] == date(2024, 3, 1)
        assert mock_fetch.call_args.kwargs['end'] == date(2024, 3, 31)

    @patch('pipeline.benchmark_backfill_dag.fetch_benchmark_window')
    def test_default_benchmarks_from_settings(self, mock_fetch, tmp_path, capsys):
        mock_fetch.return_value = []

        run.main(['--db-path', str(tmp_path / 'p.db'), 'benchmark_backfill', '--days', '5'])

        assert mock_fetch.call_count == 3
        assert "sha, she, csi300" in capsys.readouterr().out

    def test_unknown_benchmark(self, tmp_path, capsys):
        exit_code = run.main(['--db-path', str(tmp_path / 'p.db'), 'benchmark_backfill', 'nope'])

        assert exit_code == 1
        assert "Unknown benchmark" in capsys.readouterr().err

    @patch('pipeline.benchmark_backfill_dag.fetch_benchmark_window')
    def test_failed_run_exit_code(self, mock_fetch, tmp_path, capsys):
        from ingestion.providers.yfinance_adapter import BenchmarkFetchError
        mock_fetch.side_effect = BenchmarkFetchError("boom")

        exit_code = run.main(['--db-path', str(tmp_path / 'p.db'), 'benchmark_backfill', 'sha', '--days', '5'])

        assert exit_code == 1
        assert "Pipeline Failed" in capsys.readouterr().out

    def test_runs_empty(self, tmp_path, capsys):
        assert run.main(['--db-path', str(tmp_path / 'p.db'), 'runs']) == 0
        assert "No pipeline runs recorded" in capsys.readouterr().out

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            run.main([])
