"""
Tests for orchestrated analysis job - portfolio records to MetricsJSON pipeline.
Uses an in-memory DB seeded with records and CSV files under tmp_path.
"""

import pytest
import sqlite3
import json
from datetime import date, datetime, timedelta
from pathlib import Path

from ingestion.records import DailyRecord
from analysis.analysis_job import (
    analyze_portfolio,
    batch_analyze_portfolios,
    load_series,
    AnalysisJobError,
)
from storage.loaders import init_database, upsert_portfolio_records, upsert_benchmark_levels
from utils.config import Settings


def _records(n, start=date(2024, 1, 1)):
    values = [1.0]
    for i in range(1, n):
        values.append(values[-1] * (1.004 if i % 3 else 0.995))
    return [
        DailyRecord(
            date=start + timedelta(days=i),
            principal=10000.0,
            share_value=round(v, 6),
            market_value=round(10000.0 * v, 2),
            units=10000.0
        )
        for i, v in enumerate(values)
    ]


@pytest.fixture
def seeded_db():
    """In-memory database with one portfolio and stored benchmark levels."""
    conn = sqlite3.connect(':memory:')
    init_database(conn)

    records = _records(120)
    upsert_portfolio_records(conn, 'main', records, ingested_at=datetime(2024, 5, 1, 9, 0, 0))
    upsert_benchmark_levels(conn, [
        {
            'benchmark': 'sha',
            'date': r.date,
            'level': 3000.0 + i,
            'source': 'yfinance',
            'ingested_at': datetime(2024, 5, 1, 9, 0, 0)
        }
        for i, r in enumerate(records)
    ])

    yield conn
    conn.close()


@pytest.fixture
def csv_file(tmp_path):
    """Simple-layout CSV with day-first dates."""
    lines = ["Date,Principle,Market_Value"]
    market_value = 10000.0
    for i in range(60):
        day = date(2024, 1, 1) + timedelta(days=i)
        market_value *= 1.002 if i % 2 else 0.999
        lines.append(f"{day.strftime('%d/%m/%Y')},10000,{market_value:.2f}")

    path = tmp_path / 'main.csv'
    path.write_text("\n".join(lines) + "\n")
    return path


class TestLoadSeries:
    """Tests for series loading from either source."""

    def test_from_database_merges_benchmarks(self, seeded_db):
        series = load_series('main', conn=seeded_db, benchmarks=['sha'])

        assert len(series) == 120
        assert series[0].benchmark('sha') == 3000.0

    def test_from_csv_with_date_filter(self, csv_file):
        series = load_series('main', csv_path=csv_file,
                             start_date=date(2024, 1, 11), end_date=date(2024, 1, 20))

        assert len(series) == 10
        assert series[0].date == date(2024, 1, 11)
        assert series[-1].date == date(2024, 1, 20)

    def test_requires_a_source(self):
        with pytest.raises(AnalysisJobError, match="Either a database connection or a CSV path"):
            load_series('main')


class TestAnalyzePortfolio:
    """Tests for analyze_portfolio job orchestration."""

    def test_database_analysis_writes_json(self, seeded_db, tmp_path):
        output = tmp_path / 'analysis' / 'main.json'

        result = analyze_portfolio('main', output, conn=seeded_db, as_of_date=date(2024, 5, 1),
                                   settings=Settings(default_benchmarks=['sha']))

        assert result['status'] == 'completed'
        assert result['output_path'] == str(output)
        assert result['records'] == 120
        assert result['metrics_calculated'] > 0

        saved = json.loads(output.read_text())
        assert saved['portfolio'] == 'main'
        assert saved['as_of_date'] == '2024-05-01'
        assert saved['data_period']['benchmarks'] == ['sha']
        assert saved['metadata']['data_sources'] == ['sqlite']
        assert saved == result['metrics']

    def test_csv_analysis(self, csv_file, tmp_path):
        output = tmp_path / 'main.json'

        result = analyze_portfolio('main', output, csv_path=csv_file, as_of_date=date(2024, 3, 1))

        assert result['status'] == 'completed'
        saved = json.loads(output.read_text())
        assert saved['data_period']['records'] == 60
        assert saved['metadata']['data_sources'] == [str(csv_file)]

    def test_settings_flow_into_parameters(self, seeded_db, tmp_path):
        settings = Settings(risk_free_rate=0.01, volatility_windows=[20], top_periods=2)

        result = analyze_portfolio('main', tmp_path / 'main.json', conn=seeded_db,
                                   as_of_date=date(2024, 5, 1), settings=settings)

        parameters = result['metrics']['metadata']['parameters']
        assert parameters['risk_free_rate'] == 0.01
        assert parameters['volatility_windows'] == [20]
        assert '20d' in result['metrics']['volatility']
        assert len(result['metrics']['best_worst']['month']['best']) == 2

    def test_unknown_portfolio_fails(self, seeded_db, tmp_path):
        output = tmp_path / 'missing.json'

        result = analyze_portfolio('missing', output, conn=seeded_db)

        assert result['status'] == 'failed'
        assert result['error_message'] == 'No records found for portfolio missing'
        assert result['output_path'] is None
        assert result['metrics_calculated'] == 0
        assert not output.exists()

    def test_unreadable_csv_fails_without_raising(self, tmp_path):
        result = analyze_portfolio('main', tmp_path / 'main.json', csv_path=tmp_path / 'nope.csv')

        assert result['status'] == 'failed'
        assert result['error_message']

    def test_no_source_fails_without_raising(self, tmp_path):
        result = analyze_portfolio('main', tmp_path / 'main.json')

        assert result['status'] == 'failed'
        assert 'Either a database connection' in result['error_message']

    def test_write_failure_reported(self, seeded_db, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')

        result = analyze_portfolio('main', blocker / 'main.json', conn=seeded_db,
                                   as_of_date=date(2024, 5, 1))

        assert result['status'] == 'failed'
        assert result['output_path'] is None

    def test_date_window(self, seeded_db, tmp_path):
        result = analyze_portfolio('main', tmp_path / 'main.json', conn=seeded_db,
                                   as_of_date=date(2024, 5, 1),
                                   start_date=date(2024, 2, 1), end_date=date(2024, 2, 29))

        assert result['status'] == 'completed'
        assert result['records'] == 29
        assert result['metrics']['data_period']['start_date'] == '2024-02-01'


class TestBatchAnalyze:
    """Tests for batch_analyze_portfolios."""

    def test_mixed_results(self, seeded_db, tmp_path):
        summary = batch_analyze_portfolios(seeded_db, ['main', 'missing'], tmp_path,
                                           as_of_date=date(2024, 5, 1))

        assert summary['total_portfolios'] == 2
        assert summary['completed'] == 1
        assert summary['failed'] == 1
        assert summary['success_rate'] == 0.5
        assert (tmp_path / 'main.json').exists()
        assert not (tmp_path / 'missing.json').exists()

    def test_empty_list(self, seeded_db, tmp_path):
        summary = batch_analyze_portfolios(seeded_db, [], tmp_path)

        assert summary['total_portfolios'] == 0
        assert summary['success_rate'] == 0
