"""
Tests for the top-level CLI - template, import, analyze, report, list, delete.
"""

import json
import pytest

import cli
from ingestion.transforms.csv_parser import parse_csv


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Run from an empty directory so no dashboard.yml or env overrides apply."""
    for var in ('DASHBOARD_CONFIG', 'PORTFOLIO_DB_PATH', 'METRICS_OUTPUT_DIR', 'LOG_LEVEL'):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def csv_file(tmp_path):
    lines = ["Date,Principle,Market_Value,Gain_Loss"]
    market_value = 10000.0
    for i in range(1, 29):
        market_value *= 1.004 if i % 3 else 0.994
        lines.append(f"{i:02d}/02/2024,10000,{market_value:.2f},0")
    lines.append("30/02/2024,10000,10500,0")  # invalid date

    path = tmp_path / 'main.csv'
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / 'portfolio.db')


class TestTemplateCommand:
    """Tests for `cli.py template`."""

    def test_prints_template(self, capsys):
        assert cli.main(['template', '--format', 'full']) == 0

        content = capsys.readouterr().out
        assert parse_csv(content).errors == []

    def test_writes_file(self, tmp_path, capsys):
        output = tmp_path / 'template.csv'

        assert cli.main(['template', '--format', 'full', '--benchmarks', 'sha', '--output', str(output)]) == 0

        result = parse_csv(output.read_text())
        assert result.errors == []
        assert result.benchmarks == ['sha']
        assert "full template written" in capsys.readouterr().out


class TestImportCommand:
    """Tests for `cli.py import`."""

    def test_import_reports_errors_and_stores(self, csv_file, db_path, capsys):
        exit_code = cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "1 rows skipped" in out
        assert "Stored 28 records (28 new, 0 updated)" in out

    def test_reimport_updates(self, csv_file, db_path, capsys):
        cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])
        cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])

        assert "(0 new, 28 updated)" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, db_path, capsys):
        assert cli.main(['--db-path', db_path, 'import', 'main', str(tmp_path / 'nope.csv')]) == 1

    def test_no_valid_rows(self, tmp_path, db_path, capsys):
        path = tmp_path / 'bad.csv'
        path.write_text("Date,Principle,Market_Value\n31/02/2024,10000,10000\n")

        assert cli.main(['--db-path', db_path, 'import', 'main', str(path)]) == 1
        assert "No valid records" in capsys.readouterr().err


class TestListAndDelete:
    """Tests for `cli.py list` and `cli.py delete`."""

    def test_list_empty(self, db_path, capsys):
        assert cli.main(['--db-path', db_path, 'list']) == 0
        assert "No portfolios stored yet" in capsys.readouterr().out

    def test_list_and_delete(self, csv_file, db_path, capsys):
        cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])
        capsys.readouterr()

        assert cli.main(['--db-path', db_path, 'list']) == 0
        out = capsys.readouterr().out
        assert "1 portfolio(s)" in out
        assert "2024-02-01 to 2024-02-28" in out

        assert cli.main(['--db-path', db_path, 'delete', 'main']) == 0
        assert "Removed 28 records" in capsys.readouterr().out

        assert cli.main(['--db-path', db_path, 'delete', 'main']) == 1


class TestAnalyzeCommand:
    """Tests for `cli.py analyze` passthrough."""

    def test_analyze_stored_portfolio(self, csv_file, db_path, tmp_path, capsys):
        cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])
        output = tmp_path / 'main.json'

        exit_code = cli.main(['--db-path', db_path, 'analyze', 'main', '--output', str(output), '--quiet'])

        assert exit_code == 0
        assert json.loads(output.read_text())['data_period']['records'] == 28


class TestReportCommand:
    """Tests for `cli.py report`."""

    def test_report_from_csv(self, csv_file, tmp_path, capsys):
        reports_dir = tmp_path / 'reports'

        exit_code = cli.main(['report', 'main', '--csv', str(csv_file), '--as-of', '2024-02-28',
                              '--output-dir', str(reports_dir)])

        assert exit_code == 0
        reports = list((reports_dir / 'MAIN').glob('*_report.md'))
        sidecars = list((reports_dir / 'MAIN').glob('*_metrics.json'))
        assert len(reports) == 1
        assert len(sidecars) == 1

        markdown = reports[0].read_text(encoding='utf-8')
        assert markdown.startswith("# Portfolio Dashboard: main")
        assert json.loads(sidecars[0].read_text())['portfolio'] == 'main'
        assert "Report generation complete" in capsys.readouterr().out

    def test_report_from_stored_portfolio(self, csv_file, db_path, tmp_path):
        cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])

        exit_code = cli.main(['--db-path', db_path, 'report', 'main', '--output-dir', str(tmp_path / 'r')])

        assert exit_code == 0

    def test_report_from_metrics_file(self, csv_file, tmp_path):
        cli.main(['analyze', 'main', '--csv', str(csv_file), '--output', str(tmp_path / 'm.json'), '--quiet'])

        exit_code = cli.main(['report', 'main', '--metrics', str(tmp_path / 'm.json'),
                              '--output-dir', str(tmp_path / 'r')])

        assert exit_code == 0
        assert len(list((tmp_path / 'r' / 'MAIN').glob('*_report.md'))) == 1

    def test_report_missing_database(self, tmp_path, capsys):
        exit_code = cli.main(['--db-path', str(tmp_path / 'none.db'), 'report', 'main'])

        assert exit_code == 1
        assert "Database not found" in capsys.readouterr().err

    def test_report_unknown_portfolio(self, csv_file, db_path, capsys):
        cli.main(['--db-path', db_path, 'import', 'main', str(csv_file)])

        assert cli.main(['--db-path', db_path, 'report', 'other']) == 1
        assert "No records found for portfolio other" in capsys.readouterr().err

    def test_unreadable_metrics_file(self, tmp_path, capsys):
        bad = tmp_path / 'bad.json'
        bad.write_text('{not json')

        assert cli.main(['report', 'main', '--metrics', str(bad)]) == 1
        assert "Could not read metrics" in capsys.readouterr().err
