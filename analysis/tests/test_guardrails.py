"""
Tests for guardrails - sanitization, data sufficiency, freshness and integrity checks.
"""

import numpy as np
import pytest
from datetime import date, timedelta

from ingestion.records import DailyRecord
from analysis.guardrails import (
    sanitize_number,
    sanitize_metrics,
    check_sufficient_data,
    check_data_freshness,
    check_benchmark_coverage,
    validate_share_value_integrity,
    run_all_guardrails,
    create_data_quality_report,
    DataQualityError,
)


def _series(values, start=date(2024, 1, 1), benchmarks=None):
    benchmarks = benchmarks or {}
    return tuple(
        DailyRecord(
            date=start + timedelta(days=i),
            principal=10000.0,
            share_value=v,
            benchmarks={name: levels[i] for name, levels in benchmarks.items()}
        )
        for i, v in enumerate(values)
    )


class TestSanitize:
    """Tests for NaN/inf sanitization."""

    @pytest.mark.parametrize('value', [float('nan'), float('inf'), float('-inf'), np.nan, np.float64('inf')])
    def test_non_finite_becomes_none(self, value):
        assert sanitize_number(value) is None

    def test_finite_values_pass_through(self):
        assert sanitize_number(1.5) == 1.5
        assert sanitize_number(0) == 0
        assert sanitize_number('text') == 'text'
        assert sanitize_number(None) is None
        assert sanitize_number(True) is True

    def test_numpy_scalars_become_python(self):
        assert type(sanitize_number(np.float64(2.5))) is float
        assert type(sanitize_number(np.int64(3))) is int

    def test_nested_structures(self):
        metrics = {
            'risk': {'sharpe_ratio': float('inf'), 'volatility': 12.0},
            'points': [{'value': float('nan')}, {'value': 1.0}],
            'pair': (1.0, float('-inf')),
        }

        sanitized = sanitize_metrics(metrics)

        assert sanitized == {
            'risk': {'sharpe_ratio': None, 'volatility': 12.0},
            'points': [{'value': None}, {'value': 1.0}],
            'pair': [1.0, None],
        }


class TestSufficientData:
    """Tests for check_sufficient_data."""

    def test_window_needs_buffer(self):
        """A window is available only with window + 10 records."""
        available, insufficient = check_sufficient_data(_series([1.0] * 40), [30, 60])

        assert available == [30]
        assert insufficient == [60]

    def test_boundary(self):
        available, _ = check_sufficient_data(_series([1.0] * 39), [30])
        assert available == []

        available, _ = check_sufficient_data(_series([1.0] * 40), [30])
        assert available == [30]

    def test_empty_series_raises(self):
        with pytest.raises(DataQualityError, match="No portfolio records"):
            check_sufficient_data((), [30])


class TestFreshness:
    """Tests for check_data_freshness."""

    def test_recent_data_has_no_warning(self):
        series = _series([1.0, 1.1], start=date(2024, 3, 1))
        assert check_data_freshness(series, today=date(2024, 3, 5)) == []

    def test_stale_data_warns(self):
        series = _series([1.0, 1.1], start=date(2024, 3, 1))

        warnings = check_data_freshness(series, max_age_days=7, today=date(2024, 3, 20))

        assert len(warnings) == 1
        assert "18 days old" in warnings[0]


class TestBenchmarkCoverage:
    """Tests for check_benchmark_coverage."""

    def test_full_coverage(self):
        series = _series([1.0, 1.1], benchmarks={'sha': [100.0, 101.0]})
        assert check_benchmark_coverage(series) == []

    def test_late_start_warns(self):
        series = _series([1.0, 1.1, 1.2], benchmarks={'sha': [None, 101.0, 102.0]})

        warnings = check_benchmark_coverage(series)

        assert warnings == ["Benchmark sha starts on 2024-01-02, after the portfolio's first record (2024-01-01)"]

    def test_never_observed_warns(self):
        series = _series([1.0, 1.1], benchmarks={'she': [None, None]})

        assert "has no levels" in check_benchmark_coverage(series)[0]


class TestShareValueIntegrity:
    """Tests for validate_share_value_integrity."""

    def test_normal_moves(self):
        assert validate_share_value_integrity(_series([1.0, 1.05, 1.02])) == []

    def test_large_move_flagged(self):
        warnings = validate_share_value_integrity(_series([1.0, 1.3, 1.3]))

        assert len(warnings) == 1
        assert "2024-01-02" in warnings[0]
        assert "30.0%" in warnings[0]


class TestRunAllGuardrails:
    """Tests for the combined guardrail run and report."""

    def test_compiles_warnings(self):
        series = _series([1.0, 1.3], benchmarks={'sha': [None, 100.0]})

        results = run_all_guardrails(series, [30], today=date(2024, 1, 3))

        assert results['records'] == 2
        assert results['data_quality_checks']['sufficient_data']['insufficient_windows'] == [30]
        assert any('Insufficient data for volatility windows' in w for w in results['warnings'])
        assert any('Benchmark sha' in w for w in results['warnings'])
        assert any('Large share value movement' in w for w in results['warnings'])
        assert results['recommendations']

    def test_single_record_warns(self):
        results = run_all_guardrails(_series([1.0]), [30], today=date(2024, 1, 1))

        assert any('Only one record' in w for w in results['warnings'])

    def test_clean_series(self):
        values = [1.0 + 0.001 * i for i in range(300)]
        series = _series(values)

        results = run_all_guardrails(series, [30, 60], today=series[-1].date)

        assert results['warnings'] == []
        assert "Sufficient data" in results['recommendations'][0]

    def test_report_text(self):
        series = _series([1.0, 1.3])
        results = run_all_guardrails(series, [30], today=date(2024, 1, 2))

        report = create_data_quality_report(results, 'main')

        assert report.startswith("Data Quality Report for main")
        assert "Insufficient data: 30" in report
        assert "OVERALL STATUS: WARNINGS PRESENT" in report

    def test_report_acceptable(self):
        series = _series([1.0 + 0.001 * i for i in range(50)])
        results = run_all_guardrails(series, [30], today=series[-1].date)

        report = create_data_quality_report(results, 'main')

        assert "Available: 30" in report
        assert "OVERALL STATUS: DATA QUALITY ACCEPTABLE" in report
