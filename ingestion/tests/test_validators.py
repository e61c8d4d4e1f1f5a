"""
Tests for core validators - pure functions for data validation.
"""

import pytest
from datetime import date, datetime

from ingestion.records import DailyRecord
from ingestion.transforms.validators import (
    validate_daily_record,
    validate_benchmark_level_row,
    check_record_date_monotonicity,
    ValidationError
)


def _record(**overrides):
    fields = {
        'date': date(2024, 1, 15),
        'principal': 10000.0,
        'share_value': 1.05,
        'benchmarks': {'csi300': 3400.0},
    }
    fields.update(overrides)
    return DailyRecord(**fields)


class TestDailyRecordValidator:
    """Tests for validate_daily_record."""

    def test_valid_record(self):
        # Should not raise
        validate_daily_record(_record())

    def test_absent_benchmark_allowed(self):
        validate_daily_record(_record(benchmarks={'csi300': None}))

    def test_datetime_rejected(self):
        with pytest.raises(ValidationError, match="date must be date"):
            validate_daily_record(_record(date=datetime(2024, 1, 15, 10, 0)))

    def test_negative_principal(self):
        with pytest.raises(ValidationError, match="principal must be non-negative"):
            validate_daily_record(_record(principal=-1.0))

    def test_zero_principal_allowed(self):
        validate_daily_record(_record(principal=0.0))

    def test_missing_share_value(self):
        with pytest.raises(ValidationError, match="share_value is missing"):
            validate_daily_record(_record(share_value=None))

    def test_non_positive_share_value(self):
        with pytest.raises(ValidationError, match="share_value must be positive"):
            validate_daily_record(_record(share_value=0.0))

    def test_nan_share_value(self):
        with pytest.raises(ValidationError, match="must be finite"):
            validate_daily_record(_record(share_value=float('nan')))

    def test_bool_not_numeric(self):
        with pytest.raises(ValidationError, match="must be numeric"):
            validate_daily_record(_record(principal=True))

    def test_negative_benchmark(self):
        with pytest.raises(ValidationError, match="benchmark csi300 must be positive"):
            validate_daily_record(_record(benchmarks={'csi300': -3.0}))

    def test_empty_benchmark_key(self):
        with pytest.raises(ValidationError, match="benchmark key"):
            validate_daily_record(_record(benchmarks={'': 1.0}))


class TestBenchmarkLevelRowValidator:
    """Tests for validate_benchmark_level_row."""

    def _row(self, **overrides):
        row = {
            'benchmark': 'csi300',
            'date': date(2024, 1, 15),
            'level': 3400.5,
            'source': 'yfinance',
            'ingested_at': datetime(2024, 1, 16, 9, 0, 0),
        }
        row.update(overrides)
        return row

    def test_valid_row(self):
        validate_benchmark_level_row(self._row())

    def test_missing_keys(self):
        row = self._row()
        del row['level']
        with pytest.raises(ValidationError, match="Missing required keys"):
            validate_benchmark_level_row(row)

    def test_zero_level(self):
        with pytest.raises(ValidationError, match="level must be positive"):
            validate_benchmark_level_row(self._row(level=0.0))

    def test_ingested_at_must_be_datetime(self):
        with pytest.raises(ValidationError, match="ingested_at must be datetime"):
            validate_benchmark_level_row(self._row(ingested_at=date(2024, 1, 16)))


class TestRecordDateMonotonicity:
    """Tests for check_record_date_monotonicity."""

    def test_ascending_ok(self):
        check_record_date_monotonicity([
            _record(date=date(2024, 1, 1)),
            _record(date=date(2024, 1, 2)),
        ])

    def test_duplicate_dates(self):
        with pytest.raises(ValidationError, match="Duplicate date"):
            check_record_date_monotonicity([
                _record(date=date(2024, 1, 1)),
                _record(date=date(2024, 1, 1)),
            ])

    def test_descending_dates(self):
        with pytest.raises(ValidationError, match="not monotonic"):
            check_record_date_monotonicity([
                _record(date=date(2024, 1, 2)),
                _record(date=date(2024, 1, 1)),
            ])

    def test_empty_ok(self):
        check_record_date_monotonicity([])
