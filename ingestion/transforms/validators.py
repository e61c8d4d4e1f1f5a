"""
Core validators for canonical data rows.
Pure functions - no IO, network, or side effects.
"""

import math
from datetime import date, datetime
from typing import Dict, Any, List, Sequence

from ingestion.records import DailyRecord


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


def _check_number(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be numeric, got {type(value)}")

    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value}")


def validate_daily_record(record: DailyRecord) -> None:
    """
    Validate a normalized daily record.

    Args:
        record: DailyRecord with share value already derived

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(record.date, date) or isinstance(record.date, datetime):
        raise ValidationError(f"date must be date, got {type(record.date)}")

    _check_number('principal', record.principal)
    if record.principal < 0:
        raise ValidationError(f"principal must be non-negative, got {record.principal}")

    if record.share_value is None:
        raise ValidationError("share_value is missing")

    _check_number('share_value', record.share_value)
    if record.share_value <= 0:
        raise ValidationError(f"share_value must be positive, got {record.share_value}")

    if record.market_value is not None:
        _check_number('market_value', record.market_value)
        if record.market_value < 0:
            raise ValidationError(f"market_value must be non-negative, got {record.market_value}")

    if record.units is not None:
        _check_number('units', record.units)
        if record.units < 0:
            raise ValidationError(f"units must be non-negative, got {record.units}")

    for name, level in record.benchmarks.items():
        if not isinstance(name, str) or not name:
            raise ValidationError(f"benchmark key must be non-empty string, got {name!r}")

        if level is None:
            continue

        _check_number(f"benchmark {name}", level)
        if level <= 0:
            raise ValidationError(f"benchmark {name} must be positive, got {level}")


def validate_benchmark_level_row(row: Dict[str, Any]) -> None:
    """
    Validate a canonical benchmark level row (as stored in benchmark_levels).

    Args:
        row: Dictionary with benchmark, date, level, source, ingested_at

    Raises:
        ValidationError: If validation fails
    """
    required_keys = {'benchmark', 'date', 'level', 'source', 'ingested_at'}

    missing = required_keys - set(row.keys())
    if missing:
        raise ValidationError(f"Missing required keys: {missing}")

    if not isinstance(row['benchmark'], str) or not row['benchmark']:
        raise ValidationError(f"benchmark must be non-empty string, got {row['benchmark']!r}")

    if not isinstance(row['date'], date):
        raise ValidationError(f"date must be date, got {type(row['date'])}")

    if not isinstance(row['ingested_at'], datetime):
        raise ValidationError(f"ingested_at must be datetime, got {type(row['ingested_at'])}")

    if not isinstance(row['source'], str):
        raise ValidationError(f"source must be string, got {type(row['source'])}")

    _check_number('level', row['level'])
    if row['level'] <= 0:
        raise ValidationError(f"level must be positive, got {row['level']}")


def check_record_date_monotonicity(records: Sequence[DailyRecord]) -> None:
    """
    Check that record dates are strictly increasing.

    Args:
        records: Records in series order

    Raises:
        ValidationError: If dates are not monotonic or have duplicates
    """
    dates: List[date] = [r.date for r in records]

    if len(dates) != len(set(dates)):
        raise ValidationError("Duplicate date found in series")

    for i in range(1, len(dates)):
        if dates[i] <= dates[i - 1]:
            raise ValidationError(
                f"Series dates not monotonic: {dates[i - 1]} >= {dates[i]}"
            )
