"""
Normalizers for transforming parsed and provider data to canonical shape.
Pure functions - no IO, network, or side effects.
Minimal normalization - only when necessary.
"""

import logging
from datetime import date, datetime
from typing import Dict, Any, List, Mapping, Optional, Sequence, Tuple

from ingestion.records import DailyRecord, Series
from ingestion.transforms.validators import (
    validate_daily_record,
    check_record_date_monotonicity,
    ValidationError
)

logger = logging.getLogger(__name__)

# Share value assigned to the first unit bought when deriving share values
INITIAL_SHARE_VALUE = 1.0


class UnitizationError(Exception):
    """Raised when a share value cannot be derived for a record."""
    pass


def sort_and_dedupe(records: Sequence[DailyRecord]) -> List[DailyRecord]:
    """
    Stable sort by date with last-write-wins for same-date collisions.

    A later record (in source order) replaces an earlier one with the same
    date. Each collision is logged so the replacement is never silent.

    Args:
        records: Records in source order

    Returns:
        Records in ascending date order, one per date
    """
    by_date: Dict[date, DailyRecord] = {}
    for record in records:
        if record.date in by_date:
            logger.warning(f"Duplicate record for {record.date}: keeping the later row")
        by_date[record.date] = record

    return sorted(by_date.values(), key=lambda r: r.date)


def _next_units(
    units: float,
    previous_principal: float,
    record: DailyRecord
) -> Tuple[float, float]:
    """
    Apply one day's principal flow to the unit count.

    Returns:
        Tuple of (share_value, units_after_flow)

    Raises:
        UnitizationError: If the derived share value or units are not positive
    """
    flow = record.principal - previous_principal
    share_value = (record.market_value - flow) / units
    if share_value <= 0:
        raise UnitizationError("derived share value is not positive")

    units_after = units + flow / share_value
    if units_after <= 1e-12:
        raise UnitizationError("all units redeemed")

    return share_value, units_after


def derive_share_values(
    records: Sequence[DailyRecord]
) -> Tuple[List[DailyRecord], List[Tuple[DailyRecord, str]]]:
    """
    Derive share values from principal and market value by unitization.

    The first record buys `principal` units at INITIAL_SHARE_VALUE. On each
    later record the principal change is a deposit (buys units) or a
    withdrawal (redeems units) at that day's pre-flow share value:

        share_value = (market_value - flow) / units
        units      += flow / share_value

    Records that already carry a share value are kept and only update the unit
    state. Records that cannot be unitized are returned as rejected and do not
    advance the state.

    Args:
        records: Records in ascending date order

    Returns:
        Tuple of (records with share values, [(rejected record, reason)])
    """
    derived: List[DailyRecord] = []
    rejected: List[Tuple[DailyRecord, str]] = []

    units: Optional[float] = None
    previous_principal = 0.0

    for record in records:
        if record.share_value is not None:
            derived.append(record)
            if record.units is not None:
                units = record.units
            elif record.market_value is not None and record.share_value > 0:
                units = record.market_value / record.share_value
            elif record.share_value > 0:
                units = record.principal / record.share_value
            previous_principal = record.principal
            continue

        if record.market_value is None:
            rejected.append((record, "missing share value and market value"))
            continue

        try:
            if units is None or units <= 0:
                if record.principal <= 0:
                    raise UnitizationError("principal must be positive to derive share value")
                new_units = record.principal / INITIAL_SHARE_VALUE
                share_value = record.market_value / new_units
                if share_value <= 0:
                    raise UnitizationError("derived share value is not positive")
            else:
                share_value, new_units = _next_units(units, previous_principal, record)
        except UnitizationError as e:
            rejected.append((record, str(e)))
            continue

        units = new_units
        previous_principal = record.principal
        derived.append(record.with_updates(share_value=share_value, units=new_units))

    return derived, rejected


def forward_fill_benchmarks(records: Sequence[DailyRecord]) -> List[DailyRecord]:
    """
    Forward-fill missing benchmark levels from the most recent known value.

    A level that is None or non-positive counts as missing. Leading gaps stay
    None: values are never back-filled or interpolated.

    Args:
        records: Records in ascending date order

    Returns:
        New records where every benchmark key of the series is present
    """
    names: Dict[str, None] = {}
    for record in records:
        for name in record.benchmarks:
            names.setdefault(name, None)

    last_known: Dict[str, Optional[float]] = {name: None for name in names}
    filled: List[DailyRecord] = []

    for record in records:
        levels: Dict[str, Optional[float]] = {}
        for name in names:
            value = record.benchmark(name)
            if value is not None:
                last_known[name] = value
            levels[name] = last_known[name]
        filled.append(record.with_updates(benchmarks=levels))

    return filled


def merge_benchmark_levels(
    records: Sequence[DailyRecord],
    levels: Mapping[str, Mapping[date, float]]
) -> List[DailyRecord]:
    """
    Attach stored benchmark levels to records by date.

    Levels already present on a record win over stored ones.

    Args:
        records: Portfolio records
        levels: Benchmark key -> {date: level}

    Returns:
        New records with benchmark mappings extended
    """
    merged = []
    for record in records:
        benchmarks = {name: by_date.get(record.date) for name, by_date in levels.items()}
        for name, value in record.benchmarks.items():
            if value is not None and value > 0:
                benchmarks[name] = value
            else:
                benchmarks.setdefault(name, None)
        merged.append(record.with_updates(benchmarks=benchmarks))
    return merged


def normalize_series(records: Sequence[DailyRecord]) -> Series:
    """
    Produce the canonical Series consumed by the metrics engine.

    Steps: stable sort with last-write-wins, share-value derivation where
    absent, benchmark forward-fill, per-record validation.

    Records that cannot be unitized or validated are dropped and logged.

    Args:
        records: Records in any order

    Returns:
        Immutable tuple of records, strictly ascending by date
    """
    if not records:
        return ()

    ordered = sort_and_dedupe(records)

    derived, rejected = derive_share_values(ordered)
    for record, reason in rejected:
        logger.warning(f"Dropping record for {record.date}: {reason}")

    filled = forward_fill_benchmarks(derived)

    valid = []
    for record in filled:
        try:
            validate_daily_record(record)
            valid.append(record)
        except ValidationError as e:
            logger.warning(f"Dropping invalid record for {record.date}: {e}")

    check_record_date_monotonicity(valid)
    return tuple(valid)


def normalize_benchmark_levels(
    raw_rows: List[Dict[str, Any]],
    *,
    benchmark: str,
    source: str,
    ingested_at: datetime
) -> List[Dict[str, Any]]:
    """
    Transform provider-native index rows to canonical benchmark level rows.

    Minimal normalization:
    - Date strings to date objects (required for storage)
    - Close price mapped to level
    - Deduplication by date (keep last to handle corrections)

    Args:
        raw_rows: Provider rows with 'Date' and 'Close' fields
        benchmark: Benchmark key (e.g. 'csi300')
        source: Data provider name
        ingested_at: Pipeline processing timestamp

    Returns:
        List of canonical benchmark level dictionaries
    """
    if not raw_rows:
        return []

    seen_dates: Dict[date, Dict[str, Any]] = {}

    for raw in raw_rows:
        date_str = raw.get('Date', '')
        if isinstance(date_str, str):
            row_date = date.fromisoformat(date_str)
        else:
            row_date = date_str

        close = raw.get('Close')
        if close is None:
            continue

        seen_dates[row_date] = {
            'benchmark': benchmark,
            'date': row_date,
            'level': float(close),
            'source': source,
            'ingested_at': ingested_at,
        }

    return list(seen_dates.values())
