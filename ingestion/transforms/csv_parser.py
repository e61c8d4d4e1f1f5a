"""
CSV parser for portfolio valuation uploads.
Turns raw delimited text into validated DailyRecords plus row-level errors.

Two layouts are accepted:
- full:   date, principle, share_value, <benchmark>...  (dates YYYY-MM-DD)
- simple: date, principle, market_value                 (dates DD/MM/YYYY)

The first line may be a sheet name / label and is skipped when it is not the
header. Row problems never raise; they are collected as "row N: ..." strings.
"""

import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd

from ingestion.records import DailyRecord
from ingestion.transforms.normalizers import sort_and_dedupe, derive_share_values
from ingestion.transforms.validators import validate_daily_record, ValidationError

logger = logging.getLogger(__name__)

DATE_FORMATS = (
    (re.compile(r'^\d{4}-\d{1,2}-\d{1,2}$'), '%Y-%m-%d'),
    (re.compile(r'^\d{1,2}/\d{1,2}/\d{4}$'), '%d/%m/%Y'),
)

COLUMN_ALIASES = {
    'date': 'date',
    'principal': 'principal',
    'principle': 'principal',
    'share_value': 'share_value',
    'sharevalue': 'share_value',
    'nav': 'share_value',
    'market_value': 'market_value',
    'marketvalue': 'market_value',
    'units': 'units',
    'shares': 'units',
}

# Columns carried by spreadsheet exports that are neither inputs nor benchmarks
IGNORED_COLUMNS = {'gain_loss', 'gainloss', 'daily_gain', 'dailygain'}

CANDIDATE_DELIMITERS = (',', ';', '\t')

FORMAT_FULL = 'full'
FORMAT_SIMPLE = 'simple'

EXTRA_COLUMN_PREFIX = '__extra_'
UNNAMED_COLUMN_PREFIX = '__unnamed_'


class CSVParseError(ValueError):
    """Raised when the CSV input as a whole is empty or unreadable."""
    pass


@dataclass
class ParseResult:
    """Outcome of parsing one CSV upload."""
    records: List[DailyRecord]
    errors: List[str]
    csv_format: str
    benchmarks: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_date(cell: str) -> Optional[date]:
    """
    Parse YYYY-MM-DD or DD/MM/YYYY, chosen by which pattern matches.

    Returns:
        date, or None when the cell matches neither format or is not a real date
    """
    cell = cell.strip()
    for pattern, fmt in DATE_FORMATS:
        if pattern.match(cell):
            try:
                return datetime.strptime(cell, fmt).date()
            except ValueError:
                return None
    return None


def parse_decimal(cell: str) -> Optional[float]:
    """
    Parse a numeric cell.

    Thousands separators and surrounding whitespace are tolerated and
    accounting-style parentheses mean negative. Empty, non-numeric and
    non-finite cells return None.
    """
    cleaned = cell.strip().replace(',', '').replace(' ', '')
    if not cleaned:
        return None

    negative = cleaned.startswith('(') and cleaned.endswith(')')
    if negative:
        cleaned = cleaned[1:-1]

    try:
        value = float(cleaned)
    except ValueError:
        return None

    if not math.isfinite(value):
        return None

    return -value if negative else value


def _normalize_header(name: str) -> str:
    return re.sub(r'\s+', '_', str(name).strip().lower())


def _first_cell(line: str) -> str:
    for delimiter in CANDIDATE_DELIMITERS:
        if delimiter in line:
            return line.split(delimiter, 1)[0]
    return line


def _find_header(lines: List[str]) -> int:
    """
    Index of the header line.

    The header is the first non-blank line whose first cell is 'date'. A
    non-header first line is a label; the next non-blank line must be the header.
    """
    non_blank = [i for i, line in enumerate(lines) if line.strip()]
    if not non_blank:
        raise CSVParseError("CSV input is empty")

    for position in non_blank[:2]:
        first = _normalize_header(_first_cell(lines[position]).strip().strip('"'))
        if first == 'date':
            return position

    raise CSVParseError("CSV header row not found: expected a 'date' column in the first two rows")


def _detect_delimiter(header_line: str) -> str:
    counts = {d: header_line.count(d) for d in CANDIDATE_DELIMITERS}
    delimiter = max(counts, key=counts.get)
    if counts[delimiter] == 0:
        raise CSVParseError("CSV header has a single column; expected date, principal and value columns")
    return delimiter


def _read_frame(lines: List[str], header_idx: int, delimiter: str) -> Tuple[pd.DataFrame, List[str]]:
    """
    Read data rows under the header into a string DataFrame.

    Extra overflow columns absorb rows with more fields than the header so a
    malformed row stays a row-level error instead of failing the whole read.
    Blank lines are kept so frame position maps back to the source line.
    """
    header = [_normalize_header(h.strip().strip('"')) for h in lines[header_idx].split(delimiter)]
    header = [h or f'{UNNAMED_COLUMN_PREFIX}{i}' for i, h in enumerate(header)]
    body = lines[header_idx + 1:]

    width = max([line.count(delimiter) + 1 for line in body] + [len(header)])
    names = header + [f'{EXTRA_COLUMN_PREFIX}{k}' for k in range(width - len(header))]

    if not body:
        return pd.DataFrame(columns=names), header

    try:
        frame = pd.read_csv(
            io.StringIO('\n'.join(body)),
            sep=delimiter,
            header=None,
            names=names,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            engine='python'
        )
    except (pd.errors.ParserError, ValueError) as e:
        raise CSVParseError(f"Could not read CSV rows: {e}") from e

    return frame, header


def _resolve_columns(header: List[str]) -> Tuple[Dict[str, str], List[str], str]:
    """
    Map canonical field names to header columns and find benchmark columns.

    Returns:
        Tuple of (field -> column, benchmark columns, csv format)
    """
    fields: Dict[str, str] = {}
    benchmarks: List[str] = []

    for column in header:
        canonical = COLUMN_ALIASES.get(column)
        if canonical is not None:
            fields.setdefault(canonical, column)
        elif column not in IGNORED_COLUMNS and not column.startswith(UNNAMED_COLUMN_PREFIX):
            benchmarks.append(column)

    if 'principal' not in fields:
        raise CSVParseError("CSV header is missing a principal column")

    if 'share_value' in fields:
        csv_format = FORMAT_FULL
    elif 'market_value' in fields:
        csv_format = FORMAT_SIMPLE
        # Benchmarks are only read from the full layout
        benchmarks = []
    else:
        raise CSVParseError("CSV header needs a share_value or market_value column")

    return fields, benchmarks, csv_format


def _cell(row: Dict[str, object], column: Optional[str]) -> str:
    if column is None:
        return ''
    value = row.get(column)
    return value if isinstance(value, str) else ''


def _parse_row(
    row: Dict[str, object],
    fields: Dict[str, str],
    benchmarks: List[str],
    csv_format: str
) -> DailyRecord:
    """
    Build a DailyRecord from one data row.

    Raises:
        ValidationError: With the row-level problem description
    """
    extras = [k for k, v in row.items() if k.startswith(EXTRA_COLUMN_PREFIX) and isinstance(v, str) and v.strip()]
    if extras:
        raise ValidationError("too many fields")

    row_date = parse_date(_cell(row, fields['date']))
    if row_date is None:
        raise ValidationError(f"invalid date '{_cell(row, fields['date']).strip()}'")

    principal = parse_decimal(_cell(row, fields['principal']))
    if principal is None or principal < 0:
        raise ValidationError(f"invalid principal '{_cell(row, fields['principal']).strip()}'")

    market_value = None
    if 'market_value' in fields:
        market_cell = _cell(row, fields['market_value'])
        market_value = parse_decimal(market_cell)
        if csv_format == FORMAT_SIMPLE and (market_value is None or market_value < 0):
            raise ValidationError(f"invalid market value '{market_cell.strip()}'")
        if market_value is not None and market_value < 0:
            market_value = None

    share_value = None
    if csv_format == FORMAT_FULL:
        share_cell = _cell(row, fields['share_value'])
        share_value = parse_decimal(share_cell)
        if share_value is None or share_value <= 0:
            raise ValidationError(f"invalid share value '{share_cell.strip()}'")

    units = None
    if 'units' in fields:
        units = parse_decimal(_cell(row, fields['units']))
        if units is not None and units <= 0:
            units = None

    levels: Dict[str, Optional[float]] = {}
    for name in benchmarks:
        raw = _cell(row, name).strip()
        if not raw:
            levels[name] = None
            continue
        level = parse_decimal(raw)
        if level is None or level < 0:
            raise ValidationError(f"invalid {name} value '{raw}'")
        levels[name] = level if level > 0 else None

    return DailyRecord(
        date=row_date,
        principal=principal,
        share_value=share_value,
        benchmarks=levels,
        market_value=market_value,
        units=units
    )


def parse_csv(text: str) -> ParseResult:
    """
    Parse portfolio CSV text into validated records and row errors.

    Args:
        text: Raw CSV content

    Returns:
        ParseResult with records in ascending date order (one per date,
        later rows win) and "row N: problem" messages, N being the 1-based
        line number in the input

    Raises:
        CSVParseError: If the input is empty or has no usable header
    """
    if text is None or not str(text).strip():
        raise CSVParseError("CSV input is empty")

    lines = str(text).lstrip('\ufeff').splitlines()
    header_idx = _find_header(lines)
    delimiter = _detect_delimiter(lines[header_idx])

    frame, header = _read_frame(lines, header_idx, delimiter)
    fields, benchmarks, csv_format = _resolve_columns(header)

    errors: List[Tuple[int, str]] = []
    parsed: List[DailyRecord] = []
    line_of: Dict[date, int] = {}

    for offset, row in enumerate(frame.to_dict('records')):
        line_number = header_idx + 2 + offset

        if not any(isinstance(v, str) and v.strip() for v in row.values()):
            continue

        try:
            record = _parse_row(row, fields, benchmarks, csv_format)
        except ValidationError as e:
            errors.append((line_number, str(e)))
            continue

        parsed.append(record)
        line_of[record.date] = line_number

    ordered = sort_and_dedupe(parsed)

    records, rejected = derive_share_values(ordered)
    for record, reason in rejected:
        errors.append((line_of[record.date], reason))

    valid: List[DailyRecord] = []
    for record in records:
        try:
            validate_daily_record(record)
            valid.append(record)
        except ValidationError as e:
            errors.append((line_of[record.date], str(e)))

    errors.sort(key=lambda item: item[0])
    messages = [f"row {line}: {problem}" for line, problem in errors]

    if messages:
        logger.warning(f"CSV parse skipped {len(messages)} rows ({csv_format} format)")
    logger.info(f"Parsed {len(valid)} records ({csv_format} format, benchmarks: {benchmarks or 'none'})")

    return ParseResult(records=valid, errors=messages, csv_format=csv_format, benchmarks=benchmarks)


def parse_csv_file(path: Union[str, Path]) -> ParseResult:
    """
    Read and parse a CSV file.

    Raises:
        CSVParseError: If the file cannot be read or is empty
    """
    path = Path(path)
    try:
        text = path.read_text(encoding='utf-8-sig')
    except (OSError, UnicodeDecodeError) as e:
        raise CSVParseError(f"Could not read {path}: {e}") from e

    return parse_csv(text)
