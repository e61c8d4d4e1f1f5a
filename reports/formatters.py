"""
Display formatters for portfolio MetricsJSON.
Deterministic string formatting for percentages, currency, ratios, dates and periods.

Percent inputs are already in percent units (20.0 = 20%).
"""

from datetime import datetime, date
from typing import Optional, Union

from analysis.calculations.calendar import MONTH_NAMES

NOT_AVAILABLE = "N/A"
DEFAULT_CURRENCY = "¥"


class FormatterError(Exception):
    """Raised when formatter input validation fails."""
    pass


def _check_numeric(value, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormatterError(f"{label} value must be numeric, got {type(value)}")


def format_percentage(value: Optional[float], decimal_places: int = 2) -> str:
    """
    Format a percent value with specified precision.

    Args:
        value: Percent value (8.45 = 8.45%)
        decimal_places: Number of decimal places (default: 2)

    Returns:
        Formatted percentage string (e.g., "8.45%")
    """
    if value is None:
        return NOT_AVAILABLE

    _check_numeric(value, "Percentage")
    return f"{value:.{decimal_places}f}%"


def format_signed_percentage(value: Optional[float], decimal_places: int = 2) -> str:
    """Percent with an explicit sign for gains (e.g., "+8.45%", "-3.10%")."""
    if value is None:
        return NOT_AVAILABLE

    _check_numeric(value, "Percentage")
    return f"{value:+.{decimal_places}f}%"


def format_currency(
    value: Optional[float],
    symbol: str = DEFAULT_CURRENCY,
    decimal_places: int = 0,
    force_scale: Optional[str] = None
) -> str:
    """
    Format currency with thousands separators or a forced scale (B/M/K).

    Args:
        value: Amount
        symbol: Currency symbol prefix
        decimal_places: Decimals for unscaled output
        force_scale: Force specific scale ('B', 'M', 'K', None)

    Returns:
        Formatted currency string (e.g., "¥12,345", "-¥1.2M")
    """
    if value is None:
        return NOT_AVAILABLE

    _check_numeric(value, "Currency")

    abs_value = abs(value)
    sign = "-" if value < 0 and round(abs_value, decimal_places) != 0 else ""

    scales = {'B': 1e9, 'M': 1e6, 'K': 1e3}
    if force_scale is not None:
        if force_scale not in scales:
            raise FormatterError(f"Unknown currency scale: {force_scale}")
        return f"{sign}{symbol}{abs_value / scales[force_scale]:.1f}{force_scale}"

    return f"{sign}{symbol}{abs_value:,.{decimal_places}f}"


def format_ratio(value: Optional[float], decimal_places: int = 3) -> str:
    """Format a unitless ratio (Sharpe, beta, correlation)."""
    if value is None:
        return NOT_AVAILABLE

    _check_numeric(value, "Ratio")
    return f"{value:.{decimal_places}f}"


def format_share_value(value: Optional[float]) -> str:
    """Share values are shown with four decimals."""
    return format_ratio(value, 4)


def _to_date(date_input: Union[str, date, datetime]) -> date:
    if isinstance(date_input, str):
        try:
            if 'T' in date_input:
                return datetime.fromisoformat(date_input.replace('Z', '+00:00')).date()
            return date.fromisoformat(date_input)
        except ValueError:
            raise FormatterError(f"Invalid date string: {date_input}")
    if isinstance(date_input, datetime):
        return date_input.date()
    if isinstance(date_input, date):
        return date_input
    raise FormatterError(f"Date must be string, date, or datetime, got {type(date_input)}")


def format_date_display(date_input: Union[str, date, datetime, None]) -> str:
    """
    Format date as "Mon D, YYYY".

    Args:
        date_input: Date as ISO string, date object, or datetime object

    Returns:
        Formatted date string (e.g., "Jul 15, 2025")
    """
    if date_input is None:
        return NOT_AVAILABLE

    date_obj = _to_date(date_input)
    return f"{MONTH_NAMES[date_obj.month - 1]} {date_obj.day}, {date_obj.year}"


def format_period_label(period_key: str) -> str:
    """
    Format a calendar bucket key for display.

    Args:
        period_key: 'YYYY', 'YYYY-Qn' or 'YYYY-MM'

    Returns:
        '2024', '2024-Q1' or 'Mar 2024'
    """
    if not isinstance(period_key, str) or not period_key[:4].isdigit():
        raise FormatterError(f"Invalid period key: {period_key!r}")

    if len(period_key) == 4 or '-Q' in period_key:
        return period_key

    try:
        year, month = period_key.split('-')
        month_index = int(month)
    except ValueError:
        raise FormatterError(f"Invalid period key: {period_key!r}")

    if not 1 <= month_index <= 12:
        raise FormatterError(f"Invalid period key: {period_key!r}")
    return f"{MONTH_NAMES[month_index - 1]} {year}"


def format_years(years: Optional[float]) -> str:
    """Elapsed time in years with one decimal (e.g., "3.2 years")."""
    if years is None:
        return NOT_AVAILABLE

    _check_numeric(years, "Years")
    return f"{years:.1f} year" if round(years, 1) == 1.0 else f"{years:.1f} years"


def format_recovery_status(recovery_date: Optional[str], as_of_date: str) -> str:
    """
    Format recovery status message for the max drawdown.

    Args:
        recovery_date: Recovery date string or None
        as_of_date: Analysis as-of date

    Returns:
        Recovery status message
    """
    if recovery_date is None:
        return f"unrecovered as of {format_date_display(as_of_date)}"
    return f"fully recovered by {format_date_display(recovery_date)}"
