"""
Tests for volatility calculation utilities.
Sample standard deviation of simple daily returns, annualized with sqrt(252).
"""

import math
import pytest
import numpy as np

from analysis.calculations.volatility import (
    sample_std,
    realized_vol,
    window_volatility,
    rolling_volatility,
    volatility_summary,
    VolatilityError,
    ROLLING_BUFFER
)


class TestRealizedVol:
    """Tests for realized_vol function."""

    def test_matches_numpy_sample_std(self):
        returns = [0.01, -0.02, 0.015, 0.0, -0.005]
        expected = np.std(returns, ddof=1) * math.sqrt(252) * 100
        assert realized_vol(returns) == pytest.approx(expected)

    def test_constant_returns_zero_vol(self):
        assert realized_vol([0.01, 0.01, 0.01]) == pytest.approx(0.0)

    def test_single_return_zero(self):
        assert realized_vol([0.05]) == 0.0

    def test_nan_rejected(self):
        with pytest.raises(VolatilityError, match="NaN"):
            realized_vol([0.01, float('nan')])

    def test_inf_rejected(self):
        with pytest.raises(VolatilityError, match="Infinite"):
            realized_vol([0.01, float('inf')])

    def test_sample_std_short(self):
        assert sample_std([]) == 0.0
        assert sample_std([1.0]) == 0.0


class TestWindowVolatility:
    """Tests for window_volatility function."""

    def test_skips_invalid_values(self):
        # Only one valid return remains -> 0
        assert window_volatility([1.0, None, 1.1, 1.2]) == 0.0

    def test_flat_window(self):
        assert window_volatility([1.0, 1.0, 1.0, 1.0]) == 0.0

    def test_forward_filled_benchmark_adds_no_spurious_volatility(self):
        # A filled day repeats the level: a zero return, not a missing one
        filled = [100.0, 101.0, 101.0, 102.01]
        returns = [0.01, 0.0, 0.01]
        expected = np.std(returns, ddof=1) * math.sqrt(252) * 100
        assert window_volatility(filled) == pytest.approx(expected)


class TestRollingVolatility:
    """Tests for rolling_volatility function."""

    def test_length(self):
        values = [1.0 + 0.01 * (i % 3) for i in range(50)]
        result = rolling_volatility(values, window=30)

        # One entry per index from window - 1
        assert len(result) == 50 - 30 + 1

    def test_window_ends_at_index(self):
        values = [1.0] * 35 + [1.1, 1.0, 1.1, 1.0, 1.1]
        result = rolling_volatility(values, window=30)

        # First window (indices 0-29) is flat
        assert result[0] == 0.0
        assert result[-1] == pytest.approx(window_volatility(values[-30:]))

    def test_insufficient_records(self):
        values = [1.0] * (30 + ROLLING_BUFFER - 1)
        assert rolling_volatility(values, window=30) == []

    def test_exactly_enough_records(self):
        values = [1.0] * (30 + ROLLING_BUFFER)
        assert len(rolling_volatility(values, window=30)) == ROLLING_BUFFER + 1

    def test_invalid_window(self):
        with pytest.raises(VolatilityError, match="Window must be >= 2"):
            rolling_volatility([1.0] * 20, window=1)


class TestVolatilitySummary:
    """Tests for volatility_summary function."""

    def test_summary(self):
        summary = volatility_summary([10.0, 20.0, 15.0])
        assert summary == {'avg': pytest.approx(15.0), 'current': 15.0, 'max': 20.0, 'min': 10.0}

    def test_empty(self):
        assert volatility_summary([]) == {'avg': None, 'current': None, 'max': None, 'min': None}
