"""
Tests for calendar bucket utilities.
"""

import pytest
from datetime import date

from analysis.calculations.calendar import (
    bucket_key,
    period_returns,
    rank_periods,
    return_matrix,
    seasonality_stats,
    CalendarError
)


class TestBucketKey:
    """Tests for bucket_key function."""

    def test_keys(self):
        day = date(2024, 5, 17)
        assert bucket_key(day, 'year') == '2024'
        assert bucket_key(day, 'quarter') == '2024-Q2'
        assert bucket_key(day, 'month') == '2024-05'

    def test_quarter_boundaries(self):
        assert bucket_key(date(2024, 3, 31), 'quarter') == '2024-Q1'
        assert bucket_key(date(2024, 10, 1), 'quarter') == '2024-Q4'

    def test_unknown_period(self):
        with pytest.raises(CalendarError, match="Unknown period"):
            bucket_key(date(2024, 1, 1), 'week')


class TestPeriodReturns:
    """Tests for period_returns function."""

    def test_annual_buckets(self):
        dates = [date(2023, 1, 2), date(2023, 12, 29), date(2024, 1, 2), date(2024, 6, 28)]
        values = [1.0, 1.1, 1.1, 1.21]
        result = period_returns(values, dates, 'year')

        assert [r['period'] for r in result] == ['2023', '2024']
        assert result[0]['fund_return'] == pytest.approx(10.0)
        assert result[1]['fund_return'] == pytest.approx(10.0)
        assert result[1]['start_date'] == date(2024, 1, 2)

    def test_single_record_bucket_excluded(self):
        dates = [date(2022, 12, 30), date(2023, 1, 2), date(2023, 6, 30)]
        result = period_returns([1.0, 1.0, 1.2], dates, 'year')

        assert [r['period'] for r in result] == ['2023']

    def test_benchmark_needs_both_ends(self):
        dates = [date(2024, 1, 2), date(2024, 1, 15), date(2024, 2, 1), date(2024, 2, 20)]
        values = [1.0, 1.1, 1.1, 1.0]
        benchmarks = {'sha': [None, 3000.0, 3000.0, 3300.0]}
        result = period_returns(values, dates, 'month', benchmarks)

        assert result[0]['benchmark_returns'] == {'sha': None}
        assert result[1]['benchmark_returns']['sha'] == pytest.approx(10.0)

    def test_length_mismatch(self):
        with pytest.raises(CalendarError, match="same length"):
            period_returns([1.0], [date(2024, 1, 1), date(2024, 1, 2)], 'year')


class TestRankPeriods:
    """Tests for rank_periods function."""

    def _periods(self, returns):
        return [{'period': f"2024-{i + 1:02d}", 'fund_return': r} for i, r in enumerate(returns)]

    def test_best_and_worst(self):
        periods = self._periods([1.0, -3.0, 4.0, 2.0, -1.0])
        ranked = rank_periods(periods, k=2)

        assert [p['fund_return'] for p in ranked['best']] == [4.0, 2.0]
        assert [p['fund_return'] for p in ranked['worst']] == [-3.0, -1.0]

    def test_ties_earlier_first(self):
        periods = self._periods([2.0, 2.0, -1.0, -1.0])
        ranked = rank_periods(periods, k=4)

        assert [p['period'] for p in ranked['best']] == ['2024-01', '2024-02', '2024-03', '2024-04']
        assert [p['period'] for p in ranked['worst']] == ['2024-03', '2024-04', '2024-01', '2024-02']

    def test_default_top_five(self):
        ranked = rank_periods(self._periods(range(8)))
        assert len(ranked['best']) == 5
        assert len(ranked['worst']) == 5

    def test_negative_k(self):
        with pytest.raises(CalendarError, match="non-negative"):
            rank_periods([], k=-1)


class TestSeasonality:
    """Tests for return_matrix and seasonality_stats."""

    def test_matrix_and_stats(self):
        periods = [
            {'period': '2023-01', 'fund_return': 2.0},
            {'period': '2023-02', 'fund_return': -1.0},
            {'period': '2024-01', 'fund_return': -4.0},
        ]
        matrix = return_matrix(periods)
        assert matrix == {2023: {1: 2.0, 2: -1.0}, 2024: {1: -4.0}}

        stats = seasonality_stats(matrix)
        assert len(stats) == 12
        assert stats[0] == {'slot': 1, 'avg': pytest.approx(-1.0), 'win_rate': 50.0, 'count': 2}
        assert stats[1]['win_rate'] == 0.0
        assert stats[2] == {'slot': 3, 'avg': None, 'win_rate': 0.0, 'count': 0}

    def test_quarter_matrix(self):
        matrix = return_matrix([{'period': '2024-Q3', 'fund_return': 5.0}])
        assert matrix == {2024: {3: 5.0}}
        assert len(seasonality_stats(matrix, slots=4)) == 4
