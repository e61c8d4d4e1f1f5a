"""
Tests for growth projection utilities.
"""

import pytest
from datetime import date

from analysis.calculations.growth import (
    growth_outcome,
    deposit_outcome,
    project,
    start_options,
    GrowthError
)


DATES = [date(2022, 1, 3), date(2022, 7, 1), date(2023, 1, 3), date(2024, 1, 3)]
VALUES = [1.0, 1.2, 1.1, 1.5]


class TestOutcomes:
    """Tests for growth_outcome and deposit_outcome."""

    def test_growth_outcome(self):
        outcome = growth_outcome(10000, 1.0, 1.5, 2.0)

        assert outcome['final_value'] == pytest.approx(15000)
        assert outcome['profit'] == pytest.approx(5000)
        assert outcome['total_return'] == pytest.approx(50.0)
        assert outcome['annualized_return'] == pytest.approx((1.5 ** 0.5 - 1) * 100)

    def test_growth_outcome_invalid(self):
        with pytest.raises(GrowthError, match="must be positive"):
            growth_outcome(100, 0.0, 1.0, 1.0)

    def test_deposit_compounds(self):
        outcome = deposit_outcome(10000, 0.03, 2.0)
        assert outcome['final_value'] == pytest.approx(10000 * 1.03 ** 2)
        assert outcome['annualized_return'] == pytest.approx(3.0)


class TestProject:
    """Tests for project function."""

    def test_fund_and_benchmarks(self):
        benchmarks = {
            'csi300': [4000.0, 4200.0, 3800.0, 3600.0],
            'sp500': [None, 4000.0, 4100.0, 4800.0],
        }
        result = project(10000, VALUES, DATES, 0, benchmarks)

        assert result['fund']['final_value'] == pytest.approx(15000)
        assert result['benchmarks']['csi300']['final_value'] == pytest.approx(9000)
        # No level at the start date
        assert 'sp500' not in result['benchmarks']
        assert result['benchmark_outperformance']['csi300'] == pytest.approx(6000)
        assert result['deposit_outperformance'] == pytest.approx(15000 - result['deposit']['final_value'])

    def test_benchmark_named_deposit_kept_apart(self):
        result = project(10000, VALUES, DATES, 0, {'deposit': [100.0, 100.0, 100.0, 120.0]})

        assert result['benchmark_outperformance'] == {'deposit': pytest.approx(3000)}
        assert result['deposit_outperformance'] == pytest.approx(15000 - result['deposit']['final_value'])

    def test_later_start(self):
        result = project(1000, VALUES, DATES, start_index=2)

        assert result['start_date'] == date(2023, 1, 3)
        assert result['fund']['final_value'] == pytest.approx(1000 * 1.5 / 1.1)

    def test_guards(self):
        assert project(0, VALUES, DATES) is None
        assert project(-5, VALUES, DATES) is None
        assert project(100, VALUES, DATES, start_index=3) is None
        assert project(100, VALUES, DATES, start_index=-1) is None

    def test_length_mismatch(self):
        with pytest.raises(GrowthError, match="same length"):
            project(100, VALUES, DATES[:2])


class TestStartOptions:
    """Tests for start_options function."""

    def test_first_record_of_each_year(self):
        options = start_options(DATES)

        assert [o['index'] for o in options] == [0, 2]
        assert [o['label'] for o in options] == ['2022', '2023']

    def test_last_record_not_offered(self):
        assert start_options([date(2024, 1, 1)]) == []
