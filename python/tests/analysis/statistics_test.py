"""Tests for statistical building blocks."""

from __future__ import annotations

import math

import numpy as np
import pytest

from fireplan.analysis.statistics import (
    nearest_rank_percentiles,
    normal_returns,
    percentile_rank,
    portfolio_moments,
)


class TestPortfolioMoments:
    """Tests for the blended return model."""

    def test_all_equity(self) -> None:
        mean, std = portfolio_moments(1.0, 0.0)
        assert mean == pytest.approx(0.10)
        assert std == pytest.approx(0.17)

    def test_all_bonds(self) -> None:
        mean, std = portfolio_moments(0.0, 1.0)
        assert mean == pytest.approx(0.04)
        assert std == pytest.approx(0.06)

    def test_eighty_twenty(self) -> None:
        mean, std = portfolio_moments(0.8, 0.2)
        assert mean == pytest.approx(0.8 * 0.10 + 0.2 * 0.04)
        assert std == pytest.approx(math.sqrt((0.8 * 0.17) ** 2 + (0.2 * 0.06) ** 2))


class TestNormalReturns:
    """Tests for normally distributed return generation."""

    def test_output_shape(self, reproducible_rng: np.random.Generator) -> None:
        result = normal_returns(reproducible_rng, n_samples=100, n_years=30, mean=0.07, std=0.15)
        assert result.shape == (100, 30)

    def test_zero_std_is_constant(self, reproducible_rng: np.random.Generator) -> None:
        result = normal_returns(reproducible_rng, n_samples=10, n_years=5, mean=0.05, std=0.0)
        np.testing.assert_array_equal(result, np.full((10, 5), 0.05))

    def test_sample_moments(self) -> None:
        rng = np.random.default_rng(seed=2024)
        result = normal_returns(rng, n_samples=20_000, n_years=10, mean=0.08, std=0.12)
        assert result.mean() == pytest.approx(0.08, abs=0.002)
        assert result.std() == pytest.approx(0.12, abs=0.002)

    def test_reproducible_with_seed(self) -> None:
        r1 = normal_returns(np.random.default_rng(1), 5, 5, 0.1, 0.2)
        r2 = normal_returns(np.random.default_rng(1), 5, 5, 0.1, 0.2)
        np.testing.assert_array_equal(r1, r2)


class TestNearestRankPercentiles:
    """Tests for nearest-rank (non-interpolated) percentiles."""

    def test_ten_rows_pick_floor_index(self) -> None:
        column = np.arange(10.0)[::-1].reshape(10, 1)
        bands = nearest_rank_percentiles(column, [0.10, 0.25, 0.50, 0.75, 0.90])
        # floor(10 * p) into the ascending sort of 0..9
        assert [bands[p][0] for p in (0.10, 0.25, 0.50, 0.75, 0.90)] == [1.0, 2.0, 5.0, 7.0, 9.0]

    def test_single_row(self) -> None:
        bands = nearest_rank_percentiles(np.array([[3.0, 4.0]]), [0.10, 0.90])
        np.testing.assert_array_equal(bands[0.10], [3.0, 4.0])
        np.testing.assert_array_equal(bands[0.90], [3.0, 4.0])

    def test_columns_sorted_independently(self) -> None:
        paths = np.array([[1.0, 30.0], [2.0, 10.0], [3.0, 20.0], [4.0, 40.0]])
        bands = nearest_rank_percentiles(paths, [0.50])
        np.testing.assert_array_equal(bands[0.50], [3.0, 30.0])

    def test_values_are_observed_not_interpolated(self) -> None:
        paths = np.array([[0.0], [100.0]])
        bands = nearest_rank_percentiles(paths, [0.25])
        assert bands[0.25][0] == 0.0

    def test_empty_paths_raise(self) -> None:
        with pytest.raises(ValueError, match="at least one row"):
            nearest_rank_percentiles(np.empty((0, 3)), [0.5])

    def test_level_out_of_range_raises(self) -> None:
        with pytest.raises(ValueError, match="percentile level"):
            nearest_rank_percentiles(np.ones((3, 3)), [1.0])


class TestPercentileRank:
    """Tests for percentile rank calculation."""

    def test_median_value(self) -> None:
        values = np.arange(1.0, 101.0)
        result = percentile_rank(values, target=50.0)
        assert result == pytest.approx(50.0, abs=1.0)

    def test_below_minimum(self) -> None:
        values = np.arange(10.0, 21.0)
        result = percentile_rank(values, target=5.0)
        assert result == pytest.approx(0.0, abs=1.0)
