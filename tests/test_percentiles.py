"""
tests/test_percentiles.py — Nearest-Rank Percentile Math
=========================================================
"""

from __future__ import annotations

import pytest

from gatekeep.engine.percentiles import compute_percentiles, mean, nearest_rank


class TestNearestRank:
    """Tests for nearest_rank()."""

    def test_reference_sample(self):
        """[10..50] → p50 30, p95 50 (an observed value, never interpolated)."""
        values = [10, 20, 30, 40, 50]
        assert nearest_rank(values, 50) == 30
        assert nearest_rank(values, 95) == 50

    def test_even_length_median_is_lower_middle(self):
        """[1, 2, 3, 4] → p50 is 2, not 2.5."""
        assert nearest_rank([1, 2, 3, 4], 50) == 2

    def test_unsorted_input(self):
        assert nearest_rank([50, 10, 40, 20, 30], 50) == 30

    def test_input_not_mutated(self):
        values = [3, 1, 2]
        nearest_rank(values, 50)
        assert values == [3, 1, 2]

    def test_empty_is_none(self):
        assert nearest_rank([], 50) is None

    def test_single_value(self):
        assert nearest_rank([7], 0) == 7
        assert nearest_rank([7], 100) == 7

    def test_bounds_clamp(self):
        """p0 is the minimum, p100 the maximum."""
        values = [5, 1, 9]
        assert nearest_rank(values, 0) == 1
        assert nearest_rank(values, 100) == 9

    @pytest.mark.parametrize("p", [-1, 100.5])
    def test_out_of_range_percentile(self, p):
        with pytest.raises(ValueError):
            nearest_rank([1, 2, 3], p)


class TestComputePercentiles:
    """Tests for compute_percentiles()."""

    def test_several_percentiles(self):
        result = compute_percentiles([10, 20, 30, 40, 50], [50, 95])
        assert result == {50: 30, 95: 50}

    def test_empty_values(self):
        """Every requested percentile maps to None."""
        assert compute_percentiles([], [50, 95]) == {50: None, 95: None}

    def test_accepts_generator(self):
        result = compute_percentiles((v for v in [4, 3, 2, 1]), [50])
        assert result == {50: 2}

    def test_invalid_percentile(self):
        with pytest.raises(ValueError):
            compute_percentiles([1], [50, 101])


class TestMean:
    """Tests for mean()."""

    def test_reference_sample(self):
        assert mean([10, 20, 30, 40, 50]) == 30

    def test_empty(self):
        assert mean([]) is None
