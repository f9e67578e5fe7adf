import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from frstats.utils import (
    histc, histc_bins, make_dist_bins, make_dist_bins_adapt, nanmean_or_nan,
    pairwise_values, safe_divide,
)


def test_histc_closed_last_edge():
    values = [-1, 0, 0.5, 1, 1.5, 2, 3]
    assert_array_equal(histc(values, [0, 1, 2]), [2, 2, 1])


def test_histc_bins():
    values = np.array([0, 0.5, 1, 1.5, 2, -1, np.nan])
    assert_array_equal(histc_bins(values, [0, 1, 2]), [1, 1, 2, 2, 3, 0, 0])


def test_safe_divide():
    assert_array_equal(safe_divide([1, 2], [0, 4]), [np.nan, 0.5])


def test_nanmean_or_nan():
    assert nanmean_or_nan([1, np.nan, 3]) == 2.0
    assert np.isnan(nanmean_or_nan([np.nan]))
    assert np.isnan(nanmean_or_nan([]))


def test_pairwise_values_upper_triangle():
    pair_sim = np.array([[0, 1, 2],
                         [1, 0, np.nan],
                         [2, np.nan, 0]])
    assert_array_equal(pairwise_values(pair_sim), [1, 2])


def test_make_dist_bins_at_percentiles():
    pair_sim = np.array([[0, 1, 2],
                         [1, 0, 3],
                         [2, 3, 0]])
    assert_allclose(make_dist_bins(pair_sim, [0, 50, 100]), [1, 2, 3])


def test_make_dist_bins_adapt_merges_sparse_bins():
    s = np.array([0.5, 0.5, 1.5, 2.5, 2.5, 2.5])
    edges, centers = make_dist_bins_adapt(s, [0, 1, 2, 3], 1)
    assert_array_equal(edges, [0, 1, 3])
    assert_allclose(centers, [0.5, 2.25])
