import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from frstats.config import BETWEEN_CATEGORY, WITHIN_CATEGORY
from frstats.crp import (
    _robust_slope, bin_crp, cat_crp, crp, dist_item_crp, item_crp, lag_values,
    sem_crp, sem_crp_bins, semantic_crp,
)
from frstats.errors import CounterOverflow, MissingArgument, ShapeMismatch

SIM = np.array([[1.0, 0.9, 0.1, 0.2],
                [0.9, 1.0, 0.2, 0.6],
                [0.1, 0.2, 1.0, 0.3],
                [0.2, 0.6, 0.3, 1.0]])


def _random_recalls(rng, n_trials, list_length, n_recalls):
    recalls = np.zeros((n_trials, n_recalls))
    for i in range(n_trials):
        n = rng.integers(0, n_recalls + 1)
        recalls[i, :n] = rng.permutation(list_length)[:n] + 1
    return recalls


# ─────────────────────────────────────────────────────────────────────
# Lag-CRP
# ─────────────────────────────────────────────────────────────────────

def test_lag_crp_three_item_list():
    lag_crps = crp(np.array([[3, 1, 2]]), np.array([1]), 3)
    assert_array_equal(lag_crps, [[1.0, 0.0, np.nan, 1.0, np.nan]])


def test_lag_crp_center_undefined_and_bounded():
    rng = np.random.default_rng(11)
    recalls = _random_recalls(rng, 60, 8, 6)
    subjects = np.repeat([1, 2, 3], 20)

    lag_crps = crp(recalls, subjects, 8)

    assert lag_crps.shape == (3, 15)
    assert np.all(np.isnan(lag_crps[:, 7]))
    defined = lag_crps[~np.isnan(lag_crps)]
    assert np.all((defined >= 0) & (defined <= 1))


def test_lag_crp_with_presentation_mask():
    # position 2 may not be transitioned to
    to_mask_pres = np.array([[True, False, True]])
    from_mask_pres = np.ones((1, 3), dtype=bool)
    lag_crps = crp(np.array([[3, 1, 2]]), [1], 3,
                   from_mask_pres=from_mask_pres, to_mask_pres=to_mask_pres)
    # 3 -> 1 with only lag -2 possible; 1 -> 2 is not a possible transition
    assert_array_equal(lag_crps, [[1.0, np.nan, np.nan, np.nan, np.nan]])


def test_lag_crp_validates_input():
    with pytest.raises(MissingArgument):
        crp(np.array([[1, 2]]), [1], None)
    with pytest.raises(ShapeMismatch):
        crp(np.array([[1, 2]]), [1, 2], 3)
    with pytest.raises(ShapeMismatch):
        crp(np.array([[1, 2]]), [1], 3, from_mask_rec=np.ones((1, 3), dtype=bool))


def test_lag_values():
    assert_array_equal(lag_values(3), [-2, -1, 0, 1, 2])


def test_bin_crp_matches_lag_crp_with_unit_bins():
    recalls = np.array([[3, 1, 2]])
    bins = np.array([-2, -1, 0, 1, 2])
    assert_array_equal(bin_crp(recalls, [1], 3, bins), crp(recalls, [1], 3))


def test_bin_crp_without_possible_transitions_is_zero():
    result = bin_crp(np.array([[1, 0, 0]]), [1], 3, np.array([-2, 0, 2]))
    assert_array_equal(result, [[0, 0, 0]])


# ─────────────────────────────────────────────────────────────────────
# Category CRP
# ─────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("lag_type", ["cat_pos", "serial_pos"])
def test_cat_crp_within_category(lag_type):
    labels = np.array([[1, 1, 2, 2]])
    lag_crps, numer, denom = cat_crp(np.array([[1, 2, 3, 4]]), labels, [1],
                                     WITHIN_CATEGORY, lag_type=lag_type)
    # 1 -> 2 and 3 -> 4 stay within category; 2 -> 3 does not count
    assert_array_equal(numer, [[0, 0, 0, 0, 2, 0, 0]])
    assert_array_equal(denom, [[0, 0, 0, 0, 2, 0, 0]])
    assert lag_crps[0, 4] == 1.0
    assert np.isnan(lag_crps[0, 3])


def test_cat_crp_between_categories():
    labels = np.array([[1, 1, 2, 2]])
    lag_crps, numer, denom = cat_crp(np.array([[1, 3, 2, 4]]), labels, [1],
                                     BETWEEN_CATEGORY)
    assert_array_equal(numer, [[0, 0, 1, 0, 1, 1, 0]])
    assert_array_equal(denom, [[0, 0, 1, 0, 1, 2, 0]])
    assert_allclose(lag_crps, [[np.nan, np.nan, 1, np.nan, 1, 0.5, np.nan]])


def test_cat_crp_rejects_unknown_lag_type():
    with pytest.raises(ValueError):
        cat_crp(np.array([[1, 2]]), np.array([[1, 1]]), [1], WITHIN_CATEGORY,
                lag_type="bogus")


def test_cat_crp_requires_catlabels_per_trial():
    with pytest.raises(ShapeMismatch):
        cat_crp(np.array([[1, 2]]), np.array([[1, 1], [1, 1]]), [1], WITHIN_CATEGORY)


# ─────────────────────────────────────────────────────────────────────
# Semantic CRP
# ─────────────────────────────────────────────────────────────────────

def test_semantic_crp_counts_each_possible_bin_once_per_transition():
    pres = np.array([[1, 2, 3, 4]])
    recalls = np.array([[1, 2, 3]])
    bins = np.array([0, 0.25, 0.5, 0.75, 1.0])

    result = semantic_crp(recalls, pres, [1], SIM, bins)

    # 1 -> 2 (0.9) from {0.9, 0.1, 0.2}; 2 -> 3 (0.2) from {0.2, 0.6}
    assert_allclose(result, [[0.5, np.nan, 0.0, 1.0, np.nan]])


def test_semantic_crp_validates_similarity_matrix():
    pres = np.array([[1, 2, 5]])
    with pytest.raises(ShapeMismatch):
        semantic_crp(np.array([[1, 2]]), pres, [1], SIM, np.array([0, 1]))
    with pytest.raises(ShapeMismatch):
        semantic_crp(np.array([[1, 2]]), np.array([[1, 2, 3]]), [1], SIM[:, :3],
                     np.array([0, 1]))


def test_sem_crp_bins_widen_linearly():
    all_vals = np.linspace(-0.5, 0.9, 50)
    lims, bin_vec = sem_crp_bins(all_vals, 5, 4)

    widths = np.diff(np.concatenate([[-0.5], lims]))
    assert widths[-1] / widths[0] == pytest.approx(4)
    assert lims[-1] == pytest.approx(0.9)
    assert np.all(np.diff(bin_vec) > 0)


def test_sem_crp_bins_drop_empty_bins(caplog):
    all_vals = np.array([0.0, 0.01, 0.02, 0.9])
    with caplog.at_level(logging.WARNING, logger="frstats.crp"):
        lims, bin_vec = sem_crp_bins(all_vals, 5, 1, lim_vec=[0.2, 0.4, 0.6, 0.8, 1.0])
    assert_allclose(lims, [0.2, 1.0])
    assert_array_equal(bin_vec, [2, 3])
    assert "no values" in caplog.text


def test_robust_slope():
    assert _robust_slope(np.arange(4.0), np.array([0.0, 2.0, 4.0, 6.0])) == pytest.approx(2)
    assert np.isnan(_robust_slope(np.arange(4.0), np.array([0.0, np.nan, np.nan, 6.0])))


def test_sem_crp_shapes_and_range():
    rng = np.random.default_rng(5)
    n_items = 12
    sem = np.round(rng.uniform(-0.2, 0.8, size=(n_items, n_items)), 2)
    sem = (sem + sem.T) / 2
    np.fill_diagonal(sem, 1.0)

    n_trials, list_length = 8, 5
    pres = np.vstack([rng.permutation(n_items)[:list_length] + 1 for _ in range(n_trials)])
    recalls = np.vstack([rng.permutation(list_length)[:4] + 1 for _ in range(n_trials)])
    rec_itemnos = np.take_along_axis(pres, recalls - 1, axis=1)
    subjects = np.repeat([1, 2], 4)

    bin_mean, binned, slope_subj, slope = sem_crp(recalls, rec_itemnos, pres, subjects,
                                                  sem, numbins=4, p_increase=2)

    n_bins = bin_mean.size
    assert 1 <= n_bins <= 4
    assert np.all(np.diff(bin_mean) >= 0)
    assert binned.shape == (2, n_bins, list_length - 1)
    assert slope_subj.shape == (2, list_length - 1)
    assert slope.shape == (2,)
    defined = binned[~np.isnan(binned)]
    assert np.all((defined >= 0) & (defined <= 1 + 1e-12))


def test_sem_crp_needs_values_below_one():
    with pytest.raises(ShapeMismatch):
        sem_crp(np.array([[1, 2]]), np.array([[1, 2]]), np.array([[1, 2]]), [1],
                np.ones((3, 3)))


# ─────────────────────────────────────────────────────────────────────
# Item CRP
# ─────────────────────────────────────────────────────────────────────

def test_item_crp_counts_item_pairs():
    pres = np.array([[3, 1, 2]])
    actual, possible = item_crp(np.array([[1, 2, 3]]), pres, [1], 3)

    expected_actual = np.zeros((1, 3, 3), dtype=int)
    expected_actual[0, 2, 0] = 1
    expected_actual[0, 0, 1] = 1
    expected_possible = expected_actual.copy()
    expected_possible[0, 2, 1] = 1

    assert_array_equal(actual, expected_actual)
    assert_array_equal(possible, expected_possible)


def test_item_crp_skips_padded_presentations():
    padded = np.array([[1, 2, 0]])
    actual, possible = item_crp(np.array([[1, 2, 0]]), padded, [1], 3)

    expected = np.zeros((1, 3, 3), dtype=int)
    expected[0, 0, 1] = 1
    assert_array_equal(actual, expected)
    assert_array_equal(possible, expected)
    assert possible[0, :, 2].sum() == 0


def test_item_crp_rejects_items_outside_pool():
    with pytest.raises(ShapeMismatch):
        item_crp(np.array([[1, 2]]), np.array([[5, 1]]), [1], 3)


def test_item_crp_fixed_width_counters():
    pres = np.array([[3, 1, 2]])
    actual, _ = item_crp(np.array([[1, 2, 3]]), pres, [1], 3, counter_dtype=np.uint8)
    assert actual.dtype == np.uint8

    many = 300
    with pytest.raises(CounterOverflow):
        item_crp(np.tile([[1, 2, 3]], (many, 1)), np.tile(pres, (many, 1)),
                 np.ones(many), 3, counter_dtype=np.uint8)


def test_dist_item_crp_bins_by_pair_similarity():
    pres = np.array([[3, 1, 2]])
    actual, possible = item_crp(np.array([[1, 2, 3]]), pres, [1], 3)
    pair_sim = np.array([[0, 1, 2],
                         [1, 0, 3],
                         [2, 3, 0]])

    crps, act_bin, poss_bin = dist_item_crp(actual, possible, pair_sim, edges=[1, 2, 3])

    assert_array_equal(act_bin, [[1, 1, 0]])
    assert_array_equal(poss_bin, [[1, 1, 1]])
    assert_array_equal(crps, [[1, 1, 0]])


def test_dist_item_crp_default_percentile_edges():
    pair_sim = np.array([[0, 1, 2],
                         [1, 0, 3],
                         [2, 3, 0]])
    counts = np.ones((3, 3))
    crps, _, poss_bin = dist_item_crp(counts, counts, pair_sim, percentiles=[0, 50, 100])
    assert crps.shape == (1, 3)
    # each bin holds one pair, counted in both directions
    assert_array_equal(poss_bin, [[2, 2, 2]])


def test_dist_item_crp_shape_check():
    with pytest.raises(ShapeMismatch):
        dist_item_crp(np.ones((1, 3, 3)), np.ones((1, 3, 3)), np.ones((4, 4)))
