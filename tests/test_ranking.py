import numpy as np
import pytest

from frstats.errors import ValueNotInSet
from frstats.ranking import percentile_rank


def test_minimum_ranks_zero_and_maximum_ranks_one():
    possible = np.array([0.3, 0.1, 0.7, 0.5])
    assert percentile_rank(0.1, possible) == 0.0
    assert percentile_rank(0.7, possible) == 1.0


def test_ties_share_mean_rank():
    # ranks 1, 2.5, 2.5, 4
    assert percentile_rank(2, np.array([1, 2, 2, 3])) == pytest.approx(0.5)


def test_nan_possible_values_are_ignored():
    assert percentile_rank(2, np.array([np.nan, 1, 2])) == 1.0


def test_single_possible_value_is_undefined():
    assert np.isnan(percentile_rank(4, np.array([4])))


def test_actual_must_be_possible():
    with pytest.raises(ValueNotInSet):
        percentile_rank(5, np.array([1, 2, 3]))
