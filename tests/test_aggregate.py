import numpy as np
import pytest
from numpy.testing import assert_array_equal

from frstats.aggregate import apply_by_index, collect, unique_index
from frstats.errors import EmptyIndex, InconsistentReducerOutput, ShapeMismatch


def test_rows_follow_sorted_subject_order():
    index = np.array([3, 1, 3, 2])
    values = np.array([[10], [20], [30], [40]])

    result = apply_by_index(lambda v: v.sum(), index, [values])

    assert_array_equal(result, [20, 40, 40])
    assert_array_equal(unique_index(index), [1, 2, 3])


def test_result_independent_of_row_order():
    rng = np.random.default_rng(1)
    index = np.repeat([5, 2, 9], 4)
    values = rng.random((12, 3))
    order = rng.permutation(12)

    first = apply_by_index(lambda v: v.mean(axis=0), index, [values])
    second = apply_by_index(lambda v: v.mean(axis=0), index[order], [values[order]])

    np.testing.assert_allclose(first, second)
    assert first.shape == (3, 3)


def test_extra_arguments_are_forwarded():
    index = np.array([1, 1, 2])
    values = np.array([1.0, 2.0, 3.0])
    result = apply_by_index(lambda v, scale: v.sum() * scale, index, [values], 10)
    assert_array_equal(result, [30, 30])


def test_partition_along_second_axis():
    index = np.array(["b", "a", "b"])
    values = np.array([[1, 2, 3],
                       [4, 5, 6]])
    result = apply_by_index(lambda v: v.sum(axis=1), index, [values], axis=1)
    assert_array_equal(result, [[2, 5], [4, 10]])


def test_contract_errors():
    with pytest.raises(EmptyIndex):
        apply_by_index(np.sum, np.array([]), [np.array([])])
    with pytest.raises(ShapeMismatch):
        apply_by_index(np.sum, np.array([1, 2]), [np.ones(3)])
    with pytest.raises(InconsistentReducerOutput):
        apply_by_index(lambda v: v, np.array([1, 1, 2]), [np.ones(3)])


def test_nan_subject_is_rejected():
    with pytest.raises(ShapeMismatch):
        apply_by_index(np.sum, np.array([np.nan, 1.0]), [np.ones(2)])


def test_collect_counts_targets_and_ignores_nan():
    assert_array_equal(collect([1, 2, 2, np.nan], [1, 2, 3]), [1, 2, 0])
