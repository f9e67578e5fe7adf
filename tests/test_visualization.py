import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from frstats.crp import crp
from frstats.errors import ShapeMismatch
from frstats.metrics import spc
from frstats.visualization import (
    make_line_colors, plot_crp, plot_general, plot_spc, subject_mean,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def _lag_crps(seed=0, list_length=8):
    rng = np.random.default_rng(seed)
    recalls = np.vstack([rng.permutation(list_length)[:5] + 1 for _ in range(20)])
    return crp(recalls, np.repeat([1, 2], 10), list_length)


def test_plot_crp_splits_at_lag_zero():
    fig, ax = plot_crp(_lag_crps(), maxlag=3)

    # two segments for the curve plus the lag-0 guide
    assert len(ax.lines) == 3
    negative = ax.lines[0].get_xdata()
    positive = ax.lines[1].get_xdata()
    np.testing.assert_array_equal(negative, [-3, -2, -1])
    np.testing.assert_array_equal(positive, [1, 2, 3])
    assert ax.get_xlim() == (-4, 4)
    assert ax.get_xlabel() == "Lag"


def test_plot_crp_several_conditions_with_errorbars():
    mats = [_lag_crps(1), _lag_crps(2)]
    errs = [np.full(15, 0.05), np.full(15, 0.05)]
    fig, ax = plot_crp(mats, errorbars=errs, legend=["a", "b"])
    assert ax.get_legend() is not None


def test_plot_crp_needs_center_column():
    with pytest.raises(ShapeMismatch):
        plot_crp(np.ones((2, 4)))
    with pytest.raises(ShapeMismatch):
        plot_crp(np.ones((2, 5)), maxlag=3)
    with pytest.raises(ShapeMismatch):
        plot_crp([np.ones((2, 5)), np.ones((2, 7))])


def test_plot_spc_draws_on_given_axes():
    recalls = np.array([[1, 3, 0], [2, 3, 1]])
    curves = spc(recalls, [1, 2], 3)
    fig, ax = plt.subplots()

    fig_out, ax_out = plot_spc(curves, ax=ax)

    assert ax_out is ax and fig_out is fig
    np.testing.assert_allclose(ax.lines[0].get_ydata(), [1.0, 0.5, 1.0])
    assert ax.get_xlabel() == "Serial Position"


def test_plot_general_shape_check():
    with pytest.raises(ShapeMismatch):
        plot_general([1, 2, 3], np.ones((2, 4)))


def test_subject_mean_ignores_nan():
    mat = np.array([[1.0, np.nan], [3.0, np.nan]])
    np.testing.assert_array_equal(subject_mean(mat), [2.0, np.nan])


def test_make_line_colors():
    colors, norm, cmap = make_line_colors(3)
    assert len(colors) == 3
    assert colors[0] != colors[-1]
