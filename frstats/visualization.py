"""
Free-Recall Statistics - Visualization Functions
================================================
Line plots of subject x statistic matrices: lag-CRP (split at lag 0), SPC,
and the generic plotter both build on.  Every function draws onto an
existing or new axes and returns ``(fig, ax)``; nothing is shown or saved.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib as mpl

from .config import CRP_YLIM, DEFAULT_MAXLAG, SPC_YLIM
from .errors import ShapeMismatch
from .utils import nanmean_or_nan


# ─────────────────────────────────────────────────────────────────────
# Color palette helpers
# ─────────────────────────────────────────────────────────────────────

def make_line_colors(n_lines, cmap_name="viridis"):
    """
    Returns:
      colors: list of RGBA colors, one per line
      norm: Normalize object (for colorbar)
      cmap: Colormap object
    """
    cmap = plt.get_cmap(cmap_name)
    norm = mpl.colors.Normalize(vmin=0, vmax=max(n_lines - 1, 1))
    colors = [cmap(norm(i)) for i in range(n_lines)]
    return colors, norm, cmap


def _as_matrix_list(mats, name):
    if isinstance(mats, np.ndarray) or not isinstance(mats, (list, tuple)):
        mats = [mats]
    mats = [np.atleast_2d(np.asarray(m, dtype=float)) for m in mats]
    shape = mats[0].shape
    for m in mats[1:]:
        if m.shape != shape:
            raise ShapeMismatch(f"{name} matrices must all be the same size.")
    return mats


def subject_mean(mat, cols=None):
    """NaN-ignoring mean over subjects (rows), optionally for some columns."""
    mat = np.atleast_2d(np.asarray(mat, dtype=float))
    if cols is not None:
        mat = mat[:, cols]
    return np.array([nanmean_or_nan(mat[:, j]) for j in range(mat.shape[1])])


def plot_split_lags(ax, lags, y, color, marker="o", **kwargs):
    """Plot negative and positive lags as two separate segments."""
    lags = np.asarray(lags)
    y = np.asarray(y)
    neg = lags < 0
    pos = lags > 0
    ax.plot(lags[neg], y[neg], marker=marker, color=color, **kwargs)
    return ax.plot(lags[pos], y[pos], marker=marker, color=color, **kwargs)


# ─────────────────────────────────────────────────────────────────────
# Generic line plot
# ─────────────────────────────────────────────────────────────────────

def plot_general(x_vals, y_vals, ax=None, errorbars=None, colors=None,
                 cmap_name="viridis", markers=("o", "D", "x", "+"),
                 xlim=None, ylim=None, xticks=None, xlabel="", ylabel="",
                 title="", legend=None, split_at_zero=False):
    """
    One line per row of ``y_vals`` against ``x_vals``.

    Parameters
    ----------
    x_vals : (n_points,) array
    y_vals : (n_lines, n_points) array
    ax : matplotlib Axes, optional
        Drawn on if given; otherwise a new figure is made.
    errorbars : (n_lines, n_points) array, optional
        Symmetric error bar half-widths.
    colors : list, optional
        One color per line.  Default: evenly spaced from ``cmap_name``.
    markers : sequence of str
        Cycled over lines.
    split_at_zero : bool
        Draw ``x < 0`` and ``x > 0`` as separate segments, leaving ``x == 0``
        out (lag plots).

    Returns
    -------
    fig, ax
    """
    x_vals = np.asarray(x_vals, dtype=float)
    y_vals = np.atleast_2d(np.asarray(y_vals, dtype=float))
    if y_vals.shape[1] != x_vals.size:
        raise ShapeMismatch("y_vals must have one column per x value.")

    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 5))
    else:
        fig = ax.figure
    if colors is None:
        colors, _, _ = make_line_colors(y_vals.shape[0], cmap_name=cmap_name)

    handles = []
    for i, y in enumerate(y_vals):
        color = colors[i % len(colors)]
        marker = markers[i % len(markers)]
        if errorbars is not None:
            err = np.atleast_2d(errorbars)[i]
            keep = x_vals != 0 if split_at_zero else np.ones(x_vals.size, dtype=bool)
            h = ax.errorbar(x_vals[keep], y[keep], yerr=err[keep], marker=marker,
                            color=color, linestyle="none", capsize=3)
            if split_at_zero:
                plot_split_lags(ax, x_vals, y, color=color, marker=marker)
            else:
                ax.plot(x_vals, y, color=color)
        elif split_at_zero:
            (h,) = plot_split_lags(ax, x_vals, y, color=color, marker=marker)
        else:
            (h,) = ax.plot(x_vals, y, marker=marker, color=color)
        handles.append(h)

    if xlim is not None:
        ax.set_xlim(xlim)
    if ylim is not None:
        ax.set_ylim(ylim)
    if xticks is not None:
        ax.set_xticks(xticks)
    if xlabel:
        ax.set_xlabel(xlabel)
    if ylabel:
        ax.set_ylabel(ylabel)
    if title:
        ax.set_title(title)
    if legend:
        ax.legend(handles, legend)
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig, ax


# ─────────────────────────────────────────────────────────────────────
# lag-CRP, SPC
# ─────────────────────────────────────────────────────────────────────

def plot_crp(lag_crps, maxlag=DEFAULT_MAXLAG, zerocol=None, errorbars=None,
             ylim=CRP_YLIM, ax=None, **kwargs):
    """
    Plot subject-averaged lag-CRP curves for lags ``-maxlag .. maxlag``.

    Parameters
    ----------
    lag_crps : (n_subjects, n_lags) array or list of them
        One line per matrix, e.g. one per condition.
    maxlag : int
    zerocol : int, optional
        Column holding lag 0.  Default: the center column, which requires
        an odd number of columns.
    errorbars : list of (n_lags,) arrays, optional
        One per matrix, indexed like its columns.
    **kwargs
        Passed to ``plot_general``.

    Returns
    -------
    fig, ax
    """
    mats = _as_matrix_list(lag_crps, "lag_crps")
    n_cols = mats[0].shape[1]
    if zerocol is None:
        if n_cols % 2 == 0:
            raise ShapeMismatch("lag_crps has no center column; pass zerocol.")
        zerocol = (n_cols - 1) // 2

    cols = np.arange(zerocol - maxlag, zerocol + maxlag + 1)
    if cols[0] < 0 or cols[-1] >= n_cols:
        raise ShapeMismatch(f"maxlag {maxlag} reaches past the lags in lag_crps.")
    lags = cols - zerocol
    y_vals = np.vstack([subject_mean(m, cols) for m in mats])
    if errorbars is not None:
        errorbars = np.vstack([np.asarray(e, dtype=float)[cols] for e in errorbars])

    kwargs.setdefault("xlabel", "Lag")
    kwargs.setdefault("ylabel", "Conditional Response Probability")
    kwargs.setdefault("xlim", (-(maxlag + 1), maxlag + 1))
    fig, ax = plot_general(lags, y_vals, ax=ax, errorbars=errorbars, ylim=ylim,
                           split_at_zero=True, **kwargs)
    ax.axvline(0, color="gray", linestyle="--", alpha=0.5)
    return fig, ax


def plot_spc(spcs, ylim=SPC_YLIM, errorbars=None, ax=None, **kwargs):
    """Plot subject-averaged serial position curves, one per matrix."""
    mats = _as_matrix_list(spcs, "spcs")
    n_cols = mats[0].shape[1]
    positions = np.arange(1, n_cols + 1)
    y_vals = np.vstack([subject_mean(m) for m in mats])
    if errorbars is not None:
        errorbars = np.vstack([np.asarray(e, dtype=float) for e in errorbars])

    kwargs.setdefault("xlabel", "Serial Position")
    kwargs.setdefault("ylabel", "Recall Probability")
    kwargs.setdefault("xlim", (0, n_cols + 1))
    kwargs.setdefault("xticks", positions[::2])
    return plot_general(positions, y_vals, ax=ax, errorbars=errorbars, ylim=ylim,
                        **kwargs)
