"""
Free-Recall Statistics - Shared Utilities
=========================================
Histogram counting with closed-last-edge semantics, NaN-tolerant reducers,
and builders for similarity/distance bin edges.
"""

import numpy as np
from scipy.spatial.distance import squareform


def nanmean_or_nan(values):
    """NaN-ignoring mean that returns NaN (without a warning) when nothing
    is defined."""
    arr = np.asarray(values, dtype=float).ravel()
    arr = arr[~np.isnan(arr)]
    return float(np.mean(arr)) if arr.size else np.nan


def safe_divide(num, den):
    """Elementwise ``num / den`` with NaN wherever ``den == 0``."""
    num = np.asarray(num, dtype=float)
    den = np.asarray(den, dtype=float)
    return np.divide(num, den, out=np.full(np.broadcast(num, den).shape, np.nan),
                     where=den != 0)


# ─────────────────────────────────────────────────────────────────────
# Histogram counting
# ─────────────────────────────────────────────────────────────────────

def histc_bins(values, edges):
    """
    Bin index for each value.

    Value ``x`` falls in bin ``k`` (1-based) when
    ``edges[k-1] <= x < edges[k]``; the last bin holds only
    ``x == edges[-1]``.  Values outside the edges, and NaNs, get bin 0.
    """
    values = np.asarray(values, dtype=float)
    edges = np.asarray(edges, dtype=float).ravel()
    n = edges.size
    bins = np.searchsorted(edges, values, side="right")
    at_top = bins == n
    bins = np.where(at_top & (values != edges[-1]), 0, bins)
    bins = np.where(np.isnan(values), 0, bins)
    return bins.astype(int)


def histc(values, edges):
    """
    Count values per bin, one count per edge.

    ``counts[k]`` is the number of values with ``edges[k] <= x < edges[k+1]``;
    ``counts[-1]`` is the number of values equal to ``edges[-1]``.
    """
    edges = np.asarray(edges, dtype=float).ravel()
    bins = histc_bins(np.asarray(values, dtype=float).ravel(), edges)
    return np.bincount(bins, minlength=edges.size + 1)[1:].astype(float)


# ─────────────────────────────────────────────────────────────────────
# Distance bins
# ─────────────────────────────────────────────────────────────────────

def pairwise_values(pair_sim):
    """Upper-triangle values of a square pairwise matrix, NaNs dropped."""
    vals = squareform(np.asarray(pair_sim, dtype=float), checks=False)
    return vals[~np.isnan(vals)]


def make_dist_bins(pair_sim, percentiles):
    """Bin edges at the given percentiles of the pairwise values."""
    return np.percentile(pairwise_values(pair_sim), percentiles)


def make_dist_bins_adapt(s, start_edges, min_n):
    """
    Merge adjacent starting bins until each holds more than ``min_n`` values.

    Parameters
    ----------
    s : array
        Similarity values.
    start_edges : array
        Initial edges; bins are grown from these.
    min_n : int
        Minimum count for each bin.

    Returns
    -------
    edges : array
        Edges of all bins.
    centers : array
        Mean of the values in each bin (``edges[i] <= x < edges[i+1]``).
    """
    s = np.asarray(s, dtype=float).ravel()
    start_edges = np.asarray(start_edges, dtype=float).ravel()
    n_start = start_edges.size

    edges = [start_edges[0]]
    start_ind = 0
    finish_ind = 1
    final = False
    while start_ind < n_start - 2 and not final:
        if finish_ind > n_start - 1:
            finish_ind = n_start - 1
            final = True

        count = histc(s, [start_edges[start_ind], start_edges[finish_ind]])
        if count[0] > min_n:
            edges.append(start_edges[finish_ind])
            start_ind = finish_ind
            finish_ind = start_ind + 1
        else:
            finish_ind += 1

    edges = np.asarray(edges)
    centers = np.array([
        nanmean_or_nan(s[(s >= lo) & (s < hi)])
        for lo, hi in zip(edges[:-1], edges[1:])
    ])
    return edges, centers
