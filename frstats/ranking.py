"""
Free-Recall Statistics - Percentile-Rank Scorer
===============================================
Rank of an observed transition value among the values that were possible.
"""

import numpy as np
from scipy.stats import rankdata

from .errors import ValueNotInSet


def percentile_rank(actual, possible):
    """
    Percentile rank of ``actual`` among ``possible``.

    Ties share their mean rank.  With ``n`` defined (non-NaN) possible
    values the result is ``(rank - 1) / (n - 1)``: 0 for the smallest
    value, 1 for the largest.  NaN when only one value was possible.

    Parameters
    ----------
    actual : float
        The actual value; must be one of ``possible``.
    possible : array
        All possible values, including ``actual``.

    Returns
    -------
    float
    """
    possible = np.asarray(possible, dtype=float).ravel()
    possible = possible[~np.isnan(possible)]
    hits = possible == actual
    if not np.any(hits):
        raise ValueNotInSet(f"The actual value {actual!r} must be one of the possible values.")

    n_ranked = possible.size - 1
    if n_ranked == 0:
        return np.nan
    ranks = rankdata(possible, method="average")
    return float((ranks[hits][0] - 1) / n_ranked)
