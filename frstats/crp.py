"""
Free-Recall Statistics - Conditional Response Probability
=========================================================
Lag-CRP and its relatives.  Each metric feeds a transition function and a
condition function to ``conditional_transitions``, pools actual and
possible transitions per subject, and divides counts:

    CRP(x) = #actual transitions of value x / #possible transitions of value x

* ``crp``           : serial-position lag.
* ``cat_crp``       : lag within / between categories.
* ``bin_crp``       : lag, histogrammed into bins.
* ``semantic_crp``  : semantic similarity bins.
* ``sem_crp``       : semantic similarity x |lag|, with adaptive bins and
                      robust slopes.
* ``item_crp``      : item-pair transition counts; ``dist_item_crp`` bins
                      them by pairwise similarity.
"""

import logging

import numpy as np
from scipy.spatial.distance import squareform
from scipy.stats import theilslopes

from .aggregate import apply_by_index, collect
from .config import (
    DEFAULT_DIST_PERCENTILES, DEFAULT_STEP, LAG_TYPES,
    SEM_CRP_NUMBINS, SEM_CRP_P_INCREASE,
)
from .errors import CounterOverflow, MissingArgument, ShapeMismatch
from .masks import (
    RecallKind, check_item_matrix, check_subjects, classify_recall, make_blank_mask,
    resolve_pres_masks, resolve_recall_masks,
)
from .transitions import (
    CategoryParams, LagParams, SimilarityParams,
    cat_lag, cat_transitions, cat_transitions_lag, concat_possibles,
    conditional_transitions, lag, possible_sem_transitions,
    possible_transitions, semantic_similarity,
)
from .utils import histc, histc_bins, make_dist_bins, nanmean_or_nan, safe_divide

logger = logging.getLogger(__name__)


def lag_values(list_length):
    """All lags for a list: ``-(list_length - 1) .. list_length - 1``."""
    return np.arange(-(list_length - 1), list_length)


def _require(value, name):
    if value is None:
        raise MissingArgument(f"You must pass {name}.")


# ─────────────────────────────────────────────────────────────────────
# Lag-CRP
# ─────────────────────────────────────────────────────────────────────

def _pooled_lag_transitions(recalls, from_mask_rec, to_mask_rec,
                            from_mask_pres, to_mask_pres):
    """Actual and possible lags pooled over one subject's trials."""
    actual = []
    possible = []
    for i in range(recalls.shape[0]):
        params = LagParams(from_mask_pres[i], to_mask_pres[i])
        trial_actuals, trial_possibles = conditional_transitions(
            recalls[i], from_mask_rec[i], to_mask_rec[i],
            lag, possible_transitions, DEFAULT_STEP, params)
        actual.append(trial_actuals)
        possible.append(concat_possibles(trial_possibles))
    return np.concatenate(actual), np.concatenate(possible)


def _crp_for_subj(recalls, from_mask_rec, to_mask_rec,
                  from_mask_pres, to_mask_pres, list_length):
    actual, possible = _pooled_lag_transitions(
        recalls, from_mask_rec, to_mask_rec, from_mask_pres, to_mask_pres)
    lags = lag_values(list_length)
    return safe_divide(collect(actual, lags), collect(possible, lags))


def crp(recalls, subjects, list_length, from_mask_rec=None, to_mask_rec=None,
        from_mask_pres=None, to_mask_pres=None):
    """
    Conditional response probability as a function of lag (lag-CRP).

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
        Serial positions of recalled items, one row per trial.
    subjects : (n_trials,) array
        Subject identifier for each row of ``recalls``.
    list_length : int
        Serial positions run from 1 to ``list_length``.
    from_mask_rec, to_mask_rec : (n_trials, n_recalls) bool arrays, optional
        False where transitions from / to that recall are excluded.
        Default: clean recalls mask; ``to_mask_rec`` defaults to
        ``from_mask_rec``.
    from_mask_pres, to_mask_pres : (n_trials, list_length) bool arrays, optional
        False at serial positions that may not start / end a transition.
        Default: all items; ``to_mask_pres`` defaults to ``from_mask_pres``.

    Returns
    -------
    lag_crps : (n_subjects, 2 * list_length - 1) array
        Column ``k`` holds lag ``k - (list_length - 1)``.  The center column
        (lag 0) is always NaN.
    """
    _require(list_length, "a list length")
    recalls, subjects = check_subjects(recalls, subjects)
    from_mask_rec, to_mask_rec = resolve_recall_masks(recalls, from_mask_rec, to_mask_rec)
    from_mask_pres, to_mask_pres = resolve_pres_masks(
        recalls.shape[0], list_length, from_mask_pres, to_mask_pres)

    return apply_by_index(_crp_for_subj, subjects,
                          [recalls, from_mask_rec, to_mask_rec,
                           from_mask_pres, to_mask_pres],
                          list_length)


def _bin_crp_for_subj(recalls, from_mask_rec, to_mask_rec,
                      from_mask_pres, to_mask_pres, bins):
    actual, possible = _pooled_lag_transitions(
        recalls, from_mask_rec, to_mask_rec, from_mask_pres, to_mask_pres)
    if possible.size == 0:
        return np.zeros(bins.size)
    return safe_divide(histc(actual, bins), histc(possible, bins))


def bin_crp(recalls, subjects, list_length, bins, from_mask_rec=None,
            to_mask_rec=None, from_mask_pres=None, to_mask_pres=None):
    """
    Lag-CRP with lags grouped into bins.

    ``bins`` are edges: lag ``x`` counts toward bin ``k`` when
    ``bins[k] <= x < bins[k + 1]``; the last bin counts ``x == bins[-1]``.
    A subject with no possible transitions gets zeros.  Other arguments as
    for ``crp``.

    Returns
    -------
    (n_subjects, len(bins)) array
    """
    _require(list_length, "a list length")
    _require(bins, "bin edges")
    recalls, subjects = check_subjects(recalls, subjects)
    from_mask_rec, to_mask_rec = resolve_recall_masks(recalls, from_mask_rec, to_mask_rec)
    from_mask_pres, to_mask_pres = resolve_pres_masks(
        recalls.shape[0], list_length, from_mask_pres, to_mask_pres)

    return apply_by_index(_bin_crp_for_subj, subjects,
                          [recalls, from_mask_rec, to_mask_rec,
                           from_mask_pres, to_mask_pres],
                          np.asarray(bins, dtype=float).ravel())


# ─────────────────────────────────────────────────────────────────────
# Category CRP
# ─────────────────────────────────────────────────────────────────────

_CAT_FUNCS = {
    "cat_pos": (cat_lag, cat_transitions),
    "serial_pos": (lag, cat_transitions_lag),
    # possible transitions ignore category; only matching actuals count
    "cat_nocond": (cat_lag, possible_transitions),
}


def _cat_crp_for_subj(recalls, pres_catlabels, from_mask_rec, to_mask_rec,
                      from_mask_pres, to_mask_pres, cat_type, lag_type):
    transit_fn, condition_fn = _CAT_FUNCS[lag_type]
    list_length = pres_catlabels.shape[1]

    actual = []
    possible = []
    for i in range(recalls.shape[0]):
        params = CategoryParams(pres_catlabels[i], cat_type,
                                from_mask_pres[i], to_mask_pres[i])
        trial_actuals, trial_possibles = conditional_transitions(
            recalls[i], from_mask_rec[i], to_mask_rec[i],
            transit_fn, condition_fn, DEFAULT_STEP, params)
        actual.append(trial_actuals)
        # possibles only count where an actual transition was made
        possible.append(concat_possibles(
            [p for p, a in zip(trial_possibles, trial_actuals) if not np.isnan(a)]))

    lags = lag_values(list_length)
    numer = collect(np.concatenate(actual), lags)
    denom = collect(np.concatenate(possible), lags)
    return np.stack([safe_divide(numer, denom), numer, denom])


def cat_crp(recalls, pres_catlabels, subjects, cat_type, from_mask_rec=None,
            to_mask_rec=None, from_mask_pres=None, to_mask_pres=None,
            lag_type="cat_pos"):
    """
    Lag-CRP conditional on category structure.

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
        Serial positions of recalled items.
    pres_catlabels : (n_trials, list_length) array
        Category label of the item at each serial position.
    subjects : (n_trials,) array
    cat_type : int
        ``WITHIN_CATEGORY`` (1) or ``BETWEEN_CATEGORY`` (2).
    lag_type : {"cat_pos", "serial_pos", "cat_nocond"}
        ``cat_pos`` measures lag counting only matching positions;
        ``serial_pos`` uses raw serial-position lags to matching positions;
        ``cat_nocond`` counts every unrecalled position as possible but
        only matching actual transitions.

    Returns
    -------
    lag_crps, numer, denom : (n_subjects, 2 * list_length - 1) arrays
    """
    if lag_type not in LAG_TYPES:
        raise ValueError(f"Unknown lag_type {lag_type!r}; expected one of {LAG_TYPES}.")
    _require(cat_type, "a category transition type")
    recalls, subjects = check_subjects(recalls, subjects)
    if pres_catlabels is None:
        raise MissingArgument("You must pass a pres_catlabels matrix.")
    pres_catlabels, _ = check_subjects(pres_catlabels, subjects, "pres_catlabels")
    list_length = pres_catlabels.shape[1]
    from_mask_rec, to_mask_rec = resolve_recall_masks(recalls, from_mask_rec, to_mask_rec)
    from_mask_pres, to_mask_pres = resolve_pres_masks(
        recalls.shape[0], list_length, from_mask_pres, to_mask_pres)

    packed = apply_by_index(_cat_crp_for_subj, subjects,
                            [recalls, pres_catlabels, from_mask_rec, to_mask_rec,
                             from_mask_pres, to_mask_pres],
                            cat_type, lag_type)
    return packed[:, 0], packed[:, 1], packed[:, 2]


# ─────────────────────────────────────────────────────────────────────
# Semantic CRP (fixed bins)
# ─────────────────────────────────────────────────────────────────────

def _semantic_crp_for_subj(recalls_itemnos, pres_itemnos, from_mask, to_mask,
                           pres_mask, bins, sem_sims):
    actual_counts = np.zeros(bins.size)
    possible_counts = np.zeros(bins.size)
    for i in range(recalls_itemnos.shape[0]):
        params = SimilarityParams(sem_sims, pres_itemnos[i], pres_mask[i])
        trial_actuals, trial_possibles = conditional_transitions(
            recalls_itemnos[i], from_mask[i], to_mask[i],
            semantic_similarity, possible_sem_transitions, DEFAULT_STEP, params)

        # each transition adds at most one possible count per bin
        actual_counts += histc(trial_actuals, bins)
        for poss in trial_possibles:
            if poss.size:
                possible_counts += histc(poss, bins) > 0

    return safe_divide(actual_counts, possible_counts)


def semantic_crp(recalls_itemnos, pres_itemnos, subjects, sem_sims, bins,
                 from_mask=None, to_mask=None, pres_mask=None):
    """
    Conditional response probability by semantic relatedness.

    Parameters
    ----------
    recalls_itemnos : (n_trials, n_recalls) array
        Item numbers of recalled items.
    pres_itemnos : (n_trials, list_length) array
        Item numbers of presented items.
    subjects : (n_trials,) array
    sem_sims : (n_items, n_items) array
        ``sem_sims[a - 1, b - 1]`` is the similarity of items ``a`` and ``b``.
    bins : array
        Bin edges (``bins[k] <= s < bins[k + 1]``).
    from_mask, to_mask : optional
        Recall masks, defaulting as in ``crp``.
    pres_mask : (n_trials, list_length) bool array, optional
        Presented items that may be transitioned to.  Default: all.

    Returns
    -------
    (n_subjects, len(bins)) array
    """
    for value, name in ((pres_itemnos, "a presentations-by-item-numbers matrix"),
                        (sem_sims, "a semantic-similarities matrix"),
                        (bins, "bins")):
        _require(value, name)
    recalls_itemnos, subjects = check_subjects(recalls_itemnos, subjects,
                                               "recalls_itemnos")
    pres_itemnos, _ = check_subjects(pres_itemnos, subjects, "pres_itemnos")
    from_mask, to_mask = resolve_recall_masks(recalls_itemnos, from_mask, to_mask)
    if pres_mask is None:
        pres_mask = make_blank_mask(pres_itemnos.shape)
    pres_mask = np.asarray(pres_mask, dtype=bool)
    if pres_mask.shape != pres_itemnos.shape:
        raise ShapeMismatch("pres_mask must have the same shape as pres_itemnos.")
    sem_sims = check_item_matrix(sem_sims, pres_itemnos, "sem_sims")

    return apply_by_index(_semantic_crp_for_subj, subjects,
                          [recalls_itemnos, pres_itemnos, from_mask, to_mask, pres_mask],
                          np.asarray(bins, dtype=float).ravel(), sem_sims)


# ─────────────────────────────────────────────────────────────────────
# Semantic CRP by |lag| with adaptive bins
# ─────────────────────────────────────────────────────────────────────

def _sem_bin_widths(lo, hi, numbins, p_increase, collapse_neg):
    if not collapse_neg:
        binsize = (hi - lo) / numbins
        d = ((p_increase * binsize) - binsize) / (p_increase + 1)
        m = (2 * d) / (numbins - 1)
        return m * np.arange(1, numbins + 1) + binsize - d - m

    binsize = hi / (numbins - 1)
    d = ((p_increase * binsize) - binsize) / (p_increase + 1)
    m = (2 * d) / (numbins - 2)
    widths = np.empty(numbins)
    widths[0] = abs(lo)
    widths[1:] = m * np.arange(1, numbins) + binsize - d - m
    return widths


def sem_crp_bins(all_vals, numbins, p_increase, lim_vec=None, collapse_neg=False):
    """
    Upper limits and upper indices of the semantic-CRP bins.

    Bin widths grow linearly so the last bin is ``p_increase`` times wider
    than the first.  With ``collapse_neg`` all negative values share the
    first bin.  ``lim_vec`` overrides the computed upper limits.  Bins that
    contain no value are dropped.

    Returns
    -------
    lim_vec : array
        Upper similarity limit of each kept bin.
    bin_vec : int array
        Index into ``all_vals`` of the last value in each kept bin.
    """
    all_vals = np.asarray(all_vals, dtype=float)
    if all_vals.size == 0:
        raise ShapeMismatch("No similarity values below 1 to bin; the matrix "
                            "holds only self-similarities.")
    lo, hi = all_vals.min(), all_vals.max()

    if lim_vec is not None:
        lims = np.asarray(lim_vec, dtype=float).ravel()
        numbins = lims.size
    else:
        widths = _sem_bin_widths(lo, hi, numbins, p_increase, collapse_neg)
        lims = np.cumsum(np.concatenate([[lo], widths]))[1:]

    bin_vec = np.full(numbins, np.nan)
    start = lo
    for i in range(numbins):
        lower = all_vals >= start if i == 0 else all_vals > start
        hits = np.flatnonzero(lower & (all_vals <= lims[i]))
        if hits.size:
            bin_vec[i] = hits[-1]
        start = lims[i]

    keep = ~np.isnan(bin_vec)
    if not keep.all():
        logger.warning("sem_crp: %d of %d bins had no values; using %d bins.",
                       int((~keep).sum()), numbins, int(keep.sum()))
    return lims[keep], bin_vec[keep].astype(int)


def _sem_crp_counts(recalls, rec_itemnos, pres_itemnos, sem, all_vals, list_length):
    """Numerator and denominator counts indexed by (similarity value, |lag| - 1)."""
    numerator = np.zeros((all_vals.size, list_length - 1))
    denominator = np.zeros((all_vals.size, list_length - 1))
    n_items = sem.shape[0]

    for i in range(recalls.shape[0]):
        for j in range(1, recalls.shape[1]):
            prev_sp, cur_sp = recalls[i, j - 1], recalls[i, j]
            prev_item, cur_item = rec_itemnos[i, j - 1], rec_itemnos[i, j]
            if not (prev_sp > 0 and cur_sp > 0):
                continue
            if (classify_recall(prev_item, n_items) is not RecallKind.RECALLED
                    or classify_recall(cur_item, n_items) is not RecallKind.RECALLED):
                continue
            if prev_item == cur_item or np.isnan(sem[int(cur_item) - 1, int(prev_item) - 1]):
                continue

            this_lag = int(abs(prev_sp - cur_sp))
            if not 1 <= this_lag <= list_length - 1:
                continue
            this_sem = sem[int(prev_item) - 1, int(cur_item) - 1]
            hit = np.flatnonzero(all_vals == this_sem)
            if hit.size:
                numerator[hit[0], this_lag - 1] += 1

            # every presented item not yet recalled
            pres_row = pres_itemnos[i]
            not_recalled = ~np.isin(pres_row, rec_itemnos[i, :j])
            for pos0 in np.flatnonzero(not_recalled):
                if classify_recall(pres_row[pos0], n_items) is not RecallKind.RECALLED:
                    continue
                val = sem[int(prev_item) - 1, int(pres_row[pos0]) - 1]
                hit = np.flatnonzero(all_vals == val)
                pos_lag = int(abs(prev_sp - (pos0 + 1)))
                if hit.size and 1 <= pos_lag <= list_length - 1:
                    denominator[hit[0], pos_lag - 1] += 1

    return numerator, denominator


def _robust_slope(x, y):
    valid = ~np.isnan(y)
    if np.count_nonzero(valid) <= 2:
        return np.nan
    return float(theilslopes(y[valid], x[valid])[0])


def _sem_crp_for_subj(recalls, rec_itemnos, pres_itemnos, sem, all_vals,
                      bin_vec, bin_mean):
    list_length = pres_itemnos.shape[1]
    numerator, denominator = _sem_crp_counts(recalls, rec_itemnos, pres_itemnos,
                                             sem, all_vals, list_length)
    logger.debug("sem_crp: %d trials, %d transitions counted",
                 recalls.shape[0], int(numerator.sum()))
    denominator[denominator == 0] = np.nan
    freq = numerator / denominator

    numbins = bin_vec.size
    binned = np.full((numbins, list_length - 1), np.nan)
    for lag_ind in range(list_length - 1):
        start = 0
        for b, stop in enumerate(bin_vec):
            den = denominator[start:stop + 1, lag_ind]
            den_sum = np.nansum(den)
            weights = den / (den_sum if den_sum != 0 else np.nan)
            if np.any(weights > 0):
                binned[b, lag_ind] = np.nansum(weights * freq[start:stop + 1, lag_ind])
            start = stop + 1

    slope_subj = np.array([_robust_slope(bin_mean, binned[:, k])
                           for k in range(list_length - 1)])
    lag_mean = np.array([nanmean_or_nan(row) for row in binned])
    slope = _robust_slope(bin_mean, lag_mean)

    return np.vstack([binned, slope_subj, np.full(list_length - 1, slope)])


def sem_crp(recalls, rec_itemnos, pres_itemnos, subjects, sem,
            numbins=SEM_CRP_NUMBINS, p_increase=SEM_CRP_P_INCREASE,
            lim_vec=None, collapse_neg=False):
    """
    Semantic CRP as a function of similarity bin and absolute lag.

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
        Serial positions of recalls.
    rec_itemnos : (n_trials, n_recalls) array
        Item numbers of recalls.
    pres_itemnos : (n_trials, list_length) array
        Item numbers of presented items.
    subjects : (n_trials,) array
    sem : (n_items, n_items) array
        Semantic similarity; values >= 1 (self-similarity) are not binned.
    numbins : int
        Requested number of bins; empty bins are dropped.
    p_increase : float
        How many times wider the last bin is than the first.
    lim_vec : array, optional
        Explicit upper bin limits.
    collapse_neg : bool
        Put all negative similarities in the first bin.

    Returns
    -------
    bin_mean : (numbins,) array
        Mean similarity value of each bin.
    sem_freq_binned : (n_subjects, numbins, list_length - 1) array
        CRP for each bin and |lag|.
    slope_subj : (n_subjects, list_length - 1) array
        Robust slope of CRP over ``bin_mean`` for each |lag|.
    slope : (n_subjects,) array
        Robust slope of the lag-averaged CRP over ``bin_mean``.
    """
    _require(sem, "a semantic similarity matrix")
    recalls, subjects = check_subjects(recalls, subjects)
    rec_itemnos, _ = check_subjects(rec_itemnos, subjects, "rec_itemnos")
    pres_itemnos, _ = check_subjects(pres_itemnos, subjects, "pres_itemnos")
    if rec_itemnos.shape != recalls.shape:
        raise ShapeMismatch("rec_itemnos must have the same shape as recalls.")
    sem = check_item_matrix(sem, pres_itemnos, "sem")

    with np.errstate(invalid="ignore"):
        all_vals = np.unique(sem[sem < 1])
    _, bin_vec = sem_crp_bins(all_vals, numbins, p_increase, lim_vec, collapse_neg)

    # each bin's mean starts at the previous bin's last value
    starts = np.concatenate([[0], bin_vec[:-1]])
    bin_mean = np.array([all_vals[a:b + 1].mean() for a, b in zip(starts, bin_vec)])

    packed = apply_by_index(_sem_crp_for_subj, subjects,
                            [recalls, rec_itemnos, pres_itemnos],
                            sem, all_vals, bin_vec, bin_mean)
    n_bins = bin_vec.size
    return bin_mean, packed[:, :n_bins], packed[:, n_bins], packed[:, n_bins + 1, 0]


# ─────────────────────────────────────────────────────────────────────
# Item-pair CRP
# ─────────────────────────────────────────────────────────────────────

def _item_crp_for_subj(recalls, pres_itemnos, from_mask_pres, to_mask_pres,
                       from_mask_rec, to_mask_rec, n_wordpool, counter_dtype):
    actual = np.zeros((n_wordpool, n_wordpool), dtype=np.int64)
    possible = np.zeros((n_wordpool, n_wordpool), dtype=np.int64)
    list_length = pres_itemnos.shape[1]

    for i in range(recalls.shape[0]):
        params = LagParams(from_mask_pres[i], to_mask_pres[i])
        priors = []
        for j in range(recalls.shape[1] - 1):
            from_pt, to_pt = recalls[i, j], recalls[i, j + 1]
            included = (from_mask_rec[i, j] and to_mask_rec[i, j + 1]
                        and classify_recall(from_pt, list_length) is RecallKind.RECALLED
                        and classify_recall(to_pt, list_length) is RecallKind.RECALLED)
            if not included:
                priors.append(from_pt)
                continue

            poss_lag = possible_transitions(from_pt, np.asarray(priors), None, params)
            priors.append(from_pt)
            if poss_lag.size == 0:
                continue

            from_item = int(pres_itemnos[i, int(from_pt) - 1])
            poss_items = pres_itemnos[i, (from_pt + poss_lag).astype(int) - 1].astype(int)
            possible[from_item - 1, poss_items - 1] += 1
            if np.any(poss_lag == to_pt - from_pt):
                to_item = int(pres_itemnos[i, int(to_pt) - 1])
                actual[from_item - 1, to_item - 1] += 1

    if counter_dtype is not None:
        limit = np.iinfo(counter_dtype).max
        if actual.max(initial=0) > limit or possible.max(initial=0) > limit:
            raise CounterOverflow(f"Transition counts exceed the capacity of {np.dtype(counter_dtype)}.")
        actual = actual.astype(counter_dtype)
        possible = possible.astype(counter_dtype)

    return np.stack([actual, possible], axis=-1)


def item_crp(recalls, pres_itemnos, subjects, n_wordpool, from_mask_pres=None,
             to_mask_pres=None, from_mask_rec=None, to_mask_rec=None,
             counter_dtype=None):
    """
    Actual and possible transition counts for every pair of pool items.

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
        Serial positions of recalls.
    pres_itemnos : (n_trials, list_length) array
        Item numbers (1 .. n_wordpool) of presented items.
    subjects : (n_trials,) array
    n_wordpool : int
        Number of items in the pool.
    counter_dtype : integer dtype, optional
        Fixed-width type for the returned counts; raises ``CounterOverflow``
        if any count does not fit.  Default: unbounded int64 counts.

    Returns
    -------
    actual, possible : (n_subjects, n_wordpool, n_wordpool) arrays
        ``actual[s, a - 1, b - 1]`` counts transitions from item ``a`` to
        item ``b``; ``possible`` counts how often that transition was
        available.
    """
    _require(n_wordpool, "the word pool size")
    recalls, subjects = check_subjects(recalls, subjects)
    pres_itemnos, _ = check_subjects(pres_itemnos, subjects, "pres_itemnos")
    from_mask_rec, to_mask_rec = resolve_recall_masks(recalls, from_mask_rec, to_mask_rec)
    from_mask_pres, to_mask_pres = resolve_pres_masks(
        recalls.shape[0], pres_itemnos.shape[1], from_mask_pres, to_mask_pres)

    # slots without a valid item number hold no pool item
    presented = np.array([[classify_recall(code) is RecallKind.RECALLED for code in row]
                          for row in pres_itemnos], dtype=bool).reshape(pres_itemnos.shape)
    if np.any(pres_itemnos[presented].astype(float) > n_wordpool):
        raise ShapeMismatch("Every presented item number must be at most n_wordpool.")
    from_mask_pres = from_mask_pres & presented
    to_mask_pres = to_mask_pres & presented

    crps = apply_by_index(_item_crp_for_subj, subjects,
                          [recalls, pres_itemnos, from_mask_pres, to_mask_pres,
                           from_mask_rec, to_mask_rec],
                          int(n_wordpool), counter_dtype)
    return crps[..., 0], crps[..., 1]


def dist_item_crp(actual, possible, pair_sim, edges=None,
                  percentiles=DEFAULT_DIST_PERCENTILES, mask=None):
    """
    CRP for bins of pairwise similarity, from item-pair transition counts.

    Parameters
    ----------
    actual, possible : (n_groups, n_items, n_items) arrays
        Counts as returned by ``item_crp``.
    pair_sim : (n_items, n_items) symmetric array
        Similarity of each item pair.
    edges : array, optional
        Bin edges; pair ``x`` is in bin ``i`` if ``edges[i] <= x < edges[i + 1]``.
    percentiles : array
        Percentiles of the pairwise similarities used as edges when
        ``edges`` is not given.
    mask : (n_items, n_items) bool array, optional
        Pairs to include.

    Returns
    -------
    crps, act_bin, poss_bin : (n_groups, len(edges)) arrays
    """
    actual = np.asarray(actual, dtype=float)
    possible = np.asarray(possible, dtype=float)
    if actual.ndim == 2:
        actual = actual[np.newaxis]
        possible = possible[np.newaxis]
    pair_sim = np.asarray(pair_sim, dtype=float)
    if actual.shape != possible.shape or actual.shape[1:] != pair_sim.shape:
        raise ShapeMismatch("actual, possible and pair_sim must describe the same item pool.")
    if mask is None:
        mask = np.ones(pair_sim.shape, dtype=bool)

    if edges is None:
        edges = make_dist_bins(pair_sim, percentiles)
    edges = np.asarray(edges, dtype=float).ravel()

    bin_mat = squareform(histc_bins(squareform(pair_sim, checks=False), edges))

    n_group = actual.shape[0]
    act_bin = np.full((n_group, edges.size), np.nan)
    poss_bin = np.full((n_group, edges.size), np.nan)
    for g in range(n_group):
        for j in range(edges.size):
            sel = (bin_mat == j + 1) & mask
            act_bin[g, j] = np.nansum(actual[g][sel])
            poss_bin[g, j] = np.nansum(possible[g][sel])

    return safe_divide(act_bin, poss_bin), act_bin, poss_bin
