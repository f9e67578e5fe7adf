"""
Free-Recall Statistics - Clustering Factors
===========================================
How strongly recall order is organized by category, time, similarity or
source, relative to chance.

Category clustering (ARC, LBC) works on category labels of recalls.
Temporal, similarity and distance factors score each transition by the
percentile rank of its value among the transitions that were possible,
then average.
"""

import numpy as np

from .aggregate import apply_by_index
from .config import DEFAULT_STEP, WITHIN_CATEGORY
from .errors import MissingArgument, ShapeMismatch, UnequalCategorySizes
from .masks import (
    check_item_matrix, check_subjects, make_blank_mask, make_clean_recalls_mask,
    remove_intrusions, resolve_pres_masks, resolve_recall_masks,
    update_recalls_mask,
)
from .ranking import percentile_rank
from .transitions import (
    CategoryParams, SimilarityParams,
    cat_lag, cat_transitions, conditional_transitions, is_same_source,
    possible_sim_transitions, similarity, transitions,
)
from .utils import nanmean_or_nan


def _check_mask(mask, matrix, name):
    mask = np.asarray(mask, dtype=bool)
    if mask.shape != matrix.shape:
        raise ShapeMismatch(f"{name} must have the same shape as the data matrix.")
    return mask


# ─────────────────────────────────────────────────────────────────────
# Category clustering: ARC, LBC
# ─────────────────────────────────────────────────────────────────────

def arc_score(cat_trial):
    """
    Adjusted ratio of clustering for one sequence of recalled categories.

    ``R`` counts adjacent repeats, ``maxR = N - n_categories`` and
    ``E[R] = sum(n_c ** 2) / N - 1``.  NaN when the sequence is empty or
    ``maxR == E[R]``.  ``[0 1 1 1 2 1 0 0]`` has R = 3, maxR = 5 and
    E[R] = 2.25, giving 0.75 / 2.75.
    """
    cat_trial = np.asarray(cat_trial, dtype=float).ravel()
    n_recalled = cat_trial.size
    if n_recalled == 0:
        return np.nan

    cats, counts = np.unique(cat_trial, return_counts=True)
    repeats = np.count_nonzero(np.diff(cat_trial) == 0)
    max_repeats = n_recalled - cats.size
    expected = np.sum(counts.astype(float) ** 2) / n_recalled - 1
    if max_repeats == expected:
        return np.nan
    return (repeats - expected) / (max_repeats - expected)


def _arc_for_subj(cat_recalls, mask):
    scores = [arc_score(cat_recalls[i, mask[i]]) for i in range(cat_recalls.shape[0])]
    return nanmean_or_nan(scores)


def arc(cat_recalls, subjects, mask=None):
    """
    Adjusted ratio of clustering (ARC) per subject.

    Parameters
    ----------
    cat_recalls : (n_trials, n_recalls) array
        Category label of each recall.
    subjects : (n_trials,) array
    mask : (n_trials, n_recalls) bool array, optional
        Recalls to include.  Default: every non-NaN cell.

    Returns
    -------
    (n_subjects,) array
        Mean ARC over each subject's defined trials.
    """
    cat_recalls, subjects = check_subjects(cat_recalls, subjects, "category recalls matrix")
    cat_recalls = cat_recalls.astype(float)
    if mask is None:
        mask = ~np.isnan(cat_recalls)
    mask = _check_mask(mask, cat_recalls, "mask")

    return apply_by_index(_arc_for_subj, subjects, [cat_recalls, mask])


def _lbc_for_subj(study_cats, recall_cats, study_mask, recall_mask):
    scores = []
    for i in range(study_cats.shape[0]):
        trial_study = study_cats[i, study_mask[i]]
        trial_recall = recall_cats[i, recall_mask[i]]
        if trial_study.size == 0 or trial_recall.size == 0:
            continue

        list_length = trial_study.size
        _, counts = np.unique(trial_study, return_counts=True)
        per_cat = list_length / counts.size
        if not np.all(counts == per_cat):
            raise UnequalCategorySizes(
                "LBC requires an equal number of study items per category "
                f"(got counts {counts.tolist()}).")
        if list_length < 2:
            continue

        n_recalled = trial_recall.size
        expected = ((n_recalled - 1) * (per_cat - 1)) / (list_length - 1)
        observed = np.count_nonzero(np.diff(trial_recall) == 0)
        scores.append(observed - expected)

    return nanmean_or_nan(scores)


def lbc(study_cats, recall_cats, subjects, study_mask=None, recall_mask=None):
    """
    List-based clustering (LBC) per subject.

    Observed adjacent same-category recalls minus the number expected by
    chance, ``(r - 1)(m - 1) / (nl - 1)``, averaged over trials.

    Parameters
    ----------
    study_cats : (n_trials, list_length) array
        Category of each studied item.  Every category must have the same
        number of items.
    recall_cats : (n_trials, n_recalls) array
        Category of each recall.
    subjects : (n_trials,) array
    study_mask : bool array, optional
        Study items to include.  Default: all.
    recall_mask : bool array, optional
        Recalls to include.  Default: every non-NaN cell.

    Returns
    -------
    (n_subjects,) array
    """
    study_cats, subjects = check_subjects(study_cats, subjects, "study category matrix")
    recall_cats, _ = check_subjects(recall_cats, subjects, "recall category matrix")
    study_cats = study_cats.astype(float)
    recall_cats = recall_cats.astype(float)
    if study_mask is None:
        study_mask = make_blank_mask(study_cats.shape)
    if recall_mask is None:
        recall_mask = ~np.isnan(recall_cats)
    study_mask = _check_mask(study_mask, study_cats, "study_mask")
    recall_mask = _check_mask(recall_mask, recall_cats, "recall_mask")

    return apply_by_index(_lbc_for_subj, subjects,
                          [study_cats, recall_cats, study_mask, recall_mask])


# ─────────────────────────────────────────────────────────────────────
# Temporal factor
# ─────────────────────────────────────────────────────────────────────

def _temp_fact_for_subj(recalls, pres_catlabels, from_mask_rec, to_mask_rec,
                        from_mask_pres, to_mask_pres, cat_type, signed):
    all_facts = []
    for i in range(recalls.shape[0]):
        params = CategoryParams(pres_catlabels[i], cat_type,
                                from_mask_pres[i], to_mask_pres[i])
        act_trans, poss_trans = conditional_transitions(
            recalls[i], from_mask_rec[i], to_mask_rec[i],
            cat_lag, cat_transitions, DEFAULT_STEP, params)

        for actual, possible in zip(act_trans, poss_trans):
            if np.isnan(actual):
                continue
            # closer lags rank higher
            rank = percentile_rank(-abs(actual), -np.abs(possible))
            all_facts.append(np.sign(actual) * rank if signed else rank)

    return nanmean_or_nan(all_facts)


def general_temp_fact(recalls, pres_catlabels, subjects, cat_type,
                      from_mask_rec=None, to_mask_rec=None,
                      from_mask_pres=None, to_mask_pres=None, signed=False):
    """
    Temporal clustering factor within or between categories.

    Each transition is scored by the percentile rank of ``-|lag|`` among
    the possible ``-|lag|`` values, with lags measured in category-relative
    positions (see ``cat_lag``).  With ``signed``, forward transitions keep
    a positive score and backward ones a negative score.

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
    pres_catlabels : (n_trials, list_length) array
    subjects : (n_trials,) array
    cat_type : int
        ``WITHIN_CATEGORY`` or ``BETWEEN_CATEGORY``.
    from_mask_rec, to_mask_rec, from_mask_pres, to_mask_pres : optional
        As for ``crp``.  Presentation masks are also folded into the recall
        masks, so recalls of excluded positions never start or end a
        transition.
    signed : bool

    Returns
    -------
    (n_subjects,) array
        Mean factor over all of a subject's transitions.
    """
    if cat_type is None:
        raise MissingArgument("You must specify the type of category transitions.")
    if not isinstance(signed, (bool, np.bool_)):
        raise TypeError("signed must be a boolean scalar.")
    recalls, subjects = check_subjects(recalls, subjects)
    if pres_catlabels is None:
        raise MissingArgument("You must pass a pres_catlabels matrix.")
    pres_catlabels, _ = check_subjects(pres_catlabels, subjects, "pres_catlabels")
    from_mask_rec, to_mask_rec = resolve_recall_masks(recalls, from_mask_rec, to_mask_rec)
    from_mask_pres, to_mask_pres = resolve_pres_masks(
        recalls.shape[0], pres_catlabels.shape[1], from_mask_pres, to_mask_pres)

    to_mask_rec = update_recalls_mask(recalls, to_mask_rec, to_mask_pres)
    from_mask_rec = update_recalls_mask(recalls, from_mask_rec, from_mask_pres)

    return apply_by_index(_temp_fact_for_subj, subjects,
                          [recalls, pres_catlabels, from_mask_rec, to_mask_rec,
                           from_mask_pres, to_mask_pres],
                          cat_type, bool(signed))


def temp_fact(recalls, subjects, list_length, from_mask_rec=None, from_mask_pres=None):
    """
    Temporal clustering factor: unsigned, every item in one category.

    ``to_mask_rec`` and ``to_mask_pres`` equal the ``from`` masks.
    """
    if list_length is None:
        raise MissingArgument("You must pass a list length.")
    recalls, subjects = check_subjects(recalls, subjects)
    pres_catlabels = np.ones((recalls.shape[0], list_length))
    if from_mask_rec is None:
        from_mask_rec = make_clean_recalls_mask(recalls)
    if from_mask_pres is None:
        from_mask_pres = make_blank_mask((recalls.shape[0], list_length))

    return general_temp_fact(recalls, pres_catlabels, subjects, WITHIN_CATEGORY,
                             from_mask_rec, from_mask_rec,
                             from_mask_pres, from_mask_pres,
                             signed=False)


# ─────────────────────────────────────────────────────────────────────
# Similarity / distance factors
# ─────────────────────────────────────────────────────────────────────

def _item_fact_for_subj(recalls_itemnos, pres_itemnos, rec_mask, pres_mask, sim_mat):
    trial_facts = np.full(recalls_itemnos.shape[0], np.nan)
    for i in range(recalls_itemnos.shape[0]):
        params = SimilarityParams(sim_mat, pres_itemnos[i], pres_mask[i])
        act_sims, pos_sims = conditional_transitions(
            recalls_itemnos[i], rec_mask[i], rec_mask[i],
            similarity, possible_sim_transitions, DEFAULT_STEP, params)

        facts = [percentile_rank(actual, possible)
                 for actual, possible in zip(act_sims, pos_sims)
                 if not np.isnan(actual)]
        if facts:
            trial_facts[i] = np.mean(facts)
    return nanmean_or_nan(trial_facts)


def _item_fact(recalls_itemnos, pres_itemnos, subjects, item_mat, rec_mask,
               pres_mask, name):
    recalls_itemnos, subjects = check_subjects(recalls_itemnos, subjects,
                                               "recalled item numbers matrix")
    if pres_itemnos is None:
        raise MissingArgument("You must pass a presented item numbers matrix.")
    pres_itemnos, _ = check_subjects(pres_itemnos, subjects, "presented item numbers matrix")
    item_mat = check_item_matrix(item_mat, pres_itemnos, name)
    if rec_mask is None:
        rec_mask = make_clean_recalls_mask(recalls_itemnos)
        rec_mask = remove_intrusions(rec_mask, recalls_itemnos, pres_itemnos)
    if pres_mask is None:
        pres_mask = make_blank_mask(pres_itemnos.shape)
    rec_mask = _check_mask(rec_mask, recalls_itemnos, "rec_mask")
    pres_mask = _check_mask(pres_mask, pres_itemnos, "pres_mask")

    return apply_by_index(_item_fact_for_subj, subjects,
                          [recalls_itemnos, pres_itemnos, rec_mask, pres_mask],
                          item_mat)


def sim_fact(recalls_itemnos, pres_itemnos, sim_mat, subjects, rec_mask=None,
             pres_mask=None):
    """
    Similarity clustering factor.

    Each transition is scored by the percentile rank of the similarity of
    the two items among the similarities to every unmasked, not yet
    recalled presented item.  Trials average their transitions; subjects
    average their trials.

    Parameters
    ----------
    recalls_itemnos : (n_trials, n_recalls) array
    pres_itemnos : (n_trials, list_length) array
    sim_mat : (n_items, n_items) array
        Indexed by ``item - 1``.
    subjects : (n_trials,) array
    rec_mask : bool array, optional
        Default: clean recalls mask with intrusions removed.
    pres_mask : bool array, optional
        Presented items that may be transitioned to.  Default: all.

    Returns
    -------
    (n_subjects,) array
    """
    return _item_fact(recalls_itemnos, pres_itemnos, subjects, sim_mat,
                      rec_mask, pres_mask, "similarity matrix")


def dist_fact(recalls_itemnos, pres_itemnos, subjects, dist_mat, rec_mask=None,
              pres_mask=None):
    """Distance clustering factor; ``sim_fact`` with a distance matrix.

    Larger distances rank higher, so clustering by proximity gives scores
    below 0.5.
    """
    return _item_fact(recalls_itemnos, pres_itemnos, subjects, dist_mat,
                      rec_mask, pres_mask, "distance matrix")


# ─────────────────────────────────────────────────────────────────────
# Source factor
# ─────────────────────────────────────────────────────────────────────

def _source_fact_for_subj(from_mask, to_mask, source_matrix):
    trial_facts = [
        nanmean_or_nan(transitions(source_matrix[i], from_mask[i], to_mask[i],
                                   is_same_source))
        for i in range(source_matrix.shape[0])
    ]
    return nanmean_or_nan(trial_facts)


def source_fact(source_matrix, subjects, from_mask, to_mask=None):
    """
    Proportion of transitions between recalls that share a source.

    Parameters
    ----------
    source_matrix : (n_trials, n_recalls) array
        Source label of each recall.
    subjects : (n_trials,) array
    from_mask, to_mask : bool arrays
        Recalls that may start / end a transition.  ``to_mask`` defaults to
        ``from_mask``.

    Returns
    -------
    (n_subjects,) array
    """
    source_matrix, subjects = check_subjects(source_matrix, subjects, "source matrix")
    if from_mask is None:
        raise MissingArgument("You must pass a from_mask.")
    if to_mask is None:
        to_mask = from_mask
    from_mask = _check_mask(from_mask, source_matrix, "from_mask")
    to_mask = _check_mask(to_mask, source_matrix, "to_mask")

    return apply_by_index(_source_fact_for_subj, subjects,
                          [from_mask, to_mask, source_matrix])
