"""
Free-Recall Statistics - Recall Probability Metrics
===================================================
SPC, PFR, overall probability of recall, and stop probability by output
position.
"""

import logging

import numpy as np

from .aggregate import apply_by_index, collect, unique_index
from .errors import MissingArgument, ShapeMismatch
from .masks import (
    check_subjects, make_clean_recalls_mask, make_final_recall_mask,
    resolve_pres_masks, update_recalls_mask,
)
from .utils import safe_divide

logger = logging.getLogger(__name__)


def _resolve_spc_masks(recalls, list_length, rec_mask, pres_mask):
    if list_length is None:
        raise MissingArgument("You must pass a list length.")
    if rec_mask is None:
        rec_mask = make_clean_recalls_mask(recalls)
    rec_mask = np.asarray(rec_mask, dtype=bool)
    if rec_mask.shape != recalls.shape:
        raise ShapeMismatch("The recalls matrix and rec_mask must have the same shape.")
    pres_mask, _ = resolve_pres_masks(recalls.shape[0], list_length, pres_mask)
    # recalls of excluded presentations never count
    rec_mask = update_recalls_mask(recalls, rec_mask, pres_mask)
    return rec_mask, pres_mask


# ─────────────────────────────────────────────────────────────────────
# SPC, PFR, P(recall)
# ─────────────────────────────────────────────────────────────────────

def _spc_for_subj(recalls, rec_mask, pres_mask, list_length):
    rec_counts = collect(recalls[rec_mask], np.arange(1, list_length + 1))
    pres_counts = pres_mask.sum(axis=0)
    return safe_divide(rec_counts, pres_counts)


def spc(recalls, subjects, list_length, rec_mask=None, pres_mask=None):
    """
    Serial Position Curve.

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
        Serial positions of recalls.
    subjects : (n_trials,) array
    list_length : int
    rec_mask : (n_trials, n_recalls) bool array, optional
        Recalls to count.  Default: clean recalls mask.
    pres_mask : (n_trials, list_length) bool array, optional
        Presentations to count.  Default: all.

    Returns
    -------
    (n_subjects, list_length) array
        Probability of recalling each serial position; NaN where no
        presentation at that position was counted.
    """
    recalls, subjects = check_subjects(recalls, subjects)
    rec_mask, pres_mask = _resolve_spc_masks(recalls, list_length, rec_mask, pres_mask)
    return apply_by_index(_spc_for_subj, subjects,
                          [recalls, rec_mask, pres_mask], list_length)


def pfr(recalls, subjects, list_length, rec_mask=None, pres_mask=None):
    """Probability of First Recall: ``spc`` counting only output position 1."""
    recalls, subjects = check_subjects(recalls, subjects)
    rec_mask, pres_mask = _resolve_spc_masks(recalls, list_length, rec_mask, pres_mask)
    rec_mask[:, 1:] = False
    return apply_by_index(_spc_for_subj, subjects,
                          [recalls, rec_mask, pres_mask], list_length)


def _p_rec_for_subj(recalls, rec_mask, pres_mask, list_length):
    rec_count = collect(recalls[rec_mask], np.arange(1, list_length + 1)).sum()
    return safe_divide(rec_count, pres_mask.sum())


def p_rec(recalls, subjects, list_length, rec_mask=None, pres_mask=None):
    """Overall probability of recall: counted recalls over counted presentations.

    Returns an ``(n_subjects,)`` array.
    """
    recalls, subjects = check_subjects(recalls, subjects)
    rec_mask, pres_mask = _resolve_spc_masks(recalls, list_length, rec_mask, pres_mask)
    return apply_by_index(_p_rec_for_subj, subjects,
                          [recalls, rec_mask, pres_mask], list_length)


# ─────────────────────────────────────────────────────────────────────
# Stop probability
# ─────────────────────────────────────────────────────────────────────

def _max_irt(times):
    """Longest positive inter-response time in a row, NaN if there is none."""
    irts = np.diff(np.asarray(times, dtype=float))
    irts = irts[irts > 0]
    return irts.max() if irts.size else np.nan


def in_progress_trials(time_mat, final_mask, rec_length, exit_time_thresh):
    """
    Trials whose recall period ended while the subject was still recalling.

    A trial is flagged when the time left after its last recall is at most
    ``exit_time_thresh`` and at most the longest inter-response time of the
    trial.  A trial with no inter-response time (a single recall) is judged
    on the threshold alone.
    """
    n_trials = time_mat.shape[0]
    flagged = np.zeros(n_trials, dtype=bool)
    for i in range(n_trials):
        cols = np.flatnonzero(final_mask[i])
        if cols.size == 0:
            continue
        exit_time = rec_length - time_mat[i, cols[0]]
        if exit_time > exit_time_thresh:
            continue
        max_irt = _max_irt(time_mat[i, :cols[0] + 1])
        flagged[i] = np.isnan(max_irt) or exit_time <= max_irt
    return flagged


def _p_stop_for_subj(mask, final_mask):
    denom = mask.sum(axis=0).astype(float)
    numer = (mask & final_mask).sum(axis=0)
    p_stop = safe_divide(numer, denom)
    denom[denom == 0] = np.nan
    return np.stack([p_stop, denom])


def p_stop_op(recalls, subjects, time_mat=None, rec_length=None,
              exit_time_thresh=None, mask=None):
    """
    Probability of stopping recall at each output position.

    For output position ``k``: the number of counted final recalls at
    ``k`` over the number of counted recalls at ``k``.

    Parameters
    ----------
    recalls : (n_trials, n_recalls) array
    subjects : (n_trials,) array
    time_mat : (n_trials, n_recalls) array, optional
        Time of each recall from the start of the recall period.
    rec_length : float, optional
        Length of the recall period.
    exit_time_thresh : float, optional
        Trials that ended within this long of the deadline, and sooner
        than their longest inter-response time, are left out.  The three
        timing arguments must be given together or not at all.
    mask : (n_trials, n_recalls) bool array, optional
        Recalls to count.  Default: clean recalls mask.

    Returns
    -------
    p_stops : (n_subjects, n_recalls) array
    denoms : (n_subjects, n_recalls) array
        Number of counted recalls at each output position, NaN where zero.
    subject_ids : (n_subjects,) array
        Subject identifier of each row.
    """
    recalls, subjects = check_subjects(recalls, subjects)
    timing = (time_mat, rec_length, exit_time_thresh)
    if any(arg is None for arg in timing) and not all(arg is None for arg in timing):
        raise MissingArgument("You must pass a time_mat, a recall length and an "
                              "exit time threshold, or none of them.")
    if mask is None:
        logger.info("No mask input; using the clean recalls mask.")
        mask = make_clean_recalls_mask(recalls)
    mask = np.asarray(mask, dtype=bool)
    if mask.shape != recalls.shape:
        raise ShapeMismatch("The recalls matrix and mask must have the same shape.")

    final_mask = make_final_recall_mask(recalls)
    if time_mat is not None:
        time_mat = np.asarray(time_mat, dtype=float)
        if time_mat.shape != recalls.shape:
            raise ShapeMismatch("time_mat must have the same shape as the recalls matrix.")
        excluded = in_progress_trials(time_mat, final_mask, rec_length, exit_time_thresh)
        mask = mask.copy()
        mask[excluded] = False
        final_mask[excluded] = False

    packed = apply_by_index(_p_stop_for_subj, subjects, [mask, final_mask])
    return packed[:, 0], packed[:, 1], unique_index(subjects)
