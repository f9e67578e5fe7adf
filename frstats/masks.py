"""
Free-Recall Statistics - Mask Builders
======================================
Boolean inclusion matrices derived from raw recall sequences.

Recall codes are 1-based serial positions (or item numbers).  ``0`` and
``NaN`` mark an empty cell; negative or fractional codes, and codes beyond
the list length when it is known, are intrusions.  ``classify_recall`` is
the single place that interprets those sentinels.
"""

import enum

import numpy as np

from .errors import MissingArgument, ShapeMismatch


class RecallKind(enum.Enum):
    RECALLED = "recalled"
    INTRUSION = "intrusion"
    EMPTY = "empty"


def classify_recall(code, list_length=None):
    """Classify one recall code as a valid recall, an intrusion or empty."""
    code = float(code)
    if np.isnan(code) or code == 0:
        return RecallKind.EMPTY
    if code < 0:
        return RecallKind.INTRUSION
    if not code.is_integer():
        return RecallKind.INTRUSION
    if list_length is not None and code > list_length:
        return RecallKind.INTRUSION
    return RecallKind.RECALLED


def is_empty_cell(recalls):
    """Elementwise test for the "no recall here" sentinels (0 or NaN)."""
    recalls = np.asarray(recalls, dtype=float)
    return np.isnan(recalls) | (recalls == 0)


def _require_2d(arr, name):
    if arr is None:
        raise MissingArgument(f"You must pass a {name}.")
    arr = np.asarray(arr)
    if arr.ndim != 2:
        raise ShapeMismatch(f"{name} must be two-dimensional, got shape {arr.shape}.")
    return arr


def make_blank_mask(shape):
    """All-true mask of the given shape."""
    return np.ones(shape, dtype=bool)


def make_clean_recalls_mask(recalls):
    """
    Exclude repeats, intrusions and empty cells.

    True at ``(i, j)`` iff ``recalls[i, j]`` is a valid serial position and
    is its first occurrence in row ``i``.
    """
    recalls = _require_2d(recalls, "recalls matrix")
    mask = np.zeros(recalls.shape, dtype=bool)
    for i, row in enumerate(recalls):
        seen = set()
        for j, code in enumerate(row):
            if classify_recall(code) is not RecallKind.RECALLED:
                continue
            if code in seen:
                continue
            seen.add(code)
            mask[i, j] = True
    return mask


def make_final_recall_mask(recalls):
    """True only at the last non-empty cell of each row."""
    recalls = _require_2d(recalls, "recalls matrix")
    mask = np.zeros(recalls.shape, dtype=bool)
    filled = ~is_empty_cell(recalls)
    for i in range(recalls.shape[0]):
        cols = np.flatnonzero(filled[i])
        if cols.size:
            mask[i, cols[-1]] = True
    return mask


def update_recalls_mask(recalls, mask_rec, mask_pres):
    """
    Propagate presentation-level exclusions onto a recall mask.

    Every recall of a serial position whose entry in ``mask_pres`` is false
    is cleared in the returned copy of ``mask_rec``.
    """
    recalls = _require_2d(recalls, "recalls matrix")
    mask_rec = _require_2d(mask_rec, "recalls mask")
    mask_pres = _require_2d(mask_pres, "presentation mask")
    if mask_rec.shape != recalls.shape:
        raise ShapeMismatch("The recalls matrix and the recalls mask must have the same shape.")
    if mask_pres.shape[0] != recalls.shape[0]:
        raise ShapeMismatch("The recalls matrix and the presentation mask must "
                            "have the same number of rows.")

    out = mask_rec.astype(bool).copy()
    for i in range(out.shape[0]):
        excluded = np.flatnonzero(~mask_pres[i].astype(bool)) + 1
        if excluded.size:
            out[i, np.isin(recalls[i], excluded)] = False
    return out


def remove_intrusions(mask, rec_itemnos, pres_itemnos):
    """Clear the mask wherever the recalled item was not presented on that trial."""
    mask = _require_2d(mask, "recalls mask")
    rec_itemnos = _require_2d(rec_itemnos, "recalled item numbers matrix")
    pres_itemnos = _require_2d(pres_itemnos, "presented item numbers matrix")
    if mask.shape != rec_itemnos.shape:
        raise ShapeMismatch("The recalls mask and recalled item numbers must have the same shape.")
    if rec_itemnos.shape[0] != pres_itemnos.shape[0]:
        raise ShapeMismatch("Recalled and presented item numbers must have the same number of rows.")

    out = mask.astype(bool).copy()
    for i in range(out.shape[0]):
        out[i] &= np.isin(rec_itemnos[i], pres_itemnos[i])
    return out


# ─────────────────────────────────────────────────────────────────────
# Argument resolution shared by the metric functions
# ─────────────────────────────────────────────────────────────────────

def check_subjects(matrix, subjects, name="recalls matrix"):
    """Validate that ``matrix`` has one row per entry of ``subjects``."""
    matrix = _require_2d(matrix, name)
    if subjects is None:
        raise MissingArgument("You must pass a subjects vector.")
    subjects = np.asarray(subjects).ravel()
    if matrix.shape[0] != subjects.size:
        raise ShapeMismatch(f"{name} must have the same number of rows as subjects "
                            f"({matrix.shape[0]} != {subjects.size}).")
    return matrix, subjects


def resolve_recall_masks(recalls, from_mask_rec=None, to_mask_rec=None):
    """
    Default and validate a pair of recall masks.

    With no masks the clean recalls mask is used for both; with only
    ``from_mask_rec`` it is reused as ``to_mask_rec``.
    """
    if from_mask_rec is None:
        from_mask_rec = make_clean_recalls_mask(recalls)
    if to_mask_rec is None:
        to_mask_rec = from_mask_rec
    from_mask_rec = np.asarray(from_mask_rec, dtype=bool)
    to_mask_rec = np.asarray(to_mask_rec, dtype=bool)
    if from_mask_rec.shape != recalls.shape or to_mask_rec.shape != recalls.shape:
        raise ShapeMismatch("The recalls matrix and from and to masks must have the same shape.")
    return from_mask_rec, to_mask_rec


def resolve_pres_masks(n_trials, list_length, from_mask_pres=None, to_mask_pres=None):
    """
    Default and validate a pair of ``[trials x list_length]`` presentation masks.

    With no masks every item is included; with only ``from_mask_pres`` it is
    reused as ``to_mask_pres``.
    """
    shape = (n_trials, list_length)
    if from_mask_pres is None:
        from_mask_pres = make_blank_mask(shape)
    if to_mask_pres is None:
        to_mask_pres = from_mask_pres
    from_mask_pres = np.asarray(from_mask_pres, dtype=bool)
    to_mask_pres = np.asarray(to_mask_pres, dtype=bool)
    if from_mask_pres.shape != shape or to_mask_pres.shape != shape:
        raise ShapeMismatch(f"Presentation masks must have shape {shape} "
                            "(one row per trial, one column per serial position).")
    return from_mask_pres, to_mask_pres


def check_item_matrix(sim_mat, pres_itemnos, name="similarity matrix"):
    """Validate an item-by-item matrix covering every presented item number."""
    if sim_mat is None:
        raise MissingArgument(f"You must pass a {name}.")
    sim_mat = np.asarray(sim_mat, dtype=float)
    if sim_mat.ndim != 2 or sim_mat.shape[0] != sim_mat.shape[1]:
        raise ShapeMismatch(f"{name} must be a square matrix, got shape {sim_mat.shape}.")
    pres = np.asarray(pres_itemnos, dtype=float)
    if pres.size and np.nanmax(pres) > sim_mat.shape[0]:
        raise ShapeMismatch(f"{name} must have a row and column for every presented item number.")
    return sim_mat
