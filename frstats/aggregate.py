"""
Free-Recall Statistics - Cross-Subject Aggregation
==================================================
``apply_by_index`` partitions trial-level arrays by subject and stacks one
reducer result per subject, in ascending order of subject identifier.
"""

import numpy as np

from .errors import EmptyIndex, InconsistentReducerOutput, ShapeMismatch


def unique_index(index):
    """Sorted unique subject identifiers (row labels of every output)."""
    return np.unique(np.asarray(index).ravel())


def apply_by_index(fn, index, arrays, *args, axis=0):
    """
    Apply a reducer to each subject's slice of a set of arrays.

    Parameters
    ----------
    fn : callable
        ``fn(*subject_slices, *args)``; must return results of the same
        shape for every subject.
    index : (n_trials,) array
        Subject identifier for each trial.  Trials of one subject need not
        be contiguous.
    arrays : sequence of arrays
        Arrays whose ``axis`` dimension has length ``n_trials``.
    *args
        Extra arguments forwarded unchanged to every call.
    axis : int
        Dimension to partition along.

    Returns
    -------
    (n_subjects, ...) array
        Row ``k`` is the reducer result for the ``k``-th smallest subject.
    """
    index = np.asarray(index).ravel()
    if index.size == 0:
        raise EmptyIndex("The index vector is empty.")
    if index.dtype.kind in "fc" and not np.all(np.isfinite(index)):
        raise ShapeMismatch("Subject identifiers must be finite.")

    arrays = [np.asarray(a) for a in arrays]
    for k, arr in enumerate(arrays):
        if arr.ndim <= axis or arr.shape[axis] != index.size:
            raise ShapeMismatch(
                f"Array {k} has shape {arr.shape}; dimension {axis} must match "
                f"the index length {index.size}.")

    results = []
    out_shape = None
    for subj in unique_index(index):
        rows = np.flatnonzero(index == subj)
        slices = [np.take(arr, rows, axis=axis) for arr in arrays]
        res = np.asarray(fn(*slices, *args))
        if out_shape is None:
            out_shape = res.shape
        elif res.shape != out_shape:
            raise InconsistentReducerOutput(
                f"Reducer returned shape {res.shape} for subject {subj!r}, "
                f"expected {out_shape}.")
        results.append(res)

    return np.stack(results, axis=0)


def collect(values, targets):
    """Count occurrences of each target value in ``values`` (NaNs ignored)."""
    values = np.asarray(values, dtype=float).ravel()
    values = values[~np.isnan(values)]
    targets = np.asarray(targets, dtype=float).ravel()
    return np.array([np.count_nonzero(values == t) for t in targets], dtype=float)
