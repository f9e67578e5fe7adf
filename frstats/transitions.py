"""
Free-Recall Statistics - Transition Engine
==========================================
Enumerates transitions between consecutive recalls and, for each one, the
set of transitions that were *possible* at that point.

Every CRP and clustering metric is a composition of three pluggable pieces
passed to ``conditional_transitions``:

* **transition function** ``transition_fn(from_val, to_val, params)``
  reduces a pair of recalls to a scalar, or ``None`` when the transition is
  undefined.
* **condition function** ``condition_fn(from_val, prior_values, transition, params)``
  returns the array of transition values that were possible from
  ``from_val`` given the recalls made before it.
* **params** is a per-metric parameter record (``LagParams``,
  ``CategoryParams``, ``SimilarityParams``) that the engine passes through
  untouched.

A realized transition is kept only if it is a member of its own possible
set, so actual transitions are always a subset of possible ones.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np

from .config import DEFAULT_STEP, WITHIN_CATEGORY
from .errors import InvalidCondition, InvalidStep, ShapeMismatch
from .masks import RecallKind, classify_recall

TransitionFn = Callable[[float, float, Any], Optional[float]]
ConditionFn = Callable[[float, np.ndarray, Optional[float], Any], np.ndarray]

_EMPTY = np.empty(0, dtype=float)


# ─────────────────────────────────────────────────────────────────────
# Per-metric parameter records
# ─────────────────────────────────────────────────────────────────────

def _as_mask(mask, n):
    if mask is None:
        return np.ones(n, dtype=bool)
    return np.asarray(mask, dtype=bool).ravel()


@dataclass(frozen=True, eq=False)
class LagParams:
    """Presentation masks for serial-position lag conditions.

    ``from_mask_pres`` / ``to_mask_pres`` are length ``list_length`` and
    false at serial positions that may not start / end a transition.
    """

    from_mask_pres: np.ndarray
    to_mask_pres: np.ndarray

    @classmethod
    def all_items(cls, list_length):
        mask = np.ones(list_length, dtype=bool)
        return cls(mask, mask)

    @property
    def list_length(self):
        return self.to_mask_pres.size

    def __post_init__(self):
        object.__setattr__(self, "from_mask_pres",
                           np.asarray(self.from_mask_pres, dtype=bool).ravel())
        object.__setattr__(self, "to_mask_pres",
                           np.asarray(self.to_mask_pres, dtype=bool).ravel())


@dataclass(frozen=True, eq=False)
class CategoryParams:
    """Category structure of one presented list.

    ``cat_type`` is ``WITHIN_CATEGORY`` or ``BETWEEN_CATEGORY``.
    """

    pres_catlabels: np.ndarray
    cat_type: int = WITHIN_CATEGORY
    from_mask_pres: Optional[np.ndarray] = None
    to_mask_pres: Optional[np.ndarray] = None

    def __post_init__(self):
        labels = np.asarray(self.pres_catlabels).ravel()
        object.__setattr__(self, "pres_catlabels", labels)
        object.__setattr__(self, "from_mask_pres", _as_mask(self.from_mask_pres, labels.size))
        object.__setattr__(self, "to_mask_pres", _as_mask(self.to_mask_pres, labels.size))

    @property
    def list_length(self):
        return self.pres_catlabels.size


@dataclass(frozen=True, eq=False)
class SimilarityParams:
    """Item-by-item similarity matrix plus one trial's presented items.

    Item numbers are 1-based; ``sim_mat[a - 1, b - 1]`` is the similarity
    of items ``a`` and ``b``.
    """

    sim_mat: np.ndarray
    pres_itemnos: np.ndarray
    pres_mask: Optional[np.ndarray] = field(default=None)

    def __post_init__(self):
        items = np.asarray(self.pres_itemnos).ravel()
        object.__setattr__(self, "sim_mat", np.asarray(self.sim_mat, dtype=float))
        object.__setattr__(self, "pres_itemnos", items)
        object.__setattr__(self, "pres_mask", _as_mask(self.pres_mask, items.size))


# ─────────────────────────────────────────────────────────────────────
# Engine
# ─────────────────────────────────────────────────────────────────────

def conditional_transitions(data_row, from_mask, to_mask, transition_fn,
                            condition_fn, step=DEFAULT_STEP, params=None):
    """
    Calculate transitions that meet a condition.

    For each ``i`` in ``0 .. L - step - 1`` where ``from_mask[i]`` and
    ``to_mask[i + step]`` are both true, computes the transition from
    ``data_row[i]`` to ``data_row[i + step]`` and the possible transitions
    returned by ``condition_fn`` given the prior elements
    ``data_row[:i]``.  The transition is recorded only if it is a member of
    the possible set.

    Parameters
    ----------
    data_row : (L,) array
    from_mask, to_mask : (L,) bool arrays
    transition_fn : callable
        ``transition_fn(from_val, to_val, params) -> scalar or None``.
    condition_fn : callable
        ``condition_fn(from_val, prior_values, transition, params) -> array``.
    step : int
        How many elements ahead a transition reaches.
    params : object
        Passed unchanged to both functions.

    Returns
    -------
    trans_row : (L - step,) float array
        Transition values; NaN where masked out or not possible.
    possibles : list of arrays
        ``possibles[i]`` holds the possible transitions for
        ``trans_row[i]``; empty where masked out.

    Examples
    --------
    >>> row = np.array([22, 19, 23, 4, 5, 6])
    >>> mask = np.ones(6, dtype=bool)
    >>> small = lambda cur, prev, trans, params: np.arange(-3, 4)
    >>> trans, poss = conditional_transitions(row, mask, mask, lag, small)
    >>> trans
    array([-3., nan, nan,  1.,  1.])
    """
    if not callable(condition_fn):
        raise InvalidCondition("condition must be callable.")
    if step < 1:
        raise InvalidStep(f"Non-positive steps are not supported (step={step}).")

    data_row = np.asarray(data_row).ravel()
    from_mask = np.asarray(from_mask, dtype=bool).ravel()
    to_mask = np.asarray(to_mask, dtype=bool).ravel()
    if from_mask.size != data_row.size or to_mask.size != data_row.size:
        raise ShapeMismatch("Masks must have the same length as data_row.")

    n_trans = max(data_row.size - step, 0)
    trans_row = np.full(n_trans, np.nan)
    possibles = [_EMPTY] * n_trans

    for i in range(n_trans):
        if not (from_mask[i] and to_mask[i + step]):
            continue
        from_pt = data_row[i]
        to_pt = data_row[i + step]

        transition = transition_fn(from_pt, to_pt, params)
        possible = np.asarray(
            condition_fn(from_pt, data_row[:i], transition, params),
            dtype=float).ravel()

        if transition is not None and np.any(possible == transition):
            trans_row[i] = transition
        possibles[i] = possible

    return trans_row, possibles


def allow_all_transitions(from_pt, prior_values, transition, params):
    """Transparent condition: the only possible transition is the actual one."""
    if transition is None:
        return _EMPTY
    return np.atleast_1d(np.asarray(transition, dtype=float))


def transitions(data_row, from_mask, to_mask, transition_fn,
                step=DEFAULT_STEP, params=None):
    """
    Calculate transitions between elements of a row, subject only to masks.

    >>> row = np.array([24, 23, 19, 2, 5])
    >>> every = np.ones(5, dtype=bool)
    >>> not_19 = np.array([True, True, False, True, True])
    >>> transitions(row, not_19, every, lag)
    array([-1., -4., nan,  3.])
    """
    trans_row, _ = conditional_transitions(data_row, from_mask, to_mask,
                                           transition_fn, allow_all_transitions,
                                           step, params)
    return trans_row


def concat_possibles(possibles):
    """Flatten a ragged list of possible-transition arrays into one array."""
    if not possibles:
        return _EMPTY
    return np.concatenate([np.asarray(p, dtype=float).ravel() for p in possibles])


# ─────────────────────────────────────────────────────────────────────
# Transition functions
# ─────────────────────────────────────────────────────────────────────

def lag(from_pt, to_pt, params=None):
    """Signed serial-position difference."""
    return float(to_pt) - float(from_pt)


def _category_mask(pres_catlabels, serial_position, cat_type):
    """Positions counted by a within- or between-category lag; the source
    position is always counted."""
    label = pres_catlabels[serial_position - 1]
    if cat_type == WITHIN_CATEGORY:
        return pres_catlabels == label
    mask = pres_catlabels != label
    mask[serial_position - 1] = True
    return mask


def cat_lag(from_pt, to_pt, params):
    """
    Lag in category-relative position space.

    Positions that do not match the required category relationship are
    clipped out before the lag is taken.  Returns None when ``to_pt`` does
    not match.
    """
    list_length = params.list_length
    if (classify_recall(from_pt, list_length) is not RecallKind.RECALLED
            or classify_recall(to_pt, list_length) is not RecallKind.RECALLED):
        return None
    from_pt, to_pt = int(from_pt), int(to_pt)
    cat_mask = _category_mask(params.pres_catlabels, from_pt, params.cat_type)
    if not cat_mask[to_pt - 1]:
        return None
    cat_pos = np.cumsum(cat_mask)
    return float(cat_pos[to_pt - 1] - cat_pos[from_pt - 1])


def _lookup_similarity(sim_mat, item1, item2):
    n_items = sim_mat.shape[0]
    if (classify_recall(item1, n_items) is not RecallKind.RECALLED
            or classify_recall(item2, n_items) is not RecallKind.RECALLED):
        return None
    return float(sim_mat[int(item1) - 1, int(item2) - 1])


def similarity(item1, item2, params):
    """Similarity of two items, looked up in ``params.sim_mat``."""
    return _lookup_similarity(params.sim_mat, item1, item2)


def semantic_similarity(item1, item2, params):
    """Semantic similarity of two items, looked up in ``params.sim_mat``."""
    return _lookup_similarity(params.sim_mat, item1, item2)


def is_same_source(source1, source2, params=None):
    """1.0 if both recalls share a source label, else 0.0."""
    return float(source1 == source2)


# ─────────────────────────────────────────────────────────────────────
# Condition functions
# ─────────────────────────────────────────────────────────────────────

def _prior_positions(prior_recalls, list_length):
    """Valid serial positions among the prior recalls, as 0-based indices."""
    prior = np.asarray(prior_recalls, dtype=float).ravel()
    prior = prior[np.isfinite(prior) & (prior > 0) & (prior <= list_length)]
    return prior.astype(int) - 1


def _valid_source(serial_position, prior_recalls, from_mask_pres):
    """Transitions from an intrusion, an empty cell, a repeat or a masked
    position are never possible."""
    list_length = from_mask_pres.size
    if classify_recall(serial_position, list_length) is not RecallKind.RECALLED:
        return False
    if np.any(np.asarray(prior_recalls, dtype=float) == serial_position):
        return False
    return bool(from_mask_pres[int(serial_position) - 1])


def possible_transitions(serial_position, prior_recalls, transition, params):
    """
    Possible lags from a serial position, given prior recalls.

    Lags to the source itself, to prior recalls and to positions excluded
    by ``params.to_mask_pres`` are left out.

    >>> params = LagParams.all_items(6)
    >>> possible_transitions(4, np.array([3, 2]), None, params)
    array([-3.,  1.,  2.])
    """
    if not _valid_source(serial_position, prior_recalls, params.from_mask_pres):
        return _EMPTY
    sp = int(serial_position)
    to_mask = params.to_mask_pres.copy()
    to_mask[sp - 1] = False
    to_mask[_prior_positions(prior_recalls, to_mask.size)] = False
    return (np.flatnonzero(to_mask) + 1 - sp).astype(float)


def _cat_candidates(serial_position, prior_recalls, params):
    sp = int(serial_position)
    cat_mask = _category_mask(params.pres_catlabels, sp, params.cat_type)
    total = cat_mask & params.to_mask_pres
    total[sp - 1] = False
    total[_prior_positions(prior_recalls, total.size)] = False
    return sp, cat_mask, total


def cat_transitions(serial_position, prior_recalls, transition, params):
    """
    Possible category-relative lags, conditional on category.

    Only positions that match the source's category relationship
    (``params.cat_type``) count, both as destinations and when measuring
    the lag.

    >>> params = CategoryParams(np.array([1, 0, 1, 1, 0, 1]))
    >>> cat_transitions(4, np.array([3, 2]), None, params)
    array([-2.,  1.])
    """
    if not _valid_source(serial_position, prior_recalls, params.from_mask_pres):
        return _EMPTY
    sp, cat_mask, total = _cat_candidates(serial_position, prior_recalls, params)
    cat_pos = np.cumsum(cat_mask)
    return (cat_pos[total] - cat_pos[sp - 1]).astype(float)


def cat_transitions_lag(serial_position, prior_recalls, transition, params):
    """Possible serial-position lags to destinations matching the category
    relationship."""
    if not _valid_source(serial_position, prior_recalls, params.from_mask_pres):
        return _EMPTY
    sp, _, total = _cat_candidates(serial_position, prior_recalls, params)
    return (np.flatnonzero(total) + 1 - sp).astype(float)


def _possible_items(item, prior_items, params):
    items = params.pres_itemnos[params.pres_mask].astype(float)
    items = items[np.isfinite(items) & (items > 0)]
    exclude = np.append(np.asarray(prior_items, dtype=float).ravel(), float(item))
    return np.setdiff1d(items, exclude).astype(int)


def possible_sim_transitions(item, prior_items, transition, params):
    """Similarities between ``item`` and every unmasked, not yet recalled
    presented item."""
    if classify_recall(item, params.sim_mat.shape[0]) is not RecallKind.RECALLED:
        return _EMPTY
    poss = _possible_items(item, prior_items, params)
    return params.sim_mat[int(item) - 1, poss - 1]


def possible_sem_transitions(item, prior_items, transition, params):
    """Semantic similarities between ``item`` and every unmasked presented
    item not yet recalled."""
    return possible_sim_transitions(item, prior_items, transition, params)
