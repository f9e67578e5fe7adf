"""
Free-Recall Statistics package.

Modules
-------
config        : Shared constants and defaults.
errors        : Exception types raised on malformed input.
masks         : Recall-code classification and mask builders.
transitions   : Transition engine, transition and condition functions.
ranking       : Percentile rank of a transition among the possible ones.
aggregate     : Per-subject application of reducers.
crp           : Conditional response probability (lag, category, semantic, item).
clustering    : Clustering factors (ARC, LBC, temporal, similarity, source).
metrics       : SPC, PFR, probability of recall, stop probability.
visualization : Lag-CRP and SPC plots.
utils         : Shared helpers.
"""

from .config import *
from .errors import (
    CounterOverflow, EmptyIndex, FRStatsError, InconsistentReducerOutput,
    InvalidCondition, InvalidStep, MissingArgument, ShapeMismatch,
    UnequalCategorySizes, ValueNotInSet,
)
from .masks import (
    RecallKind, classify_recall, make_blank_mask, make_clean_recalls_mask,
    make_final_recall_mask, remove_intrusions, update_recalls_mask,
)
from .transitions import conditional_transitions, transitions
from .ranking import percentile_rank
from .aggregate import apply_by_index
from .crp import bin_crp, cat_crp, crp, dist_item_crp, item_crp, sem_crp, semantic_crp
from .clustering import arc, dist_fact, general_temp_fact, lbc, sim_fact, source_fact, temp_fact
from .metrics import p_rec, p_stop_op, pfr, spc
