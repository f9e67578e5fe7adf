"""
Free-Recall Statistics - Configuration & Constants
==================================================
Shared defaults: transition step, category-transition types, distance-bin
percentiles, semantic-CRP binning heuristic and plotting ranges.
"""

import numpy as np

# ── Transition Engine ────────────────────────────────────────────────
DEFAULT_STEP = 1

# ── Category Transition Types ────────────────────────────────────────
WITHIN_CATEGORY = 1
BETWEEN_CATEGORY = 2

# cat_crp lag spaces
LAG_TYPES = ("cat_pos", "serial_pos", "cat_nocond")

# ── Distance / Similarity Binning ────────────────────────────────────
DEFAULT_DIST_PERCENTILES = np.arange(0, 101, 10)

# sem_crp: number of bins and how many times wider the last bin is
# than the first
SEM_CRP_NUMBINS = 15
SEM_CRP_P_INCREASE = 4

# ── Plotting ─────────────────────────────────────────────────────────
DEFAULT_MAXLAG = 5
CRP_YLIM = (0.0, 0.6)
SPC_YLIM = (0.0, 1.0)
