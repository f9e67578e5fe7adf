"""
Free-Recall Statistics - Exceptions
===================================
Every error is a precondition violation raised where it is detected.
Undefined per-trial results are NaN, never exceptions.
"""


class FRStatsError(Exception):
    """Base class for all frstats errors."""


class MissingArgument(FRStatsError, TypeError):
    """A required input was not supplied."""


class ShapeMismatch(FRStatsError, ValueError):
    """Array dimensions disagree with a stated invariant."""


class InvalidStep(FRStatsError, ValueError):
    """Transition step smaller than 1."""


class InvalidCondition(FRStatsError, TypeError):
    """Condition argument is not callable."""


class ValueNotInSet(FRStatsError, ValueError):
    """An actual value is missing from its own set of possible values.

    This points at a bug in possible-set computation, not at user data.
    """


class UnequalCategorySizes(FRStatsError, ValueError):
    """Study list categories are not equal-sized (LBC precondition)."""


class InconsistentReducerOutput(FRStatsError, ValueError):
    """A per-subject reducer returned differently shaped results."""


class EmptyIndex(FRStatsError, ValueError):
    """Subject index vector is empty."""


class CounterOverflow(FRStatsError, OverflowError):
    """A count exceeded the capacity of the requested fixed-width dtype."""
