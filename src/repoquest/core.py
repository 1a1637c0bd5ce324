"""Core types shared by the branch derivation engine."""

from __future__ import annotations

from enum import Enum


class MergeType(str, Enum):
    """Outcome of reconciling a derived branch.

    Returned to the caller for bookkeeping only; nothing downstream
    changes behavior based on it.
    """

    SUCCESS = "success"
    STARTER_RESET = "starter_reset"
    SOLUTION_RESET = "solution_reset"

    @property
    def is_reset(self) -> bool:
        """True when the primary strategy conflicted and a fallback ran."""
        return self is not MergeType.SUCCESS
