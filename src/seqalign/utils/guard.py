"""
Size guard for the quadratic routines, applied by the calling layer before any matrix is allocated.
"""
from dataclasses import dataclass
from typing import ClassVar, Literal
from warnings import warn

from seqalign.core.alphabet import InvalidSequence, InvalidConfiguration
from seqalign.utils.resources import SeqAlignWarning


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SizeWarning(SeqAlignWarning):
    """Warns that an O(n*m) routine is about to run on a large pair of sequences."""


class SequenceTooLarge(InvalidSequence):
    """Raised when the length product of a sequence pair exceeds the configured guard."""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SizeGuard:
    """
    Checks the length product of two sequences against a cell budget.

    Attributes:
        max_cells: Largest allowed ``len(seq1) * len(seq2)``.
        action: ``'warn'`` emits a ``SizeWarning``, ``'raise'`` raises ``SequenceTooLarge`` and ``'ignore'`` skips
            the check.

    Examples:
        >>> SizeGuard(max_cells=100, action='raise').check(20, 20, 'global alignment')
        Traceback (most recent call last):
        ...
        seqalign.utils.guard.SequenceTooLarge: global alignment of 20 x 20 needs 400 cells (limit 100)
    """
    max_cells: int = 25_000_000
    action: Literal['warn', 'raise', 'ignore'] = 'warn'
    _ACTIONS: ClassVar[frozenset] = frozenset({'warn', 'raise', 'ignore'})

    def __post_init__(self):
        if self.action not in self._ACTIONS:
            raise InvalidConfiguration(f"Guard action must be one of {sorted(self._ACTIONS)}, got {self.action!r}")
        if self.max_cells < 1: raise InvalidConfiguration(f"max_cells must be positive, got {self.max_cells}")

    def check(self, m: int, n: int, operation: str = 'alignment') -> bool:
        """
        Applies the guard to a pair of lengths.

        Returns:
            ``True`` if the pair is within the budget (or the guard is ignored), ``False`` if it only warned.

        Raises:
            SequenceTooLarge: If the action is ``'raise'`` and the budget is exceeded.
        """
        if self.action == 'ignore' or m * n <= self.max_cells: return True
        message = f"{operation} of {m} x {n} needs {m * n} cells (limit {self.max_cells})"
        if self.action == 'raise': raise SequenceTooLarge(message)
        warn(message, SizeWarning, stacklevel=3)
        return False


# Constants ------------------------------------------------------------------------------------------------------------
DEFAULT_GUARD = SizeGuard()
