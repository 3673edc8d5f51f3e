"""Containers for pairwise alignment results and their per-column score breakdown."""
from dataclasses import dataclass
from enum import IntEnum
from functools import cached_property
from typing import Iterator

GAP = '-'


# Classes --------------------------------------------------------------------------------------------------------------
class ColumnType(IntEnum):
    """Classification of a single alignment column."""
    MATCH = 0
    MISMATCH = 1
    GAP_OPEN = 2
    GAP_EXTEND = 3

    def __str__(self): return self.name.lower().replace('_', '-')

    @property
    def is_gap(self) -> bool: return self >= ColumnType.GAP_OPEN


@dataclass(frozen=True, slots=True)
class Column:
    """
    One scored alignment column.

    Attributes:
        index: Zero-based column index.
        symbol1: Symbol of the first sequence, or ``-``.
        symbol2: Symbol of the second sequence, or ``-``.
        score: Contribution of this column to the total score.
        kind: The column type.
        terminal: Whether the column belongs to a leading or trailing gap run (and so carries the end-gap penalty).
    """
    index: int
    symbol1: str
    symbol2: str
    score: float
    kind: ColumnType
    terminal: bool = False


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """
    Column-by-column rescoring of an alignment, with summary statistics.

    Examples:
        >>> b = ScoringModel.match_mismatch().score_alignment('AC-T', 'ACGT')
        >>> b.total, b.matches, b.gaps
        (3.0, 3, 1)
    """
    total: float
    columns: tuple[Column, ...]

    def __len__(self): return len(self.columns)
    def __iter__(self) -> Iterator[Column]: return iter(self.columns)

    def _count(self, *kinds: ColumnType) -> int: return sum(1 for c in self.columns if c.kind in kinds)
    def _sum(self, *kinds: ColumnType) -> float: return sum(c.score for c in self.columns if c.kind in kinds)

    @property
    def matches(self) -> int: return self._count(ColumnType.MATCH)
    @property
    def mismatches(self) -> int: return self._count(ColumnType.MISMATCH)
    @property
    def gaps(self) -> int: return self._count(ColumnType.GAP_OPEN, ColumnType.GAP_EXTEND)
    @property
    def gap_openings(self) -> int: return self._count(ColumnType.GAP_OPEN)
    @property
    def match_score(self) -> float: return self._sum(ColumnType.MATCH)
    @property
    def mismatch_score(self) -> float: return self._sum(ColumnType.MISMATCH)

    @property
    def gap_penalty(self) -> float:
        """Total score of internal (non-terminal) gap columns."""
        return sum(c.score for c in self.columns if c.kind.is_gap and not c.terminal)

    @property
    def end_gap_penalty(self) -> float:
        """Total score of terminal gap columns, end-gap penalty included."""
        return sum(c.score for c in self.columns if c.terminal)

    @property
    def identity(self) -> float:
        """Percentage of columns that are exact matches."""
        return 100 * self.matches / len(self.columns) if self.columns else 0.0


@dataclass(frozen=True, slots=True)
class Alignment:
    """
    A complete pairwise alignment: two equal-length gapped strings plus their score breakdown.

    Attributes:
        aligned1: First sequence with gap symbols inserted.
        aligned2: Second sequence with gap symbols inserted.
        breakdown: Per-column scoring of the alignment.
        match_line: Annotation line, ``|`` identical, ``:`` positive substitution, space otherwise.
    """
    aligned1: str
    aligned2: str
    breakdown: ScoreBreakdown
    match_line: str = ''

    def __len__(self): return len(self.aligned1)
    def __str__(self): return f"{self.aligned1}\n{self.match_line}\n{self.aligned2}"

    @property
    def score(self) -> float: return self.breakdown.total
    @property
    def columns(self) -> tuple[Column, ...]: return self.breakdown.columns
    @property
    def identity(self) -> float: return self.breakdown.identity

    def ungapped(self) -> tuple[str, str]:
        """Returns both sequences with every gap symbol removed."""
        return self.aligned1.replace(GAP, ''), self.aligned2.replace(GAP, '')


@dataclass(frozen=True)
class LocalAlignment(Alignment):
    """
    A local alignment with its location in both sequences.

    Coordinates are zero-based and half-open, so ``seq1[start1:end1]`` is the aligned region of the first sequence.
    """
    start1: int = 0
    end1: int = 0
    start2: int = 0
    end2: int = 0

    @cached_property
    def pairs(self) -> frozenset[tuple[int, int]]:
        """Set of ``(i, j)`` positions aligned to each other (gap columns excluded)."""
        out, i, j = [], self.start1, self.start2
        for a, b in zip(self.aligned1, self.aligned2):
            if a != GAP and b != GAP: out.append((i, j))
            if a != GAP: i += 1
            if b != GAP: j += 1
        return frozenset(out)
