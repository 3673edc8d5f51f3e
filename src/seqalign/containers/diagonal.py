"""
Diagonal geometry shared by the dotplot engine and the seed pipeline.

A ``DiagonalRun`` is produced once, by whichever engine discovers it, and every consumer (visualisation, alignment
block summaries, seed inspection) reads that structure instead of re-deriving it from positional flags.
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator

from scipy.sparse import csr_array


# Classes --------------------------------------------------------------------------------------------------------------
class Strand(IntEnum):
    """
    Orientation of the second sequence in a comparison.
    """
    FORWARD = 1
    REVERSE = -1

    def __str__(self): return '+' if self is Strand.FORWARD else '-'


@dataclass(frozen=True, slots=True)
class DiagonalRun:
    """
    A maximal run of consecutive exact matches along one diagonal.

    For ``Strand.REVERSE`` runs the target coordinates refer to the reverse complement of the target sequence.

    Attributes:
        query_start: Zero-based start in the first (query) sequence.
        target_start: Zero-based start in the second (target) sequence, in the orientation given by ``strand``.
        length: Number of matching positions.
        strand: Orientation of the target.

    Examples:
        >>> run = DiagonalRun(2, 5, 4)
        >>> run.diagonal, run.query_end, run.target_end
        (3, 6, 9)
    """
    query_start: int
    target_start: int
    length: int
    strand: Strand = Strand.FORWARD

    def __len__(self): return self.length

    @property
    def query_end(self) -> int: return self.query_start + self.length
    @property
    def target_end(self) -> int: return self.target_start + self.length
    @property
    def diagonal(self) -> int: return self.target_start - self.query_start

    def cells(self) -> Iterator[tuple[int, int]]:
        """Yields every ``(query, target)`` position pair of the run."""
        for k in range(self.length): yield self.query_start + k, self.target_start + k

    def forward_target(self, target_length: int) -> tuple[int, int]:
        """
        Returns the half-open target interval of the run on the forward strand.

        Examples:
            >>> DiagonalRun(0, 1, 3, Strand.REVERSE).forward_target(10)
            (6, 9)
        """
        if self.strand is Strand.FORWARD: return self.target_start, self.target_end
        return target_length - self.target_end, target_length - self.target_start


@dataclass(frozen=True, slots=True)
class DotPlotStatistics:
    """Summary counts of a dotplot (cells are matching position pairs that belong to a reported run)."""
    query_length: int
    target_length: int
    window: int
    forward_cells: int
    reverse_cells: int

    @property
    def total_cells(self) -> int: return self.forward_cells + self.reverse_cells

    @property
    def max_possible(self) -> int:
        """Every window of the query against every window of the target, on both strands."""
        if self.query_length < self.window or self.target_length < self.window: return 0
        return (self.query_length - self.window + 1) * (self.target_length - self.window + 1) * 2

    @property
    def density(self) -> float:
        """Percentage of the possible cells that are reported."""
        return 100 * self.total_cells / self.max_possible if self.max_possible else 0.0


@dataclass(frozen=True, slots=True)
class DotPlot:
    """
    Exact-match geometry between two sequences.

    Attributes:
        forward: Runs of the query against the target.
        reverse: Runs of the query against the reverse complement of the target.
        forward_grid: Sparse boolean matrix of every matching ``(query, target)`` pair.
        reverse_grid: The same against the reverse complement (empty when the alphabet has no complement).
        statistics: Summary counts.
    """
    forward: tuple[DiagonalRun, ...]
    reverse: tuple[DiagonalRun, ...]
    forward_grid: csr_array
    reverse_grid: csr_array
    statistics: DotPlotStatistics

    def __iter__(self) -> Iterator[DiagonalRun]:
        yield from self.forward
        yield from self.reverse

    def __len__(self): return len(self.forward) + len(self.reverse)

    def runs(self, strand: Strand = None) -> tuple[DiagonalRun, ...]:
        """Returns the runs of one strand, or all runs ordered longest first."""
        if strand is Strand.FORWARD: return self.forward
        if strand is Strand.REVERSE: return self.reverse
        return tuple(sorted(self, key=lambda r: (-r.length, r.strand is Strand.REVERSE, r.query_start)))

    def grid(self, strand: Strand = Strand.FORWARD) -> csr_array:
        """Returns the sparse match grid of one strand."""
        return self.forward_grid if strand is Strand.FORWARD else self.reverse_grid
