"""
Exact-match dotplots: maximal diagonal runs of a sequence against another and against its reverse complement.
"""
from typing import Union

import numpy as np
from scipy.sparse import csr_array

from seqalign.core.alphabet import InvalidConfiguration, validate_pair
from seqalign.containers.seq import Seq
from seqalign.containers.diagonal import Strand, DiagonalRun, DotPlot, DotPlotStatistics
from seqalign.utils.resources import jit


# Classes --------------------------------------------------------------------------------------------------------------
class DiagonalMatcher:
    """
    Finds maximal diagonal runs of matching positions between two sequences, on both strands.

    With the default ``window=1`` and ``max_mismatches=0`` a cell ``(i, j)`` is set when ``s1[i] == s2[j]``. With a
    larger window, every cell of a window pair is set when the two windows differ in at most ``max_mismatches``
    positions, which bridges isolated mismatches in noisy diagonals.

    Args:
        min_run_length: Runs shorter than this are not reported.
        window: Window length for tolerant matching.
        max_mismatches: Mismatches allowed inside a window.

    Raises:
        InvalidConfiguration: If a parameter is out of range.

    Examples:
        >>> plot = DiagonalMatcher(min_run_length=3).build('ACGTT', 'ACGAA')
        >>> plot.forward
        (DiagonalRun(query_start=0, target_start=0, length=3, strand=<Strand.FORWARD: 1>),)
    """
    __slots__ = ('_min_run_length', '_window', '_max_mismatches')

    def __init__(self, min_run_length: int = 1, window: int = 1, max_mismatches: int = 0):
        if min_run_length < 1: raise InvalidConfiguration(f"Minimum run length must be at least 1, got {min_run_length}")
        if window < 1: raise InvalidConfiguration(f"Window must be at least 1, got {window}")
        if not 0 <= max_mismatches < window:
            raise InvalidConfiguration(f"Mismatches per window must be in [0, {window}), got {max_mismatches}")
        self._min_run_length = int(min_run_length)
        self._window = int(window)
        self._max_mismatches = int(max_mismatches)

    @property
    def min_run_length(self) -> int: return self._min_run_length
    @property
    def window(self) -> int: return self._window
    @property
    def max_mismatches(self) -> int: return self._max_mismatches

    def build(self, seq1: Union[str, bytes, Seq], seq2: Union[str, bytes, Seq]) -> DotPlot:
        """
        Compares ``seq1`` against ``seq2`` and against the reverse complement of ``seq2``.

        Args:
            seq1: The query (rows of the grid).
            seq2: The target (columns of the grid).

        Returns:
            A ``DotPlot``. Runs of each strand are ordered by query start, then target start. Reverse runs are in
            reverse-complement coordinates and are empty for alphabets without a complement.

        Raises:
            InvalidSequence: If either sequence is invalid or the two belong to different alphabets.
        """
        s1, s2 = validate_pair(seq1, seq2)
        forward_grid = self.grid(s1.encoded, s2.encoded)
        forward = self._runs(forward_grid, Strand.FORWARD)
        if s2.alphabet.complement is None:
            reverse_grid, reverse = np.zeros_like(forward_grid), ()
        else:
            reverse_grid = self.grid(s1.encoded, s2.alphabet.reverse_complement(s2.encoded))
            reverse = self._runs(reverse_grid, Strand.REVERSE)
        stats = DotPlotStatistics(
            query_length=len(s1), target_length=len(s2), window=self._window,
            forward_cells=sum(r.length for r in forward), reverse_cells=sum(r.length for r in reverse)
        )
        return DotPlot(forward, reverse, csr_array(forward_grid), csr_array(reverse_grid), stats)

    def grid(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Returns the dense boolean match grid of two encoded sequences."""
        equal = a[:, None] == b[None, :]
        if self._window == 1: return equal
        m, n, w = len(a), len(b), self._window
        out = np.zeros_like(equal)
        if m < w or n < w: return out
        rows, cols = m - w + 1, n - w + 1
        mismatches = np.zeros((rows, cols), dtype=np.int32)
        for t in range(w): mismatches += ~equal[t:t + rows, t:t + cols]
        accepted = mismatches <= self._max_mismatches
        for t in range(w): out[t:t + rows, t:t + cols] |= accepted
        return out

    def _runs(self, grid: np.ndarray, strand: Strand) -> tuple[DiagonalRun, ...]:
        q, t, lengths = _diagonal_runs_kernel(grid, self._min_run_length)
        return tuple(DiagonalRun(i, j, n, strand) for i, j, n in zip(q.tolist(), t.tolist(), lengths.tolist()))


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _diagonal_runs_kernel(grid, min_length):
    m, n = grid.shape
    capacity = np.count_nonzero(grid)
    out_q = np.empty(capacity, dtype=np.int64)
    out_t = np.empty(capacity, dtype=np.int64)
    out_len = np.empty(capacity, dtype=np.int64)
    visited = np.zeros((m, n), dtype=np.bool_)
    k = 0
    for i in range(m):
        for j in range(n):
            if not grid[i, j] or visited[i, j]: continue
            start = 0
            while i - start > 0 and j - start > 0 and grid[i - start - 1, j - start - 1]:
                start += 1
            end = 1
            while i + end < m and j + end < n and grid[i + end, j + end]:
                end += 1
            for s in range(-start, end):
                visited[i + s, j + s] = True
            length = start + end
            if length >= min_length:
                out_q[k] = i - start
                out_t[k] = j - start
                out_len[k] = length
                k += 1
    return out_q[:k], out_t[:k], out_len[:k]
