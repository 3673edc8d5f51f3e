"""Exact dynamic-programming pairwise alignment: Gotoh global and multi-hit Smith-Waterman local."""
from enum import IntEnum
from typing import Union, ClassVar, Callable, Optional

import numpy as np

from seqalign.containers.seq import Seq
from seqalign.containers.alignment import GAP, Alignment, LocalAlignment
from seqalign.core.alphabet import InvalidConfiguration
from seqalign.engines.scoring import ScoringModel
from seqalign.utils.resources import jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class InternalInvariantViolation(RuntimeError):
    """Raised when an aligner produces output that breaks one of its post-conditions (a defect, never user error)."""


# Constants ------------------------------------------------------------------------------------------------------------
class AlignmentMode(IntEnum):
    """Alignment strategy, used as the kernel registry key."""
    LOCAL = 0
    GLOBAL = 1


# Gotoh states, also used as traceback pointers and emitted ops
_M = 0
_IX = 1
_IY = 2

# Smith-Waterman traceback pointers
_STOP = 0
_DIAG = 1
_UP = 2
_LEFT = 3


# Classes --------------------------------------------------------------------------------------------------------------
class Aligner:
    """
    Base class for the exact aligners. Holds the scoring model and resolves the kernels registered for its mode.

    Kernels register themselves with ``@Aligner.register(mode, role)`` where ``role`` is ``'fill'`` or ``'trace'``.
    """
    _REGISTRY: ClassVar[dict] = {}
    MODE: ClassVar[AlignmentMode]
    __slots__ = ('_model',)

    def __init__(self, model: ScoringModel = None):
        self._model = model or ScoringModel.match_mismatch()

    @classmethod
    def register(cls, mode: AlignmentMode, role: str):
        def decorator(func):
            cls._REGISTRY.setdefault(mode, {})[role] = func
            return func
        return decorator

    @property
    def model(self) -> ScoringModel: return self._model

    def _kernel(self, role: str) -> Callable: return self._REGISTRY[self.MODE][role]

    def _prepare(self, seq1: Union[str, bytes, Seq], seq2: Union[str, bytes, Seq]) -> tuple[Seq, Seq]:
        return self._model.validate(seq1), self._model.validate(seq2)


class GlobalAligner(Aligner):
    """
    End-to-end alignment with affine gaps (Gotoh's three-state recurrence) and a per-position terminal gap penalty.

    Equal-scoring predecessors are resolved in a fixed order: a substitution prefers M, then Ix, then Iy; a gap state
    prefers opening (from M) over extending; the traceback starts in Ix, then Iy, then M.

    Examples:
        >>> aligner = GlobalAligner(ScoringModel.match_mismatch())
        >>> aln = aligner.align('ATCGATCG', 'ATCAATCG')
        >>> aln.score
        13.0
        >>> print(aln)
        ATCGATCG
        ||| ||||
        ATCAATCG
    """
    MODE = AlignmentMode.GLOBAL
    __slots__ = ()

    def align(self, seq1: Union[str, bytes, Seq], seq2: Union[str, bytes, Seq]) -> Alignment:
        """
        Aligns two sequences end to end.

        Args:
            seq1: First sequence.
            seq2: Second sequence.

        Returns:
            The optimal ``Alignment``; its score is the column-by-column rescoring, which equals the DP optimum.

        Raises:
            InvalidSequence: If either sequence is empty or has a symbol outside the model's alphabet.
            InternalInvariantViolation: If the traceback does not reproduce the inputs or the score.
        """
        s1, s2 = self._prepare(seq1, seq2)
        gaps = self._model.gaps
        matrix = np.asarray(self._model.matrix)
        m, n = len(s1), len(s2)
        M, X, Y, tM, tX, tY = self._kernel('fill')(s1.encoded, s2.encoded, matrix, gaps.open, gaps.extend,
                                                  gaps.end_gap)
        final_m, final_x, final_y = M[m, n], X[m, n] + gaps.end_gap, Y[m, n] + gaps.end_gap
        best = max(final_m, final_x, final_y)
        state = _M
        if best == final_x: state = _IX
        elif best == final_y: state = _IY

        ops = self._kernel('trace')(tM, tX, tY, m, n, state)
        aligned1, aligned2 = _render(str(s1), str(s2), ops)
        breakdown = self._model.score_alignment(aligned1, aligned2)

        if aligned1.replace(GAP, '') != str(s1) or aligned2.replace(GAP, '') != str(s2):
            raise InternalInvariantViolation(
                f"Global traceback does not reproduce its inputs (lengths {m}, {n}):\n{aligned1}\n{aligned2}"
            )
        if not self._model.scores_equal(breakdown.total, float(best)):
            raise InternalInvariantViolation(
                f"Rescored alignment ({breakdown.total}) disagrees with the DP optimum ({best}):\n{aligned1}\n{aligned2}"
            )
        return Alignment(aligned1, aligned2, breakdown, self._model.match_line(aligned1, aligned2))


class LocalAligner(Aligner):
    """
    Smith-Waterman local alignment reporting every distinct high-scoring region.

    The recurrence uses a linear gap score (the model's gap-open penalty unless ``gap`` is given). Every cell scoring
    at least the threshold is a candidate end point; candidates are traced back from best to worst, each traceback
    consuming the cells it walks so that weaker candidates cannot reuse them.

    Examples:
        >>> aligner = LocalAligner(ScoringModel.from_params(2, -1, -2))
        >>> hits = aligner.align('ATCGAAGGCTAACG', 'GGGAAGGCTAACCCTTT', threshold=5)
        >>> hits[0].aligned1
        'GAAGGCTAAC'
    """
    MODE = AlignmentMode.LOCAL
    __slots__ = ('_gap',)

    def __init__(self, model: ScoringModel = None, gap: Optional[float] = None):
        super().__init__(model)
        if gap is None: gap = self._model.gaps.open
        if gap > 0: raise InvalidConfiguration(f"Gap score must be zero or negative, got {gap}")
        self._gap = float(gap)

    @property
    def gap(self) -> float: return self._gap

    def align(self, seq1: Union[str, bytes, Seq], seq2: Union[str, bytes, Seq],
              threshold: float = 5) -> list[LocalAlignment]:
        """
        Finds all non-redundant local alignments scoring at least ``threshold``.

        Each traced alignment is trimmed back to its first and last identical-symbol column and rescored. Alignments
        whose aligned position pairs contain, or are contained in, those of a better alignment are dropped.

        Args:
            seq1: First sequence.
            seq2: Second sequence.
            threshold: Minimum score of a reported alignment.

        Returns:
            Alignments ordered by score, best first; an empty list when nothing reaches the threshold.

        Raises:
            InvalidSequence: If either sequence is empty or has a symbol outside the model's alphabet.
        """
        s1, s2 = self._prepare(seq1, seq2)
        text1, text2 = str(s1), str(s2)
        H, T = self._kernel('fill')(s1.encoded, s2.encoded, np.asarray(self._model.matrix), self._gap)

        cells = np.argwhere((H >= threshold) & (H > 0))  # Row-major
        order = np.argsort(-H[cells[:, 0], cells[:, 1]], kind='stable')
        used = np.zeros(H.shape, dtype=np.bool_)
        found = []
        for i, j in cells[order]:
            if used[i, j]: continue
            ops, start1, start2 = self._kernel('trace')(H, T, used, int(i), int(j))
            aln = self._trimmed(text1, text2, ops, int(start1), int(start2))
            if aln is not None and aln.score >= threshold:
                found.append(aln)
        return _filter_contained(found)

    def _trimmed(self, text1: str, text2: str, ops: np.ndarray, start1: int, start2: int) -> Optional[LocalAlignment]:
        aligned1, aligned2 = _render(text1[start1:], text2[start2:], ops)
        identical = [c for c, (a, b) in enumerate(zip(aligned1, aligned2)) if a == b and a != GAP]
        if not identical: return None
        first, last = identical[0], identical[-1] + 1
        # Shift the start past whatever the trimmed prefix consumed
        start1 += first - aligned1[:first].count(GAP)
        start2 += first - aligned2[:first].count(GAP)
        aligned1, aligned2 = aligned1[first:last], aligned2[first:last]
        return LocalAlignment(
            aligned1, aligned2, self._model.score_alignment(aligned1, aligned2, linear_gap=self._gap),
            self._model.match_line(aligned1, aligned2),
            start1=start1, end1=start1 + len(aligned1) - aligned1.count(GAP),
            start2=start2, end2=start2 + len(aligned2) - aligned2.count(GAP)
        )


# Functions ------------------------------------------------------------------------------------------------------------
def _render(text1: str, text2: str, ops: np.ndarray) -> tuple[str, str]:
    """Turns a forward op string into two gapped strings, consuming ``text1``/``text2`` from their start."""
    out1, out2 = [], []
    i = j = 0
    for op in ops:
        if op == _M:
            out1.append(text1[i]); out2.append(text2[j])
            i += 1; j += 1
        elif op == _IX:
            out1.append(text1[i]); out2.append(GAP)
            i += 1
        else:
            out1.append(GAP); out2.append(text2[j])
            j += 1
    return ''.join(out1), ''.join(out2)


def _filter_contained(alignments: list[LocalAlignment]) -> list[LocalAlignment]:
    """
    Keeps alignments best first, skipping any whose aligned position pairs contain or are contained in those of an
    alignment already kept. A kept alignment is never removed later.
    """
    kept = []
    for aln in sorted(alignments, key=lambda a: -a.score):
        if not any(aln.pairs <= other.pairs or aln.pairs > other.pairs for other in kept): kept.append(aln)
    return kept


# Kernels --------------------------------------------------------------------------------------------------------------
@Aligner.register(AlignmentMode.GLOBAL, 'fill')
@jit(nopython=True, cache=True, nogil=True)
def _gotoh_fill_kernel(s1, s2, matrix, gap_open, gap_extend, end_gap):
    m = len(s1)
    n = len(s2)
    M = np.full((m + 1, n + 1), -np.inf)
    X = np.full((m + 1, n + 1), -np.inf)
    Y = np.full((m + 1, n + 1), -np.inf)
    tM = np.zeros((m + 1, n + 1), dtype=np.uint8)
    tX = np.zeros((m + 1, n + 1), dtype=np.uint8)
    tY = np.zeros((m + 1, n + 1), dtype=np.uint8)

    # Leading gap runs pay the end-gap penalty at every position
    M[0, 0] = 0.0
    if n > 0: Y[0, 1] = gap_open + end_gap
    for j in range(2, n + 1):
        Y[0, j] = Y[0, j - 1] + gap_extend + end_gap
        tY[0, j] = _IY
    if m > 0: X[1, 0] = gap_open + end_gap
    for i in range(2, m + 1):
        X[i, 0] = X[i - 1, 0] + gap_extend + end_gap
        tX[i, 0] = _IX

    for i in range(1, m + 1):
        a = s1[i - 1]
        for j in range(1, n + 1):
            best = M[i - 1, j - 1]
            src = _M
            if X[i - 1, j - 1] > best:
                best = X[i - 1, j - 1]
                src = _IX
            if Y[i - 1, j - 1] > best:
                best = Y[i - 1, j - 1]
                src = _IY
            M[i, j] = best + matrix[a, s2[j - 1]]
            tM[i, j] = src

            x_open = M[i - 1, j] + gap_open
            x_ext = X[i - 1, j] + gap_extend
            if x_open >= x_ext:
                X[i, j] = x_open
                tX[i, j] = _M
            else:
                X[i, j] = x_ext
                tX[i, j] = _IX
            # Trailing runs, the corner cell gets its end gap from the final max
            if j == n and i < m: X[i, j] += end_gap

            y_open = M[i, j - 1] + gap_open
            y_ext = Y[i, j - 1] + gap_extend
            if y_open >= y_ext:
                Y[i, j] = y_open
                tY[i, j] = _M
            else:
                Y[i, j] = y_ext
                tY[i, j] = _IY
            if i == m and j < n: Y[i, j] += end_gap

    return M, X, Y, tM, tX, tY


@Aligner.register(AlignmentMode.GLOBAL, 'trace')
@jit(nopython=True, cache=True, nogil=True)
def _gotoh_traceback_kernel(tM, tX, tY, m, n, state):
    ops = np.empty(m + n, dtype=np.uint8)
    k = 0
    i = m
    j = n
    while i > 0 and j > 0:
        ops[k] = state
        k += 1
        if state == _M:
            state = int(tM[i, j])
            i -= 1
            j -= 1
        elif state == _IX:
            state = int(tX[i, j])
            i -= 1
        else:
            state = int(tY[i, j])
            j -= 1
    # Unconsumed prefix becomes a terminal gap run
    while i > 0:
        ops[k] = _IX
        k += 1
        i -= 1
    while j > 0:
        ops[k] = _IY
        k += 1
        j -= 1
    return ops[:k][::-1].copy()


@Aligner.register(AlignmentMode.LOCAL, 'fill')
@jit(nopython=True, cache=True, nogil=True)
def _smith_waterman_fill_kernel(s1, s2, matrix, gap):
    m = len(s1)
    n = len(s2)
    H = np.zeros((m + 1, n + 1))
    T = np.zeros((m + 1, n + 1), dtype=np.uint8)
    for i in range(1, m + 1):
        a = s1[i - 1]
        for j in range(1, n + 1):
            diag = H[i - 1, j - 1] + matrix[a, s2[j - 1]]
            up = H[i - 1, j] + gap
            left = H[i, j - 1] + gap
            best = max(0.0, diag, up, left)
            H[i, j] = best
            if best == 0.0: T[i, j] = _STOP
            elif best == diag: T[i, j] = _DIAG
            elif best == up: T[i, j] = _UP
            else: T[i, j] = _LEFT
    return H, T


@Aligner.register(AlignmentMode.LOCAL, 'trace')
@jit(nopython=True, cache=True, nogil=True)
def _smith_waterman_traceback_kernel(H, T, used, i, j):
    ops = np.empty(i + j, dtype=np.uint8)
    k = 0
    while i > 0 and j > 0 and H[i, j] > 0 and T[i, j] != _STOP:
        used[i, j] = True
        t = T[i, j]
        if t == _DIAG:
            ops[k] = _M
            i -= 1
            j -= 1
        elif t == _UP:
            ops[k] = _IX
            i -= 1
        else:
            ops[k] = _IY
            j -= 1
        k += 1
    return ops[:k][::-1].copy(), i, j
