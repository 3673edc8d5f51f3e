"""Substitution matrices, gap penalties and the scoring model shared by every aligner."""
from dataclasses import dataclass
from math import isfinite, isclose
from typing import Union, Iterable, Optional

import numpy as np

from seqalign.core.alphabet import Alphabet, InvalidSequence, InvalidConfiguration
from seqalign.containers.seq import Seq
from seqalign.containers.alignment import GAP, Column, ColumnType, ScoreBreakdown


# Classes --------------------------------------------------------------------------------------------------------------
class ScoreMatrix:
    """
    Represents a substitution matrix indexed by alphabet codes.

    The matrix need not be symmetric: ``matrix[a, b]`` scores symbol ``a`` of the first sequence against symbol ``b``
    of the second.

    Examples:
        >>> m = ScoreMatrix.build(4, match=2, mismatch=-1)
        >>> m.shape, m.is_symmetric
        ((4, 4), True)
    """
    _DTYPE = np.float64
    __slots__ = ('_data',)

    def __init__(self, data: Union[np.ndarray, Iterable]):
        data = np.array(data, dtype=self._DTYPE)
        if data.ndim != 2 or data.shape[0] != data.shape[1]:
            raise InvalidConfiguration(f"Substitution matrix must be square, got shape {data.shape}")
        if not np.all(np.isfinite(data)): raise InvalidConfiguration("Substitution scores must be finite")
        self._data = data
        self._data.flags.writeable = False

    def __getitem__(self, item): return self._data[item]
    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __repr__(self): return f"ScoreMatrix{self._data.shape}"
    def __eq__(self, other): return isinstance(other, ScoreMatrix) and np.array_equal(self._data, other._data)
    def __hash__(self): return hash(self._data.tobytes())
    @property
    def shape(self): return self._data.shape
    @property
    def is_symmetric(self) -> bool: return bool(np.array_equal(self._data, self._data.T))

    @classmethod
    def blosum62(cls):
        """Returns the BLOSUM62 matrix in ``Alphabet.PROTEIN`` order."""
        data = [
            4, 0, -2, -1, -2, 0, -2, -1, -1, -1, -1, -2, -1, -1, -1, 1, 0, 0, -3, -2,
            0, 9, -3, -4, -2, -3, -3, -1, -3, -1, -1, -3, -3, -3, -3, -1, -1, -1, -2, -2,
            -2, -3, 6, 2, -3, -1, -1, -3, -1, -4, -3, 1, -1, 0, -2, 0, -1, -3, -4, -3,
            -1, -4, 2, 5, -3, -2, 0, -3, 1, -3, -2, 0, -1, 2, 0, 0, -1, -2, -3, -2,
            -2, -2, -3, -3, 6, -3, -1, 0, -3, 0, 0, -3, -4, -3, -3, -2, -2, -1, 1, 3,
            0, -3, -1, -2, -3, 6, -2, -4, -2, -4, -3, 0, -2, -2, -2, 0, -2, -3, -2, -3,
            -2, -3, -1, 0, -1, -2, 8, -3, -1, -3, -2, 1, -2, 0, 0, -1, -2, -3, -2, 2,
            -1, -1, -3, -3, 0, -4, -3, 4, -3, 2, 1, -3, -3, -3, -3, -2, -1, 3, -3, -1,
            -1, -3, -1, 1, -3, -2, -1, -3, 5, -2, -3, 2, 0, -3, -3, 1, 0, -3, -1, 2,
            -1, -1, -4, -3, 0, -4, -3, 2, -2, 4, 2, -3, -3, -2, -2, -2, -1, 1, -2, -1,
            -1, -1, -3, -2, 0, -3, -2, 1, -3, 2, 5, -2, -2, 0, -1, -1, -1, 1, -1, -1,
            -2, -3, 1, 0, -3, 0, 1, -3, 2, -3, -2, 6, -2, -4, -4, -1, 0, -3, -1, -3,
            -1, -3, -1, -1, -4, -2, -2, -3, 0, -3, -2, -2, 7, -1, -2, -1, -1, -2, -4, -3,
            -1, -3, 0, 2, -3, -2, 0, -3, -3, -2, 0, -4, -1, 5, 1, 0, -1, -2, -2, -1,
            -1, -3, -2, 0, -3, -2, 0, -3, -3, -2, -1, -4, -2, 1, 5, -1, -1, -3, -3, -2,
            1, -1, 0, 0, -2, 0, -1, -2, 1, -2, -1, -1, -1, 0, -1, 4, 1, -2, -3, -2,
            0, -1, -1, -1, -2, -2, -2, -1, 0, -1, -1, 0, -1, -1, -1, 1, 5, 0, -2, -2,
            0, -1, -3, -2, -1, -3, -3, 3, -3, 1, 1, -3, -2, -2, -3, -2, 0, 4, -3, -1,
            -3, -2, -4, -3, 1, -2, -2, -3, -1, -2, -1, -1, -4, -2, -3, -3, -2, -3, 11, 2,
            -2, -2, -3, -2, 3, -3, 2, -1, 2, -1, -1, -3, -3, -1, -2, -2, -2, -1, 2, 7
        ]
        return cls(np.array(data, dtype=cls._DTYPE).reshape(20, 20))

    @classmethod
    def build(cls, n: int, match: float = 1, mismatch: float = -1):
        """Builds a simple match/mismatch matrix."""
        M = np.full((n, n), mismatch, dtype=cls._DTYPE)
        np.fill_diagonal(M, match)
        return cls(M)

    @classmethod
    def transition_transversion(cls, alphabet: Alphabet, match: float = 2, transition: float = 0,
                                transversion: float = -2):
        """
        Builds a nucleotide matrix that penalises transversions more than transitions.

        Transitions are purine<->purine (A<->G) and pyrimidine<->pyrimidine (C<->T or C<->U) substitutions.

        Raises:
            InvalidConfiguration: If the alphabet is not a nucleotide alphabet.
        """
        if alphabet.complement is None:
            raise InvalidConfiguration(f"Transition/transversion scoring needs a nucleotide alphabet, not {alphabet}")
        n = len(alphabet)
        purines = {alphabet.code('A'), alphabet.code('G')}
        M = np.full((n, n), transversion, dtype=cls._DTYPE)
        for a in range(n):
            for b in range(n):
                if a == b: M[a, b] = match
                elif (a in purines) == (b in purines): M[a, b] = transition
        return cls(M)


@dataclass(frozen=True, slots=True)
class GapPenalties:
    """
    Affine gap parameters. All values are added to the score, so they must be zero or negative.

    Attributes:
        open: Score of the first column of a gap run.
        extend: Score of every further column of the run.
        end_gap: Extra score charged to every gap column of a run touching either end of a global alignment.

    Raises:
        InvalidConfiguration: If a value is positive or not finite.
    """
    open: float = -3.0
    extend: float = -1.0
    end_gap: float = -1.0

    def __post_init__(self):
        for name in ('open', 'extend', 'end_gap'):
            value = getattr(self, name)
            if not isinstance(value, (int, float, np.integer, np.floating)) or isinstance(value, bool):
                raise InvalidConfiguration(f"Gap {name} penalty must be a number, got {value!r}")
            if not isfinite(value): raise InvalidConfiguration(f"Gap {name} penalty must be finite, got {value}")
            if value > 0:
                raise InvalidConfiguration(
                    f"Gap {name} penalty must be zero or negative (penalties are added to the score), got {value}"
                )
            object.__setattr__(self, name, float(value))


class ScoringModel:
    """
    Substitution scores plus affine gap penalties for one alphabet.

    The model is immutable, so every run that holds a reference sees the same parameters from start to finish.

    Examples:
        >>> model = ScoringModel.match_mismatch(match=2, mismatch=-1)
        >>> model.score('A', 'A'), model.score('A', 'C')
        (2.0, -1.0)
        >>> model.gap_parameters()
        GapPenalties(open=-3.0, extend=-1.0, end_gap=-1.0)
    """
    __slots__ = ('_alphabet', '_matrix', '_gaps')

    def __init__(self, matrix: ScoreMatrix, gaps: GapPenalties = None, alphabet: Alphabet = Alphabet.DNA):
        if not isinstance(matrix, ScoreMatrix): matrix = ScoreMatrix(matrix)
        if matrix.shape != (len(alphabet), len(alphabet)):
            raise InvalidConfiguration(
                f"Substitution matrix shape {matrix.shape} does not match {alphabet} ({len(alphabet)} symbols)"
            )
        self._alphabet = alphabet
        self._matrix = matrix
        self._gaps = gaps or GapPenalties()

    def __repr__(self):
        return f"ScoringModel({self._alphabet}, {self.kind}, {self._gaps})"

    def __eq__(self, other):
        if not isinstance(other, ScoringModel): return NotImplemented
        return self._alphabet is other._alphabet and self._matrix == other._matrix and self._gaps == other._gaps

    def __hash__(self): return hash((self._alphabet.name, self._matrix, self._gaps))

    @property
    def alphabet(self) -> Alphabet: return self._alphabet
    @property
    def matrix(self) -> ScoreMatrix: return self._matrix
    @property
    def gaps(self) -> GapPenalties: return self._gaps
    @property
    def is_symmetric(self) -> bool: return self._matrix.is_symmetric

    @classmethod
    def match_mismatch(cls, match: float = 2, mismatch: float = -1, alphabet: Alphabet = Alphabet.DNA,
                       gap_open: float = -3, gap_extend: float = -1, end_gap: float = -1) -> 'ScoringModel':
        """Uniform match/mismatch scoring with affine gaps."""
        return cls(ScoreMatrix.build(len(alphabet), match, mismatch), GapPenalties(gap_open, gap_extend, end_gap),
                   alphabet)

    @classmethod
    def transition_transversion(cls, match: float = 2, transition: float = 0, transversion: float = -2,
                                alphabet: Alphabet = Alphabet.DNA, gap_open: float = -3, gap_extend: float = -1,
                                end_gap: float = -1) -> 'ScoringModel':
        """Nucleotide scoring that treats transitions more leniently than transversions."""
        return cls(ScoreMatrix.transition_transversion(alphabet, match, transition, transversion),
                   GapPenalties(gap_open, gap_extend, end_gap), alphabet)

    @classmethod
    def blosum62(cls, gap_open: float = -11, gap_extend: float = -1, end_gap: float = 0) -> 'ScoringModel':
        """BLOSUM62 protein scoring."""
        return cls(ScoreMatrix.blosum62(), GapPenalties(gap_open, gap_extend, end_gap), Alphabet.PROTEIN)

    @classmethod
    def from_params(cls, match: float = 2, mismatch: float = -1, gap: float = -2,
                    alphabet: Alphabet = Alphabet.DNA) -> 'ScoringModel':
        """
        The simple three-parameter scheme: one linear gap score and no terminal-gap penalty.

        Examples:
            >>> ScoringModel.from_params(2, -1, -2).gap_parameters()
            GapPenalties(open=-2.0, extend=-2.0, end_gap=0.0)
        """
        return cls(ScoreMatrix.build(len(alphabet), match, mismatch), GapPenalties(gap, gap, 0), alphabet)

    @property
    def kind(self) -> str:
        """Describes the matrix as ``'match/mismatch'``, ``'transition/transversion'`` or ``'custom'``."""
        data = np.asarray(self._matrix)
        diag = np.diag(data)
        off = data[~np.eye(len(data), dtype=bool)]
        if np.all(diag == diag[0]):
            if off.size == 0 or np.all(off == off[0]): return 'match/mismatch'
            if self._alphabet.complement is not None:
                t = ScoreMatrix.transition_transversion(
                    self._alphabet, diag[0], data[self._alphabet.code('A'), self._alphabet.code('G')],
                    data[self._alphabet.code('A'), self._alphabet.code('C')]
                )
                if t == self._matrix: return 'transition/transversion'
        return 'custom'

    def score(self, a: Union[str, bytes, int], b: Union[str, bytes, int]) -> float:
        """
        Returns the substitution score of ``a`` (first sequence) against ``b`` (second sequence).

        Raises:
            InvalidSequence: If either symbol is the gap or is not part of the alphabet.
        """
        return float(self._matrix[self._alphabet.code(a), self._alphabet.code(b)])

    def self_scores(self) -> np.ndarray:
        """Returns the score of every symbol against itself, indexed by code."""
        return np.diag(np.asarray(self._matrix)).copy()

    def gap_parameters(self) -> GapPenalties:
        """Returns the gap penalties (open, extend, end_gap)."""
        return self._gaps

    def validate(self, sequence: Union[str, bytes, Seq], alphabet: Optional[Alphabet] = None) -> Seq:
        """
        Validates a sequence against an alphabet (the model's by default).

        Returns:
            The encoded ``Seq``.

        Raises:
            InvalidSequence: If the sequence is empty or contains a symbol outside the alphabet.
        """
        return (alphabet or self._alphabet).seq(sequence)

    def match_line(self, aligned1: str, aligned2: str) -> str:
        """
        Builds the annotation line between two aligned strings.

        Examples:
            >>> ScoringModel.transition_transversion(transition=1).match_line('ACG-', 'GCGT')
            ':|| '
        """
        out = []
        for a, b in zip(aligned1.upper(), aligned2.upper()):
            if a == GAP or b == GAP: out.append(' ')
            elif a == b: out.append('|')
            elif self.score(a, b) > 0: out.append(':')
            else: out.append(' ')
        return ''.join(out)

    def score_alignment(self, aligned1: str, aligned2: str, linear_gap: Optional[float] = None) -> ScoreBreakdown:
        """
        Rescores an alignment column by column.

        With affine scoring (the default) the first gap column of a run opens and the rest extend; every column of the
        leading or trailing run of gap-containing columns also carries the end-gap penalty. With ``linear_gap`` every
        gap column scores that value and terminal gaps cost nothing extra.

        Args:
            aligned1: First aligned string.
            aligned2: Second aligned string.
            linear_gap: Optional linear gap score, used by local alignment.

        Returns:
            The ``ScoreBreakdown`` of the alignment.

        Raises:
            InvalidSequence: If the strings differ in length, hold a gap/gap column or an invalid symbol.
        """
        if len(aligned1) != len(aligned2):
            raise InvalidSequence(f"Aligned sequences differ in length ({len(aligned1)} != {len(aligned2)})")
        aligned1, aligned2 = aligned1.upper(), aligned2.upper()
        n = len(aligned1)
        has_gap = [a == GAP or b == GAP for a, b in zip(aligned1, aligned2)]
        lead = next((i for i, g in enumerate(has_gap) if not g), n)
        trail = n - next((i for i, g in enumerate(reversed(has_gap)) if not g), n)

        gaps = self._gaps
        columns = []
        total = 0.0
        in_gap1 = in_gap2 = False
        for i, (a, b) in enumerate(zip(aligned1, aligned2)):
            terminal = False
            if a == GAP and b == GAP: raise InvalidSequence(f"Column {i} has a gap in both sequences")
            if a == GAP or b == GAP:
                extending = in_gap1 if a == GAP else in_gap2
                in_gap1, in_gap2 = a == GAP, b == GAP
                kind = ColumnType.GAP_EXTEND if extending else ColumnType.GAP_OPEN
                if linear_gap is not None:
                    score = linear_gap
                else:
                    score = gaps.extend if extending else gaps.open
                    terminal = i < lead or i >= trail
                    if terminal: score += gaps.end_gap
            else:
                in_gap1 = in_gap2 = False
                score = self.score(a, b)
                kind = ColumnType.MATCH if a == b else ColumnType.MISMATCH
            total += score
            columns.append(Column(i, a, b, float(score), kind, terminal))
        return ScoreBreakdown(float(total), tuple(columns))

    def scores_equal(self, a: float, b: float) -> bool:
        """Compares two totals produced by this model, allowing for floating point accumulation error."""
        return isclose(a, b, rel_tol=1e-9, abs_tol=1e-9)
