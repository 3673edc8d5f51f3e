"""
Seed-and-extend heuristics: clustering exact k-mer matches into seeds and extending seeds without gaps.
"""
from dataclasses import dataclass
from typing import Iterable, Union

import numpy as np

from seqalign.containers.seq import Seq
from seqalign.containers.hits import KmerMatch, MatchSet, Seed, Extension
from seqalign.core.alphabet import InvalidConfiguration
from seqalign.engines.scoring import ScoringModel
from seqalign.utils.resources import RESOURCES, jit


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SeedParams:
    """
    Parameters of seed clustering.

    Attributes:
        min_matches: Minimum number of k-mer matches a seed needs to be reported.
        max_gap: Tolerance on the query gap, the database gap and their difference when a match joins a seed. It is
            also the furthest neighbouring diagonal a match may join.
    """
    min_matches: int = 2
    max_gap: int = 1

    def __post_init__(self):
        if not isinstance(self.min_matches, (int, np.integer)) or self.min_matches < 1:
            raise InvalidConfiguration(f"min_matches must be a positive integer, got {self.min_matches!r}")
        if not isinstance(self.max_gap, (int, np.integer)) or self.max_gap < 0:
            raise InvalidConfiguration(f"max_gap must be a non-negative integer, got {self.max_gap!r}")


@dataclass(frozen=True, slots=True)
class ExtensionParams:
    """
    Parameters of ungapped seed extension.

    Attributes:
        dropoff: Extension in one direction stops once the running score falls more than this below its maximum.
    """
    dropoff: float = 5.0

    def __post_init__(self):
        if not isinstance(self.dropoff, (int, float, np.number)) or not np.isfinite(self.dropoff) or self.dropoff < 0:
            raise InvalidConfiguration(f"dropoff must be a finite non-negative number, got {self.dropoff!r}")
        object.__setattr__(self, 'dropoff', float(self.dropoff))


class _OpenSeed:
    """Mutable accumulator for a seed still being walked."""
    __slots__ = ('matches', 'score', 'query_end', 'db_end')

    def __init__(self, match: KmerMatch, score: float):
        self.matches = [match]
        self.score = score
        self.query_end = match.query_end
        self.db_end = match.db_end

    def accepts(self, match: KmerMatch, tolerance: int) -> bool:
        query_gap = match.query_pos - self.query_end
        db_gap = match.db_pos - self.db_end
        return query_gap <= tolerance and db_gap <= tolerance and abs(query_gap - db_gap) <= tolerance

    def add(self, match: KmerMatch, score: float):
        self.matches.append(match)
        self.score += score
        self.query_end = match.query_end
        self.db_end = match.db_end

    def close(self) -> Seed: return Seed(tuple(self.matches), self.score)


class SeedBuilder:
    """
    Clusters exact k-mer matches into seeds.

    Matches are walked in database order (stable, so ties keep query order). One seed is open per diagonal; a match
    joins the open seed on its own diagonal if it is close enough, otherwise the nearest accepting seed on a diagonal
    within ``max_gap``. When no seed accepts it, the seed on its own diagonal is closed and a new one starts.

    Each member match adds the sum of the self-substitution scores of its k-mer, i.e. ``k * match`` for a
    match/mismatch model.

    Args:
        model: Scoring model providing the self-substitution scores.
        params: Clustering parameters.

    Examples:
        >>> from seqalign.engines.index import KmerIndex, MatchFinder
        >>> matches = MatchFinder().find(KmerIndex('ATCGAT', 3), 'GGATCGATGG')
        >>> seeds = SeedBuilder().build(matches)
        >>> seeds[0].query_start, seeds[0].query_end, seeds[0].diagonal, seeds[0].score
        (0, 6, 2, 24.0)
    """
    __slots__ = ('_model', '_params')

    def __init__(self, model: ScoringModel = None, params: SeedParams = None):
        self._model = model or ScoringModel.match_mismatch()
        self._params = params or SeedParams()

    @property
    def model(self) -> ScoringModel: return self._model
    @property
    def params(self) -> SeedParams: return self._params

    def build(self, matches: MatchSet) -> list[Seed]:
        """
        Walks the matches and returns the seeds holding at least ``min_matches`` matches.

        Returns:
            Seeds ordered by score descending, then query start, then database start.
        """
        if not len(matches): return []
        tolerance = self._params.max_gap
        # Per-window score: prefix sums of the self-substitution scores along the query
        self_scores = self._model.self_scores()[matches.query.encoded]
        prefix = np.concatenate(([0.0], np.cumsum(self_scores)))
        k = matches.k

        open_seeds: dict[int, _OpenSeed] = {}
        closed: list[Seed] = []

        def close(seed: _OpenSeed):
            if len(seed.matches) >= self._params.min_matches: closed.append(seed.close())

        for idx in np.argsort(matches.db_pos, kind='stable').tolist():
            match = matches[idx]
            score = float(prefix[match.query_pos + k] - prefix[match.query_pos])
            diagonal = match.diagonal
            joined = None
            for offset in _nearest_first(tolerance):
                candidate = open_seeds.get(diagonal + offset)
                if candidate is not None and candidate.accepts(match, tolerance):
                    joined = diagonal + offset
                    break
            if joined is None:
                if (stale := open_seeds.pop(diagonal, None)) is not None: close(stale)
                open_seeds[diagonal] = _OpenSeed(match, score)
                continue
            seed = open_seeds.pop(joined)
            seed.add(match, score)
            # The seed now ends on the match's diagonal
            if (stale := open_seeds.pop(diagonal, None)) is not None: close(stale)
            open_seeds[diagonal] = seed

        for seed in open_seeds.values(): close(seed)
        return sorted(closed, key=lambda s: (-s.score, s.query_start, s.db_start))


class SeedExtender:
    """
    Extends seeds in both directions with ungapped substitution scores and an X-drop cut-off.

    Each side starts next to the seed with running and maximum scores of zero; a new maximum is recorded only when the
    running score strictly exceeds it. A side stops at a sequence boundary or once the running score falls more than
    ``dropoff`` below the maximum. Its contribution is the maximum, and its boundary is where the maximum occurred.

    Args:
        model: Scoring model providing the substitution matrix.
        params: Extension parameters.
    """
    __slots__ = ('_model', '_params')
    _POOL_THRESHOLD = 64

    def __init__(self, model: ScoringModel = None, params: ExtensionParams = None):
        self._model = model or ScoringModel.match_mismatch()
        self._params = params or ExtensionParams()

    @property
    def model(self) -> ScoringModel: return self._model
    @property
    def params(self) -> ExtensionParams: return self._params

    def extend(self, seed: Seed, query: Union[str, bytes, Seq], database: Union[str, bytes, Seq]) -> Extension:
        """
        Extends one seed.

        Args:
            seed: The seed to extend.
            query: The query the seed was found in.
            database: The database the seed was found in.

        Returns:
            The ``Extension``; its score is ``seed.score + left_score + right_score``.

        Raises:
            ValueError: If the seed lies outside either sequence.
        """
        query, database = self._model.validate(query), self._model.validate(database)
        return self._extend(seed, query, database)

    def extend_all(self, seeds: Iterable[Seed], query: Union[str, bytes, Seq],
                   database: Union[str, bytes, Seq]) -> list[Extension]:
        """
        Extends every seed, fanning out over the shared thread pool when there are many.

        Returns:
            Extensions ordered by total score descending (ties keep seed order).
        """
        query, database = self._model.validate(query), self._model.validate(database)
        seeds = list(seeds)
        if len(seeds) >= self._POOL_THRESHOLD:
            extensions = list(RESOURCES.pool.map(lambda s: self._extend(s, query, database), seeds))
        else:
            extensions = [self._extend(s, query, database) for s in seeds]
        return sorted(extensions, key=lambda e: -e.score)

    def _extend(self, seed: Seed, query: Seq, database: Seq) -> Extension:
        if seed.query_end > len(query) or seed.db_end > len(database) or seed.query_start < 0 or seed.db_start < 0:
            raise ValueError(f"Seed at query {seed.query_start}-{seed.query_end}, database {seed.db_start}-"
                             f"{seed.db_end} lies outside the sequences ({len(query)}, {len(database)})")
        matrix = np.asarray(self._model.matrix)
        q, d, dropoff = query.encoded, database.encoded, self._params.dropoff
        left, n_left, left_edge, left_drop = _xdrop_kernel(q, d, matrix, seed.query_start - 1, seed.db_start - 1,
                                                           -1, dropoff)
        right, n_right, right_edge, right_drop = _xdrop_kernel(q, d, matrix, seed.query_end, seed.db_end, 1, dropoff)

        q_start, q_end = seed.query_start - n_left, seed.query_end + n_right
        d_start, d_end = seed.db_start - n_left, seed.db_end + n_right
        q_text, d_text = str(query[q_start:q_end]), str(database[d_start:d_end])
        if len({run.diagonal for run in seed.runs}) == 1:
            identical = sum(1 for a, b in zip(q_text, d_text) if a == b)
        else:
            # Across an indel only the exact runs and the two flanks are in register
            identical = len({i for run in seed.runs for i, _ in run.cells()})
            identical += sum(1 for a, b in zip(q_text[:n_left], d_text[:n_left]) if a == b)
            identical += sum(1 for a, b in zip(q_text[len(q_text) - n_right:], d_text[len(d_text) - n_right:])
                             if a == b)
        return Extension(
            seed=seed, query_start=q_start, query_end=q_end, db_start=d_start, db_end=d_end,
            query_aligned=q_text, db_aligned=d_text, left_score=float(left), right_score=float(right),
            identity=100 * identical / max(len(q_text), len(d_text)),
            stopped_at_boundary=bool(left_edge or right_edge), stopped_at_dropoff=bool(left_drop or right_drop)
        )


# Functions ------------------------------------------------------------------------------------------------------------
def _nearest_first(tolerance: int) -> Iterable[int]:
    """Diagonal offsets 0, -1, +1, -2, +2 ... up to the tolerance."""
    yield 0
    for step in range(1, tolerance + 1):
        yield -step
        yield step


def remove_redundant_seeds(seeds: Iterable[Seed], overlap: float = 0.5) -> list[Seed]:
    """
    Drops seeds that mostly overlap a better seed.

    A seed is redundant when the shared query positions and the shared database positions with an already kept seed
    both exceed ``overlap`` as a fraction of its own query and database lengths.

    Args:
        seeds: Seeds in any order.
        overlap: Overlap fraction threshold in ``[0, 1]``.

    Returns:
        The kept seeds, ordered by score descending.

    Raises:
        InvalidConfiguration: If ``overlap`` is outside ``[0, 1]``.
    """
    if not 0 <= overlap <= 1: raise InvalidConfiguration(f"Overlap must be between 0 and 1, got {overlap}")
    kept = []
    for seed in sorted(seeds, key=lambda s: -s.score):
        for better in kept:
            q, d = seed.overlap(better)
            if q / seed.length > overlap and d / seed.db_length > overlap: break
        else:
            kept.append(seed)
    return kept


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _xdrop_kernel(q_seq, d_seq, matrix, q, d, step, dropoff):
    running = 0.0
    best = 0.0
    best_len = 0
    n = 0
    while 0 <= q < len(q_seq) and 0 <= d < len(d_seq):
        running += matrix[q_seq[q], d_seq[d]]
        n += 1
        if running > best:
            best = running
            best_len = n
        if running < best - dropoff: return best, best_len, False, True
        q += step
        d += step
    return best, best_len, True, False
