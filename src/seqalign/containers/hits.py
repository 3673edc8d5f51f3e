"""
Containers for the heuristic search pipeline: k-mers, exact k-mer matches, seeds and seed extensions.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np

from seqalign.containers.seq import Seq
from seqalign.containers.diagonal import DiagonalRun


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Kmer:
    """A window of ``k`` symbols starting at ``position``."""
    sequence: str
    position: int

    def __len__(self): return len(self.sequence)
    def __str__(self): return self.sequence

    @property
    def end(self) -> int: return self.position + len(self.sequence)


@dataclass(frozen=True, slots=True)
class KmerMatch:
    """
    An exact occurrence of a query k-mer in the database.

    Examples:
        >>> KmerMatch(2, 7, 3).diagonal
        5
    """
    query_pos: int
    db_pos: int
    length: int

    @property
    def diagonal(self) -> int: return self.db_pos - self.query_pos
    @property
    def query_end(self) -> int: return self.query_pos + self.length
    @property
    def db_end(self) -> int: return self.db_pos + self.length


@dataclass(frozen=True, slots=True)
class MatchStatistics:
    """Summary of a ``MatchSet``. ``db_coverage`` is the fraction of database positions inside a matched window."""
    total: int
    unique_kmers: int
    unique_query_positions: int
    unique_db_positions: int
    average_per_kmer: float
    most_frequent_kmer: Optional[str]
    most_frequent_count: int
    db_coverage: float
    diagonals: int


class MatchSet:
    """
    Columnar batch of exact k-mer matches between one query and one database.

    Matches are ordered by query position, then database position. Iterating yields ``KmerMatch`` objects; the
    underlying arrays are exposed read-only for vectorised consumers.

    Args:
        query: The indexed query sequence.
        database: The scanned database sequence.
        k: The k-mer length.
        query_pos: Query start of every match.
        db_pos: Database start of every match.
    """
    __slots__ = ('_query', '_database', '_k', '_query_pos', '_db_pos')

    def __init__(self, query: Seq, database: Seq, k: int, query_pos: np.ndarray, db_pos: np.ndarray):
        if query_pos.shape != db_pos.shape: raise ValueError('Match position arrays must have the same shape')
        self._query = query
        self._database = database
        self._k = k
        self._query_pos = np.asarray(query_pos, dtype=np.int64)
        self._db_pos = np.asarray(db_pos, dtype=np.int64)
        self._query_pos.flags.writeable = False
        self._db_pos.flags.writeable = False

    def __len__(self): return self._query_pos.shape[0]
    def __bool__(self): return len(self) > 0
    def __repr__(self): return f"MatchSet(k={self._k}, n={len(self)})"

    def __iter__(self) -> Iterator[KmerMatch]:
        for q, d in zip(self._query_pos.tolist(), self._db_pos.tolist()): yield KmerMatch(q, d, self._k)

    def __getitem__(self, item: int) -> KmerMatch:
        return KmerMatch(int(self._query_pos[item]), int(self._db_pos[item]), self._k)

    @property
    def k(self) -> int: return self._k
    @property
    def query(self) -> Seq: return self._query
    @property
    def database(self) -> Seq: return self._database
    @property
    def query_pos(self) -> np.ndarray: return self._query_pos
    @property
    def db_pos(self) -> np.ndarray: return self._db_pos
    @property
    def diagonals(self) -> np.ndarray: return self._db_pos - self._query_pos

    def kmer(self, index: int) -> str:
        """Returns the matched k-mer of one match."""
        q = int(self._query_pos[index])
        return str(self._query[q:q + self._k])

    def by_diagonal(self) -> dict[int, list[KmerMatch]]:
        """
        Groups the matches by diagonal, each group ordered by query position.

        Returns:
            A dict keyed by diagonal in ascending order.
        """
        groups = {}
        for match in sorted(self, key=lambda m: (m.diagonal, m.query_pos)):
            groups.setdefault(match.diagonal, []).append(match)
        return groups

    def statistics(self) -> MatchStatistics:
        """Computes summary statistics for the matches."""
        if not len(self): return MatchStatistics(0, 0, 0, 0, 0.0, None, 0, 0.0, 0)
        counts = Counter(self.kmer(i) for i in range(len(self)))
        kmer, count = counts.most_common(1)[0]
        covered = np.zeros(len(self._database), dtype=np.bool_)
        for d in np.unique(self._db_pos): covered[d:d + self._k] = True
        return MatchStatistics(
            total=len(self),
            unique_kmers=len(counts),
            unique_query_positions=len(np.unique(self._query_pos)),
            unique_db_positions=len(np.unique(self._db_pos)),
            average_per_kmer=len(self) / len(counts),
            most_frequent_kmer=kmer,
            most_frequent_count=count,
            db_coverage=float(covered.mean()),
            diagonals=len(np.unique(self.diagonals))
        )


@dataclass(frozen=True, slots=True)
class Seed:
    """
    A cluster of exact k-mer matches lying on (or within a small tolerance of) one diagonal.

    Query and database ranges are half-open. The exact-match blocks covered by the member k-mers are merged into
    ``runs`` once, at construction.

    Attributes:
        matches: Member matches in the order they joined the seed.
        score: Accumulated score of the member k-mers.
        runs: Maximal exact-match blocks, ordered by query start.

    Examples:
        >>> seed = Seed((KmerMatch(0, 3, 3), KmerMatch(1, 4, 3)), 12.0)
        >>> seed.query_start, seed.query_end, seed.length, seed.diagonal
        (0, 4, 4, 3)
        >>> seed.runs
        (DiagonalRun(query_start=0, target_start=3, length=4, strand=<Strand.FORWARD: 1>),)
    """
    matches: tuple[KmerMatch, ...]
    score: float
    runs: tuple[DiagonalRun, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.matches: raise ValueError('A seed needs at least one match')
        object.__setattr__(self, 'runs', _merge_runs(self.matches))

    def __len__(self): return self.length

    @property
    def k(self) -> int: return self.matches[0].length
    @property
    def diagonal(self) -> int: return self.matches[0].diagonal
    @property
    def query_start(self) -> int: return min(m.query_pos for m in self.matches)
    @property
    def query_end(self) -> int: return max(m.query_end for m in self.matches)
    @property
    def db_start(self) -> int: return min(m.db_pos for m in self.matches)
    @property
    def db_end(self) -> int: return max(m.db_end for m in self.matches)
    @property
    def length(self) -> int: return self.query_end - self.query_start
    @property
    def db_length(self) -> int: return self.db_end - self.db_start
    @property
    def match_count(self) -> int: return len(self.matches)
    @property
    def density(self) -> float: return self.match_count / self.length
    @property
    def coverage(self) -> float: return self.match_count * self.k / self.length

    def overlap(self, other: 'Seed') -> tuple[int, int]:
        """Returns the number of query and database positions shared with another seed."""
        q = max(0, min(self.query_end, other.query_end) - max(self.query_start, other.query_start))
        d = max(0, min(self.db_end, other.db_end) - max(self.db_start, other.db_start))
        return q, d


@dataclass(frozen=True, slots=True)
class Extension:
    """
    A seed extended without gaps in both directions.

    Coordinates are half-open. ``left_score`` and ``right_score`` are the best running scores reached on each side,
    and the extension boundaries are where those maxima occurred.

    Attributes:
        seed: The seed that was extended.
        query_start: Start of the extended region in the query.
        query_end: End of the extended region in the query.
        db_start: Start of the extended region in the database.
        db_end: End of the extended region in the database.
        query_aligned: The query substring covered by the extension.
        db_aligned: The database substring covered by the extension.
        left_score: Contribution of the left extension.
        right_score: Contribution of the right extension.
        identity: Percentage of identical positions over the longer of the two spans. Inside a seed joined across
            an indel only its exact runs count.
        stopped_at_boundary: Whether either side ran into the end of a sequence.
        stopped_at_dropoff: Whether either side stopped because the score fell past the drop-off.
    """
    seed: Seed
    query_start: int
    query_end: int
    db_start: int
    db_end: int
    query_aligned: str
    db_aligned: str
    left_score: float
    right_score: float
    identity: float
    stopped_at_boundary: bool = False
    stopped_at_dropoff: bool = False

    def __len__(self): return self.query_end - self.query_start
    def __str__(self): return f"{self.query_aligned}\n{self.db_aligned}"

    @property
    def score(self) -> float: return self.seed.score + self.left_score + self.right_score
    @property
    def diagonal(self) -> int: return self.db_start - self.query_start


# Functions ------------------------------------------------------------------------------------------------------------
def _merge_runs(matches: tuple[KmerMatch, ...]) -> tuple[DiagonalRun, ...]:
    """Merges touching or overlapping k-mer windows on the same diagonal into exact-match blocks."""
    runs = []
    q_start = d_start = q_end = None
    for m in sorted(matches, key=lambda x: (x.diagonal, x.query_pos)):
        if q_start is not None and m.db_pos - m.query_pos == d_start - q_start and m.query_pos <= q_end:
            q_end = max(q_end, m.query_end)
            continue
        if q_start is not None: runs.append(DiagonalRun(q_start, d_start, q_end - q_start))
        q_start, d_start, q_end = m.query_pos, m.db_pos, m.query_end
    runs.append(DiagonalRun(q_start, d_start, q_end - q_start))
    return tuple(sorted(runs, key=lambda r: (r.query_start, r.target_start)))
