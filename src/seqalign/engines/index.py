"""
Exact k-mer indexing of a query and lookup of its k-mers in a database sequence.

Windows are packed into 64-bit rolling hashes (2 bits per nucleotide, 5 per amino acid) so that lookup is a sort plus
binary search over integers rather than a scan over substrings.
"""
from dataclasses import dataclass
from typing import Union

import numpy as np

from seqalign.core.alphabet import Alphabet, InvalidSequence, InvalidConfiguration
from seqalign.containers.seq import Seq
from seqalign.containers.hits import Kmer, MatchSet
from seqalign.utils.resources import RESOURCES, jit

if RESOURCES.has_module('numba'):
    from numba import prange
else:
    prange = range


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class KmerStatistics:
    """Composition summary of an indexed query. ``complexity`` is unique / total (lower means more repetitive)."""
    total: int
    unique: int
    duplicates: int
    max_frequency: int
    most_common: tuple[str, ...]
    average_frequency: float
    complexity: float


class KmerIndex:
    """
    Every length-``k`` window of a query, hashed for exact lookup.

    Args:
        query: The query sequence; strings are validated by alphabet detection.
        k: The k-mer length.

    Raises:
        InvalidConfiguration: If ``k`` is not positive or too large for 64-bit hashing with the query's alphabet.
        InvalidSequence: If the query is invalid or shorter than ``k``.

    Examples:
        >>> index = KmerIndex('ATCGATCG', 3)
        >>> len(index)
        6
        >>> index.frequencies()['ATC']
        2
    """
    __slots__ = ('_query', '_k', '_bps', '_mask', '_hashes')

    def __init__(self, query: Union[str, bytes, Seq], k: int):
        query = query if isinstance(query, Seq) else Alphabet.detect(query).seq(query)
        try: bps, mask = query.alphabet.masker(k)
        except ValueError as e: raise InvalidConfiguration(str(e)) from None
        if len(query) < k: raise InvalidSequence(f"Query length ({len(query)}) is shorter than k={k}")
        self._query = query
        self._k = k
        self._bps = np.uint64(bps)
        self._mask = np.uint64(mask)
        self._hashes = _rolling_hash_kernel(query.encoded, k, self._bps, self._mask)
        self._hashes.flags.writeable = False

    def __len__(self): return self._hashes.shape[0]
    def __repr__(self): return f"KmerIndex(k={self._k}, n={len(self)})"

    @property
    def k(self) -> int: return self._k
    @property
    def query(self) -> Seq: return self._query
    @property
    def alphabet(self) -> Alphabet: return self._query.alphabet
    @property
    def hashes(self) -> np.ndarray: return self._hashes

    def hash(self, sequence: Union[str, bytes, Seq]) -> np.ndarray:
        """Hashes every window of another sequence with this index's parameters."""
        sequence = self.alphabet.seq(sequence)
        return _rolling_hash_kernel(sequence.encoded, self._k, self._bps, self._mask)

    def kmers(self) -> list[Kmer]:
        """Returns every window in query order."""
        text = str(self._query)
        return [Kmer(text[i:i + self._k], i) for i in range(len(self))]

    def frequencies(self) -> dict[str, int]:
        """Returns the number of occurrences of each distinct k-mer, in order of first occurrence."""
        _, first, counts = np.unique(self._hashes, return_index=True, return_counts=True)
        text = str(self._query)
        order = np.argsort(first, kind='stable')
        return {text[i:i + self._k]: int(c) for i, c in zip(first[order].tolist(), counts[order].tolist())}

    def statistics(self) -> KmerStatistics:
        """Computes composition statistics for the indexed k-mers."""
        freqs = self.frequencies()
        total, unique = len(self), len(freqs)
        max_freq = max(freqs.values())
        return KmerStatistics(
            total=total,
            unique=unique,
            duplicates=total - unique,
            max_frequency=max_freq,
            most_common=tuple(kmer for kmer, c in freqs.items() if c == max_freq),
            average_frequency=total / unique,
            complexity=unique / total
        )


class MatchFinder:
    """
    Finds every exact occurrence of an indexed query's k-mers in a database.

    Database hashes are sorted once (stably, so equal k-mers keep their positional order) and each query window is
    located by binary search.

    Examples:
        >>> matches = MatchFinder().find(KmerIndex('ATCG', 3), 'GGATCGG')
        >>> [(m.query_pos, m.db_pos) for m in matches]
        [(0, 2), (1, 3)]
    """
    __slots__ = ()

    def find(self, index: KmerIndex, database: Union[str, bytes, Seq]) -> MatchSet:
        """
        Looks up every query k-mer in the database.

        Args:
            index: The indexed query.
            database: The database sequence, validated against the query's alphabet.

        Returns:
            A ``MatchSet`` ordered by query position, then database position.

        Raises:
            InvalidSequence: If the database is invalid or shorter than the k-mer length.
        """
        database = index.alphabet.seq(database)
        if len(database) < index.k:
            raise InvalidSequence(f"Database length ({len(database)}) is shorter than k={index.k}")
        db_hashes = index.hash(database)
        order = np.argsort(db_hashes, kind='stable')
        q_pos, d_pos = _find_hits_kernel(
            index.hashes, np.arange(len(index), dtype=np.int64), db_hashes[order], order.astype(np.int64)
        )
        return MatchSet(index.query, database, index.k, q_pos, d_pos)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _rolling_hash_kernel(int_seq, k, bits, mask):
    n = len(int_seq)
    if n < k: return np.empty(0, dtype=np.uint64)
    res = np.empty(n - k + 1, dtype=np.uint64)
    curr = np.uint64(0)
    for i in range(k):
        curr = (curr << bits) | np.uint64(int_seq[i])
    res[0] = curr
    for i in range(1, n - k + 1):
        curr = ((curr & mask) << bits) | np.uint64(int_seq[i + k - 1])
        res[i] = curr
    return res


@jit(nopython=True, cache=True, nogil=True, parallel=True)
def _find_hits_kernel(q_hashes, q_pos, db_hashes, db_pos):
    n_q = len(q_hashes)
    counts = np.zeros(n_q, dtype=np.int64)
    starts = np.zeros(n_q, dtype=np.int64)
    for i in prange(n_q):
        h = q_hashes[i]
        start = np.searchsorted(db_hashes, h, side='left')
        end = np.searchsorted(db_hashes, h, side='right')
        counts[i] = end - start
        starts[i] = start
    total_hits = np.sum(counts)
    offsets = np.zeros(n_q, dtype=np.int64)
    curr = 0
    for i in range(n_q):
        offsets[i] = curr
        curr += counts[i]
    out_q = np.empty(total_hits, dtype=np.int64)
    out_d = np.empty(total_hits, dtype=np.int64)
    for i in prange(n_q):
        count = counts[i]
        if count == 0: continue
        off = offsets[i]
        s_idx = starts[i]
        for j in range(count):
            out_q[off + j] = q_pos[i]
            out_d[off + j] = db_pos[s_idx + j]
    return out_q, out_d
