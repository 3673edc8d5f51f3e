import numpy as np
import pytest
from seqalign.core.alphabet import Alphabet, InvalidSequence
from seqalign.containers.hits import Kmer, KmerMatch
from seqalign.engines.scoring import InvalidConfiguration
from seqalign.engines.index import KmerIndex, MatchFinder


class TestKmerIndex:
    def test_windows(self):
        index = KmerIndex('ATCGATCG', 3)
        assert len(index) == 6
        assert [k.sequence for k in index.kmers()] == ['ATC', 'TCG', 'CGA', 'GAT', 'ATC', 'TCG']
        assert index.kmers()[2] == Kmer('CGA', 2)

    def test_equal_kmers_equal_hashes(self):
        index = KmerIndex('ATCGATCG', 3)
        assert index.hashes[0] == index.hashes[4]
        assert index.hashes[0] != index.hashes[1]
        assert index.hashes.dtype == np.uint64

    def test_hash_is_packed_codes(self):
        # T=0, C=1, A=2, G=3 at 2 bits per symbol
        index = KmerIndex('ACG', 3)
        assert int(index.hashes[0]) == (2 << 4) | (1 << 2) | 3

    def test_frequencies(self):
        index = KmerIndex('ATCGATCG', 3)
        assert index.frequencies() == {'ATC': 2, 'TCG': 2, 'CGA': 1, 'GAT': 1}

    def test_statistics(self):
        stats = KmerIndex('ATCGATCG', 3).statistics()
        assert (stats.total, stats.unique, stats.duplicates, stats.max_frequency) == (6, 4, 2, 2)
        assert stats.most_common == ('ATC', 'TCG')
        assert stats.average_frequency == pytest.approx(1.5)
        assert stats.complexity == pytest.approx(4 / 6)

    def test_k_equals_length(self):
        assert len(KmerIndex('ACGT', 4)) == 1

    def test_k_one(self):
        index = KmerIndex('ACGA', 1)
        assert index.frequencies() == {'A': 2, 'C': 1, 'G': 1}

    def test_long_k(self):
        seq = 'ACGT' * 8
        index = KmerIndex(seq, 32)
        assert len(index) == 1

    def test_protein(self):
        index = KmerIndex(Alphabet.PROTEIN.seq('MKVLAMKV'), 3)
        assert index.alphabet is Alphabet.PROTEIN
        assert index.frequencies()['MKV'] == 2

    def test_query_shorter_than_k(self):
        with pytest.raises(InvalidSequence, match="shorter than k=5"):
            KmerIndex('ACGT', 5)

    @pytest.mark.parametrize('k', [0, -1, 33])
    def test_invalid_k(self, k):
        with pytest.raises(InvalidConfiguration):
            KmerIndex('ACGT' * 10, k)

    def test_protein_k_limit(self):
        with pytest.raises(InvalidConfiguration, match="too large"):
            KmerIndex(Alphabet.PROTEIN.seq('M' * 20), 13)


class TestMatchFinder:
    def test_find(self):
        matches = MatchFinder().find(KmerIndex('ATCG', 3), 'GGATCGG')
        assert [(m.query_pos, m.db_pos, m.length) for m in matches] == [(0, 2, 3), (1, 3, 3)]
        assert all(m.diagonal == 2 for m in matches)

    def test_every_occurrence_ordered(self):
        matches = MatchFinder().find(KmerIndex('ATCGATCGAA', 3), 'GGGATCGATCGAAGGG')
        pairs = list(zip(matches.query_pos.tolist(), matches.db_pos.tolist()))
        assert pairs == sorted(pairs)
        assert (0, 3) in pairs and (0, 7) in pairs
        assert len(matches) == 15

    def test_matches_are_exact(self):
        query, database = 'GATTACAGATTACA', 'TTACAGGATTACCAGATTACA'
        matches = MatchFinder().find(KmerIndex(query, 4), database)
        for m in matches:
            assert query[m.query_pos:m.query_end] == database[m.db_pos:m.db_end]

    def test_no_matches(self):
        matches = MatchFinder().find(KmerIndex('AAAA', 3), 'CCCCCC')
        assert len(matches) == 0
        assert not matches
        assert matches.statistics().total == 0

    def test_database_shorter_than_k(self):
        with pytest.raises(InvalidSequence, match="Database length"):
            MatchFinder().find(KmerIndex('ACGTACGT', 5), 'ACGT')

    def test_database_wrong_alphabet(self):
        with pytest.raises(InvalidSequence):
            MatchFinder().find(KmerIndex('ACGT', 2), 'ACGU')

    def test_by_diagonal(self):
        matches = MatchFinder().find(KmerIndex('ATCGATCGAA', 3), 'GGGATCGATCGAAGGG')
        groups = matches.by_diagonal()
        assert list(groups) == sorted(groups)
        assert len(groups[3]) == 8
        assert [m.query_pos for m in groups[3]] == list(range(8))
        assert groups[-1] == [KmerMatch(3, 2, 3), KmerMatch(4, 3, 3), KmerMatch(5, 4, 3), KmerMatch(6, 5, 3)]

    def test_statistics(self):
        matches = MatchFinder().find(KmerIndex('ATCG', 3), 'GGATCGGATCGG')
        stats = matches.statistics()
        assert stats.total == 4
        assert stats.unique_kmers == 2
        assert stats.unique_query_positions == 2
        assert stats.unique_db_positions == 4
        assert stats.average_per_kmer == 2.0
        assert stats.most_frequent_count == 2
        assert stats.diagonals == 2
        # Positions 2-5 and 7-10 of 12
        assert stats.db_coverage == pytest.approx(8 / 12)
