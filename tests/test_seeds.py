import numpy as np
import pytest
from seqalign.core.alphabet import Alphabet
from seqalign.containers.diagonal import DiagonalRun
from seqalign.containers.hits import KmerMatch, Seed, MatchSet
from seqalign.engines.scoring import ScoringModel, InvalidConfiguration
from seqalign.engines.index import KmerIndex, MatchFinder
from seqalign.engines.seeds import (SeedParams, SeedBuilder, ExtensionParams, SeedExtender,
                                    remove_redundant_seeds)


def find(query: str, database: str, k: int = 3) -> MatchSet:
    return MatchFinder().find(KmerIndex(Alphabet.DNA.seq(query), k), database)


def match_set(query: str, database: str, k: int, pairs: list[tuple[int, int]]) -> MatchSet:
    q, d = zip(*pairs)
    return MatchSet(Alphabet.DNA.seq(query), Alphabet.DNA.seq(database), k, np.array(q), np.array(d))


class TestSeedParams:
    def test_defaults(self):
        assert SeedParams() == SeedParams(min_matches=2, max_gap=1)

    @pytest.mark.parametrize('kwargs', [{'min_matches': 0}, {'max_gap': -1}, {'min_matches': 1.5}])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidConfiguration):
            SeedParams(**kwargs)

    def test_extension_params(self):
        assert ExtensionParams().dropoff == 5.0
        with pytest.raises(InvalidConfiguration, match="dropoff"):
            ExtensionParams(dropoff=-1)


class TestSeed:
    def test_derived_values(self):
        seed = Seed((KmerMatch(0, 3, 3), KmerMatch(1, 4, 3), KmerMatch(3, 6, 3)), 18.0)
        assert (seed.query_start, seed.query_end, seed.db_start, seed.db_end) == (0, 6, 3, 9)
        assert seed.length == seed.db_length == 6
        assert seed.match_count == 3
        assert seed.density == pytest.approx(0.5)
        assert seed.coverage == pytest.approx(1.5)
        assert seed.diagonal == 3

    def test_runs_merge_overlapping_kmers(self):
        seed = Seed((KmerMatch(0, 3, 3), KmerMatch(1, 4, 3), KmerMatch(5, 8, 3)), 18.0)
        assert seed.runs == (DiagonalRun(0, 3, 4), DiagonalRun(5, 8, 3))

    def test_runs_split_by_diagonal(self):
        seed = Seed((KmerMatch(0, 0, 3), KmerMatch(3, 4, 3)), 12.0)
        assert [r.diagonal for r in seed.runs] == [0, 1]

    def test_empty(self):
        with pytest.raises(ValueError):
            Seed((), 0.0)


class TestSeedBuilder:
    def test_single_diagonal(self):
        seeds = SeedBuilder().build(find('ATCGAT', 'GGATCGATGG'))
        assert len(seeds) == 1
        seed = seeds[0]
        assert (seed.query_start, seed.query_end, seed.db_start, seed.db_end) == (0, 6, 2, 8)
        assert seed.match_count == 4
        assert seed.score == 4 * 3 * 2.0

    def test_score_uses_self_scores(self):
        seeds = SeedBuilder(ScoringModel.match_mismatch(match=5)).build(find('ATCGAT', 'GGATCGATGG'))
        assert seeds[0].score == 4 * 3 * 5.0

    def test_min_matches(self):
        matches = find('ATCGAT', 'GGATCGATGG')
        assert SeedBuilder(params=SeedParams(min_matches=5)).build(matches) == []
        singles = SeedBuilder(params=SeedParams(min_matches=1)).build(matches)
        # The stray GAT on diagonal -2 becomes its own seed
        assert sorted(s.diagonal for s in singles) == [-2, 2]

    def test_gap_within_tolerance(self):
        # Same diagonal, one uncovered position between the k-mers
        seeds = SeedBuilder().build(match_set('AAAAAAAAA', 'AAAAAAAAA', 3, [(0, 0), (4, 4)]))
        assert len(seeds) == 1
        assert seeds[0].match_count == 2

    def test_gap_beyond_tolerance(self):
        seeds = SeedBuilder().build(match_set('AAAAAAAAA', 'AAAAAAAAA', 3, [(0, 0), (5, 5)]))
        assert seeds == []
        wider = SeedBuilder(params=SeedParams(max_gap=2)).build(
            match_set('AAAAAAAAA', 'AAAAAAAAA', 3, [(0, 0), (5, 5)])
        )
        assert len(wider) == 1

    def test_neighbouring_diagonal_joins(self):
        # A one-base indel moves the second k-mer to diagonal 1
        seeds = SeedBuilder().build(match_set('AAAAAAAAA', 'AAAAAAAAAA', 3, [(0, 0), (3, 4)]))
        assert len(seeds) == 1
        assert [m.diagonal for m in seeds[0].matches] == [0, 1]
        assert seeds[0].diagonal == 0

    def test_far_diagonal_does_not_join(self):
        seeds = SeedBuilder().build(match_set('AAAAAAAAA', 'AAAAAAAAAAA', 3, [(0, 0), (3, 5)]))
        assert seeds == []

    def test_members_within_tolerance(self):
        matches = find('ATCGATCGAAGGCTTACG', 'TTATCGATCGAAGGCTCACGGATCG')
        for seed in SeedBuilder().build(matches):
            ordered = seed.matches
            for a, b in zip(ordered, ordered[1:]):
                assert abs(a.diagonal - b.diagonal) <= 1

    def test_ordering(self):
        seeds = SeedBuilder().build(find('ATCGATCGAA', 'GGGATCGATCGAAGGG'))
        keys = [(-s.score, s.query_start, s.db_start) for s in seeds]
        assert keys == sorted(keys)
        assert seeds[0].diagonal == 3
        assert seeds[0].match_count == 8

    def test_no_matches(self):
        assert SeedBuilder().build(find('AAAA', 'CCCC')) == []


class TestSeedExtender:
    def test_surrounded_by_mismatches(self):
        # Seed GATTACA flanked by mismatching bases on both sides
        query, database = 'CCCCCCCCGATTACACCCCCCCC', 'TTTTTTTTGATTACATTTTTTTT'
        seed = Seed((KmerMatch(8, 8, 7),), 14.0)
        ext = SeedExtender().extend(seed, query, database)
        assert ext.score == seed.score
        assert (ext.left_score, ext.right_score) == (0.0, 0.0)
        assert (ext.query_start, ext.query_end) == (8, 15)
        assert ext.query_aligned == 'GATTACA'
        assert ext.stopped_at_dropoff

    def test_extends_through_matches(self):
        query = database = 'ACGTTGCAACGT'
        seed = Seed((KmerMatch(4, 4, 3),), 6.0)
        ext = SeedExtender().extend(seed, query, database)
        assert (ext.query_start, ext.query_end, ext.db_start, ext.db_end) == (0, 12, 0, 12)
        assert ext.left_score == 8.0
        assert ext.right_score == 10.0
        assert ext.score == 24.0
        assert ext.identity == 100.0
        assert ext.stopped_at_boundary

    def test_boundary_is_best_position(self):
        # Right side: +2 +2 then four mismatches, so the extension ends after the two matches
        query, database = 'AAAAAGGCCCC', 'AAAAAGGTTTT'
        seed = Seed((KmerMatch(0, 0, 5),), 10.0)
        ext = SeedExtender().extend(seed, query, database)
        assert ext.right_score == 4.0
        assert ext.query_end == 7
        assert ext.query_aligned == 'AAAAAGG'

    def test_dropoff_bridges_mismatch(self):
        # One mismatch (-1) then matches: the running score never falls 5 below the maximum
        query, database = 'AAAAATGGGG', 'AAAAACGGGG'
        seed = Seed((KmerMatch(0, 0, 5),), 10.0)
        ext = SeedExtender().extend(seed, query, database)
        assert ext.right_score == -1.0 + 8.0
        assert ext.query_end == 10
        assert ext.identity == pytest.approx(90.0)

    def test_identity_across_indel(self):
        # The database carries an extra T after GATTACA, so the second k-mer sits on diagonal 1
        query, database = 'TGATTACAGCTTGCAA', 'TGATTACATGCTTGCAA'
        seed = Seed((KmerMatch(1, 1, 7), KmerMatch(8, 9, 7)), 28.0)
        ext = SeedExtender().extend(seed, query, database)
        assert (ext.query_start, ext.query_end, ext.db_start, ext.db_end) == (0, 16, 0, 17)
        assert ext.score == 32.0
        # 14 run positions and both single-base flanks, over the 17-base database span
        assert ext.identity == pytest.approx(100 * 16 / 17)

    def test_zero_dropoff_stops_at_first_loss(self):
        query, database = 'AAAAATGGGG', 'AAAAACGGGG'
        seed = Seed((KmerMatch(0, 0, 5),), 10.0)
        ext = SeedExtender(params=ExtensionParams(dropoff=0)).extend(seed, query, database)
        assert ext.right_score == 0.0
        assert ext.query_end == 5

    def test_extend_all_sorted(self):
        query, database = 'ATCGATCGAA', 'GGGATCGATCGAAGGG'
        seeds = SeedBuilder().build(find(query, database))
        extensions = SeedExtender().extend_all(seeds, query, database)
        assert len(extensions) == len(seeds)
        scores = [e.score for e in extensions]
        assert scores == sorted(scores, reverse=True)
        best = extensions[0]
        assert (best.query_start, best.query_end) == (0, 10)
        assert best.identity == 100.0

    def test_extend_all_pool(self):
        query = 'ACGT' * 40
        seeds = [Seed((KmerMatch(i, i, 4),), 8.0) for i in range(0, 150, 2)]
        extensions = SeedExtender().extend_all(seeds, query, query)
        assert len(extensions) == len(seeds)
        assert all(e.identity == 100.0 for e in extensions)

    def test_seed_outside_sequences(self):
        with pytest.raises(ValueError, match="outside"):
            SeedExtender().extend(Seed((KmerMatch(5, 5, 3),), 6.0), 'ACGTAC', 'ACGTACGT')


class TestRemoveRedundantSeeds:
    def test_overlapping_dropped(self):
        best = Seed((KmerMatch(0, 0, 3), KmerMatch(1, 1, 3), KmerMatch(2, 2, 3)), 18.0)
        weaker = Seed((KmerMatch(1, 1, 3), KmerMatch(2, 2, 3)), 12.0)
        elsewhere = Seed((KmerMatch(10, 20, 3), KmerMatch(11, 21, 3)), 12.0)
        assert remove_redundant_seeds([weaker, elsewhere, best]) == [best, elsewhere]

    def test_threshold(self):
        a = Seed((KmerMatch(0, 0, 4),), 8.0)
        b = Seed((KmerMatch(2, 2, 4),), 6.0)
        assert remove_redundant_seeds([a, b], overlap=0.5) == [a, b]
        assert remove_redundant_seeds([a, b], overlap=0.4) == [a]

    def test_invalid_overlap(self):
        with pytest.raises(InvalidConfiguration):
            remove_redundant_seeds([], overlap=1.5)
