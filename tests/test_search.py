import pytest
from seqalign.core.alphabet import InvalidSequence
from seqalign.containers.hits import MatchSet
from seqalign.engines.index import KmerIndex
from seqalign.engines.scoring import ScoringModel, InvalidConfiguration
from seqalign.engines.seeds import SeedParams, ExtensionParams
from seqalign.engines.search import Stage, Snapshot, SearchPipeline

QUERY = 'ATCGATCGAA'
DATABASE = 'GGGATCGATCGAAGGG'


@pytest.fixture
def pipeline():
    return SearchPipeline(QUERY, DATABASE)


class TestStages:
    def test_outputs(self, pipeline):
        assert isinstance(pipeline.index(3).output, KmerIndex)
        assert isinstance(pipeline.match().output, MatchSet)
        seeds = pipeline.seed().output
        extensions = pipeline.extend().output
        assert len(extensions) == len(seeds)

    def test_snapshot_contents(self, pipeline):
        snapshot = pipeline.index(4)
        assert isinstance(snapshot, Snapshot)
        assert snapshot.stage is Stage.INDEX
        assert snapshot.params == 4
        assert pipeline.snapshot(Stage.INDEX) is snapshot

    def test_out_of_order(self, pipeline):
        with pytest.raises(RuntimeError, match="index stage"):
            pipeline.match()
        pipeline.index(3)
        with pytest.raises(RuntimeError, match="match stage"):
            pipeline.seed()
        with pytest.raises(RuntimeError, match="seed stage"):
            pipeline.extend()

    def test_completed(self, pipeline):
        assert pipeline.completed == ()
        pipeline.index(3)
        pipeline.match()
        assert pipeline.completed == (Stage.INDEX, Stage.MATCH)
        assert pipeline.snapshot(Stage.SEED) is None


class TestCaching:
    def test_unchanged_params_reuse_snapshot(self, pipeline):
        pipeline.run(k=3)
        snapshots = [pipeline.snapshot(stage) for stage in Stage]
        pipeline.run(k=3)
        assert [pipeline.snapshot(stage) for stage in Stage] == snapshots
        assert all(pipeline.snapshot(s) is snap for s, snap in zip(Stage, snapshots))

    def test_equal_params_reuse_snapshot(self, pipeline):
        pipeline.run(k=3)
        seeds = pipeline.snapshot(Stage.SEED)
        assert pipeline.seed(SeedParams(min_matches=2, max_gap=1)) is seeds

    def test_changed_params_discard_downstream(self, pipeline):
        pipeline.run(k=3)
        index, matches = pipeline.snapshot(Stage.INDEX), pipeline.snapshot(Stage.MATCH)
        pipeline.seed(SeedParams(min_matches=3))
        assert pipeline.completed == (Stage.INDEX, Stage.MATCH, Stage.SEED)
        assert pipeline.snapshot(Stage.INDEX) is index
        assert pipeline.snapshot(Stage.MATCH) is matches
        assert pipeline.snapshot(Stage.EXTEND) is None

    def test_changed_k_discards_everything_after_index(self, pipeline):
        pipeline.run(k=3)
        pipeline.index(4)
        assert pipeline.completed == (Stage.INDEX,)
        assert pipeline.index(4).output.k == 4

    def test_rerun_extension_only(self, pipeline):
        pipeline.run(k=3)
        seeds = pipeline.snapshot(Stage.SEED)
        tight = pipeline.extend(ExtensionParams(dropoff=0))
        assert pipeline.snapshot(Stage.SEED) is seeds
        assert tight.params == ExtensionParams(dropoff=0)

    def test_failed_stage_keeps_state(self, pipeline):
        pipeline.run(k=3)
        before = pipeline.completed
        with pytest.raises(InvalidConfiguration):
            pipeline.index(0)
        assert pipeline.completed == before

    def test_reset(self, pipeline):
        pipeline.run(k=3)
        pipeline.reset()
        assert pipeline.completed == ()


class TestSearchResults:
    def test_full_query_recovered(self, pipeline):
        best = pipeline.run(k=3)[0]
        assert (best.query_start, best.query_end) == (0, 10)
        assert (best.db_start, best.db_end) == (3, 13)
        assert best.identity == 100.0
        assert best.query_aligned == best.db_aligned == QUERY

    def test_ordered_by_score(self, pipeline):
        scores = [e.score for e in pipeline.run(k=3)]
        assert scores == sorted(scores, reverse=True)

    def test_no_seeds(self):
        assert SearchPipeline('AAAAAA', 'CCCCCC').run(k=3) == []

    def test_database_shorter_than_k(self):
        pipeline = SearchPipeline('ACGTACGT', 'ACG')
        pipeline.index(4)
        with pytest.raises(InvalidSequence, match="Database length"):
            pipeline.match()

    def test_invalid_sequence(self):
        with pytest.raises(InvalidSequence):
            SearchPipeline('ACGU', 'ACGT')

    def test_protein(self):
        model = ScoringModel.blosum62()
        results = SearchPipeline('MKVLAWHEAG', 'PPMKVLAWHEAGPP', model).run(k=3)
        best = results[0]
        assert best.query_aligned == 'MKVLAWHEAG'
        assert best.db_start == 2
