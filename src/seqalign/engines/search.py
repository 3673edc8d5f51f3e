"""
Step-through seed-and-extend search (index, match, seed, extend) with per-stage caching.
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Hashable, Optional, Union

from seqalign.containers.seq import Seq
from seqalign.containers.hits import Extension
from seqalign.engines.scoring import ScoringModel
from seqalign.engines.index import KmerIndex, MatchFinder
from seqalign.engines.seeds import SeedParams, SeedBuilder, ExtensionParams, SeedExtender


# Classes --------------------------------------------------------------------------------------------------------------
class Stage(IntEnum):
    """Stages of the search, in execution order."""
    INDEX = 0
    MATCH = 1
    SEED = 2
    EXTEND = 3

    def __str__(self): return self.name.lower()


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    The stored result of one completed stage.

    Attributes:
        stage: The stage that produced the output.
        params: The parameters the stage ran with.
        output: ``KmerIndex``, ``MatchSet``, ``list[Seed]`` or ``list[Extension]`` depending on the stage.
    """
    stage: Stage
    params: Hashable
    output: Any


class SearchPipeline:
    """
    Caller-held state of a seed-and-extend search between one query and one database.

    Each stage consumes the snapshot of the stage before it. Re-running a stage with the parameters it last ran with
    returns the stored snapshot; running it with new parameters recomputes that stage only and discards every later
    snapshot, since those were derived from the old output.

    Args:
        query: The query sequence.
        database: The database sequence.
        scoring: Scoring model used for seed scores and extension (match/mismatch DNA by default).

    Raises:
        InvalidSequence: If either sequence is invalid for the model's alphabet.

    Examples:
        >>> pipeline = SearchPipeline('ATCGATCGAA', 'GGGATCGATCGAAGGG')
        >>> best = pipeline.run(k=3)[0]
        >>> best.query_aligned, best.identity
        ('ATCGATCGAA', 100.0)
        >>> [str(stage) for stage in pipeline.completed]
        ['index', 'match', 'seed', 'extend']
    """
    __slots__ = ('_model', '_query', '_database', '_snapshots')

    def __init__(self, query: Union[str, bytes, Seq], database: Union[str, bytes, Seq], scoring: ScoringModel = None):
        self._model = scoring or ScoringModel.match_mismatch()
        self._query = self._model.validate(query)
        self._database = self._model.validate(database)
        self._snapshots: dict[Stage, Snapshot] = {}

    def __repr__(self): return f"SearchPipeline(query={self._query!r}, database={self._database!r})"

    @property
    def model(self) -> ScoringModel: return self._model
    @property
    def query(self) -> Seq: return self._query
    @property
    def database(self) -> Seq: return self._database

    @property
    def completed(self) -> tuple[Stage, ...]:
        """Stages whose snapshot is currently stored, in execution order."""
        return tuple(stage for stage in Stage if stage in self._snapshots)

    def snapshot(self, stage: Stage) -> Optional[Snapshot]:
        """Returns the stored snapshot of a stage, or ``None`` if it has not run since the last upstream change."""
        return self._snapshots.get(Stage(stage))

    def reset(self):
        """Discards every snapshot."""
        self._snapshots.clear()

    def index(self, k: int = 3) -> Snapshot:
        """
        Indexes the query k-mers.

        Raises:
            InvalidConfiguration: If ``k`` is invalid for the alphabet.
            InvalidSequence: If the query is shorter than ``k``.
        """
        return self._run(Stage.INDEX, k, lambda: KmerIndex(self._query, k))

    def match(self) -> Snapshot:
        """
        Finds the database occurrences of the indexed k-mers.

        Raises:
            RuntimeError: If the query has not been indexed.
            InvalidSequence: If the database is shorter than ``k``.
        """
        return self._run(Stage.MATCH, None, lambda: MatchFinder().find(self._upstream(Stage.MATCH), self._database))

    def seed(self, params: SeedParams = None) -> Snapshot:
        """
        Clusters the matches into seeds.

        Raises:
            RuntimeError: If the matches have not been found.
        """
        params = params or SeedParams()
        return self._run(Stage.SEED, params,
                         lambda: SeedBuilder(self._model, params).build(self._upstream(Stage.SEED)))

    def extend(self, params: ExtensionParams = None) -> Snapshot:
        """
        Extends every seed.

        Raises:
            RuntimeError: If the seeds have not been built.
        """
        params = params or ExtensionParams()
        return self._run(
            Stage.EXTEND, params,
            lambda: SeedExtender(self._model, params).extend_all(self._upstream(Stage.EXTEND), self._query,
                                                                 self._database)
        )

    def run(self, k: int = 3, seed_params: SeedParams = None,
            extension_params: ExtensionParams = None) -> list[Extension]:
        """
        Runs every stage, reusing stored snapshots whose parameters are unchanged.

        Returns:
            Extensions ordered by total score descending.
        """
        self.index(k)
        self.match()
        self.seed(seed_params)
        return self.extend(extension_params).output

    def _upstream(self, stage: Stage):
        return self._snapshots[Stage(stage - 1)].output

    def _run(self, stage: Stage, params: Hashable, compute: Callable[[], Any]) -> Snapshot:
        if stage > Stage.INDEX and Stage(stage - 1) not in self._snapshots:
            raise RuntimeError(f"The {stage} stage needs the output of the {Stage(stage - 1)} stage, run it first")
        if (current := self._snapshots.get(stage)) is not None and current.params == params: return current
        snapshot = Snapshot(stage, params, compute())
        for later in Stage:
            if later > stage: self._snapshots.pop(later, None)
        self._snapshots[stage] = snapshot
        return snapshot
