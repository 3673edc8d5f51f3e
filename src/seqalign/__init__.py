"""
Pairwise sequence alignment and seed-and-extend search for DNA, RNA and protein sequences.

The exact aligners (Gotoh global, multi-hit Smith-Waterman local), the k-mer seed-and-extend pipeline and the
dotplot matcher all share one ``ScoringModel``. The functions re-exported here are the one-call entry points; the
engines live in ``seqalign.engines``.

Examples:
    >>> from seqalign import align_global
    >>> print(align_global('ATCGATCG', 'ATCAATCG'))
    ATCGATCG
    ||| ||||
    ATCAATCG
"""
from seqalign.core.alphabet import Alphabet, InvalidSequence, InvalidConfiguration, validate_pair
from seqalign.containers.seq import Seq
from seqalign.containers.alignment import Alignment, LocalAlignment
from seqalign.containers.diagonal import Strand, DiagonalRun, DotPlot
from seqalign.containers.hits import KmerMatch, Seed, Extension
from seqalign.engines.scoring import ScoringModel, ScoreMatrix, GapPenalties
from seqalign.engines.pairwise import GlobalAligner, LocalAligner, InternalInvariantViolation
from seqalign.engines.index import KmerIndex, MatchFinder
from seqalign.engines.seeds import SeedParams, SeedBuilder, ExtensionParams, SeedExtender
from seqalign.engines.search import SearchPipeline, Stage
from seqalign.engines.dotplot import DiagonalMatcher
from seqalign.utils.guard import SizeGuard, SizeWarning, SequenceTooLarge
from seqalign.api import align_global, find_local_alignments, search, build_dotplot

__version__ = '0.1.0'
