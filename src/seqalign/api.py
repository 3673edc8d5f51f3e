"""
One-call entry points over the engines, with the size guard applied before any quadratic work.
"""
from typing import Optional, Union

from seqalign.core.alphabet import validate_pair
from seqalign.containers.seq import Seq
from seqalign.containers.alignment import Alignment, LocalAlignment
from seqalign.containers.diagonal import DotPlot
from seqalign.containers.hits import Extension
from seqalign.engines.scoring import ScoringModel
from seqalign.engines.pairwise import GlobalAligner, LocalAligner
from seqalign.engines.seeds import SeedParams, ExtensionParams
from seqalign.engines.search import SearchPipeline
from seqalign.engines.dotplot import DiagonalMatcher
from seqalign.utils.guard import SizeGuard, DEFAULT_GUARD

SeqLike = Union[str, bytes, Seq]


# Functions ------------------------------------------------------------------------------------------------------------
def align_global(seq1: SeqLike, seq2: SeqLike, scoring: ScoringModel = None,
                 guard: SizeGuard = DEFAULT_GUARD) -> Alignment:
    """
    Aligns two sequences end to end with affine gaps.

    Args:
        seq1: First sequence.
        seq2: Second sequence.
        scoring: Scoring model (match 2, mismatch -1, gap open -3, extend -1, end gap -1 on DNA by default).
        guard: Size guard applied to the length product.

    Returns:
        The optimal ``Alignment``.

    Raises:
        InvalidSequence: If either sequence is empty or invalid for the model's alphabet.
        SequenceTooLarge: If the guard's action is ``'raise'`` and the pair is too large.

    Examples:
        >>> align_global('ATCG', 'ATCG').score
        8.0
    """
    scoring = scoring or ScoringModel.match_mismatch()
    s1, s2 = scoring.validate(seq1), scoring.validate(seq2)
    guard.check(len(s1), len(s2), 'Global alignment')
    return GlobalAligner(scoring).align(s1, s2)


def find_local_alignments(seq1: SeqLike, seq2: SeqLike, scoring: ScoringModel = None, threshold: float = 5,
                          gap: Optional[float] = None, guard: SizeGuard = DEFAULT_GUARD) -> list[LocalAlignment]:
    """
    Finds every distinct local alignment scoring at least ``threshold``.

    Args:
        seq1: First sequence.
        seq2: Second sequence.
        scoring: Scoring model (match/mismatch DNA by default).
        threshold: Minimum score of a reported alignment.
        gap: Linear gap score, defaults to the model's gap-open penalty.
        guard: Size guard applied to the length product.

    Returns:
        Alignments ordered by score descending; empty when none reaches the threshold.

    Examples:
        >>> find_local_alignments('AAAA', 'CCCC')
        []
    """
    scoring = scoring or ScoringModel.match_mismatch()
    s1, s2 = scoring.validate(seq1), scoring.validate(seq2)
    guard.check(len(s1), len(s2), 'Local alignment')
    return LocalAligner(scoring, gap).align(s1, s2, threshold)


def search(query: SeqLike, database: SeqLike, k: int = 3, scoring: ScoringModel = None,
           seed_params: SeedParams = None, extension_params: ExtensionParams = None) -> list[Extension]:
    """
    Runs a complete seed-and-extend search.

    Use ``SearchPipeline`` directly to step through the stages and re-run them with new parameters.

    Args:
        query: The query sequence.
        database: The database sequence.
        k: The k-mer length.
        scoring: Scoring model for seed scores and extension.
        seed_params: Seed clustering parameters.
        extension_params: Extension parameters.

    Returns:
        Extensions ordered by total score descending.
    """
    return SearchPipeline(query, database, scoring).run(k, seed_params, extension_params)


def build_dotplot(seq1: SeqLike, seq2: SeqLike, min_run_length: int = 1, window: int = 1, max_mismatches: int = 0,
                  guard: SizeGuard = DEFAULT_GUARD) -> DotPlot:
    """
    Builds the forward and reverse-complement exact-match runs of two sequences.

    The alphabet is detected from the sequences (DNA, then RNA, then protein).

    Examples:
        >>> plot = build_dotplot('ACGT', 'ACGT')
        >>> plot.forward[0].length
        4
    """
    matcher = DiagonalMatcher(min_run_length, window, max_mismatches)
    s1, s2 = validate_pair(seq1, seq2)
    guard.check(len(s1), len(s2), 'Dotplot')
    return matcher.build(s1, s2)
