import numpy as np
import pytest
from seqalign.core.alphabet import Alphabet, InvalidSequence
from seqalign.containers.alignment import GAP, ColumnType
from seqalign.engines.scoring import ScoringModel
from seqalign.engines.pairwise import GlobalAligner, Aligner, AlignmentMode, InternalInvariantViolation

PAIRS = [
    ('ATCG', 'ATCG'),
    ('ATCGATCG', 'ATCAATCG'),
    ('ACGT', 'AGT'),
    ('AAAA', 'A'),
    ('A', 'TTTT'),
    ('GATTACA', 'GCATGCT'),
    ('ACGTACGTTTGACCA', 'ACGTTTGACGTACCA'),
]

MODELS = [
    ScoringModel.match_mismatch(),
    ScoringModel.match_mismatch(gap_open=-5, gap_extend=-2, end_gap=0),
    ScoringModel.from_params(2, -1, -2),
    ScoringModel.transition_transversion(),
]


class TestGlobalScenarios:
    def test_identical(self):
        aln = GlobalAligner(ScoringModel.match_mismatch()).align('ATCG', 'ATCG')
        assert aln.score == 8.0
        assert aln.aligned1 == aln.aligned2 == 'ATCG'
        assert aln.match_line == '||||'

    def test_single_mismatch(self):
        aln = GlobalAligner(ScoringModel.match_mismatch()).align('ATCGATCG', 'ATCAATCG')
        assert aln.score == 13.0
        assert GAP not in aln.aligned1 + aln.aligned2
        assert aln.columns[3].kind is ColumnType.MISMATCH
        assert [c.index for c in aln.columns if c.kind is ColumnType.MISMATCH] == [3]

    def test_leading_end_gap(self):
        aln = GlobalAligner(ScoringModel.match_mismatch()).align('ACGT', 'CGT')
        assert (aln.aligned1, aln.aligned2) == ('ACGT', '-CGT')
        # open -3 and end gap -1 on the terminal column, then three matches
        assert aln.score == 2.0
        assert aln.columns[0].terminal

    def test_start_state_prefers_gap(self):
        # 'AA'/'A-' and 'AA'/'-A' both score -2; the traceback starts in Ix
        aln = GlobalAligner(ScoringModel.match_mismatch()).align('AA', 'A')
        assert aln.score == -2.0
        assert (aln.aligned1, aln.aligned2) == ('AA', 'A-')

    def test_case_insensitive(self):
        aln = GlobalAligner().align('atcg', 'ATCG')
        assert aln.score == 8.0

    def test_protein(self):
        model = ScoringModel.blosum62()
        aln = GlobalAligner(model).align('HEAGAWGHEE', 'PAWHEAE')
        assert aln.ungapped() == ('HEAGAWGHEE', 'PAWHEAE')
        assert aln.score == model.score_alignment(aln.aligned1, aln.aligned2).total

    def test_str(self):
        aln = GlobalAligner().align('ATCGATCG', 'ATCAATCG')
        assert str(aln) == 'ATCGATCG\n||| ||||\nATCAATCG'


class TestGlobalLaws:
    @pytest.mark.parametrize('model', MODELS)
    @pytest.mark.parametrize('seq1, seq2', PAIRS)
    def test_round_trip(self, model, seq1, seq2):
        aln = GlobalAligner(model).align(seq1, seq2)
        assert len(aln.aligned1) == len(aln.aligned2)
        assert aln.ungapped() == (seq1, seq2)

    @pytest.mark.parametrize('model', MODELS)
    @pytest.mark.parametrize('seq1, seq2', PAIRS)
    def test_score_consistency(self, model, seq1, seq2):
        aln = GlobalAligner(model).align(seq1, seq2)
        assert aln.score == pytest.approx(sum(c.score for c in aln.columns))
        assert aln.score == pytest.approx(model.score_alignment(aln.aligned1, aln.aligned2).total)

    @pytest.mark.parametrize('seq', ['A', 'ACGT', 'GATTACAGATTACA'])
    def test_self_alignment(self, seq):
        aln = GlobalAligner(ScoringModel.match_mismatch()).align(seq, seq)
        assert GAP not in aln.aligned1
        assert aln.score == 2.0 * len(seq)
        assert aln.identity == 100.0

    def test_deterministic(self):
        aligner = GlobalAligner()
        first = aligner.align('GATTACA', 'GCATGCT')
        for _ in range(3):
            again = aligner.align('GATTACA', 'GCATGCT')
            assert (again.aligned1, again.aligned2, again.score) == (first.aligned1, first.aligned2, first.score)

    def test_end_gap_penalty_shifts_score(self):
        free = GlobalAligner(ScoringModel.match_mismatch(end_gap=0)).align('ACGT', 'CGT')
        charged = GlobalAligner(ScoringModel.match_mismatch(end_gap=-1)).align('ACGT', 'CGT')
        assert free.score == 3.0
        assert charged.score == 2.0


class TestGlobalErrors:
    @pytest.mark.parametrize('seq1, seq2', [('', 'ACGT'), ('ACGT', '  ')])
    def test_empty(self, seq1, seq2):
        with pytest.raises(InvalidSequence, match="empty"):
            GlobalAligner().align(seq1, seq2)

    def test_invalid_symbol(self):
        with pytest.raises(InvalidSequence, match="'X' at position 2"):
            GlobalAligner().align('ACXT', 'ACGT')

    def test_gap_symbol_in_input(self):
        with pytest.raises(InvalidSequence, match="'-'"):
            GlobalAligner().align('AC-T', 'ACGT')

    def test_wrong_alphabet(self):
        with pytest.raises(InvalidSequence, match="Expected a DNA sequence"):
            GlobalAligner().align(Alphabet.PROTEIN.seq('MKV'), 'ACGT')

    def test_score_violation_detected(self, monkeypatch):
        kernels = Aligner._REGISTRY[AlignmentMode.GLOBAL]
        monkeypatch.setitem(kernels, 'trace', lambda tM, tX, tY, m, n, state: np.zeros(m, dtype=np.uint8))
        with pytest.raises(InternalInvariantViolation, match="disagrees with the DP optimum"):
            GlobalAligner().align('ATCG', 'TCGA')

    def test_round_trip_violation_detected(self, monkeypatch):
        kernels = Aligner._REGISTRY[AlignmentMode.GLOBAL]
        monkeypatch.setitem(kernels, 'trace', lambda tM, tX, tY, m, n, state: np.zeros(m - 1, dtype=np.uint8))
        with pytest.raises(InternalInvariantViolation, match="does not reproduce"):
            GlobalAligner().align('ATCG', 'ATCG')
