"""Tests for the multiple alignment entry points."""

import time

import pytest

from posetmsa.msa import (
    align_sequences,
    make_alignment,
    make_alignment_using_all_pairs,
    resolve_consistent_pairs,
)
from posetmsa.pairwise import PROB_ONE, AlignedPair, PairwiseAlignmentParameters


class CountingAligner:
    def __init__(self):
        self.calls = 0

    def align(self, seq_a, seq_b, params):
        self.calls += 1
        return []


class DiagonalAligner:
    def align(self, seq_a, seq_b, params):
        return [(9 * PROB_ONE // 10, i, i) for i in range(min(len(seq_a), len(seq_b)))]


class TestResolveConsistentPairs:
    def test_highest_score_wins(self):
        seqs = ["AC", "CA"]
        pairs = [
            AlignedPair(10, 0, 0, 1, 1),
            AlignedPair(20, 0, 1, 1, 0),
        ]
        assert resolve_consistent_pairs(seqs, pairs) == [pairs[1]]

    def test_empty(self):
        assert resolve_consistent_pairs([], []) == []


class TestAllPairs:
    def test_little_sequences(self, little_sequences, table_aligner, params, check_alignment):
        pairs = make_alignment_using_all_pairs(little_sequences, 0.0, params, table_aligner)
        check_alignment(little_sequences, pairs)
        assert len(pairs) == 9

    def test_threshold_drops_weak_pairs(self, little_sequences, table_aligner, params):
        pairs = make_alignment_using_all_pairs(little_sequences, 0.8, params, table_aligner)
        assert all(p.score >= 0.8 * PROB_ONE for p in pairs)
        assert len(pairs) == 6

    @pytest.mark.parametrize("seqs", [[], [""], ["", ""], ["ACGT"], ["ACGT", "ACGT", ""]])
    def test_degenerate_inputs(self, seqs, noisy_aligner, params, check_alignment):
        pairs = make_alignment_using_all_pairs(seqs, 0.0, params, noisy_aligner)
        check_alignment(seqs, pairs)

    def test_random_families(self, sequence_family, noisy_aligner, params, check_alignment):
        for seed in range(100):
            seqs = sequence_family(seed)
            check_alignment(seqs, make_alignment_using_all_pairs(seqs, 0.5, params, noisy_aligner))


class TestSampledAlignment:
    def test_random_families(self, sequence_family, noisy_aligner, params, check_alignment):
        for seed in range(100):
            seqs = sequence_family(seed)
            trees = seed % 5
            pairs = make_alignment(seqs, trees, 10000000, 0.5, params, noisy_aligner, seed=seed)
            check_alignment(seqs, pairs)

    def test_small_inputs_use_all_pairs(self, little_sequences, table_aligner, params):
        sampled = make_alignment(little_sequences, 2, 1000, 0.0, params, table_aligner)
        assert sampled == make_alignment_using_all_pairs(
            little_sequences, 0.0, params, table_aligner
        )

    def test_sampling_reduces_work(self, params):
        seqs = ["ACGT" * 2 + "A" * i for i in range(20)]
        aligner = CountingAligner()
        make_alignment(seqs, 1, 1000, 0.0, params, aligner, seed=3)
        # Reference star plus at most one more spanning tree.
        assert aligner.calls <= 2 * (len(seqs) - 1)

    def test_same_seed_same_output(self, sequence_family, noisy_aligner, params):
        seqs = [s + "ACGTTGCA" for s in sequence_family(11) + sequence_family(12)]
        first = make_alignment(seqs, 1, 1000, 0.0, params, noisy_aligner, seed=7)
        second = make_alignment(seqs, 1, 1000, 0.0, params, noisy_aligner, seed=7)
        assert first == second

    @pytest.mark.parametrize("seqs", [[], [""], ["A"], ["", "", "", "", "", "", "", ""]])
    def test_degenerate_inputs(self, seqs, noisy_aligner, params, check_alignment):
        pairs = make_alignment(seqs, 1, 100, 0.0, params, noisy_aligner)
        check_alignment(seqs, pairs)
        assert pairs == []


class TestAlignSequences:
    def test_little_sequences(self, little_sequences, table_aligner, params):
        result = align_sequences(little_sequences, params, table_aligner, gap_gamma=0.2)
        assert len(result.aligned_pairs) == 9
        assert result.rows == ["AGTTT-", "AGTGTG", "AC----", "------"]
        assert result.length == 6
        assert result.distances.subs_per_site(0, 1) == pytest.approx(0.2)
        assert result.to_dict()["columns"] == 6

    def test_default_aligner_end_to_end(self, check_alignment):
        seqs = ["ACGTTGCAAGT", "ACGTTGCTAGT", "ACGTGCAAGT"]
        with PairwiseAlignmentParameters(min_posterior=0.05) as params:
            result = align_sequences(seqs, params, threshold=0.1)
        check_alignment(seqs, result.aligned_pairs)
        assert [r.replace("-", "") for r in result.rows] == seqs
        assert result.distances.subs_per_site(0, 1) < 0.3

    def test_sampled_mode(self, sequence_family, noisy_aligner, params):
        seqs = sequence_family(5)
        result = align_sequences(seqs, params, noisy_aligner, spanning_tree_count=2, seed=1)
        assert [r.replace("-", "") for r in result.rows] == seqs

    def test_empty(self, params):
        result = align_sequences([], params)
        assert result.rows == []
        assert result.columns == []
        assert result.length == 0


class TestDefaultAligner:
    def test_little_sequences_all_pairs(self, little_sequences, params, check_alignment):
        pairs = make_alignment_using_all_pairs(little_sequences, 0.0, params)
        check_alignment(little_sequences, pairs)
        assert len(pairs) == 9

    def test_random_families_both_entry_points(self, sequence_family, params, check_alignment):
        for seed in range(12):
            seqs = sequence_family(seed)
            check_alignment(seqs, make_alignment_using_all_pairs(seqs, 0.5, params))
            sampled = make_alignment(seqs, seed % 3, 10000000, 0.5, params, seed=seed)
            check_alignment(seqs, sampled)


class TestScaling:
    def test_hundreds_of_sequences(self, params, check_alignment):
        seqs = [("ACGTTGCA" * 7)[: 45 + k % 10] for k in range(200)]
        start = time.perf_counter()
        pairs = make_alignment(seqs, 2, 100000, 0.0, params, DiagonalAligner(), seed=1)
        elapsed = time.perf_counter() - start
        check_alignment(seqs, pairs)
        assert len(pairs) >= 45 * (len(seqs) - 1)
        assert elapsed < 60
