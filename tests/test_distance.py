"""Tests for the substitution distance matrix."""

import numpy as np
import pytest

from posetmsa.aggregate import make_all_pairwise_alignments
from posetmsa.columns import Column, get_multiple_sequence_alignment, make_columns
from posetmsa.distance import DistanceMatrix, get_distance_matrix, subs_per_site


@pytest.fixture
def little_distances(little_sequences, table_aligner, params):
    pairs = make_all_pairwise_alignments(little_sequences, params, table_aligner)
    columns = get_multiple_sequence_alignment(little_sequences, pairs, 0.2)
    return get_distance_matrix(columns, little_sequences, 100000)


@pytest.fixture
def default_distances(little_sequences, params):
    pairs = make_all_pairwise_alignments(little_sequences, params)
    columns = get_multiple_sequence_alignment(little_sequences, pairs, 0.2)
    return get_distance_matrix(columns, little_sequences, 100000)


LITTLE_SUBS_PER_SITE = [
    (0, 1, 0.2),
    (0, 2, 0.5),
    (0, 3, 0.0),
    (1, 2, 0.5),
    (1, 3, 0.0),
    (2, 3, 0.0),
]


class TestGetDistanceMatrix:
    @pytest.mark.parametrize("i, j, expected", LITTLE_SUBS_PER_SITE)
    def test_little_sequences(self, little_distances, i, j, expected):
        assert subs_per_site(i, j, little_distances, 4) == pytest.approx(expected, abs=1e-5)

    @pytest.mark.parametrize("i, j, expected", LITTLE_SUBS_PER_SITE)
    def test_little_sequences_default_aligner(self, default_distances, i, j, expected):
        assert subs_per_site(i, j, default_distances, 4) == pytest.approx(expected, abs=1e-5)

    def test_symmetric(self, little_distances):
        for i in range(4):
            for j in range(i + 1, 4):
                assert subs_per_site(i, j, little_distances, 4) == subs_per_site(
                    j, i, little_distances, 4
                )

    def test_counts(self, little_distances):
        assert little_distances.matches[0, 1] == 4
        assert little_distances.mismatches[0, 1] == 1
        assert little_distances.total_pairs == 9

    def test_singletons_record_nothing(self, little_sequences):
        matrix = get_distance_matrix(make_columns(little_sequences), little_sequences, 100)
        assert matrix.total_pairs == 0
        assert np.all(matrix.to_array() == 0.0)

    def test_max_pairs_caps_observations(self):
        seqs = ["AAAA", "AAAT", "AATT"]
        columns = [Column.of([(0, p), (1, p), (2, p)]) for p in range(4)]
        capped = get_distance_matrix(columns, seqs, 5)
        assert capped.total_pairs == 5
        full = get_distance_matrix(columns, seqs, 1000)
        assert full.total_pairs == 12
        assert full.subs_per_site(0, 2) == pytest.approx(0.5)

    def test_case_insensitive(self):
        seqs = ["acgt", "ACGA"]
        columns = [Column.of([(0, p), (1, p)]) for p in range(4)]
        assert get_distance_matrix(columns, seqs, 100).subs_per_site(0, 1) == pytest.approx(0.25)

    def test_no_sequences(self):
        matrix = get_distance_matrix([], [], 10)
        assert matrix.sequence_number == 0


class TestDistanceMatrix:
    def test_to_array_missing(self):
        matrix = DistanceMatrix.empty(3)
        matrix.record(0, 1, same=False)
        arr = matrix.to_array(missing=np.inf)
        assert arr[0, 1] == arr[1, 0] == 1.0
        assert arr[0, 2] == np.inf
        assert arr[2, 2] == 0.0

    def test_to_dict(self):
        matrix = DistanceMatrix.empty(2)
        matrix.record(0, 1, same=True)
        assert matrix.to_dict()["subs_per_site"] == [[0.0, 0.0], [0.0, 0.0]]
        assert matrix.to_dict()["matches"] == [[0, 1], [1, 0]]

    def test_out_of_range(self):
        with pytest.raises(IndexError):
            subs_per_site(0, 5, DistanceMatrix.empty(2), 2)
