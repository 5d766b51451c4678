"""Pairwise substitution distances derived from alignment columns."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, Sequence

import numpy as np

from posetmsa.columns import Column

LOGGER = logging.getLogger(__name__)


@dataclass
class DistanceMatrix:
    """Match and mismatch counts for every unordered pair of sequences.

    Both arrays are symmetric ``(n, n)`` int64 matrices; the diagonal is
    unused.
    """

    matches: np.ndarray
    mismatches: np.ndarray

    @classmethod
    def empty(cls, sequence_number: int) -> "DistanceMatrix":
        shape = (sequence_number, sequence_number)
        return cls(np.zeros(shape, dtype=np.int64), np.zeros(shape, dtype=np.int64))

    @property
    def sequence_number(self) -> int:
        return self.matches.shape[0]

    @property
    def total_pairs(self) -> int:
        return int(np.triu(self.matches + self.mismatches, k=1).sum())

    def record(self, seq1: int, seq2: int, same: bool) -> None:
        counts = self.matches if same else self.mismatches
        counts[seq1, seq2] += 1
        counts[seq2, seq1] += 1

    def subs_per_site(self, seq1: int, seq2: int) -> float:
        """Fraction of shared columns where the two sequences differ."""
        matches = int(self.matches[seq1, seq2])
        mismatches = int(self.mismatches[seq1, seq2])
        if matches + mismatches == 0:
            return 0.0
        return mismatches / (matches + mismatches)

    def to_array(self, missing: float = 0.0) -> np.ndarray:
        """Full float matrix of substitutions per site.

        Pairs that never shared a column get ``missing``; the diagonal is 0.
        """
        observed = self.matches + self.mismatches
        with np.errstate(invalid="ignore", divide="ignore"):
            subs = np.where(observed > 0, self.mismatches / np.maximum(observed, 1), missing)
        np.fill_diagonal(subs, 0.0)
        return subs.astype(float)

    def to_dict(self) -> dict:
        return {
            "matches": self.matches.tolist(),
            "mismatches": self.mismatches.tolist(),
            "subs_per_site": self.to_array().tolist(),
        }


def get_distance_matrix(
    columns: Iterable[Column],
    sequences: Sequence[str],
    max_pairs_to_consider: int,
) -> DistanceMatrix:
    """Count matches and mismatches for every pair of sequences sharing a column.

    Columns are visited in sorted order and accumulation stops once
    ``max_pairs_to_consider`` pair observations have been recorded.
    """
    matrix = DistanceMatrix.empty(len(sequences))
    recorded = 0
    for column in sorted(columns):
        if recorded >= max_pairs_to_consider:
            break
        if len(column) < 2:
            continue
        for (seq1, pos1), (seq2, pos2) in combinations(column.members, 2):
            if recorded >= max_pairs_to_consider:
                break
            same = sequences[seq1][pos1].upper() == sequences[seq2][pos2].upper()
            matrix.record(seq1, seq2, same)
            recorded += 1
    LOGGER.debug("Recorded %d pair observations for %d sequences", recorded, len(sequences))
    return matrix


def subs_per_site(
    seq1: int, seq2: int, distance_counts: DistanceMatrix, seq_count: int
) -> float:
    """Substitutions per site between two sequences; 0.0 if never aligned."""
    if not (0 <= seq1 < seq_count and 0 <= seq2 < seq_count):
        raise IndexError(f"sequence pair ({seq1}, {seq2}) out of range for {seq_count} sequences")
    return distance_counts.subs_per_site(seq1, seq2)
