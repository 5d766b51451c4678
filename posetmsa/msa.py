"""Multiple sequence alignment from pairwise evidence.

Two entry points turn a list of sequences into a mutually consistent set of
aligned pairs:

* :func:`make_alignment_using_all_pairs` aligns every pair of sequences;
* :func:`make_alignment` samples pairs with spanning trees so the number of
  pairwise alignments grows linearly with the number of sequences.

In both, pairwise alignment runs in parallel and the consistency resolution
that follows is sequential: aligned pairs are replayed in descending score
order into one :class:`~posetmsa.poset.PosetAlignment` and only the accepted
ones are returned. :func:`align_sequences` goes on to build columns, gapped
rows and the distance matrix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from posetmsa.aggregate import aggregate_pairwise_alignments, filter_by_probability, flatten
from posetmsa.columns import Column, columns_to_rows, get_multiple_sequence_alignment
from posetmsa.distance import DistanceMatrix, get_distance_matrix
from posetmsa.pairwise import AlignedPair, PairwiseAligner, PairwiseAlignmentParameters
from posetmsa.poset import PosetAlignment
from posetmsa.scheduler import (
    get_all_pairs,
    get_reference_pairwise_alignments,
    get_spanning_tree_pairs,
    make_rng,
    schedule_size,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_GAP_GAMMA = 0.5
DEFAULT_MAX_PAIRS_TO_CONSIDER = 10_000_000


def _greedy_order(pair: AlignedPair):
    return -pair.score, pair.seq_x, pair.x, pair.seq_y, pair.y


def resolve_consistent_pairs(
    sequences: Sequence[str], aligned_pairs: Iterable[AlignedPair]
) -> List[AlignedPair]:
    """Keep the highest-scoring aligned pairs that fit one consistent alignment."""
    poset = PosetAlignment(len(sequences))
    accepted = []
    candidates = sorted(aligned_pairs, key=_greedy_order)
    for p in candidates:
        p.validate(sequences)
        if poset.add(p.seq_x, p.x, p.seq_y, p.y):
            accepted.append(p)
    LOGGER.info(
        "Accepted %d of %d aligned pairs into %d columns",
        len(accepted), len(candidates), len(poset),
    )
    return accepted


def make_alignment_using_all_pairs(
    sequences: Sequence[str],
    threshold: float,
    params: PairwiseAlignmentParameters,
    aligner: Optional[PairwiseAligner] = None,
) -> List[AlignedPair]:
    """Align every pair of sequences and resolve the evidence greedily."""
    kept, _ = aggregate_pairwise_alignments(
        sequences, get_all_pairs(len(sequences)), threshold, params, aligner
    )
    return resolve_consistent_pairs(sequences, kept)


def make_alignment(
    sequences: Sequence[str],
    spanning_tree_count: int,
    max_pairs_to_consider: int,
    threshold: float,
    params: PairwiseAlignmentParameters,
    aligner: Optional[PairwiseAligner] = None,
    seed: Optional[int] = 0,
    gap_gamma: float = DEFAULT_GAP_GAMMA,
) -> List[AlignedPair]:
    """Align a sampled set of sequence pairs and resolve the evidence greedily.

    The reference star (every sequence against sequence 0) is aligned first.
    Its columns give a distance matrix, built from at most
    ``max_pairs_to_consider`` pair observations, which guides the first of
    ``spanning_tree_count`` spanning trees; the remaining trees are random.
    When the sample would not be smaller than all pairs, all pairs are used.
    """
    n = len(sequences)
    tree_count = max(1, spanning_tree_count)
    if n < 3 or schedule_size(n) <= (tree_count + 1) * (n - 1):
        LOGGER.info("Sampling %d sequences would not save work, aligning all pairs", n)
        return make_alignment_using_all_pairs(sequences, threshold, params, aligner)

    star = get_reference_pairwise_alignments(sequences)
    star_kept, results = aggregate_pairwise_alignments(sequences, star, threshold, params, aligner)
    reference_columns = get_multiple_sequence_alignment(
        sequences, resolve_consistent_pairs(sequences, star_kept), gap_gamma
    )
    distances = get_distance_matrix(reference_columns, sequences, max_pairs_to_consider)

    rng = make_rng(seed)
    sampled = get_spanning_tree_pairs(
        n, tree_count, rng, distances.to_array(missing=float("inf"))
    )
    remaining = [pair for pair in sampled if pair not in results]
    _, extra = aggregate_pairwise_alignments(sequences, remaining, threshold, params, aligner)
    results.update(extra)

    kept = filter_by_probability(flatten(results), threshold)
    return resolve_consistent_pairs(sequences, kept)


@dataclass
class MultipleAlignment:
    """Everything derived from one alignment run."""

    sequences: List[str]
    aligned_pairs: List[AlignedPair]
    columns: List[Column]
    distances: DistanceMatrix
    rows: List[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "rows": list(self.rows),
            "aligned_pairs": len(self.aligned_pairs),
            "columns": len(self.columns),
            "distances": self.distances.to_dict(),
        }


def align_sequences(
    sequences: Sequence[str],
    params: PairwiseAlignmentParameters,
    aligner: Optional[PairwiseAligner] = None,
    threshold: float = 0.0,
    gap_gamma: float = DEFAULT_GAP_GAMMA,
    spanning_tree_count: Optional[int] = None,
    max_pairs_to_consider: int = DEFAULT_MAX_PAIRS_TO_CONSIDER,
    seed: Optional[int] = 0,
) -> MultipleAlignment:
    """Align ``sequences`` and build columns, gapped rows and distances.

    ``spanning_tree_count=None`` aligns all pairs; any integer samples pairs
    with :func:`make_alignment`.
    """
    sequences = list(sequences)
    if spanning_tree_count is None:
        pairs = make_alignment_using_all_pairs(sequences, threshold, params, aligner)
    else:
        pairs = make_alignment(
            sequences, spanning_tree_count, max_pairs_to_consider,
            threshold, params, aligner, seed=seed, gap_gamma=gap_gamma,
        )
    columns = get_multiple_sequence_alignment(sequences, pairs, gap_gamma)
    distances = get_distance_matrix(columns, sequences, max_pairs_to_consider)
    return MultipleAlignment(
        sequences=sequences,
        aligned_pairs=pairs,
        columns=columns,
        distances=distances,
        rows=columns_to_rows(columns, sequences),
    )
