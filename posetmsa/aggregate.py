"""Run the pairwise aligner over a schedule and collect its evidence."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from posetmsa.pairwise import (
    PROB_ONE,
    AlignedPair,
    PairwiseAligner,
    PairwiseAlignmentParameters,
    PosteriorAligner,
    pairs_from_triples,
)
from posetmsa.scheduler import Pair, get_all_pairs

LOGGER = logging.getLogger(__name__)


def _check_threshold(threshold: float) -> None:
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must lie in [0, 1], got {threshold}")


def align_pairs(
    sequences: Sequence[str],
    pairs: Sequence[Pair],
    params: PairwiseAlignmentParameters,
    aligner: Optional[PairwiseAligner] = None,
) -> Dict[Pair, List[AlignedPair]]:
    """Align every scheduled pair, in parallel, and validate the output.

    Each pair is independent, so the work is mapped over a thread pool and
    nothing is shared until every alignment has finished. The returned dict
    preserves schedule order. Closed parameters raise ``ValueError``.
    """
    if params.closed:
        raise ValueError("pairwise alignment parameters are closed")
    aligner = aligner or PosteriorAligner()

    def _align(pair: Pair) -> List[AlignedPair]:
        i, j = pair
        aligned = pairs_from_triples(aligner.align(sequences[i], sequences[j], params), i, j)
        for aligned_pair in aligned:
            aligned_pair.validate(sequences)
        return aligned

    if not pairs:
        return {}
    with ThreadPoolExecutor(max_workers=params.threads) as pool:
        results = list(pool.map(_align, pairs))
    LOGGER.info(
        "Aligned %d sequence pairs, %d aligned pairs in total",
        len(pairs), sum(len(r) for r in results),
    )
    return dict(zip(pairs, results))


def filter_by_probability(
    aligned_pairs: Iterable[AlignedPair], threshold: float
) -> List[AlignedPair]:
    """Keep the pairs whose posterior is at least ``threshold``."""
    _check_threshold(threshold)
    return [p for p in aligned_pairs if p.score / PROB_ONE >= threshold]


def flatten(results: Dict[Pair, List[AlignedPair]]) -> List[AlignedPair]:
    return [p for aligned in results.values() for p in aligned]


def make_all_pairwise_alignments(
    sequences: Sequence[str],
    params: PairwiseAlignmentParameters,
    aligner: Optional[PairwiseAligner] = None,
) -> List[AlignedPair]:
    """Unfiltered evidence from aligning every pair of sequences."""
    return flatten(align_pairs(sequences, get_all_pairs(len(sequences)), params, aligner))


def aggregate_pairwise_alignments(
    sequences: Sequence[str],
    pairs: Sequence[Pair],
    threshold: float,
    params: PairwiseAlignmentParameters,
    aligner: Optional[PairwiseAligner] = None,
) -> Tuple[List[AlignedPair], Dict[Pair, List[AlignedPair]]]:
    """Align ``pairs`` and return the filtered evidence plus the raw results."""
    _check_threshold(threshold)
    results = align_pairs(sequences, pairs, params, aligner)
    kept = filter_by_probability(flatten(results), threshold)
    LOGGER.debug("Kept %d aligned pairs at threshold %.3f", len(kept), threshold)
    return kept, results
