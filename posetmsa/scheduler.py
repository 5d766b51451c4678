"""Choose which sequence pairs get a pairwise alignment.

Every schedule is a list of ``(i, j)`` index pairs with ``i < j`` (the
reference star keeps its anchor first). Randomised schedules take an explicit
``random.Random`` so a seed reproduces the same pairs.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

LOGGER = logging.getLogger(__name__)

Pair = Tuple[int, int]


def make_rng(seed: Optional[int] = 0) -> random.Random:
    """Return a dedicated random source for scheduling."""
    return random.Random(seed)


def get_all_pairs(sequence_number: int) -> List[Pair]:
    """Every unordered pair of indices, in lexicographic order."""
    return [
        (i, j)
        for i in range(sequence_number)
        for j in range(i + 1, sequence_number)
    ]


def get_random_spanning_tree(
    sequence_number: int,
    rng: random.Random,
    distances: Optional[np.ndarray] = None,
) -> List[Pair]:
    """Edges of one random spanning tree over ``sequence_number`` nodes.

    Nodes are visited in a random order and each one is attached to a node
    visited before it: a uniformly chosen one, or the nearest one when a
    ``distances`` matrix is given (ties broken at random).
    """
    order = list(range(sequence_number))
    rng.shuffle(order)
    edges: List[Pair] = []
    for k in range(1, len(order)):
        node = order[k]
        placed = order[:k]
        if distances is None:
            other = rng.choice(placed)
        else:
            best = min(float(distances[node, p]) for p in placed)
            other = rng.choice([p for p in placed if float(distances[node, p]) == best])
        edges.append((min(node, other), max(node, other)))
    return edges


def get_spanning_tree_pairs(
    sequence_number: int,
    tree_count: int,
    rng: random.Random,
    distances: Optional[np.ndarray] = None,
) -> List[Pair]:
    """Sorted, deduplicated union of ``tree_count`` spanning trees.

    At least one tree is always built so every sequence stays connected to
    every other. Only the first tree is guided by ``distances``.
    """
    pairs = set()
    for t in range(max(1, tree_count)):
        pairs.update(get_random_spanning_tree(
            sequence_number, rng, distances if t == 0 else None
        ))
    LOGGER.info(
        "Scheduled %d pairs from %d spanning trees over %d sequences",
        len(pairs), max(1, tree_count), sequence_number,
    )
    return sorted(pairs)


def combined_length(sequences: Sequence[str], pair: Pair) -> Tuple[int, int]:
    """Default reference ordering: total length, then the partner index."""
    i, j = pair
    return len(sequences[i]) + len(sequences[j]), j


def get_reference_pairwise_alignments(
    sequences: Sequence[str],
    order_key: Callable[[Sequence[str], Pair], object] = combined_length,
) -> List[Pair]:
    """Star of pairs anchored at sequence 0, cheapest alignments first."""
    pairs = [(0, k) for k in range(1, len(sequences))]
    return sorted(pairs, key=lambda pair: order_key(sequences, pair))


def schedule_size(sequence_number: int) -> int:
    """Number of pairs in the all-pairs schedule."""
    return sequence_number * (sequence_number - 1) // 2
