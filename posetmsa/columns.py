"""Build alignment columns from pairwise evidence."""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from posetmsa.pairwise import PROB_ONE, AlignedPair
from posetmsa.poset import PosetAlignment

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Column:
    """Positions judged mutually aligned, as sorted ``(sequence, position)`` entries."""

    members: Tuple[Tuple[int, int], ...]

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)

    @classmethod
    def of(cls, members: Iterable[Tuple[int, int]]) -> "Column":
        return cls(tuple(sorted(members)))

    def sequences(self) -> List[int]:
        return [seq for seq, _ in self.members]


def make_columns(sequences: Sequence[str]) -> List[Column]:
    """One singleton column per position: the alignment before any evidence."""
    return [
        Column(((seq, pos),))
        for seq, s in enumerate(sequences)
        for pos in range(len(s))
    ]


def merge_threshold(gap_gamma: float) -> float:
    """Least mean posterior at which two columns are merged.

    A merge is taken while ``m >= (1 - gap_gamma) * (1 - m)``: the evidence
    for aligning must outweigh the gap mass, discounted by ``gap_gamma``.
    """
    if not 0.0 <= gap_gamma <= 1.0:
        raise ValueError(f"gap_gamma must lie in [0, 1], got {gap_gamma}")
    return (1.0 - gap_gamma) / (2.0 - gap_gamma)


class _ColumnGraph:
    """Union-find over positions plus the evidence linking column roots."""

    def __init__(self, sequences: Sequence[str]):
        self.offsets = [0]
        for s in sequences:
            self.offsets.append(self.offsets[-1] + len(s))
        total = self.offsets[-1]
        self.parent = list(range(total))
        self.members: List[Dict[int, int]] = [{} for _ in range(total)]
        for seq in range(len(sequences)):
            for pos in range(len(sequences[seq])):
                self.members[self.offsets[seq] + pos][seq] = pos
        # links[a][b] = [summed score, number of aligned pairs]
        self.links: Dict[int, Dict[int, List[int]]] = {}
        self.version = [0] * total

    def node(self, seq: int, pos: int) -> int:
        return self.offsets[seq] + pos

    def find(self, node: int) -> int:
        root = node
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[node] != root:
            self.parent[node], node = root, self.parent[node]
        return root

    def link(self, a: int, b: int, score: int, count: int = 1) -> None:
        for u, v in ((a, b), (b, a)):
            entry = self.links.setdefault(u, {}).setdefault(v, [0, 0])
            entry[0] += score
            entry[1] += count

    def unlink(self, a: int, b: int) -> None:
        self.links.get(a, {}).pop(b, None)
        self.links.get(b, {}).pop(a, None)

    def weight(self, a: int, b: int) -> float:
        score, count = self.links[a][b]
        return score / (count * PROB_ONE)

    def merge(self, a: int, b: int) -> int:
        """Merge root ``b`` into root ``a`` and move its evidence; returns ``a``."""
        self.unlink(a, b)
        self.parent[b] = a
        self.members[a].update(self.members[b])
        self.members[b] = {}
        for other, (score, count) in self.links.pop(b, {}).items():
            self.links[other].pop(b, None)
            self.link(a, other, score, count)
        self.version[a] += 1
        return a


def get_multiple_sequence_alignment(
    sequences: Sequence[str],
    aligned_pairs: Iterable[AlignedPair],
    gap_gamma: float,
) -> List[Column]:
    """Greedily merge columns by mean posterior, guarded by a poset alignment.

    Starting from singleton columns, the column pair with the highest mean
    posterior over its supporting aligned pairs is merged next; the merged
    column then inherits the evidence of both halves. Merges the poset
    rejects are dropped. Merging stops once the best remaining mean falls
    below :func:`merge_threshold`. Every position ends up in exactly one
    returned column.
    """
    threshold = merge_threshold(gap_gamma)
    graph = _ColumnGraph(sequences)
    poset = PosetAlignment(len(sequences))

    for p in aligned_pairs:
        p.validate(sequences)
        graph.link(graph.node(p.seq_x, p.x), graph.node(p.seq_y, p.y), p.score)

    heap: List[Tuple[float, int, int, int, int]] = []

    def push(a: int, b: int) -> None:
        lo, hi = min(a, b), max(a, b)
        heapq.heappush(heap, (-graph.weight(a, b), lo, hi, graph.version[lo], graph.version[hi]))

    for a, neighbours in graph.links.items():
        for b in neighbours:
            if a < b:
                push(a, b)

    merged = rejected = 0
    while heap:
        neg_weight, a, b, va, vb = heapq.heappop(heap)
        if graph.parent[a] != a or graph.parent[b] != b:
            continue
        if va != graph.version[a] or vb != graph.version[b]:
            continue
        if b not in graph.links.get(a, {}):
            continue
        if -neg_weight < threshold:
            break
        ma, mb = graph.members[a], graph.members[b]
        if ma.keys() & mb.keys():
            graph.unlink(a, b)
            rejected += 1
            continue
        seq_a, pos_a = next(iter(ma.items()))
        seq_b, pos_b = next(iter(mb.items()))
        if not poset.add(seq_a, pos_a, seq_b, pos_b):
            graph.unlink(a, b)
            rejected += 1
            continue
        root = graph.merge(a, b) if len(ma) >= len(mb) else graph.merge(b, a)
        merged += 1
        for other in graph.links.get(root, {}):
            push(root, other)

    columns = [
        Column.of(graph.members[node].items())
        for node in range(len(graph.parent))
        if graph.parent[node] == node
    ]
    LOGGER.info(
        "Built %d columns from %d positions (%d merges, %d rejected)",
        len(columns), len(graph.parent), merged, rejected,
    )
    return sorted(columns)


def order_columns(columns: Sequence[Column], sequences: Sequence[str]) -> List[Column]:
    """Lay the columns out left to right, consistent with every sequence.

    Ties between columns that are free at the same time go to the smallest
    column, so the layout is deterministic.
    """
    index: Dict[Tuple[int, int], int] = {}
    for c, column in enumerate(columns):
        for entry in column:
            index[entry] = c
    successors: List[set] = [set() for _ in columns]
    indegree = [0] * len(columns)
    for seq, s in enumerate(sequences):
        for pos in range(1, len(s)):
            u, v = index[(seq, pos - 1)], index[(seq, pos)]
            if v not in successors[u]:
                successors[u].add(v)
                indegree[v] += 1

    ready = [(columns[c], c) for c in range(len(columns)) if indegree[c] == 0]
    heapq.heapify(ready)
    ordered: List[Column] = []
    while ready:
        column, c = heapq.heappop(ready)
        ordered.append(column)
        for v in successors[c]:
            indegree[v] -= 1
            if indegree[v] == 0:
                heapq.heappush(ready, (columns[v], v))
    if len(ordered) != len(columns):
        raise ValueError("columns are not consistent with the sequence order")
    return ordered


def columns_to_rows(
    columns: Sequence[Column], sequences: Sequence[str], gap: str = "-"
) -> List[str]:
    """Render the alignment as one gapped, equal-length row per sequence."""
    rows: List[List[str]] = [[] for _ in sequences]
    for column in order_columns(columns, sequences):
        present = dict(column.members)
        for seq, s in enumerate(sequences):
            rows[seq].append(s[present[seq]] if seq in present else gap)
    return ["".join(row) for row in rows]
