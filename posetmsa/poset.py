"""Poset alignment: the consistency filter for multiple alignment merges.

A multiple alignment is a partition of sequence positions into columns that
can be laid out left to right so that every sequence visits its columns in
position order. ``PosetAlignment`` records the columns merged so far as the
nodes of a directed graph: each placed position points at the next placed
position of its sequence. Merging two columns keeps the graph acyclic exactly
when neither column reaches the other, and that also rules out a column
holding two positions of one sequence.

Reachability queries are answered against a topological order of the nodes
that is maintained incrementally (Pearce and Kelly, 2006). A search from
``a`` towards ``b`` only visits nodes ordered between the two, and an
accepted merge only reorders that region, so the work per merge follows the
size of the affected region rather than the number of sequences.

Positions that were never merged are not stored. They behave as singleton
columns sitting between the neighbouring placed positions of their sequence.
"""

from __future__ import annotations

import bisect
import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from posetmsa.pairwise import InvalidAlignedPairError

LOGGER = logging.getLogger(__name__)

# Spacing between order keys, leaving room to insert newly placed positions.
_GAP = 1 << 16

OrderKey = Tuple[int, int]


class PosetAlignment:
    """Order-preserving consistency structure over ``sequence_number`` sequences.

    Columns are arena-indexed nodes: ``column_of`` maps a placed position to
    its node, and nodes are merged with union-find. Every root carries an
    order key, and every edge of the column graph goes from a smaller key to
    a larger one.
    """

    def __init__(self, sequence_number: int):
        if sequence_number < 0:
            raise ValueError("sequence_number must be non-negative")
        self.sequence_number = sequence_number
        self._placed: List[List[int]] = [[] for _ in range(sequence_number)]
        self._node_of: List[Dict[int, int]] = [{} for _ in range(sequence_number)]
        self._parent: List[int] = []
        self._members: List[Optional[Dict[int, int]]] = []
        self._order: List[OrderKey] = []
        self._top = 0
        self._merged_columns = 0

    def __len__(self) -> int:
        return self._merged_columns

    # -- arena -----------------------------------------------------------

    def _find(self, node: int) -> int:
        root = node
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[node] != root:
            self._parent[node], node = root, self._parent[node]
        return root

    def _union(self, a: int, b: int) -> int:
        ma, mb = self._members[a], self._members[b]
        if len(ma) < len(mb):
            a, b, ma, mb = b, a, mb, ma
        if len(mb) == 1 and len(ma) == 1:
            self._merged_columns += 1
        elif len(mb) > 1 and len(ma) > 1:
            self._merged_columns -= 1
        self._parent[b] = a
        ma.update(mb)
        self._members[b] = None
        return a

    def column_of(self, seq: int, pos: int) -> Optional[int]:
        """Return the column node holding ``(seq, pos)``, or ``None`` if unplaced."""
        self._check_position(seq, pos)
        node = self._node_of[seq].get(pos)
        return None if node is None else self._find(node)

    def columns(self) -> List[Dict[int, int]]:
        """Return every column with two or more members as ``{seq: pos}``."""
        return [
            dict(members)
            for node, members in enumerate(self._members)
            if members is not None and self._parent[node] == node and len(members) > 1
        ]

    # -- column graph ----------------------------------------------------

    def _next_placed(self, seq: int, pos: int) -> Optional[int]:
        placed = self._placed[seq]
        idx = bisect.bisect_right(placed, pos)
        return self._find(self._node_of[seq][placed[idx]]) if idx < len(placed) else None

    def _previous_placed(self, seq: int, pos: int) -> Optional[int]:
        placed = self._placed[seq]
        idx = bisect.bisect_left(placed, pos) - 1
        return self._find(self._node_of[seq][placed[idx]]) if idx >= 0 else None

    def _successors(self, node: int) -> Iterator[int]:
        for seq, pos in self._members[node].items():
            nxt = self._next_placed(seq, pos)
            if nxt is not None:
                yield nxt

    def _predecessors(self, node: int) -> Iterator[int]:
        for seq, pos in self._members[node].items():
            prev = self._previous_placed(seq, pos)
            if prev is not None:
                yield prev

    def _reaches(self, source: Optional[int], target: Optional[int]) -> bool:
        """True if ``target`` is ``source`` or lies on a path out of it."""
        if source is None or target is None:
            return False
        if source == target:
            return True
        bound = self._order[target]
        if self._order[source] > bound:
            return False
        seen = {source}
        stack = [source]
        while stack:
            for nxt in self._successors(stack.pop()):
                if nxt == target:
                    return True
                if nxt not in seen and self._order[nxt] < bound:
                    seen.add(nxt)
                    stack.append(nxt)
        return False

    def _region(
        self, source: int, step: Callable[[int], Iterator[int]], inside: Callable[[OrderKey], bool]
    ) -> List[int]:
        seen = {source}
        stack = [source]
        while stack:
            for nxt in step(stack.pop()):
                if nxt not in seen and inside(self._order[nxt]):
                    seen.add(nxt)
                    stack.append(nxt)
        return list(seen)

    def _ends(self, seq: int, pos: int) -> Tuple[Optional[int], Optional[int]]:
        """Nodes a path leaves ``(seq, pos)`` from and enters it through.

        A placed position is its own column. An unplaced one is left through
        the next placed position of its sequence and entered through the
        previous one.
        """
        node = self._node_of[seq].get(pos)
        if node is not None:
            root = self._find(node)
            return root, root
        return self._next_placed(seq, pos), self._previous_placed(seq, pos)

    # -- order maintenance -----------------------------------------------

    def _relabel(self) -> None:
        roots = sorted(
            (node for node in range(len(self._parent)) if self._parent[node] == node),
            key=self._order.__getitem__,
        )
        for k, node in enumerate(roots, start=1):
            self._order[node] = (k * _GAP, node)
        self._top = len(roots) * _GAP
        LOGGER.debug("Relabelled %d column nodes", len(roots))

    def _key_between(
        self, node: int, lo: Optional[int], hi: Optional[int]
    ) -> Optional[OrderKey]:
        if lo is None and hi is None:
            value = self._top + _GAP
        elif hi is None:
            value = self._order[lo][0] + _GAP
        elif lo is None:
            value = self._order[hi][0] - _GAP
        elif self._order[hi][0] - self._order[lo][0] >= 2:
            value = (self._order[lo][0] + self._order[hi][0]) // 2
        else:
            return None
        self._top = max(self._top, value)
        return value, node

    def _place(self, seq: int, pos: int) -> int:
        node = self._node_of[seq].get(pos)
        if node is not None:
            return self._find(node)
        node = len(self._parent)
        lo, hi = self._previous_placed(seq, pos), self._next_placed(seq, pos)
        key = self._key_between(node, lo, hi)
        if key is None:
            self._relabel()
            key = self._key_between(node, lo, hi)
        self._parent.append(node)
        self._members.append({seq: pos})
        self._order.append(key)
        self._node_of[seq][pos] = node
        bisect.insort(self._placed[seq], pos)
        return node

    def _join(self, root: int, seq: int, pos: int) -> bool:
        """Add an unplaced position to ``root`` if the current order already fits."""
        lo, hi = self._previous_placed(seq, pos), self._next_placed(seq, pos)
        key = self._order[root]
        if (lo is not None and self._order[lo] > key) or (hi is not None and key > self._order[hi]):
            return False
        members = self._members[root]
        if len(members) == 1:
            self._merged_columns += 1
        members[seq] = pos
        self._node_of[seq][pos] = root
        bisect.insort(self._placed[seq], pos)
        return True

    def _new_column(self, seq_x: int, x: int, seq_y: int, y: int) -> bool:
        """Create a column from two unplaced positions if a key fits between their neighbours."""
        ends = ((seq_x, x), (seq_y, y))
        lows = [n for n in (self._previous_placed(s, p) for s, p in ends) if n is not None]
        highs = [n for n in (self._next_placed(s, p) for s, p in ends) if n is not None]
        lo = max(lows, key=self._order.__getitem__, default=None)
        hi = min(highs, key=self._order.__getitem__, default=None)
        if lo is not None and hi is not None and self._order[lo] > self._order[hi]:
            return False
        node = len(self._parent)
        key = self._key_between(node, lo, hi)
        if key is None:
            return False
        self._parent.append(node)
        self._members.append({seq_x: x, seq_y: y})
        self._order.append(key)
        for seq, pos in ends:
            self._node_of[seq][pos] = node
            bisect.insort(self._placed[seq], pos)
        self._merged_columns += 1
        return True

    def _contract(self, a: int, b: int) -> int:
        """Merge roots that do not reach each other, keeping the order topological."""
        if self._order[a] > self._order[b]:
            a, b = b, a
        low, high = self._order[a], self._order[b]
        forward = self._region(a, self._successors, lambda key: key < high)
        backward = self._region(b, self._predecessors, lambda key: key > low)
        slots = sorted(self._order[node] for node in forward + backward)
        moved = sorted(backward, key=self._order.__getitem__) + sorted(
            forward, key=self._order.__getitem__
        )
        for node, slot in zip(moved, slots):
            self._order[node] = slot
        return self._union(a, b)

    # -- queries ---------------------------------------------------------

    def _check_position(self, seq: int, pos: int) -> None:
        if not 0 <= seq < self.sequence_number:
            raise InvalidAlignedPairError(f"sequence index {seq} out of range")
        if pos < 0:
            raise InvalidAlignedPairError(f"negative position {pos} in sequence {seq}")

    def _check(self, seq_x: int, x: int, seq_y: int, y: int) -> None:
        self._check_position(seq_x, x)
        self._check_position(seq_y, y)
        if seq_x == seq_y:
            raise InvalidAlignedPairError(f"cannot align sequence {seq_x} to itself")

    def is_aligned(self, seq_x: int, x: int, seq_y: int, y: int) -> bool:
        """True if the two positions already share a column."""
        self._check(seq_x, x, seq_y, y)
        node_x = self._node_of[seq_x].get(x)
        node_y = self._node_of[seq_y].get(y)
        if node_x is None or node_y is None:
            return False
        return self._find(node_x) == self._find(node_y)

    def _mergeable(self, seq_x: int, x: int, seq_y: int, y: int) -> bool:
        out_x, in_x = self._ends(seq_x, x)
        out_y, in_y = self._ends(seq_y, y)
        return not (self._reaches(out_x, in_y) or self._reaches(out_y, in_x))

    def is_possible(self, seq_x: int, x: int, seq_y: int, y: int) -> bool:
        """True if :meth:`add` would accept the correspondence. Never mutates."""
        if self.is_aligned(seq_x, x, seq_y, y):
            return True
        return self._mergeable(seq_x, x, seq_y, y)

    # -- mutation --------------------------------------------------------

    def add(self, seq_x: int, x: int, seq_y: int, y: int) -> bool:
        """Merge ``(seq_x, x)`` with ``(seq_y, y)`` if the order allows it.

        Returns False, leaving the structure untouched, when the merge would
        put two positions of one sequence in a column or contradict a
        sequence's left-to-right order.
        """
        if self.is_aligned(seq_x, x, seq_y, y):
            return True
        if not self._mergeable(seq_x, x, seq_y, y):
            return False
        node_x = self._node_of[seq_x].get(x)
        node_y = self._node_of[seq_y].get(y)
        if node_x is None and node_y is None:
            done = self._new_column(seq_x, x, seq_y, y)
        elif node_x is None:
            done = self._join(self._find(node_y), seq_x, x)
        elif node_y is None:
            done = self._join(self._find(node_x), seq_y, y)
        else:
            done = False
        if not done:
            self._contract(self._place(seq_x, x), self._place(seq_y, y))
        return True
