"""Shared test fixtures for posetmsa tests."""

import random

import pytest

from posetmsa.pairwise import PROB_ONE, PairwiseAlignmentParameters
from posetmsa.poset import PosetAlignment


LITTLE_SEQUENCES = ["AGTTT", "AGTGTG", "AC", ""]


def _scaled(rows):
    return [(int(round(p * PROB_ONE)), x, y) for p, x, y in rows]


# Hand-written posteriors for the little sequences. The low-scoring entries
# contradict the high-scoring ones and must be rejected.
LITTLE_TABLE = {
    ("AGTTT", "AGTGTG"): _scaled([
        (0.95, 0, 0), (0.93, 1, 1), (0.90, 2, 2), (0.70, 3, 3), (0.88, 4, 4),
        (0.30, 4, 5),
    ]),
    ("AGTTT", "AC"): _scaled([(0.90, 0, 0), (0.60, 1, 1), (0.25, 2, 1)]),
    ("AGTGTG", "AC"): _scaled([(0.85, 0, 0), (0.55, 1, 1), (0.20, 5, 1)]),
}


class TableAligner:
    """Returns fixed aligned pairs, looked up by the two sequences."""

    def __init__(self, table):
        self.table = table
        self.calls = []

    def align(self, seq_a, seq_b, params):
        self.calls.append((seq_a, seq_b))
        if (seq_a, seq_b) in self.table:
            return list(self.table[(seq_a, seq_b)])
        if (seq_b, seq_a) in self.table:
            return [(s, y, x) for s, x, y in self.table[(seq_b, seq_a)]]
        return []


class NoisyAligner:
    """Deterministic, deliberately inconsistent evidence near the diagonal.

    Every position gets up to three candidate partners with random scores,
    plus the odd far-off pair, so many candidates contradict each other.
    """

    def align(self, seq_a, seq_b, params):
        n, m = len(seq_a), len(seq_b)
        if n == 0 or m == 0:
            return []
        rng = random.Random(f"{seq_a}|{seq_b}")
        triples = []
        for x in range(n):
            centre = round(x * (m - 1) / max(n - 1, 1))
            for y in (centre - 1, centre, centre + 1):
                if 0 <= y < m:
                    triples.append((rng.randint(1, PROB_ONE), x, y))
            if rng.random() < 0.1:
                triples.append((rng.randint(1, PROB_ONE), x, rng.randrange(m)))
        return triples


def random_sequence(rng, length):
    return "".join(rng.choice("ACGT") for _ in range(length))


def evolve_sequence(rng, ancestor, rate=0.1):
    """Copy *ancestor* with random substitutions, insertions and deletions."""
    out = []
    for base in ancestor:
        r = rng.random()
        if r < rate / 3:
            continue
        if r < 2 * rate / 3:
            out.append(rng.choice("ACGT"))
        else:
            out.append(base)
        if rng.random() < rate / 3:
            out.append(rng.choice("ACGT"))
    return "".join(out)


def random_sequence_family(rng, sequence_number, approx_length):
    ancestor = random_sequence(rng, approx_length)
    return [evolve_sequence(rng, ancestor) for _ in range(sequence_number)]


@pytest.fixture
def little_sequences():
    """Three short related sequences and an empty one."""
    return list(LITTLE_SEQUENCES)


@pytest.fixture
def table_aligner():
    return TableAligner(LITTLE_TABLE)


@pytest.fixture
def noisy_aligner():
    return NoisyAligner()


@pytest.fixture
def params():
    with PairwiseAlignmentParameters(threads=2) as p:
        yield p


@pytest.fixture
def sequence_family():
    """Factory: ``sequence_family(seed)`` -> 0-9 sequences of length ~0-99."""
    def _make(seed):
        rng = random.Random(seed)
        return random_sequence_family(rng, rng.randint(0, 9), rng.randint(0, 99))
    return _make


def _check_alignment(sequences, aligned_pairs):
    """Every pair is in range and the whole set replays into one poset."""
    poset = PosetAlignment(len(sequences))
    for p in aligned_pairs:
        assert 0 < p.score <= PROB_ONE
        assert 0 <= p.seq_x < len(sequences)
        assert 0 <= p.seq_y < len(sequences)
        assert p.seq_x != p.seq_y
        assert 0 <= p.x < len(sequences[p.seq_x])
        assert 0 <= p.y < len(sequences[p.seq_y])
        assert poset.add(p.seq_x, p.x, p.seq_y, p.y)


@pytest.fixture
def check_alignment():
    return _check_alignment
