"""Pairwise evidence: aligned pairs, aligner parameters and the posterior engine.

The multiple aligner consumes pairwise alignments as weighted sets of
position correspondences. Any object with an ``align(seq_a, seq_b, params)``
method returning ``(score, x, y)`` triples can act as the pairwise aligner;
:class:`PosteriorAligner` is the default, a banded forward/backward pass over
an affine-gap pair model whose match posteriors become the scores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np

from posetmsa.energy import EnergyModel

LOGGER = logging.getLogger(__name__)

# Fixed-point score of a correspondence with posterior probability 1.0.
PROB_ONE = 10_000_000

_NEG_INF = -np.inf


class InvalidAlignedPairError(AssertionError):
    """An aligned pair broke the coordinate contract of the pairwise aligner."""


@dataclass(frozen=True, order=True)
class AlignedPair:
    """Position ``x`` of sequence ``seq_x`` corresponds to ``y`` of ``seq_y``."""

    score: int
    seq_x: int
    x: int
    seq_y: int
    y: int

    @property
    def probability(self) -> float:
        return self.score / PROB_ONE

    def validate(self, sequences: Sequence[str]) -> None:
        """Raise :class:`InvalidAlignedPairError` unless every invariant holds."""
        n = len(sequences)
        if not 0 < self.score <= PROB_ONE:
            raise InvalidAlignedPairError(f"score out of range: {self}")
        if not (0 <= self.seq_x < n and 0 <= self.seq_y < n):
            raise InvalidAlignedPairError(f"sequence index out of range: {self}")
        if self.seq_x == self.seq_y:
            raise InvalidAlignedPairError(f"pair aligns a sequence to itself: {self}")
        if not 0 <= self.x < len(sequences[self.seq_x]):
            raise InvalidAlignedPairError(f"x position out of range: {self}")
        if not 0 <= self.y < len(sequences[self.seq_y]):
            raise InvalidAlignedPairError(f"y position out of range: {self}")


@dataclass
class PairwiseAlignmentParameters:
    """Settings forwarded unchanged to the pairwise aligner.

    Usable as a context manager so one set of parameters is scoped to one
    alignment run::

        with PairwiseAlignmentParameters(bandwidth=50) as params:
            pairs = make_alignment_using_all_pairs(seqs, 0.5, params)
    """

    energy_model: EnergyModel = field(default_factory=EnergyModel)
    bandwidth: int = 100
    temperature: float = 1.0
    min_posterior: float = 0.01
    threads: Optional[int] = None
    closed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        if self.bandwidth < 0:
            raise ValueError("bandwidth must be non-negative")
        if self.temperature <= 0:
            raise ValueError("temperature must be positive")
        if not 0.0 <= self.min_posterior <= 1.0:
            raise ValueError("min_posterior must lie in [0, 1]")
        if self.threads is not None and self.threads < 1:
            raise ValueError("threads must be at least 1")

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "PairwiseAlignmentParameters":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class PairwiseAligner(Protocol):
    def align(
        self, seq_a: str, seq_b: str, params: PairwiseAlignmentParameters
    ) -> List[Tuple[int, int, int]]:
        """Return ``(score, x, y)`` triples with ``0 < score <= PROB_ONE``."""
        ...


def _lse(*terms: np.ndarray) -> np.ndarray:
    out = terms[0]
    for t in terms[1:]:
        out = np.logaddexp(out, t)
    return out


class PosteriorAligner:
    """Banded forward/backward aligner producing match posteriors.

    States are match (M), gap in ``seq_b`` (X, consumes ``seq_a``) and gap in
    ``seq_a`` (Y). Cells are filled one anti-diagonal at a time so each
    diagonal is a single vectorised numpy step.
    """

    def align(
        self, seq_a: str, seq_b: str, params: PairwiseAlignmentParameters
    ) -> List[Tuple[int, int, int]]:
        n = len(seq_a)
        m = len(seq_b)
        if n == 0 or m == 0:
            return []

        posteriors = self.posterior_matrix(seq_a.upper(), seq_b.upper(), params)
        xs, ys = np.nonzero(posteriors >= max(params.min_posterior, 1.0 / PROB_ONE))
        triples = []
        for x, y in zip(xs.tolist(), ys.tolist()):
            score = min(PROB_ONE, int(round(float(posteriors[x, y]) * PROB_ONE)))
            if score > 0:
                triples.append((score, x, y))
        return triples

    def posterior_matrix(
        self, seq_a: str, seq_b: str, params: PairwiseAlignmentParameters
    ) -> np.ndarray:
        """Return the ``(len(seq_a), len(seq_b))`` matrix of match posteriors.

        Only cells inside the band around the corner-to-corner diagonal are
        computed, so time grows with ``(n + m) * bandwidth``. The DP matrices
        themselves are stored at full ``(n + 1, m + 1)`` size.
        """
        n = len(seq_a)
        m = len(seq_b)
        em = params.energy_model
        S = em.substitution_log_weights(seq_a, seq_b, params.temperature)
        go, ge = em.gap_log_weights(params.temperature)
        width = self._band_width(n, m, params.bandwidth)

        fM, fX, fY = (np.full((n + 1, m + 1), _NEG_INF) for _ in range(3))
        fM[0, 0] = 0.0
        for d in range(1, n + m + 1):
            ii, jj = self._band_diagonal(d, n, m, width)
            if ii.size == 0:
                continue
            im1 = np.maximum(ii - 1, 0)
            jm1 = np.maximum(jj - 1, 0)
            has_i = ii >= 1
            has_j = jj >= 1

            diag = _lse(fM[im1, jm1], fX[im1, jm1], fY[im1, jm1])
            s = S[np.minimum(im1, n - 1), np.minimum(jm1, m - 1)]
            fM[ii, jj] = np.where(has_i & has_j, diag + s, _NEG_INF)
            up = _lse(fM[im1, jj] + go, fX[im1, jj] + ge, fY[im1, jj] + go)
            fX[ii, jj] = np.where(has_i, up, _NEG_INF)
            left = _lse(fM[ii, jm1] + go, fY[ii, jm1] + ge, fX[ii, jm1] + go)
            fY[ii, jj] = np.where(has_j, left, _NEG_INF)

        total = float(_lse(fM[n, m], fX[n, m], fY[n, m]))
        if not np.isfinite(total):
            LOGGER.warning("No path through the band for sequences of length %d and %d", n, m)
            return np.zeros((n, m))

        bM, bX, bY = (np.full((n + 1, m + 1), _NEG_INF) for _ in range(3))
        bM[n, m] = bX[n, m] = bY[n, m] = 0.0
        for d in range(n + m - 1, -1, -1):
            ii, jj = self._band_diagonal(d, n, m, width)
            if ii.size == 0:
                continue
            ip1 = np.minimum(ii + 1, n)
            jp1 = np.minimum(jj + 1, m)
            more_i = ii < n
            more_j = jj < m

            s = S[np.minimum(ii, n - 1), np.minimum(jj, m - 1)]
            to_m = np.where(more_i & more_j, s + bM[ip1, jp1], _NEG_INF)
            to_x = np.where(more_i, bX[ip1, jj], _NEG_INF)
            to_y = np.where(more_j, bY[ii, jp1], _NEG_INF)
            bM[ii, jj] = _lse(to_m, to_x + go, to_y + go)
            bX[ii, jj] = _lse(to_m, to_x + ge, to_y + go)
            bY[ii, jj] = _lse(to_m, to_x + go, to_y + ge)

        posteriors = np.exp(fM[1:, 1:] + bM[1:, 1:] - total)
        return np.clip(posteriors, 0.0, 1.0)

    @staticmethod
    def _band_width(n: int, m: int, bandwidth: int) -> int:
        # Widen narrow bands so the diagonal between corners stays connected.
        return max(bandwidth, int(np.ceil(m / n)) + 1)

    @staticmethod
    def _band_diagonal(d: int, n: int, m: int, width: int) -> Tuple[np.ndarray, np.ndarray]:
        """Cells ``(i, d - i)`` of anti-diagonal ``d`` with ``|j - i * m / n| <= width``."""
        scale = n / (n + m)
        lo = max(0, d - m, int(np.floor((d - width) * scale)))
        hi = min(n, d, int(np.ceil((d + width) * scale)))
        ii = np.arange(lo, hi + 1)
        jj = d - ii
        keep = np.abs(jj - ii * m / n) <= width
        return ii[keep], jj[keep]


def pairs_from_triples(
    triples: Sequence[Tuple[int, int, int]], seq_x: int, seq_y: int
) -> List[AlignedPair]:
    """Attach sequence indices to ``(score, x, y)`` aligner output."""
    return [AlignedPair(score, seq_x, x, seq_y, y) for score, x, y in triples]
