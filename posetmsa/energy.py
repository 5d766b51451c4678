"""Energy model for pairwise posterior alignment.

Energies follow the physical convention: lower (more negative) is more
favourable. The posterior aligner turns them into Boltzmann weights,
``exp(-energy / temperature)``.
"""

from __future__ import annotations

import numpy as np

ALPHABET = "ACGTN"
UNKNOWN = ALPHABET.index("N")

BASE_TO_INT = {base: code for code, base in enumerate(ALPHABET)}
BASE_TO_INT.update({base.lower(): code for base, code in list(BASE_TO_INT.items())})

_PURINES = frozenset("AG")
_PYRIMIDINES = frozenset("CT")


def encode(seq: str) -> np.ndarray:
    """Encode *seq* as integer codes; anything unknown becomes N."""
    return np.fromiter((BASE_TO_INT.get(c, UNKNOWN) for c in seq), dtype=np.int64, count=len(seq))


def _is_transition(a: str, b: str) -> bool:
    return a != b and ({a, b} <= _PURINES or {a, b} <= _PYRIMIDINES)


def substitution_matrix(
    match_energy: float,
    mismatch_energy: float,
    transition_energy: float,
    n_energy: float,
) -> np.ndarray:
    """Build the 5x5 energy table indexed by :data:`ALPHABET` codes."""
    size = len(ALPHABET)
    matrix = np.empty((size, size), dtype=float)
    for i, a in enumerate(ALPHABET):
        for j, b in enumerate(ALPHABET):
            if UNKNOWN in (i, j):
                matrix[i, j] = n_energy
            elif a == b:
                matrix[i, j] = match_energy
            elif _is_transition(a, b):
                matrix[i, j] = transition_energy
            else:
                matrix[i, j] = mismatch_energy
    return matrix


class EnergyModel:
    """Substitution and affine gap energies for nucleotide alignment.

    ``custom_matrix`` replaces the substitution table built from the
    individual energies; it must be 5x5 in :data:`ALPHABET` order.
    """

    def __init__(
        self,
        match_energy: float = -2.0,
        mismatch_energy: float = 3.0,
        gap_open_energy: float = 5.0,
        gap_extend_energy: float = 1.0,
        transition_energy: float = 2.0,
        n_energy: float = 0.0,
        custom_matrix: np.ndarray | None = None,
    ):
        self.match_energy = match_energy
        self.mismatch_energy = mismatch_energy
        self.gap_open_energy = gap_open_energy
        self.gap_extend_energy = gap_extend_energy
        self.transition_energy = transition_energy
        self.n_energy = n_energy

        if custom_matrix is None:
            self.matrix = substitution_matrix(
                match_energy, mismatch_energy, transition_energy, n_energy
            )
        else:
            self.matrix = np.array(custom_matrix, dtype=float)
            if self.matrix.shape != (len(ALPHABET), len(ALPHABET)):
                raise ValueError(f"custom_matrix must be 5x5 ({', '.join(ALPHABET)})")

    def substitution_log_weights(self, seq_a: str, seq_b: str, temperature: float) -> np.ndarray:
        """Return the ``(len(seq_a), len(seq_b))`` matrix of ``-energy / temperature``."""
        if temperature <= 0:
            raise ValueError("temperature must be positive")
        return -self.matrix[np.ix_(encode(seq_a), encode(seq_b))] / temperature

    def gap_log_weights(self, temperature: float) -> tuple[float, float]:
        """Return ``(open, extend)`` gap log weights at *temperature*."""
        if temperature <= 0:
            raise ValueError("temperature must be positive")
        return -self.gap_open_energy / temperature, -self.gap_extend_energy / temperature
