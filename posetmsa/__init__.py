"""posetmsa: multiple sequence alignment from pairwise posterior evidence.

Pairwise alignments are scheduled (all pairs or sampled spanning trees),
filtered by posterior probability and merged greedily into columns, with a
poset of column order deciding which merges keep the alignment consistent.
"""

__version__ = "0.1.0"

from posetmsa.energy import EnergyModel
from posetmsa.pairwise import (
    PROB_ONE,
    AlignedPair,
    InvalidAlignedPairError,
    PairwiseAlignmentParameters,
    PosteriorAligner,
)
from posetmsa.poset import PosetAlignment
from posetmsa.columns import Column, make_columns, get_multiple_sequence_alignment
from posetmsa.distance import DistanceMatrix, get_distance_matrix, subs_per_site
from posetmsa.msa import (
    MultipleAlignment,
    align_sequences,
    make_alignment,
    make_alignment_using_all_pairs,
)
from posetmsa.io import read_fasta, write_fasta, Sequence

__all__ = [
    "PROB_ONE",
    "AlignedPair",
    "Column",
    "DistanceMatrix",
    "EnergyModel",
    "InvalidAlignedPairError",
    "MultipleAlignment",
    "PairwiseAlignmentParameters",
    "PosetAlignment",
    "PosteriorAligner",
    "Sequence",
    "align_sequences",
    "get_distance_matrix",
    "get_multiple_sequence_alignment",
    "make_alignment",
    "make_alignment_using_all_pairs",
    "make_columns",
    "read_fasta",
    "subs_per_site",
    "write_fasta",
]
