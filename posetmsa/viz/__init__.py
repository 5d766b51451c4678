"""Visualisation of multiple alignment results.

- Substitution-distance heatmaps
- Posterior dot plots for one pairwise alignment
"""

from posetmsa.viz.heatmap import create_distance_heatmap
from posetmsa.viz.dotplot import create_posterior_dotplot, PosteriorDotPlot

__all__ = [
    "create_distance_heatmap",
    "create_posterior_dotplot",
    "PosteriorDotPlot",
]
