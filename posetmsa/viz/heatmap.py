"""Heatmap of pairwise substitution distances."""

from __future__ import annotations
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from posetmsa.distance import DistanceMatrix

try:
    import plotly.graph_objects as go
    HAS_PLOTLY = True
except ImportError:
    HAS_PLOTLY = False


def create_distance_heatmap(
    matrix: "DistanceMatrix",
    names: Optional[List[str]] = None,
    width: int = 700,
    height: int = 700,
) -> "go.Figure":
    """Create a heatmap of substitutions per site between every sequence pair."""
    if not HAS_PLOTLY:
        raise ImportError("plotly is required")

    n = matrix.sequence_number
    names = names or [str(i) for i in range(n)]
    if len(names) != n:
        raise ValueError(f"expected {n} names, got {len(names)}")

    subs = matrix.to_array()
    observed = matrix.matches + matrix.mismatches
    text = [
        [f"{names[i]} / {names[j]}<br>subs/site: {subs[i, j]:.3f}<br>sites: {int(observed[i, j])}"
         for j in range(n)]
        for i in range(n)
    ]
    fig = go.Figure(data=go.Heatmap(
        z=subs, x=names, y=names, text=text, hoverinfo="text",
        colorscale="Viridis", zmin=0.0, zmax=1.0,
        colorbar=dict(title="Subs/site"),
    ))
    fig.update_layout(
        title="Substitutions per site", width=width, height=height,
        yaxis=dict(autorange="reversed"),
    )
    return fig
