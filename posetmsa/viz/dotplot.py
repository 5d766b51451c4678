"""Dot plot of the aligned pairs between two sequences."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from posetmsa.pairwise import AlignedPair

try:
    import plotly.graph_objects as go
    HAS_PLOTLY = True
except ImportError:
    HAS_PLOTLY = False


@dataclass
class PosteriorDotPlot:
    """Aligned-pair coordinates and posteriors for one sequence pair."""

    seq_x: int
    seq_y: int
    length_x: int
    length_y: int
    points: List[Tuple[int, int, float]] = field(default_factory=list)

    def to_figure(self, title: Optional[str] = None, marker_size: int = 5,
                  width: int = 700, height: int = 700) -> "go.Figure":
        """Create a Plotly figure, coloured by posterior."""
        if not HAS_PLOTLY:
            raise ImportError("plotly is required for visualization")

        fig = go.Figure()
        if self.points:
            xs, ys, probs = zip(*self.points)
            fig.add_trace(go.Scattergl(
                x=xs, y=ys, mode="markers",
                marker=dict(size=marker_size, color=probs, colorscale="Blues",
                            cmin=0.0, cmax=1.0, colorbar=dict(title="Posterior")),
                name="Aligned pairs",
                hovertemplate="x: %{x}<br>y: %{y}<br>p: %{marker.color:.3f}<extra></extra>",
            ))
        fig.update_layout(
            title=title or f"Sequence {self.seq_x} vs {self.seq_y}",
            xaxis=dict(title=f"Sequence {self.seq_x}", range=[-1, self.length_x]),
            yaxis=dict(title=f"Sequence {self.seq_y}", range=[-1, self.length_y]),
            width=width, height=height,
        )
        return fig


def create_posterior_dotplot(
    aligned_pairs: Iterable["AlignedPair"],
    seq_x: int,
    seq_y: int,
    length_x: int,
    length_y: int,
) -> PosteriorDotPlot:
    """Collect the aligned pairs between ``seq_x`` and ``seq_y`` into a dot plot."""
    points = []
    for p in aligned_pairs:
        if (p.seq_x, p.seq_y) == (seq_x, seq_y):
            points.append((p.x, p.y, p.probability))
        elif (p.seq_x, p.seq_y) == (seq_y, seq_x):
            points.append((p.y, p.x, p.probability))
    return PosteriorDotPlot(seq_x, seq_y, length_x, length_y, sorted(points))
