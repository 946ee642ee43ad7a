from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import torch


def _as_grid(weights: torch.Tensor) -> torch.Tensor:
    # -> (rows, cols, Q, K)
    if weights.ndim == 2:
        return weights.view(1, 1, *weights.shape)
    if weights.ndim == 3:
        return weights.unsqueeze(0)
    if weights.ndim == 4:
        return weights
    raise ValueError("attention tensor must be [Q, K], [B, Q, K] or [R, C, Q, K]")


def attention_heatmap_figure(
    weights: torch.Tensor,
    *,
    titles: Optional[Sequence[str]] = None,
    xlabel: str = "Keys",
    ylabel: str = "Queries",
    colorscale: str = "Reds",
):
    """Create a Plotly heatmap grid for attention weights.

    weights: [Q, K], [B, Q, K] (one panel per batch element, in a row) or
    [R, C, Q, K] (an R x C grid of panels). All panels share one color scale.
    """
    import plotly.graph_objects as go  # type: ignore
    from plotly.subplots import make_subplots  # type: ignore

    grid = _as_grid(weights).detach().float().cpu()
    rows, cols = int(grid.shape[0]), int(grid.shape[1])
    if titles is not None and len(titles) != rows * cols:
        raise ValueError(f"expected {rows * cols} titles, got {len(titles)}")
    fig = make_subplots(rows=rows, cols=cols, subplot_titles=list(titles) if titles is not None else None)
    zmin, zmax = float(grid.min()), float(grid.max())
    for r in range(rows):
        for c in range(cols):
            mat = grid[r, c].numpy()
            fig.add_trace(
                go.Heatmap(z=mat, colorscale=colorscale, zmin=zmin, zmax=zmax, showscale=(r == 0 and c == 0)),
                row=r + 1,
                col=c + 1,
            )
            fig.update_xaxes(title_text=xlabel if r == rows - 1 else None, row=r + 1, col=c + 1)
            fig.update_yaxes(title_text=ylabel if c == 0 else None, autorange="reversed", row=r + 1, col=c + 1)
    fig.update_layout(title="Attention Weights", template="plotly_white")
    return fig


def write_attention_html(weights: torch.Tensor, path: str | Path, *, title: Optional[str] = None) -> Path:
    """Write the heatmap grid for `weights` to a standalone HTML file."""
    import plotly.io as pio  # type: ignore

    fig = attention_heatmap_figure(weights)
    if title is not None:
        fig.update_layout(title=title)
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(pio.to_html(fig, include_plotlyjs="cdn", full_html=True))
    return out
