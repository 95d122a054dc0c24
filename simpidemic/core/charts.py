"""Plotly figure for a Result Set."""

from __future__ import annotations

import plotly.graph_objects as go

from simpidemic.core.compartments import ResultSet

COLORS = {
    "susceptible": "#1f77b4",
    "infected": "#d62728",
    "in_treatment": "#ff7f0e",
    "recovered": "#2ca02c",
    "dead": "#7f7f7f",
}

LABELS = {
    "susceptible": "Susceptible",
    "infected": "Infected",
    "in_treatment": "In treatment",
    "recovered": "Recovered",
    "dead": "Dead",
}


def build_figure(
    result: ResultSet,
    title: str | None = None,
    log_scale: bool = False,
    compartments: list[str] | None = None,
) -> go.Figure:
    days = list(range(result.num_days))
    fig = go.Figure()
    for name in compartments or list(COLORS):
        fig.add_trace(go.Scatter(
            x=days, y=list(getattr(result, name)),
            mode="lines",
            name=LABELS[name],
            line=dict(width=2, color=COLORS[name]),
        ))
    fig.update_layout(
        title=title,
        xaxis_title="Days",
        yaxis_title="People",
        yaxis_type="log" if log_scale else "linear",
        hovermode="x unified",
        legend=dict(orientation="h", y=1.12),
        margin=dict(t=40, b=40),
        height=500,
    )
    return fig
