"""Chart generation using Plotly."""

from typing import Sequence

import plotly.graph_objects as go

from ..engine.vault import VaultSnapshot

THEME = {
    "text": "#e8eaed",
    "text_secondary": "#9aa0a6",
    "grid": "rgba(30, 33, 36, 0.8)",
    "cyan": "#00d4ff",
    "amber": "#ffab00",
    "green": "#00e676",
    "red": "#ff5252",
}


def apply_dark_layout(fig: go.Figure, title: str, x_title: str, y_title: str, showlegend: bool = True) -> None:
    """Apply dark theme layout for charts."""
    fig.update_layout(
        title={
            "text": title,
            "x": 0,
            "xanchor": "left",
            "font": {"size": 11, "color": THEME["text_secondary"]}
        },
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode="x unified",
        template="plotly_dark",
        height=340,
        margin=dict(l=50, r=20, t=40, b=40),
        showlegend=showlegend,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0),
        font={"color": THEME["text"], "size": 11},
        xaxis=dict(gridcolor=THEME["grid"]),
        yaxis=dict(gridcolor=THEME["grid"]),
    )


def create_cohort_chart(snapshots: Sequence[VaultSnapshot], title: str = "Cohort totals") -> go.Figure:
    """Stacked cohort shares with the deployable pool and principal custody overlaid."""
    steps = list(range(len(snapshots)))
    modes = [s.mode.name for s in snapshots]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=steps, y=[s.shares_non_kyc for s in snapshots], name="Non-KYC shares",
        stackgroup="shares", line=dict(color=THEME["amber"]), customdata=modes,
        hovertemplate="%{y:,}<br>%{customdata}",
    ))
    fig.add_trace(go.Scatter(
        x=steps, y=[s.shares_kyc for s in snapshots], name="KYC shares",
        stackgroup="shares", line=dict(color=THEME["cyan"]),
    ))
    fig.add_trace(go.Scatter(
        x=steps, y=[s.usdc_kyc_deployable for s in snapshots], name="Deployable principal",
        line=dict(color=THEME["green"], dash="dash"),
    ))
    fig.add_trace(go.Scatter(
        x=steps, y=[s.principal_held for s in snapshots], name="Principal held",
        line=dict(color=THEME["text_secondary"], dash="dot"),
    ))
    fig.add_trace(go.Scatter(
        x=steps, y=[s.settlement_held for s in snapshots], name="Settlement held",
        line=dict(color=THEME["red"]),
    ))
    apply_dark_layout(fig, title, "Step", "Units")
    return fig


def save_chart(fig: go.Figure, filepath: str) -> None:
    """Write a standalone HTML file."""
    fig.write_html(filepath, include_plotlyjs="cdn")
