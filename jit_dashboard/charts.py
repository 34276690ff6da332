"""
Plotly figure builders for the dashboard pages.

Each function takes a DataFrame shaped by transforms/dashboard and returns a
go.Figure. Empty frames yield a figure with no traces and a "No data
available" annotation.
"""

import plotly.graph_objects as go
import pandas as pd

from .config import RAG_COLORS, SERIES_COLORS
from .kpis import classify_trs


def _layout(fig: go.Figure, height: int = 300, **kwargs) -> go.Figure:
    fig.update_layout(
        height=height,
        plot_bgcolor="rgba(0,0,0,0)",
        margin=dict(l=10, r=10, t=30, b=80),
        legend=dict(orientation="h"),
        **kwargs,
    )
    fig.update_xaxes(tickangle=-45)
    return fig


def _ratio_axis(fig: go.Figure) -> go.Figure:
    fig.update_yaxes(range=[0, 1], tickformat=".0%")
    return fig


def _empty(height: int = 300) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        text="No data available",
        showarrow=False,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    return _layout(fig, height)


# ---------------------------------------------------------------------------
# Production
# ---------------------------------------------------------------------------

def production_trend_chart(by_date: pd.DataFrame, height: int = 300) -> go.Figure:
    """Good vs rejected pieces per date as lines."""
    if by_date.empty:
        return _empty(height)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=by_date["date"], y=by_date["goodPieces"],
        name="Good Pieces", mode="lines+markers",
        line=dict(color=SERIES_COLORS["good"], width=2),
    ))
    fig.add_trace(go.Scatter(
        x=by_date["date"], y=by_date["rejectedPieces"],
        name="Rejected Pieces", mode="lines+markers",
        line=dict(color=SERIES_COLORS["rejected"], width=2),
    ))
    return _layout(fig, height)


def production_by_machine_chart(by_machine: pd.DataFrame, height: int = 300) -> go.Figure:
    """Grouped bars of good and rejected pieces per machine."""
    if by_machine.empty:
        return _empty(height)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=by_machine["machine"], y=by_machine["goodPieces"],
        name="Good Pieces", marker_color=SERIES_COLORS["good"],
    ))
    fig.add_trace(go.Bar(
        x=by_machine["machine"], y=by_machine["rejectedPieces"],
        name="Rejected Pieces", marker_color=SERIES_COLORS["rejected"],
    ))
    return _layout(fig, height, barmode="group")


def good_vs_rejected_chart(by_date: pd.DataFrame, height: int = 300) -> go.Figure:
    """Stacked good/rejected bars per date."""
    if by_date.empty:
        return _empty(height)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=by_date["date"], y=by_date["goodPieces"],
        name="Good Pieces", marker_color=SERIES_COLORS["good"],
    ))
    fig.add_trace(go.Bar(
        x=by_date["date"], y=by_date["rejectedPieces"],
        name="Rejected Pieces", marker_color=SERIES_COLORS["rejected"],
    ))
    return _layout(fig, height, barmode="stack")


# ---------------------------------------------------------------------------
# TRS
# ---------------------------------------------------------------------------

def trs_trend_chart(trend: pd.DataFrame, height: int = 300) -> go.Figure:
    """Mean TRS per date on a 0-100% axis."""
    if trend.empty:
        return _empty(height)

    fig = go.Figure(go.Scatter(
        x=trend["date"], y=trend["trs"],
        name="TRS", mode="lines+markers",
        line=dict(color=SERIES_COLORS["trs"], width=2),
        hovertemplate="%{x}<br>TRS: %{y:.1%}<extra></extra>",
    ))
    return _ratio_axis(_layout(fig, height))


def trs_components_chart(components: pd.DataFrame, height: int = 300) -> go.Figure:
    """Availability, performance and quality per machine."""
    if components.empty:
        return _empty(height)

    fig = go.Figure()
    for col, label in (
        ("availability", "Availability"),
        ("performance", "Performance"),
        ("quality", "Quality"),
    ):
        fig.add_trace(go.Bar(
            x=components["machine"], y=components[col],
            name=label, marker_color=SERIES_COLORS[col],
        ))
    return _ratio_axis(_layout(fig, height, barmode="group"))


def machine_comparison_chart(comparison: pd.DataFrame, height: int = 300) -> go.Figure:
    """TRS per machine, best first, coloured green/amber/red."""
    if comparison.empty:
        return _empty(height)

    fig = go.Figure(go.Bar(
        x=comparison["machine"], y=comparison["trs"],
        name="TRS",
        marker_color=comparison["color"],
        text=comparison["trs"].apply(lambda x: f"{x:.1%}"),
        textposition="outside",
    ))
    return _ratio_axis(_layout(fig, height))


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

def top_articles_chart(articles: pd.DataFrame, height: int = 300) -> go.Figure:
    if articles.empty:
        return _empty(height)

    fig = go.Figure(go.Bar(
        x=articles["articleCode"], y=articles["totalGood"],
        name="Good Pieces", marker_color=SERIES_COLORS["trs"],
    ))
    return _layout(fig, height)


def operator_performance_chart(operators: pd.DataFrame, height: int = 300) -> go.Figure:
    if operators.empty:
        return _empty(height)

    fig = go.Figure(go.Bar(
        x=operators["operatorName"], y=operators["totalProduction"],
        name="Total Production", marker_color=SERIES_COLORS["good"],
    ))
    return _layout(fig, height)


def machine_utilization_chart(utilization: pd.DataFrame, height: int = 300) -> go.Figure:
    """Mean TRS per machine as utilisation, coloured on the TRS bands."""
    if utilization.empty:
        return _empty(height)

    colors = [RAG_COLORS[classify_trs(v)] for v in utilization["utilizationRate"]]
    fig = go.Figure(go.Bar(
        x=utilization["machineName"], y=utilization["utilizationRate"],
        name="Utilization Rate", marker_color=colors,
    ))
    return _ratio_axis(_layout(fig, height))


def material_consumption_chart(materials: pd.DataFrame, height: int = 350) -> go.Figure:
    """Good vs scrap usage per material, stacked."""
    if materials.empty:
        return _empty(height)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=materials["materialCode"], y=materials["goodUsed"],
        name="Good Used", marker_color=SERIES_COLORS["good"],
    ))
    fig.add_trace(go.Bar(
        x=materials["materialCode"], y=materials["scrapUsed"],
        name="Scrap Used", marker_color=SERIES_COLORS["rejected"],
    ))
    return _layout(fig, height, barmode="stack")
