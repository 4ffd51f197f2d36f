# plot_style.py
"""
BioReconcile - Plot Styling
===========================

Plotly figures in a consistent house style for simulation and filter results.

Usage:
    from bioreconcile.plot_style import create_trajectory_plot, create_filter_plot

    fig = create_trajectory_plot(results)
    fig = create_filter_plot(t, weight, kalman_flow_rate(t, weight))
"""

import logging

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .config import DEFAULT_COLUMN_PREFIX, FONT_FAMILY, PLOT_TEMPLATE, SPECIES, output_columns
from .kalman import FlowRateEstimate

logger = logging.getLogger(__name__)

__all__ = [
    "COLORS",
    "SPECIES_COLORS",
    "get_axis_style",
    "get_legend_style",
    "create_trajectory_plot",
    "create_rate_plot",
    "create_filter_plot",
]

COLORS = {
    "measured": "#000000",
    "filtered": "#1f77b4",
    "secondary": "#ff7f0e",
    "diagnostic": "#757575",
    "background": "#FFFFFF",
    "grid": "#E0E0E0",
    "tick_text": "#424242",
}

SPECIES_COLORS = dict(zip(SPECIES, ["#2ca02c", "#1f77b4", "#d62728", "#9467bd"]))

SPECIES_LABELS = {"X": "Biomass", "S": "Substrate", "CO2": "CO<sub>2</sub>", "O2": "O<sub>2</sub>"}

# =============================================================================
# LAYOUT HELPERS
# =============================================================================


def get_axis_style(title: str) -> dict:
    """Standard axis configuration; ``title`` may contain HTML such as '<sub>S</sub>'."""
    return {
        "title": {"text": title, "font": {"size": 14, "family": FONT_FAMILY}},
        "showgrid": False,
        "gridcolor": COLORS["grid"],
        "showline": True,
        "linewidth": 2,
        "linecolor": "black",
        "mirror": True,
        "ticks": "outside",
        "tickfont": {"size": 11, "family": FONT_FAMILY, "color": COLORS["tick_text"]},
        "zeroline": False,
    }


def get_legend_style(x: float, y: float, xanchor: str = "left", yanchor: str = "top") -> dict:
    """Standard legend configuration at (x, y) in paper coordinates."""
    return {
        "x": x,
        "y": y,
        "xanchor": xanchor,
        "yanchor": yanchor,
        "bgcolor": "rgba(255, 255, 255, 0.9)",
        "bordercolor": "black",
        "borderwidth": 1,
    }


def _apply_base_layout(fig: go.Figure, title: str, height: int) -> go.Figure:
    fig.update_layout(
        template=PLOT_TEMPLATE,
        title={"text": f"<b>{title}</b>", "font": {"size": 16, "family": FONT_FAMILY}},
        height=height,
        plot_bgcolor=COLORS["background"],
        paper_bgcolor=COLORS["background"],
        font={"family": FONT_FAMILY, "size": 12},
        margin={"l": 70, "r": 70, "t": 60, "b": 60},
        legend=get_legend_style(0.02, 0.98),
    )
    return fig


# =============================================================================
# FIGURES
# =============================================================================


def create_trajectory_plot(
    results: pd.DataFrame,
    prefix: str = DEFAULT_COLUMN_PREFIX,
    title: str = "Balance Simulation",
    height: int = 600,
) -> go.Figure:
    """
    Masses (top) and biomass/substrate concentrations (bottom) against time.

    ``results`` is the DataFrame returned by ``simulate_balance``.
    """
    columns = output_columns(prefix)
    fig = make_subplots(rows=2, cols=1, shared_xaxes=True, vertical_spacing=0.08)

    for species, col in zip(SPECIES, columns["mass"]):
        fig.add_trace(
            go.Scatter(
                x=results["time"],
                y=results[col],
                mode="lines",
                name=f"m {SPECIES_LABELS[species]}",
                line={"width": 2.5, "color": SPECIES_COLORS[species]},
            ),
            row=1,
            col=1,
        )
    for species, col in zip(SPECIES, columns["concentration"]):
        fig.add_trace(
            go.Scatter(
                x=results["time"],
                y=results[col],
                mode="lines",
                name=f"c {SPECIES_LABELS[species]}",
                line={"width": 2.5, "color": SPECIES_COLORS[species], "dash": "dash"},
            ),
            row=2,
            col=1,
        )

    _apply_base_layout(fig, title, height)
    fig.update_xaxes(**get_axis_style("Time (h)"), row=2, col=1)
    fig.update_yaxes(**get_axis_style("Mass (g)"), row=1, col=1)
    fig.update_yaxes(**get_axis_style("Concentration (g/L)"), row=2, col=1)
    return fig


def create_rate_plot(
    results: pd.DataFrame,
    prefix: str = DEFAULT_COLUMN_PREFIX,
    title: str = "Reconciled Rates",
    height: int = 450,
) -> go.Figure:
    """Reconciled conversion rates (left axis) with the diagnostic h (right axis)."""
    columns = output_columns(prefix)
    fig = make_subplots(specs=[[{"secondary_y": True}]])

    for species, col in zip(SPECIES, columns["rate"]):
        fig.add_trace(
            go.Scatter(
                x=results["time"],
                y=results[col],
                mode="lines",
                name=f"r {SPECIES_LABELS[species]}",
                line={"width": 2.5, "color": SPECIES_COLORS[species]},
            ),
            secondary_y=False,
        )
    h = results[columns["diagnostic"][0]]
    if np.any(h.to_numpy() > 0):
        fig.add_trace(
            go.Scatter(
                x=results["time"],
                y=h,
                mode="markers",
                name="h",
                marker={"size": 6, "color": COLORS["diagnostic"]},
            ),
            secondary_y=True,
        )
    else:
        logger.debug("Diagnostic h is zero everywhere; secondary axis left empty")

    _apply_base_layout(fig, title, height)
    fig.update_xaxes(**get_axis_style("Time (h)"))
    fig.update_yaxes(**get_axis_style("Rate (g/h)"), secondary_y=False)
    fig.update_yaxes(**get_axis_style("h (-)"), secondary_y=True)
    return fig


def create_filter_plot(
    t: np.ndarray,
    z: np.ndarray,
    estimate: FlowRateEstimate,
    title: str = "Kalman Filter Estimate",
    height: int = 450,
) -> go.Figure:
    """Raw vs. filtered weight (left axis) and estimated flow rate (right axis)."""
    t = np.asarray(t, dtype=float)
    states = np.atleast_2d(estimate.states)
    fig = make_subplots(specs=[[{"secondary_y": True}]])

    fig.add_trace(
        go.Scatter(
            x=t,
            y=np.asarray(z, dtype=float),
            mode="markers",
            name="Measured",
            marker={"size": 6, "color": COLORS["measured"], "symbol": "circle-open"},
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Scatter(
            x=t[: states.shape[0]],
            y=states[:, 0],
            mode="lines",
            name="Filtered",
            line={"width": 2.5, "color": COLORS["filtered"]},
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Scatter(
            x=t[: states.shape[0]],
            y=np.atleast_1d(estimate.flow_rate),
            mode="lines",
            name="Flow rate",
            line={"width": 2.5, "color": COLORS["secondary"], "dash": "dash"},
        ),
        secondary_y=True,
    )

    _apply_base_layout(fig, title, height)
    fig.update_xaxes(**get_axis_style("Time (h)"))
    fig.update_yaxes(**get_axis_style("Weight (g)"), secondary_y=False)
    fig.update_yaxes(**get_axis_style("Flow rate (L/h)"), secondary_y=True)
    return fig
