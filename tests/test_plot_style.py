# tests/test_plot_style.py
"""
Unit Tests for Plot Styling
===========================

Tests for figure construction; figures are inspected, not rendered.

Author: BioReconcile Team
"""

import os
import sys

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bioreconcile.config import FONT_FAMILY, output_columns
from bioreconcile.kalman import kalman_flow_rate
from bioreconcile.plot_style import (
    create_filter_plot,
    create_rate_plot,
    create_trajectory_plot,
    get_axis_style,
    get_legend_style,
)


def _results(h_value: float, prefix: str = "K2S1") -> pd.DataFrame:
    columns = output_columns(prefix)
    t = np.linspace(0.0, 2.0, 5)
    data = {"time": t}
    for name in columns["mass"] + columns["concentration"] + columns["rate"]:
        data[name] = t + 1.0
    data[columns["diagnostic"][0]] = np.full(5, h_value)
    return pd.DataFrame(data)


@pytest.fixture
def results():
    """Simulation-shaped results with non-zero h."""
    return _results(0.3)


class TestStyleHelpers:
    """Tests for axis and legend helpers."""

    def test_axis_style(self):
        """Axis title and font are applied."""
        style = get_axis_style("Time (h)")
        assert style["title"]["text"] == "Time (h)"
        assert style["tickfont"]["family"] == FONT_FAMILY
        assert style["mirror"] is True

    def test_legend_style(self):
        """Legend position is passed through."""
        style = get_legend_style(0.5, 0.9, xanchor="center")
        assert (style["x"], style["y"], style["xanchor"]) == (0.5, 0.9, "center")


class TestFigures:
    """Tests for the figure builders."""

    def test_trajectory_plot(self, results):
        """Four mass and two concentration traces."""
        fig = create_trajectory_plot(results)
        assert isinstance(fig, go.Figure)
        assert len(fig.data) == 6

    def test_trajectory_plot_prefix(self):
        """Custom prefixes are honored."""
        fig = create_trajectory_plot(_results(0.0, prefix="RUN"), prefix="RUN")
        assert len(fig.data) == 6

    def test_rate_plot_with_h(self, results):
        """Non-zero h adds a diagnostic trace."""
        fig = create_rate_plot(results)
        assert len(fig.data) == 5
        assert fig.data[-1].name == "h"

    def test_rate_plot_without_h(self):
        """Zero h is omitted."""
        assert len(create_rate_plot(_results(0.0)).data) == 4

    def test_filter_plot(self):
        """Measured, filtered and flow-rate traces."""
        t = np.arange(0.0, 20.0)
        z = 500.0 - 2.0 * t
        fig = create_filter_plot(t, z, kalman_flow_rate(t, z))
        assert len(fig.data) == 3
        assert fig.layout.title.text == "<b>Kalman Filter Estimate</b>"
