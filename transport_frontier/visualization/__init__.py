"""Visualization modules for the report."""

from transport_frontier.visualization.plots import (
    plot_efficient_frontier,
    plot_frontier_weights,
    plot_flows
)

__all__ = [
    "plot_efficient_frontier",
    "plot_frontier_weights",
    "plot_flows",
]
