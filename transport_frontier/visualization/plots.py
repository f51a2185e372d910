"""
Plotting Module
===============

Visualization functions for the report:
- Efficient frontier (achieved return vs. achieved risk) with individual
  assets and the minimum variance portfolio
- Portfolio weights along the frontier
- Shipment flows as an annotated heat map
"""

from typing import Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from transport_frontier.core.frontier import FrontierPoint
from transport_frontier.core.transport import TransportSolution


def plot_efficient_frontier(
    points: Sequence[FrontierPoint],
    expected_returns: Optional[np.ndarray] = None,
    cov_matrix: Optional[np.ndarray] = None,
    asset_names: Optional[Sequence[str]] = None,
    figsize: Tuple[int, int] = (12, 8),
    save_path: Optional[str] = None,
    title: str = "Efficient Frontier (Long Only)"
) -> Figure:
    """
    Plot achieved return against achieved risk for each solved frontier point.

    Infeasible points are skipped. When expected returns and covariance are
    given, individual assets are drawn as labeled markers.

    Args:
        points: Frontier points from trace_frontier
        expected_returns: Optional vector of asset returns
        cov_matrix: Optional covariance matrix
        asset_names: Optional asset labels
        figsize: Figure size (width, height)
        save_path: If provided, save the figure to this path
        title: Plot title

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    solved = [p for p in points if p.feasible]
    risks = np.array([p.risk for p in solved])
    returns = np.array([p.achieved_return for p in solved])

    ax.plot(risks * 100, returns * 100, 'b-', linewidth=2, label='Efficient Frontier', zorder=2)
    ax.scatter(risks * 100, returns * 100, c='blue', s=15, zorder=3)

    if solved:
        mvp = min(solved, key=lambda p: p.risk)
        ax.scatter([mvp.risk * 100], [mvp.achieved_return * 100],
                   c='purple', s=200, marker='*', edgecolors='black',
                   label=f"MVP (σ={mvp.risk*100:.2f}%, μ={mvp.achieved_return*100:.2f}%)",
                   zorder=6)

    if expected_returns is not None and cov_matrix is not None:
        asset_stds = np.sqrt(np.diag(cov_matrix))
        asset_returns = np.asarray(expected_returns)
        if asset_names is None:
            asset_names = [f"Asset_{i+1}" for i in range(len(asset_returns))]

        ax.scatter(asset_stds * 100, asset_returns * 100,
                   c='red', s=100, marker='o', edgecolors='black',
                   label='Individual Assets', zorder=5)

        for i, name in enumerate(asset_names):
            ax.annotate(name,
                        (asset_stds[i] * 100, asset_returns[i] * 100),
                        xytext=(5, 5), textcoords='offset points',
                        fontsize=9, fontweight='bold')

    ax.set_xlabel('Risk (Standard Deviation) %', fontsize=12)
    ax.set_ylabel('Expected Return %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_frontier_weights(
    points: Sequence[FrontierPoint],
    asset_names: Optional[Sequence[str]] = None,
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None,
    title: str = "Portfolio Composition Along the Frontier"
) -> Figure:
    """
    Stacked area chart of asset weights against the return target.

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    solved = [p for p in points if p.feasible]
    if solved:
        targets = np.array([p.target for p in solved])
        weights = np.vstack([p.weights for p in solved])
        if asset_names is None:
            asset_names = [f"Asset_{i+1}" for i in range(weights.shape[1])]

        ax.stackplot(targets * 100, weights.T * 100, labels=list(asset_names), alpha=0.8)
        ax.legend(loc='upper left', fontsize=10)

    ax.set_xlabel('Target Return %', fontsize=12)
    ax.set_ylabel('Weight %', fontsize=12)
    ax.set_ylim(0, 100)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_flows(
    solution: TransportSolution,
    figsize: Tuple[int, int] = (10, 7),
    save_path: Optional[str] = None,
    title: str = "Optimal Shipments"
) -> Figure:
    """
    Heat map of shipped quantities between facilities (dummy node excluded).

    Returns:
        matplotlib Figure object
    """
    shipments = solution.shipments
    data = shipments.to_numpy(dtype=float)

    fig, ax = plt.subplots(figsize=figsize)
    image = ax.imshow(data, cmap='Blues')
    fig.colorbar(image, ax=ax, label='Quantity shipped')

    ax.set_xticks(np.arange(data.shape[1]))
    ax.set_xticklabels(shipments.columns, rotation=45, ha='right')
    ax.set_yticks(np.arange(data.shape[0]))
    ax.set_yticklabels(shipments.index)

    for i in range(data.shape[0]):
        for j in range(data.shape[1]):
            if data[i, j] > 1e-9:
                ax.text(j, i, f"{data[i, j]:.0f}", ha='center', va='center', fontsize=9,
                        color='white' if data[i, j] > data.max() / 2 else 'black')

    ax.set_xlabel('To', fontsize=12)
    ax.set_ylabel('From', fontsize=12)
    ax.set_title(f"{title} (total cost {solution.total_cost:,.0f})", fontsize=14, fontweight='bold')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig
