"""
Transport Frontier - Logistics LP and Mean-Variance QP Toolkit
==============================================================

Solves the two optimization problems of the operations report:

1. Waste-disposal logistics as a transportation LP (direct shipment) and a
   transshipment LP balanced with a dummy node.
2. The long-only efficient frontier: minimum variance portfolios subject to a
   floor on expected return, swept over a range of targets.

Usage:
    from transport_frontier import solve_direct, solve_transshipment
    from transport_frontier import min_variance_at_return, trace_frontier
    from transport_frontier.visualization import plot_efficient_frontier

Functions:
    solve_direct - Direct-shipment transportation problem
    solve_transshipment - Transshipment problem over dummy, plants and sites
    min_variance_at_return - Minimum variance portfolio for a return floor
    trace_frontier - Frontier points for a sequence of return floors
"""

from transport_frontier.core.errors import (
    OptimizationError,
    InfeasibleModel,
    IllConditionedInput,
)
from transport_frontier.core.transport import (
    TransportSolution,
    solve_direct,
    solve_transshipment,
    balance_supply,
)
from transport_frontier.core.frontier import (
    Portfolio,
    FrontierPoint,
    min_variance_at_return,
    trace_frontier,
)
from transport_frontier.core.loader import DataLoader

__version__ = "1.0.0"

__all__ = [
    "OptimizationError",
    "InfeasibleModel",
    "IllConditionedInput",
    "TransportSolution",
    "solve_direct",
    "solve_transshipment",
    "balance_supply",
    "Portfolio",
    "FrontierPoint",
    "min_variance_at_return",
    "trace_frontier",
    "DataLoader",
]
