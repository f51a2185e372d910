"""Core computational modules: generic LP/QP solvers and the two problem builders."""

from transport_frontier.core.errors import (
    OptimizationError,
    InfeasibleModel,
    IllConditionedInput,
    UnboundedModel,
    SolverFailure,
)
from transport_frontier.core.simplex import solve_lp, LPResult
from transport_frontier.core.active_set import solve_qp, QPResult
from transport_frontier.core.transport import (
    TransportSolution,
    solve_direct,
    solve_transshipment,
    balance_supply,
    build_transshipment_costs,
    calibrate_sentinel,
    net_flow,
)
from transport_frontier.core.frontier import (
    Portfolio,
    FrontierPoint,
    min_variance_at_return,
    minimum_variance_portfolio,
    trace_frontier,
    iter_frontier,
    frontier_targets,
    frontier_table,
    compute_stats_from_returns,
    generate_sample_data,
)
from transport_frontier.core.loader import DataLoader

__all__ = [
    "OptimizationError",
    "InfeasibleModel",
    "IllConditionedInput",
    "UnboundedModel",
    "SolverFailure",
    "solve_lp",
    "LPResult",
    "solve_qp",
    "QPResult",
    "TransportSolution",
    "solve_direct",
    "solve_transshipment",
    "balance_supply",
    "build_transshipment_costs",
    "calibrate_sentinel",
    "net_flow",
    "Portfolio",
    "FrontierPoint",
    "min_variance_at_return",
    "minimum_variance_portfolio",
    "trace_frontier",
    "iter_frontier",
    "frontier_targets",
    "frontier_table",
    "compute_stats_from_returns",
    "generate_sample_data",
    "DataLoader",
]
