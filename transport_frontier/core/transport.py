"""
Transportation and Transshipment Models
=======================================

This module builds and solves the two waste-disposal logistics models:

Direct shipment (transportation problem):
-----------------------------------------
    minimize:   sum_ij cost[i, j] * flow[i, j]
    subject to: sum_j flow[i, j]  = supply[i]    (every origin ships all of its waste)
                sum_i flow[i, j] <= demand[j]    (disposal capacity ceiling)
                flow >= 0

Transshipment:
--------------
Nodes are ``[dummy] + plants + sites``. Waste may pass through other plants
and other sites on its way to disposal. The dummy node supplies the spare
disposal capacity (total demand - total supply) so that every node can be
written as an exact balance:

    outflow(k) - inflow(k) = net_supply(k)     for every node k

Disallowed arcs (anything into the dummy, dummy to plant, site to plant, and
any pair without a cost table) are excluded from the model outright. Passing
``sentinel=`` instead prices them at a large finite cost, which reproduces the
classic textbook formulation; ``calibrate_sentinel`` gives a safe value.

Self-arcs cost zero and never carry flow.
"""

import logging
import warnings
from typing import List, Mapping, NamedTuple, Optional, Sequence, Union

import numpy as np
import pandas as pd

from transport_frontier.core.errors import IllConditionedInput, InfeasibleModel
from transport_frontier.core.simplex import FEASIBILITY_TOL, solve_lp

logger = logging.getLogger(__name__)

CostTable = Union[Sequence[Sequence[float]], np.ndarray, pd.DataFrame]


class TransportSolution(NamedTuple):
    """Optimal shipping plan: total cost plus a labeled flow matrix."""

    total_cost: float
    flows: pd.DataFrame
    dummy: Optional[str] = None

    @property
    def shipments(self) -> pd.DataFrame:
        """Flows between real facilities (the dummy row and column removed)."""
        if self.dummy is None:
            return self.flows
        return self.flows.drop(index=self.dummy, columns=self.dummy)

    @property
    def dummy_supply(self) -> float:
        """Spare capacity handed out by the dummy node."""
        if self.dummy is None:
            return 0.0
        return float(self.flows.loc[self.dummy].sum())


def _as_cost_matrix(costs: CostTable, shape: Optional[tuple], name: str) -> np.ndarray:
    matrix = costs.to_numpy(dtype=float) if isinstance(costs, pd.DataFrame) else np.asarray(costs, dtype=float)
    matrix = np.atleast_2d(matrix)

    if shape is not None and matrix.shape != shape:
        raise IllConditionedInput(f"{name} has shape {matrix.shape}, expected {shape}")
    if np.any(np.isnan(matrix)):
        raise IllConditionedInput(f"{name} contains NaN entries")
    if np.any(matrix < 0):
        raise IllConditionedInput(f"{name} contains negative costs")

    return matrix


def _as_quantities(values: Sequence[float], name: str) -> np.ndarray:
    vector = np.asarray(values, dtype=float).ravel()
    if not np.all(np.isfinite(vector)):
        raise IllConditionedInput(f"{name} contains non-finite entries")
    if np.any(vector < 0):
        raise IllConditionedInput(f"{name} contains negative quantities")
    return vector


def _labels(given: Optional[Sequence[str]], count: int, prefix: str) -> List[str]:
    if given is None:
        return [f"{prefix}_{i+1}" for i in range(count)]
    labels = list(given)
    if len(labels) != count:
        raise IllConditionedInput(f"Expected {count} {prefix.lower()} names, got {len(labels)}")
    return labels


def solve_direct(
    costs: CostTable,
    supply: Sequence[float],
    demand: Sequence[float],
    origins: Optional[Sequence[str]] = None,
    destinations: Optional[Sequence[str]] = None,
    method: str = "simplex"
) -> TransportSolution:
    """
    Solve the direct-shipment transportation problem.

    Args:
        costs: (m x n) unit shipping costs; ``inf`` marks an excluded arc
        supply: Amount each origin must ship (length m, shipped exactly)
        demand: Capacity of each destination (length n, upper bound)
        origins: Optional origin names (default: row labels or Origin_1, ...)
        destinations: Optional destination names
        method: LP method ('simplex' or 'highs')

    Returns:
        TransportSolution with total cost and the m x n flow table

    Raises:
        IllConditionedInput: On shape mismatch, negative costs or quantities
        InfeasibleModel: If total supply exceeds total capacity, or an origin
            has no usable arc
    """
    cost = _as_cost_matrix(costs, None, "costs")
    supply = _as_quantities(supply, "supply")
    demand = _as_quantities(demand, "demand")
    m, n = cost.shape

    if supply.size != m or demand.size != n:
        raise IllConditionedInput(
            f"Cost matrix is {m}x{n} but supply has {supply.size} and demand {demand.size} entries"
        )

    if isinstance(costs, pd.DataFrame):
        origins = list(costs.index) if origins is None else origins
        destinations = list(costs.columns) if destinations is None else destinations
    origins = _labels(origins, m, "Origin")
    destinations = _labels(destinations, n, "Destination")

    total_supply, total_demand = supply.sum(), demand.sum()
    if total_supply > total_demand + FEASIBILITY_TOL * max(1.0, total_demand):
        raise InfeasibleModel(
            f"Total supply {total_supply:g} exceeds total capacity {total_demand:g}"
        )

    arcs = np.argwhere(np.isfinite(cost))
    if arcs.shape[0] == 0:
        if total_supply > 0:
            raise InfeasibleModel("Every arc is excluded but supply must be shipped")
        return TransportSolution(0.0, pd.DataFrame(np.zeros((m, n)), index=origins, columns=destinations))

    columns = np.arange(arcs.shape[0])
    A_eq = np.zeros((m, arcs.shape[0]))
    A_eq[arcs[:, 0], columns] = 1.0
    A_ub = np.zeros((n, arcs.shape[0]))
    A_ub[arcs[:, 1], columns] = 1.0
    c = cost[arcs[:, 0], arcs[:, 1]]

    logger.debug("Direct model: %d origins, %d destinations, %d arcs", m, n, arcs.shape[0])
    result = solve_lp(c, A_ub, demand, A_eq, supply, method=method)

    flows = np.zeros((m, n))
    flows[arcs[:, 0], arcs[:, 1]] = result.x
    return TransportSolution(
        total_cost=float(c @ result.x),
        flows=pd.DataFrame(flows, index=origins, columns=destinations)
    )


def build_transshipment_costs(
    plants: Sequence[str],
    sites: Sequence[str],
    dummy: str,
    ptp_costs: CostTable,
    sts_costs: CostTable,
    dummy_costs: Sequence[float],
    pts_costs: Optional[CostTable] = None
) -> pd.DataFrame:
    """
    Assemble the square node-to-node cost table.

    Node order is ``[dummy] + plants + sites``. Arcs not covered by a table
    are ``inf`` (disallowed); the diagonal is zero.

    Args:
        plants: Plant names
        sites: Disposal site names
        dummy: Name of the balancing node
        ptp_costs: Plant-to-plant costs (p x p)
        sts_costs: Site-to-site costs (s x s)
        dummy_costs: Dummy-to-site costs (length s)
        pts_costs: Plant-to-site costs (p x s); omitted means no direct arcs

    Returns:
        Labeled (n x n) DataFrame
    """
    plants, sites = list(plants), list(sites)
    nodes = [dummy] + plants + sites
    if len(set(nodes)) != len(nodes):
        raise IllConditionedInput("Node names must be unique across dummy, plants and sites")

    p, s = len(plants), len(sites)
    P = slice(1, 1 + p)
    S = slice(1 + p, 1 + p + s)

    matrix = np.full((len(nodes), len(nodes)), np.inf)
    matrix[P, P] = _as_cost_matrix(ptp_costs, (p, p), "ptp_costs")
    matrix[S, S] = _as_cost_matrix(sts_costs, (s, s), "sts_costs")
    matrix[0, S] = _as_cost_matrix([list(np.ravel(dummy_costs))], (1, s), "dummy_costs")[0]
    if pts_costs is not None:
        matrix[P, S] = _as_cost_matrix(pts_costs, (p, s), "pts_costs")
    np.fill_diagonal(matrix, 0.0)

    return pd.DataFrame(matrix, index=nodes, columns=nodes)


def balance_supply(
    plants: Sequence[str],
    sites: Sequence[str],
    dummy: str,
    plant_supply: Sequence[float],
    site_demand: Sequence[float]
) -> pd.Series:
    """
    Build the signed net-supply vector for the transshipment model.

    Plants supply their waste, sites absorb their full capacity, and the
    dummy supplies the difference (total demand - total supply). A negative
    dummy value means there is more waste than capacity; nothing may flow
    into the dummy, so that model is infeasible.

    Returns:
        Series indexed by node name in model order
    """
    plant_supply = _as_quantities(plant_supply, "plant_supply")
    site_demand = _as_quantities(site_demand, "site_demand")
    if plant_supply.size != len(plants) or site_demand.size != len(sites):
        raise IllConditionedInput("Supply and demand lengths must match the plant and site lists")

    values = np.concatenate([[site_demand.sum() - plant_supply.sum()], plant_supply, -site_demand])
    return pd.Series(values, index=[dummy] + list(plants) + list(sites), name="net_supply")


def _as_net_supply(supply: Union[Mapping[str, float], Sequence[float]], nodes: List[str]) -> np.ndarray:
    if isinstance(supply, (pd.Series, Mapping)):
        missing = [node for node in nodes if node not in supply]
        if missing:
            raise IllConditionedInput(f"Net supply missing for nodes: {missing}")
        vector = np.array([supply[node] for node in nodes], dtype=float)
    else:
        vector = np.asarray(supply, dtype=float).ravel()

    if vector.size != len(nodes):
        raise IllConditionedInput(f"Net supply has {vector.size} entries for {len(nodes)} nodes")
    if not np.all(np.isfinite(vector)):
        raise IllConditionedInput("Net supply contains non-finite entries")
    return vector


def _sentinel_bound(matrix: np.ndarray, net_supply: np.ndarray) -> float:
    """Worst-case cost of any plan that uses real arcs only."""
    off_diagonal = ~np.eye(matrix.shape[0], dtype=bool)
    finite = matrix[off_diagonal & np.isfinite(matrix)]
    max_cost = float(finite.max()) if finite.size else 0.0
    shipped = float(net_supply[net_supply > 0].sum())
    return max_cost * (matrix.shape[0] - 1) * shipped


def calibrate_sentinel(
    costs: CostTable,
    net_supply: Union[Mapping[str, float], Sequence[float]]
) -> float:
    """
    Smallest power of ten above the worst-case real-arc plan cost.

    One unit on a sentinel arc then costs more than any plan built from real
    arcs, so a sentinel arc is chosen only when feasibility forces it.
    """
    matrix = _as_cost_matrix(costs, None, "costs")
    if isinstance(costs, pd.DataFrame):
        net = _as_net_supply(net_supply, list(costs.index))
    else:
        net = np.asarray(net_supply, dtype=float).ravel()
    bound = _sentinel_bound(matrix, net)
    if bound <= 0:
        return 1.0
    return float(10.0 ** (np.floor(np.log10(bound)) + 1))


def net_flow(flows: pd.DataFrame) -> pd.Series:
    """Outflow minus inflow for every node of a square flow table."""
    return flows.sum(axis=1) - flows.sum(axis=0)


def solve_transshipment(
    plants: Sequence[str],
    sites: Sequence[str],
    dummy: str,
    ptp_costs: CostTable,
    sts_costs: CostTable,
    dummy_costs: Sequence[float],
    supply: Union[Mapping[str, float], Sequence[float]],
    pts_costs: Optional[CostTable] = None,
    sentinel: Optional[float] = None,
    method: str = "simplex"
) -> TransportSolution:
    """
    Solve the balanced transshipment problem over ``[dummy] + plants + sites``.

    Args:
        plants: Plant names
        sites: Disposal site names
        dummy: Name of the balancing node
        ptp_costs: Plant-to-plant costs (p x p)
        sts_costs: Site-to-site costs (s x s)
        dummy_costs: Dummy-to-site costs (length s)
        supply: Signed net supply per node, in node order or keyed by name
            (see ``balance_supply``); must sum to zero
        pts_costs: Plant-to-site costs (p x s)
        sentinel: If given, price disallowed arcs at this cost instead of
            excluding them
        method: LP method ('simplex' or 'highs')

    Returns:
        TransportSolution with the n x n flow table and ``dummy`` set

    Raises:
        IllConditionedInput: If the sentinel is negative or not finite
        InfeasibleModel: If net supply does not balance or no feasible flow exists
    """
    cost_table = build_transshipment_costs(plants, sites, dummy, ptp_costs, sts_costs, dummy_costs, pts_costs)
    nodes = list(cost_table.index)
    n = len(nodes)
    net = _as_net_supply(supply, nodes)

    imbalance = net.sum()
    if abs(imbalance) > FEASIBILITY_TOL * max(1.0, float(np.abs(net).sum())):
        raise InfeasibleModel(
            f"Net supply sums to {imbalance:g}; the dummy node must absorb the imbalance"
        )

    matrix = cost_table.to_numpy(dtype=float, copy=True)
    off_diagonal = ~np.eye(n, dtype=bool)
    disallowed = off_diagonal & ~np.isfinite(matrix)

    if sentinel is not None:
        if not np.isfinite(sentinel) or sentinel < 0:
            raise IllConditionedInput(f"Sentinel cost must be finite and nonnegative, got {sentinel}")
        bound = _sentinel_bound(matrix, net)
        if sentinel <= bound:
            warnings.warn(
                f"Sentinel cost {sentinel:g} does not exceed the worst real plan cost {bound:g}; "
                f"the optimizer may prefer disallowed arcs"
            )
        elif sentinel > 1e8 * max(bound, 1.0):
            warnings.warn(
                f"Sentinel cost {sentinel:g} is far above real costs; "
                f"real cost differences may be lost to rounding"
            )
        matrix[disallowed] = sentinel

    arcs = np.argwhere(off_diagonal & np.isfinite(matrix))
    if arcs.shape[0] == 0:
        if np.any(net != 0):
            raise InfeasibleModel("Every arc is excluded but net supply is nonzero")
        return TransportSolution(0.0, pd.DataFrame(np.zeros((n, n)), index=nodes, columns=nodes), dummy=dummy)

    columns = np.arange(arcs.shape[0])
    A_eq = np.zeros((n, arcs.shape[0]))
    A_eq[arcs[:, 0], columns] = 1.0
    A_eq[arcs[:, 1], columns] = -1.0
    c = matrix[arcs[:, 0], arcs[:, 1]]

    logger.debug("Transshipment model: %d nodes, %d arcs", n, arcs.shape[0])
    result = solve_lp(c, A_eq=A_eq, b_eq=net, method=method)

    flows = np.zeros((n, n))
    flows[arcs[:, 0], arcs[:, 1]] = result.x

    if sentinel is not None:
        forced = np.argwhere(disallowed & (flows > FEASIBILITY_TOL))
        if forced.size:
            names = ", ".join(f"{nodes[i]}->{nodes[j]}" for i, j in forced)
            warnings.warn(f"Optimal plan ships over disallowed arcs: {names}")

    return TransportSolution(
        total_cost=float(c @ result.x),
        flows=pd.DataFrame(flows, index=nodes, columns=nodes),
        dummy=dummy
    )
