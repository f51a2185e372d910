"""
Waste Disposal and Efficient Frontier Walkthrough
6 plants, 3 disposal sites; 4 asset classes, long only

Runs each model once with the built-in solvers and once with the SciPy
backends, and prints the comparison.
"""

import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from transport_frontier import balance_supply, solve_direct, solve_transshipment, trace_frontier
from transport_frontier.core import datasets
from transport_frontier.core.frontier import frontier_table, frontier_targets


def main():
    costs = datasets.waste_cost_table()

    print("=== Direct shipment ===")
    for method in ("simplex", "highs"):
        plan = solve_direct(costs, datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY, method=method)
        print(f"{method:>8}: total cost {plan.total_cost:,.2f}")
    print(plan.flows.round(1))

    print("\n=== Transshipment ===")
    supply = balance_supply(datasets.PLANTS, datasets.SITES, datasets.DUMMY,
                            datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY)
    plan = solve_transshipment(
        datasets.PLANTS, datasets.SITES, datasets.DUMMY,
        datasets.PLANT_TO_PLANT, datasets.SITE_TO_SITE, datasets.DUMMY_TO_SITE,
        supply, pts_costs=datasets.WASTE_COSTS
    )
    print(f"total cost {plan.total_cost:,.2f}, dummy slack {plan.dummy_supply:.0f}")
    print(plan.shipments.round(1))

    print("\n=== Efficient frontier ===")
    means, cov, names = datasets.portfolio_inputs()
    targets = frontier_targets(means, cov, n_points=8)
    for method in ("active_set", "slsqp"):
        points = trace_frontier(means, cov, targets, method=method)
        risks = np.array([p.risk for p in points])
        print(f"{method:>10}: risk from {risks.min()*100:.3f}% to {risks.max()*100:.3f}%")
    print(frontier_table(points, names).round(4).to_string(index=False))


if __name__ == "__main__":
    main()
