"""
Tests for the direct-shipment and transshipment models.

This module tests:
- The reference waste-disposal case (cost, flows, capacity use)
- Input checking and infeasible supply/capacity combinations
- Flow conservation and the dummy node in the transshipment model
- The opt-in sentinel pricing of disallowed arcs
"""

import warnings

import numpy as np
import pytest

from transport_frontier.core import datasets
from transport_frontier.core.errors import IllConditionedInput, InfeasibleModel
from transport_frontier.core.transport import (
    balance_supply,
    build_transshipment_costs,
    calibrate_sentinel,
    net_flow,
    solve_direct,
    solve_transshipment,
)


class TestDirectShipment:
    """Plant-to-site transportation problem."""

    def test_reference_cost(self, waste_costs):
        plan = solve_direct(waste_costs, datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY)

        assert plan.total_cost == pytest.approx(datasets.WASTE_DIRECT_OPTIMUM)

    def test_reference_flows(self, waste_costs):
        plan = solve_direct(waste_costs, datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY)

        expected = {
            ("Plant 1", "Site 2"): 45,
            ("Plant 2", "Site 1"): 26,
            ("Plant 3", "Site 3"): 42,
            ("Plant 4", "Site 3"): 53,
            ("Plant 5", "Site 2"): 29,
            ("Plant 6", "Site 1"): 38,
        }
        for (plant, site), amount in expected.items():
            assert plan.flows.loc[plant, site] == pytest.approx(amount)
        assert plan.flows.to_numpy().sum() == pytest.approx(233)

    def test_plan_invariants(self, waste_costs):
        plan = solve_direct(waste_costs, datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY)
        flows = plan.flows.to_numpy()

        assert np.all(flows >= -1e-9)
        np.testing.assert_allclose(flows.sum(axis=1), datasets.WASTE_SUPPLY, atol=1e-6)
        assert np.all(flows.sum(axis=0) <= np.array(datasets.DISPOSAL_CAPACITY) + 1e-6)
        assert plan.total_cost == pytest.approx((waste_costs.to_numpy() * flows).sum())

    def test_labels_from_dataframe(self, waste_costs):
        plan = solve_direct(waste_costs, datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY)

        assert list(plan.flows.index) == datasets.PLANTS
        assert list(plan.flows.columns) == datasets.SITES
        assert plan.dummy is None
        assert plan.dummy_supply == 0.0

    def test_default_labels(self):
        plan = solve_direct([[1, 2], [3, 1]], [5, 5], [10, 10])

        assert list(plan.flows.index) == ["Origin_1", "Origin_2"]
        assert list(plan.flows.columns) == ["Destination_1", "Destination_2"]
        assert plan.total_cost == pytest.approx(10)

    def test_highs_agrees(self, waste_costs):
        plan = solve_direct(waste_costs, datasets.WASTE_SUPPLY, datasets.DISPOSAL_CAPACITY, method="highs")

        assert plan.total_cost == pytest.approx(datasets.WASTE_DIRECT_OPTIMUM)

    def test_excluded_arc_carries_no_flow(self):
        costs = [[np.inf, 5.0], [1.0, 2.0]]
        plan = solve_direct(costs, [4, 3], [10, 10])

        assert plan.flows.iloc[0, 0] == 0.0
        assert plan.total_cost == pytest.approx(4 * 5 + 3 * 1)

    def test_origin_without_arcs(self):
        with pytest.raises(InfeasibleModel):
            solve_direct([[np.inf, np.inf], [1.0, 2.0]], [4, 3], [10, 10])

    def test_supply_exceeds_capacity(self, waste_costs):
        with pytest.raises(InfeasibleModel, match="exceeds total capacity"):
            solve_direct(waste_costs, datasets.WASTE_SUPPLY, [65, 80, 80])

    def test_capacity_bottleneck(self):
        # Enough capacity overall, but origin 1 can only reach destination 1
        with pytest.raises(InfeasibleModel):
            solve_direct([[1.0, np.inf], [1.0, 1.0]], [8, 1], [5, 10])

    def test_negative_cost(self):
        with pytest.raises(IllConditionedInput, match="negative"):
            solve_direct([[1, -2], [3, 1]], [5, 5], [10, 10])

    def test_shape_mismatch(self, waste_costs):
        with pytest.raises(IllConditionedInput):
            solve_direct(waste_costs, datasets.WASTE_SUPPLY[:5], datasets.DISPOSAL_CAPACITY)


class TestBalanceSupply:

    def test_dummy_absorbs_spare_capacity(self, net_supply):
        assert net_supply[datasets.DUMMY] == pytest.approx(17)
        assert net_supply.sum() == pytest.approx(0)
        assert list(net_supply.index) == [datasets.DUMMY] + datasets.PLANTS + datasets.SITES
        assert (net_supply[datasets.SITES] < 0).all()

    def test_length_mismatch(self):
        with pytest.raises(IllConditionedInput):
            balance_supply(["A"], ["S"], "D", [1, 2], [3])


class TestTransshipmentCosts:

    def test_layout(self):
        table = build_transshipment_costs(
            datasets.PLANTS, datasets.SITES, datasets.DUMMY,
            datasets.PLANT_TO_PLANT, datasets.SITE_TO_SITE, datasets.DUMMY_TO_SITE,
            pts_costs=datasets.WASTE_COSTS,
        )

        assert table.shape == (10, 10)
        assert (np.diag(table.to_numpy()) == 0).all()
        assert np.isinf(table.loc["Plant 1", datasets.DUMMY])
        assert np.isinf(table.loc["Site 1", "Plant 1"])
        assert np.isinf(table.loc[datasets.DUMMY, "Plant 1"])
        assert table.loc["Plant 4", "Plant 3"] == 3
        assert table.loc["Plant 1", "Site 2"] == 14

    def test_duplicate_names(self):
        with pytest.raises(IllConditionedInput, match="unique"):
            build_transshipment_costs(["A", "A"], ["S"], "D", [[0, 1], [1, 0]], [[0]], [0])

    def test_calibrated_sentinel(self, net_supply):
        table = build_transshipment_costs(
            datasets.PLANTS, datasets.SITES, datasets.DUMMY,
            datasets.PLANT_TO_PLANT, datasets.SITE_TO_SITE, datasets.DUMMY_TO_SITE,
            pts_costs=datasets.WASTE_COSTS,
        )

        # 23 (largest real cost) * 9 (longest path) * 250 (units shipped) = 51750
        assert calibrate_sentinel(table, net_supply) == 1e5
        assert calibrate_sentinel(table.to_numpy(), net_supply.to_numpy()) == 1e5


class TestTransshipment:
    """Balanced transshipment over dummy, plants and sites."""

    def test_flow_conservation(self, transshipment_args, net_supply):
        plan = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)

        residual = net_flow(plan.flows) - net_supply
        assert residual.abs().max() < 1e-6
        assert (plan.flows.to_numpy() >= -1e-9).all()

    def test_dummy_supplies_spare_capacity(self, transshipment_args):
        plan = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)

        assert plan.dummy == datasets.DUMMY
        assert plan.dummy_supply == pytest.approx(17)
        assert plan.flows[datasets.DUMMY].sum() == 0.0

    def test_routing_through_plants_is_cheaper(self, transshipment_args):
        plan = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)

        assert plan.total_cost < datasets.WASTE_DIRECT_OPTIMUM
        # Plant 4 -> Plant 3 -> Site 3 costs 12 against 17 direct
        assert plan.total_cost <= 2614 + 1e-6

    def test_no_backflow_from_sites(self, transshipment_args):
        plan = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)

        assert plan.flows.loc[datasets.SITES, datasets.PLANTS].to_numpy().sum() == 0.0

    def test_shipments_drop_dummy(self, transshipment_args):
        plan = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)

        assert plan.shipments.shape == (9, 9)
        assert datasets.DUMMY not in plan.shipments.index

    def test_total_cost_matches_flows(self, transshipment_args):
        plan = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)
        table = build_transshipment_costs(
            datasets.PLANTS, datasets.SITES, datasets.DUMMY,
            datasets.PLANT_TO_PLANT, datasets.SITE_TO_SITE, datasets.DUMMY_TO_SITE,
            pts_costs=datasets.WASTE_COSTS,
        )
        used = plan.flows.to_numpy() > 0

        assert plan.total_cost == pytest.approx((table.to_numpy()[used] * plan.flows.to_numpy()[used]).sum())

    def test_positional_supply_matches_series(self, transshipment_args, net_supply):
        by_name = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)
        args = transshipment_args[:-1] + (list(net_supply.to_numpy()),)
        by_position = solve_transshipment(*args, pts_costs=datasets.WASTE_COSTS)

        assert by_position.total_cost == pytest.approx(by_name.total_cost)

    def test_highs_agrees(self, transshipment_args):
        ours = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)
        reference = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS, method="highs")

        assert ours.total_cost == pytest.approx(reference.total_cost)

    def test_without_site_arcs_plants_are_cut_off(self, transshipment_args):
        with pytest.raises(InfeasibleModel):
            solve_transshipment(*transshipment_args)

    def test_walled_off_plant(self, transshipment_args):
        ptp = np.array(datasets.PLANT_TO_PLANT, dtype=float)
        ptp[0, :] = np.inf
        pts = np.array(datasets.WASTE_COSTS, dtype=float)
        pts[0, :] = np.inf
        args = transshipment_args[:3] + (ptp,) + transshipment_args[4:]

        with pytest.raises(InfeasibleModel):
            solve_transshipment(*args, pts_costs=pts)

    def test_unbalanced_supply(self, transshipment_args, net_supply):
        unbalanced = net_supply.copy()
        unbalanced[datasets.DUMMY] = 0
        args = transshipment_args[:-1] + (unbalanced,)

        with pytest.raises(InfeasibleModel, match="Net supply sums to"):
            solve_transshipment(*args, pts_costs=datasets.WASTE_COSTS)

    def test_waste_above_capacity(self):
        supply = balance_supply(datasets.PLANTS, datasets.SITES, datasets.DUMMY,
                                datasets.WASTE_SUPPLY, [65, 80, 70])

        with pytest.raises(InfeasibleModel):
            solve_transshipment(
                datasets.PLANTS, datasets.SITES, datasets.DUMMY,
                datasets.PLANT_TO_PLANT, datasets.SITE_TO_SITE, datasets.DUMMY_TO_SITE,
                supply, pts_costs=datasets.WASTE_COSTS,
            )

    def test_missing_node_in_supply(self, transshipment_args, net_supply):
        args = transshipment_args[:-1] + (net_supply.drop("Site 3"),)

        with pytest.raises(IllConditionedInput, match="missing"):
            solve_transshipment(*args, pts_costs=datasets.WASTE_COSTS)


class TestSentinelPricing:
    """Disallowed arcs priced at a finite cost instead of excluded."""

    def test_calibrated_sentinel_matches_exclusion(self, transshipment_args):
        excluded = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS)

        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            priced = solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS, sentinel=1e5)

        assert priced.total_cost == pytest.approx(excluded.total_cost)
        assert priced.flows[datasets.DUMMY].sum() == 0.0

    def test_small_sentinel_warns(self, transshipment_args):
        with pytest.warns(UserWarning, match="does not exceed"):
            solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS, sentinel=1.0)

    def test_huge_sentinel_warns(self):
        supply = balance_supply(["P"], ["S"], "D", [5], [5])

        with pytest.warns(UserWarning, match="far above"):
            plan = solve_transshipment(["P"], ["S"], "D", [[0]], [[0]], [0], supply,
                                       pts_costs=[[1]], sentinel=1e15)

        assert plan.flows.loc["P", "S"] == pytest.approx(5)

    def test_forced_sentinel_arcs_are_reported(self, transshipment_args):
        # No plant-to-site table: every unit must travel a priced-in arc
        with pytest.warns(UserWarning, match="disallowed arcs"):
            plan = solve_transshipment(*transshipment_args, sentinel=1e5)

        assert plan.total_cost >= 1e5 * 233

    @pytest.mark.parametrize("sentinel", [-100.0, np.nan, np.inf])
    def test_invalid_sentinel_is_rejected(self, transshipment_args, sentinel):
        with pytest.raises(IllConditionedInput, match="Sentinel cost"):
            solve_transshipment(*transshipment_args, pts_costs=datasets.WASTE_COSTS, sentinel=sentinel)
