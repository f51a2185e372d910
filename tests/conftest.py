"""Pytest configuration and shared fixtures."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from transport_frontier.core import datasets
from transport_frontier.core.transport import balance_supply


@pytest.fixture
def waste_costs():
    """Labeled plant-to-site cost table of the reference case."""
    return datasets.waste_cost_table()


@pytest.fixture
def net_supply():
    """Balanced net supply over dummy, plants and sites."""
    return balance_supply(
        datasets.PLANTS,
        datasets.SITES,
        datasets.DUMMY,
        datasets.WASTE_SUPPLY,
        datasets.DISPOSAL_CAPACITY,
    )


@pytest.fixture
def transshipment_args(net_supply):
    """Positional arguments for solve_transshipment on the reference case."""
    return (
        datasets.PLANTS,
        datasets.SITES,
        datasets.DUMMY,
        datasets.PLANT_TO_PLANT,
        datasets.SITE_TO_SITE,
        datasets.DUMMY_TO_SITE,
        net_supply,
    )


@pytest.fixture
def portfolio():
    """(expected_returns, covariance, asset_names) for the four-asset sample."""
    return datasets.portfolio_inputs()


@pytest.fixture
def two_assets():
    """Uncorrelated pair with a closed-form frontier."""
    return np.array([0.10, 0.05]), np.diag([0.04, 0.01])
