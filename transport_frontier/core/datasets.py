"""
Reference problem data used by the report, the examples and the tests.

Waste disposal:
    Six plants produce waste that must be shipped to three disposal sites.
    Plant-to-site unit costs form the direct transportation table; the
    plant-to-plant and site-to-site tables open up transshipment routes.
    Total waste (233) is below total disposal capacity (250), so the
    transshipment model needs a dummy node supplying 17 units of slack.

Portfolio:
    Four monthly asset classes with expected returns and a covariance matrix
    built from volatilities and a diagonally dominant correlation matrix.
"""

import numpy as np
import pandas as pd

PLANTS = ["Plant 1", "Plant 2", "Plant 3", "Plant 4", "Plant 5", "Plant 6"]
SITES = ["Site 1", "Site 2", "Site 3"]
DUMMY = "Dummy"

WASTE_SUPPLY = [45, 26, 42, 53, 29, 38]
DISPOSAL_CAPACITY = [65, 80, 105]

# Plant -> site, cost per ton
WASTE_COSTS = [
    [20, 14, 22],
    [10, 16, 19],
    [15, 18, 9],
    [23, 21, 17],
    [18, 14, 20],
    [8, 12, 16],
]

WASTE_DIRECT_OPTIMUM = 2879.0

PLANT_TO_PLANT = [
    [0, 6, 8, 9, 5, 7],
    [6, 0, 5, 7, 8, 4],
    [8, 5, 0, 3, 6, 9],
    [9, 7, 3, 0, 7, 8],
    [5, 8, 6, 7, 0, 6],
    [7, 4, 9, 8, 6, 0],
]

SITE_TO_SITE = [
    [0, 7, 9],
    [7, 0, 5],
    [9, 5, 0],
]

DUMMY_TO_SITE = [0, 0, 0]

ASSET_NAMES = ["Tech", "Utilities", "Energy", "Treasury"]
EXPECTED_RETURNS = np.array([0.0120, 0.0085, 0.0150, 0.0060])
VOLATILITIES = np.array([0.060, 0.045, 0.080, 0.030])
CORRELATIONS = np.array([
    [1.00, 0.30, 0.40, 0.10],
    [0.30, 1.00, 0.25, 0.20],
    [0.40, 0.25, 1.00, 0.05],
    [0.10, 0.20, 0.05, 1.00],
])
COVARIANCE = CORRELATIONS * np.outer(VOLATILITIES, VOLATILITIES)


def waste_cost_table() -> pd.DataFrame:
    """Plant-to-site costs as a labeled table."""
    return pd.DataFrame(WASTE_COSTS, index=PLANTS, columns=SITES, dtype=float)


def portfolio_inputs():
    """Return (expected_returns, covariance, asset_names) for the sample portfolio."""
    return EXPECTED_RETURNS.copy(), COVARIANCE.copy(), list(ASSET_NAMES)
