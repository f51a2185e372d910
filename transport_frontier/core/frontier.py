"""
Efficient Frontier - Long-Only Mean-Variance Optimization
=========================================================

This module traces the efficient frontier of a long-only, fully invested
portfolio. Each point solves the quadratic program

    minimize:   w^T * Sigma * w
    subject to: sum(w) = 1               (fully invested)
                mu^T * w >= return_floor (return floor)
                w >= 0                   (no short selling)

The objective is convex (Sigma is PSD) and the constraints are linear, so the
optimum is global whenever the floor is attainable. Under the simplex
constraints the highest reachable return is max(mu); a higher floor is
infeasible.

Because the floor is an inequality, targets below the return of the minimum
variance portfolio (MVP) all return the MVP itself, and risk is
non-decreasing as the floor rises.

Sweeps produce an ordered, finite sequence of FrontierPoint values. Every
target is solved independently; an unattainable target is recorded on its own
point instead of stopping the sweep.
"""

import logging
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Dict

import numpy as np
import pandas as pd

from transport_frontier.core.active_set import solve_qp
from transport_frontier.core.errors import IllConditionedInput, InfeasibleModel, SolverFailure

logger = logging.getLogger(__name__)

RETURN_TOL = 1e-9
WEIGHT_TOL = 1e-9


class Portfolio(NamedTuple):
    """Optimal long-only portfolio for one return floor."""

    weights: np.ndarray
    risk: float
    expected_return: float
    variance: float


class FrontierPoint(NamedTuple):
    """One solved (or failed) target on the efficient frontier."""

    target: float
    risk: float
    achieved_return: float
    weights: Optional[np.ndarray] = None
    error: Optional[str] = None

    @property
    def feasible(self) -> bool:
        return self.error is None


def validate_inputs(
    expected_returns: Sequence[float],
    covariance: Sequence[Sequence[float]]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Check and normalize expected returns and covariance.

    Returns:
        Tuple of (expected_returns, covariance) as float arrays, with the
        covariance exactly symmetrized

    Raises:
        IllConditionedInput: If dimensions don't match, entries are not finite,
            or the covariance matrix is not symmetric PSD
    """
    mu = np.asarray(expected_returns, dtype=float).ravel()
    cov = np.asarray(covariance, dtype=float)
    k = mu.size

    if k == 0:
        raise IllConditionedInput("At least one asset is required")
    if cov.shape != (k, k):
        raise IllConditionedInput(
            f"Covariance matrix shape {cov.shape} doesn't match number of assets {k}"
        )
    if not (np.all(np.isfinite(mu)) and np.all(np.isfinite(cov))):
        raise IllConditionedInput("Expected returns or covariance contain non-finite entries")
    if not np.allclose(cov, cov.T):
        raise IllConditionedInput("Covariance matrix is not symmetric")

    cov = (cov + cov.T) / 2

    eigenvalues = np.linalg.eigvalsh(cov)
    if np.any(eigenvalues < -1e-10 * max(1.0, float(np.abs(eigenvalues).max()))):
        raise IllConditionedInput(
            f"Covariance matrix has negative eigenvalues (min {eigenvalues.min():.3g})"
        )

    return mu, cov


def portfolio_stats(
    weights: np.ndarray,
    expected_returns: np.ndarray,
    covariance: np.ndarray
) -> Dict[str, float]:
    """
    Calculate portfolio statistics.

    Formulas:
        mean     = w^T * mu
        variance = w^T * Sigma * w
        std      = sqrt(variance)

    Returns:
        Dictionary containing mean, std and variance
    """
    ret = float(np.dot(weights, expected_returns))
    var = float(np.dot(weights, np.dot(covariance, weights)))
    return {
        'mean': ret,
        'std': float(np.sqrt(max(var, 0.0))),
        'variance': var
    }


def min_variance_at_return(
    expected_returns: Sequence[float],
    covariance: Sequence[Sequence[float]],
    return_floor: float,
    method: str = "active_set"
) -> Portfolio:
    """
    Find the minimum variance long-only portfolio whose return is at least ``return_floor``.

    Args:
        expected_returns: Vector of expected returns for each asset
        covariance: Covariance matrix of asset returns (k x k)
        return_floor: Minimum acceptable expected return
        method: QP method ('active_set' or 'slsqp')

    Returns:
        Portfolio with weights, risk (std dev), achieved return and variance

    Raises:
        InfeasibleModel: If the floor exceeds the best single-asset return
        IllConditionedInput: On malformed inputs
    """
    mu, cov = validate_inputs(expected_returns, covariance)
    if not np.isfinite(return_floor):
        raise IllConditionedInput(f"Return floor must be finite, got {return_floor}")

    k = mu.size
    max_return = float(mu.max())
    tol = RETURN_TOL * max(1.0, abs(max_return))
    if return_floor > max_return + tol:
        raise InfeasibleModel(
            f"Return floor {return_floor:.6g} exceeds the highest expected return {max_return:.6g}"
        )
    floor = min(float(return_floor), max_return)

    if floor >= max_return - tol:
        # Top of the frontier: only assets at max(mu) may hold weight, and
        # full investment then implies the floor
        assets = np.flatnonzero(mu >= max_return - tol)
        A_ub = -np.eye(assets.size)
        b_ub = np.zeros(assets.size)
    else:
        # -mu^T w <= -floor, -w <= 0
        assets = np.arange(k)
        A_ub = np.vstack([-mu, -np.eye(k)])
        b_ub = np.concatenate([[-floor], np.zeros(k)])

    m = assets.size
    A_eq = np.ones((1, m))
    b_eq = np.ones(1)

    # Equal weights, as a starting point when it already meets the floor
    w0 = np.ones(m) / m
    result = solve_qp(2 * cov[np.ix_(assets, assets)], np.zeros(m), A_ub, b_ub, A_eq, b_eq,
                      x0=w0, method=method)

    weights = np.zeros(k)
    weights[assets] = np.where(np.abs(result.x) < WEIGHT_TOL, 0.0, result.x)
    weights = np.maximum(weights, 0.0)
    weights = weights / weights.sum()

    stats = portfolio_stats(weights, mu, cov)
    logger.debug("Floor %.6g: return %.6g, risk %.6g (%d iterations)",
                 floor, stats['mean'], stats['std'], result.nit)

    return Portfolio(
        weights=weights,
        risk=stats['std'],
        expected_return=stats['mean'],
        variance=stats['variance']
    )


def minimum_variance_portfolio(
    expected_returns: Sequence[float],
    covariance: Sequence[Sequence[float]],
    method: str = "active_set"
) -> Portfolio:
    """
    Find the long-only Minimum Variance Portfolio (MVP).

    A floor at the lowest asset return never binds, so this is the leftmost
    point of the frontier.
    """
    mu, cov = validate_inputs(expected_returns, covariance)
    return min_variance_at_return(mu, cov, float(mu.min()), method=method)


def frontier_targets(
    expected_returns: Sequence[float],
    covariance: Sequence[Sequence[float]],
    n_points: int = 50,
    method: str = "active_set"
) -> np.ndarray:
    """
    Evenly spaced return targets from the MVP return to the highest asset return.

    Args:
        n_points: Number of targets on the frontier

    Returns:
        Increasing array of return floors
    """
    if n_points < 1:
        raise ValueError(f"n_points must be positive, got {n_points}")
    mvp = minimum_variance_portfolio(expected_returns, covariance, method=method)
    max_ret = float(np.max(expected_returns))
    return np.linspace(mvp.expected_return, max_ret, n_points)


def iter_frontier(
    expected_returns: Sequence[float],
    covariance: Sequence[Sequence[float]],
    targets: Iterable[float],
    method: str = "active_set"
) -> Iterator[FrontierPoint]:
    """
    Lazily solve one portfolio per target, preserving target order.

    Unattainable targets yield a point with NaN risk and return and the
    failure message in ``error``.
    """
    mu, cov = validate_inputs(expected_returns, covariance)

    for target in targets:
        target = float(target)
        try:
            portfolio = min_variance_at_return(mu, cov, target, method=method)
        except (InfeasibleModel, SolverFailure) as exc:
            logger.info("Frontier target %.6g skipped: %s", target, exc)
            yield FrontierPoint(target, float('nan'), float('nan'), None, str(exc))
            continue

        yield FrontierPoint(
            target=target,
            risk=portfolio.risk,
            achieved_return=portfolio.expected_return,
            weights=portfolio.weights
        )


def trace_frontier(
    expected_returns: Sequence[float],
    covariance: Sequence[Sequence[float]],
    targets: Iterable[float],
    method: str = "active_set"
) -> List[FrontierPoint]:
    """
    Compute the efficient frontier over a sequence of return floors.

    Args:
        expected_returns: Vector of expected returns for each asset
        covariance: Covariance matrix of asset returns
        targets: Return floors, typically increasing
        method: QP method ('active_set' or 'slsqp')

    Returns:
        List of FrontierPoint, one per target, in target order
    """
    return list(iter_frontier(expected_returns, covariance, targets, method=method))


def frontier_table(
    points: Sequence[FrontierPoint],
    asset_names: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Tabulate frontier points: target, risk, return, one weight column per asset, status.
    """
    n_assets = next((len(p.weights) for p in points if p.weights is not None), 0)
    if asset_names is None:
        asset_names = [f"Asset_{i+1}" for i in range(n_assets)]

    rows = []
    for point in points:
        row = {'target': point.target, 'risk': point.risk, 'return': point.achieved_return}
        for i, name in enumerate(asset_names):
            row[name] = point.weights[i] if point.weights is not None else np.nan
        row['status'] = 'optimal' if point.feasible else point.error
        rows.append(row)

    return pd.DataFrame(rows, columns=['target', 'risk', 'return'] + list(asset_names) + ['status'])


def compute_stats_from_returns(
    returns: np.ndarray,
    asset_names: Optional[List[str]] = None
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Compute expected returns and covariance matrix from historical returns.

    Args:
        returns: 2D array of returns (rows = time periods, cols = assets)
        asset_names: Optional list of asset names

    Returns:
        Tuple of (expected_returns, cov_matrix, asset_names)
    """
    returns = np.array(returns, dtype=float)

    if returns.ndim == 1:
        returns = returns.reshape(-1, 1)

    n_assets = returns.shape[1]

    expected_returns = np.mean(returns, axis=0)

    # Population covariance (divide by N), matching the spreadsheet convention
    cov_matrix = np.atleast_2d(np.cov(returns, rowvar=False, ddof=0))

    if asset_names is None:
        asset_names = [f"Asset_{i+1}" for i in range(n_assets)]

    return expected_returns, cov_matrix, list(asset_names)


def generate_sample_data(n_assets: int = 4, seed: int = 42) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Generate a random but reproducible set of portfolio inputs.

    Args:
        n_assets: Number of assets (default: 4)
        seed: Random seed for reproducibility

    Returns:
        Tuple of (expected_returns, cov_matrix, asset_names)
    """
    rng = np.random.RandomState(seed)

    expected_returns = np.linspace(0.01, 0.025, n_assets)

    # A A^T plus a diagonal shift is positive definite
    A = rng.randn(n_assets, n_assets) * 0.03
    cov_matrix = np.dot(A, A.T) + np.eye(n_assets) * 0.002
    cov_matrix = cov_matrix / np.max(cov_matrix) * 0.006

    asset_names = [f'Stock_{i+1}' for i in range(n_assets)]

    return expected_returns, cov_matrix, asset_names
