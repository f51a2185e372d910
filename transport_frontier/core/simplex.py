"""
Simplex Method - Dense Two-Phase Linear Programming
===================================================

This module solves linear programs in the form

    minimize:   c^T x
    subject to: A_ub x <= b_ub
                A_eq x  = b_eq
                x >= 0

with a dense tableau implementation of the two-phase simplex method:

1. Inequality rows receive a slack column; any row whose right-hand side is
   negative is flipped so the tableau starts with b >= 0.
2. Phase 1 minimizes the sum of artificial variables. A positive optimum means
   the constraints have no common solution (InfeasibleModel).
3. Artificial variables left in the basis at zero level are pivoted out, or
   their row is dropped when it is a linear combination of the others
   (the flow-conservation rows of a balanced transshipment model are one
   such case).
4. Phase 2 minimizes the true objective from the feasible basis.

Pivoting follows Bland's rule (lowest-index entering column, lowest-index
leaving variable on ties), which rules out cycling on degenerate problems and
makes every solve deterministic.

The solver keeps no state between calls. ``solve_lp`` also routes to SciPy's
HiGHS implementation so results can be cross-checked.
"""

import logging
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import linprog

from transport_frontier.core.errors import (
    IllConditionedInput,
    InfeasibleModel,
    SolverFailure,
    UnboundedModel,
)

logger = logging.getLogger(__name__)

DEFAULT_TOL = 1e-9
FEASIBILITY_TOL = 1e-7
MAX_ITERATIONS = 10000

LP_METHODS = ("simplex", "highs")


class LPResult(NamedTuple):
    """Optimal point of a linear program."""

    x: np.ndarray
    fun: float
    nit: int
    method: str


def as_constraints(
    A: Optional[Sequence],
    b: Optional[Sequence],
    n: int,
    name: str
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Normalize an optional constraint block to a (rows x n) matrix and vector.

    Raises:
        IllConditionedInput: If shapes disagree or entries are not finite
    """
    if A is None or np.size(A) == 0:
        if b is not None and np.size(b) != 0:
            raise IllConditionedInput(f"{name}: right-hand side given without a matrix")
        return np.zeros((0, n)), np.zeros(0)

    A = np.atleast_2d(np.asarray(A, dtype=float))
    b = np.asarray(b, dtype=float).ravel()

    if A.shape[1] != n:
        raise IllConditionedInput(
            f"{name} has {A.shape[1]} columns but the problem has {n} variables"
        )
    if A.shape[0] != b.shape[0]:
        raise IllConditionedInput(
            f"{name} has {A.shape[0]} rows but its right-hand side has {b.shape[0]} entries"
        )
    if not (np.all(np.isfinite(A)) and np.all(np.isfinite(b))):
        raise IllConditionedInput(f"{name} contains non-finite entries")

    return A, b


def _pivot(T: np.ndarray, row: int, col: int):
    """Make column ``col`` a unit vector with its 1 in ``row``."""
    T[row] = T[row] / T[row, col]
    factors = T[:, col].copy()
    factors[row] = 0.0
    T -= np.outer(factors, T[row])


def _price_out(T: np.ndarray, basis: list, cost: np.ndarray):
    """Write reduced costs for ``cost`` into the objective row of the tableau."""
    T[-1, :] = 0.0
    T[-1, :cost.size] = cost
    for i, j in enumerate(basis):
        if T[-1, j] != 0.0:
            T[-1] -= T[-1, j] * T[i]


def _iterate(
    T: np.ndarray,
    basis: list,
    n_allowed: int,
    tol: float,
    max_iter: int
) -> int:
    """Run simplex pivots until no allowed column has a negative reduced cost."""
    nit = 0
    rhs = T[:-1, -1]

    while True:
        entering = np.flatnonzero(T[-1, :n_allowed] < -tol)
        if entering.size == 0:
            return nit
        if nit >= max_iter:
            raise SolverFailure(f"Simplex did not converge within {max_iter} pivots")

        # Bland's rule: lowest-index improving column
        col = int(entering[0])
        column = T[:-1, col]
        rows = np.flatnonzero(column > tol)
        if rows.size == 0:
            raise UnboundedModel(f"Objective is unbounded along column {col}")

        ratios = rhs[rows] / column[rows]
        best = ratios.min()
        ties = rows[ratios <= best + tol * max(1.0, abs(best))]
        row = int(min(ties, key=lambda i: basis[i]))

        _pivot(T, row, col)
        basis[row] = col
        nit += 1

        # Round-off can push degenerate right-hand sides just below zero
        rhs[(rhs < 0.0) & (rhs > -tol)] = 0.0


def linprog_simplex(
    c: Sequence[float],
    A_ub: Optional[Sequence] = None,
    b_ub: Optional[Sequence] = None,
    A_eq: Optional[Sequence] = None,
    b_eq: Optional[Sequence] = None,
    tol: float = DEFAULT_TOL,
    max_iter: int = MAX_ITERATIONS
) -> LPResult:
    """
    Solve a linear program with nonnegative variables by the two-phase simplex method.

    Args:
        c: Objective coefficients (length n)
        A_ub: Inequality matrix (rows x n), or None
        b_ub: Inequality right-hand side
        A_eq: Equality matrix (rows x n), or None
        b_eq: Equality right-hand side
        tol: Pivot and reduced-cost tolerance
        max_iter: Pivot limit across both phases

    Returns:
        LPResult with the optimal x, objective value and pivot count

    Raises:
        InfeasibleModel: If phase 1 cannot drive the artificials to zero
        UnboundedModel: If phase 2 finds an improving ray
        SolverFailure: If the pivot limit is reached
    """
    c = np.asarray(c, dtype=float).ravel()
    n = c.size
    if not np.all(np.isfinite(c)):
        raise IllConditionedInput("Objective contains non-finite coefficients")

    A_ub, b_ub = as_constraints(A_ub, b_ub, n, "A_ub")
    A_eq, b_eq = as_constraints(A_eq, b_eq, n, "A_eq")
    m_ub, m_eq = A_ub.shape[0], A_eq.shape[0]
    m = m_ub + m_eq
    n_std = n + m_ub

    # Standard form: [A_ub I] [x; s] = b_ub, [A_eq 0] [x; s] = b_eq
    A = np.zeros((m, n_std))
    A[:m_ub, :n] = A_ub
    A[:m_ub, n:] = np.eye(m_ub)
    A[m_ub:, :n] = A_eq
    b = np.concatenate([b_ub, b_eq])

    flipped = b < 0
    A[flipped] *= -1.0
    b[flipped] *= -1.0

    basis = [-1] * m
    artificial_rows = []
    for i in range(m):
        if i < m_ub and not flipped[i]:
            basis[i] = n + i
        else:
            artificial_rows.append(i)
    k = len(artificial_rows)

    T = np.zeros((m + 1, n_std + k + 1))
    T[:m, :n_std] = A
    T[:m, -1] = b
    for offset, i in enumerate(artificial_rows):
        T[i, n_std + offset] = 1.0
        basis[i] = n_std + offset

    logger.debug(
        "Simplex: %d variables, %d inequality rows, %d equality rows, %d artificials",
        n, m_ub, m_eq, k
    )

    nit = 0
    if k:
        phase1_cost = np.zeros(n_std + k)
        phase1_cost[n_std:] = 1.0
        _price_out(T, basis, phase1_cost)
        nit += _iterate(T, basis, n_std + k, tol, max_iter)

        infeasibility = -T[-1, -1]
        scale = max(1.0, float(np.abs(b).max()))
        if infeasibility > FEASIBILITY_TOL * scale:
            raise InfeasibleModel(
                f"No feasible basis: phase 1 residual infeasibility {infeasibility:.6g}"
            )

        kept = []
        for i in range(m):
            if basis[i] >= n_std:
                candidates = np.flatnonzero(np.abs(T[i, :n_std]) > tol)
                if candidates.size == 0:
                    logger.debug("Simplex: dropping redundant constraint row %d", i)
                    continue
                _pivot(T, i, int(candidates[0]))
                basis[i] = int(candidates[0])
            kept.append(i)

        T = np.vstack([T[kept], T[-1:]])
        T = np.delete(T, np.s_[n_std:n_std + k], axis=1)
        basis = [basis[i] for i in kept]
        logger.debug("Simplex: phase 1 finished after %d pivots", nit)

    phase2_cost = np.zeros(n_std)
    phase2_cost[:n] = c
    _price_out(T, basis, phase2_cost)
    nit += _iterate(T, basis, n_std, tol, max_iter - nit)

    solution = np.zeros(n_std)
    for i, j in enumerate(basis):
        solution[j] = T[i, -1]
    x = solution[:n]
    x[(x < 0.0) & (x > -FEASIBILITY_TOL)] = 0.0

    logger.debug("Simplex: optimum reached after %d pivots", nit)
    return LPResult(x=x, fun=float(c @ x), nit=nit, method="simplex")


def _linprog_highs(c, A_ub, b_ub, A_eq, b_eq) -> LPResult:
    """Solve the same problem with SciPy's HiGHS backend."""
    c = np.asarray(c, dtype=float).ravel()
    n = c.size
    A_ub, b_ub = as_constraints(A_ub, b_ub, n, "A_ub")
    A_eq, b_eq = as_constraints(A_eq, b_eq, n, "A_eq")

    result = linprog(
        c,
        A_ub=A_ub if A_ub.shape[0] else None,
        b_ub=b_ub if A_ub.shape[0] else None,
        A_eq=A_eq if A_eq.shape[0] else None,
        b_eq=b_eq if A_eq.shape[0] else None,
        bounds=(0, None),
        method='highs'
    )

    if result.status == 2:
        raise InfeasibleModel(f"No feasible basis: {result.message}")
    if result.status == 3:
        raise UnboundedModel(result.message)
    if not result.success:
        raise SolverFailure(f"HiGHS failed: {result.message}")

    return LPResult(x=np.asarray(result.x), fun=float(result.fun), nit=int(result.nit), method="highs")


def solve_lp(
    c: Sequence[float],
    A_ub: Optional[Sequence] = None,
    b_ub: Optional[Sequence] = None,
    A_eq: Optional[Sequence] = None,
    b_eq: Optional[Sequence] = None,
    method: str = "simplex",
    tol: float = DEFAULT_TOL,
    max_iter: int = MAX_ITERATIONS
) -> LPResult:
    """
    Solve ``min c^T x`` over ``A_ub x <= b_ub, A_eq x = b_eq, x >= 0``.

    Args:
        method: 'simplex' (built-in two-phase tableau) or 'highs' (SciPy)

    Returns:
        LPResult
    """
    if method == "simplex":
        return linprog_simplex(c, A_ub, b_ub, A_eq, b_eq, tol=tol, max_iter=max_iter)
    if method == "highs":
        return _linprog_highs(c, A_ub, b_ub, A_eq, b_eq)
    raise ValueError(f"Unknown LP method: {method}. Use one of {LP_METHODS}")
