"""
Active-Set Quadratic Programming
================================

This module solves convex quadratic programs

    minimize:   1/2 x^T G x + c^T x
    subject to: A_ub x <= b_ub
                A_eq x  = b_eq

where G is symmetric positive semi-definite.

Method (primal active-set, Nocedal & Wright Algorithm 16.3):
-----------------------------------------------------------
1. A feasible starting point comes from a phase-1 simplex solve (free
   variables are split into positive and negative parts).
2. The working set holds the equality rows plus a linearly independent subset
   of the inequalities that are tight at the current point.
3. Each iteration solves the equality-constrained subproblem on the null space
   of the working set. The reduced Hessian is diagonalized, so a singular G
   is handled: a descent direction of zero curvature is followed until a
   constraint blocks it.
4. A zero step with nonnegative inequality multipliers is optimal (KKT);
   otherwise the constraint with the most negative multiplier is released.

``solve_qp`` also routes to SciPy's SLSQP for cross-checking.
"""

import logging
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import null_space
from scipy.optimize import minimize

from transport_frontier.core.errors import (
    IllConditionedInput,
    SolverFailure,
    UnboundedModel,
)
from transport_frontier.core.simplex import DEFAULT_TOL, FEASIBILITY_TOL, as_constraints, linprog_simplex

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1000

QP_METHODS = ("active_set", "slsqp")


class QPResult(NamedTuple):
    """Optimal point of a quadratic program."""

    x: np.ndarray
    fun: float
    nit: int
    method: str
    active: Tuple[int, ...]


def feasible_point(
    A_ub: np.ndarray,
    b_ub: np.ndarray,
    A_eq: np.ndarray,
    b_eq: np.ndarray,
    tol: float = DEFAULT_TOL
) -> np.ndarray:
    """
    Find any point satisfying the linear constraints.

    Free variables are written as x = u - v with u, v >= 0 and handed to the
    phase-1 simplex with a zero objective.

    Raises:
        InfeasibleModel: If the constraints have no common solution
    """
    n = A_ub.shape[1]
    result = linprog_simplex(
        np.zeros(2 * n),
        np.hstack([A_ub, -A_ub]),
        b_ub,
        np.hstack([A_eq, -A_eq]),
        b_eq,
        tol=tol
    )
    return result.x[:n] - result.x[n:]


def _is_feasible(x, A_ub, b_ub, A_eq, b_eq) -> bool:
    scale = max(1.0, float(np.abs(np.concatenate([b_ub, b_eq, [0.0]])).max()))
    if A_ub.shape[0] and np.any(A_ub @ x - b_ub > FEASIBILITY_TOL * scale):
        return False
    if A_eq.shape[0] and np.any(np.abs(A_eq @ x - b_eq) > FEASIBILITY_TOL * scale):
        return False
    return True


def _extends_rank(rows: np.ndarray, candidate: np.ndarray) -> bool:
    stacked = np.vstack([rows, candidate])
    return np.linalg.matrix_rank(stacked) > rows.shape[0]


def _eqp_step(G: np.ndarray, g: np.ndarray, A_W: np.ndarray, tol: float) -> Tuple[np.ndarray, bool]:
    """
    Minimize 1/2 p^T G p + g^T p subject to A_W p = 0.

    Returns:
        Tuple of (step, unbounded). ``unbounded`` marks a zero-curvature
        descent direction whose length is set by the blocking constraints.
    """
    n = g.size
    Z = null_space(A_W) if A_W.shape[0] else np.eye(n)
    if Z.shape[1] == 0:
        return np.zeros(n), False

    H = Z.T @ G @ Z
    r = Z.T @ g
    evals, evecs = np.linalg.eigh((H + H.T) / 2)
    coeffs = evecs.T @ r

    curved = evals > tol * max(1.0, float(np.abs(evals).max()))
    flat = ~curved & (np.abs(coeffs) > tol * max(1.0, float(np.abs(g).max())))

    if np.any(flat):
        return -Z @ (evecs[:, flat] @ coeffs[flat]), True

    y = -evecs[:, curved] @ (coeffs[curved] / evals[curved])
    return Z @ y, False


def active_set_qp(
    G: np.ndarray,
    c: np.ndarray,
    A_ub: np.ndarray,
    b_ub: np.ndarray,
    A_eq: np.ndarray,
    b_eq: np.ndarray,
    x0: Optional[np.ndarray] = None,
    tol: float = DEFAULT_TOL,
    max_iter: int = MAX_ITERATIONS
) -> QPResult:
    """
    Solve a convex QP with the primal active-set method.

    Args:
        G: Symmetric PSD Hessian (n x n)
        c: Linear term (length n)
        A_ub, b_ub: Inequalities A_ub x <= b_ub
        A_eq, b_eq: Equalities A_eq x = b_eq
        x0: Optional starting point, used only if it is feasible
        tol: Step, curvature and multiplier tolerance
        max_iter: Iteration limit

    Returns:
        QPResult with the optimum and the inequality rows active there
    """
    n = c.size

    if x0 is not None and _is_feasible(np.asarray(x0, dtype=float), A_ub, b_ub, A_eq, b_eq):
        x = np.array(x0, dtype=float)
    else:
        x = feasible_point(A_ub, b_ub, A_eq, b_eq, tol)

    # Independent equality rows; dependent ones are implied by a feasible x
    A_E = np.zeros((0, n))
    for row in A_eq:
        if _extends_rank(A_E, row):
            A_E = np.vstack([A_E, row])

    working = []
    rows = A_E
    slack = b_ub - A_ub @ x
    slack_tol = FEASIBILITY_TOL * max(1.0, float(np.abs(b_ub).max()) if b_ub.size else 1.0)
    for i in np.flatnonzero(slack <= slack_tol):
        if _extends_rank(rows, A_ub[i]):
            rows = np.vstack([rows, A_ub[i]])
            working.append(int(i))

    for nit in range(1, max_iter + 1):
        A_W = np.vstack([A_E, A_ub[working]]) if working else A_E
        g = G @ x + c
        p, unbounded = _eqp_step(G, g, A_W, tol)

        if not unbounded and np.linalg.norm(p) <= tol * max(1.0, np.linalg.norm(x)):
            if not working:
                break
            multipliers = np.linalg.lstsq(A_W.T, -g, rcond=None)[0][A_E.shape[0]:]
            worst = int(np.argmin(multipliers))
            if multipliers[worst] >= -tol * max(1.0, np.linalg.norm(g)):
                break
            released = working.pop(worst)
            logger.debug("Active set: releasing constraint %d (multiplier %.3g)",
                         released, multipliers[worst])
            continue

        alpha = np.inf if unbounded else 1.0
        blocking = None
        Ap = A_ub @ p
        for i in range(A_ub.shape[0]):
            if i in working or Ap[i] <= tol:
                continue
            step = max((b_ub[i] - A_ub[i] @ x) / Ap[i], 0.0)
            if step < alpha:
                alpha, blocking = step, i

        if not np.isfinite(alpha):
            raise UnboundedModel("Quadratic objective is unbounded below on the feasible set")

        x = x + alpha * p
        if blocking is not None:
            working.append(blocking)
            logger.debug("Active set: constraint %d blocks step (alpha=%.3g)", blocking, alpha)
    else:
        raise SolverFailure(f"Active-set method did not converge within {max_iter} iterations")

    fun = float(0.5 * x @ G @ x + c @ x)
    logger.debug("Active set: optimum %.6g after %d iterations", fun, nit)
    return QPResult(x=x, fun=fun, nit=nit, method="active_set", active=tuple(sorted(working)))


def _minimize_slsqp(G, c, A_ub, b_ub, A_eq, b_eq, x0=None) -> QPResult:
    """Solve the same problem with SciPy's SLSQP."""
    n = c.size
    constraints = []
    if A_eq.shape[0]:
        constraints.append({'type': 'eq', 'fun': lambda x: A_eq @ x - b_eq, 'jac': lambda x: A_eq})
    if A_ub.shape[0]:
        constraints.append({'type': 'ineq', 'fun': lambda x: b_ub - A_ub @ x, 'jac': lambda x: -A_ub})

    start = np.zeros(n) if x0 is None else np.asarray(x0, dtype=float)
    result = minimize(
        lambda x: 0.5 * x @ G @ x + c @ x,
        start,
        jac=lambda x: G @ x + c,
        method='SLSQP',
        constraints=constraints,
        options={'ftol': 1e-12, 'maxiter': 500}
    )

    if not result.success:
        # Exit mode 4 ("Inequality constraints incompatible") also shows up on
        # feasible degenerate problems; phase 1 raises InfeasibleModel only
        # when the constraints really have no common point
        if result.status == 4:
            feasible_point(A_ub, b_ub, A_eq, b_eq)
        raise SolverFailure(f"SLSQP did not converge: {result.message}")

    x = np.asarray(result.x)
    active = tuple(int(i) for i in np.flatnonzero(b_ub - A_ub @ x <= FEASIBILITY_TOL))
    return QPResult(x=x, fun=float(result.fun), nit=int(result.nit), method="slsqp", active=active)


def solve_qp(
    G: Sequence,
    c: Sequence[float],
    A_ub: Optional[Sequence] = None,
    b_ub: Optional[Sequence] = None,
    A_eq: Optional[Sequence] = None,
    b_eq: Optional[Sequence] = None,
    x0: Optional[Sequence[float]] = None,
    method: str = "active_set",
    tol: float = DEFAULT_TOL,
    max_iter: int = MAX_ITERATIONS
) -> QPResult:
    """
    Solve ``min 1/2 x^T G x + c^T x`` over ``A_ub x <= b_ub, A_eq x = b_eq``.

    Args:
        method: 'active_set' (built-in) or 'slsqp' (SciPy)

    Raises:
        IllConditionedInput: If G is not square, symmetric and finite
    """
    c = np.asarray(c, dtype=float).ravel()
    n = c.size
    G = np.asarray(G, dtype=float)

    if G.shape != (n, n):
        raise IllConditionedInput(f"Hessian shape {G.shape} doesn't match {n} variables")
    if not np.all(np.isfinite(G)) or not np.all(np.isfinite(c)):
        raise IllConditionedInput("Quadratic program contains non-finite coefficients")
    if not np.allclose(G, G.T):
        raise IllConditionedInput("Hessian is not symmetric")

    A_ub, b_ub = as_constraints(A_ub, b_ub, n, "A_ub")
    A_eq, b_eq = as_constraints(A_eq, b_eq, n, "A_eq")

    if method == "active_set":
        return active_set_qp(G, c, A_ub, b_ub, A_eq, b_eq, x0=x0, tol=tol, max_iter=max_iter)
    if method == "slsqp":
        return _minimize_slsqp(G, c, A_ub, b_ub, A_eq, b_eq, x0=x0)
    raise ValueError(f"Unknown QP method: {method}. Use one of {QP_METHODS}")
