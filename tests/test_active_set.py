"""
Tests for the active-set QP solver and its SLSQP cross-check.
"""

import numpy as np
import pytest
from scipy.optimize import OptimizeResult

from transport_frontier.core.active_set import feasible_point, solve_qp
from transport_frontier.core.errors import (
    IllConditionedInput,
    InfeasibleModel,
    SolverFailure,
    UnboundedModel,
)

# Nocedal & Wright, Example 16.4
G = 2 * np.eye(2)
C = np.array([-2.0, -5.0])
A_UB = np.array([
    [-1.0, 2.0],
    [1.0, 2.0],
    [1.0, -2.0],
    [-1.0, 0.0],
    [0.0, -1.0],
])
B_UB = np.array([2.0, 6.0, 2.0, 0.0, 0.0])


class TestTextbookExample:

    def test_optimum(self):
        result = solve_qp(G, C, A_UB, B_UB)

        np.testing.assert_allclose(result.x, [1.4, 1.7], atol=1e-8)
        assert result.fun == pytest.approx(-6.45)
        assert result.active == (0,)

    def test_warm_start_at_vertex(self):
        result = solve_qp(G, C, A_UB, B_UB, x0=[2.0, 0.0])

        np.testing.assert_allclose(result.x, [1.4, 1.7], atol=1e-8)

    def test_infeasible_start_is_ignored(self):
        result = solve_qp(G, C, A_UB, B_UB, x0=[10.0, 10.0])

        np.testing.assert_allclose(result.x, [1.4, 1.7], atol=1e-8)

    def test_slsqp_agrees(self):
        ours = solve_qp(G, C, A_UB, B_UB)
        reference = solve_qp(G, C, A_UB, B_UB, method="slsqp")

        np.testing.assert_allclose(ours.x, reference.x, atol=1e-6)
        assert reference.method == "slsqp"


class TestSpecialCases:

    def test_unconstrained_minimum_inside(self):
        result = solve_qp(G, C, A_ub=[[1.0, 1.0]], b_ub=[100.0])

        np.testing.assert_allclose(result.x, [1.0, 2.5], atol=1e-10)
        assert result.active == ()

    def test_equality_constrained(self):
        # min x1^2 + x2^2 subject to x1 + x2 = 2
        result = solve_qp(G, [0.0, 0.0], A_eq=[[1.0, 1.0]], b_eq=[2.0])

        np.testing.assert_allclose(result.x, [1.0, 1.0], atol=1e-10)

    def test_linear_objective(self):
        # G = 0: min x1 + x2 with x >= 0 and x1 + x2 >= 1
        result = solve_qp(
            np.zeros((2, 2)), [1.0, 1.0],
            A_ub=[[-1.0, 0.0], [0.0, -1.0], [-1.0, -1.0]],
            b_ub=[0.0, 0.0, -1.0],
        )

        assert result.fun == pytest.approx(1.0)
        assert result.x.sum() == pytest.approx(1.0)

    def test_unbounded_direction(self):
        with pytest.raises(UnboundedModel):
            solve_qp(np.zeros((2, 2)), [-1.0, 0.0], A_ub=-np.eye(2), b_ub=[0.0, 0.0])

    def test_infeasible(self):
        with pytest.raises(InfeasibleModel):
            solve_qp(G, C, A_ub=[[1.0, 1.0]], b_ub=[1.0], A_eq=[[1.0, 1.0]], b_eq=[3.0])

    def test_feasible_point_handles_negative_coordinates(self):
        x = feasible_point(
            np.array([[1.0, 0.0]]), np.array([-2.0]),
            np.array([[0.0, 1.0]]), np.array([-3.0]),
        )

        assert x[0] <= -2.0 + 1e-9
        assert x[1] == pytest.approx(-3.0)


def _incompatible_exit(*args, **kwargs):
    return OptimizeResult(x=np.zeros(2), fun=0.0, nit=1, status=4, success=False,
                          message="Inequality constraints incompatible")


class TestSlsqpFailures:
    """SLSQP exit mode 4 is only reported as infeasible when phase 1 agrees."""

    def test_incompatible_exit_on_feasible_problem(self, monkeypatch):
        monkeypatch.setattr("transport_frontier.core.active_set.minimize", _incompatible_exit)

        with pytest.raises(SolverFailure, match="incompatible"):
            solve_qp(G, C, A_UB, B_UB, method="slsqp")

    def test_incompatible_exit_on_infeasible_problem(self, monkeypatch):
        monkeypatch.setattr("transport_frontier.core.active_set.minimize", _incompatible_exit)

        with pytest.raises(InfeasibleModel):
            solve_qp(G, C, A_ub=[[1.0, 1.0]], b_ub=[1.0], A_eq=[[1.0, 1.0]], b_eq=[3.0],
                     method="slsqp")

    def test_solver_failure_is_not_infeasible(self):
        assert not issubclass(SolverFailure, InfeasibleModel)


class TestValidation:

    def test_non_symmetric_hessian(self):
        with pytest.raises(IllConditionedInput, match="symmetric"):
            solve_qp([[1.0, 2.0], [0.0, 1.0]], [0.0, 0.0])

    def test_hessian_shape(self):
        with pytest.raises(IllConditionedInput):
            solve_qp(np.eye(3), [0.0, 0.0])

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown QP method"):
            solve_qp(G, C, A_UB, B_UB, method="interior")
