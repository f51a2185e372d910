"""Exception hierarchy shared by the LP/QP solvers and the problem builders."""


class OptimizationError(Exception):
    """Base class for every failure raised by a solve call."""


class InfeasibleModel(OptimizationError):
    """No assignment satisfies the constraints of the model."""


class IllConditionedInput(OptimizationError, ValueError):
    """Inputs are malformed: mismatched shapes, negative costs, bad covariance."""


class UnboundedModel(OptimizationError):
    """The objective decreases without bound over the feasible region."""


class SolverFailure(OptimizationError):
    """The solver stopped without an optimum (iteration limit, backend error)."""
