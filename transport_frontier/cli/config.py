"""
Report configuration.

Every setting the report needs lives on one AnalysisConfig object that is
built from the command line and passed explicitly to each analysis step.
"""

from pathlib import Path
from typing import Optional

from transport_frontier.core.active_set import QP_METHODS
from transport_frontier.core.simplex import LP_METHODS


class AnalysisConfig:
    """
    Stores the configurable assumptions for a report run.

    Attributes:
        lp_method: LP backend for the transport models ('simplex' or 'highs')
        qp_method: QP backend for the frontier ('active_set' or 'slsqp')
        sentinel: Cost for disallowed transshipment arcs (None = exclude them)
        n_points: Number of return targets on the frontier
        output_dir: Directory for plots
        save_plots: If True, write plots to output_dir
        show_plots: If True, open plot windows at the end of the run
    """

    def __init__(
        self,
        lp_method: str = "simplex",
        qp_method: str = "active_set",
        sentinel: Optional[float] = None,
        n_points: int = 25,
        output_dir: Optional[str] = None,
        save_plots: bool = True,
        show_plots: bool = False
    ):
        if lp_method not in LP_METHODS:
            raise ValueError(f"Unknown LP method: {lp_method}. Use one of {LP_METHODS}")
        if qp_method not in QP_METHODS:
            raise ValueError(f"Unknown QP method: {qp_method}. Use one of {QP_METHODS}")
        if n_points < 2:
            raise ValueError(f"n_points must be at least 2, got {n_points}")
        if sentinel is not None and sentinel <= 0:
            raise ValueError(f"Sentinel cost must be positive, got {sentinel}")

        self.lp_method = lp_method
        self.qp_method = qp_method
        self.sentinel = sentinel
        self.n_points = n_points
        self.output_dir = Path(output_dir) if output_dir else Path.cwd() / "output"
        self.save_plots = save_plots
        self.show_plots = show_plots

    @classmethod
    def from_args(cls, args) -> "AnalysisConfig":
        """Build a config from parsed argparse arguments."""
        return cls(
            lp_method=args.lp_method,
            qp_method=args.qp_method,
            sentinel=args.sentinel,
            n_points=args.points,
            output_dir=args.output_dir,
            save_plots=not args.no_plots,
            show_plots=args.show_plots
        )

    def describe(self) -> str:
        """Human-readable summary of the current configuration."""
        lines = [
            "=" * 60,
            "CURRENT ANALYSIS CONFIGURATION",
            "=" * 60,
            f"LP method: {self.lp_method}",
            f"QP method: {self.qp_method}",
            f"Disallowed arcs: {'excluded' if self.sentinel is None else f'sentinel cost {self.sentinel:g}'}",
            f"Frontier points: {self.n_points}",
            f"Plots: {'saved to ' + str(self.output_dir) if self.save_plots else 'disabled'}",
            "=" * 60,
        ]
        return "\n".join(lines)

    def print_config(self):
        """Print current configuration."""
        print("\n" + self.describe())
