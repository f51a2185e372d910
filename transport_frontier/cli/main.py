"""
Main Runner Script for the Optimization Report
==============================================

This script runs the full report workflow:
1. Direct-shipment waste disposal plan (transportation LP)
2. Transshipment plan balanced with a dummy node
3. Efficient frontier sweep (minimum variance QP per return floor)
4. Visualizing results

Usage:
    ef-report                                  # Reference data
    ef-report --returns-file returns.xlsx      # Frontier from a return history
    ef-report --points 40 --qp-method slsqp    # Denser sweep, SciPy backend
    ef-report --sentinel 1e6                   # Price disallowed arcs instead of excluding them
    ef-report --costs-file costs.csv --supply-file waste.csv --capacity-file capacity.csv
"""

import sys
import argparse
import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from transport_frontier.cli.config import AnalysisConfig
from transport_frontier.core import datasets
from transport_frontier.core.active_set import QP_METHODS
from transport_frontier.core.errors import OptimizationError
from transport_frontier.core.frontier import (
    frontier_table,
    frontier_targets,
    minimum_variance_portfolio,
    trace_frontier,
)
from transport_frontier.core.loader import DataLoader
from transport_frontier.core.simplex import LP_METHODS
from transport_frontier.core.transport import (
    balance_supply,
    net_flow,
    solve_direct,
    solve_transshipment,
)
from transport_frontier.visualization import (
    plot_efficient_frontier,
    plot_flows,
    plot_frontier_weights
)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(script_name: str = "transport_frontier", log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Sets up a logger that writes to both file and console.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: ./logs)

    Returns:
        Configured logger instance
    """
    log_dir = Path(log_dir) if log_dir else Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
    log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

    logger = logging.getLogger(script_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Prevent duplicate handlers on repeated setup
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def _log_table(logger: logging.Logger, table) -> None:
    for line in table.to_string().splitlines():
        logger.info(line)


# =============================================================================
# PROGRESS TRACKING
# =============================================================================

class AnalysisCheckpoint:
    """
    Tracks which report steps ran, which failed, and how long the run took.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.steps_completed = []
        self.steps_failed = []
        self.start_time = datetime.now()
        self.current_step = None

    def start_step(self, step_name: str):
        """Mark a step as started."""
        self.current_step = step_name
        self.logger.info(f"[CHECKPOINT] Starting: {step_name}")

    def complete_step(self, step_name: str):
        """Mark a step as completed."""
        self.steps_completed.append(step_name)
        self.current_step = None
        self.logger.info(f"[CHECKPOINT] Completed: {step_name}")

    def fail_step(self, step_name: str, error: Exception):
        """Record a step that ended with an optimization error."""
        self.steps_failed.append(step_name)
        self.current_step = None
        self.logger.error(f"[CHECKPOINT] Failed: {step_name}: {error}")

    def log_final_report(self):
        """Log final run summary."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        self.logger.info("=" * 60)
        self.logger.info("  REPORT COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"  Steps completed: {len(self.steps_completed)}")
        if self.steps_failed:
            self.logger.info(f"  Steps failed: {', '.join(self.steps_failed)}")
        self.logger.info(f"  Total time: {elapsed:.2f} seconds")
        self.logger.info("=" * 60)


# =============================================================================
# ANALYSIS STEPS
# =============================================================================

def load_transport_inputs(
    costs_file: Optional[str] = None,
    supply_file: Optional[str] = None,
    capacity_file: Optional[str] = None,
    ptp_file: Optional[str] = None,
    sts_file: Optional[str] = None
) -> dict:
    """
    Collect the transport model inputs, from files or the reference case.

    A cost file names the plants (rows) and sites (columns); supply and
    capacity files must cover every one of them. The transshipment model
    needs both the plant-to-plant and the site-to-site tables.

    Returns:
        Dictionary with 'costs' (DataFrame), 'supply' and 'capacity' (Series),
        'ptp' and 'sts' (DataFrame or None)
    """
    if costs_file is None:
        plants, sites = datasets.PLANTS, datasets.SITES
        return {
            'costs': datasets.waste_cost_table(),
            'supply': pd.Series(datasets.WASTE_SUPPLY, index=plants, dtype=float),
            'capacity': pd.Series(datasets.DISPOSAL_CAPACITY, index=sites, dtype=float),
            'ptp': pd.DataFrame(datasets.PLANT_TO_PLANT, index=plants, columns=plants, dtype=float),
            'sts': pd.DataFrame(datasets.SITE_TO_SITE, index=sites, columns=sites, dtype=float),
        }

    if supply_file is None or capacity_file is None:
        raise ValueError("A cost file needs both a supply file and a capacity file")

    loader = DataLoader()
    costs = loader.load_cost_table(costs_file)
    plants, sites = list(costs.index), list(costs.columns)

    supply = loader.load_vector(supply_file).reindex(plants)
    capacity = loader.load_vector(capacity_file).reindex(sites)
    if supply.isna().any() or capacity.isna().any():
        missing = list(supply.index[supply.isna()]) + list(capacity.index[capacity.isna()])
        raise ValueError(f"Supply/capacity files have no value for: {missing}")

    inputs = {'costs': costs, 'supply': supply, 'capacity': capacity, 'ptp': None, 'sts': None}
    for key, path, names in (('ptp', ptp_file, plants), ('sts', sts_file, sites)):
        if path is None:
            continue
        table = loader.load_cost_table(path).reindex(index=names, columns=names)
        if table.isna().any().any():
            raise ValueError(f"{path} does not cover every node in {names}")
        inputs[key] = table

    return inputs


def run_transport_analysis(
    config: AnalysisConfig,
    logger: logging.Logger,
    checkpoint: Optional[AnalysisCheckpoint] = None,
    inputs: Optional[dict] = None
) -> dict:
    """
    Solve the waste-disposal case as a direct and a transshipment model.

    Args:
        inputs: Model inputs from load_transport_inputs (default: reference case)

    Returns:
        Dictionary with 'direct' and 'transshipment' TransportSolution values
        (None for a step that failed or was skipped)
    """
    checkpoint = checkpoint or AnalysisCheckpoint(logger)
    inputs = inputs or load_transport_inputs()
    results = {'direct': None, 'transshipment': None}

    costs = inputs['costs']
    plants, sites = list(costs.index), list(costs.columns)

    logger.info("=" * 70)
    logger.info("  WASTE DISPOSAL LOGISTICS")
    logger.info("=" * 70)
    logger.info(f"  Plants: {', '.join(plants)}")
    logger.info(f"  Sites: {', '.join(sites)}")
    logger.info(f"  Total waste: {inputs['supply'].sum():g}, "
                f"total capacity: {inputs['capacity'].sum():g}")

    checkpoint.start_step("Direct Shipment")
    try:
        direct = solve_direct(costs, inputs['supply'], inputs['capacity'], method=config.lp_method)
    except OptimizationError as e:
        checkpoint.fail_step("Direct Shipment", e)
    else:
        results['direct'] = direct
        logger.info("\n--- Direct Shipment Plan ---")
        _log_table(logger, direct.flows.round(2))
        logger.info(f"Disposal used: {direct.flows.sum(axis=0).round(2).to_dict()}")
        logger.info(f"Total cost: {direct.total_cost:,.2f}")
        checkpoint.complete_step("Direct Shipment")

    if inputs['ptp'] is None or inputs['sts'] is None:
        logger.info("Transshipment skipped: plant-to-plant and site-to-site tables are required")
        return results

    checkpoint.start_step("Transshipment")
    try:
        supply = balance_supply(plants, sites, datasets.DUMMY, inputs['supply'], inputs['capacity'])
        transship = solve_transshipment(
            plants,
            sites,
            datasets.DUMMY,
            inputs['ptp'],
            inputs['sts'],
            [0.0] * len(sites),
            supply,
            pts_costs=costs,
            sentinel=config.sentinel,
            method=config.lp_method
        )
    except OptimizationError as e:
        checkpoint.fail_step("Transshipment", e)
    else:
        results['transshipment'] = transship
        logger.info("\n--- Transshipment Plan (dummy removed) ---")
        _log_table(logger, transship.shipments.round(2))
        logger.info(f"Spare capacity assigned by dummy: {transship.dummy_supply:.2f}")
        residual = (net_flow(transship.flows) - supply).abs().max()
        logger.info(f"Max flow-conservation residual: {residual:.2e}")
        logger.info(f"Total cost: {transship.total_cost:,.2f}")
        checkpoint.complete_step("Transshipment")

    if config.save_plots and results['transshipment'] is not None:
        config.output_dir.mkdir(parents=True, exist_ok=True)
        plot_flows(results['transshipment'], save_path=str(config.output_dir / "transshipment_flows.png"))
        logger.info("Saved: transshipment_flows.png")

    return results


def run_frontier_analysis(
    config: AnalysisConfig,
    logger: logging.Logger,
    expected_returns: np.ndarray,
    cov_matrix: np.ndarray,
    asset_names: List[str],
    checkpoint: Optional[AnalysisCheckpoint] = None
) -> dict:
    """
    Sweep the long-only efficient frontier from the MVP return to the best asset return.

    Returns:
        Dictionary with 'mvp', 'targets', 'points' and 'table'
    """
    checkpoint = checkpoint or AnalysisCheckpoint(logger)

    logger.info("=" * 70)
    logger.info("  EFFICIENT FRONTIER (NO SHORT SELLING)")
    logger.info("=" * 70)
    logger.info(f"{'Asset':<12} {'Mean':>12} {'Std Dev':>12}")
    logger.info("-" * 40)
    for i, name in enumerate(asset_names):
        logger.info(f"{name:<12} {expected_returns[i]*100:>11.4f}% "
                    f"{np.sqrt(cov_matrix[i, i])*100:>11.4f}%")

    results = {'mvp': None, 'targets': None, 'points': None, 'table': None}

    checkpoint.start_step("Minimum Variance Portfolio")
    try:
        mvp = minimum_variance_portfolio(expected_returns, cov_matrix, method=config.qp_method)
    except OptimizationError as e:
        checkpoint.fail_step("Minimum Variance Portfolio", e)
    else:
        results['mvp'] = mvp
        logger.info("\n--- Minimum Variance Portfolio (MVP) ---")
        for i, name in enumerate(asset_names):
            logger.info(f"  {name}: {mvp.weights[i]*100:>8.2f}%")
        logger.info(f"Expected Return: {mvp.expected_return*100:.4f}%")
        logger.info(f"Standard Deviation: {mvp.risk*100:.4f}%")
        checkpoint.complete_step("Minimum Variance Portfolio")

    checkpoint.start_step("Frontier Sweep")
    try:
        targets = frontier_targets(expected_returns, cov_matrix, config.n_points, method=config.qp_method)
        points = trace_frontier(expected_returns, cov_matrix, targets, method=config.qp_method)
    except OptimizationError as e:
        checkpoint.fail_step("Frontier Sweep", e)
        return results

    table = frontier_table(points, asset_names)
    results.update(targets=targets, points=points, table=table)

    logger.info("\n--- Frontier Points ---")
    _log_table(logger, table.round(6))
    skipped = sum(1 for p in points if not p.feasible)
    logger.info(f"Solved {len(points) - skipped} of {len(points)} targets")
    checkpoint.complete_step("Frontier Sweep")

    if config.save_plots:
        config.output_dir.mkdir(parents=True, exist_ok=True)
        plot_efficient_frontier(
            points, expected_returns, cov_matrix, asset_names,
            save_path=str(config.output_dir / "efficient_frontier.png")
        )
        logger.info("Saved: efficient_frontier.png")
        plot_frontier_weights(
            points, asset_names,
            save_path=str(config.output_dir / "frontier_weights.png")
        )
        logger.info("Saved: frontier_weights.png")

    return results


def run_full_report(
    config: AnalysisConfig,
    logger: Optional[logging.Logger] = None,
    returns_file: Optional[str] = None,
    sheet: Optional[str] = None,
    transport_inputs: Optional[dict] = None
) -> dict:
    """
    Run both halves of the report.

    Args:
        config: Report configuration
        logger: Logger instance (default: setup_logger())
        returns_file: Optional Excel/CSV return history for the frontier
        sheet: Sheet name for Excel files
        transport_inputs: Transport model inputs from load_transport_inputs
            (default: reference waste-disposal case)

    Returns:
        Dictionary with 'transport' and 'frontier' result dictionaries
    """
    if logger is None:
        logger = setup_logger()

    checkpoint = AnalysisCheckpoint(logger)
    logger.info(config.describe())

    if returns_file:
        logger.info(f"Loading returns from: {returns_file}")
        loader = DataLoader()
        means, cov, names = loader.load_returns(returns_file, sheet)
        validation = loader.validate_data(means, cov, names)
        for warning in validation['warnings']:
            logger.warning(warning)
        if not validation['is_valid']:
            for error in validation['errors']:
                logger.error(error)
            raise ValueError("Data validation failed")
    else:
        means, cov, names = datasets.portfolio_inputs()

    results = {
        'transport': run_transport_analysis(config, logger, checkpoint, transport_inputs),
        'frontier': run_frontier_analysis(config, logger, means, cov, names, checkpoint),
    }

    if not config.show_plots:
        plt.close('all')
    checkpoint.log_final_report()
    return results


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Waste-disposal logistics and efficient frontier report',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ef-report                                    # Reference data
  ef-report --returns-file returns.xlsx        # Frontier from a return history
  ef-report --lp-method highs --qp-method slsqp
  ef-report --costs-file costs.csv --supply-file waste.csv --capacity-file capacity.csv \\
            --ptp-file plant_to_plant.csv --sts-file site_to_site.csv
        """
    )

    parser.add_argument('--returns-file', '-f', type=str,
                        help='Excel or CSV file with a return history for the frontier')
    parser.add_argument('--sheet', '-s', type=str, default=None,
                        help='Sheet name to read (default: first sheet)')
    parser.add_argument('--points', '-n', type=int, default=25,
                        help='Number of frontier targets (default: 25)')
    parser.add_argument('--costs-file', type=str, default=None,
                        help='Excel or CSV plant-to-site cost table (blank cell = no arc)')
    parser.add_argument('--supply-file', type=str, default=None,
                        help='Waste produced per plant (name, value)')
    parser.add_argument('--capacity-file', type=str, default=None,
                        help='Disposal capacity per site (name, value)')
    parser.add_argument('--ptp-file', type=str, default=None,
                        help='Plant-to-plant cost table for the transshipment model')
    parser.add_argument('--sts-file', type=str, default=None,
                        help='Site-to-site cost table for the transshipment model')
    parser.add_argument('--lp-method', choices=LP_METHODS, default='simplex',
                        help='LP backend for the transport models (default: simplex)')
    parser.add_argument('--qp-method', choices=QP_METHODS, default='active_set',
                        help='QP backend for the frontier (default: active_set)')
    parser.add_argument('--sentinel', type=float, default=None,
                        help='Price disallowed transshipment arcs at this cost instead of excluding them')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Directory for plots (default: ./output)')
    parser.add_argument('--no-plots', action='store_true',
                        help='Disable plot generation')
    parser.add_argument('--show-plots', action='store_true',
                        help='Show plots interactively (default: just save)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the report script."""
    args = build_parser().parse_args(argv)

    logger = setup_logger("optimization_report")

    try:
        config = AnalysisConfig.from_args(args)
        transport_inputs = load_transport_inputs(
            args.costs_file, args.supply_file, args.capacity_file, args.ptp_file, args.sts_file
        )
        run_full_report(config, logger, returns_file=args.returns_file, sheet=args.sheet,
                        transport_inputs=transport_inputs)

        if config.show_plots:
            plt.show()

        logger.info("Report completed successfully!")
        return 0

    except Exception as e:
        logger.error(f"Report failed: {e}")
        logger.error(traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
