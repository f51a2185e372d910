"""
Tests for the report configuration and command line entry point.
"""

import pytest

from transport_frontier.cli.config import AnalysisConfig
from transport_frontier.cli.main import (
    AnalysisCheckpoint,
    build_parser,
    load_transport_inputs,
    main,
    run_frontier_analysis,
    run_full_report,
    run_transport_analysis,
    setup_logger,
)
from transport_frontier.core import datasets
from transport_frontier.core.errors import SolverFailure


class TestAnalysisConfig:

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = AnalysisConfig()

        assert config.lp_method == "simplex"
        assert config.qp_method == "active_set"
        assert config.sentinel is None
        assert config.output_dir == tmp_path / "output"

    @pytest.mark.parametrize("kwargs", [
        {"lp_method": "interior"},
        {"qp_method": "newton"},
        {"n_points": 1},
        {"sentinel": 0},
    ])
    def test_rejects_bad_settings(self, kwargs):
        with pytest.raises(ValueError):
            AnalysisConfig(**kwargs)

    def test_from_args(self):
        args = build_parser().parse_args(["--points", "10", "--lp-method", "highs",
                                          "--sentinel", "1e6", "--no-plots"])
        config = AnalysisConfig.from_args(args)

        assert config.n_points == 10
        assert config.lp_method == "highs"
        assert config.sentinel == 1e6
        assert not config.save_plots
        assert "sentinel cost 1e+06" in config.describe()


class TestReport:

    def test_full_report_writes_plots(self, tmp_path):
        config = AnalysisConfig(n_points=5, output_dir=str(tmp_path / "out"))
        logger = setup_logger("test_report", log_dir=tmp_path / "logs")

        results = run_full_report(config, logger)

        assert results['transport']['direct'].total_cost == pytest.approx(datasets.WASTE_DIRECT_OPTIMUM)
        assert results['transport']['transshipment'].dummy_supply == pytest.approx(17)
        assert len(results['frontier']['points']) == 5
        for name in ("transshipment_flows.png", "efficient_frontier.png", "frontier_weights.png"):
            assert (tmp_path / "out" / name).exists()
        assert list((tmp_path / "logs").glob("log_test_report_*.txt"))

    def test_main_reference_data(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert main(["--no-plots", "--points", "4"]) == 0
        assert not (tmp_path / "output").exists()

    def test_main_with_returns_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "returns.csv"
        path.write_text("Date,A,B\n2020-01-31,0.02,0.01\n2020-02-29,-0.01,0.005\n2020-03-31,0.03,0.0\n")

        assert main(["--no-plots", "--points", "3", "--returns-file", str(path)]) == 0

    def test_main_reports_failure(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert main(["--no-plots", "--returns-file", str(tmp_path / "missing.csv")]) == 1

    def test_failed_mvp_does_not_stop_the_sweep(self, tmp_path, monkeypatch):
        def fail(*args, **kwargs):
            raise SolverFailure("SLSQP did not converge")

        monkeypatch.setattr("transport_frontier.cli.main.minimum_variance_portfolio", fail)
        logger = setup_logger("test_report", log_dir=tmp_path / "logs")
        checkpoint = AnalysisCheckpoint(logger)
        mu, cov, names = datasets.portfolio_inputs()

        results = run_frontier_analysis(AnalysisConfig(save_plots=False, n_points=4),
                                        logger, mu, cov, names, checkpoint)

        assert results['mvp'] is None
        assert "Minimum Variance Portfolio" in checkpoint.steps_failed
        assert len(results['points']) == 4
        assert "Frontier Sweep" in checkpoint.steps_completed


def write_transport_files(folder):
    """Two plants, two sites; cheapest arcs fit capacity, so both plans cost 100."""
    files = {
        'costs': "Plant,S1,S2\nA,4,6\nB,5,3\n",
        'supply': "Plant,Waste\nA,10\nB,20\n",
        'capacity': "Site,Capacity\nS1,15\nS2,25\n",
        'ptp': "Plant,A,B\nA,0,1\nB,1,0\n",
        'sts': "Site,S1,S2\nS1,0,2\nS2,2,0\n",
    }
    paths = {}
    for name, text in files.items():
        paths[name] = folder / f"{name}.csv"
        paths[name].write_text(text)
    return paths


class TestTransportFiles:

    def test_load_inputs(self, tmp_path):
        paths = write_transport_files(tmp_path)
        inputs = load_transport_inputs(str(paths['costs']), str(paths['supply']),
                                       str(paths['capacity']), str(paths['ptp']), str(paths['sts']))

        assert list(inputs['costs'].index) == ["A", "B"]
        assert inputs['supply'].to_dict() == {"A": 10.0, "B": 20.0}
        assert list(inputs['sts'].columns) == ["S1", "S2"]

    def test_reference_inputs_by_default(self):
        inputs = load_transport_inputs()

        assert list(inputs['costs'].index) == list(datasets.PLANTS)
        assert inputs['supply'].sum() == pytest.approx(sum(datasets.WASTE_SUPPLY))

    def test_cost_file_needs_quantities(self, tmp_path):
        paths = write_transport_files(tmp_path)

        with pytest.raises(ValueError, match="supply file"):
            load_transport_inputs(str(paths['costs']))

    def test_missing_plant_in_supply(self, tmp_path):
        paths = write_transport_files(tmp_path)
        paths['supply'].write_text("Plant,Waste\nA,10\n")

        with pytest.raises(ValueError, match="no value"):
            load_transport_inputs(str(paths['costs']), str(paths['supply']), str(paths['capacity']))

    def test_solves_file_inputs(self, tmp_path):
        paths = write_transport_files(tmp_path)
        inputs = load_transport_inputs(str(paths['costs']), str(paths['supply']),
                                       str(paths['capacity']), str(paths['ptp']), str(paths['sts']))
        logger = setup_logger("test_report", log_dir=tmp_path / "logs")

        results = run_transport_analysis(AnalysisConfig(save_plots=False), logger, inputs=inputs)

        assert results['direct'].total_cost == pytest.approx(100)
        assert results['transshipment'].total_cost == pytest.approx(100)
        assert results['transshipment'].dummy_supply == pytest.approx(10)

    def test_transshipment_skipped_without_tables(self, tmp_path):
        paths = write_transport_files(tmp_path)
        inputs = load_transport_inputs(str(paths['costs']), str(paths['supply']), str(paths['capacity']))
        logger = setup_logger("test_report", log_dir=tmp_path / "logs")
        checkpoint = AnalysisCheckpoint(logger)

        results = run_transport_analysis(AnalysisConfig(save_plots=False), logger, checkpoint, inputs)

        assert results['direct'].total_cost == pytest.approx(100)
        assert results['transshipment'] is None
        assert checkpoint.steps_completed == ["Direct Shipment"]

    def test_main_with_transport_files(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        paths = write_transport_files(tmp_path)

        assert main(["--no-plots", "--points", "3",
                     "--costs-file", str(paths['costs']),
                     "--supply-file", str(paths['supply']),
                     "--capacity-file", str(paths['capacity']),
                     "--ptp-file", str(paths['ptp']),
                     "--sts-file", str(paths['sts'])]) == 0
