"""
Tests for the command-line runner.
"""

import json

import pytest

from config import Config, str2bool
from epiwire.simulate import main, model_params, run


class TestConfig:

    def test_defaults(self):
        args = Config([])
        assert args.model == "sir_undirected"
        assert args.method == "rk4"
        assert args.visualize is False

    def test_str2bool(self):
        assert str2bool("yes") is True
        assert str2bool("0") is False

    def test_stage_params_added(self):
        args = Config(["--model", "stages", "--n_stages", "3", "--gamma", "0.2"])
        params = model_params(args)
        assert params["delta"] == pytest.approx(0.6)


class TestRun:

    def test_writes_csv_and_metadata(self, tmp_path):
        args = Config([
            "--model", "stages", "--method", "dopri5",
            "--t_end", "10", "--dt", "0.5", "--output_dir", str(tmp_path),
        ])
        record = run(args)
        assert record["state_dim"] == 5
        assert record["num_samples"] == 21
        assert record["final_total"] == pytest.approx(1000.0, rel=1e-6)
        with (tmp_path / "stages_dopri5_metadata.json").open() as f:
            assert json.load(f)["labels"] == ["S", "I1", "I2", "I3", "I4"]
        assert (tmp_path / "stages_dopri5.csv").exists()

    def test_stochastic_with_plot(self, tmp_path):
        main([
            "--model", "sir_directed", "--method", "stochastic", "--seed", "3",
            "--t_end", "5", "--dt", "1", "--output_dir", str(tmp_path), "--visualize", "true",
        ])
        assert (tmp_path / "sir_directed_stochastic.png").exists()
