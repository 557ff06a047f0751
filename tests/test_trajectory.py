"""
Tests for trajectory export and the reporting helpers.
"""

import numpy as np
import pandas as pd
import pytest

from epiwire.trajectory import Trajectory
from epiwire.visualize import plot_trajectory, subscript


def _trajectory():
    return Trajectory(
        times=[0.0, 1.0, 2.0],
        states=[[3.0, 1.0], [2.0, 2.0], [1.0, 3.0]],
        labels=("S", "I2"),
    )


class TestTrajectory:

    def test_iterates_time_state_pairs(self):
        pairs = list(_trajectory())
        assert [t for t, _ in pairs] == [0.0, 1.0, 2.0]
        np.testing.assert_array_equal(pairs[1][1], [2.0, 2.0])

    def test_column_by_label(self):
        np.testing.assert_array_equal(_trajectory()["I2"], [1.0, 2.0, 3.0])
        with pytest.raises(KeyError):
            _trajectory()["R"]

    def test_totals(self):
        np.testing.assert_array_equal(_trajectory().totals(), [4.0, 4.0, 4.0])
        np.testing.assert_array_equal(_trajectory().totals(["S"]), [3.0, 2.0, 1.0])

    def test_shape_checked(self):
        with pytest.raises(ValueError):
            Trajectory(times=[0.0, 1.0], states=[[1.0]], labels=("S",))
        with pytest.raises(ValueError):
            Trajectory(times=[0.0], states=[[1.0, 2.0]], labels=("S",))

    def test_to_frame_and_csv(self, tmp_path):
        traj = _trajectory()
        df = traj.to_frame(time_col="day")
        assert list(df.columns) == ["day", "S", "I2"]
        path = traj.to_csv(tmp_path / "out" / "traj.csv")
        loaded = pd.read_csv(path)
        pd.testing.assert_frame_equal(loaded, traj.to_frame())


class TestVisualize:

    def test_subscript(self):
        assert subscript("I", 2) == "I₂"
        assert subscript("I12") == "I₁₂"
        assert subscript("S") == "S"

    def test_plot_saved(self, tmp_path):
        path = tmp_path / "plot.png"
        fig = plot_trajectory(_trajectory(), title="test", save_path=path)
        assert path.exists()
        assert len(fig.axes[0].lines) == 2
