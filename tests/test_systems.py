"""
Tests for atomic open systems.

Covers construction checks, runtime dimension checking of user functions,
and the vector_field closure.
"""

import numpy as np
import pytest

from epiwire.errors import DimensionMismatch, RuntimeDimensionMismatch
from epiwire.systems import ContinuousMachine, ResourceSharer, initial_state


def _decay_machine():
    return ContinuousMachine(
        state_dim=1, input_ports=["x"], output_ports=["y"],
        dynamics=lambda u, x, p, t: [-p["k"] * u[0] + x[0]],
        readout=lambda u: [u[0]],
        labels=["u"], name="decay",
    )


class TestConstruction:

    def test_port_counts_expand_to_names(self):
        m = ContinuousMachine(2, 1, 3, lambda u, x, p, t: u, lambda u: [0, 0, 0])
        assert m.input_ports == ("in1",)
        assert m.output_ports == ("out1", "out2", "out3")
        assert m.labels == ("x1", "x2")

    def test_duplicate_port_names_rejected(self):
        with pytest.raises(ValueError):
            ContinuousMachine(1, ["a", "a"], 0, lambda u, x, p, t: u, lambda u: [])

    def test_negative_dimension_rejected(self):
        with pytest.raises(ValueError):
            ResourceSharer(-1, lambda u, p, t: u)

    def test_dynamics_must_be_callable(self):
        with pytest.raises(TypeError):
            ResourceSharer(1, dynamics=None)

    def test_label_count_must_match_state(self):
        with pytest.raises(ValueError):
            ResourceSharer(2, lambda u, p, t: u, labels=["S"])

    def test_portmap_defaults_to_identity(self):
        s = ResourceSharer(3, lambda u, p, t: u)
        assert s.portmap == (0, 1, 2)
        assert s.arity == 3
        assert s.private_indices == ()

    def test_partial_portmap_leaves_private_state(self):
        s = ResourceSharer(3, lambda u, p, t: u, portmap=[2, 0])
        assert s.arity == 2
        assert s.private_indices == (1,)

    def test_portmap_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            ResourceSharer(2, lambda u, p, t: u, portmap=[0, 2])

    def test_portmap_must_be_injective(self):
        with pytest.raises(ValueError):
            ResourceSharer(2, lambda u, p, t: u, portmap=[1, 1])

    def test_systems_are_immutable(self):
        s = ResourceSharer(1, lambda u, p, t: u)
        with pytest.raises(AttributeError):
            s.state_dim = 4


class TestEvaluation:

    def test_vector_field_with_constant_inputs(self):
        rhs = _decay_machine().vector_field({"k": 0.5}, inputs=[2.0])
        np.testing.assert_allclose(rhs(0.0, np.array([4.0])), [0.0])

    def test_vector_field_with_time_dependent_inputs(self):
        rhs = _decay_machine().vector_field({"k": 1.0}, inputs=lambda t: [t])
        np.testing.assert_allclose(rhs(3.0, np.array([1.0])), [2.0])

    def test_missing_inputs_raise(self):
        with pytest.raises(DimensionMismatch):
            _decay_machine().vector_field({"k": 1.0})

    def test_wrong_input_length_raises(self):
        with pytest.raises(DimensionMismatch):
            _decay_machine().vector_field({"k": 1.0}, inputs=[1.0, 2.0])

    def test_sharer_rejects_inputs(self):
        s = ResourceSharer(1, lambda u, p, t: [0.0])
        with pytest.raises(DimensionMismatch):
            s.vector_field(None, inputs=[1.0])

    def test_index_error_in_dynamics_is_reported(self):
        bad = ResourceSharer(1, lambda u, p, t: [u[0] + u[1]], name="greedy")
        with pytest.raises(RuntimeDimensionMismatch, match="greedy"):
            bad.eval_dynamics(np.array([1.0]), None, 0.0)

    def test_wrong_result_length_is_reported(self):
        bad = ResourceSharer(2, lambda u, p, t: [0.0], name="short")
        with pytest.raises(RuntimeDimensionMismatch):
            bad.eval_dynamics(np.zeros(2), None, 0.0)

    def test_wrong_readout_length_is_reported(self):
        bad = ContinuousMachine(1, 0, 2, lambda u, x, p, t: [0.0], lambda u: [u[0]])
        with pytest.raises(RuntimeDimensionMismatch):
            bad.eval_readout(np.zeros(1))


class TestInitialState:

    def test_builds_vector_by_label(self):
        s = ResourceSharer(3, lambda u, p, t: u, labels=["S", "I", "R"])
        np.testing.assert_array_equal(initial_state(s, {"S": 990, "I": 10}), [990.0, 10.0, 0.0])

    def test_unknown_label_raises(self):
        s = ResourceSharer(1, lambda u, p, t: u, labels=["S"])
        with pytest.raises(KeyError):
            initial_state(s, {"X": 1.0})
