"""Open dynamical systems
=====================

The atomic unit of composition. Two flavours exist, one per composition
discipline:

* :class:`ContinuousMachine` -- directed. Named input and output ports, a
  vector field ``dynamics(u, x, p, t)`` and a readout ``readout(u)`` that may
  only look at the machine's own state.
* :class:`ResourceSharer` -- undirected. Exposes some of its state slots as
  shared variables (ports) through a ``portmap`` and evolves by
  ``dynamics(u, p, t)``.

Both are immutable values. The same instance can fill several boxes of one
pattern, or boxes in several patterns, at once.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DimensionMismatch, RuntimeDimensionMismatch

PortSpec = Union[int, Sequence[str]]
Inputs = Union[None, Sequence[float], np.ndarray, Callable[[float], Any]]


def _port_names(spec: PortSpec, prefix: str) -> Tuple[str, ...]:
    if isinstance(spec, (int, np.integer)):
        if spec < 0:
            raise ValueError(f"Port count must be non-negative, got {spec}")
        return tuple(f"{prefix}{i + 1}" for i in range(int(spec)))
    names = tuple(str(n) for n in spec)
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate port names: {names}")
    return names


def _state_labels(labels: Optional[Sequence[str]], state_dim: int) -> Tuple[str, ...]:
    if labels is None:
        return tuple(f"x{i + 1}" for i in range(state_dim))
    labels = tuple(str(l) for l in labels)
    if len(labels) != state_dim:
        raise ValueError(f"Expected {state_dim} state labels, got {len(labels)}")
    return labels


def _check_dim(value: Any, what: str) -> int:
    if not isinstance(value, (int, np.integer)) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{what} must be a non-negative integer, got {value!r}")
    return int(value)


def call_user(fn: Callable, owner: str, what: str, expected: int, *args) -> np.ndarray:
    """Evaluate a user-supplied ``dynamics``/``readout`` and check its output length.

    Index errors raised inside user code and results of the wrong size are
    reported as :class:`RuntimeDimensionMismatch` naming ``owner``.
    """
    try:
        result = fn(*args)
    except IndexError as err:
        raise RuntimeDimensionMismatch(
            f"{what} of '{owner}' indexed outside its declared dimensions: {err}"
        ) from err
    try:
        out = np.asarray(result, dtype=float).reshape(-1)
    except (TypeError, ValueError) as err:
        raise RuntimeDimensionMismatch(
            f"{what} of '{owner}' returned a non-numeric value: {result!r}"
        ) from err
    if out.size != expected:
        raise RuntimeDimensionMismatch(
            f"{what} of '{owner}' returned {out.size} values, expected {expected}"
        )
    return out


def check_state(u: Any, state_dim: int, owner: str) -> np.ndarray:
    """Coerce ``u`` to a float vector of length ``state_dim``."""
    arr = np.asarray(u, dtype=float).reshape(-1)
    if arr.size != state_dim:
        raise DimensionMismatch(
            f"State of '{owner}' has length {arr.size}, expected {state_dim}"
        )
    return arr


@dataclass(frozen=True)
class ContinuousMachine:
    """Directed open system with input and output ports."""
    state_dim: int
    input_ports: PortSpec
    output_ports: PortSpec
    dynamics: Callable[[np.ndarray, np.ndarray, Any, float], Any]
    readout: Callable[[np.ndarray], Any]
    labels: Optional[Sequence[str]] = None
    name: str = "machine"

    kind: ClassVar[str] = "directed"

    def __post_init__(self) -> None:
        object.__setattr__(self, "state_dim", _check_dim(self.state_dim, "state_dim"))
        object.__setattr__(self, "input_ports", _port_names(self.input_ports, "in"))
        object.__setattr__(self, "output_ports", _port_names(self.output_ports, "out"))
        object.__setattr__(self, "labels", _state_labels(self.labels, self.state_dim))
        if not callable(self.dynamics):
            raise TypeError(f"dynamics of '{self.name}' must be callable")
        if not callable(self.readout):
            raise TypeError(f"readout of '{self.name}' must be callable")

    @property
    def ninputs(self) -> int:
        return len(self.input_ports)

    @property
    def noutputs(self) -> int:
        return len(self.output_ports)

    def eval_dynamics(self, u: np.ndarray, x: np.ndarray, p: Any, t: float) -> np.ndarray:
        return call_user(self.dynamics, self.name, "dynamics", self.state_dim, u, x, p, t)

    def eval_readout(self, u: np.ndarray) -> np.ndarray:
        return call_user(self.readout, self.name, "readout", self.noutputs, u)

    def vector_field(self, params: Any, inputs: Inputs = None) -> Callable[[float, np.ndarray], np.ndarray]:
        """Close over ``params`` and ``inputs`` and return ``rhs(t, u)``.

        ``inputs`` is a constant vector or a function of time. Machines with
        no input ports take ``None``.
        """
        n = self.ninputs
        if inputs is None:
            if n:
                raise DimensionMismatch(
                    f"'{self.name}' has {n} input ports but no input values were given"
                )
            constant = np.zeros(0)
            input_fn = None
        elif callable(inputs):
            constant = None
            input_fn = inputs
        else:
            constant = np.asarray(inputs, dtype=float).reshape(-1)
            if constant.size != n:
                raise DimensionMismatch(
                    f"'{self.name}' takes {n} inputs, got {constant.size}"
                )
            input_fn = None

        def rhs(t: float, u: np.ndarray) -> np.ndarray:
            if input_fn is None:
                x = constant
            else:
                x = np.asarray(input_fn(t), dtype=float).reshape(-1)
                if x.size != n:
                    raise DimensionMismatch(
                        f"Input function of '{self.name}' returned {x.size} values at t={t}, expected {n}"
                    )
            return self.eval_dynamics(u, x, params, t)

        return rhs

    def __repr__(self) -> str:
        return (f"ContinuousMachine(name={self.name!r}, state_dim={self.state_dim}, "
                f"inputs={list(self.input_ports)}, outputs={list(self.output_ports)})")


@dataclass(frozen=True)
class ResourceSharer:
    """Undirected open system exposing state slots as shared variables."""
    state_dim: int
    dynamics: Callable[[np.ndarray, Any, float], Any]
    portmap: Optional[Sequence[int]] = None
    labels: Optional[Sequence[str]] = None
    name: str = "sharer"

    kind: ClassVar[str] = "undirected"

    def __post_init__(self) -> None:
        state_dim = _check_dim(self.state_dim, "state_dim")
        object.__setattr__(self, "state_dim", state_dim)
        if self.portmap is None:
            portmap = tuple(range(state_dim))
        else:
            portmap = tuple(int(i) for i in self.portmap)
        for i in portmap:
            if not 0 <= i < state_dim:
                raise ValueError(f"portmap entry {i} of '{self.name}' outside state of size {state_dim}")
        if len(set(portmap)) != len(portmap):
            raise ValueError(f"portmap of '{self.name}' exposes a state slot twice: {portmap}")
        object.__setattr__(self, "portmap", portmap)
        object.__setattr__(self, "labels", _state_labels(self.labels, state_dim))
        if not callable(self.dynamics):
            raise TypeError(f"dynamics of '{self.name}' must be callable")

    @property
    def arity(self) -> int:
        return len(self.portmap)

    @property
    def private_indices(self) -> Tuple[int, ...]:
        """State slots not exposed on any port, in state order."""
        exposed = set(self.portmap)
        return tuple(i for i in range(self.state_dim) if i not in exposed)

    def eval_dynamics(self, u: np.ndarray, p: Any, t: float) -> np.ndarray:
        return call_user(self.dynamics, self.name, "dynamics", self.state_dim, u, p, t)

    def vector_field(self, params: Any, inputs: Inputs = None) -> Callable[[float, np.ndarray], np.ndarray]:
        if inputs is not None:
            raise DimensionMismatch(f"Resource sharer '{self.name}' takes no inputs")

        def rhs(t: float, u: np.ndarray) -> np.ndarray:
            return self.eval_dynamics(u, params, t)

        return rhs

    def __repr__(self) -> str:
        return (f"ResourceSharer(name={self.name!r}, state_dim={self.state_dim}, "
                f"portmap={list(self.portmap)})")


OpenSystem = Union[ContinuousMachine, ResourceSharer]


def initial_state(system: OpenSystem, values: Mapping[str, float]) -> np.ndarray:
    """Build a state vector for ``system`` from ``{label: value}``; unset labels are 0."""
    index = {label: i for i, label in enumerate(system.labels)}
    u0 = np.zeros(system.state_dim)
    for label, value in values.items():
        if label not in index:
            raise KeyError(f"'{system.name}' has no state component '{label}' (labels: {list(system.labels)})")
        u0[index[label]] = float(value)
    return u0
