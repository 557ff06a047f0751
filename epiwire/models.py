"""Example model library
=====================

Epidemic building blocks expressed as open systems, plus the patterns that
assemble them:

* Directed SIR: a susceptible machine and an infected machine wired in a
  feedback cycle, optionally extended with a recovered machine.
* Undirected SIR: infection, recovery and vital-dynamics resource sharers
  glued at shared S/I/R junctions.
* Stages of infection: infection followed by ``n`` serial infectious stages
  (rate ``delta = n * gamma``) returning to S, built as a nested composite.

Parameters are plain dicts; missing entries fall back to the defaults below.
Populations are counts and infection is mass action (``beta * S * I``).
"""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .compose import compose_directed, compose_undirected
from .patterns import Relation, WiringDiagram
from .systems import ContinuousMachine, OpenSystem, ResourceSharer

DEFAULT_PARAMS: Dict[str, float] = {
    "beta": 0.0005,
    "gamma": 0.25,
    "mu": 0.01,
}


def _param(p, name: str, default: Optional[float] = None) -> float:
    if default is None:
        default = DEFAULT_PARAMS[name]
    return (p or {}).get(name, default)


def _beta(p) -> float:
    return _param(p, "beta")


def _gamma(p) -> float:
    return _param(p, "gamma")


# === Directed (machines) ===

def susceptible_machine() -> ContinuousMachine:
    """dS/dt = -beta * S * I, with I arriving on the input port."""
    def dynamics(u, x, p, t):
        return [-_beta(p) * u[0] * x[0]]

    return ContinuousMachine(
        state_dim=1, input_ports=["I"], output_ports=["S"],
        dynamics=dynamics, readout=lambda u: [u[0]],
        labels=["S"], name="susceptible",
    )


def infected_machine() -> ContinuousMachine:
    """dI/dt = beta * S * I - gamma * I, with S arriving on the input port."""
    def dynamics(u, x, p, t):
        return [_beta(p) * x[0] * u[0] - _gamma(p) * u[0]]

    return ContinuousMachine(
        state_dim=1, input_ports=["S"], output_ports=["I"],
        dynamics=dynamics, readout=lambda u: [u[0]],
        labels=["I"], name="infected",
    )


def recovered_machine() -> ContinuousMachine:
    """dR/dt = gamma * I, with I arriving on the input port."""
    def dynamics(u, x, p, t):
        return [_gamma(p) * x[0]]

    return ContinuousMachine(
        state_dim=1, input_ports=["I"], output_ports=["R"],
        dynamics=dynamics, readout=lambda u: [u[0]],
        labels=["R"], name="recovered",
    )


def sir_wiring() -> WiringDiagram:
    """S and I boxes feeding each other; both exposed as outer outputs."""
    diagram = WiringDiagram(outer_inputs=0, outer_outputs=["S", "I"])
    s = diagram.add_box(["I"], ["S"], name="susceptible")
    i = diagram.add_box(["S"], ["I"], name="infected")
    diagram.add_wire(s, "S", i, "S")
    diagram.add_wire(i, "I", s, "I")
    diagram.connect_outer_output(s, "S", "S")
    diagram.connect_outer_output(i, "I", "I")
    return diagram


def directed_sir() -> ContinuousMachine:
    return compose_directed(sir_wiring(), [susceptible_machine(), infected_machine()], name="sir")


def directed_sir_with_recovered(nested: bool = True) -> ContinuousMachine:
    """S, I, R machines. ``nested`` reuses :func:`directed_sir` as one box;
    otherwise all three machines sit directly in one diagram. Both give the
    same state ordering (S, I, R)."""
    diagram = WiringDiagram(outer_inputs=0, outer_outputs=["S", "I", "R"])
    if nested:
        si = diagram.add_box(0, ["S", "I"], name="sir")
        r = diagram.add_box(["I"], ["R"], name="recovered")
        diagram.add_wire(si, "I", r, "I")
        diagram.connect_outer_output(si, "S", "S")
        diagram.connect_outer_output(si, "I", "I")
        diagram.connect_outer_output(r, "R", "R")
        machines = [directed_sir(), recovered_machine()]
    else:
        s = diagram.add_box(["I"], ["S"], name="susceptible")
        i = diagram.add_box(["S"], ["I"], name="infected")
        r = diagram.add_box(["I"], ["R"], name="recovered")
        diagram.add_wire(s, "S", i, "S")
        diagram.add_wire(i, "I", s, "I")
        diagram.add_wire(i, "I", r, "I")
        diagram.connect_outer_output(s, "S", "S")
        diagram.connect_outer_output(i, "I", "I")
        diagram.connect_outer_output(r, "R", "R")
        machines = [susceptible_machine(), infected_machine(), recovered_machine()]
    return compose_directed(diagram, machines, name="sir_r")


# === Undirected (resource sharers) ===

def infection_sharer() -> ResourceSharer:
    """Over (S, I): flow beta * S * I from S to I."""
    def dynamics(u, p, t):
        flow = _beta(p) * u[0] * u[1]
        return [-flow, flow]

    return ResourceSharer(state_dim=2, dynamics=dynamics, labels=["S", "I"], name="infection")


def recovery_sharer() -> ResourceSharer:
    """Over (I, R): flow gamma * I from I to R."""
    def dynamics(u, p, t):
        flow = _gamma(p) * u[0]
        return [-flow, flow]

    return ResourceSharer(state_dim=2, dynamics=dynamics, labels=["I", "R"], name="recovery")


def birth_death_sharer() -> ResourceSharer:
    """Over (S, I): infected die at rate mu and are replaced by susceptible births."""
    def dynamics(u, p, t):
        deaths = _param(p, "mu") * u[1]
        return [deaths, -deaths]

    return ResourceSharer(state_dim=2, dynamics=dynamics, labels=["S", "I"], name="birth_death")


def sir_relation(vital_dynamics: bool = False) -> Relation:
    relation = Relation(["S", "I", "R"])
    relation.bind(relation.add_box(2, name="infection"), ["S", "I"])
    relation.bind(relation.add_box(2, name="recovery"), ["I", "R"])
    if vital_dynamics:
        relation.bind(relation.add_box(2, name="birth_death"), ["S", "I"])
    return relation


def undirected_sir(vital_dynamics: bool = False) -> ResourceSharer:
    sharers = [infection_sharer(), recovery_sharer()]
    if vital_dynamics:
        sharers.append(birth_death_sharer())
    name = "sir_vital" if vital_dynamics else "sir"
    return compose_undirected(sir_relation(vital_dynamics), sharers, name=name)


# === Stages of infection ===

def stage_labels(n_stages: int) -> List[str]:
    return ["S"] + [f"I{k}" for k in range(1, n_stages + 1)]


def staged_infection_sharer(n_stages: int = 4) -> ResourceSharer:
    """Over (S, I1..In): every stage is infectious, new infections enter I1."""
    def dynamics(u, p, t):
        flow = _beta(p) * u[0] * np.sum(u[1:])
        du = np.zeros(n_stages + 1)
        du[0] = -flow
        du[1] = flow
        return du

    return ResourceSharer(
        state_dim=n_stages + 1, dynamics=dynamics,
        labels=stage_labels(n_stages), name="staged_infection",
    )


def progression_sharer(n_stages: int = 4) -> ResourceSharer:
    """Over (from, to): flow delta * from. ``delta`` defaults to n_stages * gamma."""
    def dynamics(u, p, t):
        delta = _param(p, "delta", n_stages * _gamma(p))
        flow = delta * u[0]
        return [-flow, flow]

    return ResourceSharer(state_dim=2, dynamics=dynamics, labels=["from", "to"], name="progression")


def _bind_progressions(relation: Relation, labels: List[str]) -> int:
    stages = labels[1:]
    targets = stages[1:] + ["S"]
    for source, target in zip(stages, targets):
        relation.bind(relation.add_box(2, name=f"{source}->{target}"), [source, target])
    return len(stages)


def infection_stages(n_stages: int = 4) -> ResourceSharer:
    """Serial progression I1 -> I2 -> ... -> In -> S as one composite."""
    labels = stage_labels(n_stages)
    relation = Relation(labels)
    count = _bind_progressions(relation, labels)
    return compose_undirected(relation, [progression_sharer(n_stages)] * count, name="stages")


def stages_of_infection(n_stages: int = 4, nested: bool = True) -> ResourceSharer:
    """Infection plus ``n_stages`` serial infectious stages over (S, I1..In).

    With ``nested`` the progression chain is composed first and used as a
    single box; otherwise every progression box sits in the same relation.
    """
    if n_stages < 1:
        raise ValueError(f"n_stages must be at least 1, got {n_stages}")
    labels = stage_labels(n_stages)
    relation = Relation(labels)
    relation.bind(relation.add_box(n_stages + 1, name="infection"), labels)
    if nested:
        relation.bind(relation.add_box(n_stages + 1, name="stages"), labels)
        systems = [staged_infection_sharer(n_stages), infection_stages(n_stages)]
    else:
        count = _bind_progressions(relation, labels)
        systems = [staged_infection_sharer(n_stages)] + [progression_sharer(n_stages)] * count
    return compose_undirected(relation, systems, name="stages_of_infection")


def stage_params(beta: float = 0.0005, gamma: float = 0.25, n_stages: int = 4) -> Dict[str, float]:
    return {"beta": beta, "gamma": gamma, "n_stages": n_stages, "delta": n_stages * gamma}


# name -> (builder, initial values by label)
MODEL_LIBRARY: Dict[str, Tuple[Callable[..., OpenSystem], Dict[str, float]]] = {
    "sir_directed": (directed_sir, {"susceptible.S": 990.0, "infected.I": 10.0}),
    "sir_undirected": (lambda: undirected_sir(False), {"S": 990.0, "I": 10.0}),
    "sir_vital": (lambda: undirected_sir(True), {"S": 990.0, "I": 10.0}),
    "stages": (stages_of_infection, {"S": 990.0, "I1": 10.0}),
}


def build_model(name: str, **kwargs) -> Tuple[OpenSystem, Dict[str, float]]:
    """Look up a library model; returns the system and its default initial values."""
    entry = MODEL_LIBRARY.get(name)
    if entry is None:
        raise ValueError(f"Unknown model '{name}'. Available: {sorted(MODEL_LIBRARY)}")
    builder, initial = entry
    return builder(**kwargs), dict(initial)
