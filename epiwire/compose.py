"""Compositors
==========

Turn a pattern plus one open system per box into a single open system.

Directed (:func:`compose_directed`)
    Composite state is the concatenation of box states. Each evaluation of
    the vector field first computes every needed box readout (a function of
    that box's state only), gathers each box's inputs from those readouts or
    from the outer inputs, then evaluates every box's dynamics into its own
    slice of the derivative. Feedback cycles need no fixed-point iteration.

Undirected (:func:`compose_undirected`)
    Composite state is one slot per junction, followed by the private
    (non-exposed) state of any nested box. Each box reads the junction slots
    it is bound to and its contributions are summed into those slots.

Index tables (state offsets, input gathers, junction scatters) are built once
here and only read afterwards, so a composite may be integrated from several
threads as long as each run owns its state buffer.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from .errors import ArityMismatch, InterfaceMismatch, PortCountMismatch
from .patterns import OUTER, Relation, WiringDiagram
from .systems import ContinuousMachine, OpenSystem, ResourceSharer


def _state_offsets(dims: Sequence[int]) -> np.ndarray:
    offsets = np.zeros(len(dims) + 1, dtype=np.intp)
    np.cumsum(dims, out=offsets[1:])
    return offsets


def compose_directed(
    diagram: WiringDiagram,
    machines: Sequence[ContinuousMachine],
    name: str = "composite",
) -> ContinuousMachine:
    """Compose a wiring diagram with one machine per box, in box order."""
    machines = list(machines)
    if len(machines) != diagram.nboxes:
        raise PortCountMismatch(
            f"Diagram has {diagram.nboxes} boxes but {len(machines)} machines were given"
        )
    for b, (box, machine) in enumerate(zip(diagram.boxes, machines)):
        if not isinstance(machine, ContinuousMachine):
            raise InterfaceMismatch(
                f"Box '{box.name}' of a wiring diagram needs a ContinuousMachine, got {type(machine).__name__}"
            )
        if machine.ninputs != box.ninputs or machine.noutputs != box.noutputs:
            raise PortCountMismatch(
                f"Box '{box.name}' declares {box.ninputs} inputs/{box.noutputs} outputs, "
                f"machine '{machine.name}' has {machine.ninputs}/{machine.noutputs}"
            )
    diagram.validate()

    nboxes = diagram.nboxes
    offsets = _state_offsets([m.state_dim for m in machines])
    out_offsets = _state_offsets([m.noutputs for m in machines])
    state_dim = int(offsets[-1])
    total_out = int(out_offsets[-1])
    n_outer_in = len(diagram.outer_inputs)

    # Readouts of every box and the outer inputs live side by side in one
    # buffer; each box input is an index into it.
    gathers: List[np.ndarray] = []
    readers = set()
    for b in range(nboxes):
        idx = []
        for src_box, src_port in diagram.input_sources[b]:
            if src_box == OUTER:
                idx.append(total_out + src_port)
            else:
                idx.append(out_offsets[src_box] + src_port)
                readers.add(src_box)
        gathers.append(np.asarray(idx, dtype=np.intp))
    readers = sorted(readers)
    slices = [slice(int(offsets[b]), int(offsets[b + 1])) for b in range(nboxes)]
    out_slices = [slice(int(out_offsets[b]), int(out_offsets[b + 1])) for b in range(nboxes)]
    output_sources = list(diagram.output_sources)

    def dynamics(u: np.ndarray, x: np.ndarray, p: Any, t: float) -> np.ndarray:
        y = np.empty(total_out + n_outer_in)
        for b in readers:
            y[out_slices[b]] = machines[b].eval_readout(u[slices[b]])
        y[total_out:] = x
        du = np.empty(state_dim)
        for b in range(nboxes):
            du[slices[b]] = machines[b].eval_dynamics(u[slices[b]], y[gathers[b]], p, t)
        return du

    def readout(u: np.ndarray) -> np.ndarray:
        cache: Dict[int, np.ndarray] = {}
        out = np.empty(len(output_sources))
        for k, (src_box, src_port) in enumerate(output_sources):
            if src_box not in cache:
                cache[src_box] = machines[src_box].eval_readout(u[slices[src_box]])
            out[k] = cache[src_box][src_port]
        return out

    labels = [
        f"{box.name}.{label}"
        for box, machine in zip(diagram.boxes, machines)
        for label in machine.labels
    ]
    return ContinuousMachine(
        state_dim=state_dim,
        input_ports=diagram.outer_inputs,
        output_ports=diagram.outer_outputs,
        dynamics=dynamics,
        readout=readout,
        labels=labels,
        name=name,
    )


def compose_undirected(
    relation: Relation,
    sharers: Sequence[ResourceSharer],
    name: str = "composite",
) -> ResourceSharer:
    """Compose a relation with one resource sharer per box, in box order.

    The same sharer may fill several boxes.
    """
    sharers = list(sharers)
    if len(sharers) != relation.nboxes:
        raise ArityMismatch(
            f"Relation has {relation.nboxes} boxes but {len(sharers)} systems were given"
        )
    for box, sharer in zip(relation.boxes, sharers):
        if not isinstance(sharer, ResourceSharer):
            raise InterfaceMismatch(
                f"Box '{box.name}' of a relation needs a ResourceSharer, got {type(sharer).__name__}"
            )
        if sharer.arity != box.arity:
            raise ArityMismatch(
                f"Box '{box.name}' declares arity {box.arity}, system '{sharer.name}' has arity {sharer.arity}"
            )
    relation.validate()

    njunctions = relation.njunctions
    private_dims = [len(s.private_indices) for s in sharers]
    private_offsets = njunctions + _state_offsets(private_dims)
    state_dim = int(private_offsets[-1])

    # scatters[b][i] is the composite slot behind local state slot i of box b
    scatters: List[np.ndarray] = []
    for b, sharer in enumerate(sharers):
        local = np.empty(sharer.state_dim, dtype=np.intp)
        for k, slot in enumerate(sharer.portmap):
            local[slot] = relation.bindings[b][k]
        for n, slot in enumerate(sharer.private_indices):
            local[slot] = private_offsets[b] + n
        scatters.append(local)
    scatter_all = np.concatenate(scatters) if scatters else np.zeros(0, dtype=np.intp)
    nboxes = len(sharers)

    def dynamics(u: np.ndarray, p: Any, t: float) -> np.ndarray:
        contributions = [
            sharers[b].eval_dynamics(u[scatters[b]], p, t) for b in range(nboxes)
        ]
        if not contributions:
            return np.zeros(state_dim)
        return np.bincount(scatter_all, weights=np.concatenate(contributions), minlength=state_dim)

    labels = list(relation.junctions)
    for box, sharer in zip(relation.boxes, sharers):
        labels.extend(f"{box.name}.{sharer.labels[i]}" for i in sharer.private_indices)

    return ResourceSharer(
        state_dim=state_dim,
        dynamics=dynamics,
        portmap=relation.outer_variables,
        labels=labels,
        name=name,
    )


_COMPOSITORS: Dict[str, Callable[..., OpenSystem]] = {
    WiringDiagram.kind: compose_directed,
    Relation.kind: compose_undirected,
}


def compose(pattern, systems: Sequence[OpenSystem], name: Optional[str] = None) -> OpenSystem:
    """Compose ``systems`` along ``pattern`` using the compositor for its kind."""
    kind = getattr(pattern, "kind", None)
    compositor = _COMPOSITORS.get(kind)
    if compositor is None:
        raise TypeError(f"Cannot compose along {type(pattern).__name__}: unknown pattern kind {kind!r}")
    if name is None:
        return compositor(pattern, systems)
    return compositor(pattern, systems, name=name)
