"""Composition patterns
====================

Two kinds of connection topology, both built incrementally and checked as
they are built:

* :class:`WiringDiagram` (directed) -- boxes with named input/output ports,
  wires from box outputs to box inputs, and outer ports on the diagram
  itself.
* :class:`Relation` (undirected) -- boxes whose arguments are bound to
  junctions; a junction is one shared scalar variable.

Boxes and junctions are small integer ids into flat lists. Names are kept
only for labelling composite state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import (
    ArgumentIndexOutOfRange,
    DuplicateInputWire,
    PatternError,
    UnconnectedPort,
    UnknownBox,
    UnknownJunction,
    UnknownPort,
)
from .systems import PortSpec, _port_names

PortRef = Union[int, str]
JunctionRef = Union[int, str]

# Box id used in source tables for values coming from the diagram's outer inputs.
OUTER = -1


class Wire(NamedTuple):
    src_box: int
    src_port: int
    dst_box: int
    dst_port: int

    def __str__(self):
        src = "outer" if self.src_box == OUTER else f"box{self.src_box}"
        dst = "outer" if self.dst_box == OUTER else f"box{self.dst_box}"
        return f"{src}:{self.src_port} → {dst}:{self.dst_port}"


@dataclass
class DirectedBox:
    input_ports: Tuple[str, ...]
    output_ports: Tuple[str, ...]
    name: str

    @property
    def ninputs(self) -> int:
        return len(self.input_ports)

    @property
    def noutputs(self) -> int:
        return len(self.output_ports)


@dataclass
class UndirectedBox:
    arity: int
    name: str


def _is_box_id(box_id, nboxes: int) -> bool:
    return (isinstance(box_id, (int, np.integer)) and not isinstance(box_id, bool)
            and 0 <= box_id < nboxes)


def _resolve_port(port: PortRef, names: Tuple[str, ...], where: str) -> int:
    if isinstance(port, str):
        try:
            return names.index(port)
        except ValueError:
            raise UnknownPort(f"{where} has no port named '{port}' (ports: {list(names)})") from None
    idx = int(port)
    if not 0 <= idx < len(names):
        raise UnknownPort(f"{where} has no port {idx} (it has {len(names)})")
    return idx


class WiringDiagram:
    """Directed wiring diagram."""

    kind: ClassVar[str] = "directed"

    def __init__(self, outer_inputs: PortSpec = 0, outer_outputs: PortSpec = 0):
        self.outer_inputs = _port_names(outer_inputs, "in")
        self.outer_outputs = _port_names(outer_outputs, "out")
        self.boxes: List[DirectedBox] = []
        self.wires: List[Wire] = []
        # input_sources[b][k] is (src_box, src_port), src_box == OUTER for outer inputs
        self.input_sources: List[List[Optional[Tuple[int, int]]]] = []
        self.output_sources: List[Optional[Tuple[int, int]]] = [None] * len(self.outer_outputs)

    @property
    def nboxes(self) -> int:
        return len(self.boxes)

    def add_box(self, input_ports: PortSpec, output_ports: PortSpec, name: Optional[str] = None) -> int:
        box_id = len(self.boxes)
        box = DirectedBox(
            input_ports=_port_names(input_ports, "in"),
            output_ports=_port_names(output_ports, "out"),
            name=name if name is not None else f"box{box_id + 1}",
        )
        self.boxes.append(box)
        self.input_sources.append([None] * box.ninputs)
        return box_id

    def box(self, box_id: int) -> DirectedBox:
        if not _is_box_id(box_id, len(self.boxes)):
            raise UnknownBox(f"No box {box_id!r} (diagram has {len(self.boxes)})")
        return self.boxes[int(box_id)]

    def _set_input_source(self, dst_box: int, dst_port: int, source: Tuple[int, int]) -> None:
        existing = self.input_sources[dst_box][dst_port]
        if existing is not None:
            box = self.boxes[dst_box]
            raise DuplicateInputWire(
                f"Input '{box.input_ports[dst_port]}' of box '{box.name}' is already wired"
            )
        self.input_sources[dst_box][dst_port] = source

    def add_wire(self, src_box: int, src_port: PortRef, dst_box: int, dst_port: PortRef) -> Wire:
        src = self.box(src_box)
        dst = self.box(dst_box)
        src_box, dst_box = int(src_box), int(dst_box)
        sp = _resolve_port(src_port, src.output_ports, f"Box '{src.name}' (outputs)")
        dp = _resolve_port(dst_port, dst.input_ports, f"Box '{dst.name}' (inputs)")
        self._set_input_source(dst_box, dp, (src_box, sp))
        wire = Wire(src_box, sp, dst_box, dp)
        self.wires.append(wire)
        return wire

    def connect_outer_input(self, outer_port: PortRef, dst_box: int, dst_port: PortRef) -> Wire:
        op = _resolve_port(outer_port, self.outer_inputs, "Diagram (outer inputs)")
        dst = self.box(dst_box)
        dst_box = int(dst_box)
        dp = _resolve_port(dst_port, dst.input_ports, f"Box '{dst.name}' (inputs)")
        self._set_input_source(dst_box, dp, (OUTER, op))
        wire = Wire(OUTER, op, dst_box, dp)
        self.wires.append(wire)
        return wire

    def connect_outer_output(self, src_box: int, src_port: PortRef, outer_port: PortRef) -> Wire:
        src = self.box(src_box)
        src_box = int(src_box)
        sp = _resolve_port(src_port, src.output_ports, f"Box '{src.name}' (outputs)")
        op = _resolve_port(outer_port, self.outer_outputs, "Diagram (outer outputs)")
        if self.output_sources[op] is not None:
            raise DuplicateInputWire(f"Outer output '{self.outer_outputs[op]}' is already wired")
        self.output_sources[op] = (src_box, sp)
        wire = Wire(src_box, sp, OUTER, op)
        self.wires.append(wire)
        return wire

    def validate(self) -> None:
        """Raise :class:`UnconnectedPort` for any input or outer output with no source."""
        for b, box in enumerate(self.boxes):
            for k, source in enumerate(self.input_sources[b]):
                if source is None:
                    raise UnconnectedPort(
                        f"Input '{box.input_ports[k]}' of box '{box.name}' has no incoming wire"
                    )
        for k, source in enumerate(self.output_sources):
            if source is None:
                raise UnconnectedPort(f"Outer output '{self.outer_outputs[k]}' has no source")

    def __repr__(self) -> str:
        return (f"WiringDiagram(boxes={[b.name for b in self.boxes]}, "
                f"wires={[str(w) for w in self.wires]})")


class Relation:
    """Undirected relation: boxes whose arguments alias shared junctions."""

    kind: ClassVar[str] = "undirected"

    def __init__(self, outer_variables: Sequence[str] = ()):
        self.junctions: List[str] = []
        self._junction_ids: Dict[str, int] = {}
        self.boxes: List[UndirectedBox] = []
        self.bindings: List[List[Optional[int]]] = []
        self.outer_variables: Tuple[int, ...] = tuple(self.add_junction(v) for v in outer_variables)

    @property
    def nboxes(self) -> int:
        return len(self.boxes)

    @property
    def njunctions(self) -> int:
        return len(self.junctions)

    def add_junction(self, name: Optional[str] = None) -> int:
        if name is None:
            name = f"j{len(self.junctions) + 1}"
        name = str(name)
        if name in self._junction_ids:
            raise PatternError(f"Junction '{name}' already exists")
        self._junction_ids[name] = len(self.junctions)
        self.junctions.append(name)
        return self._junction_ids[name]

    def junction_id(self, junction: JunctionRef) -> int:
        if isinstance(junction, str):
            if junction not in self._junction_ids:
                raise UnknownJunction(f"No junction named '{junction}'")
            return self._junction_ids[junction]
        idx = int(junction)
        if not 0 <= idx < len(self.junctions):
            raise UnknownJunction(f"No junction {idx} (relation has {len(self.junctions)})")
        return idx

    def add_box(self, arity: int, name: Optional[str] = None) -> int:
        if arity < 0:
            raise ValueError(f"Box arity must be non-negative, got {arity}")
        box_id = len(self.boxes)
        self.boxes.append(UndirectedBox(arity=int(arity), name=name if name is not None else f"box{box_id + 1}"))
        self.bindings.append([None] * int(arity))
        return box_id

    def box(self, box_id: int) -> UndirectedBox:
        if not _is_box_id(box_id, len(self.boxes)):
            raise UnknownBox(f"No box {box_id!r} (relation has {len(self.boxes)})")
        return self.boxes[int(box_id)]

    def bind_argument(self, box_id: int, arg_index: int, junction: JunctionRef) -> int:
        """Alias argument ``arg_index`` of a box to ``junction``.

        A junction name seen for the first time creates that junction; an
        integer junction id must already exist.
        """
        box = self.box(box_id)
        box_id = int(box_id)
        if not 0 <= arg_index < box.arity:
            raise ArgumentIndexOutOfRange(
                f"Box '{box.name}' has arity {box.arity}, no argument {arg_index}"
            )
        if self.bindings[box_id][arg_index] is not None:
            raise PatternError(f"Argument {arg_index} of box '{box.name}' is already bound")
        if isinstance(junction, str) and junction not in self._junction_ids:
            j = self.add_junction(junction)
        else:
            j = self.junction_id(junction)
        self.bindings[box_id][arg_index] = j
        return j

    def bind(self, box_id: int, junctions: Sequence[JunctionRef]) -> None:
        """Bind every argument of a box at once, in argument order."""
        box = self.box(box_id)
        if len(junctions) != box.arity:
            raise ArgumentIndexOutOfRange(
                f"Box '{box.name}' has arity {box.arity}, got {len(junctions)} junctions"
            )
        for k, junction in enumerate(junctions):
            self.bind_argument(box_id, k, junction)

    def validate(self) -> None:
        """Raise :class:`UnconnectedPort` for any unbound box argument."""
        for b, box in enumerate(self.boxes):
            for k, j in enumerate(self.bindings[b]):
                if j is None:
                    raise UnconnectedPort(f"Argument {k} of box '{box.name}' is not bound to a junction")

    def __repr__(self) -> str:
        return (f"Relation(junctions={self.junctions}, "
                f"boxes={[(b.name, [self.junctions[j] if j is not None else None for j in js]) for b, js in zip(self.boxes, self.bindings)]})")


def new_wiring_diagram(outer_inputs: PortSpec = 0, outer_outputs: PortSpec = 0) -> WiringDiagram:
    return WiringDiagram(outer_inputs, outer_outputs)


def new_relation(outer_variables: Sequence[str] = ()) -> Relation:
    return Relation(outer_variables)


Pattern = Union[WiringDiagram, Relation]
