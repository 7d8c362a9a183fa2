"""Circuit data structures for circuit-playground

A circuit is a set of nodes, components bound to nodes through their
terminals, zero-ohm wires between nodes and probes on nodes. Node 0 is the
ground reference and always exists.

Wires are merged before solving: ``build_node_map`` runs a union-find over
the wire list and gives every connected group of nodes one matrix index.
Any group containing node 0 is ground (index -1).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from circuit_playground.config import MAX_PROBES
from circuit_playground.devices.base import Component, ComponentKind

logger = logging.getLogger(__name__)

GROUND = 0

# Label prefix per kind, numbered in insertion order
LABEL_PREFIX = {
    ComponentKind.RESISTOR: "R",
    ComponentKind.CAPACITOR: "C",
    ComponentKind.INDUCTOR: "L",
    ComponentKind.FUSE: "F",
    ComponentKind.DC_VOLTAGE: "V",
    ComponentKind.AC_VOLTAGE: "V",
    ComponentKind.DC_CURRENT: "I",
    ComponentKind.SQUARE_WAVE: "V",
    ComponentKind.TRIANGLE_WAVE: "V",
    ComponentKind.SAWTOOTH_WAVE: "V",
    ComponentKind.NOISE_SOURCE: "V",
    ComponentKind.DIODE: "D",
    ComponentKind.ZENER: "D",
    ComponentKind.SCHOTTKY: "D",
    ComponentKind.LED: "D",
    ComponentKind.NPN_BJT: "Q",
    ComponentKind.PNP_BJT: "Q",
    ComponentKind.NMOS: "M",
    ComponentKind.PMOS: "M",
    ComponentKind.OPAMP: "U",
}


@dataclass
class Node:
    """Connection point

    Attributes:
        id: Unique node id (0 is ground)
        x, y: Position on the schematic (display only)
        voltage: Voltage at the last accepted solution
    """

    id: int
    x: float = 0.0
    y: float = 0.0
    voltage: float = 0.0


@dataclass
class Wire:
    """Zero-ohm connection between two nodes"""

    id: int
    start_node: int
    end_node: int


@dataclass
class Probe:
    """Oscilloscope probe on a node

    The probe's voltage history is kept by the simulation, not here.
    """

    id: int
    node_id: int
    label: str = ""
    color: int = 0


@dataclass
class Circuit:
    """Top-level circuit containing all topology.

    Structural edits go through the ``add_*`` / ``remove_*`` methods, which
    bump ``topology_version`` so a simulation knows to rebuild its system.
    """

    name: str = "untitled"
    nodes: Dict[int, Node] = field(default_factory=dict)
    components: List[Component] = field(default_factory=list)
    wires: List[Wire] = field(default_factory=list)
    probes: List[Probe] = field(default_factory=list)
    topology_version: int = 0
    _next_node_id: int = 1
    _next_component_id: int = 1
    _next_wire_id: int = 1
    _next_probe_id: int = 1

    def __post_init__(self):
        if GROUND not in self.nodes:
            self.nodes[GROUND] = Node(GROUND)

    def _touch(self) -> None:
        self.topology_version += 1

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def add_node(self, x: float = 0.0, y: float = 0.0, node_id: Optional[int] = None) -> int:
        """Create a node and return its id."""
        if node_id is None:
            node_id = self._next_node_id
        elif node_id in self.nodes:
            raise ValueError(f"Node {node_id} already exists")
        self.nodes[node_id] = Node(node_id, x, y)
        self._next_node_id = max(self._next_node_id, node_id + 1)
        self._touch()
        return node_id

    def add_component(self, component: Component, node_ids: Sequence[int]) -> Component:
        """Bind ``component`` to nodes (one per terminal) and add it.

        Args:
            component: Device instance; its id (and label, if empty) are assigned here
            node_ids: Node id for each entry of ``component.terminals``

        Returns:
            The added component
        """
        node_ids = tuple(int(n) for n in node_ids)
        if len(node_ids) != len(component.terminals):
            raise ValueError(
                f"{component.kind.value} has {len(component.terminals)} terminals "
                f"{component.terminals}, got {len(node_ids)} nodes"
            )
        for n in node_ids:
            if n not in self.nodes:
                raise ValueError(f"Unknown node {n}")

        if component.id < 0 or self.get_component(component.id) is not None:
            component.id = self._next_component_id
        self._next_component_id = max(self._next_component_id, component.id + 1)
        if not component.label:
            prefix = LABEL_PREFIX[component.kind]
            count = sum(1 for c in self.components if LABEL_PREFIX[c.kind] == prefix)
            component.label = f"{prefix}{count + 1}"
        component.node_ids = node_ids
        self.components.append(component)
        self._touch()
        return component

    def remove_component(self, component_id: int) -> Component:
        component = self.get_component(component_id)
        if component is None:
            raise KeyError(f"No component with id {component_id}")
        self.components.remove(component)
        self._touch()
        return component

    def add_wire(self, start_node: int, end_node: int) -> Wire:
        for n in (start_node, end_node):
            if n not in self.nodes:
                raise ValueError(f"Unknown node {n}")
        wire = Wire(self._next_wire_id, start_node, end_node)
        self._next_wire_id += 1
        self.wires.append(wire)
        self._touch()
        return wire

    def remove_wire(self, wire_id: int) -> None:
        self.wires = [w for w in self.wires if w.id != wire_id]
        self._touch()

    def add_probe(self, node_id: int, label: str = "") -> Optional[Probe]:
        """Attach a probe to a node. Returns None once MAX_PROBES are in use."""
        if node_id not in self.nodes:
            raise ValueError(f"Unknown node {node_id}")
        if len(self.probes) >= MAX_PROBES:
            logger.debug(f"Probe limit {MAX_PROBES} reached, probe on node {node_id} ignored")
            return None
        probe = Probe(
            self._next_probe_id,
            node_id,
            label or f"V({node_id})",
            color=len(self.probes),
        )
        self._next_probe_id += 1
        self.probes.append(probe)
        self._touch()
        return probe

    def remove_probe(self, probe_id: int) -> None:
        self.probes = [p for p in self.probes if p.id != probe_id]
        self._touch()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_component(self, component_id: int) -> Optional[Component]:
        for component in self.components:
            if component.id == component_id:
                return component
        return None

    def find_component(self, label: str) -> Optional[Component]:
        for component in self.components:
            if component.label == label:
                return component
        return None

    def _wire_groups(self) -> Dict[int, int]:
        """Union-find over wires: node id -> representative node id."""
        parent = {n: n for n in self.nodes}

        def find(n: int) -> int:
            root = n
            while parent[root] != root:
                root = parent[root]
            while parent[n] != root:
                parent[n], n = root, parent[n]
            return root

        for wire in self.wires:
            a, b = find(wire.start_node), find(wire.end_node)
            if a != b:
                # Ground stays the representative of its group
                if b == GROUND:
                    a, b = b, a
                parent[b] = a

        return {n: find(n) for n in self.nodes}

    def build_node_map(self) -> Dict[int, int]:
        """Map node id -> matrix index (-1 for ground).

        Only groups touched by a component terminal get an index; nodes that
        nothing connects to are left out and read as 0 V.
        """
        groups = self._wire_groups()
        used = {groups[n] for c in self.components for n in c.node_ids}

        group_index: Dict[int, int] = {}
        node_map: Dict[int, int] = {}
        for node_id in sorted(self.nodes):
            root = groups[node_id]
            if root == GROUND:
                node_map[node_id] = -1
            elif root in used:
                if root not in group_index:
                    group_index[root] = len(group_index)
                node_map[node_id] = group_index[root]
        return node_map

    def update_voltages(self, node_map: Dict[int, int], x: np.ndarray) -> None:
        """Copy node voltages out of a solution vector."""
        for node_id, node in self.nodes.items():
            index = node_map.get(node_id, -1)
            node.voltage = float(x[index].real) if index >= 0 else 0.0

    def node_voltage(self, node_id: int) -> float:
        return self.nodes[node_id].voltage

    def stats(self) -> Dict[str, int]:
        """Return statistics about the circuit"""
        return {
            "num_nodes": len(self.nodes),
            "num_components": len(self.components),
            "num_wires": len(self.wires),
            "num_probes": len(self.probes),
        }
