"""MNA system layout and assembly for circuit-playground.

Unknown vector layout:
    x[0 : num_nodes]          node voltages, one per wire-merged node group
    x[num_nodes : size]       branch currents, one per component with
                              ``has_branch`` (voltage sources, inductors, op-amps)

The system is rebuilt from the circuit whenever its ``topology_version``
changes. ``assemble`` zeroes A and b and calls every component's stamp with
the context's Newton iterate, so the matrix is never shared between
iterations.
"""

import logging
from collections import deque
from typing import Dict, List, NamedTuple, Optional, Tuple

import numpy as np

from circuit_playground.analysis.context import AnalysisContext
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.devices.base import Component
from circuit_playground.errors import ShortCircuitError
from circuit_playground.netlist.circuit import Circuit

logger = logging.getLogger(__name__)

# Union-find key for the ground group
_GROUND_KEY = -1


class StampEntry(NamedTuple):
    """Component bound to its matrix indices."""

    component: Component
    nodes: Tuple[int, ...]
    branch: Optional[int]


class MNASystem:
    """Layout of the MNA unknowns for one circuit topology

    Attributes:
        circuit: Circuit the layout was built from
        options: Solver options (gmin, temperature, tolerances)
        node_map: Circuit node id -> matrix index (-1 for ground)
        num_nodes: Number of node-voltage unknowns
        size: Total number of unknowns
        entries: Every component with its terminal indices and branch index
        topology_version: ``circuit.topology_version`` at build time
    """

    def __init__(self, circuit: Circuit, options: Optional[SimulationOptions] = None):
        self.circuit = circuit
        self.options = options or SimulationOptions()
        self.node_map = circuit.build_node_map()
        self.num_nodes = max(self.node_map.values(), default=-1) + 1
        self.topology_version = circuit.topology_version

        entries: List[StampEntry] = []
        branch = self.num_nodes
        for component in circuit.components:
            nodes = tuple(self.node_map[n] for n in component.node_ids)
            if component.has_branch:
                entries.append(StampEntry(component, nodes, branch))
                branch += 1
            else:
                entries.append(StampEntry(component, nodes, None))
        self.entries = entries
        self.size = branch
        logger.debug(
            f"MNA layout: {self.num_nodes} nodes + {self.size - self.num_nodes} branches"
        )

    @classmethod
    def from_circuit(
        cls, circuit: Circuit, options: Optional[SimulationOptions] = None
    ) -> "MNASystem":
        return cls(circuit, options)

    @property
    def is_nonlinear(self) -> bool:
        """True when any stamp depends on the Newton iterate."""
        return any(e.component.is_nonlinear for e in self.entries)

    def is_stale(self) -> bool:
        return self.topology_version != self.circuit.topology_version

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    def _add_gmin(self, A: np.ndarray) -> None:
        gmin = self.options.gmin
        if gmin > 0:
            idx = np.arange(self.num_nodes)
            A[idx, idx] += gmin

    def assemble(self, ctx: AnalysisContext) -> Tuple[np.ndarray, np.ndarray]:
        """Build the real system linearized at ``ctx.guess``."""
        A = np.zeros((self.size, self.size), dtype=np.float64)
        b = np.zeros(self.size, dtype=np.float64)
        for component, nodes, branch in self.entries:
            component.stamp(A, b, nodes, branch, ctx)
        self._add_gmin(A)
        return A, b

    def assemble_ac(self, ctx: AnalysisContext) -> Tuple[np.ndarray, np.ndarray]:
        """Build the complex small-signal system at ``ctx.omega``."""
        A = np.zeros((self.size, self.size), dtype=np.complex128)
        b = np.zeros(self.size, dtype=np.complex128)
        for component, nodes, branch in self.entries:
            component.stamp_ac(A, b, nodes, branch, ctx)
        self._add_gmin(A)
        return A, b

    # -------------------------------------------------------------------------
    # Solution access
    # -------------------------------------------------------------------------

    def node_index(self, node_id: int) -> int:
        return self.node_map.get(node_id, -1)

    def node_voltage(self, x: np.ndarray, node_id: int) -> float:
        """Voltage of circuit node ``node_id`` in solution ``x``."""
        index = self.node_index(node_id)
        return float(x[index].real) if index >= 0 else 0.0

    def node_phasor(self, x: np.ndarray, node_id: int) -> complex:
        index = self.node_index(node_id)
        return complex(x[index]) if index >= 0 else 0j

    def branch_current(self, x: np.ndarray, component_id: int) -> float:
        """Branch current of a component with a current unknown."""
        for component, _, branch in self.entries:
            if component.id == component_id:
                if branch is None:
                    raise ValueError(f"{component.label} has no branch current")
                return float(x[branch].real)
        raise KeyError(f"No component with id {component_id}")

    def node_voltages(self, x: np.ndarray) -> Dict[int, float]:
        return {node_id: self.node_voltage(x, node_id) for node_id in self.circuit.nodes}

    # -------------------------------------------------------------------------
    # Topology checks
    # -------------------------------------------------------------------------

    def check_short_circuits(self, dc: bool = True) -> None:
        """Raise ShortCircuitError if voltage-defined branches form a loop.

        Every ideal voltage constraint is an edge between two node groups.
        An edge whose ends are already joined by earlier edges (or by a wire,
        which merges both ends into one group) closes a loop of fixed
        voltages that the matrix cannot satisfy.
        """
        parent: Dict[int, int] = {}

        def find(n: int) -> int:
            parent.setdefault(n, n)
            while parent[n] != n:
                parent[n] = parent[parent[n]]
                n = parent[n]
            return n

        adjacency: Dict[int, List[Tuple[int, int]]] = {}

        for component, nodes, _ in self.entries:
            if not component.defines_voltage(dc):
                continue
            ti, tj = component.voltage_terminals()
            a = nodes[ti] if nodes[ti] >= 0 else _GROUND_KEY
            b = _GROUND_KEY if tj is None or nodes[tj] < 0 else nodes[tj]

            if a == b:
                raise ShortCircuitError([component.id])
            if find(a) == find(b):
                path = _edge_path(adjacency, a, b)
                raise ShortCircuitError(path + [component.id])

            parent[find(a)] = find(b)
            adjacency.setdefault(a, []).append((b, component.id))
            adjacency.setdefault(b, []).append((a, component.id))


def _edge_path(adjacency: Dict[int, List[Tuple[int, int]]], start: int, goal: int) -> List[int]:
    """Component ids along a path from start to goal (breadth-first)."""
    came_from: Dict[int, Tuple[int, int]] = {start: (start, -1)}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        if node == goal:
            break
        for neighbor, component_id in adjacency.get(node, ()):
            if neighbor not in came_from:
                came_from[neighbor] = (node, component_id)
                queue.append(neighbor)

    path = []
    node = goal
    while node != start:
        node, component_id = came_from[node]
        path.append(component_id)
    path.reverse()
    return path
