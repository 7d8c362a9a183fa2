"""Circuit topology for circuit-playground

Nodes, components, wires and probes, plus the built-in template circuits.
"""

from circuit_playground.netlist.circuit import GROUND, Circuit, Node, Probe, Wire
from circuit_playground.netlist.presets import TEMPLATES, build_template

__all__ = [
    "Circuit",
    "Node",
    "Wire",
    "Probe",
    "GROUND",
    "TEMPLATES",
    "build_template",
]
