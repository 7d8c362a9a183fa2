"""Save and load circuits as JSON.

Format (version 1):
    {
      "version": 1,
      "name": "rc_lowpass",
      "nodes": [{"id": 1, "x": 0.0, "y": 0.0}, ...],
      "wires": [{"id": 1, "start_node": 1, "end_node": 2}, ...],
      "probes": [{"id": 1, "node_id": 2, "label": "Vout"}, ...],
      "components": [
        {"kind": "resistor", "id": 2, "label": "R1", "nodes": [1, 2],
         "params": {"resistance": 1000.0, ...}},
        ...
      ]
    }

Node 0 (ground) is implicit. Component parameters are the dataclass fields
of the component class, so persistent state (capacitor voltage, fuse heat)
round-trips too.
"""

import json
import logging
from dataclasses import fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

from circuit_playground.devices import COMPONENT_CLASSES
from circuit_playground.devices.base import Component, ComponentKind
from circuit_playground.devices.sources import SweepConfig, SweepMode
from circuit_playground.netlist.circuit import GROUND, Circuit

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

# Bookkeeping fields stored outside "params"
_COMPONENT_META = ("id", "label", "node_ids")


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, SweepConfig):
        return {f.name: _encode(getattr(value, f.name)) for f in fields(value)}
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        params = dict(value)
        params["mode"] = SweepMode(params.get("mode", SweepMode.NONE.value))
        return SweepConfig(**params)
    return value


def component_to_dict(component: Component) -> Dict[str, Any]:
    return {
        "kind": component.kind.value,
        "id": component.id,
        "label": component.label,
        "nodes": list(component.node_ids),
        "params": {
            f.name: _encode(getattr(component, f.name))
            for f in fields(component)
            if f.name not in _COMPONENT_META
        },
    }


def component_from_dict(data: Dict[str, Any]) -> Component:
    try:
        kind = ComponentKind(data["kind"])
    except ValueError:
        raise ValueError(f"Unknown component kind {data['kind']!r}") from None
    cls = COMPONENT_CLASSES[kind]
    params = {name: _decode(value) for name, value in data.get("params", {}).items()}
    return cls(id=data.get("id", -1), label=data.get("label", ""), **params)


def circuit_to_dict(circuit: Circuit) -> Dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "name": circuit.name,
        "nodes": [
            {"id": n.id, "x": n.x, "y": n.y}
            for n in sorted(circuit.nodes.values(), key=lambda n: n.id)
            if n.id != GROUND
        ],
        "wires": [
            {"id": w.id, "start_node": w.start_node, "end_node": w.end_node}
            for w in circuit.wires
        ],
        "probes": [
            {"id": p.id, "node_id": p.node_id, "label": p.label} for p in circuit.probes
        ],
        "components": [component_to_dict(c) for c in circuit.components],
    }


def circuit_from_dict(data: Dict[str, Any]) -> Circuit:
    version = data.get("version", FORMAT_VERSION)
    if version > FORMAT_VERSION:
        raise ValueError(f"Unsupported circuit file version {version}")

    circuit = Circuit(data.get("name", "untitled"))
    for node in data.get("nodes", []):
        circuit.add_node(node.get("x", 0.0), node.get("y", 0.0), node_id=node["id"])
    for entry in data.get("components", []):
        circuit.add_component(component_from_dict(entry), entry["nodes"])
    for wire in data.get("wires", []):
        circuit.add_wire(wire["start_node"], wire["end_node"])
    for probe in data.get("probes", []):
        circuit.add_probe(probe["node_id"], probe.get("label", ""))
    return circuit


def save_circuit(circuit: Circuit, output_path: Union[str, Path]) -> None:
    """Write ``circuit`` to a JSON file."""
    output_path = Path(output_path)
    with open(output_path, "w") as f:
        json.dump(circuit_to_dict(circuit), f, indent=2)
    logger.debug(f"Saved circuit {circuit.name!r} to {output_path}")


def load_circuit(input_path: Union[str, Path]) -> Circuit:
    """Read a circuit written by ``save_circuit``.

    Raises:
        ValueError: Unknown component kind or unsupported version
    """
    input_path = Path(input_path)
    with open(input_path, "r") as f:
        data = json.load(f)
    return circuit_from_dict(data)
