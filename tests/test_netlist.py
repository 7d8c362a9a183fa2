"""Tests for circuit topology and the template circuits."""

import pytest

from circuit_playground.config import MAX_PROBES
from circuit_playground.devices.passives import Resistor
from circuit_playground.devices.semiconductors import BJT
from circuit_playground.devices.sources import DCVoltage
from circuit_playground.netlist.circuit import GROUND, Circuit
from circuit_playground.netlist.presets import TEMPLATES, build_template


class TestCircuitEditing:
    """Tests for adding and removing circuit elements."""

    def test_ground_always_exists(self):
        c = Circuit()
        assert GROUND in c.nodes

    def test_node_ids_increment(self):
        c = Circuit()
        assert c.add_node() == 1
        assert c.add_node() == 2
        assert c.add_node(node_id=10) == 10
        assert c.add_node() == 11

    def test_duplicate_node_id(self):
        c = Circuit()
        c.add_node(node_id=3)
        with pytest.raises(ValueError):
            c.add_node(node_id=3)

    def test_labels_numbered_by_prefix(self):
        """Labels count per prefix in insertion order."""
        c = Circuit()
        n1 = c.add_node()
        v = c.add_component(DCVoltage(5.0), [n1, GROUND])
        r1 = c.add_component(Resistor(), [n1, GROUND])
        r2 = c.add_component(Resistor(), [n1, GROUND])

        assert (v.label, r1.label, r2.label) == ("V1", "R1", "R2")
        assert len({v.id, r1.id, r2.id}) == 3

    def test_explicit_label_kept(self):
        c = Circuit()
        n1 = c.add_node()
        r = c.add_component(Resistor(label="Rload"), [n1, GROUND])
        assert c.find_component("Rload") is r

    def test_terminal_count_checked(self):
        c = Circuit()
        n1 = c.add_node()
        with pytest.raises(ValueError, match="terminals"):
            c.add_component(BJT(), [n1, GROUND])

    def test_unknown_node(self):
        c = Circuit()
        with pytest.raises(ValueError, match="Unknown node"):
            c.add_component(Resistor(), [5, GROUND])

    def test_topology_version_bumps(self):
        """Every structural edit bumps topology_version."""
        c = Circuit()
        v0 = c.topology_version
        n1 = c.add_node()
        r = c.add_component(Resistor(), [n1, GROUND])
        wire = c.add_wire(n1, GROUND)
        c.remove_wire(wire.id)
        c.remove_component(r.id)

        assert c.topology_version == v0 + 5

    def test_remove_unknown_component(self):
        with pytest.raises(KeyError):
            Circuit().remove_component(42)

    def test_probe_limit(self):
        """Probes past MAX_PROBES are refused with None."""
        c = Circuit()
        n1 = c.add_node()
        probes = [c.add_probe(n1) for _ in range(MAX_PROBES)]

        assert all(p is not None for p in probes)
        assert c.add_probe(n1) is None
        assert len(c.probes) == MAX_PROBES

    def test_default_probe_label(self):
        c = Circuit()
        n1 = c.add_node()
        assert c.add_probe(n1).label == f"V({n1})"

    def test_stats(self):
        c = build_template("voltage_divider")
        assert c.stats() == {
            "num_nodes": 3,
            "num_components": 3,
            "num_wires": 0,
            "num_probes": 1,
        }


class TestNodeMap:
    """Tests for wire merging and matrix index assignment."""

    def test_wire_merges_nodes(self):
        c = Circuit()
        n1, n2 = c.add_node(), c.add_node()
        c.add_component(Resistor(), [n1, GROUND])
        c.add_component(Resistor(), [n2, GROUND])
        c.add_wire(n1, n2)

        node_map = c.build_node_map()

        assert node_map[n1] == node_map[n2] == 0
        assert node_map[GROUND] == -1

    def test_wire_to_ground(self):
        """A node wired to ground is ground."""
        c = Circuit()
        n1 = c.add_node()
        c.add_component(Resistor(), [n1, GROUND])
        c.add_wire(GROUND, n1)

        assert c.build_node_map()[n1] == -1

    def test_untouched_nodes_skipped(self):
        """Nodes no component connects to get no matrix index."""
        c = Circuit()
        n1, n2 = c.add_node(), c.add_node()
        c.add_component(Resistor(), [n2, GROUND])

        node_map = c.build_node_map()

        assert n1 not in node_map
        assert node_map[n2] == 0

    def test_wire_chain(self):
        c = Circuit()
        n1, n2, n3 = c.add_node(), c.add_node(), c.add_node()
        c.add_component(Resistor(), [n1, n3])
        c.add_wire(n1, n2)
        c.add_wire(n2, n3)

        node_map = c.build_node_map()
        assert node_map[n1] == node_map[n2] == node_map[n3]


class TestTemplates:
    """Tests for the built-in template circuits."""

    @pytest.mark.parametrize("name", sorted(TEMPLATES))
    def test_template_builds(self, name):
        """Each template returns a probed circuit with its name."""
        circuit = build_template(name)

        assert circuit.name == name
        assert circuit.components
        assert circuit.probes

    def test_templates_are_fresh(self):
        a = build_template("rc_lowpass")
        b = build_template("rc_lowpass")
        assert a.components[0] is not b.components[0]

    def test_unknown_template(self):
        with pytest.raises(KeyError, match="Unknown template"):
            build_template("flux_capacitor")
