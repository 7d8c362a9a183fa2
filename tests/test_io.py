"""Tests for CSV export and circuit JSON persistence."""

import json

import numpy as np
import pytest

from circuit_playground.analysis.measurements import WaveformMeasurements, measure_waveform
from circuit_playground.devices.passives import Capacitor
from circuit_playground.devices.sources import SquareWave, SweepConfig, SweepMode
from circuit_playground.io.circuit_json import (
    FORMAT_VERSION,
    circuit_from_dict,
    circuit_to_dict,
    load_circuit,
    save_circuit,
)
from circuit_playground.io.csv_writer import (
    MEASUREMENT_FIELDS,
    read_csv,
    write_frequency_csv,
    write_measurements_csv,
    write_waveform_csv,
)
from circuit_playground.netlist.circuit import GROUND, Circuit
from circuit_playground.netlist.presets import TEMPLATES, build_template
from circuit_playground.simulation import Simulation


class TestWaveformCSV:
    """Tests for time-domain CSV export."""

    def test_header_and_values(self, tmp_path):
        path = tmp_path / "wave.csv"
        times = np.array([0.0, 1e-6, 2e-6])

        write_waveform_csv(path, times, {"Vin": [1.0, 2.0, 3.0], "Vout": [0.0, 0.5, 1.0]})

        lines = path.read_text().splitlines()
        assert lines[0] == "time,Vin,Vout"
        assert lines[2] == "1.000000000e-06,2.000000000e+00,5.000000000e-01"

        data = read_csv(path)
        np.testing.assert_allclose(data["time"], times)
        np.testing.assert_allclose(data["Vout"], [0.0, 0.5, 1.0])

    def test_precision(self, tmp_path):
        path = tmp_path / "wave.csv"
        write_waveform_csv(path, [1.0], {"V": [1.0 / 3.0]}, precision=3)
        assert path.read_text().splitlines()[1] == "1.000e+00,3.333e-01"

    def test_length_mismatch(self, tmp_path):
        with pytest.raises(ValueError, match="Vout"):
            write_waveform_csv(tmp_path / "wave.csv", [0.0, 1.0], {"Vout": [0.0]})


class TestFrequencyCSV:
    def test_columns(self, tmp_path):
        path = tmp_path / "bode.csv"
        write_frequency_csv(path, [10.0, 100.0], [0.0, -3.0], [0.0, -45.0])

        data = read_csv(path)

        assert list(data) == ["frequency", "magnitude_db", "phase_deg"]
        np.testing.assert_allclose(data["phase_deg"], [0.0, -45.0])


class TestMeasurementsCSV:
    """Tests for the measurement summary export."""

    def test_rows(self, tmp_path):
        path = tmp_path / "meas.csv"
        times = np.arange(1000) * 1e-5
        sine = np.sin(2.0 * np.pi * 1000.0 * times)
        measurements = {
            "Vout": measure_waveform(times, sine),
            "Vdead": WaveformMeasurements(),
        }

        write_measurements_csv(path, measurements)

        data = read_csv(path)
        assert list(data) == ["channel"] + list(MEASUREMENT_FIELDS)
        assert list(data["channel"]) == ["Vout"]
        assert data["frequency"][0] == pytest.approx(1000.0, rel=1e-3)

    def test_valid_flag_not_written(self):
        assert "valid" not in MEASUREMENT_FIELDS


class TestCircuitJSON:
    """Tests for saving and loading circuits."""

    def test_document_layout(self, divider):
        data = circuit_to_dict(divider)

        assert data["version"] == FORMAT_VERSION
        assert data["name"] == "voltage_divider"
        assert all(node["id"] != GROUND for node in data["nodes"])
        resistor = data["components"][1]
        assert resistor["kind"] == "resistor"
        assert resistor["label"] == "R1"
        assert resistor["params"]["resistance"] == 1000.0
        assert "node_ids" not in resistor["params"]
        json.dumps(data)

    def test_round_trip_solves_the_same(self, divider, tmp_path):
        path = tmp_path / "divider.json"
        save_circuit(divider, path)

        loaded = load_circuit(path)

        assert [c.label for c in loaded.components] == ["V1", "R1", "R2"]
        assert [c.id for c in loaded.components] == [c.id for c in divider.components]
        assert loaded.probes[0].label == "Vout"
        sim = Simulation(loaded)
        assert sim.dc_analysis()
        assert sim.node_voltage(loaded.probes[0].node_id) == pytest.approx(5.0)

    @pytest.mark.parametrize("name", list(TEMPLATES))
    def test_every_template_round_trips(self, name):
        circuit = build_template(name)
        data = circuit_to_dict(circuit)
        assert circuit_to_dict(circuit_from_dict(json.loads(json.dumps(data)))) == data

    def test_sweep_config_and_state(self):
        """Sweep settings and capacitor state survive a round trip."""
        c = Circuit("sweep")
        n1 = c.add_node(10.0, 20.0)
        source = SquareWave(2.5, 1000.0, offset=2.5)
        source.frequency_sweep = SweepConfig(
            enabled=True, mode=SweepMode.LOG, start=100.0, end=10e3, sweep_time=0.5
        )
        c.add_component(source, [n1, GROUND])
        capacitor = c.add_component(Capacitor(1e-6, ic=1.5), [n1, GROUND])
        capacitor.voltage = 3.0

        loaded = circuit_from_dict(circuit_to_dict(c))

        sweep = loaded.components[0].frequency_sweep
        assert isinstance(sweep, SweepConfig)
        assert sweep.mode == SweepMode.LOG
        assert sweep.end == 10e3
        assert loaded.components[1].voltage == 3.0
        assert loaded.components[1].ic == 1.5
        assert (loaded.nodes[n1].x, loaded.nodes[n1].y) == (10.0, 20.0)

    def test_wires_preserved(self):
        c = Circuit()
        a, b = c.add_node(), c.add_node()
        c.add_wire(a, b)

        loaded = circuit_from_dict(circuit_to_dict(c))

        assert [(w.start_node, w.end_node) for w in loaded.wires] == [(a, b)]

    def test_unknown_kind(self):
        data = {"components": [{"kind": "flux_capacitor", "nodes": [0]}]}
        with pytest.raises(ValueError, match="flux_capacitor"):
            circuit_from_dict(data)

    def test_newer_version_rejected(self):
        with pytest.raises(ValueError, match="version"):
            circuit_from_dict({"version": FORMAT_VERSION + 1})
