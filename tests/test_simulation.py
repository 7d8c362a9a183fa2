"""Tests for the Simulation owner, probe histories and the analysis aggregate."""

import numpy as np
import pytest

from circuit_playground.analysis.ac import ACConfig, SweepStatus
from circuit_playground.analysis.math_channels import MathOperation
from circuit_playground.analysis.spectrum import FFTWorkspace
from circuit_playground.analysis.state import AnalysisState
from circuit_playground.config import MAX_TIME_STEP, MIN_TIME_STEP, REFERENCE_TEMPERATURE_C
from circuit_playground.devices.passives import Resistor
from circuit_playground.devices.sources import ACVoltage
from circuit_playground.netlist.circuit import GROUND, Circuit
from circuit_playground.netlist.presets import build_template
from circuit_playground.simulation import ProbeHistory, Simulation, SimState


class TestProbeHistory:
    """Tests for the fixed-capacity ring buffer."""

    def test_append_and_arrays(self):
        history = ProbeHistory(capacity=4)
        for i in range(3):
            history.append(float(i), 10.0 * i)

        times, values = history.arrays()

        np.testing.assert_array_equal(times, [0.0, 1.0, 2.0])
        np.testing.assert_array_equal(values, [0.0, 10.0, 20.0])
        assert len(history) == 3

    def test_overwrites_oldest(self):
        """Once full, the oldest sample is dropped."""
        history = ProbeHistory(capacity=3)
        for i in range(5):
            history.append(float(i), float(i))

        np.testing.assert_array_equal(history.times, [2.0, 3.0, 4.0])
        assert history.latest() == (4.0, 4.0)
        assert len(history) == 3

    def test_value_at_interpolates(self):
        history = ProbeHistory()
        history.append(0.0, 0.0)
        history.append(1.0, 2.0)

        assert history.value_at(0.25) == pytest.approx(0.5)
        # Clamped outside the recorded span
        assert history.value_at(5.0) == 2.0

    def test_empty(self):
        history = ProbeHistory()
        assert history.latest() is None
        assert history.value_at(1.0) == 0.0
        assert len(history.values) == 0

    def test_clear(self):
        history = ProbeHistory(capacity=2)
        history.append(0.0, 1.0)
        history.clear()
        assert len(history) == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            ProbeHistory(capacity=0)


class TestSimulationState:
    """Tests for run state and bookkeeping."""

    def test_time_step_clamped(self, divider):
        sim = Simulation(divider)
        assert sim.set_time_step(1e-12) == MIN_TIME_STEP
        assert sim.set_time_step(1.0) == MAX_TIME_STEP
        assert sim.time_step == MAX_TIME_STEP

    def test_state_machine(self, divider):
        sim = Simulation(divider)
        assert sim.state == SimState.STOPPED

        sim.pause()
        assert sim.state == SimState.STOPPED

        sim.start()
        assert sim.is_running
        sim.pause()
        assert sim.state == SimState.PAUSED
        sim.stop()
        assert sim.state == SimState.STOPPED

    def test_node_voltage_before_solve(self, divider):
        assert Simulation(divider).node_voltage(1) == 0.0

    def test_dc_analysis_updates_nodes(self, divider):
        """Accepted solutions are copied into the circuit's nodes."""
        sim = Simulation(divider)

        assert sim.dc_analysis()

        vout = divider.probes[0].node_id
        assert divider.node_voltage(vout) == pytest.approx(5.0)
        assert sim.last_error is None

    def test_first_step_records_operating_point(self, rc_step):
        sim = Simulation(rc_step)
        sim.set_time_step(1e-5)

        assert sim.step()

        times, _ = sim.get_history(rc_step.probes[0].id).arrays()
        np.testing.assert_allclose(times, [0.0, 1e-5])

    def test_run_step_count(self, rc_step):
        """History holds the t=0 point plus one sample per step."""
        sim = Simulation(rc_step)
        sim.set_time_step(1e-5)

        steps = sim.run(1e-4)

        assert steps == 10
        assert sim.time == pytest.approx(1e-4)
        assert len(sim.get_history(rc_step.probes[0].id)) == steps + 1

    def test_reset(self, rc_step):
        sim = Simulation(rc_step)
        sim.set_time_step(1e-5)
        sim.start()
        sim.run(1e-4)

        sim.reset()

        assert sim.time == 0.0
        assert sim.solution is None
        assert sim.state == SimState.STOPPED
        assert len(sim.get_history(rc_step.probes[0].id)) == 0
        assert all(node.voltage == 0.0 for node in rc_step.nodes.values())

    def test_topology_change_restarts(self, rc_step):
        """Editing the circuit rebuilds the system from t=0."""
        sim = Simulation(rc_step)
        sim.set_time_step(1e-5)
        sim.run(1e-4)

        vc = rc_step.probes[0].node_id
        rc_step.add_component(Resistor(1000.0), [vc, GROUND])

        assert sim.system.size == 3
        assert sim.time == 0.0

        sim.run(1e-5)
        assert sim.node_voltage(vc) == pytest.approx(2.5)


class TestFrequencySweepOwner:
    """Tests for the frequency sweep driven through a Simulation."""

    def test_sweep_completes(self):
        circuit = build_template("rc_lowpass")
        sim = Simulation(circuit)
        assert sim.request_frequency_sweep(ACConfig(10.0, 100e3, 10, "dec"), circuit.probes[1].node_id)
        progress = sim.wait_frequency_sweep(timeout=60)

        assert progress.status == SweepStatus.DONE
        assert sim.frequency_response_count == 41
        assert not sim.frequency_sweep_running

    def test_failed_sweep_sets_error(self, divider):
        """No AC source: the sweep fails and reports through last_error."""
        sim = Simulation(divider)
        sim.request_frequency_sweep(ACConfig(), divider.probes[0].node_id)
        progress = sim.wait_frequency_sweep(timeout=60)

        assert progress.status == SweepStatus.FAILED
        assert "AC voltage source" in sim.last_error
        assert sim.frequency_response is None

    def test_poll_without_sweep(self, divider):
        assert Simulation(divider).poll_frequency_sweep() is None


class TestAnalysisState:
    """Tests for the per-circuit analysis aggregate."""

    @pytest.fixture
    def running_lowpass(self):
        circuit = build_template("rc_lowpass")
        sim = Simulation(circuit)
        sim.auto_time_step()
        sim.run(5e-3)
        return sim

    def test_measurements(self, running_lowpass):
        """Input probe measures the 1 kHz, 1 V source."""
        state = AnalysisState()
        measurements = state.update_measurements(running_lowpass)

        vin = measurements[0]
        assert vin.valid
        assert vin.frequency == pytest.approx(1000.0, rel=1e-2)
        assert vin.v_pp == pytest.approx(2.0, rel=1e-2)
        assert len(measurements) == 2

    def test_phase_relative_to_first_probe(self):
        """Second probe lagging the first by a quarter period reads +90 degrees."""
        c = Circuit("quadrature")
        a, b = c.add_node(), c.add_node()
        c.add_component(ACVoltage(1.0, 1000.0), [a, GROUND])
        c.add_component(ACVoltage(1.0, 1000.0, phase=-90.0), [b, GROUND])
        c.add_component(Resistor(1000.0), [a, GROUND])
        c.add_component(Resistor(1000.0), [b, GROUND])
        c.add_probe(a, "A")
        c.add_probe(b, "B")
        sim = Simulation(c)
        sim.auto_time_step()
        sim.run(5e-3)

        measurements = AnalysisState().update_measurements(sim)

        assert measurements[0].phase == 0.0
        assert measurements[1].valid
        assert measurements[1].phase == pytest.approx(90.0, abs=2.0)

    def test_fft(self, running_lowpass):
        state = AnalysisState(workspace=FFTWorkspace(256))
        result = state.update_fft(running_lowpass, 0)

        # 50 kHz sample rate over 256 bins: 195 Hz resolution
        assert result.fundamental_freq == pytest.approx(1000.0, rel=0.2)
        assert state.fft_results[0] is result

    def test_fft_needs_samples(self, divider):
        assert AnalysisState().update_fft(Simulation(divider), 0) is None

    def test_math_channel(self, running_lowpass):
        """Difference channel follows Vin - Vout."""
        state = AnalysisState()
        channel = state.math_channels[0]
        channel.enabled = True
        channel.operation = MathOperation.SUBTRACT
        channel.source_a, channel.source_b = 0, 1

        state.update_math(running_lowpass)

        probes = running_lowpass.circuit.probes
        expected = running_lowpass.node_voltage(probes[0].node_id) - running_lowpass.node_voltage(
            probes[1].node_id
        )
        assert channel.value == pytest.approx(expected)

        state.reset_math()
        assert channel.value == 0.0

    def test_temperature(self, divider):
        sim = Simulation(divider)
        state = AnalysisState(ambient_temperature=85.0)

        state.apply_temperature(sim)
        assert sim.options.temp == REFERENCE_TEMPERATURE_C

        state.temperature_sim_enabled = True
        state.apply_temperature(sim)
        assert sim.options.temp == 85.0

    def test_noise_floor_of_clean_sine(self, running_lowpass):
        """A noiseless sine has a floor well above -240 dBV but below the signal."""
        state = AnalysisState()
        floor = state.update_noise_floor(running_lowpass, 0)
        assert floor == state.noise_floor_dbv
        assert floor < 0.0
