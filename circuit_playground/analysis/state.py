"""Analysis state aggregate for circuit-playground.

Holds every analysis result of one circuit next to the simulation that
produces the data: sweep and Monte Carlo state machines, per-probe spectra
and measurements, math channels, cursors and the noise floor estimate.
Nothing here is cleared implicitly; sub-analyses are armed and reset by the
caller.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np

from circuit_playground.analysis.cursors import CursorPair
from circuit_playground.analysis.math_channels import MathChannel, default_channels, update_all
from circuit_playground.analysis.measurements import (
    WaveformMeasurements,
    estimate_noise_floor,
    measure_phase,
    measure_waveform,
)
from circuit_playground.analysis.monte_carlo import MonteCarloAnalysis
from circuit_playground.analysis.spectrum import FFTResult, FFTWorkspace, WindowType, compute_fft
from circuit_playground.analysis.sweep import ParametricSweep
from circuit_playground.config import REFERENCE_TEMPERATURE_C

if TYPE_CHECKING:
    from circuit_playground.simulation import Simulation

logger = logging.getLogger(__name__)


@dataclass
class AnalysisState:
    """All analysis results for one circuit

    Attributes:
        ambient_temperature: Circuit temperature in °C
        temperature_sim_enabled: Apply ``ambient_temperature`` to the solver
        sweep: Parametric sweep state machine
        monte_carlo: Monte Carlo state machine
        fft_results: Probe index -> last spectrum
        measurements: Probe index -> last waveform measurements
        math_channels: One math channel per probe slot
        cursors: Measurement cursor pair
        noise_floor_dbv: Last noise floor estimate
        fft_window: Window used by ``update_fft``
    """

    ambient_temperature: float = REFERENCE_TEMPERATURE_C
    temperature_sim_enabled: bool = False
    sweep: ParametricSweep = field(default_factory=ParametricSweep)
    monte_carlo: MonteCarloAnalysis = field(default_factory=MonteCarloAnalysis)
    fft_results: Dict[int, FFTResult] = field(default_factory=dict)
    measurements: Dict[int, WaveformMeasurements] = field(default_factory=dict)
    math_channels: List[MathChannel] = field(default_factory=default_channels)
    cursors: CursorPair = field(default_factory=CursorPair)
    noise_floor_dbv: float = 0.0
    fft_window: WindowType = WindowType.HANNING
    workspace: FFTWorkspace = field(default_factory=FFTWorkspace)

    def apply_temperature(self, simulation: "Simulation") -> None:
        """Push the ambient temperature into the solver options when enabled."""
        simulation.options.temp = (
            self.ambient_temperature if self.temperature_sim_enabled else REFERENCE_TEMPERATURE_C
        )

    def _probe_arrays(self, simulation: "Simulation", probe_index: int):
        probe = simulation.circuit.probes[probe_index]
        return simulation.get_history(probe.id).arrays()

    def update_fft(self, simulation: "Simulation", probe_index: int) -> Optional[FFTResult]:
        """Spectrum of a probe's history at the simulation's step rate."""
        _, values = self._probe_arrays(simulation, probe_index)
        if len(values) < 2:
            return None
        result = compute_fft(values, 1.0 / simulation.time_step, self.fft_window, self.workspace)
        self.fft_results[probe_index] = result
        return result

    def update_measurements(self, simulation: "Simulation") -> Dict[int, WaveformMeasurements]:
        """Measure every probe's history.

        Phase is relative to the first probe, which reads 0.
        """
        reference = None
        for index in range(len(simulation.circuit.probes)):
            times, values = self._probe_arrays(simulation, index)
            meas = measure_waveform(times, values)
            if reference is None:
                reference = (times, values)
            elif meas.valid:
                meas.phase = measure_phase(reference[0], reference[1], values, times)
            self.measurements[index] = meas
        return self.measurements

    def update_noise_floor(self, simulation: "Simulation", probe_index: int) -> float:
        _, values = self._probe_arrays(simulation, probe_index)
        self.noise_floor_dbv = estimate_noise_floor(values)
        return self.noise_floor_dbv

    def update_math(self, simulation: "Simulation") -> None:
        """Evaluate the math channels on the latest probe values."""
        values = np.array(
            [simulation.node_voltage(p.node_id) for p in simulation.circuit.probes]
        )
        update_all(self.math_channels, values, simulation.time_step)

    def reset_math(self) -> None:
        for channel in self.math_channels:
            channel.reset()
