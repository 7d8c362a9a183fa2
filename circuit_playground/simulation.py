"""Simulation owner for circuit-playground.

``Simulation`` holds everything that changes while a circuit runs: time,
time step, run state, the last accepted solution, the bounded probe
histories and the last error. The solver layer raises; this layer catches
``CircuitError``, stores its message in ``last_error``, logs a warning and
reports failure with a False return value. A failed step commits nothing.

Example usage:
    circuit = build_template("rc_lowpass")
    sim = Simulation(circuit)
    sim.auto_time_step()
    sim.run(5e-3)
    times, values = sim.get_history(circuit.probes[1].id).arrays()
"""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from circuit_playground.analysis.ac import (
    ACConfig,
    FrequencyResponse,
    FrequencySweepTask,
    SweepProgress,
    SweepStatus,
)
from circuit_playground.analysis.dc import dc_context, dc_operating_point
from circuit_playground.analysis.mna import MNASystem
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.analysis.transient import (
    auto_time_step,
    commit_state,
    init_states,
    reset_states,
    transient_step,
)
from circuit_playground.config import DEFAULT_TIME_STEP, MAX_HISTORY, MAX_TIME_STEP, MIN_TIME_STEP
from circuit_playground.errors import CircuitError
from circuit_playground.netlist.circuit import Circuit

logger = logging.getLogger(__name__)


class SimState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class ProbeHistory:
    """Fixed-capacity ring buffer of (time, value) samples.

    Once full, each append overwrites the oldest sample.
    """

    def __init__(self, capacity: int = MAX_HISTORY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._times = np.zeros(capacity)
        self._values = np.zeros(capacity)
        self._start = 0
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def append(self, time: float, value: float) -> None:
        end = (self._start + self._count) % self.capacity
        self._times[end] = time
        self._values[end] = value
        if self._count < self.capacity:
            self._count += 1
        else:
            self._start = (self._start + 1) % self.capacity

    def clear(self) -> None:
        self._start = 0
        self._count = 0

    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Copies of (times, values), oldest first."""
        idx = (self._start + np.arange(self._count)) % self.capacity
        return self._times[idx], self._values[idx]

    @property
    def times(self) -> np.ndarray:
        return self.arrays()[0]

    @property
    def values(self) -> np.ndarray:
        return self.arrays()[1]

    def latest(self) -> Optional[Tuple[float, float]]:
        if self._count == 0:
            return None
        last = (self._start + self._count - 1) % self.capacity
        return float(self._times[last]), float(self._values[last])

    def value_at(self, time: float) -> float:
        """Linearly interpolated value at ``time`` (clamped to the recorded span)."""
        if self._count == 0:
            return 0.0
        times, values = self.arrays()
        return float(np.interp(time, times, values))


class Simulation:
    """Run state and results of one circuit.

    Attributes:
        circuit: Circuit being simulated
        options: Solver options
        time: Time of the last accepted solution
        state: STOPPED / RUNNING / PAUSED
        solution: Last accepted solution vector (None before the first solve)
        last_error: Message of the last failure, None after a success
    """

    def __init__(
        self,
        circuit: Circuit,
        options: Optional[SimulationOptions] = None,
        time_step: float = DEFAULT_TIME_STEP,
    ):
        self.circuit = circuit
        self.options = options or SimulationOptions()
        self.time = 0.0
        self.state = SimState.STOPPED
        self.solution: Optional[np.ndarray] = None
        self.last_error: Optional[str] = None
        self._time_step = DEFAULT_TIME_STEP
        self.set_time_step(time_step)
        self._system: Optional[MNASystem] = None
        self._initialized = False
        self._histories: Dict[int, ProbeHistory] = {}
        self._sweep_task: Optional[FrequencySweepTask] = None
        self._frequency_response: Optional[FrequencyResponse] = None

    # -------------------------------------------------------------------------
    # System / state management
    # -------------------------------------------------------------------------

    @property
    def system(self) -> MNASystem:
        """MNA layout, rebuilt (with a reset) when the topology changed."""
        if self._system is None or self._system.is_stale():
            if self._system is not None:
                logger.debug("Topology changed, rebuilding MNA system")
            self._system = MNASystem.from_circuit(self.circuit, self.options)
            self._reset_run()
        self._system.options = self.options
        return self._system

    @property
    def time_step(self) -> float:
        return self._time_step

    def set_time_step(self, dt: float) -> float:
        """Set the step size, clamped to [MIN_TIME_STEP, MAX_TIME_STEP]."""
        clamped = min(max(dt, MIN_TIME_STEP), MAX_TIME_STEP)
        if clamped != dt:
            logger.debug(f"Time step {dt:.3g}s clamped to {clamped:.3g}s")
        self._time_step = clamped
        return clamped

    def auto_time_step(self) -> float:
        """Set the step size from the fastest periodic source."""
        return self.set_time_step(auto_time_step(self.circuit))

    def _reset_run(self) -> None:
        self.time = 0.0
        self.solution = None
        self._initialized = False
        for history in self._histories.values():
            history.clear()

    def reset(self) -> None:
        """Return to t=0 with power-on component state and empty histories."""
        self._reset_run()
        self.last_error = None
        self.state = SimState.STOPPED
        reset_states(self.system)
        for node in self.circuit.nodes.values():
            node.voltage = 0.0

    def start(self) -> None:
        self.state = SimState.RUNNING

    def pause(self) -> None:
        if self.state == SimState.RUNNING:
            self.state = SimState.PAUSED

    def stop(self) -> None:
        self.state = SimState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state == SimState.RUNNING

    def _fail(self, error: CircuitError, what: str) -> bool:
        self.last_error = str(error)
        logger.warning(f"{what} failed: {error}")
        return False

    # -------------------------------------------------------------------------
    # Histories
    # -------------------------------------------------------------------------

    def get_history(self, probe_id: int) -> ProbeHistory:
        if probe_id not in self._histories:
            self._histories[probe_id] = ProbeHistory()
        return self._histories[probe_id]

    def _record(self) -> None:
        system = self.system
        for probe in self.circuit.probes:
            value = system.node_voltage(self.solution, probe.node_id)
            self.get_history(probe.id).append(self.time, value)

    def _accept(self, x: np.ndarray) -> None:
        self.solution = x
        self.circuit.update_voltages(self.system.node_map, x)
        self.last_error = None

    # -------------------------------------------------------------------------
    # Analyses
    # -------------------------------------------------------------------------

    def dc_analysis(self) -> bool:
        """Solve the DC operating point at the current time.

        On success the solution becomes current and component state is
        seeded from it. On failure nothing changes except ``last_error``.
        """
        system = self.system
        try:
            x = dc_operating_point(system, self.options, self.solution, time=self.time)
        except CircuitError as e:
            return self._fail(e, "DC analysis")
        init_states(system, x, dc_context(self.options, self.time))
        self._accept(x)
        return True

    def _initialize(self) -> bool:
        """Establish the t=0 solution the transient run starts from."""
        system = self.system
        if self.options.icmode == "op":
            if not self.dc_analysis():
                return False
        else:
            # Start from power-on component state (capacitor/inductor ic)
            reset_states(system)
            self._accept(np.zeros(system.size))
        self._initialized = True
        self._record()
        return True

    def step(self) -> bool:
        """Advance by one time step. Returns False (state untouched) on failure."""
        system = self.system
        if not self._initialized and not self._initialize():
            return False

        dt = self._time_step
        try:
            result = transient_step(system, self.solution, self.time, dt, self.options)
        except CircuitError as e:
            return self._fail(e, f"Step at t={self.time + dt:.6g}s")

        commit_state(system, result.x, result.ctx)
        self.time = result.ctx.time
        self._accept(result.x)
        self._record()
        return True

    def run(self, duration: float) -> int:
        """Step until ``duration`` seconds have elapsed or a step fails.

        Returns:
            Number of accepted steps
        """
        t_stop = self.time + duration
        steps = 0
        while self.time < t_stop - 1e-3 * self._time_step:
            if not self.step():
                break
            steps += 1
        return steps

    def node_voltage(self, node_id: int) -> float:
        if self.solution is None:
            return 0.0
        return self.system.node_voltage(self.solution, node_id)

    # -------------------------------------------------------------------------
    # Frequency sweep
    # -------------------------------------------------------------------------

    @property
    def frequency_sweep_running(self) -> bool:
        return self._sweep_task is not None and self._sweep_task.running

    def request_frequency_sweep(
        self, config: ACConfig, probe_node: int, source_id: Optional[int] = None
    ) -> bool:
        """Start a background Bode sweep. Rejected (False) while one is in flight."""
        if self.frequency_sweep_running:
            logger.warning("Frequency sweep already running, request rejected")
            return False
        self._sweep_task = FrequencySweepTask(
            self.circuit, config, probe_node, source_id, self.options
        )
        self._sweep_task.start()
        return True

    def cancel_frequency_sweep(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()

    def poll_frequency_sweep(self) -> Optional[SweepProgress]:
        """Latest sweep progress; stores the response once the sweep finished."""
        if self._sweep_task is None:
            return None
        progress = self._sweep_task.poll()
        if progress.status == SweepStatus.FAILED:
            self.last_error = progress.error
            self._sweep_task = None
        elif progress.finished:
            self._frequency_response = progress.response
            self._sweep_task = None
        return progress

    def wait_frequency_sweep(self, timeout: Optional[float] = None) -> Optional[SweepProgress]:
        if self._sweep_task is None:
            return None
        self._sweep_task.wait(timeout)
        return self.poll_frequency_sweep()

    @property
    def frequency_response(self) -> Optional[FrequencyResponse]:
        return self._frequency_response

    @property
    def frequency_response_count(self) -> int:
        return len(self._frequency_response) if self._frequency_response is not None else 0
