"""AC small-signal frequency sweep (Bode analysis) for circuit-playground.

Implements small-signal frequency-domain analysis:
1. Solve the DC operating point
2. Linearize every device about it (``stamp_ac``)
3. For each frequency, solve the complex system (G + jωC)·X = U with a unit
   excitation on one voltage source
4. Record V(probe) / V(source node) as magnitude in dB and phase in degrees

The sweep can run synchronously (``run_frequency_sweep``) or on a single
background worker (``FrequencySweepTask``) that is cancelled through a
``threading.Event`` checked between points and reports progress through a
``queue.Queue`` the owner polls.
"""

import copy
import logging
import math
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple, Optional

import numpy as np

from circuit_playground.analysis.context import AnalysisContext
from circuit_playground.analysis.dc import dc_operating_point
from circuit_playground.analysis.linalg import solve_dense
from circuit_playground.analysis.mna import MNASystem
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.config import MAX_SWEEP_POINTS
from circuit_playground.devices.sources import ACVoltage, VoltageSource
from circuit_playground.errors import CircuitError, SweepRangeError
from circuit_playground.netlist.circuit import Circuit

logger = logging.getLogger(__name__)

# Magnitude floor for 20*log10
_MIN_MAGNITUDE = 1e-20


@dataclass
class ACConfig:
    """AC analysis configuration.

    Attributes:
        freq_start: Starting frequency in Hz
        freq_stop: Ending frequency in Hz
        points: Points per decade ('dec'), per octave ('oct'), or in total ('lin', 'log')
        mode: Sweep mode - 'dec', 'oct', 'lin' or 'log'
    """

    freq_start: float = 10.0
    freq_stop: float = 100e3
    points: int = 10
    mode: str = "dec"

    def validate(self) -> None:
        """Raise SweepRangeError when the range cannot produce a sweep."""
        if self.mode not in ("dec", "oct", "lin", "log"):
            raise SweepRangeError(f"Unknown AC sweep mode {self.mode!r}")
        if self.points < 1:
            raise SweepRangeError(f"AC sweep needs at least one point, got {self.points}")
        if self.freq_stop < self.freq_start:
            raise SweepRangeError(
                f"freq_stop ({self.freq_stop}) must not be below freq_start ({self.freq_start})"
            )
        if self.mode == "lin":
            if self.freq_start < 0:
                raise SweepRangeError(f"Frequencies must be non-negative, got {self.freq_start}")
        elif self.freq_start <= 0:
            raise SweepRangeError(
                f"Logarithmic sweep needs freq_start > 0, got {self.freq_start}"
            )


def generate_frequencies(config: ACConfig) -> np.ndarray:
    """Generate frequency sweep array based on configuration.

    The number of points is clamped to MAX_SWEEP_POINTS.

    Args:
        config: AC analysis configuration

    Returns:
        Array of frequencies in Hz, ascending

    Raises:
        SweepRangeError: Invalid configuration
    """
    config.validate()

    if config.mode == "dec":
        n_points = int(math.log10(config.freq_stop / config.freq_start) * config.points) + 1
    elif config.mode == "oct":
        n_points = int(math.log2(config.freq_stop / config.freq_start) * config.points) + 1
    else:
        n_points = config.points

    if n_points > MAX_SWEEP_POINTS:
        logger.debug(f"AC sweep of {n_points} points clamped to {MAX_SWEEP_POINTS}")
        n_points = MAX_SWEEP_POINTS

    if config.mode == "lin":
        return np.linspace(config.freq_start, config.freq_stop, n_points)
    return np.logspace(math.log10(config.freq_start), math.log10(config.freq_stop), n_points)


@dataclass
class FrequencyResponse:
    """Bode data of one sweep.

    Attributes:
        frequency: Frequencies in Hz
        magnitude_db: |H| in dB
        phase_deg: arg(H) in degrees
        complete: False when the sweep was cancelled before the last point
    """

    frequency: np.ndarray
    magnitude_db: np.ndarray
    phase_deg: np.ndarray
    complete: bool = True

    def __len__(self) -> int:
        return len(self.frequency)

    def crossing_frequency(self, level_db: float) -> Optional[float]:
        """First frequency where the magnitude falls through ``level_db``.

        Linearly interpolated in log-frequency. None if it never does.
        """
        mag = self.magnitude_db
        for i in range(1, len(mag)):
            if mag[i - 1] >= level_db > mag[i]:
                frac = (mag[i - 1] - level_db) / (mag[i - 1] - mag[i])
                f0, f1 = self.frequency[i - 1], self.frequency[i]
                if f0 > 0:
                    return float(f0 * (f1 / f0) ** frac)
                return float(f0 + frac * (f1 - f0))
        return None

    def bandwidth(self, drop_db: float = 3.0) -> Optional[float]:
        """-3 dB point relative to the first sample."""
        if len(self) == 0:
            return None
        return self.crossing_frequency(float(self.magnitude_db[0]) - drop_db)


def find_excitation_source(circuit: Circuit, source_id: Optional[int] = None) -> VoltageSource:
    """Designated voltage source, or the first AC voltage source."""
    if source_id is not None:
        source = circuit.get_component(source_id)
        if not isinstance(source, VoltageSource):
            raise ValueError(f"Component {source_id} is not a voltage source")
        return source
    for component in circuit.components:
        if isinstance(component, ACVoltage):
            return component
    raise CircuitError("Frequency sweep needs an AC voltage source")


def solve_ac_point(
    system: MNASystem,
    x_op: np.ndarray,
    frequency: float,
    excitation_id: int,
    options: Optional[SimulationOptions] = None,
) -> np.ndarray:
    """Solve the small-signal system at one frequency.

    Args:
        system: MNA layout of the circuit
        x_op: DC operating point the devices are linearized about
        frequency: Frequency in Hz
        excitation_id: Component id of the source carrying the unit phasor

    Returns:
        Complex phasor solution vector
    """
    if options is None:
        options = system.options
    ctx = AnalysisContext(
        temperature=options.temp,
        analysis_type="ac",
        guess=x_op,
        omega=2.0 * math.pi * frequency,
        excitation_id=excitation_id,
    )
    A, b = system.assemble_ac(ctx)
    return solve_dense(A, b)


def run_frequency_sweep(
    circuit: Circuit,
    config: ACConfig,
    probe_node: int,
    source_id: Optional[int] = None,
    options: Optional[SimulationOptions] = None,
    cancel_event: Optional[threading.Event] = None,
    on_point: Optional[Callable[[int, int], None]] = None,
) -> FrequencyResponse:
    """Run a Bode sweep of V(probe_node) / V(source node).

    Args:
        circuit: Circuit to analyze (only read)
        config: Frequency range
        probe_node: Circuit node id of the output
        source_id: Excitation source id (first AC voltage source if None)
        options: Solver options
        cancel_event: Checked before every point; when set the partial
            response is returned with ``complete=False``
        on_point: Called with (points_done, points_total) after each point

    Raises:
        SweepRangeError: Invalid frequency range
        CircuitError: DC operating point or any frequency point failed
    """
    options = options or SimulationOptions()
    frequencies = generate_frequencies(config)
    source = find_excitation_source(circuit, source_id)

    system = MNASystem.from_circuit(circuit, options)
    x_op = dc_operating_point(system, options)
    source_node = source.node_ids[0]

    n = len(frequencies)
    magnitude_db = np.zeros(n)
    phase_deg = np.zeros(n)
    done = 0
    for i, f in enumerate(frequencies):
        if cancel_event is not None and cancel_event.is_set():
            logger.debug(f"Frequency sweep cancelled after {done}/{n} points")
            break
        x = solve_ac_point(system, x_op, float(f), source.id, options)
        v_in = system.node_phasor(x, source_node)
        v_out = system.node_phasor(x, probe_node)
        h = v_out / v_in if abs(v_in) > 1e-15 else v_out
        magnitude_db[i] = 20.0 * math.log10(max(abs(h), _MIN_MAGNITUDE))
        phase_deg[i] = math.degrees(math.atan2(h.imag, h.real))
        done = i + 1
        if on_point is not None:
            on_point(done, n)

    return FrequencyResponse(
        frequency=frequencies[:done].copy(),
        magnitude_db=magnitude_db[:done],
        phase_deg=phase_deg[:done],
        complete=done == n,
    )


# =============================================================================
# Background sweep
# =============================================================================


class SweepStatus(Enum):
    RUNNING = "running"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SweepProgress(NamedTuple):
    """Progress message published by a background sweep.

    Attributes:
        status: Current status
        points_done: Frequencies solved so far
        points_total: Frequencies in the sweep
        response: Final (or partial, when cancelled) response once finished
        error: Failure message when status is FAILED
    """

    status: SweepStatus
    points_done: int
    points_total: int
    response: Optional[FrequencyResponse] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status != SweepStatus.RUNNING


class FrequencySweepTask:
    """Frequency sweep on a single background worker.

    The worker operates on a deep copy of the circuit taken at construction,
    so later edits by the owner never race with the sweep.

    Example:
        task = FrequencySweepTask(circuit, ACConfig(10, 1e5), probe_node=2)
        task.start()
        while not task.poll().finished:
            ...  # one frame of application work
    """

    def __init__(
        self,
        circuit: Circuit,
        config: ACConfig,
        probe_node: int,
        source_id: Optional[int] = None,
        options: Optional[SimulationOptions] = None,
    ):
        self._circuit = copy.deepcopy(circuit)
        self._config = copy.copy(config)
        self._probe_node = probe_node
        self._source_id = source_id
        self._options = copy.deepcopy(options) if options is not None else SimulationOptions()
        self._cancel = threading.Event()
        self._results: "queue.Queue[SweepProgress]" = queue.Queue()
        self._future: Optional[Future] = None
        self._latest = SweepProgress(SweepStatus.RUNNING, 0, 0)

    def start(self) -> None:
        if self._future is not None:
            raise RuntimeError("Frequency sweep task already started")
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="freq-sweep")
        self._future = executor.submit(self._run)
        # Worker thread exits once the single job is done
        executor.shutdown(wait=False)

    def _publish_point(self, done: int, total: int) -> None:
        self._points_done = done
        self._results.put(SweepProgress(SweepStatus.RUNNING, done, total))

    def _fail(self, total: int, message: str) -> None:
        self._results.put(
            SweepProgress(SweepStatus.FAILED, self._points_done, total, error=message)
        )

    def _run(self) -> None:
        # Worker-side counters; the owner only sees them through the queue
        self._points_done = 0
        total = 0
        try:
            total = len(generate_frequencies(self._config))
            response = run_frequency_sweep(
                self._circuit,
                self._config,
                self._probe_node,
                self._source_id,
                self._options,
                cancel_event=self._cancel,
                on_point=self._publish_point,
            )
        except (CircuitError, ValueError) as e:
            logger.warning(f"Frequency sweep failed: {e}")
            self._fail(total, str(e))
            return
        except Exception as e:
            logger.exception("Frequency sweep worker raised")
            self._fail(total, f"{type(e).__name__}: {e}")
            return
        status = SweepStatus.DONE if response.complete else SweepStatus.CANCELLED
        logger.info(f"Frequency sweep {status.value}: {len(response)}/{total} points")
        self._results.put(SweepProgress(status, len(response), total, response))

    def cancel(self) -> None:
        """Request cancellation; takes effect before the next frequency point."""
        self._cancel.set()

    def poll(self) -> SweepProgress:
        """Drain pending messages and return the latest status (never blocks)."""
        while True:
            try:
                self._latest = self._results.get_nowait()
            except queue.Empty:
                return self._latest

    def wait(self, timeout: Optional[float] = None) -> SweepProgress:
        """Block until the worker finishes, then return the final status."""
        if self._future is not None:
            self._future.result(timeout)
        return self.poll()

    @property
    def running(self) -> bool:
        return self._future is not None and not self._future.done()
