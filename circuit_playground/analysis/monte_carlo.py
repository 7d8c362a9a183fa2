"""Monte Carlo tolerance analysis for circuit-playground.

Every run restores all value-bearing components to their backed-up nominal
values, perturbs each one by a Gaussian with sigma = nominal * tolerance / 3
(so the tolerance band is about 3 sigma), solves the DC operating point and
records the probe voltage. Runs are executed in slices of
``MC_ITERATIONS_PER_SLICE`` so an application loop stays responsive.

The circuit always comes out exactly as it went in: the backup is taken
before the first perturbation and restored at the end of every slice, on
completion, ``abort`` and ``reset``.

The random source is an explicit ``LCGRandom`` object, so a fixed seed gives
a reproducible run.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from circuit_playground.analysis.dc import dc_operating_point
from circuit_playground.analysis.mna import MNASystem
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.config import MAX_MONTE_CARLO_RUNS, MC_ITERATIONS_PER_SLICE
from circuit_playground.devices.base import Component
from circuit_playground.errors import CircuitError
from circuit_playground.netlist.circuit import Circuit

logger = logging.getLogger(__name__)

DEFAULT_SEED = 12345


class LCGRandom:
    """Linear congruential generator with Box-Muller Gaussian samples

    state = state * 1103515245 + 12345 (mod 2^32)
    """

    def __init__(self, seed: int = DEFAULT_SEED):
        self.state = seed & 0xFFFFFFFF

    def next_u32(self) -> int:
        self.state = (self.state * 1103515245 + 12345) & 0xFFFFFFFF
        return self.state

    def uniform(self) -> float:
        """Uniform sample in [0, 1]."""
        return (self.next_u32() & 0x7FFFFFFF) / 0x7FFFFFFF

    def gaussian(self) -> float:
        """Standard normal sample."""
        u1 = max(self.uniform(), 1e-10)
        u2 = self.uniform()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


@dataclass
class MonteCarloStats:
    """Summary of the valid runs.

    Attributes:
        mean: Mean output
        std: Population standard deviation
        min, max: Extremes
        p1, p99: 1st and 99th percentile (nearest rank on the sorted outputs)
        num_valid: Runs that produced a result
    """

    mean: float
    std: float
    min: float
    max: float
    p1: float
    p99: float
    num_valid: int


def compute_stats(values: List[float]) -> Optional[MonteCarloStats]:
    if not values:
        return None
    data = np.sort(np.asarray(values, dtype=np.float64))
    n = len(data)
    return MonteCarloStats(
        mean=float(np.mean(data)),
        std=float(np.std(data)),
        min=float(data[0]),
        max=float(data[-1]),
        p1=float(data[int(n * 0.01)]),
        p99=float(data[min(int(n * 0.99), n - 1)]),
        num_valid=n,
    )


class MonteCarloAnalysis:
    """Sliced Monte Carlo run over component tolerances

    Attributes:
        num_runs: Runs requested (clamped to MAX_MONTE_CARLO_RUNS)
        use_component_tolerance: Use each component's own tolerance
        global_tolerance: Tolerance in percent applied to all components otherwise
        results: Output per run, None for a failed solve
        current_run: Runs completed
        complete: All runs done and values restored
        stats: Statistics of the valid runs once complete
    """

    def __init__(self):
        self.num_runs = 0
        self.use_component_tolerance = True
        self.global_tolerance = 5.0
        self.rng = LCGRandom()
        self.results: List[Optional[float]] = []
        self.current_run = 0
        self.complete = False
        self.running = False
        self.stats: Optional[MonteCarloStats] = None
        self._backups: List[Tuple[Component, float]] = []

    def arm(
        self,
        num_runs: int,
        use_component_tolerance: bool = True,
        global_tolerance: float = 5.0,
        rng: Optional[LCGRandom] = None,
    ) -> bool:
        """Configure a new run. Returns False for a non-positive run count."""
        if num_runs <= 0:
            logger.warning(f"Monte Carlo needs at least one run, got {num_runs}")
            return False
        if num_runs > MAX_MONTE_CARLO_RUNS:
            logger.debug(f"Monte Carlo runs {num_runs} clamped to {MAX_MONTE_CARLO_RUNS}")
            num_runs = MAX_MONTE_CARLO_RUNS

        self.reset()
        self.num_runs = num_runs
        self.use_component_tolerance = use_component_tolerance
        self.global_tolerance = global_tolerance
        self.rng = rng if rng is not None else LCGRandom()
        self.running = True
        return True

    @property
    def progress(self) -> float:
        if self.num_runs <= 0:
            return 0.0
        return self.current_run / self.num_runs

    def _backup(self, circuit: Circuit) -> None:
        self._backups = [
            (c, c.get_value()) for c in circuit.components if c.get_value() is not None
        ]

    def restore(self) -> None:
        """Put every tracked component back to its backed-up value."""
        for component, value in self._backups:
            component.set_value(value)

    def _perturb(self) -> None:
        for component, nominal in self._backups:
            tolerance = (
                component.tolerance if self.use_component_tolerance else self.global_tolerance
            )
            sigma = abs(nominal) * tolerance / 300.0
            value = nominal + sigma * self.rng.gaussian()
            if component.is_passive:
                value = max(value, 0.0)
            component.set_value(value)

    def _solve(self, circuit: Circuit, probe_node: int, options: SimulationOptions) -> Optional[float]:
        try:
            system = MNASystem.from_circuit(circuit, options)
            x = dc_operating_point(system, options)
        except CircuitError as e:
            logger.debug(f"Monte Carlo run {self.current_run}: no result ({e})")
            return None
        return system.node_voltage(x, probe_node)

    def step(
        self,
        circuit: Circuit,
        probe_node: int,
        iterations: int = MC_ITERATIONS_PER_SLICE,
        options: Optional[SimulationOptions] = None,
    ) -> bool:
        """Execute up to ``iterations`` runs.

        Returns:
            True once the analysis is complete
        """
        if not self.running:
            return self.complete
        options = options or SimulationOptions()

        if self.current_run == 0 and not self._backups:
            self._backup(circuit)

        try:
            for _ in range(iterations):
                if self.current_run >= self.num_runs:
                    break
                self.restore()
                self._perturb()
                self.results.append(self._solve(circuit, probe_node, options))
                self.current_run += 1
        finally:
            # The live circuit only ever sees nominal values between slices
            self.restore()

        if self.current_run >= self.num_runs:
            self._finish()
        return self.complete

    def _finish(self) -> None:
        self.restore()
        self.running = False
        self.complete = True
        valid = [v for v in self.results if v is not None]
        self.stats = compute_stats(valid)
        if self.stats is None:
            logger.warning("Monte Carlo finished without a single valid run")
        else:
            logger.info(
                f"Monte Carlo complete: {len(valid)}/{self.num_runs} valid, "
                f"mean {self.stats.mean:.6g}, std {self.stats.std:.3g}"
            )

    def abort(self) -> None:
        """Stop early and restore the original component values."""
        self.restore()
        self.running = False

    def reset(self) -> None:
        """Restore the original values and clear all results."""
        self.abort()
        self._backups = []
        self.results = []
        self.current_run = 0
        self.complete = False
        self.stats = None

    @property
    def valid_results(self) -> List[float]:
        return [v for v in self.results if v is not None]
