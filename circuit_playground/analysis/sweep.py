"""Parametric sweep for circuit-playground.

A sweep steps one component parameter (or the ambient temperature) through
a linear or logarithmic range. Each ``step`` applies the next value,
re-solves the circuit from a reset (DC operating point plus
``settle_steps`` transient steps) and records the probe's output statistics
over that run. After the last point the original value is restored.

Example usage:
    sweep = ParametricSweep()
    sweep.arm(r1.id, ParameterKind.RESISTANCE, 1.0, 1e3, num_points=10, log_scale=True)
    while not sweep.complete:
        sweep.step(sim, probe_index=0)
"""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, NamedTuple, Optional

import numpy as np

from circuit_playground.config import MAX_SWEEP_POINTS
from circuit_playground.devices.base import ParameterKind

if TYPE_CHECKING:
    from circuit_playground.simulation import Simulation

logger = logging.getLogger(__name__)


class SweepPoint(NamedTuple):
    """Output statistics for one parameter value.

    ``valid`` is False when the solve failed; the statistics are then 0.
    """

    param_value: float
    mid: float
    min: float
    max: float
    rms: float
    valid: bool = True


@dataclass
class ParametricSweep:
    """Stepwise parametric sweep

    Attributes:
        component_id: Target component (ignored for TEMPERATURE)
        param: Parameter being swept
        start, end: Range endpoints
        num_points: Number of points (clamped to MAX_SWEEP_POINTS)
        log_scale: Logarithmic spacing
        settle_steps: Transient steps run per point before measuring
        results: Recorded points, in sweep order
        current_point: Index of the next point
        complete: All points recorded and the original value restored
    """

    component_id: int = -1
    param: ParameterKind = ParameterKind.RESISTANCE
    start: float = 0.0
    end: float = 0.0
    num_points: int = 0
    log_scale: bool = False
    settle_steps: int = 0
    results: List[SweepPoint] = field(default_factory=list)
    current_point: int = 0
    complete: bool = False
    armed: bool = False
    _original: Optional[float] = None
    _simulation: Optional["Simulation"] = None

    def arm(
        self,
        component_id: int,
        param: ParameterKind,
        start: float,
        end: float,
        num_points: int,
        log_scale: bool = False,
        settle_steps: int = 0,
    ) -> bool:
        """Configure a new sweep. Returns False (and changes nothing) for an invalid range."""
        if num_points <= 0:
            logger.warning(f"Parametric sweep needs at least one point, got {num_points}")
            return False
        if log_scale and (start <= 0 or end <= 0):
            logger.warning(
                f"Logarithmic sweep needs positive endpoints, got {start:g}..{end:g}"
            )
            return False
        if num_points > MAX_SWEEP_POINTS:
            logger.debug(f"Sweep of {num_points} points clamped to {MAX_SWEEP_POINTS}")
            num_points = MAX_SWEEP_POINTS

        self.abort()
        self.component_id = component_id
        self.param = param
        self.start = start
        self.end = end
        self.num_points = num_points
        self.log_scale = log_scale
        self.settle_steps = max(settle_steps, 0)
        self.results = []
        self.current_point = 0
        self.complete = False
        self.armed = True
        return True

    def value_at(self, index: int) -> float:
        """Parameter value of point ``index``."""
        n = self.num_points
        if n <= 1:
            return self.start
        frac = index / (n - 1)
        if self.log_scale:
            if self.start <= 0 or self.end <= 0:
                return self.start
            return self.start * (self.end / self.start) ** frac
        return self.start + (self.end - self.start) * frac

    @property
    def progress(self) -> float:
        if self.num_points <= 0:
            return 0.0
        return self.current_point / self.num_points

    # -------------------------------------------------------------------------
    # Parameter access
    # -------------------------------------------------------------------------

    def _get(self, simulation: "Simulation") -> float:
        if self.param == ParameterKind.TEMPERATURE:
            return simulation.options.temp
        return self._component(simulation).get_parameter(self.param)

    def _set(self, simulation: "Simulation", value: float) -> None:
        if self.param == ParameterKind.TEMPERATURE:
            simulation.options.temp = value
        else:
            self._component(simulation).set_parameter(self.param, value)

    def _component(self, simulation: "Simulation"):
        component = simulation.circuit.get_component(self.component_id)
        if component is None:
            raise KeyError(f"No component with id {self.component_id}")
        return component

    # -------------------------------------------------------------------------
    # Stepping
    # -------------------------------------------------------------------------

    def _measure(self, simulation: "Simulation", probe_index: int, value: float) -> SweepPoint:
        probe = simulation.circuit.probes[probe_index]
        if self.settle_steps == 0:
            samples = np.array([simulation.node_voltage(probe.node_id)])
        else:
            samples = simulation.get_history(probe.id).values
        if samples.size == 0:
            return SweepPoint(value, 0.0, 0.0, 0.0, 0.0, valid=False)
        v_min = float(np.min(samples))
        v_max = float(np.max(samples))
        rms = float(np.sqrt(np.mean(samples * samples)))
        return SweepPoint(value, 0.5 * (v_min + v_max), v_min, v_max, rms)

    def step(self, simulation: "Simulation", probe_index: int = 0) -> Optional[SweepPoint]:
        """Solve the next point and record it.

        Returns:
            The recorded point, or None when the sweep is not armed or complete
        """
        if not self.armed or self.complete:
            return None
        if not 0 <= probe_index < len(simulation.circuit.probes):
            raise IndexError(f"No probe at index {probe_index}")

        if self.current_point == 0:
            self._original = self._get(simulation)
            self._simulation = simulation

        value = self.value_at(self.current_point)
        self._set(simulation, value)
        simulation.reset()

        ok = simulation.dc_analysis()
        for _ in range(self.settle_steps):
            if not ok:
                break
            ok = simulation.step()

        if ok:
            point = self._measure(simulation, probe_index, value)
        else:
            logger.debug(f"Sweep point {value:g} failed: {simulation.last_error}")
            point = SweepPoint(value, 0.0, 0.0, 0.0, 0.0, valid=False)
        self.results.append(point)
        self.current_point += 1

        if self.current_point >= self.num_points:
            self._restore()
            self.complete = True
            simulation.reset()
            valid = sum(1 for p in self.results if p.valid)
            logger.info(f"Parametric sweep complete: {valid}/{len(self.results)} valid points")
        return point

    def _restore(self) -> None:
        if self._original is not None and self._simulation is not None:
            self._set(self._simulation, self._original)
        self._original = None
        self._simulation = None

    def abort(self) -> None:
        """Stop the sweep and restore the original parameter value."""
        self._restore()
        self.armed = False

    def reset(self) -> None:
        self.abort()
        self.results = []
        self.current_point = 0
        self.complete = False

    @property
    def valid_results(self) -> List[SweepPoint]:
        return [p for p in self.results if p.valid]

    def output_range(self) -> Optional[tuple]:
        """(min, max) of the mid values of valid points, for plotting."""
        mids = [p.mid for p in self.results if p.valid and math.isfinite(p.mid)]
        if not mids:
            return None
        return min(mids), max(mids)
