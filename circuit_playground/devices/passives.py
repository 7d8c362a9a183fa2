"""Passive devices: resistor, capacitor, inductor and fuse.

Capacitors and inductors use integration companions in transient analysis:

    Capacitor:  i_new = Geq * v_new + Ieq
                Geq = C * c0,  Ieq = C * c1 * v_prev + d1 * i_prev
    Inductor:   v_new = Req * i_new + Veq  (as a branch equation)
                Req = L * c0,  Veq = L * c1 * i_prev + d1 * v_prev

With trapezoidal coefficients (c0 = 2/dt, c1 = -2/dt, d1 = -1) these are the
classic trapezoidal companion models. In DC the capacitor is an open circuit
and the inductor a zero-volt branch.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from circuit_playground.analysis.context import AnalysisContext
from circuit_playground.analysis.temperature import Material, apply_temperature, tempco_for
from circuit_playground.devices.base import (
    Component,
    ComponentKind,
    ParameterKind,
    solution_voltage,
    stamp_conductance,
    stamp_current,
    stamp_voltage_branch,
)

logger = logging.getLogger(__name__)

# Floor keeping 1/R finite for zero or negative (perturbed) resistances
MIN_RESISTANCE = 1e-12
BLOWN_FUSE_RESISTANCE = 1e9


@dataclass(eq=False)
class Resistor(Component):
    """Two-terminal resistor

    Parameters:
        resistance: Resistance in Ohms at 25 °C
        power_rating: Rated dissipation in W (informational)
        temp_coeff: Temperature coefficient in ppm/°C, applied when not ideal
        ideal: Ignore temperature when True

    State:
        power_dissipated: V^2/R at the last accepted solution
    """

    kind = ComponentKind.RESISTOR
    value_attr = "resistance"
    is_passive = True
    sweepable = {ParameterKind.RESISTANCE: "resistance"}

    resistance: float = 1000.0
    power_rating: float = 0.25
    temp_coeff: float = 100.0
    ideal: bool = True
    power_dissipated: float = 0.0

    @classmethod
    def of_material(cls, resistance: float, material: Material, **kwargs) -> "Resistor":
        """Non-ideal resistor with the typical tempco of ``material``."""
        return cls(resistance, temp_coeff=tempco_for(material), ideal=False, **kwargs)

    def effective_resistance(self, temperature: float) -> float:
        R = self.resistance
        if not self.ideal:
            R = apply_temperature(R, self.temp_coeff, temperature)
        return max(R, MIN_RESISTANCE)

    def stamp(self, A, b, nodes, branch, ctx):
        p, n = nodes
        stamp_conductance(A, p, n, 1.0 / self.effective_resistance(ctx.temperature))

    def init_state(self, x, nodes, branch, ctx):
        self.commit(x, nodes, branch, ctx)

    def commit(self, x, nodes, branch, ctx):
        v = solution_voltage(x, nodes[0]) - solution_voltage(x, nodes[1])
        self.power_dissipated = v * v / self.effective_resistance(ctx.temperature)

    def reset_state(self):
        self.power_dissipated = 0.0


@dataclass(eq=False)
class Capacitor(Component):
    """Capacitor with trapezoidal companion model

    Parameters:
        capacitance: Capacitance in Farads
        ic: Initial voltage used when the simulation starts without a DC solve
        leakage: Parallel leakage resistance, applied when not ideal
        ideal: No leakage when True

    State:
        voltage: Voltage across the capacitor at the last accepted timepoint
        current: Capacitive current at the last accepted timepoint
    """

    kind = ComponentKind.CAPACITOR
    value_attr = "capacitance"
    is_passive = True
    sweepable = {ParameterKind.CAPACITANCE: "capacitance"}

    capacitance: float = 1e-6
    ic: float = 0.0
    leakage: float = 1e9
    ideal: bool = True
    voltage: float = 0.0
    current: float = 0.0

    def _companion(self, ctx: AnalysisContext):
        C = max(self.capacitance, 0.0)
        geq = C * ctx.coeffs.c0
        ieq = C * ctx.coeffs.c1 * self.voltage + ctx.coeffs.d1 * self.current
        return geq, ieq

    def stamp(self, A, b, nodes, branch, ctx):
        p, n = nodes
        if not self.ideal:
            stamp_conductance(A, p, n, 1.0 / max(self.leakage, MIN_RESISTANCE))
        if ctx.is_dc():
            # Open circuit
            return
        geq, ieq = self._companion(ctx)
        stamp_conductance(A, p, n, geq)
        stamp_current(b, p, n, ieq)

    def stamp_ac(self, A, b, nodes, branch, ctx):
        p, n = nodes
        if not self.ideal:
            stamp_conductance(A, p, n, 1.0 / max(self.leakage, MIN_RESISTANCE))
        stamp_conductance(A, p, n, 1j * ctx.omega * self.capacitance)

    def init_state(self, x, nodes, branch, ctx):
        self.voltage = solution_voltage(x, nodes[0]) - solution_voltage(x, nodes[1])
        self.current = 0.0

    def commit(self, x, nodes, branch, ctx):
        v_new = solution_voltage(x, nodes[0]) - solution_voltage(x, nodes[1])
        geq, ieq = self._companion(ctx)
        self.current = geq * v_new + ieq
        self.voltage = v_new

    def reset_state(self):
        self.voltage = self.ic
        self.current = 0.0


@dataclass(eq=False)
class Inductor(Component):
    """Inductor with an explicit branch current

    Parameters:
        inductance: Inductance in Henries
        dcr: Series winding resistance, applied when not ideal
        ic: Initial current used when the simulation starts without a DC solve
        ideal: Zero winding resistance when True

    State:
        current: Branch current at the last accepted timepoint
        voltage: Inductive voltage L di/dt at the last accepted timepoint
    """

    kind = ComponentKind.INDUCTOR
    has_branch = True
    value_attr = "inductance"
    is_passive = True
    sweepable = {ParameterKind.INDUCTANCE: "inductance"}

    inductance: float = 1e-3
    dcr: float = 0.1
    ic: float = 0.0
    ideal: bool = True
    current: float = 0.0
    voltage: float = 0.0

    def defines_voltage(self, dc: bool) -> bool:
        return dc and (self.ideal or self.dcr <= 0)

    @property
    def series_resistance(self) -> float:
        return 0.0 if self.ideal else max(self.dcr, 0.0)

    def stamp(self, A, b, nodes, branch, ctx):
        p, n = nodes
        if ctx.is_dc():
            # Short circuit (through the winding resistance)
            stamp_voltage_branch(A, b, p, n, branch, 0.0, self.series_resistance)
            return
        L = max(self.inductance, 0.0)
        req = L * ctx.coeffs.c0
        veq = L * ctx.coeffs.c1 * self.current + ctx.coeffs.d1 * self.voltage
        stamp_voltage_branch(A, b, p, n, branch, veq, self.series_resistance + req)

    def stamp_ac(self, A, b, nodes, branch, ctx):
        p, n = nodes
        impedance = self.series_resistance + 1j * ctx.omega * self.inductance
        stamp_voltage_branch(A, b, p, n, branch, 0.0, impedance)

    def init_state(self, x, nodes, branch, ctx):
        self.current = float(x[branch].real)
        self.voltage = 0.0

    def commit(self, x, nodes, branch, ctx):
        i_new = float(x[branch].real)
        L = max(self.inductance, 0.0)
        self.voltage = L * (ctx.coeffs.c0 * i_new + ctx.coeffs.c1 * self.current) + (
            ctx.coeffs.d1 * self.voltage
        )
        self.current = i_new

    def reset_state(self):
        self.current = self.ic
        self.voltage = 0.0


@dataclass(eq=False)
class Fuse(Component):
    """Fuse that opens once its I²t energy budget is exceeded

    Parameters:
        rating: Continuous current rating in A
        resistance: Cold resistance in Ohms
        i2t: Energy budget above the rating, in A²s

    State:
        heat: Accumulated I²t while over the rating
        blown: True once heat reached i2t (the fuse then stamps 1 GOhm)
    """

    kind = ComponentKind.FUSE
    is_passive = True
    sweepable = {ParameterKind.RESISTANCE: "resistance"}

    rating: float = 1.0
    resistance: float = 0.01
    i2t: float = 1e-3
    heat: float = 0.0
    blown: bool = False

    def effective_resistance(self) -> float:
        if self.blown:
            return BLOWN_FUSE_RESISTANCE
        return max(self.resistance, MIN_RESISTANCE)

    def stamp(self, A, b, nodes, branch, ctx):
        p, n = nodes
        stamp_conductance(A, p, n, 1.0 / self.effective_resistance())

    def commit(self, x, nodes, branch, ctx):
        if self.blown or not ctx.is_transient():
            return
        v = solution_voltage(x, nodes[0]) - solution_voltage(x, nodes[1])
        i = v / self.effective_resistance()
        if abs(i) > self.rating:
            self.heat += i * i * ctx.dt
            if self.heat >= self.i2t:
                self.blown = True
                logger.warning(f"Fuse {self.label or self.id} blown at t={ctx.time:.6g}s")

    def reset_state(self):
        self.heat = 0.0
        self.blown = False
