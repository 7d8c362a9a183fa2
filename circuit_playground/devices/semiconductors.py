"""Semiconductor devices: diode family, BJT and MOSFET.

Diodes stamp the classic companion pair (conductance + offset current) of the
Shockley equation. BJT and MOSFET terminal currents are pure jax.numpy
functions; their small-signal Jacobians come from ``jax.jacfwd`` under
``jax.jit`` rather than hand-derived derivatives.

Exponentials are evaluated at a clamped junction voltage in
[-5 nVt, 40 nVt] and the device is linearized there, which keeps large
forward steps of the Newton iterate from overflowing.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jaxtyping import Float

from circuit_playground.config import REFERENCE_TEMPERATURE_C, ZERO_CELSIUS_K
from circuit_playground.devices.base import (
    Component,
    ComponentKind,
    DeviceStamps,
    solution_voltage,
    stamp_conductance,
    stamp_current,
    stamp_device_stamps,
    terminal_voltages,
)

# Exponent clamp in units of n*Vt
EXP_LIMIT_HIGH = 40.0
EXP_LIMIT_LOW = -5.0


def clamp_junction(v: float, nvt: float) -> float:
    return min(max(v, EXP_LIMIT_LOW * nvt), EXP_LIMIT_HIGH * nvt)


def thermal_voltage_at(vt_ref: float, temperature: float) -> float:
    """Scale a thermal voltage specified at 25 °C to ``temperature`` °C."""
    return vt_ref * (temperature + ZERO_CELSIUS_K) / (REFERENCE_TEMPERATURE_C + ZERO_CELSIUS_K)


# =============================================================================
# Diode family
# =============================================================================


@dataclass(eq=False)
class Diode(Component):
    """Junction diode, anode -> cathode

    Parameters:
        saturation_current: Is in A
        emission: Ideality factor n
        vt: Thermal voltage at 25 °C
        ideal: Ignore temperature when True

    I = Is * (exp(Vd / (n Vt)) - 1)
    """

    kind = ComponentKind.DIODE
    terminals = ("a", "k")

    saturation_current: float = 1e-12
    emission: float = 1.0
    vt: float = 0.026
    ideal: bool = True

    @property
    def is_nonlinear(self) -> bool:
        return True

    def thermal_voltage(self, temperature: float) -> float:
        if self.ideal:
            return self.vt
        return thermal_voltage_at(self.vt, temperature)

    def junction(self, vd: float, temperature: float) -> Tuple[float, float, float]:
        """Current, conductance and the clamped voltage they were evaluated at."""
        nvt = self.emission * self.thermal_voltage(temperature)
        vd = clamp_junction(vd, nvt)
        exp_term = math.exp(vd / nvt)
        current = self.saturation_current * (exp_term - 1.0)
        conductance = self.saturation_current / nvt * exp_term
        return current, conductance, vd

    def companion(self, vd: float, ctx) -> Tuple[float, float]:
        """Linearized (Gd, Ieq) at vd so that I ~ Gd * V + Ieq."""
        current, gd, vd = self.junction(vd, ctx.temperature)
        gd += ctx.gmin
        current += ctx.gmin * vd
        return gd, current - gd * vd

    def stamp(self, A, b, nodes, branch, ctx):
        a, k = nodes
        va, vk = terminal_voltages(nodes, ctx)
        gd, ieq = self.companion(va - vk, ctx)
        stamp_conductance(A, a, k, gd)
        stamp_current(b, a, k, ieq)

    def current_at(self, x: np.ndarray, nodes, temperature: float) -> float:
        """Junction current in a solution, linear beyond the exponent clamp like the stamp."""
        vd = solution_voltage(x, nodes[0]) - solution_voltage(x, nodes[1])
        current, conductance, v_clamped = self.junction(vd, temperature)
        return current + conductance * (vd - v_clamped)


@dataclass(eq=False)
class Zener(Diode):
    """Zener diode with reverse breakdown

    Parameters:
        vz: Breakdown voltage (positive)
        rz: Dynamic resistance in breakdown
    """

    kind = ComponentKind.ZENER

    vz: float = 5.1
    rz: float = 5.0

    def companion(self, vd: float, ctx) -> Tuple[float, float]:
        gd, ieq = super().companion(vd, ctx)
        if vd < -self.vz:
            # Breakdown: i = (vd + vz) / rz, linear below -vz
            g_bd = 1.0 / max(self.rz, 1e-6)
            gd += g_bd
            ieq += g_bd * self.vz
        return gd, ieq


@dataclass(eq=False)
class Schottky(Diode):
    """Schottky diode: larger Is, lower forward drop"""

    kind = ComponentKind.SCHOTTKY

    saturation_current: float = 1e-8
    emission: float = 1.05


@dataclass(eq=False)
class LED(Diode):
    """Light emitting diode

    Parameters:
        max_current: Rated forward current in A
        wavelength: Emission wavelength in nm (display only)

    State:
        current: Forward current at the last accepted solution
    """

    kind = ComponentKind.LED

    saturation_current: float = 1e-20
    emission: float = 2.0
    max_current: float = 0.020
    wavelength: float = 620.0
    current: float = 0.0

    @property
    def brightness(self) -> float:
        """Forward current relative to rating, clamped to [0, 1]."""
        if self.max_current <= 0:
            return 0.0
        return min(max(self.current / self.max_current, 0.0), 1.0)

    def init_state(self, x, nodes, branch, ctx):
        self.commit(x, nodes, branch, ctx)

    def commit(self, x, nodes, branch, ctx):
        self.current = max(self.current_at(x, nodes, ctx.temperature), 0.0)

    def reset_state(self):
        self.current = 0.0


# =============================================================================
# BJT
# =============================================================================


def bjt_currents(
    v: Float[Array, "3"], params: Float[Array, "9"]
) -> Float[Array, "3"]:
    """Ebers-Moll transport model terminal currents

    Args:
        v: Terminal voltages (base, collector, emitter)
        params: (sign, Is, bf, br, nf, nr, vaf, vt, gmin); sign = +1 NPN, -1 PNP,
            vaf <= 0 disables the Early effect

    Returns:
        Currents flowing into the device at (base, collector, emitter)
    """
    sign, i_s, bf, br, nf, nr, vaf, vt, gmin = params
    vbe = sign * (v[0] - v[2])
    vbc = sign * (v[0] - v[1])

    exp_be = jnp.exp(vbe / (nf * vt))
    exp_bc = jnp.exp(vbc / (nr * vt))
    i_f = i_s * (exp_be - 1.0)
    i_r = i_s * (exp_bc - 1.0)

    early = jnp.where(vaf > 0, 1.0 + (vbe - vbc) / jnp.where(vaf > 0, vaf, 1.0), 1.0)
    i_transport = (i_f - i_r) * early

    ib = i_f / bf + i_r / br + gmin * (vbe + vbc)
    ic = i_transport - i_r / br - gmin * vbc
    i_base = sign * ib
    i_collector = sign * ic
    return jnp.stack([i_base, i_collector, -(i_base + i_collector)])


@jax.jit
def _bjt_linearize(v, params):
    return bjt_currents(v, params), jax.jacfwd(bjt_currents)(v, params)


@dataclass(eq=False)
class BJT(Component):
    """Bipolar transistor, terminals base / collector / emitter

    Parameters:
        polarity: +1 for NPN, -1 for PNP
        bf: Forward current gain
        br: Reverse current gain
        saturation_current: Transport saturation current Is
        nf: Forward emission coefficient
        nr: Reverse emission coefficient
        vaf: Forward Early voltage, applied when not ideal
        vt: Thermal voltage at 25 °C
        ideal: No Early effect and no temperature scaling when True
    """

    kind = ComponentKind.NPN_BJT
    terminals = ("b", "c", "e")

    polarity: int = 1
    bf: float = 100.0
    br: float = 1.0
    saturation_current: float = 1e-14
    nf: float = 1.0
    nr: float = 1.0
    vaf: float = 100.0
    vt: float = 0.02585
    ideal: bool = True

    def __post_init__(self):
        if self.polarity not in (1, -1):
            raise ValueError(f"BJT polarity must be +1 or -1, got {self.polarity}")

    @property
    def is_nonlinear(self) -> bool:
        return True

    def params_array(self, temperature: float, gmin: float) -> np.ndarray:
        vt = self.vt if self.ideal else thermal_voltage_at(self.vt, temperature)
        vaf = 0.0 if self.ideal else self.vaf
        return np.array(
            [self.polarity, self.saturation_current, self.bf, self.br, self.nf, self.nr, vaf, vt, gmin],
            dtype=np.float64,
        )

    def evaluate(self, voltages, temperature: float = REFERENCE_TEMPERATURE_C, gmin: float = 0.0):
        """Currents and Jacobian at terminal voltages (junctions clamped)

        Args:
            voltages: Dict with keys 'b', 'c', 'e'

        Returns:
            (DeviceStamps, linearization point actually used)
        """
        params = self.params_array(temperature, gmin)
        vt = params[7]
        vb = voltages["b"]
        vbe = clamp_junction(self.polarity * (vb - voltages["e"]), self.nf * vt)
        vbc = clamp_junction(self.polarity * (vb - voltages["c"]), self.nr * vt)
        v0 = np.array([vb, vb - self.polarity * vbc, vb - self.polarity * vbe])

        currents, jacobian = _bjt_linearize(jnp.asarray(v0), jnp.asarray(params))
        currents = np.asarray(currents)
        jacobian = np.asarray(jacobian)
        names = self.terminals
        stamps = DeviceStamps(
            currents={t: float(currents[i]) for i, t in enumerate(names)},
            conductances={
                (t, s): float(jacobian[i, j])
                for i, t in enumerate(names)
                for j, s in enumerate(names)
            },
        )
        return stamps, dict(zip(names, (float(x) for x in v0)))

    def stamp(self, A, b, nodes, branch, ctx):
        voltages = dict(zip(self.terminals, terminal_voltages(nodes, ctx)))
        stamps, v0 = self.evaluate(voltages, ctx.temperature, ctx.gmin)
        stamp_device_stamps(A, b, dict(zip(self.terminals, nodes)), stamps, v0)


@dataclass(eq=False)
class PNP(BJT):
    """PNP bipolar transistor"""

    kind = ComponentKind.PNP_BJT

    polarity: int = -1


# =============================================================================
# MOSFET
# =============================================================================


def mosfet_currents(
    v: Float[Array, "3"], params: Float[Array, "5"]
) -> Float[Array, "3"]:
    """Level-1 (Shichman-Hodges) drain current

    Args:
        v: Terminal voltages (gate, drain, source)
        params: (sign, K = Kp W/L, |Vth|, lambda, gmin); sign = +1 NMOS, -1 PMOS

    Returns:
        Currents flowing into the device at (gate, drain, source)

    Drain and source swap roles when Vds < 0 so the model is symmetric.
    """
    sign, k, vth, lam, gmin = params
    vgs = sign * (v[0] - v[2])
    vds = sign * (v[1] - v[2])

    reverse = vds < 0
    vgs_eff = jnp.where(reverse, vgs - vds, vgs)
    vds_eff = jnp.abs(vds)

    vov = vgs_eff - vth
    clm = 1.0 + lam * vds_eff
    i_triode = k * (vov * vds_eff - 0.5 * vds_eff * vds_eff) * clm
    i_sat = 0.5 * k * vov * vov * clm
    ids = jnp.where(vov <= 0, 0.0, jnp.where(vds_eff < vov, i_triode, i_sat))
    ids = jnp.where(reverse, -ids, ids)

    i_drain = sign * ids + gmin * (v[1] - v[2])
    return jnp.stack([jnp.zeros_like(i_drain), i_drain, -i_drain])


@jax.jit
def _mosfet_linearize(v, params):
    return mosfet_currents(v, params), jax.jacfwd(mosfet_currents)(v, params)


@dataclass(eq=False)
class MOSFET(Component):
    """Level-1 MOSFET, terminals gate / drain / source (body tied to source)

    Parameters:
        polarity: +1 for NMOS, -1 for PMOS
        vth: Threshold voltage (sign follows the device type)
        kp: Process transconductance in A/V^2
        w: Channel width in m
        l: Channel length in m
        lam: Channel length modulation in 1/V, applied when not ideal
        ideal: No channel length modulation when True
    """

    kind = ComponentKind.NMOS
    terminals = ("g", "d", "s")

    polarity: int = 1
    vth: float = 0.7
    kp: float = 110e-6
    w: float = 10e-6
    l: float = 1e-6
    lam: float = 0.04
    ideal: bool = True

    def __post_init__(self):
        if self.polarity not in (1, -1):
            raise ValueError(f"MOSFET polarity must be +1 or -1, got {self.polarity}")

    @property
    def is_nonlinear(self) -> bool:
        return True

    @property
    def beta(self) -> float:
        return self.kp * self.w / self.l

    def params_array(self, gmin: float) -> np.ndarray:
        lam = 0.0 if self.ideal else self.lam
        return np.array(
            [self.polarity, self.beta, abs(self.vth), lam, gmin], dtype=np.float64
        )

    def evaluate(self, voltages, gmin: float = 0.0) -> DeviceStamps:
        """Drain current and Jacobian at terminal voltages

        Args:
            voltages: Dict with keys 'g', 'd', 's'
        """
        v0 = jnp.asarray([voltages[t] for t in self.terminals], dtype=jnp.float64)
        currents, jacobian = _mosfet_linearize(v0, jnp.asarray(self.params_array(gmin)))
        currents = np.asarray(currents)
        jacobian = np.asarray(jacobian)
        names = self.terminals
        return DeviceStamps(
            currents={t: float(currents[i]) for i, t in enumerate(names)},
            conductances={
                (t, s): float(jacobian[i, j])
                for i, t in enumerate(names)
                for j, s in enumerate(names)
            },
        )

    def stamp(self, A, b, nodes, branch, ctx):
        voltages = dict(zip(self.terminals, terminal_voltages(nodes, ctx)))
        stamps = self.evaluate(voltages, ctx.gmin)
        stamp_device_stamps(A, b, dict(zip(self.terminals, nodes)), stamps, voltages)


@dataclass(eq=False)
class PMOS(MOSFET):
    """PMOS transistor"""

    kind = ComponentKind.PMOS

    polarity: int = -1
    vth: float = -0.7
    kp: float = 50e-6


