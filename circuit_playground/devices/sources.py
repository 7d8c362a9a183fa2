"""Independent sources: DC, sine, square, triangle, sawtooth and noise.

Waveform shapes are jitted jax.numpy functions of the number of elapsed
cycles, so the same code evaluates one timepoint inside a stamp or a whole
time axis at once (``PeriodicSource.waveform``). Any source parameter can be
modulated by a ``SweepConfig`` ramp; frequency sweeps integrate the swept
frequency so the generated waveform has no phase jumps.
"""

import math
from dataclasses import KW_ONLY, dataclass, field
from enum import Enum

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from circuit_playground.devices.base import (
    Component,
    ComponentKind,
    ParameterKind,
    stamp_conductance,
    stamp_current,
    stamp_voltage_branch,
)
from circuit_playground.devices.passives import MIN_RESISTANCE

# =============================================================================
# Sweeps
# =============================================================================


class SweepMode(Enum):
    """How a swept source parameter moves from start to end."""

    NONE = "none"
    LINEAR = "linear"
    LOG = "log"
    STEP = "step"


@dataclass
class SweepConfig:
    """Time-based sweep of one source parameter

    Attributes:
        enabled: Sweep is active
        mode: Ramp shape
        start: Value at the start of each sweep
        end: Value at the end of each sweep
        sweep_time: Seconds for one start -> end leg
        num_steps: Number of discrete levels in STEP mode
        repeat: Restart after each sweep (otherwise hold the final value)
        bidirectional: Sweep back from end to start (triangle pattern)
    """

    enabled: bool = False
    mode: SweepMode = SweepMode.NONE
    start: float = 0.0
    end: float = 0.0
    sweep_time: float = 1.0
    num_steps: int = 10
    repeat: bool = False
    bidirectional: bool = False

    def is_active(self) -> bool:
        return self.enabled and self.mode != SweepMode.NONE and self.sweep_time > 0

    @property
    def cycle_time(self) -> float:
        return self.sweep_time * (2.0 if self.bidirectional else 1.0)

    def _mode(self) -> SweepMode:
        # Log ramps need strictly positive endpoints
        if self.mode == SweepMode.LOG and (self.start <= 0 or self.end <= 0):
            return SweepMode.LINEAR
        return self.mode

    def _level(self, k: int) -> float:
        n = max(self.num_steps, 1)
        if n == 1:
            return self.start
        return self.start + (self.end - self.start) * k / (n - 1)

    def _ramp(self, f: float) -> float:
        """Value at fraction f in [0, 1] of one leg."""
        mode = self._mode()
        if mode == SweepMode.LOG:
            return self.start * (self.end / self.start) ** f
        if mode == SweepMode.STEP:
            n = max(self.num_steps, 1)
            return self._level(min(int(f * n), n - 1))
        return self.start + (self.end - self.start) * f

    def _ramp_integral(self, f: float) -> float:
        """Integral of the ramp from the leg start to fraction f, in value-seconds."""
        T = self.sweep_time
        mode = self._mode()
        if mode == SweepMode.LOG:
            ratio = self.end / self.start
            if abs(ratio - 1.0) < 1e-12:
                return T * self.start * f
            return T * self.start * (ratio**f - 1.0) / math.log(ratio)
        if mode == SweepMode.STEP:
            n = max(self.num_steps, 1)
            k = min(int(f * n), n - 1)
            completed = sum(self._level(j) for j in range(k))
            return T * (completed / n + self._level(k) * (f - k / n))
        return T * (self.start * f + 0.5 * (self.end - self.start) * f * f)

    def _leg_value(self, tau: float) -> float:
        T = self.sweep_time
        if tau <= T:
            return self._ramp(tau / T)
        return self._ramp(1.0 - (tau - T) / T)

    def _leg_integral(self, tau: float) -> float:
        T = self.sweep_time
        if tau <= T:
            return self._ramp_integral(tau / T)
        full = self._ramp_integral(1.0)
        return full + full - self._ramp_integral(1.0 - (tau - T) / T)

    def value_at(self, t: float, base: float) -> float:
        """Swept value at time t (``base`` when the sweep is inactive)."""
        if not self.is_active():
            return base
        t = max(t, 0.0)
        cycle = self.cycle_time
        if self.repeat:
            return self._leg_value(math.fmod(t, cycle))
        if t >= cycle:
            return self.start if self.bidirectional else self.end
        return self._leg_value(t)

    def integral_at(self, t: float, base: float) -> float:
        """Integral of the swept value from 0 to t (``base * t`` when inactive)."""
        if not self.is_active():
            return base * t
        t = max(t, 0.0)
        cycle = self.cycle_time
        cycle_integral = self._leg_integral(cycle)
        if self.repeat:
            n_full = math.floor(t / cycle)
            return n_full * cycle_integral + self._leg_integral(t - n_full * cycle)
        if t <= cycle:
            return self._leg_integral(t)
        return cycle_integral + self.value_at(t, base) * (t - cycle)

    def max_value(self, base: float) -> float:
        if not self.is_active():
            return base
        return max(abs(self.start), abs(self.end))


# =============================================================================
# Waveform shapes
# =============================================================================


@jax.jit
def sine_shape(cycles: Array) -> Array:
    """Unit sine after ``cycles`` periods."""
    return jnp.sin(2.0 * jnp.pi * jnp.mod(cycles, 1.0))


@jax.jit
def square_shape(cycles: Array, duty: Array) -> Array:
    """+1 for the first ``duty`` fraction of each period, -1 after."""
    position = jnp.mod(cycles, 1.0)
    return jnp.where(position < duty, 1.0, -1.0)


@jax.jit
def triangle_shape(cycles: Array) -> Array:
    """Rises -1 -> +1 over the first half period, falls back over the second."""
    position = jnp.mod(cycles, 1.0)
    return jnp.where(position < 0.5, 4.0 * position - 1.0, 3.0 - 4.0 * position)


@jax.jit
def sawtooth_shape(cycles: Array) -> Array:
    """Linear ramp -1 -> +1 over each period."""
    return 2.0 * jnp.mod(cycles, 1.0) - 1.0


@jax.jit
def _noise_sample(seed: Array, index: Array) -> Array:
    key = jax.random.fold_in(jax.random.PRNGKey(seed), index)
    return jax.random.normal(key)


# =============================================================================
# Sources
# =============================================================================


@dataclass(eq=False)
class VoltageSource(Component):
    """Common base for sources that define a branch voltage

    Parameters:
        r_series: Internal resistance, applied when not ideal
        ideal: Zero internal resistance when True
    """

    has_branch = True

    _: KW_ONLY
    r_series: float = 0.001
    ideal: bool = True

    def value_at(self, t: float) -> float:
        raise NotImplementedError

    def defines_voltage(self, dc: bool) -> bool:
        return self.ideal or self.r_series <= 0

    @property
    def internal_resistance(self) -> float:
        return 0.0 if self.ideal else max(self.r_series, 0.0)

    def stamp(self, A, b, nodes, branch, ctx):
        p, n = nodes
        stamp_voltage_branch(A, b, p, n, branch, self.value_at(ctx.time), self.internal_resistance)

    def stamp_ac(self, A, b, nodes, branch, ctx):
        # Sources are AC shorts except the unit excitation
        p, n = nodes
        excitation = 1.0 if ctx.excitation_id == self.id else 0.0
        stamp_voltage_branch(A, b, p, n, branch, excitation, self.internal_resistance)


@dataclass(eq=False)
class DCVoltage(VoltageSource):
    """Constant voltage source (optionally swept over time)"""

    kind = ComponentKind.DC_VOLTAGE
    value_attr = "voltage"
    sweepable = {ParameterKind.VOLTAGE: "voltage"}

    voltage: float = 5.0
    voltage_sweep: SweepConfig = field(default_factory=SweepConfig)

    def value_at(self, t: float) -> float:
        return self.voltage_sweep.value_at(t, self.voltage)


@dataclass(eq=False)
class DCCurrent(Component):
    """Constant current source, current flows from terminal p through the source to n

    Parameters:
        current: Source current in A
        r_parallel: Internal shunt resistance, applied when not ideal
        ideal: No shunt when True
    """

    kind = ComponentKind.DC_CURRENT
    value_attr = "current"
    sweepable = {ParameterKind.CURRENT: "current"}

    current: float = 0.001
    r_parallel: float = 1e9
    ideal: bool = True
    current_sweep: SweepConfig = field(default_factory=SweepConfig)

    def value_at(self, t: float) -> float:
        return self.current_sweep.value_at(t, self.current)

    def stamp(self, A, b, nodes, branch, ctx):
        p, n = nodes
        if not self.ideal:
            stamp_conductance(A, p, n, 1.0 / max(self.r_parallel, MIN_RESISTANCE))
        stamp_current(b, p, n, self.value_at(ctx.time))


@dataclass(eq=False)
class PeriodicSource(VoltageSource):
    """Voltage source repeating a unit waveform shape

    Parameters:
        amplitude: Peak amplitude in V
        frequency: Frequency in Hz
        phase: Phase offset in degrees
        offset: DC offset in V
        amplitude_sweep: Optional time-based sweep of the amplitude
        frequency_sweep: Optional time-based sweep of the frequency
    """

    value_attr = "amplitude"
    sweepable = {ParameterKind.VOLTAGE: "amplitude", ParameterKind.FREQUENCY: "frequency"}

    amplitude: float = 5.0
    frequency: float = 1000.0
    phase: float = 0.0
    offset: float = 0.0
    amplitude_sweep: SweepConfig = field(default_factory=SweepConfig)
    frequency_sweep: SweepConfig = field(default_factory=SweepConfig)

    def shape(self, cycles):
        raise NotImplementedError

    def cycles_at(self, t: float) -> float:
        """Periods elapsed at time t, including the phase offset."""
        return self.frequency_sweep.integral_at(t, self.frequency) + self.phase / 360.0

    def value_at(self, t: float) -> float:
        amplitude = self.amplitude_sweep.value_at(t, self.amplitude)
        return self.offset + amplitude * float(self.shape(self.cycles_at(t)))

    def waveform(self, times) -> np.ndarray:
        """Source voltage over an array of times."""
        times = np.asarray(times, dtype=float)
        if self.amplitude_sweep.is_active() or self.frequency_sweep.is_active():
            return np.array([self.value_at(float(t)) for t in times])
        cycles = self.frequency * times + self.phase / 360.0
        return self.offset + self.amplitude * np.asarray(self.shape(jnp.asarray(cycles)))

    def max_frequency(self) -> float:
        return max(abs(self.frequency), self.frequency_sweep.max_value(abs(self.frequency)))


@dataclass(eq=False)
class ACVoltage(PeriodicSource):
    """Sine voltage source: offset + amplitude * sin(2 pi f t + phase)"""

    kind = ComponentKind.AC_VOLTAGE

    amplitude: float = 5.0
    frequency: float = 60.0

    def shape(self, cycles):
        return sine_shape(cycles)


@dataclass(eq=False)
class SquareWave(PeriodicSource):
    """Square wave between offset - amplitude and offset + amplitude

    Parameters:
        duty: Fraction of each period spent high, in (0, 1)
    """

    kind = ComponentKind.SQUARE_WAVE

    duty: float = 0.5

    def shape(self, cycles):
        return square_shape(cycles, self.duty)


@dataclass(eq=False)
class TriangleWave(PeriodicSource):
    """Symmetric triangle wave"""

    kind = ComponentKind.TRIANGLE_WAVE

    def shape(self, cycles):
        return triangle_shape(cycles)


@dataclass(eq=False)
class SawtoothWave(PeriodicSource):
    """Rising sawtooth wave"""

    kind = ComponentKind.SAWTOOTH_WAVE

    def shape(self, cycles):
        return sawtooth_shape(cycles)


@dataclass(eq=False)
class NoiseSource(VoltageSource):
    """Gaussian noise voltage source

    Draws a new sample every 1/(2*bandwidth) seconds and holds it, so every
    Newton iteration of a timepoint sees the same value and equal seeds give
    identical waveforms.

    Parameters:
        amplitude: RMS amplitude in V
        seed: PRNG seed
        bandwidth: Noise bandwidth in Hz
    """

    kind = ComponentKind.NOISE_SOURCE
    value_attr = "amplitude"
    sweepable = {ParameterKind.VOLTAGE: "amplitude"}

    amplitude: float = 1.0
    seed: int = 12345
    bandwidth: float = 1e6

    def sample_index(self, t: float) -> int:
        return int(math.floor(max(t, 0.0) * 2.0 * self.bandwidth))

    def value_at(self, t: float) -> float:
        index = np.uint32(self.sample_index(t) % (2**32))
        sample = _noise_sample(np.uint32(self.seed % (2**32)), index)
        return self.amplitude * float(sample)
