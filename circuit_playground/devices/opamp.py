"""Operational amplifier macromodel.

The output is a voltage-controlled voltage source driving a branch current
unknown:

    ideal:      V(out) = gain * (V(in+) - V(in-) + voffset)
    non-ideal:  V(out) = mid + half * tanh(gain * (vd + voffset) / half) - r_out * i_out

where ``mid`` and ``half`` are the centre and half-span of the supply rails.
The non-ideal law saturates softly at the rails and is linearized at the
Newton iterate like the other nonlinear devices.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from circuit_playground.devices.base import (
    Component,
    ComponentKind,
    stamp_voltage_branch,
    terminal_voltages,
)


@dataclass(eq=False)
class OpAmp(Component):
    """Op-amp, terminals in+ / in- / out

    Parameters:
        gain: Open-loop voltage gain
        voffset: Input offset voltage in V
        vmax: Positive output rail in V (non-ideal)
        vmin: Negative output rail in V (non-ideal)
        r_out: Output resistance in Ohms (non-ideal)
        ideal: Linear VCVS without rails when True
    """

    kind = ComponentKind.OPAMP
    terminals = ("in_p", "in_n", "out")
    has_branch = True

    gain: float = 1e5
    voffset: float = 0.0
    vmax: float = 15.0
    vmin: float = -15.0
    r_out: float = 75.0
    ideal: bool = True

    def __post_init__(self):
        if self.vmax <= self.vmin:
            raise ValueError(f"OpAmp rails must satisfy vmax > vmin, got {self.vmin}..{self.vmax}")

    @property
    def is_nonlinear(self) -> bool:
        return not self.ideal

    def defines_voltage(self, dc: bool) -> bool:
        return self.ideal

    def voltage_terminals(self) -> Tuple[int, Optional[int]]:
        # Output to ground
        return (2, None)

    def transfer(self, vd: float) -> Tuple[float, float]:
        """Output voltage and its slope dVout/dvd at differential input vd."""
        x = vd + self.voffset
        if self.ideal:
            return self.gain * x, self.gain
        mid = 0.5 * (self.vmax + self.vmin)
        half = 0.5 * (self.vmax - self.vmin)
        t = math.tanh(self.gain * x / half)
        return mid + half * t, self.gain * (1.0 - t * t)

    def stamp(self, A, b, nodes, branch, ctx):
        in_p, in_n, out = nodes
        if self.ideal:
            vout, slope = self.gain * self.voffset, self.gain
            r_out = 0.0
        else:
            vp, vn, _ = terminal_voltages(nodes, ctx)
            vd0 = vp - vn
            vout, slope = self.transfer(vd0)
            vout -= slope * vd0
            r_out = max(self.r_out, 0.0)
        # Branch row: V(out) - slope * (V(in+) - V(in-)) - r_out * i = vout
        stamp_voltage_branch(A, b, out, -1, branch, vout, r_out)
        if in_p >= 0:
            A[branch, in_p] -= slope
        if in_n >= 0:
            A[branch, in_n] += slope
