"""Base device interface for circuit-playground

Every component kind is a dataclass deriving from ``Component``. The set of
kinds is closed (``ComponentKind``); each subclass implements the operations
the solver and the analysis toolkit need:

- ``stamp``: add its (linearized) contribution to the MNA matrix and RHS
- ``stamp_ac``: small-signal contribution at angular frequency ``ctx.omega``
- ``init_state`` / ``commit``: update persistent state after an accepted solve
- ``get_value`` / ``set_value``: primary value used by Monte Carlo
- ``get_parameter`` / ``set_parameter``: parameters addressable by a sweep

Stamp convention: ``nodes`` holds the matrix index of each terminal in
``terminals`` order, -1 for ground. A row of the system is KCL at a node:
the sum of currents leaving the node through devices equals the RHS.
"""

from dataclasses import KW_ONLY, dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Dict, NamedTuple, Optional, Sequence, Tuple

import numpy as np

if TYPE_CHECKING:
    from circuit_playground.analysis.context import AnalysisContext


class ComponentKind(Enum):
    """Closed set of device kinds known to the solver."""

    RESISTOR = "resistor"
    CAPACITOR = "capacitor"
    INDUCTOR = "inductor"
    FUSE = "fuse"
    DC_VOLTAGE = "dc_voltage"
    AC_VOLTAGE = "ac_voltage"
    DC_CURRENT = "dc_current"
    SQUARE_WAVE = "square_wave"
    TRIANGLE_WAVE = "triangle_wave"
    SAWTOOTH_WAVE = "sawtooth_wave"
    NOISE_SOURCE = "noise_source"
    DIODE = "diode"
    ZENER = "zener"
    SCHOTTKY = "schottky"
    LED = "led"
    NPN_BJT = "npn_bjt"
    PNP_BJT = "pnp_bjt"
    NMOS = "nmos"
    PMOS = "pmos"
    OPAMP = "opamp"


class ParameterKind(Enum):
    """Parameters a parametric sweep can drive."""

    RESISTANCE = "resistance"
    CAPACITANCE = "capacitance"
    INDUCTANCE = "inductance"
    VOLTAGE = "voltage"
    CURRENT = "current"
    FREQUENCY = "frequency"
    TEMPERATURE = "temperature"


class DeviceStamps(NamedTuple):
    """Device contribution to circuit equations at one operating point

    Attributes:
        currents: Terminal name -> current flowing into the device at that terminal
        conductances: (terminal, terminal) -> dI_terminal1 / dV_terminal2
    """

    currents: Dict[str, float]
    conductances: Dict[Tuple[str, str], float]


# =============================================================================
# Stamp helpers
# =============================================================================


def stamp_conductance(A: np.ndarray, i: int, j: int, g) -> None:
    """Conductance g between matrix nodes i and j (-1 = ground)."""
    if i >= 0:
        A[i, i] += g
    if j >= 0:
        A[j, j] += g
    if i >= 0 and j >= 0:
        A[i, j] -= g
        A[j, i] -= g


def stamp_current(b: np.ndarray, i: int, j: int, current) -> None:
    """Current flowing through the device from node i to node j."""
    if i >= 0:
        b[i] -= current
    if j >= 0:
        b[j] += current


def stamp_transconductance(
    A: np.ndarray, out_p: int, out_n: int, in_p: int, in_n: int, gm
) -> None:
    """Current gm * (V(in_p) - V(in_n)) flowing through the device from out_p to out_n."""
    for row, row_sign in ((out_p, 1.0), (out_n, -1.0)):
        if row < 0:
            continue
        for col, col_sign in ((in_p, 1.0), (in_n, -1.0)):
            if col >= 0:
                A[row, col] += row_sign * col_sign * gm


def stamp_voltage_branch(
    A: np.ndarray, b: np.ndarray, p: int, n: int, k: int, voltage, resistance=0.0
) -> None:
    """Branch unknown k enforcing V(p) - V(n) - resistance * i_k = voltage.

    i_k is the current leaving node p into the branch (and entering node n).
    """
    if p >= 0:
        A[p, k] += 1.0
        A[k, p] += 1.0
    if n >= 0:
        A[n, k] -= 1.0
        A[k, n] -= 1.0
    if resistance:
        A[k, k] -= resistance
    b[k] += voltage


def stamp_device_stamps(
    A: np.ndarray,
    b: np.ndarray,
    nodes: Dict[str, int],
    stamps: DeviceStamps,
    v0: Dict[str, float],
) -> None:
    """Stamp a Newton linearization i(v) ~ i(v0) + J (v - v0).

    Args:
        A, b: MNA matrix and RHS
        nodes: Terminal name -> matrix index
        stamps: Currents and Jacobian evaluated at v0
        v0: Terminal voltages the linearization was taken at
    """
    for (t, k), g in stamps.conductances.items():
        row = nodes[t]
        if row < 0:
            continue
        col = nodes[k]
        if col >= 0:
            A[row, col] += g
        b[row] += g * v0[k]
    for t, current in stamps.currents.items():
        row = nodes[t]
        if row >= 0:
            b[row] -= current


# =============================================================================
# Component base
# =============================================================================


@dataclass(eq=False)
class Component:
    """Base class for all components.

    Class attributes describe the kind; instance fields after ``KW_ONLY`` are
    shared bookkeeping assigned by the circuit.

    Attributes:
        id: Unique id assigned by ``Circuit.add_component``
        label: Display label (e.g. "R1")
        node_ids: Circuit node id bound to each terminal
        tolerance: Manufacturing tolerance in percent (Monte Carlo)
    """

    kind: ClassVar[ComponentKind]
    terminals: ClassVar[Tuple[str, ...]] = ("p", "n")
    has_branch: ClassVar[bool] = False
    value_attr: ClassVar[Optional[str]] = None
    is_passive: ClassVar[bool] = False
    sweepable: ClassVar[Dict[ParameterKind, str]] = {}

    _: KW_ONLY
    id: int = -1
    label: str = ""
    node_ids: Tuple[int, ...] = ()
    tolerance: float = 5.0

    @property
    def is_nonlinear(self) -> bool:
        """True when the stamp depends on the Newton iterate."""
        return False

    def defines_voltage(self, dc: bool) -> bool:
        """True when the branch is an ideal voltage constraint (short-circuit check)."""
        return False

    def voltage_terminals(self) -> Tuple[int, Optional[int]]:
        """Terminal indices joined by the voltage constraint (None = ground)."""
        return (0, 1)

    def stamp(
        self,
        A: np.ndarray,
        b: np.ndarray,
        nodes: Sequence[int],
        branch: Optional[int],
        ctx: "AnalysisContext",
    ) -> None:
        raise NotImplementedError

    def stamp_ac(
        self,
        A: np.ndarray,
        b: np.ndarray,
        nodes: Sequence[int],
        branch: Optional[int],
        ctx: "AnalysisContext",
    ) -> None:
        """Small-signal stamp.

        Default: the large-signal stamp linearized at ``ctx.guess`` (the DC
        operating point) with its RHS discarded, which is exact for resistive
        and nonlinear devices.
        """
        self.stamp(A, np.zeros(b.shape, dtype=A.dtype), nodes, branch, ctx)

    def init_state(
        self, x: np.ndarray, nodes: Sequence[int], branch: Optional[int], ctx: "AnalysisContext"
    ) -> None:
        """Seed persistent state from an operating point."""

    def commit(
        self, x: np.ndarray, nodes: Sequence[int], branch: Optional[int], ctx: "AnalysisContext"
    ) -> None:
        """Update persistent state from an accepted transient solution."""

    def reset_state(self) -> None:
        """Return persistent state to its power-on value."""

    def max_frequency(self) -> float:
        """Highest frequency this component generates (0 for non-periodic)."""
        return 0.0

    # -------------------------------------------------------------------------
    # Value access
    # -------------------------------------------------------------------------

    def get_value(self) -> Optional[float]:
        """Primary value (resistance, capacitance, ...) or None."""
        if self.value_attr is None:
            return None
        return getattr(self, self.value_attr)

    def set_value(self, value: float) -> None:
        if self.value_attr is None:
            raise ValueError(f"{self.kind.value} has no primary value")
        setattr(self, self.value_attr, value)

    def get_parameter(self, param: ParameterKind) -> float:
        if param not in self.sweepable:
            raise ValueError(f"{self.kind.value} has no {param.value} parameter")
        return getattr(self, self.sweepable[param])

    def set_parameter(self, param: ParameterKind, value: float) -> None:
        if param not in self.sweepable:
            raise ValueError(f"{self.kind.value} has no {param.value} parameter")
        setattr(self, self.sweepable[param], value)


def terminal_voltages(nodes: Sequence[int], ctx: "AnalysisContext") -> Tuple[float, ...]:
    """Voltages of each terminal in the current Newton iterate."""
    return tuple(ctx.voltage(i) for i in nodes)


def solution_voltage(x: np.ndarray, index: int) -> float:
    """Value of unknown ``index`` in an accepted solution (0 V for ground)."""
    if index < 0:
        return 0.0
    return float(x[index].real)
