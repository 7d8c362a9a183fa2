"""Integration methods for transient analysis.

Supports two implicit one-step methods for energy-storage companions:
- Backward Euler (be): First-order, unconditionally stable, damps ringing
- Trapezoidal (trap): Second-order A-stable, the default

The integration formula computes a derivative from the state history:
    dX/dt = c0 * X_new + c1 * X_prev + d1 * dXdt_prev

For a capacitor X is its voltage and C * dX/dt its current, which yields the
companion conductance ``Geq = C * c0`` and history current
``Ieq = C * c1 * v_prev + d1 * i_prev``. Inductors use the dual form with
their branch current as X.
"""

from enum import Enum
from typing import NamedTuple


class IntegrationMethod(Enum):
    """Supported integration methods for transient analysis."""

    BACKWARD_EULER = "be"
    TRAPEZOIDAL = "trap"

    @classmethod
    def from_string(cls, s: str) -> "IntegrationMethod":
        """Parse integration method from string.

        Handles the usual SPICE aliases.
        """
        s_lower = s.lower().strip().strip("\"'")
        aliases = {
            "be": cls.BACKWARD_EULER,
            "euler": cls.BACKWARD_EULER,
            "backward_euler": cls.BACKWARD_EULER,
            "trap": cls.TRAPEZOIDAL,
            "trapezoidal": cls.TRAPEZOIDAL,
            "am2": cls.TRAPEZOIDAL,  # Adams-Moulton order 2
        }
        if s_lower in aliases:
            return aliases[s_lower]
        raise ValueError(f"Unknown integration method: {s}. Supported: be, trap")


class IntegrationCoeffs(NamedTuple):
    """Integration coefficients for a specific method and timestep.

    BE:    dX/dt = (X_new - X_prev) / dt
           c0 = 1/dt, c1 = -1/dt, d1 = 0

    Trap:  dX/dt = 2/dt * (X_new - X_prev) - dXdt_prev
           c0 = 2/dt, c1 = -2/dt, d1 = -1
    """

    c0: float  # Coefficient for X_new (leading coefficient)
    c1: float  # Coefficient for X_prev
    d1: float  # Coefficient for dXdt_prev (only trap)


def compute_coefficients(method: IntegrationMethod, dt: float) -> IntegrationCoeffs:
    """Compute integration coefficients for a given method and timestep.

    Args:
        method: Integration method to use
        dt: Timestep size, must be positive

    Returns:
        IntegrationCoeffs with all coefficients
    """
    if dt <= 0:
        raise ValueError(f"Timestep must be positive, got {dt}")
    inv_dt = 1.0 / dt

    if method == IntegrationMethod.BACKWARD_EULER:
        return IntegrationCoeffs(c0=inv_dt, c1=-inv_dt, d1=0.0)
    elif method == IntegrationMethod.TRAPEZOIDAL:
        return IntegrationCoeffs(c0=2.0 * inv_dt, c1=-2.0 * inv_dt, d1=-1.0)
    raise ValueError(f"Unknown integration method: {method}")
