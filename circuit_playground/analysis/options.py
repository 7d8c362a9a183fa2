"""Simulation options with validation on assignment.

Example usage:
    sim = Simulation(circuit)
    sim.options.tran_method = IntegrationMethod.BACKWARD_EULER
    sim.options.gmin = 1e-12   # tie floating nodes to ground
"""

from dataclasses import dataclass, fields
from typing import Any, Dict

from circuit_playground.analysis.integration import IntegrationMethod
from circuit_playground.config import (
    CONVERGENCE_TOL,
    MAX_DC_ITERATIONS,
    MAX_ITERATIONS,
    REFERENCE_TEMPERATURE_C,
    RELATIVE_TOL,
)


@dataclass
class SimulationOptions:
    """Centralized simulation options.

    Options are validated on assignment. Invalid values raise ValueError.
    """

    temp: float = REFERENCE_TEMPERATURE_C
    """Ambient temperature (°C) used by temperature-dependent devices."""

    op_itl: int = MAX_DC_ITERATIONS
    """Max NR iterations for the DC operating point."""

    tran_itl: int = MAX_ITERATIONS
    """Max NR iterations per transient timepoint."""

    tran_method: IntegrationMethod = IntegrationMethod.TRAPEZOIDAL
    """Companion model integration method (backward_euler, trap)."""

    reltol: float = RELATIVE_TOL
    """Relative tolerance on the change of each unknown between iterates."""

    abstol: float = CONVERGENCE_TOL
    """Absolute tolerance on the change of each unknown between iterates (V or A)."""

    gmin: float = 0.0
    """Conductance from every node to ground. 0 keeps floating nodes singular."""

    icmode: str = "op"
    """Initial condition mode: 'op' (DC operating point) or 'uic' (component state)."""

    def __post_init__(self):
        """Validate all options after initialization."""
        for f in fields(self):
            self.__setattr__(f.name, getattr(self, f.name))

    def __setattr__(self, name: str, value: Any) -> None:
        """Set attribute with validation."""
        if name == "temp" and value <= -273.15:
            raise ValueError(f"temp must be > -273.15°C (absolute zero), got {value}")
        if name == "op_itl" and value < 1:
            raise ValueError(f"op_itl must be >= 1, got {value}")
        if name == "tran_itl" and value < 1:
            raise ValueError(f"tran_itl must be >= 1, got {value}")
        if name == "reltol" and value < 0:
            raise ValueError(f"reltol must be non-negative, got {value}")
        if name == "abstol" and value <= 0:
            raise ValueError(f"abstol must be positive, got {value}")
        if name == "gmin" and value < 0:
            raise ValueError(f"gmin must be non-negative, got {value}")
        if name == "icmode" and value not in ("op", "uic"):
            raise ValueError(f"icmode must be 'op' or 'uic', got {value!r}")
        if name == "tran_method" and isinstance(value, str):
            value = IntegrationMethod.from_string(value)
        object.__setattr__(self, name, value)

    def to_dict(self) -> Dict[str, Any]:
        """Return options as a plain dict (enum values as strings)."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.value if isinstance(value, IntegrationMethod) else value
        return result
