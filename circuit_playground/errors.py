"""Exceptions raised by the circuit solver.

The solver layer raises these; ``Simulation`` turns them into a stored
``last_error`` message and a False return value so the application loop never
sees an exception from a failed step.
"""

from typing import Iterable, Tuple


class CircuitError(Exception):
    """Base class for all circuit solve failures."""


class SingularMatrixError(CircuitError):
    """The MNA matrix has no usable pivot in some column.

    Usually a floating node (nothing ties it to ground) or ideal sources
    fighting each other without series resistance.
    """

    def __init__(self, column: int, message: str = ""):
        self.column = column
        super().__init__(message or f"Singular matrix: no pivot for unknown {column}")


class ConvergenceError(CircuitError):
    """Newton-Raphson iteration did not settle within its iteration bound."""

    def __init__(self, iterations: int, max_delta: float, message: str = ""):
        self.iterations = iterations
        self.max_delta = max_delta
        super().__init__(
            message
            or f"Did not converge after {iterations} iterations (max delta {max_delta:.3e})"
        )


class ShortCircuitError(CircuitError):
    """Ideal voltage-defined branches form a loop or are shorted by a wire.

    Attributes:
        component_ids: Components implicated in the short, in loop order
    """

    def __init__(self, component_ids: Iterable[int], message: str = ""):
        self.component_ids: Tuple[int, ...] = tuple(component_ids)
        ids = ", ".join(str(i) for i in self.component_ids)
        super().__init__(message or f"Short circuit through components [{ids}]")


class SweepRangeError(CircuitError, ValueError):
    """Sweep bounds or point counts that cannot produce a sweep."""
