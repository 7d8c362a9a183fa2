"""Newton-Raphson solver for circuit-playground.

This module provides the NR iteration loop shared by DC and transient
analysis. Each iteration re-assembles the MNA system linearized at the
current iterate and solves it directly for the next iterate:

    A(x_k) x_{k+1} = b(x_k)

Convergence is checked element-wise on the update:

    |x_{k+1} - x_k| <= abstol + reltol * |x_{k+1}|

A circuit without nonlinear devices is exact after a single solve.
"""

import logging
from typing import Callable, NamedTuple, Optional, Tuple

import numpy as np

from circuit_playground.analysis.linalg import solve_dense
from circuit_playground.config import CONVERGENCE_TOL, MAX_ITERATIONS, RELATIVE_TOL

logger = logging.getLogger(__name__)

BuildSystemFn = Callable[[np.ndarray, int], Tuple[np.ndarray, np.ndarray]]


class NRConfig(NamedTuple):
    """Configuration for Newton-Raphson solver.

    Attributes:
        max_iterations: Maximum number of NR iterations
        abstol: Absolute tolerance on the update of each unknown
        reltol: Relative tolerance on the update of each unknown
        linear: System does not depend on the iterate, stop after one solve
    """

    max_iterations: int = MAX_ITERATIONS
    abstol: float = CONVERGENCE_TOL
    reltol: float = RELATIVE_TOL
    linear: bool = False


class NRResult(NamedTuple):
    """Result from Newton-Raphson solver.

    Attributes:
        x: Final iterate
        iterations: Number of iterations performed
        converged: Whether the solver converged
        max_delta: Largest update in the last iteration
    """

    x: np.ndarray
    iterations: int
    converged: bool
    max_delta: float


def newton_solve(
    build_system: BuildSystemFn,
    x0: np.ndarray,
    config: Optional[NRConfig] = None,
) -> NRResult:
    """Solve a nonlinear MNA system by Newton-Raphson iteration.

    Args:
        build_system: Function (iterate, iteration) -> (A, b) linearized at the iterate
        x0: Initial guess
        config: Solver configuration (uses defaults if None)

    Returns:
        NRResult. On non-convergence ``x`` is the last finite iterate.

    Raises:
        SingularMatrixError: Propagated from the linear solve
    """
    if config is None:
        config = NRConfig()

    x = np.array(x0, dtype=np.float64, copy=True)
    max_delta = float("inf")

    for iteration in range(config.max_iterations):
        A, b = build_system(x, iteration)
        x_new = solve_dense(A, b)

        if not np.all(np.isfinite(x_new)):
            logger.debug(f"NR iteration {iteration}: non-finite iterate")
            return NRResult(x, iteration + 1, False, float("inf"))

        if config.linear:
            return NRResult(x_new, 1, True, 0.0)

        delta = np.abs(x_new - x)
        max_delta = float(np.max(delta)) if delta.size else 0.0
        converged = bool(np.all(delta <= config.abstol + config.reltol * np.abs(x_new)))
        x = x_new

        if converged:
            logger.debug(f"NR converged in {iteration + 1} iterations")
            return NRResult(x, iteration + 1, True, max_delta)

    logger.debug(f"NR failed after {config.max_iterations} iterations, max delta {max_delta:.3e}")
    return NRResult(x, config.max_iterations, False, max_delta)
