"""DC operating point analysis for circuit-playground.

Time-dependent sources are evaluated at t=0, capacitors are open and
inductors are zero-volt branches. The topology is checked for loops of
ideal voltage constraints first so a short circuit is reported as such
instead of as a singular matrix.
"""

import logging
from typing import Optional

import numpy as np

from circuit_playground.analysis.context import AnalysisContext
from circuit_playground.analysis.mna import MNASystem
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.analysis.solver import NRConfig, newton_solve
from circuit_playground.errors import ConvergenceError

logger = logging.getLogger(__name__)


def dc_context(options: SimulationOptions, time: float = 0.0) -> AnalysisContext:
    return AnalysisContext(time=time, dt=None, temperature=options.temp, analysis_type="dc")


def dc_operating_point(
    system: MNASystem,
    options: Optional[SimulationOptions] = None,
    x0: Optional[np.ndarray] = None,
    time: float = 0.0,
) -> np.ndarray:
    """Find the DC operating point.

    Args:
        system: MNA layout of the circuit
        options: Solver options (defaults to ``system.options``)
        x0: Initial guess (zeros if None)
        time: Time at which sources are evaluated

    Returns:
        Solution vector (node voltages then branch currents)

    Raises:
        ShortCircuitError: Ideal voltage constraints form a loop
        SingularMatrixError: Floating node or otherwise singular system
        ConvergenceError: Newton iteration did not settle within ``options.op_itl``
    """
    if options is None:
        options = system.options
    system.check_short_circuits(dc=True)

    ctx = dc_context(options, time)

    def build_system(x, iteration):
        ctx.guess = x
        ctx.iteration = iteration
        return system.assemble(ctx)

    if x0 is None:
        x0 = np.zeros(system.size)
    config = NRConfig(
        max_iterations=options.op_itl,
        abstol=options.abstol,
        reltol=options.reltol,
        linear=not system.is_nonlinear,
    )
    result = newton_solve(build_system, x0, config)
    if not result.converged:
        raise ConvergenceError(result.iterations, result.max_delta)

    logger.debug(f"DC operating point: {result.iterations} iterations")
    return result.x
