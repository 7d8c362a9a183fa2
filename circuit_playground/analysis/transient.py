"""Fixed-step transient analysis for circuit-playground.

One call to ``transient_step`` advances the circuit by ``dt``: the companion
models of capacitors and inductors are built from their committed state, the
Newton loop runs at ``time + dt``, and the solution is returned without
touching any state. The caller commits it with ``commit_state``.

A failed step raises and leaves everything as it was. The step is not
retried with a smaller ``dt``; the caller decides what to do.
"""

import logging
from typing import NamedTuple

import numpy as np

from circuit_playground.analysis.context import AnalysisContext
from circuit_playground.analysis.integration import compute_coefficients
from circuit_playground.analysis.mna import MNASystem
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.analysis.solver import NRConfig, newton_solve
from circuit_playground.config import DEFAULT_TIME_STEP, MAX_TIME_STEP, MIN_TIME_STEP
from circuit_playground.devices.sources import PeriodicSource
from circuit_playground.errors import ConvergenceError
from circuit_playground.netlist.circuit import Circuit

logger = logging.getLogger(__name__)


class TransientStep(NamedTuple):
    """Accepted-but-uncommitted result of one step.

    Attributes:
        x: Solution at ``ctx.time``
        ctx: Context the step was solved in (needed to commit)
        iterations: Newton iterations used
    """

    x: np.ndarray
    ctx: AnalysisContext
    iterations: int


def transient_step(
    system: MNASystem,
    x_prev: np.ndarray,
    time: float,
    dt: float,
    options: SimulationOptions,
) -> TransientStep:
    """Solve the circuit at ``time + dt``.

    Args:
        system: MNA layout of the circuit
        x_prev: Accepted solution at ``time`` (initial Newton guess)
        time: Time of the last accepted solution
        dt: Step size, must be positive
        options: Solver options

    Raises:
        SingularMatrixError: Singular system at this timepoint
        ConvergenceError: Newton iteration did not settle within ``options.tran_itl``
    """
    ctx = AnalysisContext(
        time=time + dt,
        dt=dt,
        temperature=options.temp,
        analysis_type="tran",
        prev_solution=x_prev,
        coeffs=compute_coefficients(options.tran_method, dt),
    )

    def build_system(x, iteration):
        ctx.guess = x
        ctx.iteration = iteration
        return system.assemble(ctx)

    config = NRConfig(
        max_iterations=options.tran_itl,
        abstol=options.abstol,
        reltol=options.reltol,
        linear=not system.is_nonlinear,
    )
    result = newton_solve(build_system, x_prev, config)
    if not result.converged:
        raise ConvergenceError(
            result.iterations,
            result.max_delta,
            f"Transient step at t={ctx.time:.6g}s did not converge after "
            f"{result.iterations} iterations (max delta {result.max_delta:.3e})",
        )
    return TransientStep(result.x, ctx, result.iterations)


def commit_state(system: MNASystem, x: np.ndarray, ctx: AnalysisContext) -> None:
    """Update every component's persistent state from an accepted solution."""
    for component, nodes, branch in system.entries:
        component.commit(x, nodes, branch, ctx)


def init_states(system: MNASystem, x: np.ndarray, ctx: AnalysisContext) -> None:
    """Seed persistent state from an operating point."""
    for component, nodes, branch in system.entries:
        component.init_state(x, nodes, branch, ctx)


def reset_states(system: MNASystem) -> None:
    for component, _, _ in system.entries:
        component.reset_state()


def highest_source_frequency(circuit: Circuit) -> float:
    return max(
        (c.max_frequency() for c in circuit.components if isinstance(c, PeriodicSource)),
        default=0.0,
    )


def auto_time_step(circuit: Circuit) -> float:
    """Pick a step size from the fastest periodic source.

    A fixed fraction of the shortest period: 1/50, 1/100 above 10 kHz and
    1/200 above 100 kHz, clamped to [MIN_TIME_STEP, MAX_TIME_STEP].
    """
    f_max = highest_source_frequency(circuit)
    if f_max <= 0:
        return DEFAULT_TIME_STEP

    period = 1.0 / f_max
    if f_max > 100e3:
        dt = period / 200.0
    elif f_max > 10e3:
        dt = period / 100.0
    else:
        dt = period / 50.0
    return min(max(dt, MIN_TIME_STEP), MAX_TIME_STEP)
