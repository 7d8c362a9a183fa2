"""circuit-playground: interactive analog circuit simulator core"""

import logging

import jax

__version__ = "0.1.0"


logger = logging.getLogger("circuit_playground")


def _backend_supports_x64() -> bool:
    """Check if the current JAX backend supports 64-bit floats.

    Returns:
        True if backend supports float64, False otherwise.

    Note:
        - Metal (Apple Silicon) does not support float64
        - TPU does not natively support float64
        - CPU and CUDA support float64
    """
    backend = jax.default_backend().lower()
    if backend in ("metal", "tpu", "iree_metal"):
        return False
    for d in jax.devices():
        platform = getattr(d, "platform", "").lower()
        if "metal" in platform:
            return False
    return True


def configure_precision(force_x64: bool | None = None) -> bool:
    """Configure JAX precision based on backend capabilities.

    The solver works in float64 throughout; device models and the FFT run
    in jax.numpy and need x64 enabled to match it.

    Args:
        force_x64: If True, force x64 even on unsupported backends (may fail).
                   If False, force x32. If None (default), auto-detect.

    Returns:
        True if x64 is enabled, False otherwise.

    This function is called automatically on import.
    """
    if force_x64 is not None:
        enable_x64 = force_x64
    else:
        enable_x64 = _backend_supports_x64()

    if enable_x64:
        logger.debug("Using 64-bit float precision")
    else:
        logger.warning("Using 32-bit float precision, device models lose accuracy")

    jax.config.update("jax_enable_x64", enable_x64)
    return enable_x64


def get_precision_info() -> dict:
    """Get information about the current precision configuration."""
    return {
        "x64_enabled": jax.config.jax_enable_x64,
        "backend": jax.default_backend(),
        "backend_supports_x64": _backend_supports_x64(),
    }


# Auto-configure precision on import, before any model is traced
_x64_enabled = configure_precision()


from circuit_playground._logging import enable_debug_logging, set_log_level  # noqa: E402
from circuit_playground.analysis.ac import ACConfig, FrequencyResponse  # noqa: E402
from circuit_playground.analysis.monte_carlo import (  # noqa: E402
    LCGRandom,
    MonteCarloAnalysis,
    MonteCarloStats,
)
from circuit_playground.analysis.options import SimulationOptions  # noqa: E402
from circuit_playground.analysis.state import AnalysisState  # noqa: E402
from circuit_playground.analysis.sweep import ParametricSweep, SweepPoint  # noqa: E402
from circuit_playground.errors import (  # noqa: E402
    CircuitError,
    ConvergenceError,
    ShortCircuitError,
    SingularMatrixError,
    SweepRangeError,
)
from circuit_playground.netlist.circuit import GROUND, Circuit  # noqa: E402
from circuit_playground.netlist.presets import TEMPLATES, build_template  # noqa: E402
from circuit_playground.simulation import ProbeHistory, Simulation, SimState  # noqa: E402

__all__ = [
    "__version__",
    "configure_precision",
    "get_precision_info",
    "enable_debug_logging",
    "set_log_level",
    "Circuit",
    "GROUND",
    "TEMPLATES",
    "build_template",
    "Simulation",
    "SimState",
    "ProbeHistory",
    "SimulationOptions",
    "ACConfig",
    "FrequencyResponse",
    "ParametricSweep",
    "SweepPoint",
    "MonteCarloAnalysis",
    "MonteCarloStats",
    "LCGRandom",
    "AnalysisState",
    "CircuitError",
    "ConvergenceError",
    "ShortCircuitError",
    "SingularMatrixError",
    "SweepRangeError",
]
