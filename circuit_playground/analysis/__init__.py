"""Analysis engines for circuit-playground

Solver modules (``mna``, ``solver``, ``dc``, ``transient``, ``ac``) and the
sweep / Monte Carlo drivers depend on the device and netlist packages and
are imported from their own submodules. The leaf utilities below are
re-exported here.
"""

from circuit_playground.analysis.context import AnalysisContext
from circuit_playground.analysis.cursors import CursorPair, MeasurementCursor
from circuit_playground.analysis.integration import (
    IntegrationCoeffs,
    IntegrationMethod,
    compute_coefficients,
)
from circuit_playground.analysis.linalg import solve_dense
from circuit_playground.analysis.math_channels import MathChannel, MathOperation
from circuit_playground.analysis.measurements import WaveformMeasurements, measure_waveform
from circuit_playground.analysis.options import SimulationOptions
from circuit_playground.analysis.spectrum import FFTResult, FFTWorkspace, WindowType, compute_fft
from circuit_playground.analysis.temperature import Material, apply_temperature, tempco_for

__all__ = [
    "AnalysisContext",
    "SimulationOptions",
    "IntegrationMethod",
    "IntegrationCoeffs",
    "compute_coefficients",
    "solve_dense",
    "Material",
    "apply_temperature",
    "tempco_for",
    "FFTResult",
    "FFTWorkspace",
    "WindowType",
    "compute_fft",
    "WaveformMeasurements",
    "measure_waveform",
    "MathChannel",
    "MathOperation",
    "CursorPair",
    "MeasurementCursor",
]
