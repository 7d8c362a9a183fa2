"""Default configuration values for circuit-playground simulations.

This module centralizes configuration constants used throughout the simulator.
"""

ZERO_CELSIUS_K = 273.15  # 0 °C in kelvin

# Ambient temperature in Celsius. Temperature coefficients are referenced here.
REFERENCE_TEMPERATURE_C = 25.0

# Bounded containers
MAX_SWEEP_POINTS = 100
MAX_MONTE_CARLO_RUNS = 1000
FFT_SIZE = 1024  # Must be a power of two
MAX_PROBES = 8
MAX_HISTORY = 10000
MAX_MATRIX_SIZE = 512

# Time stepping (seconds)
DEFAULT_TIME_STEP = 1e-6
MIN_TIME_STEP = 1e-9
MAX_TIME_STEP = 0.01

# Newton-Raphson
MAX_ITERATIONS = 50  # per transient timepoint
MAX_DC_ITERATIONS = 100
CONVERGENCE_TOL = 1e-9  # absolute change (V or A)
RELATIVE_TOL = 1e-6
GMIN = 1e-12  # junction shunt conductance
PIVOT_TOL = 1e-15  # smallest usable pivot magnitude

# Monte Carlo iterations executed per call to MonteCarloAnalysis.step()
MC_ITERATIONS_PER_SLICE = 10
