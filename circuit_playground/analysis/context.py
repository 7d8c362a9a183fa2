"""Analysis context for circuit-playground

Holds the solver state passed to every device stamp.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from circuit_playground.analysis.integration import IntegrationCoeffs
from circuit_playground.config import GMIN, REFERENCE_TEMPERATURE_C, ZERO_CELSIUS_K


@dataclass
class AnalysisContext:
    """Context passed to device stamps during analysis

    Attributes:
        time: Current simulation time (0.0 for DC, sources evaluated there)
        dt: Current timestep (None for DC analysis)
        temperature: Circuit temperature in Celsius
        analysis_type: Type of analysis ('dc', 'tran', 'ac')
        iteration: Current Newton-Raphson iteration number
        guess: Current Newton iterate that nonlinear devices linearize around
        prev_solution: Last accepted timepoint solution (for transient)
        coeffs: Integration coefficients for energy-storage companions
        omega: Angular frequency for small-signal AC stamps
        excitation_id: Component id of the AC excitation source
        gmin: Shunt conductance added across semiconductor junctions
    """

    time: float = 0.0
    dt: Optional[float] = None
    temperature: float = REFERENCE_TEMPERATURE_C
    analysis_type: str = "dc"
    iteration: int = 0
    guess: Optional[np.ndarray] = None
    prev_solution: Optional[np.ndarray] = None
    coeffs: Optional[IntegrationCoeffs] = None
    omega: float = 0.0
    excitation_id: Optional[int] = None
    gmin: float = GMIN

    def is_dc(self) -> bool:
        """Check if energy-storage devices should use their DC companion"""
        return self.analysis_type == "dc" or self.dt is None or self.dt <= 0

    def is_transient(self) -> bool:
        """Check if this is a transient timepoint with a usable timestep"""
        return self.analysis_type == "tran" and not self.is_dc()

    def is_ac(self) -> bool:
        """Check if this is a small-signal AC solve"""
        return self.analysis_type == "ac"

    @property
    def temperature_k(self) -> float:
        return self.temperature + ZERO_CELSIUS_K

    def voltage(self, index: int) -> float:
        """Value of unknown ``index`` in the current iterate (0 V for ground)"""
        if index < 0 or self.guess is None:
            return 0.0
        return float(self.guess[index].real)
