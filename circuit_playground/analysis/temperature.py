"""Temperature coefficients for passive and junction devices.

Values drift linearly with temperature around the 25 °C reference:

    value(T) = value_ref * (1 + tempco_ppm * 1e-6 * (T - T_ref))
"""

from enum import Enum

from circuit_playground.config import REFERENCE_TEMPERATURE_C


class Material(Enum):
    """Construction types with a typical temperature coefficient."""

    CARBON_FILM = "carbon_film"
    METAL_FILM = "metal_film"
    WIREWOUND = "wirewound"
    THICK_FILM = "thick_film"
    CERAMIC = "ceramic"
    ELECTROLYTIC = "electrolytic"
    SILICON_JUNCTION = "silicon_junction"


# Typical coefficients in ppm/°C
TEMPCO_PPM = {
    Material.CARBON_FILM: 1500.0,
    Material.METAL_FILM: 50.0,
    Material.WIREWOUND: 20.0,
    Material.THICK_FILM: 200.0,
    Material.CERAMIC: 30.0,  # C0G/NP0
    Material.ELECTROLYTIC: 1000.0,
    Material.SILICON_JUNCTION: -2000.0,  # about -2 mV/°C on a 1 V forward drop
}


def tempco_for(material: Material) -> float:
    """Typical temperature coefficient of ``material`` in ppm/°C."""
    return TEMPCO_PPM[material]


def apply_temperature(
    base_value: float,
    tempco_ppm: float,
    temperature: float,
    reference: float = REFERENCE_TEMPERATURE_C,
) -> float:
    """Scale ``base_value`` (specified at ``reference`` °C) to ``temperature`` °C."""
    return base_value * (1.0 + tempco_ppm * 1e-6 * (temperature - reference))
