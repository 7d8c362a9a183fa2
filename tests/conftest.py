"""Pytest configuration for circuit-playground tests

Handles platform-specific JAX configuration:
- macOS: Forces CPU backend since Metal doesn't support float64

Uses pytest_configure hook so JAX is configured before any test imports.

Also provides shared circuits used across test modules.
"""

import os
import sys

import pytest


def pytest_configure(config):
    """
    Pytest hook that runs before test collection.

    Selects the JAX platform and imports circuit_playground so precision is
    configured BEFORE any test module imports a device model.
    """
    if sys.platform == "darwin":
        # macOS: Force CPU backend - Metal doesn't support float64
        os.environ["JAX_PLATFORMS"] = "cpu"

    # Import circuit_playground to auto-configure precision based on backend
    import circuit_playground  # noqa: F401


# =============================================================================
# Shared circuits
# =============================================================================


@pytest.fixture
def divider():
    """10 V across 1k / 1k, probe on the midpoint."""
    from circuit_playground.netlist.presets import build_template

    return build_template("voltage_divider")


@pytest.fixture
def rc_step():
    """5 V step into 1k / 1uF (tau = 1 ms), capacitor starting discharged."""
    from circuit_playground.devices.passives import Capacitor, Resistor
    from circuit_playground.devices.sources import DCVoltage
    from circuit_playground.netlist.circuit import GROUND, Circuit

    c = Circuit("rc_step")
    vin, vout = c.add_node(), c.add_node()
    c.add_component(DCVoltage(5.0), [vin, GROUND])
    c.add_component(Resistor(1000.0), [vin, vout])
    c.add_component(Capacitor(1e-6), [vout, GROUND])
    c.add_probe(vout, "Vc")
    return c

