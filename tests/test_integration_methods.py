"""Tests for integration coefficients and simulation options."""

import pytest

from circuit_playground.analysis.integration import IntegrationMethod, compute_coefficients
from circuit_playground.analysis.options import SimulationOptions


class TestIntegrationCoefficients:
    """Tests for compute_coefficients() function."""

    def test_backward_euler_coefficients(self):
        """Test Backward Euler: dX/dt = (X - X_prev) / dt."""
        dt = 1e-6
        coeffs = compute_coefficients(IntegrationMethod.BACKWARD_EULER, dt)

        assert coeffs.c0 == pytest.approx(1.0 / dt)
        assert coeffs.c1 == pytest.approx(-1.0 / dt)
        assert coeffs.d1 == 0.0

    def test_trapezoidal_coefficients(self):
        """Test Trapezoidal: dX/dt = 2/dt * (X - X_prev) - dXdt_prev."""
        dt = 1e-6
        coeffs = compute_coefficients(IntegrationMethod.TRAPEZOIDAL, dt)

        assert coeffs.c0 == pytest.approx(2.0 / dt)
        assert coeffs.c1 == pytest.approx(-2.0 / dt)
        assert coeffs.d1 == -1.0

    def test_be_vs_trap_c0_different(self):
        be_coeffs = compute_coefficients(IntegrationMethod.BACKWARD_EULER, 1e-9)
        trap_coeffs = compute_coefficients(IntegrationMethod.TRAPEZOIDAL, 1e-9)
        assert trap_coeffs.c0 == pytest.approx(2.0 * be_coeffs.c0)

    @pytest.mark.parametrize("dt", [0.0, -1e-6])
    def test_non_positive_timestep(self, dt):
        with pytest.raises(ValueError):
            compute_coefficients(IntegrationMethod.TRAPEZOIDAL, dt)


class TestIntegrationMethodParsing:
    """Tests for IntegrationMethod.from_string()."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("be", IntegrationMethod.BACKWARD_EULER),
            ("Euler", IntegrationMethod.BACKWARD_EULER),
            ("backward_euler", IntegrationMethod.BACKWARD_EULER),
            ("trap", IntegrationMethod.TRAPEZOIDAL),
            ("'trapezoidal'", IntegrationMethod.TRAPEZOIDAL),
            (" am2 ", IntegrationMethod.TRAPEZOIDAL),
        ],
    )
    def test_aliases(self, name, expected):
        assert IntegrationMethod.from_string(name) == expected

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown integration method"):
            IntegrationMethod.from_string("gear2")


class TestSimulationOptions:
    """Tests for validated simulation options."""

    def test_defaults(self):
        options = SimulationOptions()
        assert options.tran_method == IntegrationMethod.TRAPEZOIDAL
        assert options.gmin == 0.0
        assert options.icmode == "op"

    def test_method_from_string(self):
        options = SimulationOptions()
        options.tran_method = "euler"
        assert options.tran_method == IntegrationMethod.BACKWARD_EULER

    @pytest.mark.parametrize(
        "name, value",
        [
            ("temp", -300.0),
            ("op_itl", 0),
            ("tran_itl", 0),
            ("reltol", -1e-3),
            ("abstol", 0.0),
            ("gmin", -1e-12),
            ("icmode", "ic"),
            ("tran_method", "gear2"),
        ],
    )
    def test_invalid_assignment(self, name, value):
        options = SimulationOptions()
        with pytest.raises(ValueError):
            setattr(options, name, value)

    def test_invalid_constructor_argument(self):
        with pytest.raises(ValueError):
            SimulationOptions(op_itl=0)

    def test_to_dict(self):
        result = SimulationOptions(temp=50.0).to_dict()

        assert result["temp"] == 50.0
        assert result["tran_method"] == "trap"
        assert set(result) == {
            "temp",
            "op_itl",
            "tran_itl",
            "tran_method",
            "reltol",
            "abstol",
            "gmin",
            "icmode",
        }
