"""Tests for the dense partial-pivot linear solver."""

import numpy as np
import pytest

from circuit_playground.analysis.linalg import solve_dense
from circuit_playground.config import MAX_MATRIX_SIZE
from circuit_playground.errors import CircuitError, SingularMatrixError


class TestSolveDense:
    """Tests for solve_dense()."""

    def test_matches_numpy_solve(self):
        """Random well-conditioned system agrees with numpy.linalg.solve."""
        rng = np.random.default_rng(0)
        A = rng.normal(size=(6, 6)) + 6.0 * np.eye(6)
        b = rng.normal(size=6)

        x = solve_dense(A, b)

        np.testing.assert_allclose(x, np.linalg.solve(A, b), rtol=1e-12, atol=1e-12)

    def test_requires_pivoting(self):
        """Zero on the leading diagonal is handled by a row swap."""
        A = np.array([[0.0, 1.0], [1.0, 0.0]])
        b = np.array([2.0, 3.0])

        x = solve_dense(A, b)

        assert x[0] == pytest.approx(3.0)
        assert x[1] == pytest.approx(2.0)

    def test_complex_system(self):
        """Complex matrices solve with a complex result."""
        A = np.array([[1.0 + 1.0j, 2.0], [0.5, 3.0 - 1.0j]])
        b = np.array([1.0, 1.0j])

        x = solve_dense(A, b)

        assert np.iscomplexobj(x)
        np.testing.assert_allclose(A @ x, b, atol=1e-12)

    def test_inputs_not_modified(self):
        """A and b are left untouched."""
        A = np.array([[2.0, 1.0], [4.0, 3.0]])
        b = np.array([1.0, 2.0])
        A_copy, b_copy = A.copy(), b.copy()

        solve_dense(A, b)

        np.testing.assert_array_equal(A, A_copy)
        np.testing.assert_array_equal(b, b_copy)

    def test_singular_reports_column(self):
        """Rank-deficient matrix raises with the column lacking a pivot."""
        A = np.array([[1.0, 1.0], [1.0, 1.0]])

        with pytest.raises(SingularMatrixError) as exc_info:
            solve_dense(A, np.array([1.0, 2.0]))

        assert exc_info.value.column == 1
        assert isinstance(exc_info.value, CircuitError)

    def test_zero_column(self):
        """An all-zero first column is singular at column 0."""
        A = np.array([[0.0, 1.0], [0.0, 2.0]])

        with pytest.raises(SingularMatrixError) as exc_info:
            solve_dense(A, np.array([1.0, 2.0]))

        assert exc_info.value.column == 0

    def test_pivot_tolerance(self):
        """Pivots below pivot_tol count as zero."""
        A = np.array([[1e-20]])

        with pytest.raises(SingularMatrixError):
            solve_dense(A, np.array([1.0]))

        x = solve_dense(A, np.array([1.0]), pivot_tol=1e-30)
        assert x[0] == pytest.approx(1e20)

    def test_shape_mismatch(self):
        """Non-square or mismatched inputs are rejected."""
        with pytest.raises(ValueError):
            solve_dense(np.eye(3), np.ones(2))

    def test_size_limit(self):
        """Systems above MAX_MATRIX_SIZE are rejected."""
        n = MAX_MATRIX_SIZE + 1
        with pytest.raises(ValueError, match="MAX_MATRIX_SIZE"):
            solve_dense(np.eye(n), np.ones(n))
